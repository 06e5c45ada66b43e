# app/schemas/ambulance_request.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class AmbulanceRequestCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    pickup_location: str
    emergency_type: str          # Accident | Heart Attack | Stroke | ... | Other
    preferred_hospital: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    @field_validator("pickup_location", "emergency_type")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("preferred_hospital")
    @classmethod
    def blank_hospital_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class DriverAssignment(BaseModel):
    driver_id: int


class AmbulanceRequestOut(BaseModel):
    id: int
    requester_id: str
    name: str
    phone: str
    pickup_location: str
    latitude: Optional[float]
    longitude: Optional[float]
    emergency_type: str
    preferred_hospital: Optional[str]
    status: str
    driver_id: Optional[int]
    created_at: datetime
    updated_at: Optional[datetime]
    assigned_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    class Config:
        from_attributes = True


class DispatchStatsOut(BaseModel):
    total_requests: int
    pending_requests: int
    assigned_requests: int
    completed_requests: int
    cancelled_requests: int
    available_drivers: int
    busy_drivers: int
    offline_drivers: int
