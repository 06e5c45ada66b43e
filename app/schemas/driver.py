# app/schemas/driver.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

DriverStatusLiteral = Literal["available", "busy", "offline"]
DriverOverrideLiteral = Literal["available", "offline"]


class DriverCreate(BaseModel):
    driver_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    license_number: str = Field(min_length=1)
    address: Optional[str] = None
    location: Optional[str] = None


class DriverUpdate(BaseModel):
    driver_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = Field(default=None, min_length=1)
    license_number: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = None
    location: Optional[str] = None
    status: Optional[DriverOverrideLiteral] = None


class DriverStatusUpdate(BaseModel):
    status: DriverOverrideLiteral


class DriverLocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    location: Optional[str] = None


class DriverOut(BaseModel):
    id: int
    driver_name: str
    phone: str
    license_number: str
    address: Optional[str]
    location: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
