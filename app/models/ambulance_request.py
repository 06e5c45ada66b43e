# app/models/ambulance_request.py
"""
Ambulance transport requests.
Lifecycle: pending → assigned → completed, pending/assigned → cancelled.
driver_id is an opaque reference (no FK) so completed history survives
driver deletion.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Float
from app.database import Base


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.ASSIGNED.value)


class AmbulanceRequest(Base):
    __tablename__ = "ambulance_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    requester_id = Column(String(100), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=False)
    pickup_location = Column(String(500), nullable=False)
    latitude = Column(Float)
    longitude = Column(Float)
    emergency_type = Column(String(100), nullable=False)
    preferred_hospital = Column(String(200))
    status = Column(String(20), default=RequestStatus.PENDING.value, nullable=False, index=True)
    driver_id = Column(Integer, index=True)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime)
    assigned_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return f"<AmbulanceRequest {self.id} status={self.status} driver={self.driver_id}>"
