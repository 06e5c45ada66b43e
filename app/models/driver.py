# app/models/driver.py
"""
Ambulance drivers table.
Created, edited and deleted by administrators. Status flips to busy only
when the dispatch coordinator assigns the driver to a request.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Float
from app.database import Base


class DriverStatus(str, enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


# busy is set only by assignment
OVERRIDE_STATUSES = (DriverStatus.AVAILABLE.value, DriverStatus.OFFLINE.value)


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_name = Column(String(200), nullable=False)
    phone = Column(String(50), unique=True, nullable=False, index=True)
    license_number = Column(String(100), unique=True, nullable=False, index=True)
    address = Column(String(500))
    location = Column(String(500))          # free text, e.g. "Gulshan 2 circle"
    latitude = Column(Float)
    longitude = Column(Float)
    status = Column(String(20), default=DriverStatus.AVAILABLE.value, nullable=False, index=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Driver {self.id} {self.driver_name} status={self.status}>"
