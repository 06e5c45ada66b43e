# app/services/driver_registry.py
"""
DriverRegistry: owns driver rows and their availability status.
Helpers flush but never commit; the dispatch coordinator owns the transaction.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.exceptions import DuplicateKey, NotFound
from app.models.driver import Driver, DriverStatus
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Never cleared by a partial update
_REQUIRED_FIELDS = {"driver_name", "phone", "license_number", "status"}


def get_driver(db: Session, driver_id: int) -> Driver:
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise NotFound(f"Driver {driver_id} not found")
    return driver


def list_drivers(db: Session, status: Optional[str] = None) -> list[Driver]:
    q = db.query(Driver)
    if status:
        q = q.filter(Driver.status == status)
    return q.order_by(Driver.id).all()


def _check_unique(db: Session, phone: Optional[str], license_number: Optional[str],
                  exclude_id: Optional[int] = None):
    """Raise DuplicateKey if another driver already has this phone or license."""
    clauses = []
    if phone is not None:
        clauses.append(Driver.phone == phone)
    if license_number is not None:
        clauses.append(Driver.license_number == license_number)
    if not clauses:
        return
    q = db.query(Driver).filter(or_(*clauses))
    if exclude_id is not None:
        q = q.filter(Driver.id != exclude_id)
    clash = q.first()
    if not clash:
        return
    if phone is not None and clash.phone == phone:
        raise DuplicateKey("A driver with this phone number already exists")
    raise DuplicateKey("A driver with this license number already exists")


def create_driver(db: Session, fields: dict) -> Driver:
    _check_unique(db, fields.get("phone"), fields.get("license_number"))
    now = datetime.utcnow()
    driver = Driver(
        driver_name=fields["driver_name"],
        phone=fields["phone"],
        license_number=fields["license_number"],
        address=fields.get("address"),
        location=fields.get("location"),
        status=DriverStatus.AVAILABLE.value,
        created_at=now,
        updated_at=now,
    )
    db.add(driver)
    db.flush()
    return driver


def update_driver(db: Session, driver: Driver, patch: dict) -> Driver:
    """Apply a partial update. A status in the patch is a direct override."""
    _check_unique(db, patch.get("phone"), patch.get("license_number"), exclude_id=driver.id)
    for field, value in patch.items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(driver, field, value)
    driver.updated_at = datetime.utcnow()
    db.flush()
    return driver


def delete_driver(db: Session, driver: Driver):
    db.delete(driver)
    db.flush()


def set_status(db: Session, driver: Driver, status: str) -> Driver:
    driver.status = status
    driver.updated_at = datetime.utcnow()
    db.flush()
    return driver


def update_location(db: Session, driver: Driver, latitude: float, longitude: float,
                    location: Optional[str] = None) -> Driver:
    driver.latitude = latitude
    driver.longitude = longitude
    if location:
        driver.location = location
    driver.updated_at = datetime.utcnow()
    db.flush()
    return driver


def claim_driver(db: Session, driver_id: int) -> bool:
    """Compare-and-swap available → busy. False if someone else got there first."""
    updated = (
        db.query(Driver)
        .filter(Driver.id == driver_id, Driver.status == DriverStatus.AVAILABLE.value)
        .update({"status": DriverStatus.BUSY.value, "updated_at": datetime.utcnow()},
                synchronize_session="fetch")
    )
    return updated == 1


def release_driver(db: Session, driver_id: int) -> bool:
    """Put a driver back to available. False if the driver no longer exists."""
    updated = (
        db.query(Driver)
        .filter(Driver.id == driver_id)
        .update({"status": DriverStatus.AVAILABLE.value, "updated_at": datetime.utcnow()},
                synchronize_session="fetch")
    )
    if not updated:
        logger.warning(f"[DISPATCH] Driver {driver_id} no longer exists, nothing to release")
    return updated == 1


def count_by_status(db: Session) -> dict:
    counts = {s.value: 0 for s in DriverStatus}
    for driver in db.query(Driver.status).all():
        counts[driver.status] = counts.get(driver.status, 0) + 1
    return counts
