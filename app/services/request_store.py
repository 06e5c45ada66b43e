# app/services/request_store.py
"""
RequestStore: owns ambulance request rows.
set_status() is the only write path for lifecycle changes and is called
exclusively by the dispatch coordinator.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.exceptions import NotFound
from app.models.ambulance_request import (
    AmbulanceRequest, RequestStatus, ACTIVE_STATUSES,
)

# Timestamp column stamped when a request enters each status
_STATUS_TIMESTAMPS = {
    RequestStatus.ASSIGNED.value: "assigned_at",
    RequestStatus.COMPLETED.value: "completed_at",
    RequestStatus.CANCELLED.value: "cancelled_at",
}

_UNSET = object()


def create_request(db: Session, requester_id: str, fields: dict) -> AmbulanceRequest:
    now = datetime.utcnow()
    request = AmbulanceRequest(
        requester_id=requester_id,
        name=fields["name"],
        phone=fields["phone"],
        pickup_location=fields["pickup_location"],
        latitude=fields.get("latitude"),
        longitude=fields.get("longitude"),
        emergency_type=fields["emergency_type"],
        preferred_hospital=fields.get("preferred_hospital"),
        status=RequestStatus.PENDING.value,
        driver_id=None,
        created_at=now,
        updated_at=now,
    )
    db.add(request)
    db.flush()
    return request


def get_request(db: Session, request_id: int) -> AmbulanceRequest:
    request = db.query(AmbulanceRequest).filter(AmbulanceRequest.id == request_id).first()
    if not request:
        raise NotFound(f"Ambulance request {request_id} not found")
    return request


def list_all(db: Session, status: Optional[str] = None, active_only: bool = False) -> list[AmbulanceRequest]:
    """Admin view, first-come order."""
    q = db.query(AmbulanceRequest)
    if status:
        q = q.filter(AmbulanceRequest.status == status)
    if active_only:
        q = q.filter(AmbulanceRequest.status.in_(ACTIVE_STATUSES))
    return q.order_by(AmbulanceRequest.created_at.asc(), AmbulanceRequest.id.asc()).all()


def list_for_requester(db: Session, requester_id: str) -> list[AmbulanceRequest]:
    """Owner view, newest first."""
    return (
        db.query(AmbulanceRequest)
        .filter(AmbulanceRequest.requester_id == requester_id)
        .order_by(AmbulanceRequest.created_at.desc(), AmbulanceRequest.id.desc())
        .all()
    )


def latest_active_for_requester(db: Session, requester_id: str) -> Optional[AmbulanceRequest]:
    return (
        db.query(AmbulanceRequest)
        .filter(AmbulanceRequest.requester_id == requester_id,
                AmbulanceRequest.status.in_(ACTIVE_STATUSES))
        .order_by(AmbulanceRequest.created_at.desc(), AmbulanceRequest.id.desc())
        .first()
    )


def active_for_driver(db: Session, driver_id: int, exclude_id: Optional[int] = None) -> Optional[AmbulanceRequest]:
    q = db.query(AmbulanceRequest).filter(
        AmbulanceRequest.driver_id == driver_id,
        AmbulanceRequest.status.in_(ACTIVE_STATUSES),
    )
    if exclude_id is not None:
        q = q.filter(AmbulanceRequest.id != exclude_id)
    return q.first()


def set_status(db: Session, request_id: int, status: str, expected: str,
               driver_id=_UNSET) -> bool:
    """
    Compare-and-swap the request status from `expected` to `status`.
    driver_id is written only when passed (None clears it).
    Returns False if the row was not in the expected status.
    """
    now = datetime.utcnow()
    values = {"status": status, "updated_at": now}
    if driver_id is not _UNSET:
        values["driver_id"] = driver_id
    stamp = _STATUS_TIMESTAMPS.get(status)
    if stamp:
        values[stamp] = now

    updated = (
        db.query(AmbulanceRequest)
        .filter(AmbulanceRequest.id == request_id, AmbulanceRequest.status == expected)
        .update(values, synchronize_session="fetch")
    )
    return updated == 1


def delete_request(db: Session, request: AmbulanceRequest):
    """Hard delete. Administrative purge only; cancellation keeps the row."""
    db.delete(request)
    db.flush()


def count_by_status(db: Session) -> dict:
    counts = {s.value: 0 for s in RequestStatus}
    for row in db.query(AmbulanceRequest.status).all():
        counts[row.status] = counts.get(row.status, 0) + 1
    return counts
