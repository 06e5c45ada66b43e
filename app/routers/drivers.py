# app/routers/drivers.py
"""Ambulance drivers — admin CRUD, status override and location updates."""

from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.driver import (
    DriverCreate, DriverLocationUpdate, DriverOut, DriverStatusLiteral,
    DriverStatusUpdate, DriverUpdate,
)
from app.services import dispatch_coordinator as dispatch
from app.services.access_gateway import Caller, get_caller

router = APIRouter(prefix="/ambulance/drivers")


@router.get("", response_model=list[DriverOut], summary="List drivers (admin)")
def list_drivers(status: Optional[DriverStatusLiteral] = None, db: Session = Depends(get_db),
                 caller: Caller = Depends(get_caller)):
    return dispatch.list_drivers(db, caller, status=status)


@router.post("", response_model=DriverOut, status_code=status.HTTP_201_CREATED, summary="Register a driver (admin)")
def create_driver(body: DriverCreate, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return dispatch.create_driver(db, caller, body.model_dump())


@router.put("/{driver_id}", response_model=DriverOut, summary="Edit a driver (admin)")
def update_driver(driver_id: int, body: DriverUpdate, db: Session = Depends(get_db),
                  caller: Caller = Depends(get_caller)):
    return dispatch.update_driver(db, caller, driver_id, body.model_dump(exclude_unset=True))


@router.delete("/{driver_id}", summary="Remove a driver (admin)")
def delete_driver(driver_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    dispatch.delete_driver(db, caller, driver_id)
    return {"status": "removed", "driver_id": driver_id}


@router.put("/{driver_id}/status", response_model=DriverOut, summary="Override driver status (admin)")
def set_driver_status(driver_id: int, body: DriverStatusUpdate, db: Session = Depends(get_db),
                      caller: Caller = Depends(get_caller)):
    """Does not touch the driver's in-flight request, if any."""
    return dispatch.set_driver_status(db, caller, driver_id, body.status)


@router.put("/{driver_id}/location", response_model=DriverOut, summary="Report driver position (admin)")
def update_driver_location(driver_id: int, body: DriverLocationUpdate, db: Session = Depends(get_db),
                           caller: Caller = Depends(get_caller)):
    return dispatch.update_driver_location(db, caller, driver_id, body.latitude, body.longitude, body.location)
