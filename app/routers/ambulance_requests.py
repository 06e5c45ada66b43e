# app/routers/ambulance_requests.py
"""Ambulance requests — create, track, assign, complete, cancel."""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.ambulance_request import (
    AmbulanceRequestCreate, AmbulanceRequestOut, DispatchStatsOut, DriverAssignment,
)
from app.services import dispatch_coordinator as dispatch
from app.services.access_gateway import Caller, get_caller

router = APIRouter(prefix="/ambulance")

RequestStatusFilter = Literal["pending", "assigned", "completed", "cancelled"]


@router.post("/request", response_model=AmbulanceRequestOut, status_code=status.HTTP_201_CREATED,
             summary="Request an ambulance")
def create_request(body: AmbulanceRequestCreate, db: Session = Depends(get_db),
                   caller: Caller = Depends(get_caller)):
    return dispatch.create_request(db, caller, body)


@router.get("/requests", response_model=list[AmbulanceRequestOut], summary="All requests (admin)")
def list_all_requests(
    status: Optional[RequestStatusFilter] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """First-come order. The dashboard passes active_only=true to hide finished requests."""
    return dispatch.list_all_requests(db, caller, status=status, active_only=active_only)


@router.get("/requests/user", response_model=list[AmbulanceRequestOut], summary="My requests, newest first")
def list_my_requests(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return dispatch.list_my_requests(db, caller)


@router.get("/requests/user/active", response_model=AmbulanceRequestOut, summary="My current active request")
def get_active_request(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    request = dispatch.get_active_request(db, caller)
    if not request:
        raise HTTPException(status_code=404, detail="No active ambulance request")
    return request


@router.get("/request/{request_id}", response_model=AmbulanceRequestOut, summary="Request status")
def get_request(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return dispatch.get_request(db, caller, request_id)


@router.put("/request/{request_id}/assign", response_model=AmbulanceRequestOut, summary="Assign a driver (admin)")
def assign_driver(request_id: int, body: DriverAssignment, db: Session = Depends(get_db),
                  caller: Caller = Depends(get_caller)):
    return dispatch.assign_driver(db, caller, request_id, body.driver_id)


@router.post("/request/{request_id}/complete", response_model=AmbulanceRequestOut,
             summary="Mark a request completed (admin)")
def complete_request(request_id: int, body: DriverAssignment, db: Session = Depends(get_db),
                     caller: Caller = Depends(get_caller)):
    return dispatch.complete_request(db, caller, request_id, body.driver_id)


@router.post("/request/{request_id}/cancel", response_model=AmbulanceRequestOut, summary="Cancel a request")
def cancel_request(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return dispatch.cancel_request(db, caller, request_id)


@router.delete("/request/{request_id}", response_model=AmbulanceRequestOut,
               summary="Cancel a request (legacy path, keeps the record)")
def cancel_request_legacy(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return dispatch.cancel_request(db, caller, request_id)


@router.delete("/request/{request_id}/purge", summary="Delete a finished request (admin)")
def purge_request(request_id: int, db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    dispatch.purge_request(db, caller, request_id)
    return {"status": "purged", "request_id": request_id}


@router.get("/stats", response_model=DispatchStatsOut, summary="Dashboard counters (admin)")
def dispatch_stats(db: Session = Depends(get_db), caller: Caller = Depends(get_caller)):
    return dispatch.dispatch_stats(db, caller)
