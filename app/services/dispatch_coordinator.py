# app/services/dispatch_coordinator.py
"""
DispatchCoordinator: the ambulance request state machine.

    pending  → assigned | cancelled
    assigned → completed | cancelled
    completed, cancelled are terminal

Every operation authorizes the caller, serializes on the affected driver and
request, validates the transition, writes RequestStore + DriverRegistry and
commits once. A driver serves at most one active request: assignment is a
compare-and-swap on the driver (available → busy) and the request
(pending → assigned) inside the same transaction.
"""

import threading
from contextlib import contextmanager
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.config import settings
from app.exceptions import (
    DriverMismatch, DriverUnavailable, DuplicateKey, InvalidState,
)
from app.models.ambulance_request import AmbulanceRequest, RequestStatus
from app.models.driver import Driver, DriverStatus, OVERRIDE_STATUSES
from app.schemas.ambulance_request import AmbulanceRequestCreate
from app.services import driver_registry, request_store, geocoding_service
from app.services.access_gateway import Caller, Operation, authorize, require_identity
from app.utils.logger import get_logger

logger = get_logger(__name__)

PENDING = RequestStatus.PENDING.value
ASSIGNED = RequestStatus.ASSIGNED.value
COMPLETED = RequestStatus.COMPLETED.value
CANCELLED = RequestStatus.CANCELLED.value


class _LockRegistry:
    """
    One lock per driver and per request. Keys are acquired in sorted order,
    and ("driver", n) sorts before ("request", n), so every operation takes
    its driver lock before its request lock.

    Entries are reference counted (holders plus waiters) and dropped when the
    last one lets go, so the registry only holds keys that are in use.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict = {}   # key -> [lock, users]

    def __len__(self):
        with self._guard:
            return len(self._locks)

    def _checkout(self, key) -> threading.Lock:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, key):
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys):
        acquired = []
        try:
            for key in sorted({k for k in keys if k is not None}):
                lock = self._checkout(key)
                lock.acquire()
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)


_locks = _LockRegistry()


def _driver_key(driver_id: Optional[int]):
    return ("driver", driver_id) if driver_id is not None else None


def _request_key(request_id: int):
    return ("request", request_id)


@contextmanager
def _request_guard(db: Session, request_id: int, driver_id: Optional[int] = None):
    """
    Lock a request together with the driver it references (and driver_id, if
    given), then yield a fresh copy of the request. If the driver reference
    changed while we waited for the locks, retry with the new driver.
    """
    while True:
        attached = request_store.get_request(db, request_id).driver_id
        with _locks.hold(_driver_key(attached), _driver_key(driver_id), _request_key(request_id)):
            db.expire_all()
            request = request_store.get_request(db, request_id)
            if request.driver_id == attached:
                yield request
                return


@contextmanager
def _driver_guard(db: Session, driver_id: int):
    """Lock one driver and yield a fresh copy of it."""
    with _locks.hold(_driver_key(driver_id)):
        db.expire_all()
        yield driver_registry.get_driver(db, driver_id)


@contextmanager
def _transaction(db: Session, duplicate_message: Optional[str] = None):
    """Commit once on success, roll back on any failure."""
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if duplicate_message:
            raise DuplicateKey(duplicate_message) from e
        raise
    except Exception:
        db.rollback()
        raise


# ── Requests ────────────────────────────────────────────────────────────────

def create_request(db: Session, caller: Caller, body: AmbulanceRequestCreate) -> AmbulanceRequest:
    authorize(caller, Operation.CREATE_REQUEST)

    fields = body.model_dump(exclude={"coordinates"})
    coords = body.coordinates
    if coords is None and settings.GEOCODING_ENABLED:
        coords = geocoding_service.resolve_address(body.pickup_location)
    if coords is not None:
        fields["latitude"] = coords.latitude
        fields["longitude"] = coords.longitude

    with _transaction(db):
        request = request_store.create_request(db, caller.identity, fields)
    db.refresh(request)
    logger.info(f"[DISPATCH] Request {request.id} created by {caller.identity} "
                f"({request.emergency_type} at {request.pickup_location})")
    return request


def get_request(db: Session, caller: Caller, request_id: int) -> AmbulanceRequest:
    require_identity(caller)
    request = request_store.get_request(db, request_id)
    authorize(caller, Operation.READ_REQUEST, resource_owner=request.requester_id)
    return request


def list_my_requests(db: Session, caller: Caller) -> list[AmbulanceRequest]:
    authorize(caller, Operation.LIST_MY_REQUESTS)
    return request_store.list_for_requester(db, caller.identity)


def get_active_request(db: Session, caller: Caller) -> Optional[AmbulanceRequest]:
    """The caller's newest pending/assigned request, if any."""
    authorize(caller, Operation.LIST_MY_REQUESTS)
    return request_store.latest_active_for_requester(db, caller.identity)


def list_all_requests(db: Session, caller: Caller, status: Optional[str] = None,
                      active_only: bool = False) -> list[AmbulanceRequest]:
    authorize(caller, Operation.LIST_ALL_REQUESTS)
    return request_store.list_all(db, status=status, active_only=active_only)


def assign_driver(db: Session, caller: Caller, request_id: int, driver_id: int) -> AmbulanceRequest:
    authorize(caller, Operation.ASSIGN_DRIVER)

    with _request_guard(db, request_id, driver_id) as request, _transaction(db):
        if request.status != PENDING:
            raise InvalidState(f"Request {request_id} is {request.status}; only pending requests can be assigned")

        driver = driver_registry.get_driver(db, driver_id)
        if driver.status != DriverStatus.AVAILABLE.value:
            raise DriverUnavailable(f"Driver {driver_id} is {driver.status}")
        serving = request_store.active_for_driver(db, driver_id, exclude_id=request_id)
        if serving:
            raise DriverUnavailable(f"Driver {driver_id} is already serving request {serving.id}")

        if not driver_registry.claim_driver(db, driver_id):
            raise DriverUnavailable(f"Driver {driver_id} was taken by another dispatcher")
        if not request_store.set_status(db, request_id, ASSIGNED, expected=PENDING, driver_id=driver_id):
            raise InvalidState(f"Request {request_id} changed while assigning")

    db.refresh(request)
    logger.info(f"[DISPATCH] Request {request_id} assigned to driver {driver_id} by {caller.identity}")
    return request


def complete_request(db: Session, caller: Caller, request_id: int, driver_id: int) -> AmbulanceRequest:
    authorize(caller, Operation.COMPLETE_REQUEST)

    with _request_guard(db, request_id, driver_id) as request, _transaction(db):
        if request.status != ASSIGNED:
            raise InvalidState(f"Request {request_id} is {request.status}; only assigned requests can be completed")
        if request.driver_id != driver_id:
            raise DriverMismatch(f"Request {request_id} is served by driver {request.driver_id}, not {driver_id}")

        if not request_store.set_status(db, request_id, COMPLETED, expected=ASSIGNED):
            raise InvalidState(f"Request {request_id} changed while completing")
        driver_registry.release_driver(db, driver_id)

    db.refresh(request)
    logger.info(f"[DISPATCH] Request {request_id} completed, driver {driver_id} available")
    return request


def cancel_request(db: Session, caller: Caller, request_id: int) -> AmbulanceRequest:
    require_identity(caller)

    with _request_guard(db, request_id) as request, _transaction(db):
        authorize(caller, Operation.CANCEL_REQUEST, resource_owner=request.requester_id)
        if not request.is_active:
            raise InvalidState(f"Request {request_id} is already {request.status}")

        attached = request.driver_id
        if not request_store.set_status(db, request_id, CANCELLED, expected=request.status, driver_id=None):
            raise InvalidState(f"Request {request_id} changed while cancelling")
        if attached is not None:
            driver_registry.release_driver(db, attached)

    db.refresh(request)
    freed = f", driver {attached} available" if attached is not None else ""
    logger.info(f"[DISPATCH] Request {request_id} cancelled by {caller.identity}{freed}")
    return request


def purge_request(db: Session, caller: Caller, request_id: int):
    """Hard-delete a finished request. Active requests must be cancelled first."""
    authorize(caller, Operation.PURGE_REQUEST)

    with _request_guard(db, request_id) as request, _transaction(db):
        if request.is_active:
            raise InvalidState(f"Request {request_id} is {request.status}; cancel it before purging")
        request_store.delete_request(db, request)
    logger.info(f"[DISPATCH] Request {request_id} purged by {caller.identity}")


def dispatch_stats(db: Session, caller: Caller) -> dict:
    authorize(caller, Operation.VIEW_STATS)
    requests = request_store.count_by_status(db)
    drivers = driver_registry.count_by_status(db)
    return {
        "total_requests": sum(requests.values()),
        "pending_requests": requests[PENDING],
        "assigned_requests": requests[ASSIGNED],
        "completed_requests": requests[COMPLETED],
        "cancelled_requests": requests[CANCELLED],
        "available_drivers": drivers[DriverStatus.AVAILABLE.value],
        "busy_drivers": drivers[DriverStatus.BUSY.value],
        "offline_drivers": drivers[DriverStatus.OFFLINE.value],
    }


# ── Drivers ─────────────────────────────────────────────────────────────────

_DUPLICATE_DRIVER = "A driver with this phone number or license number already exists"


def list_drivers(db: Session, caller: Caller, status: Optional[str] = None) -> list[Driver]:
    authorize(caller, Operation.LIST_DRIVERS)
    return driver_registry.list_drivers(db, status=status)


def create_driver(db: Session, caller: Caller, fields: dict) -> Driver:
    """New drivers always start available."""
    authorize(caller, Operation.MANAGE_DRIVERS)
    with _transaction(db, duplicate_message=_DUPLICATE_DRIVER):
        driver = driver_registry.create_driver(db, fields)
    db.refresh(driver)
    logger.info(f"[DISPATCH] Driver {driver.id} ({driver.driver_name}) registered")
    return driver


def update_driver(db: Session, caller: Caller, driver_id: int, patch: dict) -> Driver:
    authorize(caller, Operation.MANAGE_DRIVERS)
    status = patch.get("status")
    if status is not None:
        _check_override(status)
    with _driver_guard(db, driver_id) as driver, _transaction(db, duplicate_message=_DUPLICATE_DRIVER):
        if status is not None:
            _warn_if_serving(db, driver_id, status)
        driver_registry.update_driver(db, driver, patch)
    db.refresh(driver)
    logger.info(f"[DISPATCH] Driver {driver_id} updated: {sorted(patch)}")
    return driver


def delete_driver(db: Session, caller: Caller, driver_id: int):
    authorize(caller, Operation.MANAGE_DRIVERS)
    with _driver_guard(db, driver_id) as driver, _transaction(db):
        serving = request_store.active_for_driver(db, driver_id)
        if serving:
            raise InvalidState(f"Driver {driver_id} is serving request {serving.id}; complete or cancel it first")
        if driver.status == DriverStatus.BUSY.value:
            raise InvalidState(f"Driver {driver_id} is busy; set them available or offline first")
        driver_registry.delete_driver(db, driver)
    logger.info(f"[DISPATCH] Driver {driver_id} deleted")


def set_driver_status(db: Session, caller: Caller, driver_id: int, status: str) -> Driver:
    """
    Manual override. An in-flight request keeps its driver; assignment still
    refuses a driver with an active request even if marked available here.
    """
    authorize(caller, Operation.SET_DRIVER_STATUS)
    _check_override(status)
    with _driver_guard(db, driver_id) as driver, _transaction(db):
        _warn_if_serving(db, driver_id, status)
        driver_registry.set_status(db, driver, status)
    db.refresh(driver)
    logger.info(f"[DISPATCH] Driver {driver_id} status set to {status} by {caller.identity}")
    return driver


def update_driver_location(db: Session, caller: Caller, driver_id: int, latitude: float,
                           longitude: float, location: Optional[str] = None) -> Driver:
    authorize(caller, Operation.MANAGE_DRIVERS)
    with _driver_guard(db, driver_id) as driver, _transaction(db):
        driver_registry.update_location(db, driver, latitude, longitude, location)
    db.refresh(driver)
    return driver


def _warn_if_serving(db: Session, driver_id: int, status: str):
    serving = request_store.active_for_driver(db, driver_id)
    if serving:
        logger.warning(f"[DISPATCH] Driver {driver_id} set to {status} while serving request "
                       f"{serving.id}; the request keeps its driver")


def _check_override(status: str):
    if status not in OVERRIDE_STATUSES:
        raise InvalidState(f"Driver status can only be set to {' or '.join(OVERRIDE_STATUSES)}; "
                           f"{status} follows from assignment")
