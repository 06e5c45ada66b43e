# tests/test_dispatch_coordinator.py
"""Unit tests for the dispatch state machine and the one-request-per-driver rule."""

import pytest
from unittest.mock import patch
from app.config import settings
from app.exceptions import (
    DriverMismatch, DriverUnavailable, Forbidden, InvalidState, NotFound, Unauthorized,
)
from app.models.ambulance_request import AmbulanceRequest
from app.schemas.ambulance_request import Coordinates
from app.services import dispatch_coordinator as dispatch
from app.services import driver_registry
from app.services.access_gateway import Caller
from tests.helpers import request_body


def driver_status(db, driver_id):
    return driver_registry.get_driver(db, driver_id).status


class TestCreateRequest:
    def test_new_request_is_pending_without_driver(self, new_request, user_a):
        request = new_request()
        assert request.status == "pending"
        assert request.driver_id is None
        assert request.requester_id == user_a.identity
        assert request.created_at is not None

    def test_no_identity_is_unauthorized(self, db):
        with pytest.raises(Unauthorized):
            dispatch.create_request(db, Caller(identity=None), request_body())

    def test_explicit_coordinates_are_stored(self, new_request):
        request = new_request(coordinates=Coordinates(latitude=23.81, longitude=90.41))
        assert (request.latitude, request.longitude) == (23.81, 90.41)

    def test_geocoding_fills_missing_coordinates(self, new_request):
        with patch.object(settings, "GEOCODING_ENABLED", True), \
                patch("app.services.dispatch_coordinator.geocoding_service.resolve_address",
                      return_value=Coordinates(latitude=23.75, longitude=90.37)) as mock_resolve:
            request = new_request()
        mock_resolve.assert_called_once_with("House 12, Road 5, Dhanmondi")
        assert request.latitude == 23.75

    def test_geocoding_failure_still_creates_request(self, new_request):
        with patch.object(settings, "GEOCODING_ENABLED", True), \
                patch("app.services.dispatch_coordinator.geocoding_service.resolve_address",
                      return_value=None):
            request = new_request()
        assert request.status == "pending"
        assert request.latitude is None

    def test_geocoding_disabled_skips_lookup(self, new_request):
        with patch("app.services.dispatch_coordinator.geocoding_service.resolve_address") as mock_resolve:
            new_request()
        mock_resolve.assert_not_called()


class TestLifecycle:
    def test_assign_then_complete(self, db, admin, new_request, new_driver):
        r1, d1 = new_request(), new_driver()

        assigned = dispatch.assign_driver(db, admin, r1.id, d1.id)
        assert assigned.status == "assigned"
        assert assigned.driver_id == d1.id
        assert assigned.assigned_at is not None
        assert driver_status(db, d1.id) == "busy"

        completed = dispatch.complete_request(db, admin, r1.id, d1.id)
        assert completed.status == "completed"
        assert completed.driver_id == d1.id
        assert completed.completed_at is not None
        assert driver_status(db, d1.id) == "available"

    def test_busy_driver_cannot_take_second_request(self, db, admin, new_request, new_driver):
        r2, r3, d1 = new_request(), new_request(), new_driver()
        dispatch.assign_driver(db, admin, r2.id, d1.id)

        with pytest.raises(DriverUnavailable):
            dispatch.assign_driver(db, admin, r3.id, d1.id)
        db.expire_all()
        assert db.get(AmbulanceRequest, r3.id).status == "pending"
        assert db.get(AmbulanceRequest, r3.id).driver_id is None

    def test_offline_driver_cannot_be_assigned(self, db, admin, new_request, new_driver):
        request, driver = new_request(), new_driver(status="offline")
        with pytest.raises(DriverUnavailable):
            dispatch.assign_driver(db, admin, request.id, driver.id)

    def test_cancel_assigned_frees_driver(self, db, admin, user_a, new_request, new_driver):
        r5, d2 = new_request(), new_driver()
        dispatch.assign_driver(db, admin, r5.id, d2.id)

        cancelled = dispatch.cancel_request(db, user_a, r5.id)
        assert cancelled.status == "cancelled"
        assert cancelled.driver_id is None
        assert cancelled.cancelled_at is not None
        assert driver_status(db, d2.id) == "available"

    def test_cancel_pending_touches_no_driver(self, db, user_a, new_request, new_driver):
        request, driver = new_request(), new_driver(status="offline")
        with patch("app.services.dispatch_coordinator.driver_registry.release_driver") as mock_release:
            dispatch.cancel_request(db, user_a, request.id)
        mock_release.assert_not_called()
        assert driver_status(db, driver.id) == "offline"

    def test_cancelled_request_is_kept(self, db, user_a, new_request):
        request = new_request()
        dispatch.cancel_request(db, user_a, request.id)
        assert [r.status for r in dispatch.list_my_requests(db, user_a)] == ["cancelled"]


class TestIllegalTransitions:
    def test_complete_pending_request(self, db, admin, new_request, new_driver):
        request, driver = new_request(), new_driver()
        with pytest.raises(InvalidState):
            dispatch.complete_request(db, admin, request.id, driver.id)

    def test_assign_already_assigned_request(self, db, admin, new_request, new_driver):
        request, d1, d2 = new_request(), new_driver(), new_driver()
        dispatch.assign_driver(db, admin, request.id, d1.id)
        with pytest.raises(InvalidState):
            dispatch.assign_driver(db, admin, request.id, d2.id)
        assert driver_status(db, d2.id) == "available"

    def test_assign_cancelled_request(self, db, admin, user_a, new_request, new_driver):
        request, driver = new_request(), new_driver()
        dispatch.cancel_request(db, user_a, request.id)
        with pytest.raises(InvalidState):
            dispatch.assign_driver(db, admin, request.id, driver.id)
        assert driver_status(db, driver.id) == "available"

    def test_second_cancel_fails_without_double_free(self, db, admin, user_a, new_request, new_driver):
        r1, r2, driver = new_request(), new_request(), new_driver()
        dispatch.assign_driver(db, admin, r1.id, driver.id)
        dispatch.cancel_request(db, user_a, r1.id)
        dispatch.assign_driver(db, admin, r2.id, driver.id)

        with pytest.raises(InvalidState):
            dispatch.cancel_request(db, user_a, r1.id)
        assert driver_status(db, driver.id) == "busy"

    def test_second_complete_fails(self, db, admin, new_request, new_driver):
        request, driver = new_request(), new_driver()
        dispatch.assign_driver(db, admin, request.id, driver.id)
        dispatch.complete_request(db, admin, request.id, driver.id)

        with pytest.raises(InvalidState):
            dispatch.complete_request(db, admin, request.id, driver.id)
        with pytest.raises(InvalidState):
            dispatch.cancel_request(db, admin, request.id)
        db.expire_all()
        assert db.get(AmbulanceRequest, request.id).status == "completed"
        assert db.get(AmbulanceRequest, request.id).driver_id == driver.id

    def test_complete_with_wrong_driver(self, db, admin, new_request, new_driver):
        request, d1, d2 = new_request(), new_driver(), new_driver()
        dispatch.assign_driver(db, admin, request.id, d1.id)
        with pytest.raises(DriverMismatch):
            dispatch.complete_request(db, admin, request.id, d2.id)
        assert driver_status(db, d1.id) == "busy"

    def test_unknown_ids(self, db, admin, new_request, new_driver):
        request, driver = new_request(), new_driver()
        with pytest.raises(NotFound):
            dispatch.assign_driver(db, admin, 999, driver.id)
        with pytest.raises(NotFound):
            dispatch.assign_driver(db, admin, request.id, 999)
        with pytest.raises(NotFound):
            dispatch.cancel_request(db, admin, 999)


class TestOwnership:
    def test_other_user_cannot_cancel(self, db, user_a, user_b, new_request):
        r4 = new_request(caller=user_a)
        with pytest.raises(Forbidden):
            dispatch.cancel_request(db, user_b, r4.id)
        assert dispatch.cancel_request(db, user_a, r4.id).status == "cancelled"

    def test_admin_can_cancel_any_request(self, db, admin, new_request):
        request = new_request()
        assert dispatch.cancel_request(db, admin, request.id).status == "cancelled"

    def test_user_cannot_assign_or_complete(self, db, user_a, new_request, new_driver):
        request, driver = new_request(), new_driver()
        with pytest.raises(Forbidden):
            dispatch.assign_driver(db, user_a, request.id, driver.id)
        with pytest.raises(Forbidden):
            dispatch.complete_request(db, user_a, request.id, driver.id)

    def test_read_single_request(self, db, admin, user_a, user_b, new_request):
        request = new_request(caller=user_a)
        assert dispatch.get_request(db, user_a, request.id).id == request.id
        assert dispatch.get_request(db, admin, request.id).id == request.id
        with pytest.raises(Forbidden):
            dispatch.get_request(db, user_b, request.id)

    def test_identity_checked_before_lookup_and_owner_after(self, db, user_b, new_request):
        request = new_request()
        with pytest.raises(Unauthorized):
            dispatch.get_request(db, Caller(identity=""), 999)
        with pytest.raises(Unauthorized):
            dispatch.cancel_request(db, Caller(identity=""), 999)
        with pytest.raises(NotFound):
            dispatch.cancel_request(db, user_b, 999)
        with pytest.raises(Forbidden):
            dispatch.cancel_request(db, user_b, request.id)

    def test_my_requests_are_scoped_and_newest_first(self, db, user_a, user_b, new_request):
        first = new_request(caller=user_a)
        new_request(caller=user_b)
        second = new_request(caller=user_a)
        assert [r.id for r in dispatch.list_my_requests(db, user_a)] == [second.id, first.id]

    def test_active_request(self, db, user_a, new_request):
        assert dispatch.get_active_request(db, user_a) is None
        request = new_request()
        assert dispatch.get_active_request(db, user_a).id == request.id
        dispatch.cancel_request(db, user_a, request.id)
        assert dispatch.get_active_request(db, user_a) is None


class TestAdminViews:
    def test_list_all_first_come_and_filters(self, db, admin, user_a, user_b, new_request, new_driver):
        r1 = new_request(caller=user_a)
        r2 = new_request(caller=user_b)
        driver = new_driver()
        dispatch.assign_driver(db, admin, r1.id, driver.id)
        dispatch.complete_request(db, admin, r1.id, driver.id)

        assert [r.id for r in dispatch.list_all_requests(db, admin)] == [r1.id, r2.id]
        assert [r.id for r in dispatch.list_all_requests(db, admin, active_only=True)] == [r2.id]
        assert [r.id for r in dispatch.list_all_requests(db, admin, status="completed")] == [r1.id]
        with pytest.raises(Forbidden):
            dispatch.list_all_requests(db, user_a)

    def test_stats(self, db, admin, user_a, new_request, new_driver):
        r1, r2, r3 = new_request(), new_request(), new_request()
        d1 = new_driver()
        new_driver(status="offline")
        new_driver()
        dispatch.assign_driver(db, admin, r1.id, d1.id)
        dispatch.cancel_request(db, user_a, r2.id)

        stats = dispatch.dispatch_stats(db, admin)
        assert stats == {
            "total_requests": 3,
            "pending_requests": 1,
            "assigned_requests": 1,
            "completed_requests": 0,
            "cancelled_requests": 1,
            "available_drivers": 1,
            "busy_drivers": 1,
            "offline_drivers": 1,
        }

    def test_purge_only_finished_requests(self, db, admin, user_a, new_request):
        active, finished = new_request(), new_request()
        dispatch.cancel_request(db, user_a, finished.id)

        with pytest.raises(InvalidState):
            dispatch.purge_request(db, admin, active.id)
        dispatch.purge_request(db, admin, finished.id)
        with pytest.raises(NotFound):
            dispatch.get_request(db, admin, finished.id)
