# tests/conftest.py
"""Shared fixtures: an in-memory SQLite database per test and ready-made callers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.database import create_tables
from app.services import dispatch_coordinator as dispatch
from app.services.access_gateway import Caller, ROLE_ADMIN, ROLE_USER
from tests.helpers import driver_fields, request_body


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def admin():
    return Caller(identity="admin-1", role=ROLE_ADMIN)


@pytest.fixture
def user_a():
    return Caller(identity="user-a", role=ROLE_USER)


@pytest.fixture
def user_b():
    return Caller(identity="user-b", role=ROLE_USER)


@pytest.fixture
def new_request(db, user_a):
    def _make(caller=None, **overrides):
        return dispatch.create_request(db, caller or user_a, request_body(**overrides))
    return _make


@pytest.fixture
def new_driver(db, admin):
    counter = {"n": 0}

    def _make(status=None, **overrides):
        counter["n"] += 1
        driver = dispatch.create_driver(db, admin, driver_fields(counter["n"], **overrides))
        if status is not None:
            driver = dispatch.set_driver_status(db, admin, driver.id, status)
        return driver
    return _make
