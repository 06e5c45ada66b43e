# tests/helpers.py
"""Payload builders shared by the test modules."""

from app.schemas.ambulance_request import AmbulanceRequestCreate


def request_body(**overrides) -> AmbulanceRequestCreate:
    fields = {
        "name": "Ayesha Rahman",
        "phone": "01712345678",
        "pickup_location": "House 12, Road 5, Dhanmondi",
        "emergency_type": "Heart Attack",
        "preferred_hospital": "Square Hospital",
    }
    fields.update(overrides)
    return AmbulanceRequestCreate(**fields)


def driver_fields(n: int = 1, **overrides) -> dict:
    fields = {
        "driver_name": f"Driver {n}",
        "phone": f"0180000000{n}",
        "license_number": f"LIC-{n:04d}",
        "address": "Mirpur, Dhaka",
        "location": "Hospital bay",
    }
    fields.update(overrides)
    return fields
