# scripts/setup/seed_drivers.py
"""
Register a few demo drivers through the coordinator (same checks as the API).
Usage: python scripts/setup/seed_drivers.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import SessionLocal, create_tables
from app.exceptions import DuplicateKey
from app.services import dispatch_coordinator as dispatch
from app.services.access_gateway import Caller, ROLE_ADMIN

DEMO_DRIVERS = [
    {"driver_name": "Rahim Uddin", "phone": "01711000001", "license_number": "DK-AMB-0001",
     "address": "Mohakhali, Dhaka", "location": "Square Hospital bay"},
    {"driver_name": "Karim Hossain", "phone": "01711000002", "license_number": "DK-AMB-0002",
     "address": "Dhanmondi, Dhaka", "location": "Popular Hospital bay"},
    {"driver_name": "Salma Akter", "phone": "01711000003", "license_number": "DK-AMB-0003",
     "address": "Uttara, Dhaka", "location": "United Hospital bay"},
]


def main():
    create_tables()
    admin = Caller(identity="seed-script", role=ROLE_ADMIN)
    db = SessionLocal()
    try:
        for fields in DEMO_DRIVERS:
            try:
                driver = dispatch.create_driver(db, admin, fields)
                print(f"✅ {driver.driver_name} → id {driver.id}")
            except DuplicateKey:
                print(f"⏭️  {fields['driver_name']} already registered")
    finally:
        db.close()


if __name__ == "__main__":
    main()
