#!/usr/bin/env python3
"""
Seed script to add phone endpoints and demo contacts for local webhook testing.
Run with: python seed_endpoints.py
"""

import sys

from sqlalchemy.orm import Session

from callportal.database import Base, SessionLocal, engine
from callportal.models.contact import Contact
from callportal.models.phone_endpoint import PhoneEndpoint
from callportal.services.call_events import normalize_phone

# Twilio numbers owned by each employee
ENDPOINTS = [
    {"provider": "twilio", "endpoint": "+15550000007", "employee_id": 7},
    {"provider": "twilio", "endpoint": "+15550000008", "employee_id": 8},
    {"provider": "twilio", "endpoint": "sip:agent9@callportal.sip.twilio.com", "employee_id": 9},
]

CONTACTS = [
    {"name": "Acme Reception", "phone_number": "+1 (555) 123-4567"},
    {"name": "Globex Support", "phone_number": "+1 555 987 6543"},
]


def seed(session: Session) -> None:
    for data in ENDPOINTS:
        existing = session.query(PhoneEndpoint).filter(
            PhoneEndpoint.provider == data["provider"],
            PhoneEndpoint.endpoint == data["endpoint"],
        ).first()
        if existing:
            print(f"Endpoint '{data['endpoint']}' already exists (ID: {existing.id}). Updating...")
            existing.employee_id = data["employee_id"]
        else:
            print(f"Creating endpoint '{data['endpoint']}' -> employee {data['employee_id']}...")
            session.add(PhoneEndpoint(**data))

    for data in CONTACTS:
        phone_number = normalize_phone(data["phone_number"])
        existing = session.query(Contact).filter(Contact.phone_number == phone_number).first()
        if existing:
            print(f"Contact '{phone_number}' already exists (ID: {existing.id}).")
            continue
        print(f"Creating contact '{data['name']}' ({phone_number})...")
        session.add(Contact(name=data["name"], phone_number=phone_number))

    session.commit()


def main():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed(session)
        print("\nPhone endpoints and contacts seeded successfully!")
    except Exception as e:
        session.rollback()
        print(f"Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        session.close()


if __name__ == "__main__":
    main()
