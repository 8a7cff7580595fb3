from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from callportal.database import Base
import enum


class ContactCallStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    phone_number = Column(String(50), nullable=False, index=True)  # Digits and leading "+" only
    assigned_employee_id = Column(Integer, nullable=True, index=True)

    # Last call metadata
    call_status = Column(Enum(ContactCallStatus, values_callable=lambda x: [e.value for e in x]), nullable=True)
    call_time = Column(DateTime(timezone=True), nullable=True)
    call_duration_sec = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
