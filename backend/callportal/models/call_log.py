from sqlalchemy import Column, Integer, String, Text, Date, Time, DateTime, Enum
from sqlalchemy.sql import func
from callportal.database import Base
import enum


class CallStatus(str, enum.Enum):
    CONNECTED = "connected"
    NOT_ANSWERED = "not_answered"
    NOT_CONNECTED = "not_connected"


class CallLog(Base):
    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, nullable=False, index=True)

    # Call details
    call_date = Column(Date, nullable=False)
    call_time = Column(Time, nullable=False)
    status = Column(Enum(CallStatus, values_callable=lambda x: [e.value for e in x]), nullable=False)
    duration = Column(Integer, nullable=True)  # Duration in seconds
    customer_phone = Column(String(50), nullable=True)

    # Notes
    notes = Column(Text, nullable=True)

    # Provider info
    provider_call_id = Column(String(100), unique=True, nullable=True, index=True)  # Twilio CallSid
    from_number = Column(String(100), nullable=True)
    to_number = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
