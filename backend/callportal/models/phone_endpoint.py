from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from callportal.database import Base


class PhoneEndpoint(Base):
    """Maps a provider-side DID, SIP URI or extension to the employee who owns it."""

    __tablename__ = "phone_endpoints"
    __table_args__ = (
        UniqueConstraint("provider", "endpoint", name="uq_phone_endpoints_provider_endpoint"),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(50), nullable=False, default="twilio")  # twilio, plivo, asterisk
    endpoint = Column(String(200), nullable=False, index=True)
    employee_id = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
