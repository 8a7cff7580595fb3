from pydantic import BaseModel, Field
from typing import Optional, Dict, Union
from datetime import datetime
import logging
import re

logger = logging.getLogger(__name__)

LEADING_INT = re.compile(r"^[+-]?\d+")


def parse_duration(raw: Optional[str]) -> Optional[int]:
    """Leading integer of a CallDuration value, e.g. "42.0" -> 42."""
    raw = (raw or "").strip()
    if not raw:
        return None
    match = LEADING_INT.match(raw)
    if not match:
        logger.warning(f"Ignoring unparseable CallDuration: {raw!r}")
        return None
    return int(match.group())


class InboundCallEvent(BaseModel):
    """One status callback delivery from the telephony provider."""

    call_sid: Optional[str] = None
    call_status: str = ""
    duration: Optional[int] = None
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    employee_id: Optional[str] = None  # Raw value; parsed during employee resolution
    received_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_form(cls, data: Dict[str, str], employee_id_param: Optional[str] = None) -> "InboundCallEvent":
        """Build an event from Twilio's form fields.

        The body's ``employee_id`` takes precedence over the ``employeeId``
        query parameter. Blank strings are treated as missing.
        """
        return cls(
            call_sid=data.get("CallSid") or None,
            call_status=data.get("CallStatus") or "",
            duration=parse_duration(data.get("CallDuration")),
            from_number=data.get("From") or None,
            to_number=data.get("To") or None,
            employee_id=data.get("employee_id") or employee_id_param or None,
        )


class DialRequest(BaseModel):
    to: Optional[str] = None
    employee_id: Optional[Union[int, str]] = Field(default=None, alias="employeeId")

    class Config:
        populate_by_name = True


class HangupRequest(BaseModel):
    sid: Optional[str] = None


class DialResponse(BaseModel):
    ok: bool = True
    sid: Optional[str] = None
