from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import date, datetime, time
from callportal.models.call_log import CallStatus


class CallLogEvent(BaseModel):
    """Call log record as pushed to dashboard streams (camelCase on the wire)."""

    id: int
    employee_id: int
    call_date: date
    call_time: time
    status: CallStatus
    duration: Optional[int] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    provider_call_id: Optional[str] = None
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    created_at: datetime

    @property
    def owner_id(self) -> Optional[int]:
        return self.employee_id

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
