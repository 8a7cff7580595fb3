from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from callportal.models.contact import ContactCallStatus


class ContactEvent(BaseModel):
    id: int
    name: str
    phone_number: str
    assigned_employee_id: Optional[int] = None
    call_status: Optional[ContactCallStatus] = None
    call_time: Optional[datetime] = None
    call_duration_sec: Optional[int] = None

    @property
    def owner_id(self) -> Optional[int]:
        return self.assigned_employee_id

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
