from callportal.schemas.call_log import CallLogEvent
from callportal.schemas.contact import ContactEvent
from callportal.schemas.call_event import InboundCallEvent, DialRequest, HangupRequest, DialResponse

__all__ = [
    "CallLogEvent",
    "ContactEvent",
    "InboundCallEvent", "DialRequest", "HangupRequest", "DialResponse",
]
