from callportal.models.contact import Contact, ContactCallStatus
from callportal.models.call_log import CallLog, CallStatus
from callportal.models.phone_endpoint import PhoneEndpoint

__all__ = ["Contact", "ContactCallStatus", "CallLog", "CallStatus", "PhoneEndpoint"]
