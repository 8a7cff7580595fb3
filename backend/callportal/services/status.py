from callportal.models.call_log import CallStatus
from callportal.models.contact import ContactCallStatus

# Twilio CallStatus -> our status. Anything missing falls back to CONNECTED.
STATUS_MAP = {
    "completed": CallStatus.CONNECTED,
    "no-answer": CallStatus.NOT_ANSWERED,
    "busy": CallStatus.NOT_CONNECTED,
    "failed": CallStatus.NOT_CONNECTED,
    "canceled": CallStatus.NOT_CONNECTED,
}

TERMINAL_STATUSES = frozenset(STATUS_MAP)


def normalize_status(provider_status: str) -> CallStatus:
    return STATUS_MAP.get(provider_status, CallStatus.CONNECTED)


def is_terminal_status(provider_status: str) -> bool:
    """True once the provider reports a final outcome (not queued/ringing/in-progress)."""
    return provider_status in TERMINAL_STATUSES


def contact_status_for(status: CallStatus) -> ContactCallStatus:
    if status == CallStatus.CONNECTED:
        return ContactCallStatus.COMPLETED
    return ContactCallStatus.MISSED
