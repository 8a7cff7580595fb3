from fastapi import APIRouter, Request, Query, Header, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from callportal.config import Settings, get_settings
from callportal.database import get_db
from callportal.schemas.call_event import InboundCallEvent
from callportal.services.broadcaster import EventBroadcaster, get_call_log_broadcaster, get_contact_broadcaster
from callportal.services.call_events import CallEventService
from callportal.services.exceptions import CallEventError
from callportal.services.signature import parse_form_body, get_public_url, verify_signature
from callportal.services.status import is_terminal_status

router = APIRouter(prefix="/call-events", tags=["webhook"])
logger = logging.getLogger(__name__)


@router.post("")
async def receive_call_event(
    request: Request,
    employee_id_param: Optional[str] = Query(None, alias="employeeId"),
    x_twilio_signature: Optional[str] = Header(None, alias="X-Twilio-Signature"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    call_log_broadcaster: EventBroadcaster = Depends(get_call_log_broadcaster),
    contact_broadcaster: EventBroadcaster = Depends(get_contact_broadcaster),
):
    """
    Receive call status callbacks from Twilio.

    The form body is verified against X-Twilio-Signature before anything is
    read from it. The employee can be given as the employee_id form field or
    the employeeId query parameter; otherwise it is resolved from phone
    endpoints.
    """
    raw_body = await request.body()
    params = parse_form_body(raw_body)
    url = get_public_url(request, settings.webhook_public_base_url)

    try:
        verify_signature(url, params, x_twilio_signature, settings.twilio_auth_token)
    except CallEventError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    event = InboundCallEvent.from_form(params, employee_id_param)
    logger.info(f"Received call event {event.call_sid}: {event.call_status}")

    if settings.ignore_non_terminal_statuses and not is_terminal_status(event.call_status):
        logger.info(f"Ignoring non-terminal status {event.call_status} for call {event.call_sid}")
        return {"ok": True, "ignored": True}

    service = CallEventService(db, call_log_broadcaster, contact_broadcaster, settings)
    try:
        service.handle(event)
    except CallEventError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return {"ok": True}
