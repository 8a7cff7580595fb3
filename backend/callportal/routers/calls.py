from fastapi import APIRouter, Body, Depends, HTTPException, Query
from typing import Optional
import logging
import re

from callportal.config import Settings, get_settings
from callportal.schemas.call_event import DialRequest, DialResponse, HangupRequest
from callportal.services.call_events import parse_employee_id
from callportal.services.exceptions import TelephonyProviderError
from callportal.services.twilio_client import TwilioClient, get_twilio_client

router = APIRouter(prefix="/calls", tags=["calls"])
logger = logging.getLogger(__name__)


def _provider_http_error(e: TelephonyProviderError) -> HTTPException:
    if e.details is not None:
        return HTTPException(status_code=e.status_code, detail={"error": e.message, "details": e.details})
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/dial", response_model=DialResponse)
async def dial(
    body: Optional[DialRequest] = Body(None),
    to_param: Optional[str] = Query(None, alias="to"),
    employee_id_param: Optional[str] = Query(None, alias="employeeId"),
    settings: Settings = Depends(get_settings),
    twilio: TwilioClient = Depends(get_twilio_client),
):
    """
    Place an outbound call through Twilio.

    Status callbacks for the call come back to /api/call-events with the
    employee id in the query string, so the call log is attributed without
    a phone endpoint lookup.
    """
    body = body or DialRequest()
    to = (to_param or body.to or "").strip()
    employee_id = parse_employee_id(employee_id_param or body.employee_id)

    if not to:
        raise HTTPException(status_code=400, detail="Missing required parameter: to")
    if not re.match(settings.dial_allowed_pattern, to):
        raise HTTPException(status_code=400, detail=f"Destination {to} is not an allowed number")
    if not employee_id:
        raise HTTPException(status_code=400, detail="Missing or invalid employeeId")

    try:
        sid = await twilio.dial(to, employee_id)
    except TelephonyProviderError as e:
        raise _provider_http_error(e)

    return DialResponse(ok=True, sid=sid)


@router.post("/hangup")
async def hangup(
    body: Optional[HangupRequest] = Body(None),
    twilio: TwilioClient = Depends(get_twilio_client),
):
    """End an active call by setting its status to completed."""
    sid = ((body.sid if body else None) or "").strip()
    if not sid:
        raise HTTPException(status_code=400, detail="sid is required")

    try:
        await twilio.hangup(sid)
    except TelephonyProviderError as e:
        raise _provider_http_error(e)

    return {"ok": True}
