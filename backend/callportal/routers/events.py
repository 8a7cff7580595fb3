from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from typing import AsyncIterator, Optional
import logging

from callportal.services.broadcaster import EventBroadcaster, get_call_log_broadcaster, get_contact_broadcaster
from callportal.services.call_events import parse_employee_id

router = APIRouter(prefix="/events", tags=["events"])
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def event_stream(
    broadcaster: EventBroadcaster,
    employee_id: Optional[int],
    request: Optional[Request] = None,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one client until it disconnects.

    The stream ends when Starlette cancels the generator or the request
    reports a disconnect before a write. The subscription's cleanup then
    removes the subscriber and its keepalive.
    """
    async with broadcaster.subscription(employee_id) as subscriber:
        logger.info(f"[{broadcaster.name}] stream opened. Employee: {employee_id}")
        try:
            async for frame in subscriber.frames():
                if request is not None and await request.is_disconnected():
                    break
                yield frame
        finally:
            logger.info(f"[{broadcaster.name}] stream closed. Employee: {employee_id}")


def _stream_response(
    broadcaster: EventBroadcaster,
    employee_id: Optional[str],
    request: Optional[Request] = None,
) -> StreamingResponse:
    return StreamingResponse(
        event_stream(broadcaster, parse_employee_id(employee_id), request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/call-logs")
async def stream_call_logs(
    request: Request,
    employee_id: Optional[str] = Query(None, alias="employeeId", description="Only receive this employee's calls"),
    broadcaster: EventBroadcaster = Depends(get_call_log_broadcaster),
):
    """
    Server-sent events for call log changes.

    Example: GET /api/events/call-logs?employeeId=7
    """
    return _stream_response(broadcaster, employee_id, request)


@router.get("/contacts")
async def stream_contacts(
    request: Request,
    employee_id: Optional[str] = Query(None, alias="employeeId", description="Only receive contacts assigned to this employee"),
    broadcaster: EventBroadcaster = Depends(get_contact_broadcaster),
):
    """Server-sent events for contact last-call updates."""
    return _stream_response(broadcaster, employee_id, request)
