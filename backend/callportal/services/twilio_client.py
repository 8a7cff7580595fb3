import httpx
import logging
from typing import Optional, Dict, Any
from fastapi import Request

from callportal.config import Settings, get_settings
from callportal.services.exceptions import TelephonyProviderError

logger = logging.getLogger(__name__)

# Every progress event we want reported back on the status callback
STATUS_CALLBACK_EVENTS = "queued ringing in-progress completed no-answer busy failed"


class TwilioClient:
    """Client for the Twilio Voice REST API (outbound dialing and hangup)."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=30.0,
                auth=(self.settings.twilio_account_sid, self.settings.twilio_auth_token),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _calls_url(self, call_sid: Optional[str] = None) -> str:
        base = f"{self.settings.twilio_api_base_url.rstrip('/')}/Accounts/{self.settings.twilio_account_sid}/Calls"
        if call_sid:
            return f"{base}/{call_sid}.json"
        return f"{base}.json"

    def status_callback_url(self, employee_id: int) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/api/call-events?employeeId={employee_id}"

    async def _post(self, url: str, data: Dict[str, str]) -> Dict[str, Any]:
        client = await self.get_client()
        try:
            response = await client.post(url, data=data)
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling Twilio: {e}")
            raise TelephonyProviderError("Twilio API unreachable", status_code=502) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            logger.error(f"Twilio API error {response.status_code}: {payload}")
            raise TelephonyProviderError("Twilio API error", status_code=response.status_code, details=payload)
        return payload

    async def dial(self, to: str, employee_id: int) -> str:
        """
        Start an outbound call whose status callbacks are attributed to the employee.

        Returns:
            The new call's CallSid
        """
        if not self.settings.is_twilio_configured:
            raise TelephonyProviderError(
                "Missing Twilio configuration. Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, "
                "TWILIO_CALLER_ID, and PUBLIC_BASE_URL.",
                status_code=500,
            )

        data = {
            "From": self.settings.twilio_caller_id,
            "To": to,
            "Twiml": "<Response></Response>",
            "StatusCallback": self.status_callback_url(employee_id),
            "StatusCallbackMethod": "POST",
            "StatusCallbackEvent": STATUS_CALLBACK_EVENTS,
        }
        payload = await self._post(self._calls_url(), data)
        logger.info(f"Dialed {to} for employee {employee_id}: {payload.get('sid')}")
        return payload.get("sid")

    async def hangup(self, call_sid: str) -> None:
        if not (self.settings.twilio_account_sid and self.settings.twilio_auth_token):
            raise TelephonyProviderError("Missing Twilio configuration", status_code=500)

        await self._post(self._calls_url(call_sid), {"Status": "completed"})
        logger.info(f"Hung up call {call_sid}")


def get_twilio_client(request: Request) -> TwilioClient:
    return request.app.state.twilio_client
