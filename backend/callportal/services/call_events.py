import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from callportal.config import Settings, get_settings
from callportal.models.call_log import CallLog
from callportal.models.contact import Contact
from callportal.models.phone_endpoint import PhoneEndpoint
from callportal.schemas.call_event import InboundCallEvent
from callportal.schemas.call_log import CallLogEvent
from callportal.schemas.contact import ContactEvent
from callportal.services.broadcaster import EventBroadcaster
from callportal.services.exceptions import PersistenceError, ResolutionError
from callportal.services.status import contact_status_for, normalize_status

logger = logging.getLogger(__name__)


def normalize_phone(phone_number: str) -> str:
    """Keep digits and a leading "+" only."""
    if not phone_number:
        return ""
    digits = "".join(c for c in phone_number if c.isdigit())
    if phone_number.strip().startswith("+"):
        return f"+{digits}"
    return digits


def parse_employee_id(raw) -> Optional[int]:
    """Return the value as a positive int, or None when it is not one."""
    if raw is None:
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    text = str(raw).strip()
    if not text.isdigit():
        return None
    value = int(text)
    return value if value > 0 else None


def build_notes(event: InboundCallEvent) -> str:
    sid = event.call_sid or ""
    if event.to_number:
        return f"To: {event.to_number} | SID: {sid}"
    return f"SID: {sid}"


class CallEventService:
    """Applies provider status callbacks to call logs and contacts, then publishes them."""

    def __init__(
        self,
        db: Session,
        call_log_broadcaster: EventBroadcaster,
        contact_broadcaster: EventBroadcaster,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.call_log_broadcaster = call_log_broadcaster
        self.contact_broadcaster = contact_broadcaster
        self.settings = settings or get_settings()

    def handle(self, event: InboundCallEvent) -> CallLog:
        """Run the full pipeline for one authenticated webhook."""
        employee_id = self.resolve_employee(event)
        call_log = self.reconcile(event, employee_id)
        self.correlate_contact(event, call_log, employee_id)
        return call_log

    # === Employee resolution ===

    def _lookup_endpoint(self, endpoint: str) -> Optional[int]:
        mapping = self.db.query(PhoneEndpoint).filter(
            PhoneEndpoint.provider == self.settings.telephony_provider,
            PhoneEndpoint.endpoint == endpoint,
        ).first()
        return mapping.employee_id if mapping else None

    def resolve_employee(self, event: InboundCallEvent) -> int:
        """
        Determine which employee owns the call.

        Order: explicit employee id, then the phone endpoint owning the
        destination number, then the one owning the origin number.

        Raises:
            ResolutionError: if none of them yields an employee
            PersistenceError: if the endpoint lookup fails
        """
        explicit = parse_employee_id(event.employee_id)
        if explicit:
            return explicit

        try:
            for number in (event.to_number, event.from_number):
                if not number:
                    continue
                employee_id = self._lookup_endpoint(number)
                if employee_id:
                    return employee_id
        except SQLAlchemyError as e:
            logger.error(f"Phone endpoint lookup failed for call {event.call_sid}: {e}")
            raise PersistenceError("Failed to look up phone endpoints") from e

        logger.warning(
            f"Unable to resolve employee for call {event.call_sid} "
            f"(from={event.from_number}, to={event.to_number})"
        )
        raise ResolutionError("Unable to resolve employeeId from request or phone endpoints")

    # === Call log reconciliation ===

    def _apply_update(self, call_log: CallLog, event: InboundCallEvent) -> None:
        call_log.status = normalize_status(event.call_status)
        call_log.duration = event.duration
        call_log.customer_phone = event.from_number
        call_log.notes = build_notes(event)
        call_log.from_number = event.from_number
        call_log.to_number = event.to_number

    def _find_by_sid(self, call_sid: Optional[str]) -> Optional[CallLog]:
        if not call_sid:
            return None
        return self.db.query(CallLog).filter(CallLog.provider_call_id == call_sid).first()

    def reconcile(self, event: InboundCallEvent, employee_id: int) -> CallLog:
        """
        Insert or update the call log for this event, keyed by CallSid.

        A repeated CallSid updates the existing row in place (last write
        wins). The committed record is published to call-log subscribers.

        Raises:
            PersistenceError: if the store fails
        """
        now = event.received_at
        try:
            existing = self._find_by_sid(event.call_sid)
            if existing:
                self._apply_update(existing, event)
                self.db.commit()
                call_log = existing
                logger.info(f"Updated call log {call_log.id} for call {event.call_sid}: {call_log.status.value}")
            else:
                call_log = self._insert(event, employee_id, now)
            self.db.refresh(call_log)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to reconcile call {event.call_sid}: {e}")
            raise PersistenceError("Failed to store call log") from e

        self.call_log_broadcaster.publish(CallLogEvent.model_validate(call_log))
        return call_log

    def _insert(self, event: InboundCallEvent, employee_id: int, now: datetime) -> CallLog:
        call_log = CallLog(
            employee_id=employee_id,
            call_date=now.date(),
            call_time=now.time().replace(microsecond=0),
            status=normalize_status(event.call_status),
            duration=event.duration,
            customer_phone=event.from_number,
            notes=build_notes(event),
            provider_call_id=event.call_sid,
            from_number=event.from_number,
            to_number=event.to_number,
            created_at=now,
        )
        self.db.add(call_log)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent delivery of the same CallSid inserted first
            self.db.rollback()
            winner = self._find_by_sid(event.call_sid)
            if winner is None:
                raise
            self._apply_update(winner, event)
            self.db.commit()
            logger.info(f"Call {event.call_sid} inserted concurrently, updated log {winner.id}")
            return winner

        logger.info(f"Created call log {call_log.id} for call {event.call_sid} (employee {employee_id})")
        return call_log

    # === Contact correlation ===

    def correlate_contact(self, event: InboundCallEvent, call_log: CallLog, employee_id: int) -> Optional[Contact]:
        """
        Update the matching contact's last-call fields and assign it to the
        employee resolved for this delivery.

        Best effort: no match is a no-op and failures are logged, never
        raised, so the committed call log stands.
        """
        target = event.to_number or event.from_number
        if not target:
            return None

        normalized = normalize_phone(target)
        try:
            contact = self.db.query(Contact).filter(Contact.phone_number == normalized).first()
            if not contact:
                return None

            contact.assigned_employee_id = employee_id
            contact.call_status = contact_status_for(call_log.status)
            contact.call_time = event.received_at
            contact.call_duration_sec = call_log.duration
            self.db.commit()
            self.db.refresh(contact)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating contact for {normalized}: {e}")
            return None

        logger.info(f"Updated contact {contact.id} from call {event.call_sid}")
        try:
            self.contact_broadcaster.publish(ContactEvent.model_validate(contact))
        except Exception as e:
            logger.error(f"Error publishing contact {contact.id}: {e}")
        return contact
