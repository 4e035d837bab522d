"""Reservation service - hold/confirm/expire state machine for appointment slots"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import HOLD_DURATION_SECONDS, SWEEP_BATCH_SIZE
from ...models import Reservation, build_resource_key
from ...shared.time_utils import to_naive_utc, utcnow
from ...shared.validators import validate_identifier, validate_uuid
from .errors import HoldExpired, InvalidRequest, InvalidState, ReservationNotFound, SlotUnavailable
from .repository import SlotStore
from .states import TRANSITION_EVENTS, ReservationState, is_terminal

logger = logging.getLogger(__name__)


class ReservationService:
    """
    Service layer for slot holds

    The database decides every race: ``SlotStore.try_insert_hold`` for the
    slot itself and ``SlotStore.update_state`` (compare-and-swap) for each
    transition. Notification and expiry scheduling are best-effort side
    effects; their failures are logged and never undo a transition.
    """

    def __init__(
        self,
        db: Session,
        notifier=None,
        expiry_scheduler=None,
        clock: Callable[[], datetime] = utcnow,
        hold_duration_seconds: int = HOLD_DURATION_SECONDS,
    ):
        self.db = db
        self.repo = SlotStore()
        self.notifier = notifier
        self.expiry_scheduler = expiry_scheduler
        self.clock = clock
        self.hold_duration = timedelta(seconds=hold_duration_seconds)

    # ==================== HOLD ====================

    def request_hold(
        self,
        specialist_id: str,
        scheduled_at: datetime,
        holder_id: str,
        duration_minutes: int,
        holder_email: Optional[str] = None,
        holder_phone: Optional[str] = None,
    ) -> Reservation:
        """Place a time-boxed hold on (specialist, scheduled_at)"""
        holder_id = self._identifier(holder_id, "holderId")
        specialist_id = self._identifier(specialist_id, "resourceSpecialistId")
        if duration_minutes <= 0:
            raise InvalidRequest("durationMinutes must be greater than 0")

        now = self.clock()
        slot_start = to_naive_utc(scheduled_at).replace(microsecond=0)
        if slot_start <= now:
            raise InvalidRequest("Scheduled time must be in the future")
        resource_key = build_resource_key(specialist_id, slot_start)

        reservation = Reservation(
            resource_key=resource_key,
            specialist_id=specialist_id,
            scheduled_at=slot_start,
            holder_id=holder_id,
            state=ReservationState.HELD,
            duration_minutes=duration_minutes,
            holder_email=holder_email,
            holder_phone=holder_phone,
            created_at=now,
            expires_at=now + self.hold_duration,
            updated_at=now,
        )

        logger.info(f"📥 Hold requested on {resource_key} by holder {holder_id}")
        if not self.repo.try_insert_hold(self.db, reservation):
            logger.warning(f"⚠️ Slot {resource_key} unavailable for holder {holder_id}")
            raise SlotUnavailable()

        logger.info(
            f"✅ Hold {reservation.id} created on {resource_key}, expires {reservation.expires_at}"
        )
        self._schedule_expiry(reservation)
        return reservation

    # ==================== CONFIRM ====================

    def confirm(self, reservation_id: str) -> Reservation:
        """Turn a live hold into a booking"""
        reservation = self.get_reservation(reservation_id)

        if reservation.state != ReservationState.HELD:
            raise InvalidState(f"Reservation is {reservation.state.value}")

        now = self.clock()
        if now > reservation.expires_at:
            logger.info(f"⏰ Confirm after expiry for hold {reservation_id}")
            self._release(reservation, ReservationState.EXPIRED, now)
            raise HoldExpired()

        confirmed = self.repo.update_state(
            self.db,
            reservation_id,
            ReservationState.HELD,
            ReservationState.CONFIRMED,
            confirmed_at=now,
            updated_at=now,
        )
        if not confirmed:
            # Lost the race to another confirm, a cancel or the expiry job
            current = self.get_reservation(reservation_id)
            if current.state == ReservationState.EXPIRED:
                raise HoldExpired()
            raise InvalidState(f"Reservation is {current.state.value}")

        self._cancel_expiry(reservation_id)
        reservation = self.get_reservation(reservation_id)
        self._notify(reservation)
        return reservation

    # ==================== CANCEL ====================

    def cancel(self, reservation_id: str, reason: Optional[str] = None) -> None:
        """Release a hold. Idempotent: terminal or unknown reservations are left alone."""
        reservation = self._find(reservation_id)
        if not reservation:
            logger.warning(f"⚠️ Cancel for unknown reservation {reservation_id}, ignoring")
            return

        if is_terminal(reservation.state):
            logger.info(
                f"ℹ️ Cancel ignored for reservation {reservation_id} ({reservation.state.value})"
            )
            return

        now = self.clock()
        cancelled = self.repo.update_state(
            self.db,
            reservation_id,
            ReservationState.HELD,
            ReservationState.CANCELLED,
            released_at=now,
            cancel_reason=reason,
            updated_at=now,
        )
        if not cancelled:
            logger.info(f"ℹ️ Reservation {reservation_id} left held state before cancel")
            return

        self._cancel_expiry(reservation_id)
        self._notify(self.get_reservation(reservation_id))

    # ==================== EXPIRY ====================

    def expire_hold(self, reservation_id: str) -> bool:
        """
        Expiry action for a single hold

        Re-reads the record so it is safe after restarts, duplicates and
        races. Returns True if this call moved the hold to expired.
        """
        reservation = self._find(reservation_id)
        if not reservation or reservation.state != ReservationState.HELD:
            return False

        now = self.clock()
        if now < reservation.expires_at:
            logger.debug(f"ℹ️ Hold {reservation_id} not due until {reservation.expires_at}")
            return False

        return self._release(reservation, ReservationState.EXPIRED, now)

    def sweep_expired_holds(self, limit: int = SWEEP_BATCH_SIZE) -> dict:
        """Recovery sweep: expire every held reservation past its window"""
        now = self.clock()
        overdue = self.repo.find_expired_holds(self.db, now, limit=limit)

        summary = {"found": len(overdue), "expired": 0}
        for reservation in overdue:
            if self._release(reservation, ReservationState.EXPIRED, now):
                summary["expired"] += 1

        if summary["found"]:
            logger.info(f"📊 Hold sweep summary: {summary}")
        else:
            logger.debug("ℹ️ No expired holds found")
        return summary

    def purge_released(self, retention_days: int) -> int:
        """Delete expired/cancelled reservations past the retention window"""
        cutoff = self.clock() - timedelta(days=retention_days)
        deleted = self.repo.purge_terminal(self.db, cutoff)
        logger.info(f"🧹 Purged {deleted} released reservation(s) older than {cutoff}")
        return deleted

    # ==================== QUERIES ====================

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self._find(reservation_id)
        if not reservation:
            raise ReservationNotFound()
        return reservation

    def check_availability(self, specialist_id: str, scheduled_at: datetime) -> dict:
        """
        Report whether a slot is currently free

        Informational only: a later request_hold can still lose the slot.
        A hold found past its window is expired on the spot.
        """
        specialist_id = self._identifier(specialist_id, "specialistId")
        resource_key = build_resource_key(specialist_id, scheduled_at)
        active = self.repo.find_active_for_resource(self.db, resource_key)

        if active and active.state == ReservationState.HELD:
            now = self.clock()
            if now >= active.expires_at:
                self._release(active, ReservationState.EXPIRED, now)
                active = self.repo.find_active_for_resource(self.db, resource_key)

        if not active:
            return {"available": True, "state": None, "heldUntil": None}

        return {
            "available": False,
            "state": active.state,
            "heldUntil": active.expires_at if active.state == ReservationState.HELD else None,
        }

    # ==================== HELPERS ====================

    @staticmethod
    def _identifier(value: str, field: str) -> str:
        try:
            return validate_identifier(value)
        except ValueError as e:
            raise InvalidRequest(f"{field}: {e}") from e

    def _find(self, reservation_id: str) -> Optional[Reservation]:
        if not validate_uuid(reservation_id):
            return None
        return self.repo.get(self.db, reservation_id)

    def _release(self, reservation: Reservation, new_state: ReservationState, now: datetime) -> bool:
        """CAS a held reservation into a releasing terminal state and notify"""
        released = self.repo.update_state(
            self.db,
            reservation.id,
            ReservationState.HELD,
            new_state,
            released_at=now,
            updated_at=now,
        )
        if released:
            self._notify(self.get_reservation(reservation.id))
        return released

    def _notify(self, reservation: Reservation) -> None:
        if self.notifier is None:
            return
        event = TRANSITION_EVENTS[reservation.state]
        try:
            self.notifier.notify(event, reservation)
        except Exception as e:
            logger.error(f"❌ Failed to dispatch {event.value} notification for {reservation.id}: {e}")

    def _schedule_expiry(self, reservation: Reservation) -> None:
        if self.expiry_scheduler is None:
            return
        try:
            self.expiry_scheduler.schedule(reservation)
        except Exception as e:
            logger.warning(f"⚠️ Failed to schedule expiry for hold {reservation.id}: {e}")

    def _cancel_expiry(self, reservation_id: str) -> None:
        if self.expiry_scheduler is None:
            return
        try:
            self.expiry_scheduler.cancel(reservation_id)
        except Exception as e:
            logger.warning(f"⚠️ Failed to cancel expiry job for {reservation_id}: {e}")
