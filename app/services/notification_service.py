"""
Reservation Notification Service
The dispatcher queues one background job per state transition; the worker
job delivers it by email and SMS. Nothing here can fail a transition.
"""

import logging
from typing import Optional

from ..domain.reservations.states import NotificationEvent
from ..email_service import email_configured, send_reservation_email
from ..models import Reservation
from ..queue import PendingJobs
from .twilio_service import send_sms, sms_configured

logger = logging.getLogger(__name__)

NOTIFICATION_TASK = "send_reservation_notification_task"

EVENT_MESSAGES = {
    NotificationEvent.CONFIRMED: {
        "subject": "Your appointment is confirmed",
        "headline": "Appointment confirmed",
        "body": "Your appointment has been booked.",
    },
    NotificationEvent.CANCELLED: {
        "subject": "Your appointment hold was cancelled",
        "headline": "Hold cancelled",
        "body": "The slot you were holding has been released.",
    },
    NotificationEvent.EXPIRED: {
        "subject": "Your appointment hold expired",
        "headline": "Hold expired",
        "body": "The hold on your selected slot ran out before it was confirmed. "
        "Please pick a time again.",
    },
}


class NotificationDispatcher:
    """Fire-and-forget notifier handed to ReservationService"""

    def __init__(self, jobs: PendingJobs):
        self.jobs = jobs

    def notify(self, event: NotificationEvent, reservation: Reservation) -> None:
        if not (reservation.holder_email or reservation.holder_phone):
            logger.debug(f"ℹ️ No contact details on {reservation.id}, skipping {event.value}")
            return
        self.jobs.enqueue(
            NOTIFICATION_TASK,
            event.value,
            reservation.id,
            _job_id=f"notify-{event.value}:{reservation.id}",
        )


def format_slot(reservation: Reservation) -> str:
    start = reservation.scheduled_at.strftime("%A %d %b %Y at %H:%M UTC")
    return f"{start} ({reservation.duration_minutes} min)"


async def send_notification(
    recipient_email: Optional[str],
    recipient_phone: Optional[str],
    notification_type: str,
    email_kwargs: dict,
    sms_body: str,
) -> dict:
    """
    Unified notification sender that handles both email and SMS

    Returns:
        Dict with sent/error status per channel; a channel with no recipient
        or no provider credentials is reported as not attempted
    """
    result = {
        "email_attempted": False,
        "email_sent": False,
        "email_error": None,
        "sms_attempted": False,
        "sms_sent": False,
        "sms_error": None,
    }

    if recipient_email and email_configured():
        result["email_attempted"] = True
        try:
            logger.info(f"📧 Sending {notification_type} email to {recipient_email}")
            await send_reservation_email(to=recipient_email, **email_kwargs)
            result["email_sent"] = True
        except Exception as e:
            result["email_error"] = str(e)
            logger.error(f"❌ Failed to send {notification_type} email to {recipient_email}: {e}")
    else:
        logger.debug(f"⚠️ Email skipped for {notification_type}")

    if recipient_phone and sms_configured():
        result["sms_attempted"] = True
        success, error = await send_sms(
            to_phone=recipient_phone, message_body=sms_body, message_type=notification_type
        )
        result["sms_sent"] = success
        result["sms_error"] = error
        if not success:
            logger.warning(f"⚠️ {notification_type} SMS not sent to {recipient_phone}: {error}")
    else:
        logger.debug(f"⚠️ SMS skipped for {notification_type}")

    return result


async def send_reservation_notification(event: NotificationEvent, reservation: Reservation) -> dict:
    """Deliver one reservation event to the holder"""
    messages = EVENT_MESSAGES[event]
    slot_label = format_slot(reservation)

    return await send_notification(
        recipient_email=reservation.holder_email,
        recipient_phone=reservation.holder_phone,
        notification_type=f"reservation_{event.value}",
        email_kwargs={
            "subject": messages["subject"],
            "headline": messages["headline"],
            "body": messages["body"],
            "slot_label": slot_label,
            "reservation_id": reservation.id,
        },
        sms_body=f"{messages['headline']}: {slot_label}. Ref {reservation.id[:8]}",
    )
