import asyncio
from datetime import datetime

import httpx

from app import email_service
from app.domain.reservations.states import NotificationEvent, ReservationState
from app.models import Reservation
from app.queue import PendingJobs
from app.services import notification_service, twilio_service
from app.services.notification_service import NotificationDispatcher, format_slot

RESERVATION_ID = "6f1c9a8e-2b44-4d1e-9a57-3c2f0e7b1d90"


def make_reservation(email="patient@example.com", phone="+15551234567"):
    return Reservation(
        id=RESERVATION_ID,
        resource_key="drA|2025-06-01T10:00:00",
        specialist_id="drA",
        scheduled_at=datetime(2025, 6, 1, 10, 0),
        holder_id="patient1",
        state=ReservationState.CONFIRMED,
        duration_minutes=30,
        holder_email=email,
        holder_phone=phone,
    )


def test_dispatcher_queues_one_job_per_event():
    jobs = PendingJobs()
    NotificationDispatcher(jobs).notify(NotificationEvent.CONFIRMED, make_reservation())

    assert jobs.jobs == [
        (
            "send_reservation_notification_task",
            ("confirmed", RESERVATION_ID),
            {"_job_id": f"notify-confirmed:{RESERVATION_ID}"},
        )
    ]


def test_dispatcher_skips_holders_without_contact_details():
    jobs = PendingJobs()
    NotificationDispatcher(jobs).notify(
        NotificationEvent.EXPIRED, make_reservation(email=None, phone=None)
    )
    assert len(jobs) == 0


def test_format_slot():
    assert format_slot(make_reservation()) == "Sunday 01 Jun 2025 at 10:00 UTC (30 min)"


def test_send_reservation_notification_uses_both_channels(monkeypatch):
    sent_emails, sent_sms = [], []

    async def fake_email(to, **kwargs):
        sent_emails.append((to, kwargs["subject"]))
        return {"id": "email-1"}

    async def fake_sms(to_phone, message_body, message_type):
        sent_sms.append((to_phone, message_body, message_type))
        return True, None

    monkeypatch.setattr(notification_service, "email_configured", lambda: True)
    monkeypatch.setattr(notification_service, "sms_configured", lambda: True)
    monkeypatch.setattr(notification_service, "send_reservation_email", fake_email)
    monkeypatch.setattr(notification_service, "send_sms", fake_sms)

    result = asyncio.run(
        notification_service.send_reservation_notification(
            NotificationEvent.EXPIRED, make_reservation()
        )
    )

    assert result["email_sent"] and result["sms_sent"]
    assert sent_emails == [("patient@example.com", "Your appointment hold expired")]
    to_phone, body, message_type = sent_sms[0]
    assert to_phone == "+15551234567"
    assert body.startswith("Hold expired: Sunday 01 Jun 2025")
    assert message_type == "reservation_expired"


def test_email_failure_is_reported_not_raised(monkeypatch):
    async def broken_email(to, **kwargs):
        raise Exception("Failed to send email: 500")

    monkeypatch.setattr(notification_service, "email_configured", lambda: True)
    monkeypatch.setattr(notification_service, "sms_configured", lambda: False)
    monkeypatch.setattr(notification_service, "send_reservation_email", broken_email)

    result = asyncio.run(
        notification_service.send_reservation_notification(
            NotificationEvent.CANCELLED, make_reservation()
        )
    )

    assert result["email_attempted"] is True
    assert result["email_sent"] is False
    assert "500" in result["email_error"]
    assert result["sms_attempted"] is False


def test_unconfigured_channels_are_not_attempted(monkeypatch):
    monkeypatch.setattr(notification_service, "email_configured", lambda: False)
    monkeypatch.setattr(notification_service, "sms_configured", lambda: False)

    result = asyncio.run(
        notification_service.send_reservation_notification(
            NotificationEvent.CONFIRMED, make_reservation()
        )
    )
    assert not result["email_attempted"] and not result["sms_attempted"]


def test_email_template_escapes_fields():
    html = email_service.reservation_email_template(
        "Hold <expired>", "body & more", "Sunday", RESERVATION_ID
    )
    assert "Hold &lt;expired&gt;" in html
    assert "body &amp; more" in html
    assert f"/reservations/{RESERVATION_ID}" in html


# ==================== TWILIO ====================


def configure_twilio(monkeypatch):
    monkeypatch.setattr(twilio_service, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(twilio_service, "TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setattr(twilio_service, "TWILIO_FROM_NUMBER", "+15550000000")


def test_send_sms_posts_to_twilio(monkeypatch):
    configure_twilio(monkeypatch)
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"sid": "SM1"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await twilio_service.send_sms(
                "+15551234567", "Appointment confirmed", "reservation_confirmed", client=client
            )

    assert asyncio.run(run()) == (True, None)
    assert requests[0].url.path == "/2010-04-01/Accounts/AC123/Messages.json"
    assert b"To=%2B15551234567" in requests[0].content


def test_send_sms_reports_twilio_error(monkeypatch):
    configure_twilio(monkeypatch)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await twilio_service.send_sms(
                "+15551234567", "Hold expired", "reservation_expired", client=client
            )

    assert asyncio.run(run()) == (False, "[21211] Invalid 'To' Phone Number")


def test_send_sms_rejects_non_e164_numbers(monkeypatch):
    configure_twilio(monkeypatch)
    success, error = asyncio.run(twilio_service.send_sms("5551234567", "hi", "test"))
    assert not success
    assert "E.164" in error
