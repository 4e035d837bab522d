"""
Email Service using Resend
Sends the reservation lifecycle emails
"""

import logging
from html import escape

import resend

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def email_configured() -> bool:
    return bool(RESEND_API_KEY)


async def send_email(to: str, subject: str, html_content: str) -> dict:
    """Send a single email via Resend"""
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {to}")
        response = resend.Emails.send(
            {
                "from": EMAIL_FROM_ADDRESS,
                "to": [to],
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {to}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


def reservation_email_template(headline: str, body: str, slot_label: str, reservation_id: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto;">
      <h2 style="color: #1f2937;">{escape(headline)}</h2>
      <p style="color: #374151; font-size: 15px;">{escape(body)}</p>
      <p style="color: #374151; font-size: 15px;"><strong>{escape(slot_label)}</strong></p>
      <p><a href="{escape(FRONTEND_URL)}/reservations/{escape(reservation_id)}"
         style="color: #2563eb; font-size: 14px;">View your reservation</a></p>
      <p style="color: #6b7280; font-size: 12px;">Reference: {escape(reservation_id)}</p>
    </div>
    """


async def send_reservation_email(to: str, subject: str, headline: str, body: str, slot_label: str, reservation_id: str) -> dict:
    """Send a reservation confirmed/cancelled/expired email"""
    html_content = reservation_email_template(headline, body, slot_label, reservation_id)
    return await send_email(to=to, subject=subject, html_content=html_content)
