"""
Twilio SMS Service
Sends reservation SMS through the Twilio REST API
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def sms_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER)


async def send_sms(
    to_phone: str,
    message_body: str,
    message_type: str,
    client: Optional[httpx.AsyncClient] = None,
) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number (E.164)
        message_body: SMS message content
        message_type: Type of message (reservation_confirmed, reservation_expired, ...)
        client: Optional shared HTTP client

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        return False, "No phone number provided"

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return False, "Phone number must be in E.164 format (e.g., +1234567890)"

    if not sms_configured():
        logger.debug("SMS disabled - Twilio credentials not configured")
        return False, "SMS disabled"

    data = {"To": to_phone, "From": TWILIO_FROM_NUMBER, "Body": message_body}
    url = f"{TWILIO_API_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json"

    try:
        logger.info(f"📱 Sending {message_type} SMS to {to_phone}")
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.post(
                    url, auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN), data=data, timeout=10.0
                )
        else:
            response = await client.post(
                url, auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN), data=data, timeout=10.0
            )

        logger.info(f"📡 Twilio API response status: {response.status_code}")

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully: {message_type} to {to_phone} (SID: {message_sid})")
            return True, None

        error_data = response.json()
        error_message = error_data.get("message", "Unknown error")
        error_code = error_data.get("code")
        logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
        return False, f"[{error_code}] {error_message}" if error_code else error_message

    except httpx.HTTPError as e:
        logger.error(f"Twilio API error: {str(e)}")
        return False, str(e)
