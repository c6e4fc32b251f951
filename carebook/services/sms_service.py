"""
Twilio SMS Service
Delivers completion OTPs to the parent's phone
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER
from ..shared.validators import to_e164

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def completion_otp_message(otp: str, booking_ref: str) -> str:
    return f"Your CareBook completion code for booking {booking_ref} is {otp}. It expires in 10 minutes."


async def send_sms(
    to_phone: str,
    message_body: str,
    country_code: str = "+91",
) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not (TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER):
        logger.debug("Twilio not configured - SMS skipped")
        return False, "SMS disabled"

    try:
        formatted_phone = to_e164(to_phone, country_code)
    except ValueError as e:
        logger.warning(f"⚠️ Invalid phone number for SMS: {e}")
        return False, str(e)

    try:
        logger.info(f"🚀 Sending SMS to Twilio API for {formatted_phone}")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data={"To": formatted_phone, "From": TWILIO_FROM_NUMBER, "Body": message_body},
                timeout=10.0,
            )

        logger.info(f"📡 Twilio API response status: {response.status_code}")

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully to {formatted_phone} (SID: {message_sid})")
            return True, None

        error_data = response.json()
        error_message = error_data.get("message", "Unknown error")
        error_code = error_data.get("code")
        logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
        return False, error_message

    except httpx.HTTPError as e:
        logger.error(f"❌ HTTP error sending SMS: {e}")
        return False, f"HTTP error: {e}"
