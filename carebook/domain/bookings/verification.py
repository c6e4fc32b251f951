"""
Completion verification codes

One-time OTP (6 digits, short-lived, sent to the parent by SMS) and QR token
(high-entropy, shown by the parent's app and scanned by the provider).
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone

from ...config import COMPLETION_OTP_MAX_ATTEMPTS, COMPLETION_OTP_TTL_MINUTES, QR_TOKEN_TTL_HOURS
from ...errors import ExpiredError, InvalidCodeError, ValidationError
from ...models_booking import Booking

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_otp(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP"""
    otp = "".join(secrets.choice(string.digits) for _ in range(length))
    logger.debug(f"🔢 Generated completion OTP: {otp}")
    return otp


def generate_qr_token() -> str:
    return secrets.token_hex(32)


def issue_completion_otp(booking: Booking, now: datetime | None = None) -> str:
    """Store a fresh OTP on the booking, replacing any earlier code and its verification"""
    now = now or utcnow()
    otp = generate_otp(6)
    booking.completion_otp = otp
    booking.completion_otp_expires_at = now + timedelta(minutes=COMPLETION_OTP_TTL_MINUTES)
    booking.completion_otp_verified = False
    booking.completion_otp_attempts = 0
    return otp


def check_completion_otp(booking: Booking, submitted: str, now: datetime | None = None) -> None:
    """
    Validate a submitted OTP against the booking.

    Mutates the attempt counter on mismatch and discards the code once
    COMPLETION_OTP_MAX_ATTEMPTS is reached; the caller commits either way.

    Raises:
        ValidationError: No code has been issued
        ExpiredError: The code is past its expiry
        InvalidCodeError: The code does not match
    """
    now = now or utcnow()

    if not booking.completion_otp:
        raise ValidationError("Please request OTP first")

    if booking.completion_otp_expires_at and now > booking.completion_otp_expires_at:
        raise ExpiredError("OTP has expired. Please request a new one.")

    if not secrets.compare_digest(booking.completion_otp, (submitted or "").strip()):
        booking.completion_otp_attempts = (booking.completion_otp_attempts or 0) + 1
        if booking.completion_otp_attempts >= COMPLETION_OTP_MAX_ATTEMPTS:
            logger.warning(
                f"🔒 Completion OTP for booking {booking.booking_ref} discarded after "
                f"{booking.completion_otp_attempts} failed attempts"
            )
            booking.completion_otp = None
            booking.completion_otp_expires_at = None
            raise InvalidCodeError("Too many invalid attempts. Please request a new OTP.")
        raise InvalidCodeError("Invalid OTP. Please try again.")


def issue_qr_token(booking: Booking, now: datetime | None = None) -> str:
    now = now or utcnow()
    token = generate_qr_token()
    booking.qr_token = token
    booking.qr_expires_at = now + timedelta(hours=QR_TOKEN_TTL_HOURS)
    return token


def qr_token_expired(booking: Booking, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return booking.qr_expires_at is None or now > booking.qr_expires_at
