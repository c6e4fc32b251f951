"""
Push Notification Service
Delivers booking lifecycle notifications through Firebase Cloud Messaging.
Every public function reports failure in its return value and never raises.
"""

import logging
from datetime import date
from typing import Optional

from firebase_admin import messaging
from sqlalchemy.orm import Session

from ..config import ANDROID_CHANNEL_ID, ANDROID_NOTIFICATION_COLOR, CURRENCY_SYMBOL
from ..firebase import get_firebase_app
from ..models import User
from ..models_booking import Booking

logger = logging.getLogger(__name__)


def _format_day(value: date) -> str:
    # e.g. "Mon, 3 Mar"
    return f"{value.strftime('%a')}, {value.day} {value.strftime('%b')}"


def _stringify(data: Optional[dict]) -> dict:
    # FCM data payload values must be strings
    return {str(k): str(v) for k, v in (data or {}).items()}


def build_message(token: str, notification: dict) -> messaging.Message:
    return messaging.Message(
        token=token,
        notification=messaging.Notification(
            title=notification.get("title"),
            body=notification.get("body"),
        ),
        data=_stringify(notification.get("data")),
        android=messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(
                icon="ic_notification",
                color=ANDROID_NOTIFICATION_COLOR,
                sound="default",
                channel_id=ANDROID_CHANNEL_ID,
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1)),
        ),
    )


def send_to_token(token: str, notification: dict) -> dict:
    """Send one notification to a specific FCM token"""
    try:
        message_id = messaging.send(build_message(token, notification), app=get_firebase_app())
        logger.info(f"✅ Notification sent successfully: {message_id}")
        return {"success": True, "messageId": message_id}
    except messaging.UnregisteredError:
        logger.warning("⚠️ FCM token is no longer registered")
        return {"success": False, "error": "Token unregistered", "tokenInvalid": True}
    except Exception as e:
        logger.error(f"❌ Error sending notification: {e}")
        return {"success": False, "error": str(e)}


def send_to_user(db: Session, user_id: int, notification: dict) -> dict:
    """
    Send a notification to a single user

    Args:
        db: Database session
        user_id: Recipient user ID
        notification: {title, body, data}

    Returns:
        Dict with success flag and either messageId or reason/error
    """
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.fcm_token:
            logger.info(f"⚠️ No FCM token for user {user_id}")
            return {"success": False, "reason": "No FCM token"}

        if not user.push_notifications_enabled:
            logger.info(f"⚠️ Push notifications disabled for user {user_id}")
            return {"success": False, "reason": "Notifications disabled"}

        result = send_to_token(user.fcm_token, notification)
        if result.get("tokenInvalid"):
            # Stale token; the app registers a fresh one on next launch
            user.fcm_token = None
            db.commit()
        return result
    except Exception as e:
        logger.error(f"❌ Error sending notification to user {user_id}: {e}")
        db.rollback()
        return {"success": False, "error": str(e)}


# ============================================================================
# BOOKING LIFECYCLE NOTIFICATIONS
# Each builder returns (recipient_id, notification) pairs for the queue
# ============================================================================


def new_booking_notifications(booking: Booking, parent: User) -> list[tuple[int, dict]]:
    notification = {
        "title": "🎉 New Booking Request!",
        "body": f"{parent.name} wants to book you on {_format_day(booking.date)} at {booking.start_time}",
        "data": {"type": "new_booking", "bookingId": booking.id, "screen": "BookingDetails"},
    }
    return [(booking.provider_id, notification)]


def booking_confirmed_notifications(booking: Booking, provider: User) -> list[tuple[int, dict]]:
    notification = {
        "title": "✅ Booking Confirmed!",
        "body": f"{provider.name} has accepted your booking for {_format_day(booking.date)}",
        "data": {"type": "booking_confirmed", "bookingId": booking.id, "screen": "BookingHistory"},
    }
    return [(booking.parent_id, notification)]


def booking_rejected_notifications(
    booking: Booking, provider: User, reason: Optional[str] = None
) -> list[tuple[int, dict]]:
    notification = {
        "title": "❌ Booking Declined",
        "body": f"{provider.name} couldn't accept your booking. {reason or 'Please try another provider.'}",
        "data": {"type": "booking_rejected", "bookingId": booking.id, "screen": "Dashboard"},
    }
    return [(booking.parent_id, notification)]


def booking_completed_notifications(booking: Booking, provider: User) -> list[tuple[int, dict]]:
    parent_notification = {
        "title": "🌟 Session Completed!",
        "body": f"Your session with {provider.name} is complete. Please leave a review!",
        "data": {
            "type": "booking_completed",
            "bookingId": booking.id,
            "providerId": booking.provider_id,
            "screen": "ReviewScreen",
        },
    }
    provider_notification = {
        "title": "💰 Session Completed!",
        "body": f"Great job! {CURRENCY_SYMBOL}{booking.total_amount:g} has been added to your earnings.",
        "data": {
            "type": "earning_added",
            "bookingId": booking.id,
            "amount": booking.total_amount,
            "screen": "Earnings",
        },
    }
    return [(booking.parent_id, parent_notification), (booking.provider_id, provider_notification)]


def booking_cancelled_notifications(booking: Booking, cancelled_by: str) -> list[tuple[int, dict]]:
    notification = {
        "title": "🚫 Booking Cancelled",
        "body": f"The booking for {_format_day(booking.date)} has been cancelled.",
        "data": {"type": "booking_cancelled", "bookingId": booking.id, "screen": "BookingHistory"},
    }
    # Notify the other party (not the one who cancelled)
    if cancelled_by == "parent":
        return [(booking.provider_id, notification)]
    if cancelled_by == "provider":
        return [(booking.parent_id, notification)]
    return [(booking.parent_id, notification), (booking.provider_id, notification)]
