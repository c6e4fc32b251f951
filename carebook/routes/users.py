import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import (
    FcmTokenUpdate,
    NotificationSettingsUpdate,
    ProviderProfileResponse,
    UserResponse,
    success_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def user_to_response(user: User) -> UserResponse:
    profile = user.provider_profile
    return UserResponse(
        id=user.id,
        phoneNumber=user.phone_number,
        countryCode=user.country_code,
        name=user.name,
        email=user.email,
        profileImage=user.profile_image_url,
        role=user.role,
        isVerified=user.is_verified,
        pushNotificationsEnabled=user.push_notifications_enabled,
        providerProfile=ProviderProfileResponse(
            providerType=profile.provider_type,
            bio=profile.bio,
            experienceYears=profile.experience_years,
            hourlyRate=profile.hourly_rate,
            rating=profile.rating,
            totalReviews=profile.total_reviews,
            isVerifiedProvider=profile.is_verified_provider,
            isAvailableNow=profile.is_available_now,
        )
        if profile
        else None,
        createdAt=user.created_at,
    )


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's account"""
    return success_response("User retrieved", user_to_response(current_user))


@router.put("/me/fcm-token")
def update_fcm_token(
    data: FcmTokenUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Register the device token used for push notifications"""
    current_user.fcm_token = data.fcmToken
    db.commit()
    logger.info(f"📱 FCM token updated for user {current_user.id}")
    return success_response("FCM token updated successfully")


@router.put("/me/notification-settings")
def update_notification_settings(
    data: NotificationSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Turn push notifications on or off"""
    current_user.push_notifications_enabled = data.pushNotificationsEnabled
    db.commit()
    db.refresh(current_user)
    logger.info(
        f"🔔 Push notifications {'enabled' if data.pushNotificationsEnabled else 'disabled'} for user {current_user.id}"
    )
    return success_response(
        "Notification settings updated",
        {"pushNotificationsEnabled": current_user.push_notifications_enabled},
    )
