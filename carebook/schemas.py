from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


def success_response(message: str, data: Any = None) -> dict:
    """Success envelope shared by every endpoint"""
    return {"success": True, "message": message, "data": data}


def error_response(message: str, errors: Optional[list] = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


class ProviderProfileResponse(BaseModel):
    providerType: str
    bio: str
    experienceYears: int
    hourlyRate: float
    rating: float
    totalReviews: int
    isVerifiedProvider: bool
    isAvailableNow: bool


class UserResponse(BaseModel):
    id: int
    phoneNumber: str
    countryCode: str
    name: str
    email: Optional[str] = None
    profileImage: Optional[str] = None
    role: str
    isVerified: bool
    pushNotificationsEnabled: bool
    providerProfile: Optional[ProviderProfileResponse] = None
    createdAt: Optional[datetime] = None


class FcmTokenUpdate(BaseModel):
    fcmToken: str = Field(min_length=1, max_length=500)


class NotificationSettingsUpdate(BaseModel):
    pushNotificationsEnabled: bool
