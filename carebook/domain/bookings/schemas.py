"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

BookingStatus = Literal["pending", "confirmed", "in-progress", "completed", "cancelled", "rejected"]
CancelledBy = Literal["parent", "provider", "admin"]


class ChildInfo(BaseModel):
    name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=25)
    gender: Optional[str] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    formattedAddress: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class BookingCreate(BaseModel):
    """Schema for creating a new booking"""

    parentId: int
    providerId: int
    date: date
    startTime: str = Field(min_length=1)
    endTime: str = Field(min_length=1)
    totalHours: float = Field(gt=0)
    totalAmount: float = Field(ge=0)
    hourlyRate: float = Field(default=0, ge=0)
    children: list[ChildInfo] = Field(default_factory=list)
    numberOfChildren: int = Field(default=1, ge=1)
    childrenAges: str = ""
    address: Optional[Address] = None
    specialInstructions: str = ""


class StatusUpdate(BaseModel):
    """Schema for PUT /bookings/{id}/status"""

    status: BookingStatus
    cancelledBy: Optional[CancelledBy] = None
    cancellationReason: Optional[str] = None


class CancelRequest(BaseModel):
    cancelledBy: Optional[CancelledBy] = None
    reason: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    otp: str = Field(min_length=1)


class CompleteRequest(BaseModel):
    verificationImage: str

    @field_validator("verificationImage")
    @classmethod
    def validate_image(cls, v):
        if not v or not v.strip():
            raise ValueError("Verification image is required")
        return v


class VerifyQrRequest(BaseModel):
    qrToken: str = Field(min_length=1)


class RatingRequest(BaseModel):
    score: int = Field(ge=1, le=5)
    review: Optional[str] = None


class PartySummary(BaseModel):
    id: int
    name: str
    phoneNumber: Optional[str] = None
    profileImage: Optional[str] = None
    providerType: Optional[str] = None
    rating: Optional[float] = None


class CancellationInfo(BaseModel):
    cancelledBy: Optional[str] = None
    reason: Optional[str] = None
    cancelledAt: Optional[datetime] = None


class PaymentInfo(BaseModel):
    status: str
    method: str
    paidAt: Optional[datetime] = None
    transactionId: Optional[str] = None
    orderId: Optional[str] = None


class RatingEntry(BaseModel):
    score: Optional[int] = None
    review: Optional[str] = None
    ratedAt: Optional[datetime] = None


class RatingInfo(BaseModel):
    byParent: Optional[RatingEntry] = None
    byProvider: Optional[RatingEntry] = None


class CompletionInfo(BaseModel):
    otpVerified: bool = False
    verifiedAt: Optional[datetime] = None
    hasVerificationImage: bool = False


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    bookingId: str
    parentId: int
    providerId: int
    parent: Optional[PartySummary] = None
    provider: Optional[PartySummary] = None
    date: date
    startTime: str
    endTime: str
    totalHours: float
    children: list[ChildInfo] = Field(default_factory=list)
    numberOfChildren: int
    childrenAges: str
    address: Optional[Address] = None
    specialInstructions: str
    hourlyRate: float
    totalAmount: float
    status: str
    cancellation: Optional[CancellationInfo] = None
    payment: PaymentInfo
    rating: RatingInfo
    completion: CompletionInfo
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    confirmedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None


class BookedSlot(BaseModel):
    startTime: str
    endTime: str


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int

