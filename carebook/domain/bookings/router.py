"""Booking router - FastAPI endpoints for the booking lifecycle"""

import logging
from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import COMPLETION_OTP_TTL_MINUTES, IS_DEVELOPMENT
from ...database import get_db
from ...models import User
from ...models_booking import Booking
from ...rate_limiter import create_rate_limiter
from ...schemas import success_response
from ...services.notification_queue import QueuedJob, enqueue_jobs
from ...shared.validators import mask_phone
from .schemas import (
    BookedSlot,
    BookingCreate,
    BookingResponse,
    CancellationInfo,
    CancelRequest,
    CompleteRequest,
    CompletionInfo,
    PartySummary,
    PaymentInfo,
    RatingEntry,
    RatingInfo,
    RatingRequest,
    StatusUpdate,
    VerifyOtpRequest,
    VerifyQrRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

# 5 OTP requests per 10 minutes per client
otp_rate_limit = create_rate_limiter(limit=5, window_seconds=600, key_prefix="completion_otp")


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def schedule_jobs(background_tasks: BackgroundTasks, jobs: list[QueuedJob]) -> None:
    """Queue notification jobs after the response is sent"""
    if jobs:
        background_tasks.add_task(enqueue_jobs, jobs)


def party_summary(user: Optional[User]) -> Optional[PartySummary]:
    if user is None:
        return None
    profile = user.provider_profile
    return PartySummary(
        id=user.id,
        name=user.name,
        phoneNumber=user.phone_number,
        profileImage=user.profile_image_url,
        providerType=profile.provider_type if profile else None,
        rating=profile.rating if profile else None,
    )


def booking_to_response(booking: Booking) -> BookingResponse:
    cancellation = None
    if booking.cancelled_by:
        cancellation = CancellationInfo(
            cancelledBy=booking.cancelled_by,
            reason=booking.cancellation_reason,
            cancelledAt=booking.cancelled_at,
        )

    return BookingResponse(
        id=booking.id,
        bookingId=booking.booking_ref,
        parentId=booking.parent_id,
        providerId=booking.provider_id,
        parent=party_summary(booking.parent),
        provider=party_summary(booking.provider),
        date=booking.date,
        startTime=booking.start_time,
        endTime=booking.end_time,
        totalHours=booking.total_hours,
        children=booking.children or [],
        numberOfChildren=booking.number_of_children,
        childrenAges=booking.children_ages,
        address=booking.address or None,
        specialInstructions=booking.special_instructions,
        hourlyRate=booking.hourly_rate,
        totalAmount=booking.total_amount,
        status=booking.status,
        cancellation=cancellation,
        payment=PaymentInfo(
            status=booking.payment_status,
            method=booking.payment_method,
            paidAt=booking.paid_at,
            transactionId=booking.payment_transaction_id,
            orderId=booking.payment_order_id,
        ),
        rating=RatingInfo(
            byParent=RatingEntry(
                score=booking.parent_rating_score,
                review=booking.parent_review,
                ratedAt=booking.parent_rated_at,
            )
            if booking.parent_rating_score is not None
            else None,
            byProvider=RatingEntry(
                score=booking.provider_rating_score,
                review=booking.provider_review,
                ratedAt=booking.provider_rated_at,
            )
            if booking.provider_rating_score is not None
            else None,
        ),
        completion=CompletionInfo(
            otpVerified=booking.completion_otp_verified,
            verifiedAt=booking.verified_at,
            hasVerificationImage=bool(booking.verification_image),
        ),
        createdAt=booking.created_at,
        updatedAt=booking.updated_at,
        confirmedAt=booking.confirmed_at,
        completedAt=booking.completed_at,
    )


# ============================================================================
# CREATION AND QUERIES
# ============================================================================


@router.post("", status_code=201)
async def create_booking(
    data: BookingCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking request for a provider's time slot"""
    booking, jobs = service.create_booking(data, current_user)
    schedule_jobs(background_tasks, jobs)
    return success_response("Booking created successfully", booking_to_response(booking))


@router.get("/parent/{parent_id}")
async def get_parent_bookings(
    parent_id: int,
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """List a parent's bookings, newest first"""
    bookings, pagination = service.list_for_parent(parent_id, current_user, status, page, limit)
    return success_response(
        "Bookings retrieved",
        {"bookings": [booking_to_response(b) for b in bookings], "pagination": pagination},
    )


@router.get("/provider/{provider_id}")
async def get_provider_bookings(
    provider_id: int,
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """List a provider's bookings, newest first"""
    bookings, pagination = service.list_for_provider(provider_id, current_user, status, page, limit)
    return success_response(
        "Bookings retrieved",
        {"bookings": [booking_to_response(b) for b in bookings], "pagination": pagination},
    )


@router.get("/provider/{provider_id}/booked-slots")
async def get_booked_slots(
    provider_id: int,
    date: date_type = Query(...),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Time ranges already taken on a provider's calendar"""
    slots = service.get_booked_slots(provider_id, date)
    return success_response("Booked slots retrieved", [BookedSlot(**slot) for slot in slots])


@router.get("/provider/{provider_id}/earnings")
async def get_provider_earnings(
    provider_id: int,
    period: str = Query("all"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Earnings summary plus completed-booking history"""
    earnings = service.get_earnings(provider_id, current_user, period, page, limit)
    history = [
        {
            "id": b.id,
            "bookingId": b.booking_ref,
            "parentName": b.parent.name if b.parent else None,
            "date": b.date,
            "startTime": b.start_time,
            "endTime": b.end_time,
            "totalHours": b.total_hours,
            "amount": b.total_amount,
            "completedAt": b.completed_at,
        }
        for b in earnings["history"]
    ]
    return success_response(
        "Earnings retrieved",
        {"summary": earnings["summary"], "history": history, "pagination": earnings["pagination"]},
    )


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Get a single booking"""
    booking = service.get_booking(booking_id, current_user)
    return success_response("Booking retrieved", booking_to_response(booking))


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================


@router.put("/{booking_id}/status")
async def update_booking_status(
    booking_id: int,
    data: StatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Move a booking to a new status"""
    booking, jobs = service.update_status(booking_id, data, current_user)
    schedule_jobs(background_tasks, jobs)
    return success_response(f"Booking {booking.status}", booking_to_response(booking))


@router.put("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking (not allowed close to the start time)"""
    booking, jobs = service.cancel_booking(booking_id, data or CancelRequest(), current_user)
    schedule_jobs(background_tasks, jobs)
    return success_response("Booking cancelled successfully", booking_to_response(booking))


# ============================================================================
# COMPLETION VERIFICATION
# ============================================================================


@router.post("/{booking_id}/send-completion-otp")
async def send_completion_otp(
    booking_id: int,
    background_tasks: BackgroundTasks,
    _: None = Depends(otp_rate_limit),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Text a completion code to the parent"""
    booking, otp, jobs = service.send_completion_otp(booking_id, current_user)
    schedule_jobs(background_tasks, jobs)

    data = {
        "bookingId": booking.id,
        "parentPhone": mask_phone(booking.parent.phone_number if booking.parent else None),
        "expiresIn": f"{COMPLETION_OTP_TTL_MINUTES} minutes",
    }
    if IS_DEVELOPMENT:
        data["testOtp"] = otp
    return success_response("OTP sent to parent's phone number", data)


@router.post("/{booking_id}/verify-completion-otp")
async def verify_completion_otp(
    booking_id: int,
    data: VerifyOtpRequest,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Check the code the parent read out"""
    booking = service.verify_completion_otp(booking_id, data.otp, current_user)
    return success_response(
        "OTP verified successfully",
        {"bookingId": booking.id, "otpVerified": booking.completion_otp_verified},
    )


@router.post("/{booking_id}/complete")
async def complete_booking(
    booking_id: int,
    data: CompleteRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Finish an OTP-verified booking with a proof image"""
    booking, jobs = service.complete_booking(booking_id, data.verificationImage, current_user)
    schedule_jobs(background_tasks, jobs)
    return success_response("Booking completed successfully", booking_to_response(booking))


@router.post("/{booking_id}/generate-qr")
async def generate_qr(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Issue a QR token for the provider to scan"""
    booking, token = service.generate_qr(booking_id, current_user)
    return success_response(
        "QR code generated successfully",
        {"bookingId": booking.id, "qrToken": token, "expiresAt": booking.qr_expires_at},
    )


@router.post("/verify-qr")
async def verify_qr(
    data: VerifyQrRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Redeem a scanned QR token and complete its booking"""
    booking, jobs = service.redeem_qr(data.qrToken, current_user)
    schedule_jobs(background_tasks, jobs)
    return success_response("Booking completed successfully", booking_to_response(booking))


# ============================================================================
# RATINGS
# ============================================================================


@router.post("/{booking_id}/rating")
async def rate_booking(
    booking_id: int,
    data: RatingRequest,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Rate a completed booking"""
    booking = service.rate_booking(booking_id, data, current_user)
    return success_response("Rating submitted successfully", booking_to_response(booking))
