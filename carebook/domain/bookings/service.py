"""Booking service - Business logic for the booking lifecycle"""

import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import CANCELLATION_CUTOFF_HOURS
from ...errors import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InternalError,
    InvalidCodeError,
    NotFoundError,
    StateError,
    ValidationError,
)
from ...models import ROLE_PROVIDER, User
from ...models_booking import Booking
from ...services.notification_queue import QueuedJob, push_jobs, sms_otp_job
from ...services.notification_service import (
    booking_cancelled_notifications,
    booking_completed_notifications,
    booking_confirmed_notifications,
    booking_rejected_notifications,
    new_booking_notifications,
)
from .earnings import EARNING_PERIODS, credit_provider_earnings, period_start
from .repository import BookingRepository
from .scheduling import find_overlap, to_minutes, within_cancellation_cutoff
from .schemas import BookingCreate, CancelRequest, RatingRequest, StatusUpdate
from .state_machine import (
    BOOKING_STATUSES,
    CANCELLED,
    COMPLETABLE_STATUSES,
    COMPLETED,
    CONFIRMED,
    IN_PROGRESS,
    REJECTED,
    is_completable,
    is_terminal,
    validate_status_transition,
)
from .verification import (
    check_completion_otp,
    issue_completion_otp,
    issue_qr_token,
    qr_token_expired,
    utcnow,
)

logger = logging.getLogger(__name__)

PROVIDER_ACTIONS = (CONFIRMED, REJECTED, IN_PROGRESS)


def pagination(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }


class BookingService:
    """Service layer for booking business logic

    Mutating methods return the queued notification jobs alongside their result;
    the router hands those to BackgroundTasks once the response is ready.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    def _get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking_by_id(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def _get_booking_for(self, booking_id: int, user: User) -> Booking:
        """Load a booking the user is a party to (admins see everything)"""
        booking = self._get_booking(booking_id)
        if not (user.is_admin or user.id in (booking.parent_id, booking.provider_id)):
            logger.warning(f"⚠️ User {user.id} denied access to booking {booking_id}")
            raise ForbiddenError("You do not have access to this booking")
        return booking

    @staticmethod
    def _require_provider_of(booking: Booking, user: User, action: str) -> None:
        if user.id != booking.provider_id:
            raise ForbiddenError(f"Only the booking's provider can {action}")

    @staticmethod
    def _cancelled_by(booking: Booking, user: User, requested: Optional[str]) -> str:
        """Derive who is cancelling from the caller; an explicit value must agree"""
        if user.id == booking.parent_id:
            actor = "parent"
        elif user.id == booking.provider_id:
            actor = "provider"
        else:
            actor = "admin"
        if requested and requested != actor:
            raise ValidationError(f"cancelledBy must be '{actor}' for this user")
        return actor

    def _apply(self, booking: Booking, expected: Iterable[str], **changes) -> None:
        """Compare-and-set plus commit; a lost race leaves the booking untouched"""
        try:
            if not self.repo.compare_and_set(self.db, booking, expected, **changes):
                self.db.rollback()
                logger.warning(f"⚠️ Booking {booking.id} changed concurrently; update to {changes.get('status')} dropped")
                raise StateError("Booking was updated by another request. Please refresh and try again.")
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update booking {booking.id}: {e}")
            raise InternalError("Failed to update booking. Please try again.") from e
        self.db.refresh(booking)

    # ------------------------------------------------------------------
    # Creation and queries
    # ------------------------------------------------------------------

    def create_booking(self, data: BookingCreate, user: User) -> tuple[Booking, list[QueuedJob]]:
        """Create a pending booking after the overlap check"""
        logger.info(f"📥 Creating booking: parent {data.parentId} -> provider {data.providerId} on {data.date}")

        if user.id != data.parentId and not user.is_admin:
            raise ForbiddenError("You can only create bookings for yourself")

        if to_minutes(data.endTime) <= to_minutes(data.startTime):
            raise ValidationError("End time must be after start time")

        parent = self.repo.get_user(self.db, data.parentId)
        if not parent:
            raise NotFoundError("Parent not found")

        provider = self.repo.lock_provider(self.db, data.providerId)
        if not provider:
            self.db.rollback()
            raise NotFoundError("Provider not found")
        if provider.role != ROLE_PROVIDER:
            self.db.rollback()
            raise ValidationError("Selected user is not a provider")

        existing = self.repo.get_blocking_bookings(self.db, provider.id, data.date)
        clash = find_overlap(data.startTime, data.endTime, existing)
        if clash:
            self.db.rollback()
            logger.warning(
                f"⚠️ Slot conflict for provider {provider.id} on {data.date}: "
                f"{data.startTime}-{data.endTime} overlaps {clash.booking_ref}"
            )
            raise ConflictError(
                "This provider is already booked for the selected time slot. Please choose a different time."
            )

        try:
            booking = self.repo.create_booking(
                self.db,
                parent_id=parent.id,
                provider_id=provider.id,
                date=data.date,
                start_time=data.startTime,
                end_time=data.endTime,
                total_hours=data.totalHours,
                children=[child.model_dump() for child in data.children],
                number_of_children=data.numberOfChildren,
                children_ages=data.childrenAges,
                address=data.address.model_dump() if data.address else {},
                special_instructions=data.specialInstructions,
                hourly_rate=data.hourlyRate,
                total_amount=data.totalAmount,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create booking: {e}")
            raise InternalError("Failed to create booking. Please try again.") from e

        logger.info(f"✅ Booking {booking.booking_ref} created (id {booking.id})")
        return booking, push_jobs(new_booking_notifications(booking, parent))

    def _list(self, user: User, owner_id: int, role: str, status: Optional[str], page: int, limit: int):
        if user.id != owner_id and not user.is_admin:
            raise ForbiddenError("You can only view your own bookings")
        if status and status not in BOOKING_STATUSES:
            raise ValidationError(f"Invalid status filter. Must be one of: {', '.join(BOOKING_STATUSES)}")

        filters = {"parent_id": owner_id} if role == "parent" else {"provider_id": owner_id}
        bookings, total = self.repo.list_bookings(self.db, status=status, page=page, limit=limit, **filters)
        return bookings, pagination(total, page, limit)

    def list_for_parent(
        self, parent_id: int, user: User, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Booking], dict]:
        return self._list(user, parent_id, "parent", status, page, limit)

    def list_for_provider(
        self, provider_id: int, user: User, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Booking], dict]:
        return self._list(user, provider_id, "provider", status, page, limit)

    def get_booking(self, booking_id: int, user: User) -> Booking:
        return self._get_booking_for(booking_id, user)

    def get_booked_slots(self, provider_id: int, booking_date: date) -> list[dict]:
        """Time ranges already held on a provider's calendar for one day"""
        provider = self.repo.get_user(self.db, provider_id)
        if not provider or provider.role != ROLE_PROVIDER:
            raise NotFoundError("Provider not found")
        return [
            {"startTime": b.start_time, "endTime": b.end_time}
            for b in self.repo.get_blocking_bookings(self.db, provider_id, booking_date)
        ]

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def _check_cancellation_cutoff(self, booking: Booking, now: Optional[datetime] = None) -> None:
        if within_cancellation_cutoff(booking.date, booking.start_time, now):
            logger.warning(f"⚠️ Late cancellation refused for booking {booking.booking_ref}")
            raise StateError(
                f"Bookings cannot be cancelled within {CANCELLATION_CUTOFF_HOURS:g} hours of the start time"
            )

    def update_status(
        self, booking_id: int, data: StatusUpdate, user: User, now: Optional[datetime] = None
    ) -> tuple[Booking, list[QueuedJob]]:
        booking = self._get_booking_for(booking_id, user)
        current, target = booking.status, data.status

        if not validate_status_transition(current, target):
            logger.warning(f"⚠️ Rejected transition {current} -> {target} for booking {booking.booking_ref}")
            raise StateError(f"Cannot change booking status from {current} to {target}")

        if target in PROVIDER_ACTIONS and not user.is_admin:
            self._require_provider_of(booking, user, f"mark this booking {target}")

        if target == COMPLETED:
            if not user.is_admin:
                raise StateError(
                    "Bookings are completed through OTP or QR verification. Please use the completion flow."
                )
            return self._complete(booking, (current,), description=f"Booking {booking.booking_ref} completed by admin")

        if target == CANCELLED and not user.is_admin:
            self._check_cancellation_cutoff(booking, now)

        changes = {"status": target}
        if target == CONFIRMED:
            changes["confirmed_at"] = utcnow()
        elif target == CANCELLED:
            changes["cancelled_by"] = self._cancelled_by(booking, user, data.cancelledBy)
            changes["cancellation_reason"] = data.cancellationReason
            changes["cancelled_at"] = utcnow()

        self._apply(booking, (current,), **changes)
        logger.info(f"✅ Booking {booking.booking_ref} status: {current} -> {target} (by user {user.id})")

        if target == CONFIRMED:
            jobs = push_jobs(booking_confirmed_notifications(booking, booking.provider))
        elif target == REJECTED:
            jobs = push_jobs(booking_rejected_notifications(booking, booking.provider, data.cancellationReason))
        elif target == CANCELLED:
            jobs = push_jobs(booking_cancelled_notifications(booking, booking.cancelled_by))
        else:
            jobs = []
        return booking, jobs

    def cancel_booking(
        self, booking_id: int, data: CancelRequest, user: User, now: Optional[datetime] = None
    ) -> tuple[Booking, list[QueuedJob]]:
        """Cancel a booking that is not terminal and starts beyond the cutoff"""
        booking = self._get_booking_for(booking_id, user)
        current = booking.status

        if is_terminal(current):
            raise StateError(f"Cannot cancel a booking that is already {current}")

        self._check_cancellation_cutoff(booking, now)

        cancelled_by = self._cancelled_by(booking, user, data.cancelledBy)
        self._apply(
            booking,
            (current,),
            status=CANCELLED,
            cancelled_by=cancelled_by,
            cancellation_reason=data.reason,
            cancelled_at=utcnow(),
        )
        logger.info(f"🚫 Booking {booking.booking_ref} cancelled by {cancelled_by}")
        return booking, push_jobs(booking_cancelled_notifications(booking, cancelled_by))

    # ------------------------------------------------------------------
    # Completion verification
    # ------------------------------------------------------------------

    def send_completion_otp(self, booking_id: int, user: User) -> tuple[Booking, str, list[QueuedJob]]:
        booking = self._get_booking_for(booking_id, user)
        self._require_provider_of(booking, user, "request the completion OTP")

        if not is_completable(booking.status):
            raise StateError("OTP can only be sent for confirmed or in-progress bookings")

        otp = issue_completion_otp(booking)
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"🔐 Completion OTP issued for booking {booking.booking_ref}")
        return booking, otp, [sms_otp_job(booking.id, otp)]

    def verify_completion_otp(self, booking_id: int, otp: str, user: User) -> Booking:
        booking = self._get_booking_for(booking_id, user)
        self._require_provider_of(booking, user, "verify the completion OTP")

        if not is_completable(booking.status):
            raise StateError(f"Cannot verify OTP for a booking that is {booking.status}")

        try:
            check_completion_otp(booking, otp)
        except InvalidCodeError:
            # Persist the attempt counter (or the discarded code)
            self.db.commit()
            raise

        booking.completion_otp_verified = True
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"✅ Completion OTP verified for booking {booking.booking_ref}")
        return booking

    def complete_booking(
        self, booking_id: int, verification_image: str, user: User
    ) -> tuple[Booking, list[QueuedJob]]:
        booking = self._get_booking_for(booking_id, user)
        self._require_provider_of(booking, user, "complete this booking")

        if booking.status == COMPLETED:
            raise StateError("Booking is already completed")
        if not is_completable(booking.status):
            raise StateError(f"Cannot complete a booking that is {booking.status}")
        if not booking.completion_otp_verified:
            raise ValidationError("Please verify OTP first")
        if not verification_image or not verification_image.strip():
            raise ValidationError("Verification image is required")

        return self._complete(
            booking,
            COMPLETABLE_STATUSES,
            verification_image=verification_image,
            description=f"Earnings from booking {booking.booking_ref}",
        )

    def generate_qr(self, booking_id: int, user: User) -> tuple[Booking, str]:
        booking = self._get_booking_for(booking_id, user)
        if user.id != booking.parent_id:
            raise ForbiddenError("Only the parent who made the booking can generate its QR code")

        if not is_completable(booking.status):
            raise StateError("QR code can only be generated for confirmed or in-progress bookings")

        token = issue_qr_token(booking)
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"🔳 QR token issued for booking {booking.booking_ref}")
        return booking, token

    def redeem_qr(self, qr_token: str, user: User) -> tuple[Booking, list[QueuedJob]]:
        booking = self.repo.get_booking_by_qr_token(self.db, qr_token)
        if not booking:
            raise InvalidCodeError("Invalid QR code")

        if user.id != booking.provider_id:
            logger.warning(f"⚠️ User {user.id} scanned QR for booking {booking.booking_ref} they do not serve")
            raise ForbiddenError("This QR code belongs to another provider's booking")

        if qr_token_expired(booking):
            raise ExpiredError("QR code has expired. Please ask the parent to generate a new one.")

        if not is_completable(booking.status):
            raise StateError(f"Cannot complete a booking that is {booking.status}")

        return self._complete(
            booking, COMPLETABLE_STATUSES, description=f"Earnings from booking {booking.booking_ref}"
        )

    def _complete(
        self,
        booking: Booking,
        expected: Iterable[str],
        verification_image: Optional[str] = None,
        description: str = "",
    ) -> tuple[Booking, list[QueuedJob]]:
        """
        Completion unit shared by the OTP, QR and admin paths.

        The status change, the provider balance increments and the earning
        transaction commit together or not at all.
        """
        now = utcnow()
        changes = {
            "status": COMPLETED,
            "completed_at": now,
            "verified_at": now,
            "completion_otp_verified": True,
            "completion_otp": None,
            "completion_otp_expires_at": None,
            "qr_token": None,
            "qr_expires_at": None,
            "payment_status": "paid",
            "paid_at": now,
        }
        if verification_image:
            changes["verification_image"] = verification_image

        booking_ref = booking.booking_ref
        try:
            # Completions for one provider serialize on the provider row, so a
            # missing profile row is created exactly once
            self.repo.lock_provider(self.db, booking.provider_id)
            if not self.repo.compare_and_set(self.db, booking, expected, **changes):
                self.db.rollback()
                logger.warning(f"⚠️ Booking {booking_ref} was completed or moved concurrently")
                raise StateError("Booking is no longer in a completable state")
            credit_provider_earnings(self.db, booking, description)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Completion of booking {booking_ref} rolled back: {e}")
            raise InternalError("Failed to complete booking. Please try again.") from e

        self.db.refresh(booking)
        logger.info(f"🎉 Booking {booking_ref} completed")
        return booking, push_jobs(booking_completed_notifications(booking, booking.provider))

    # ------------------------------------------------------------------
    # Ratings and earnings
    # ------------------------------------------------------------------

    def rate_booking(self, booking_id: int, data: RatingRequest, user: User) -> Booking:
        booking = self._get_booking_for(booking_id, user)

        if user.id == booking.parent_id:
            side = "parent"
        elif user.id == booking.provider_id:
            side = "provider"
        else:
            raise ForbiddenError("Only the booking's parent or provider can rate it")

        if booking.status != COMPLETED:
            raise StateError("Only completed bookings can be rated")

        provider_id = booking.provider_id
        try:
            if not self.repo.record_rating(self.db, booking, side, data.score, data.review, utcnow()):
                self.db.rollback()
                raise ConflictError("You have already rated this booking")
            if side == "parent":
                self.repo.add_provider_review(self.db, provider_id, data.score)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save rating for booking {booking_id}: {e}")
            raise InternalError("Failed to save rating. Please try again.") from e

        self.db.refresh(booking)
        logger.info(f"⭐ Booking {booking.booking_ref} rated {data.score} by {side}")
        return booking

    def get_earnings(
        self, provider_id: int, user: User, period: str = "all", page: int = 1, limit: int = 20
    ) -> dict:
        if user.id != provider_id and not user.is_admin:
            raise ForbiddenError("You can only view your own earnings")
        if period not in EARNING_PERIODS:
            raise ValidationError(f"Invalid period. Must be one of: {', '.join(EARNING_PERIODS)}")

        provider = self.repo.get_user(self.db, provider_id)
        if not provider or provider.role != ROLE_PROVIDER:
            raise NotFoundError("Provider not found")

        profile = provider.provider_profile
        now = datetime.now(timezone.utc)
        history, total = self.repo.completed_bookings_for_provider(
            self.db, provider_id, since=period_start(period, now), page=page, limit=limit
        )

        return {
            "summary": {
                "totalEarnings": profile.total_earnings if profile else 0,
                "availableBalance": profile.available_balance if profile else 0,
                "withdrawnAmount": profile.withdrawn_amount if profile else 0,
                "totalJobsCompleted": profile.total_jobs_completed if profile else 0,
                "todayEarnings": self.repo.sum_completed_amount(self.db, provider_id, period_start("today", now)),
                "weekEarnings": self.repo.sum_completed_amount(self.db, provider_id, period_start("week", now)),
                "monthEarnings": self.repo.sum_completed_amount(self.db, provider_id, period_start("month", now)),
            },
            "history": history,
            "pagination": pagination(total, page, limit),
        }
