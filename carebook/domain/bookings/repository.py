"""Booking repository - Database operations for bookings"""

from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from ...models import ProviderProfile, User
from ...models_booking import Booking
from .state_machine import BLOCKING_STATUSES, COMPLETED


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return (
            db.query(User)
            .options(joinedload(User.provider_profile))
            .filter(User.id == user_id)
            .first()
        )

    @staticmethod
    def lock_provider(db: Session, provider_id: int) -> Optional[User]:
        """Row-lock the provider so overlap check and insert serialize per provider"""
        return db.query(User).filter(User.id == provider_id).with_for_update().first()

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: int) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.parent), joinedload(Booking.provider))
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_booking_by_qr_token(db: Session, qr_token: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.qr_token == qr_token).first()

    @staticmethod
    def get_blocking_bookings(db: Session, provider_id: int, booking_date: date) -> list[Booking]:
        """Bookings that hold the provider's time on a date"""
        return (
            db.query(Booking)
            .filter(
                Booking.provider_id == provider_id,
                Booking.date == booking_date,
                Booking.status.in_(BLOCKING_STATUSES),
            )
            .order_by(Booking.id.asc())
            .all()
        )

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        """Create a new booking"""
        booking = Booking(**booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def list_bookings(
        db: Session,
        parent_id: Optional[int] = None,
        provider_id: Optional[int] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Booking], int]:
        """Newest-first page of bookings plus the total match count"""
        query = db.query(Booking)
        if parent_id is not None:
            query = query.filter(Booking.parent_id == parent_id)
        if provider_id is not None:
            query = query.filter(Booking.provider_id == provider_id)
        if status:
            query = query.filter(Booking.status == status)

        total = query.count()
        bookings = (
            query.options(joinedload(Booking.parent), joinedload(Booking.provider))
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return bookings, total

    @staticmethod
    def compare_and_set(
        db: Session, booking: Booking, expected_statuses: Iterable[str], **changes
    ) -> bool:
        """
        Apply changes only if the booking's status is still one of expected_statuses.

        Returns False when another request moved the booking first. Does not commit.
        """
        changes["updated_at"] = func.now()
        result = db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status.in_(tuple(expected_statuses)))
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        db.expire(booking)
        return True

    @staticmethod
    def record_rating(
        db: Session, booking: Booking, side: str, score: int, review: Optional[str], rated_at: datetime
    ) -> bool:
        """
        Store one side's rating ("parent" or "provider") if that side has not rated yet.

        Returns False when a rating is already present. Does not commit.
        """
        score_column = getattr(Booking, f"{side}_rating_score")
        result = db.execute(
            update(Booking)
            .where(Booking.id == booking.id, score_column.is_(None))
            .values(
                {
                    f"{side}_rating_score": score,
                    f"{side}_review": review,
                    f"{side}_rated_at": rated_at,
                }
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        db.expire(booking)
        return True

    @staticmethod
    def add_provider_review(db: Session, provider_id: int, score: int) -> None:
        """Fold one score into the provider's running average"""
        db.execute(
            update(ProviderProfile)
            .where(ProviderProfile.user_id == provider_id)
            .values(
                rating=(ProviderProfile.rating * ProviderProfile.total_reviews + score)
                / (ProviderProfile.total_reviews + 1),
                total_reviews=ProviderProfile.total_reviews + 1,
            )
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def completed_bookings_for_provider(
        db: Session,
        provider_id: int,
        since: Optional[datetime] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> tuple[list[Booking], int]:
        query = db.query(Booking).filter(
            Booking.provider_id == provider_id, Booking.status == COMPLETED
        )
        if since is not None:
            query = query.filter(Booking.completed_at >= since)

        total = query.count()
        query = query.options(joinedload(Booking.parent)).order_by(
            Booking.completed_at.desc(), Booking.id.desc()
        )
        if page is not None and limit is not None:
            query = query.offset((page - 1) * limit).limit(limit)
        return query.all(), total

    @staticmethod
    def sum_completed_amount(db: Session, provider_id: int, since: Optional[datetime] = None) -> float:
        query = db.query(func.coalesce(func.sum(Booking.total_amount), 0)).filter(
            Booking.provider_id == provider_id, Booking.status == COMPLETED
        )
        if since is not None:
            query = query.filter(Booking.completed_at >= since)
        return float(query.scalar() or 0)
