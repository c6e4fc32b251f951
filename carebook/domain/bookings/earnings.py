"""Earnings ledger - provider balances plus the append-only transaction log"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import ProviderProfile
from ...models_booking import Booking, Transaction
from .scheduling import service_timezone

logger = logging.getLogger(__name__)

EARNING_PERIODS = ("all", "today", "week", "month")


def credit_provider_earnings(db: Session, booking: Booking, description: str) -> Transaction:
    """
    Credit a completed booking to its provider.

    Increments the profile counters in SQL (no read-modify-write) and appends
    the earning transaction. Does not commit: the caller commits this together
    with the booking's status change so the ledger and the log never diverge.
    """
    amount = booking.total_amount or 0

    result = db.execute(
        update(ProviderProfile)
        .where(ProviderProfile.user_id == booking.provider_id)
        .values(
            total_earnings=ProviderProfile.total_earnings + amount,
            available_balance=ProviderProfile.available_balance + amount,
            total_jobs_completed=ProviderProfile.total_jobs_completed + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Provider account without a profile row yet
        db.add(
            ProviderProfile(
                user_id=booking.provider_id,
                total_earnings=amount,
                available_balance=amount,
                total_jobs_completed=1,
            )
        )

    transaction = Transaction(
        user_id=booking.provider_id,
        type="earning",
        amount=amount,
        status="completed",
        description=description,
        booking_id=booking.id,
    )
    db.add(transaction)
    logger.info(f"💰 Credited {amount} to provider {booking.provider_id} for booking {booking.booking_ref}")
    return transaction


def period_start(period: str, now: datetime) -> Optional[datetime]:
    """
    Lower bound on completed_at for an earnings period ("all" has none).

    Day and month boundaries follow SERVICE_TIMEZONE. The result is naive UTC,
    matching how completed_at is stored.
    """
    local_now = now.astimezone(service_timezone())
    if period == "today":
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif period == "week":
        start = local_now - timedelta(days=7)
    elif period == "month":
        start = local_now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    else:
        return None
    return start.astimezone(timezone.utc).replace(tzinfo=None)
