import random
import time

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_booking_ref() -> str:
    """Human-readable booking reference, e.g. WC12345678042"""
    timestamp = str(int(time.time() * 1000))[-8:]
    suffix = str(random.randint(0, 999)).zfill(3)
    return f"WC{timestamp}{suffix}"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_ref = Column(
        String(20), unique=True, index=True, nullable=False, default=generate_booking_ref
    )
    parent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Schedule - times are kept as entered ("09:00" or "2:30 PM")
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(20), nullable=False)
    end_time = Column(String(20), nullable=False)
    total_hours = Column(Float, nullable=False)

    # Care details
    children = Column(JSON, default=list)  # [{name, age, gender}]
    number_of_children = Column(Integer, default=1, nullable=False)
    children_ages = Column(String(255), default="", nullable=False)
    address = Column(JSON, default=dict)  # {street, city, state, pincode, formattedAddress, coordinates}
    special_instructions = Column(Text, default="", nullable=False)

    # Pricing (caller supplied, never recomputed)
    hourly_rate = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, nullable=False)

    # pending, confirmed, in-progress, completed, cancelled, rejected
    status = Column(String(20), default="pending", nullable=False, index=True)

    # Cancellation
    cancelled_by = Column(String(20), nullable=True)  # parent, provider, admin
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Payment
    payment_status = Column(String(20), default="pending", nullable=False)  # pending, paid, refunded
    payment_method = Column(String(20), default="cash", nullable=False)  # cash, online, wallet
    paid_at = Column(DateTime, nullable=True)
    payment_transaction_id = Column(String(255), nullable=True)
    payment_order_id = Column(String(255), nullable=True)

    # Ratings (after completion)
    parent_rating_score = Column(Integer, nullable=True)
    parent_review = Column(Text, nullable=True)
    parent_rated_at = Column(DateTime, nullable=True)
    provider_rating_score = Column(Integer, nullable=True)
    provider_review = Column(Text, nullable=True)
    provider_rated_at = Column(DateTime, nullable=True)

    # Completion verification
    completion_otp = Column(String(10), nullable=True)
    completion_otp_expires_at = Column(DateTime, nullable=True)
    completion_otp_verified = Column(Boolean, default=False, nullable=False)
    completion_otp_attempts = Column(Integer, default=0, nullable=False)
    verification_image = Column(Text, nullable=True)  # URL or base64 proof image
    verified_at = Column(DateTime, nullable=True)
    qr_token = Column(String(64), unique=True, index=True, nullable=True)
    qr_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    confirmed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    parent = relationship("User", foreign_keys=[parent_id])
    provider = relationship("User", foreign_keys=[provider_id])
    transactions = relationship("Transaction", back_populates="booking")


class Transaction(Base):
    """Append-only earnings ledger entry"""

    __tablename__ = "transactions"
    __table_args__ = (UniqueConstraint("booking_id", "type", name="uq_transactions_booking_type"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, index=True)  # earning, withdrawal, refund
    amount = Column(Float, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, failed, cancelled
    description = Column(String(500), default="", nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="transactions")
