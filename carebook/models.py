from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Roles
ROLE_PARENT = "parent"
ROLE_PROVIDER = "provider"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_PARENT, ROLE_PROVIDER, ROLE_ADMIN)

# Provider variants (one profile table instead of one collection per care type)
PROVIDER_NANNY = "nanny"
PROVIDER_DAYCARE = "daycare"
PROVIDER_ELDER_CARE = "elder_care"
PROVIDER_TYPES = (PROVIDER_NANNY, PROVIDER_DAYCARE, PROVIDER_ELDER_CARE)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    phone_number = Column(String(20), unique=True, index=True, nullable=False)
    country_code = Column(String(5), default="+91", nullable=False)
    name = Column(String(255), default="", nullable=False)
    email = Column(String(255), nullable=True)
    profile_image_url = Column(String(500), nullable=True)
    role = Column(String(20), default=ROLE_PARENT, nullable=False)  # parent, provider, admin
    is_verified = Column(Boolean, default=False, nullable=False)
    is_deactivated = Column(Boolean, default=False, nullable=False)
    # Push delivery
    fcm_token = Column(String(500), nullable=True)
    push_notifications_enabled = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider_profile = relationship(
        "ProviderProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def is_provider(self) -> bool:
        return self.role == ROLE_PROVIDER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class ProviderProfile(Base):
    """Typed provider sub-record: profile fields plus the running earnings balances"""

    __tablename__ = "provider_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    provider_type = Column(String(20), default=PROVIDER_NANNY, nullable=False)
    bio = Column(Text, default="", nullable=False)
    experience_years = Column(Integer, default=0, nullable=False)
    hourly_rate = Column(Float, default=0, nullable=False)
    rating = Column(Float, default=0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    is_verified_provider = Column(Boolean, default=False, nullable=False)
    is_available_now = Column(Boolean, default=True, nullable=False)
    # Earnings ledger balances; only moved by booking completion
    total_earnings = Column(Float, default=0, nullable=False)
    available_balance = Column(Float, default=0, nullable=False)
    withdrawn_amount = Column(Float, default=0, nullable=False)
    total_jobs_completed = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="provider_profile")
