import os
from datetime import date, timedelta

# Configure an in-memory database before the app modules read the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from fastapi import Depends, HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import carebook.domain.bookings.router as bookings_routes
from carebook.auth import get_current_user
from carebook.database import Base, SessionLocal, engine, get_db
from carebook.main import app
from carebook.models import ROLE_ADMIN, ROLE_PARENT, ROLE_PROVIDER, ProviderProfile, User
from carebook.models_booking import Booking


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_user(db: Session, uid: str, phone: str, name: str, role: str = ROLE_PARENT) -> User:
    user = User(firebase_uid=uid, phone_number=phone, name=name, role=role, is_verified=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def parent(db):
    return create_user(db, "uid-parent", "+919876543210", "Asha Rao")


@pytest.fixture
def other_parent(db):
    return create_user(db, "uid-parent-2", "+919812345678", "Kiran Mehta")


@pytest.fixture
def provider(db):
    user = create_user(db, "uid-provider", "+919900112233", "Meera Nair", ROLE_PROVIDER)
    db.add(ProviderProfile(user_id=user.id, provider_type="nanny", hourly_rate=150))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_provider(db):
    user = create_user(db, "uid-provider-2", "+919900445566", "Ravi Kumar", ROLE_PROVIDER)
    db.add(ProviderProfile(user_id=user.id, provider_type="elder_care", hourly_rate=200))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return create_user(db, "uid-admin", "+919800000000", "Ops Admin", ROLE_ADMIN)


@pytest.fixture
def queued_jobs(monkeypatch):
    """Record notification jobs instead of sending them to Redis"""
    jobs = []

    async def record(batch):
        jobs.extend(batch)
        return len(batch)

    monkeypatch.setattr(bookings_routes, "enqueue_jobs", record)
    return jobs


@pytest.fixture
def acting():
    return {"user_id": None}


@pytest.fixture
def act_as(acting):
    def _act_as(user):
        acting["user_id"] = user.id

    return _act_as


@pytest.fixture
def client(acting, queued_jobs):
    def current_user_override(db: Session = Depends(get_db)) -> User:
        if acting["user_id"] is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return db.get(User, acting["user_id"])

    app.dependency_overrides[get_current_user] = current_user_override
    app.dependency_overrides[bookings_routes.otp_rate_limit] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def future_date(days: int = 7) -> date:
    return date.today() + timedelta(days=days)


def booking_payload(parent: User, provider: User, **overrides) -> dict:
    payload = {
        "parentId": parent.id,
        "providerId": provider.id,
        "date": future_date().isoformat(),
        "startTime": "09:00",
        "endTime": "17:00",
        "totalHours": 8,
        "hourlyRate": 150,
        "totalAmount": 1200,
        "numberOfChildren": 1,
        "childrenAges": "4",
        "children": [{"name": "Anu", "age": 4, "gender": "female"}],
        "address": {"city": "Bengaluru", "pincode": "560001"},
        "specialInstructions": "Nap at 1pm",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_booking(db, parent, provider):
    """Insert a booking directly, bypassing the API"""

    def _make_booking(status: str = "pending", **fields) -> Booking:
        values = {
            "parent_id": parent.id,
            "provider_id": provider.id,
            "date": future_date(),
            "start_time": "09:00",
            "end_time": "17:00",
            "total_hours": 8,
            "hourly_rate": 150,
            "total_amount": 1200,
            "status": status,
        }
        values.update(fields)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make_booking


def reload(db: Session, model, pk):
    db.expire_all()
    return db.get(model, pk)
