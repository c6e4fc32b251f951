import importlib

import dotenv
from fastapi.testclient import TestClient

from carebook import config
from carebook import main as app_module
from carebook.domain.bookings.service import BookingService
from carebook.main import app


def test_environment_defaults_to_production(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setattr(dotenv, "load_dotenv", lambda *args, **kwargs: False)
    try:
        importlib.reload(config)
        assert config.ENVIRONMENT == "production"
        assert config.IS_DEVELOPMENT is False
    finally:
        monkeypatch.undo()
        importlib.reload(config)


def test_unhandled_error_hides_detail_outside_development(client, act_as, parent, monkeypatch):
    def broken(self, booking_id, user):
        raise RuntimeError("connection to db-primary:5432 refused")

    monkeypatch.setattr(BookingService, "get_booking", broken)
    monkeypatch.setattr(app_module, "IS_DEVELOPMENT", False)
    act_as(parent)

    response = TestClient(app, raise_server_exceptions=False).get("/bookings/1")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}


def test_missing_bearer_token_is_401():
    response = TestClient(app).get("/users/me")

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert "Bearer token" in response.json()["message"]


def test_health():
    assert TestClient(app).get("/health").status_code == 200
