import asyncio

import pytest
from conftest import reload
from firebase_admin import messaging

from carebook import worker
from carebook.models import User
from carebook.services import notification_queue, notification_service, sms_service
from carebook.services.notification_queue import QueuedJob, enqueue_jobs

NOTIFICATION = {"title": "✅ Booking Confirmed!", "body": "See you soon", "data": {"bookingId": 7}}


@pytest.fixture
def sent_messages(monkeypatch):
    """Capture FCM sends instead of calling Firebase"""
    sent = []

    def fake_send(message, app=None):
        sent.append(message)
        return f"projects/carebook/messages/{len(sent)}"

    monkeypatch.setattr(notification_service, "get_firebase_app", lambda: None)
    monkeypatch.setattr(messaging, "send", fake_send)
    return sent


def test_send_to_user_delivers_to_registered_token(db, parent, sent_messages):
    parent.fcm_token = "device-token-1"
    db.commit()

    result = notification_service.send_to_user(db, parent.id, NOTIFICATION)

    assert result == {"success": True, "messageId": "projects/carebook/messages/1"}
    message = sent_messages[0]
    assert message.token == "device-token-1"
    assert message.notification.title == "✅ Booking Confirmed!"
    assert message.data == {"bookingId": "7"}
    assert message.android.priority == "high"


def test_send_to_user_without_token(db, parent, sent_messages):
    result = notification_service.send_to_user(db, parent.id, NOTIFICATION)
    assert result == {"success": False, "reason": "No FCM token"}
    assert sent_messages == []


def test_send_to_user_respects_opt_out(db, parent, sent_messages):
    parent.fcm_token = "device-token-1"
    parent.push_notifications_enabled = False
    db.commit()

    result = notification_service.send_to_user(db, parent.id, NOTIFICATION)

    assert result["reason"] == "Notifications disabled"
    assert sent_messages == []


def test_unregistered_token_is_cleared(db, parent, monkeypatch):
    def unregistered(message, app=None):
        raise messaging.UnregisteredError("Requested entity was not found.")

    monkeypatch.setattr(notification_service, "get_firebase_app", lambda: None)
    monkeypatch.setattr(messaging, "send", unregistered)
    parent.fcm_token = "stale-token"
    db.commit()

    result = notification_service.send_to_user(db, parent.id, NOTIFICATION)

    assert result["success"] is False
    assert result["tokenInvalid"] is True
    assert reload(db, User, parent.id).fcm_token is None


def test_delivery_failure_is_reported_not_raised(db, parent, monkeypatch):
    def broken(message, app=None):
        raise RuntimeError("FCM unavailable")

    monkeypatch.setattr(notification_service, "get_firebase_app", lambda: None)
    monkeypatch.setattr(messaging, "send", broken)
    parent.fcm_token = "device-token-1"
    db.commit()

    result = notification_service.send_to_user(db, parent.id, NOTIFICATION)

    assert result == {"success": False, "error": "FCM unavailable"}


def test_cancel_notification_goes_to_the_other_party(make_booking, parent, provider):
    booking = make_booking()
    assert [uid for uid, _ in notification_service.booking_cancelled_notifications(booking, "parent")] == [
        provider.id
    ]
    assert [uid for uid, _ in notification_service.booking_cancelled_notifications(booking, "provider")] == [
        parent.id
    ]


def test_enqueue_skips_failures(monkeypatch):
    class FlakyPool:
        def __init__(self):
            self.calls = []

        async def enqueue_job(self, function, *args):
            self.calls.append(function)
            if len(self.calls) == 1:
                raise ConnectionError("redis down")

    pool = FlakyPool()

    async def get_pool():
        return pool

    monkeypatch.setattr(notification_queue, "get_pool", get_pool)
    jobs = [QueuedJob("send_push_notification_task", (1, NOTIFICATION))] * 2

    assert asyncio.run(enqueue_jobs(jobs)) == 1
    assert pool.calls == ["send_push_notification_task", "send_push_notification_task"]


def test_enqueue_is_bounded_by_timeout(monkeypatch):
    async def hanging_pool():
        await asyncio.sleep(10)

    monkeypatch.setattr(notification_queue, "get_pool", hanging_pool)
    monkeypatch.setattr(notification_queue, "NOTIFICATION_ENQUEUE_TIMEOUT", 0.05)

    assert asyncio.run(enqueue_jobs([QueuedJob("send_push_notification_task", (1, NOTIFICATION))])) == 0


def test_sms_job_skips_superseded_code(make_booking):
    booking = make_booking(status="confirmed", completion_otp="654321")

    result = asyncio.run(worker.send_completion_otp_sms_task({}, booking.id, "123456"))

    assert result == {"sms_sent": False, "error": "Superseded"}


def test_sms_job_without_twilio_config(make_booking, monkeypatch):
    monkeypatch.setattr(sms_service, "TWILIO_ACCOUNT_SID", None)
    booking = make_booking(status="confirmed", completion_otp="654321")

    result = asyncio.run(worker.send_completion_otp_sms_task({}, booking.id, "654321"))

    assert result == {"sms_sent": False, "error": "SMS disabled"}
