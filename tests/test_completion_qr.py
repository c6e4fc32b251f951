from datetime import timedelta

from conftest import reload

from carebook.domain.bookings.verification import utcnow
from carebook.models import ProviderProfile
from carebook.models_booking import Booking, Transaction


def generate_qr(client, booking_id):
    response = client.post(f"/bookings/{booking_id}/generate-qr")
    assert response.status_code == 200, response.json()
    return response.json()["data"]["qrToken"]


def test_parent_generates_qr(client, act_as, parent, make_booking):
    booking = make_booking(status="confirmed")
    act_as(parent)

    response = client.post(f"/bookings/{booking.id}/generate-qr")

    data = response.json()["data"]
    assert len(data["qrToken"]) == 64
    assert data["expiresAt"] is not None


def test_provider_cannot_generate_qr(client, act_as, provider, make_booking):
    booking = make_booking(status="confirmed")
    act_as(provider)
    assert client.post(f"/bookings/{booking.id}/generate-qr").status_code == 403


def test_generate_qr_requires_completable_status(client, act_as, parent, make_booking):
    booking = make_booking(status="pending")
    act_as(parent)
    response = client.post(f"/bookings/{booking.id}/generate-qr")
    assert response.status_code == 400


def test_regenerating_replaces_token(client, act_as, parent, provider, make_booking):
    booking = make_booking(status="confirmed")
    act_as(parent)
    first = generate_qr(client, booking.id)
    second = generate_qr(client, booking.id)
    assert first != second

    act_as(provider)
    response = client.post("/bookings/verify-qr", json={"qrToken": first})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid QR code"


def test_redeem_completes_booking_and_credits_once(
    client, act_as, db, parent, provider, make_booking, queued_jobs
):
    booking = make_booking(status="confirmed", total_amount=750)
    act_as(parent)
    token = generate_qr(client, booking.id)

    act_as(provider)
    response = client.post("/bookings/verify-qr", json={"qrToken": token})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["payment"]["status"] == "paid"
    assert data["completion"]["otpVerified"] is True

    stored = reload(db, Booking, booking.id)
    assert stored.qr_token is None

    profile = db.query(ProviderProfile).filter(ProviderProfile.user_id == provider.id).one()
    assert profile.total_earnings == 750
    assert profile.available_balance == 750
    assert profile.total_jobs_completed == 1
    assert sorted(job.args[0] for job in queued_jobs) == sorted([parent.id, provider.id])

    second = client.post("/bookings/verify-qr", json={"qrToken": token})
    assert second.status_code == 400
    assert second.json()["message"] == "Invalid QR code"
    assert reload(db, ProviderProfile, profile.id).total_earnings == 750
    assert db.query(Transaction).filter(Transaction.booking_id == booking.id).count() == 1


def test_unknown_token(client, act_as, provider):
    act_as(provider)
    response = client.post("/bookings/verify-qr", json={"qrToken": "f" * 64})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid QR code"


def test_expired_token(client, act_as, db, parent, provider, make_booking):
    booking = make_booking(status="confirmed")
    act_as(parent)
    token = generate_qr(client, booking.id)

    stored = reload(db, Booking, booking.id)
    stored.qr_expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    act_as(provider)
    response = client.post("/bookings/verify-qr", json={"qrToken": token})

    assert response.status_code == 400
    assert "expired" in response.json()["message"]
    assert reload(db, Booking, booking.id).status == "confirmed"


def test_other_provider_cannot_redeem(client, act_as, parent, other_provider, make_booking):
    booking = make_booking(status="confirmed")
    act_as(parent)
    token = generate_qr(client, booking.id)

    act_as(other_provider)
    response = client.post("/bookings/verify-qr", json={"qrToken": token})

    assert response.status_code == 403


def test_token_for_booking_no_longer_completable(client, act_as, db, parent, provider, make_booking):
    booking = make_booking(status="confirmed")
    act_as(parent)
    token = generate_qr(client, booking.id)

    # Cancelled after the code was generated
    stored = reload(db, Booking, booking.id)
    stored.status = "cancelled"
    db.commit()

    act_as(provider)
    response = client.post("/bookings/verify-qr", json={"qrToken": token})

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot complete a booking that is cancelled"


def test_otp_after_qr_completion_is_refused(client, act_as, db, parent, provider, make_booking):
    booking = make_booking(status="confirmed", total_amount=500)
    act_as(provider)
    otp = client.post(f"/bookings/{booking.id}/send-completion-otp").json()["data"]["testOtp"]
    client.post(f"/bookings/{booking.id}/verify-completion-otp", json={"otp": otp})

    act_as(parent)
    token = generate_qr(client, booking.id)
    act_as(provider)
    assert client.post("/bookings/verify-qr", json={"qrToken": token}).status_code == 200

    response = client.post(
        f"/bookings/{booking.id}/complete", json={"verificationImage": "https://cdn.example.com/p.jpg"}
    )

    assert response.status_code == 400
    profile = db.query(ProviderProfile).filter(ProviderProfile.user_id == provider.id).one()
    assert profile.total_earnings == 500
    assert profile.total_jobs_completed == 1
