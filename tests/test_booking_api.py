from conftest import booking_payload, future_date


def test_create_booking(client, act_as, parent, provider, queued_jobs):
    act_as(parent)
    response = client.post("/bookings", json=booking_payload(parent, provider))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["status"] == "pending"
    assert data["bookingId"].startswith("WC")
    assert data["parentId"] == parent.id
    assert data["provider"]["name"] == "Meera Nair"
    assert data["provider"]["providerType"] == "nanny"
    assert data["payment"] == {
        "status": "pending",
        "method": "cash",
        "paidAt": None,
        "transactionId": None,
        "orderId": None,
    }
    assert data["children"][0]["name"] == "Anu"

    assert len(queued_jobs) == 1
    job = queued_jobs[0]
    assert job.function == "send_push_notification_task"
    assert job.args[0] == provider.id
    assert job.args[1]["data"]["type"] == "new_booking"


def test_overlapping_booking_is_rejected(client, act_as, parent, other_parent, provider, queued_jobs):
    act_as(parent)
    assert client.post("/bookings", json=booking_payload(parent, provider)).status_code == 201

    act_as(other_parent)
    response = client.post(
        "/bookings", json=booking_payload(other_parent, provider, startTime="16:00", endTime="18:00")
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "already booked" in response.json()["message"]
    assert len(queued_jobs) == 1


def test_short_booking_inside_existing_slot_is_rejected(client, act_as, parent, provider, make_booking):
    make_booking(status="confirmed", start_time="09:00", end_time="10:00")
    act_as(parent)

    response = client.post("/bookings", json=booking_payload(parent, provider, startTime="09:15", endTime="09:45"))

    assert response.status_code == 400
    assert "already booked" in response.json()["message"]


def test_adjacent_and_other_day_bookings_are_allowed(client, act_as, parent, provider):
    act_as(parent)
    assert client.post("/bookings", json=booking_payload(parent, provider)).status_code == 201

    evening = booking_payload(parent, provider, startTime="5:00 PM", endTime="8:00 PM")
    assert client.post("/bookings", json=evening).status_code == 201

    next_day = booking_payload(parent, provider, date=future_date(8).isoformat())
    assert client.post("/bookings", json=next_day).status_code == 201


def test_cancelled_booking_frees_the_slot(client, act_as, parent, provider, make_booking):
    make_booking(status="cancelled")
    act_as(parent)
    assert client.post("/bookings", json=booking_payload(parent, provider)).status_code == 201


def test_in_progress_booking_does_not_block(client, act_as, parent, provider, make_booking):
    make_booking(status="in-progress")
    act_as(parent)
    assert client.post("/bookings", json=booking_payload(parent, provider)).status_code == 201


def test_create_rejects_end_before_start(client, act_as, parent, provider):
    act_as(parent)
    response = client.post(
        "/bookings", json=booking_payload(parent, provider, startTime="17:00", endTime="09:00")
    )
    assert response.status_code == 400
    assert response.json()["message"] == "End time must be after start time"


def test_create_rejects_unparseable_time(client, act_as, parent, provider):
    act_as(parent)
    response = client.post("/bookings", json=booking_payload(parent, provider, startTime="morning"))
    assert response.status_code == 400
    assert "Invalid time format" in response.json()["message"]


def test_create_with_unknown_provider(client, act_as, parent, provider):
    act_as(parent)
    payload = booking_payload(parent, provider, providerId=9999)
    response = client.post("/bookings", json=payload)
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Provider not found"}


def test_create_with_non_provider(client, act_as, parent, other_parent):
    act_as(parent)
    response = client.post("/bookings", json=booking_payload(parent, other_parent))
    assert response.status_code == 400
    assert response.json()["message"] == "Selected user is not a provider"


def test_create_for_someone_else_is_forbidden(client, act_as, parent, other_parent, provider):
    act_as(other_parent)
    response = client.post("/bookings", json=booking_payload(parent, provider))
    assert response.status_code == 403


def test_request_validation_uses_envelope(client, act_as, parent, provider):
    act_as(parent)
    response = client.post("/bookings", json=booking_payload(parent, provider, totalHours=0))
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert body["errors"][0]["field"] == "totalHours"


def test_unauthenticated_request(client, parent):
    response = client.get(f"/bookings/parent/{parent.id}")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_list_parent_bookings_newest_first_with_pagination(client, act_as, parent, make_booking):
    ids = [make_booking(date=future_date(days)).id for days in (3, 4, 5)]
    act_as(parent)

    response = client.get(f"/bookings/parent/{parent.id}", params={"page": 1, "limit": 2})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [b["id"] for b in data["bookings"]] == [ids[2], ids[1]]
    assert data["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}

    second = client.get(f"/bookings/parent/{parent.id}", params={"page": 2, "limit": 2}).json()["data"]
    assert [b["id"] for b in second["bookings"]] == [ids[0]]


def test_list_filters_by_status(client, act_as, provider, make_booking):
    make_booking(status="pending")
    confirmed = make_booking(status="confirmed", date=future_date(9))
    act_as(provider)

    response = client.get(f"/bookings/provider/{provider.id}", params={"status": "confirmed"})

    bookings = response.json()["data"]["bookings"]
    assert [b["id"] for b in bookings] == [confirmed.id]


def test_list_rejects_unknown_status(client, act_as, parent):
    act_as(parent)
    response = client.get(f"/bookings/parent/{parent.id}", params={"status": "done"})
    assert response.status_code == 400
    assert "Invalid status filter" in response.json()["message"]


def test_list_other_users_bookings_is_forbidden(client, act_as, parent, other_parent):
    act_as(other_parent)
    assert client.get(f"/bookings/parent/{parent.id}").status_code == 403


def test_admin_can_list_any_users_bookings(client, act_as, admin, parent, make_booking):
    make_booking()
    act_as(admin)
    response = client.get(f"/bookings/parent/{parent.id}")
    assert response.json()["data"]["pagination"]["total"] == 1


def test_get_booking_is_stable_between_mutations(client, act_as, parent, make_booking):
    booking = make_booking()
    act_as(parent)

    first = client.get(f"/bookings/{booking.id}")
    second = client.get(f"/bookings/{booking.id}")

    assert first.status_code == 200
    assert first.json() == second.json()


def test_get_missing_booking(client, act_as, parent):
    act_as(parent)
    response = client.get("/bookings/424242")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Booking not found"}


def test_get_booking_of_another_party_is_forbidden(client, act_as, other_parent, make_booking):
    booking = make_booking()
    act_as(other_parent)
    assert client.get(f"/bookings/{booking.id}").status_code == 403


def test_booked_slots(client, act_as, parent, provider, make_booking):
    make_booking(status="pending", start_time="09:00", end_time="11:00")
    make_booking(status="confirmed", start_time="2:00 PM", end_time="4:00 PM")
    make_booking(status="cancelled", start_time="18:00", end_time="20:00")
    make_booking(status="pending", start_time="09:00", end_time="10:00", date=future_date(10))
    act_as(parent)

    response = client.get(
        f"/bookings/provider/{provider.id}/booked-slots", params={"date": future_date().isoformat()}
    )

    assert response.status_code == 200
    assert response.json()["data"] == [
        {"startTime": "09:00", "endTime": "11:00"},
        {"startTime": "2:00 PM", "endTime": "4:00 PM"},
    ]
