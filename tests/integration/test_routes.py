"""Tests for the HTTP surface: status mapping and request validation."""

import uuid

import pytest

API = "/api/v1"


def booking_body(start: str, end: str, **kw) -> dict:
    body = {
        "start": start,
        "end": end,
        "staff_id": "dr-a",
        "room_id": "room-1",
        "patient_id": str(uuid.uuid4()),
    }
    body.update(kw)
    return body


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get(f"{API}/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestResources:
    @pytest.mark.asyncio
    async def test_register_resource(self, client):
        response = await client.post(f"{API}/resources", json={"id": "room-3", "kind": "room", "name": "Surgery"})
        assert response.status_code == 201
        assert response.json()["kind"] == "room"

    @pytest.mark.asyncio
    async def test_unknown_kind_rejected(self, client):
        response = await client.post(f"{API}/resources", json={"id": "x", "kind": "vehicle"})
        assert response.status_code == 422


class TestBookings:
    @pytest.mark.asyncio
    async def test_reserve_get_cancel(self, client):
        response = await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))
        assert response.status_code == 201
        booking = response.json()
        assert booking["status"] == "confirmed"

        response = await client.get(f"{API}/bookings/{booking['id']}")
        assert response.status_code == 200

        response = await client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "owner called"})
        assert response.status_code == 200
        assert response.json()["cancel_reason"] == "owner called"

        # idempotent
        response = await client.post(f"{API}/bookings/{booking['id']}/cancel")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_conflict_carries_alternatives(self, client):
        await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z"))
        response = await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["kind"] == "conflict"
        assert detail["resource_id"] == "dr-a"
        assert [a["start"] for a in detail["alternatives"]] == [
            "2030-01-07T09:30:00Z",
            "2030-01-07T09:15:00Z",
            "2030-01-07T09:00:00Z",
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end,kind", [
        ("2030-01-07T10:00:00Z", "2030-01-07T10:05:00Z", "duration_invalid"),
        ("2030-01-07T19:00:00Z", "2030-01-07T19:30:00Z", "outside_business_hours"),
        ("2030-12-25T10:00:00Z", "2030-12-25T10:30:00Z", "holiday"),
    ])
    async def test_policy_violations_are_422(self, client, start, end, kind):
        response = await client.post(f"{API}/bookings", json=booking_body(start, end))
        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == kind

    @pytest.mark.asyncio
    async def test_malformed_input_is_422(self, client):
        response = await client.post(f"{API}/bookings", json=booking_body("2030-01-07T11:00:00Z", "2030-01-07T10:00:00Z"))
        assert response.status_code == 422
        response = await client.post(f"{API}/bookings", json={"start": "2030-01-07T10:00:00Z"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_booking_and_resource_are_404(self, client):
        response = await client.get(f"{API}/bookings/{uuid.uuid4()}")
        assert response.status_code == 404
        response = await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z", room_id="room-99"))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_timeout_is_503_with_retry_after(self, client, sched):
        sched.ledger.lock_timeout = 0.05
        async with sched.ledger.locks.hold(["dr-a"], None):
            response = await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))
        assert response.status_code == 503
        assert response.headers["retry-after"] == "1"

    @pytest.mark.asyncio
    async def test_reschedule(self, client):
        created = (await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))).json()
        response = await client.post(
            f"{API}/bookings/{created['id']}/reschedule",
            json={"start": "2030-01-07T14:00:00Z", "end": "2030-01-07T14:30:00Z"},
        )
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]
        assert response.json()["start"] == "2030-01-07T14:00:00Z"


class TestAvailability:
    @pytest.mark.asyncio
    async def test_free_slots(self, client):
        await client.post(f"{API}/bookings", json=booking_body("2030-01-07T09:00:00Z", "2030-01-07T09:30:00Z"))
        await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))
        response = await client.get(f"{API}/availability/slots", params={
            "resource_id": "dr-a",
            "start": "2030-01-07T09:00:00Z",
            "end": "2030-01-07T11:00:00Z",
            "min_duration": 30,
        })
        assert response.status_code == 200
        assert response.json() == [
            {"start": "2030-01-07T09:30:00Z", "end": "2030-01-07T10:00:00Z"},
            {"start": "2030-01-07T10:30:00Z", "end": "2030-01-07T11:00:00Z"},
        ]

    @pytest.mark.asyncio
    async def test_free_slots_unknown_resource(self, client):
        response = await client.get(f"{API}/availability/slots", params={
            "resource_id": "nobody", "start": "2030-01-07T09:00:00Z", "end": "2030-01-07T11:00:00Z",
        })
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_alternatives(self, client):
        await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T11:00:00Z"))
        body = booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z", max_suggestions=2)
        response = await client.post(f"{API}/availability/alternatives", json=body)
        assert response.status_code == 200
        assert [s["start"] for s in response.json()] == ["2030-01-07T09:30:00Z", "2030-01-07T09:15:00Z"]


class TestWaitlistAndAppointments:
    @pytest.mark.asyncio
    async def test_waitlist_round_trip(self, client):
        patient = str(uuid.uuid4())
        response = await client.post(f"{API}/waitlist", json={"patient_id": patient, "staff_id": "dr-a", "room_id": "room-1"})
        assert response.status_code == 201
        entry = response.json()

        assert [e["id"] for e in (await client.get(f"{API}/waitlist")).json()] == [entry["id"]]
        assert (await client.get(f"{API}/waitlist/stats")).json()["total_waiting"] == 1
        assert (await client.get(f"{API}/waitlist/{entry['id']}")).status_code == 200

        response = await client.post(
            f"{API}/waitlist/{entry['id']}/promote",
            json={"start": "2030-01-07T11:00:00Z", "end": "2030-01-07T11:30:00Z"},
        )
        assert response.status_code == 201
        assert response.json()["patient_id"] == patient

        response = await client.post(f"{API}/waitlist/{entry['id']}/promote")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_reprioritize(self, client):
        first = (await client.post(f"{API}/waitlist", json={"patient_id": str(uuid.uuid4())})).json()
        second = (await client.post(f"{API}/waitlist", json={"patient_id": str(uuid.uuid4())})).json()

        response = await client.patch(f"{API}/waitlist/{second['id']}", json={"priority": 1, "urgency": "emergency"})
        assert response.status_code == 200
        assert response.json()["urgency"] == "emergency"
        assert [e["id"] for e in (await client.get(f"{API}/waitlist")).json()] == [second["id"], first["id"]]

        response = await client.patch(f"{API}/waitlist/{uuid.uuid4()}", json={"priority": 1})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_enqueue_rejects_out_of_policy_duration(self, client):
        response = await client.post(f"{API}/waitlist", json={"patient_id": str(uuid.uuid4()), "duration_minutes": 5})
        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "duration_invalid"

    @pytest.mark.asyncio
    async def test_withdraw(self, client):
        entry = (await client.post(f"{API}/waitlist", json={"patient_id": str(uuid.uuid4())})).json()
        assert (await client.delete(f"{API}/waitlist/{entry['id']}")).status_code == 204
        assert (await client.delete(f"{API}/waitlist/{entry['id']}")).status_code == 204
        assert (await client.get(f"{API}/waitlist")).json() == []

    @pytest.mark.asyncio
    async def test_appointment_lifecycle(self, client, sched):
        booking = (await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))).json()
        appt = await sched.lifecycle.get_by_booking(uuid.UUID(booking["id"]))

        response = await client.post(f"{API}/appointments/{appt.id}/complete")
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "invalid_transition"

        assert (await client.post(f"{API}/appointments/{appt.id}/check-in")).json()["status"] == "checked_in"
        assert (await client.post(f"{API}/appointments/{appt.id}/complete")).json()["status"] == "completed"
        response = await client.get(f"{API}/appointments/{appt.id}")
        assert len(response.json()["history"]) == 2

    @pytest.mark.asyncio
    async def test_appointment_cancel_frees_booking(self, client, sched):
        booking = (await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))).json()
        appt = await sched.lifecycle.get_by_booking(uuid.UUID(booking["id"]))
        response = await client.post(f"{API}/appointments/{appt.id}/cancel", json={"reason": "moved away"})
        assert response.status_code == 200
        assert (await client.get(f"{API}/bookings/{booking['id']}")).json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_no_show_and_unknown(self, client, sched):
        booking = (await client.post(f"{API}/bookings", json=booking_body("2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z"))).json()
        appt = await sched.lifecycle.get_by_booking(uuid.UUID(booking["id"]))
        assert (await client.post(f"{API}/appointments/{appt.id}/no-show")).json()["status"] == "no_show"
        assert (await client.get(f"{API}/appointments/{uuid.uuid4()}")).status_code == 404
