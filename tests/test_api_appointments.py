"""API tests: booking, lifecycle transitions, cancellation and schedule impact."""

import pytest

from tests.conftest import login

pytestmark = pytest.mark.api

DAY = "2026-03-10"


def book(client, headers, time, service_id="haircut", on_date=DAY):
    return client.post(
        "/appointments",
        json={"date": on_date, "time": time, "service_id": service_id},
        headers=headers,
    )


def admin_book(client, headers, client_id, time, service_id="haircut", on_date=DAY):
    return client.post(
        "/admin/appointments",
        json={"date": on_date, "time": time, "service_id": service_id, "client_id": client_id},
        headers=headers,
    )


def set_status(client, headers, appt_id, status):
    return client.patch(f"/appointments/{appt_id}/status", json={"status": status}, headers=headers)


@pytest.fixture
def other_client(client):
    return login(client, "55599999", "Luis", "Perez")


class TestClientBooking:

    def test_book_catalog_slot(self, client, client_user):
        headers, user = client_user
        response = book(client, headers, "10:00", "cut_and_beard")
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["status"] == "scheduled"
        assert body["client_id"] == user["id"]
        assert body["client_name"] == "Ana Lopez"
        assert body["service_name"] == "Haircut and beard"
        assert body["service_duration"] == 60

        mine = client.get("/clients/me/appointments", headers=headers).json()
        assert [a["id"] for a in mine] == [body["id"]]

    def test_overlapping_booking_rejected(self, client, client_user, other_client):
        assert book(client, client_user[0], "10:00", "cut_and_beard").status_code == 201
        assert book(client, other_client[0], "10:30").status_code == 409
        assert book(client, other_client[0], "11:00").status_code == 201

    def test_off_grid_time_rejected(self, client, client_user):
        assert book(client, client_user[0], "10:15").status_code == 422
        assert book(client, client_user[0], "13:00").status_code == 422

    def test_malformed_time_rejected(self, client, client_user):
        assert book(client, client_user[0], "9:00").status_code == 422
        assert book(client, client_user[0], "25:00").status_code == 422

    def test_past_bookings_rejected(self, client, client_user, clock):
        clock.set(11, 0)
        assert book(client, client_user[0], "10:30").status_code == 422
        assert book(client, client_user[0], "11:00").status_code == 422
        assert book(client, client_user[0], "12:00", on_date="2026-03-09").status_code == 422
        assert book(client, client_user[0], "11:30").status_code == 201

    def test_inactive_or_unknown_service_rejected(self, client, admin_headers, client_user):
        client.patch("/services/fade/toggle", headers=admin_headers)
        assert book(client, client_user[0], "10:00", "fade").status_code == 422
        assert book(client, client_user[0], "10:00", "nope").status_code == 422

    def test_admin_uses_admin_endpoint(self, client, admin_headers):
        assert book(client, admin_headers, "10:00").status_code == 403


class TestAdminBooking:

    def test_admin_may_book_off_grid(self, client, admin_headers, client_user):
        _, user = client_user
        response = admin_book(client, admin_headers, user["id"], "10:45", "fade")
        assert response.status_code == 201
        assert response.json()["time"] == "10:45"
        assert response.json()["client_name"] == "Ana Lopez"

    def test_admin_booking_still_checks_overlap(self, client, admin_headers, client_user):
        _, user = client_user
        assert admin_book(client, admin_headers, user["id"], "10:00").status_code == 201
        assert admin_book(client, admin_headers, user["id"], "09:45").status_code == 409
        assert admin_book(client, admin_headers, user["id"], "10:30").status_code == 201

    def test_unknown_client(self, client, admin_headers):
        assert admin_book(client, admin_headers, 999, "10:00").status_code == 404

    def test_clients_cannot_use_admin_endpoint(self, client, client_user):
        headers, user = client_user
        assert admin_book(client, headers, user["id"], "10:00").status_code == 403

    def test_list_with_filters(self, client, admin_headers, client_user, other_client):
        first = book(client, client_user[0], "09:00").json()
        book(client, other_client[0], "09:30")
        book(client, other_client[0], "10:00", on_date="2026-03-11")
        client.patch(f"/appointments/{first['id']}/cancel", headers=client_user[0])

        assert len(client.get("/appointments", headers=admin_headers).json()) == 3
        on_day = client.get("/appointments", params={"on_date": DAY}, headers=admin_headers).json()
        assert [a["time"] for a in on_day] == ["09:00", "09:30"]
        cancelled = client.get("/appointments", params={"status": "cancelled"}, headers=admin_headers).json()
        assert [a["id"] for a in cancelled] == [first["id"]]
        assert client.get("/appointments", params={"status": "bogus"}, headers=admin_headers).status_code == 422
        assert client.get("/appointments", headers=client_user[0]).status_code == 403


class TestLifecycle:

    def test_happy_path(self, client, admin_headers, client_user, clock):
        appt = book(client, client_user[0], "09:00").json()

        clock.set(9, 0)
        response = set_status(client, admin_headers, appt["id"], "in-progress")
        assert response.status_code == 200
        assert response.json()["status"] == "in-progress"

        clock.set(9, 32)
        response = set_status(client, admin_headers, appt["id"], "completed")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["completed_at"] == "2026-03-10T09:32:00"

    @pytest.mark.parametrize("path", [
        ["completed"],
        ["in-progress", "scheduled"],
        ["in-progress", "cancelled"],
        ["cancelled", "scheduled"],
        ["in-progress", "completed", "in-progress"],
    ])
    def test_invalid_transition_leaves_record_unchanged(self, client, admin_headers, client_user, path):
        appt = book(client, client_user[0], "09:00").json()
        *valid, invalid = path
        for status in valid:
            assert set_status(client, admin_headers, appt["id"], status).status_code == 200

        before = client.get("/appointments", headers=admin_headers).json()[0]
        assert set_status(client, admin_headers, appt["id"], invalid).status_code == 409
        after = client.get("/appointments", headers=admin_headers).json()[0]
        assert after == before

    def test_same_status_is_a_conflict(self, client, admin_headers, client_user):
        appt = book(client, client_user[0], "09:00").json()
        assert set_status(client, admin_headers, appt["id"], "scheduled").status_code == 409

    def test_unknown_status_value(self, client, admin_headers, client_user):
        appt = book(client, client_user[0], "09:00").json()
        assert set_status(client, admin_headers, appt["id"], "done").status_code == 422

    def test_missing_appointment(self, client, admin_headers):
        assert set_status(client, admin_headers, 999, "in-progress").status_code == 404

    def test_only_admin_changes_status(self, client, client_user):
        appt = book(client, client_user[0], "09:00").json()
        assert set_status(client, client_user[0], appt["id"], "in-progress").status_code == 403


class TestCancel:

    def test_owner_cancels_and_slot_reopens(self, client, client_user, other_client):
        appt = book(client, client_user[0], "10:00").json()

        assert client.patch(f"/appointments/{appt['id']}/cancel", headers=other_client[0]).status_code == 403

        response = client.patch(f"/appointments/{appt['id']}/cancel", headers=client_user[0])
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        assert book(client, other_client[0], "10:00").status_code == 201

    def test_admin_cancels(self, client, admin_headers, client_user):
        appt = book(client, client_user[0], "10:00").json()
        response = client.patch(f"/appointments/{appt['id']}/cancel", headers=admin_headers)
        assert response.status_code == 200

    def test_cancel_twice(self, client, client_user):
        appt = book(client, client_user[0], "10:00").json()
        client.patch(f"/appointments/{appt['id']}/cancel", headers=client_user[0])
        response = client.patch(f"/appointments/{appt['id']}/cancel", headers=client_user[0])
        assert response.status_code == 409


class TestScheduleImpact:

    def test_late_finish_shifts_later_appointments(self, client, admin_headers, client_user, other_client):
        first = book(client, client_user[0], "09:30").json()
        book(client, other_client[0], "10:30")
        book(client, other_client[0], "11:00")

        response = client.get(
            f"/appointments/{first['id']}/impact",
            params={"completed_at": "2026-03-10T10:05:00"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["deviation"] == {"type": "late", "minutes": 5}
        assert [(a["time"], a["adjusted_time"]) for a in body["affected"]] == [
            ("10:30", "10:35"),
            ("11:00", "11:05"),
        ]

    def test_dead_band(self, client, admin_headers, client_user):
        first = book(client, client_user[0], "09:30").json()

        def impact(completed_at):
            return client.get(
                f"/appointments/{first['id']}/impact",
                params={"completed_at": completed_at},
                headers=admin_headers,
            ).json()["deviation"]

        assert impact("2026-03-10T10:02:00") == {"type": "on-time", "minutes": 0}
        assert impact("2026-03-10T09:57:00") == {"type": "on-time", "minutes": 0}
        assert impact("2026-03-10T09:56:00") == {"type": "early", "minutes": 4}

    def test_completion_notifies_waiting_clients(self, client, admin_headers, client_user, other_client, clock):
        first = book(client, client_user[0], "09:30").json()
        later = book(client, other_client[0], "10:30").json()

        clock.set(9, 30)
        set_status(client, admin_headers, first["id"], "in-progress")
        clock.set(10, 5)
        set_status(client, admin_headers, first["id"], "completed")

        alerts = client.get("/notifications", headers=other_client[0]).json()
        assert [(a["kind"], a["appointment_id"]) for a in alerts] == [("schedule_late", later["id"])]
        assert "10:35" in alerts[0]["message"]

        assert client.get("/notifications", headers=client_user[0]).json() == []

        admin_kinds = [a["kind"] for a in client.get("/notifications", headers=admin_headers).json()]
        assert admin_kinds == ["schedule_updated", "new_appointment"]


def import_records(client, headers, records):
    return client.post("/admin/appointments/import", json={"records": records}, headers=headers)


class TestImport:

    def test_flat_and_nested_rows_imported(self, client, admin_headers, client_user):
        _, user = client_user
        records = [
            {
                "date": DAY, "time": "09:00", "client_id": user["id"], "client_name": "Ana Lopez",
                "service_id": "haircut", "service_name": "Haircut", "service_duration": 30,
                "status": "completed", "completed_at": "2026-03-10T09:31:00Z",
            },
            {
                "date": "2026-03-10T00:00:00", "time": "10:00:00", "clientId": user["id"],
                "clientName": "Ana Lopez", "service": {"id": "fade", "name": "Fade", "duration": 45},
            },
        ]
        response = import_records(client, admin_headers, records)
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["skipped"] == []
        assert [(a["time"], a["service_duration"], a["status"]) for a in body["imported"]] == [
            ("09:00", 30, "completed"),
            ("10:00", 45, "scheduled"),
        ]
        assert body["imported"][0]["completed_at"] == "2026-03-10T09:31:00"

        listed = client.get("/appointments", params={"on_date": DAY}, headers=admin_headers).json()
        assert [a["time"] for a in listed] == ["09:00", "10:00"]

    def test_overlap_with_stored_appointment_skipped(self, client, admin_headers, client_user):
        book(client, client_user[0], "10:00", "cut_and_beard")
        records = [
            {"date": DAY, "time": "10:30", "service_duration": 30},
            {"date": DAY, "time": "11:00", "service_duration": 30},
        ]
        body = import_records(client, admin_headers, records).json()
        assert [a["time"] for a in body["imported"]] == ["11:00"]
        assert body["skipped"] == [{"index": 0, "reason": "Overlaps an existing appointment"}]

    def test_conflicts_within_the_batch(self, client, admin_headers):
        records = [
            {"date": DAY, "time": "10:00", "service_duration": 45},
            {"date": DAY, "time": "10:30", "service_duration": 30},
        ]
        body = import_records(client, admin_headers, records).json()
        assert [a["time"] for a in body["imported"]] == ["10:00"]
        assert [s["index"] for s in body["skipped"]] == [1]

    def test_cancelled_rows_do_not_block(self, client, admin_headers):
        records = [
            {"date": DAY, "time": "10:00", "status": "cancelled"},
            {"date": DAY, "time": "10:00"},
        ]
        body = import_records(client, admin_headers, records).json()
        assert [a["status"] for a in body["imported"]] == ["cancelled", "scheduled"]
        assert body["skipped"] == []

    def test_malformed_rows_reported(self, client, admin_headers):
        records = [
            {"time": "10:00"},
            {"date": DAY, "time": "25:00"},
            {"date": DAY, "time": "10:00", "status": "done"},
            {"date": DAY, "time": "10:00", "client_id": 999},
            {"date": DAY, "time": "10:00"},
        ]
        body = import_records(client, admin_headers, records).json()
        assert len(body["imported"]) == 1
        reasons = [s["reason"] for s in body["skipped"]]
        assert [s["index"] for s in body["skipped"]] == [0, 1, 2, 3]
        assert all(reason.startswith("Malformed record") for reason in reasons[:3])
        assert reasons[3] == "Client not found"

    def test_empty_batch_rejected(self, client, admin_headers):
        assert import_records(client, admin_headers, []).status_code == 422

    def test_admin_only(self, client, client_user):
        response = import_records(client, client_user[0], [{"date": DAY, "time": "10:00"}])
        assert response.status_code == 403

    def test_imported_booking_reaches_admin_feed(self, client, admin_headers, client_user):
        book(client, client_user[0], "09:00")
        body = import_records(
            client, admin_headers, [{"date": DAY, "time": "11:00", "client_name": "Walk In"}]
        ).json()
        imported_id = body["imported"][0]["id"]

        feed = client.get("/notifications", headers=admin_headers).json()
        assert [(a["kind"], a["appointment_id"]) for a in feed] == [("new_appointment", imported_id)]
        assert "Walk In" in feed[0]["message"]
