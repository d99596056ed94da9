"""Tests for the FastAPI wizard endpoints."""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from reservation import events
from reservation.app import create_app
from reservation.providers import InMemoryBookingStore
from reservation.wizard import get_active_sessions, unregister_session


class FakeSettings:
    def __init__(self, admin_api_key="secret", debug=False):
        self.admin_api_key = admin_api_key
        self.debug = debug


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def client(store):
    with TestClient(create_app(store=store)) as c:
        yield c
    for sid in list(get_active_sessions()):
        unregister_session(sid)


@pytest.fixture
def sid(client):
    return client.post("/api/wizard/sessions").json()["session_id"]


def _url(sid, command=""):
    return f"/api/wizard/sessions/{sid}" + (f"/{command}" if command else "")


def _walk_to_payment(client, sid):
    day = (date.today() + timedelta(days=7)).isoformat()
    client.post(_url(sid, "service"), json={"service_id": "standard"})
    client.post(_url(sid, "next"))
    client.post(_url(sid, "next"))
    snap = client.post(_url(sid, "date"), json={"date": day}).json()
    first = next(s for s in snap["slots"] if s["available"])
    client.post(_url(sid, "slot"), json={"start": first["start"], "end": first["end"]})
    client.post(_url(sid, "next"))
    client.post(_url(sid, "details"), json={
        "first_name": "Jane", "last_name": "Doe",
        "email": "jane@example.com", "phone": "416 555 0123",
    })
    snap = client.post(_url(sid, "next")).json()
    assert snap["step"] == 5


# ── Reference data ────────────────────────────────────────────────


class TestReferenceData:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_services(self, client):
        services = client.get("/api/services").json()["services"]
        assert [s["id"] for s in services] == ["standard", "deep", "move", "office"]

    def test_countries(self, client):
        body = client.get("/api/countries").json()
        assert any(c["iso"] == "CA" for c in body["countries"])


# ── Wizard commands ───────────────────────────────────────────────


class TestWizardEndpoints:
    def test_create_session(self, client):
        resp = client.post("/api/wizard/sessions")
        assert resp.status_code == 201
        snap = resp.json()
        assert snap["step"] == 1
        assert snap["can_proceed"] is False

    def test_create_with_profile(self, client):
        resp = client.post("/api/wizard/sessions", json={
            "first_name": "Sam", "last_name": "Lee", "email": "sam@example.com",
        })
        details = resp.json()["state"]["client_details"]
        assert details["first_name"] == "Sam"
        assert details["email"] == "sam@example.com"

    def test_unknown_session(self, client):
        assert client.get(_url("nope")).status_code == 404
        assert client.post(_url("nope", "next")).status_code == 404

    def test_service_and_invoice(self, client, sid):
        snap = client.post(_url(sid, "service"), json={"service_id": "standard"}).json()
        assert snap["state"]["hours"] == "2.5"
        assert snap["invoice"] == {
            "subtotal": "125.00", "tax": "16.25", "total": "141.25",
            "deposit": "42.38", "remaining": "98.88",
        }

    def test_rejected_command_is_400(self, client, sid):
        resp = client.post(_url(sid, "service"), json={"service_id": "windows"})
        assert resp.status_code == 400
        assert "windows" in resp.json()["error"]

    def test_blocked_next_is_not_an_error(self, client, sid):
        resp = client.post(_url(sid, "next"))
        assert resp.status_code == 200
        assert resp.json()["advanced"] is False
        assert resp.json()["validation_errors"] == ["Choose a service to continue."]

    def test_counters_and_slider(self, client, sid):
        client.post(_url(sid, "service"), json={"service_id": "office"})
        snap = client.post(_url(sid, "counters"), json={"field": "desks", "delta": -20}).json()
        assert snap["estimator"]["counts"]["desks"] == 0
        snap = client.post(_url(sid, "hours"), json={"hours": 7.5}).json()
        assert snap["state"]["hours"] == "7.5"
        assert client.post(_url(sid, "hours"), json={"hours": 12}).status_code == 400

    def test_unavailable_slot(self, client, sid):
        day = (date.today() + timedelta(days=3)).isoformat()
        client.post(_url(sid, "service"), json={"service_id": "standard"})
        client.post(_url(sid, "date"), json={"date": day})
        resp = client.post(_url(sid, "slot"), json={"start": "06:00:00", "end": "09:00:00"})
        assert resp.status_code == 400

    def test_locate_denied(self, client, sid):
        snap = client.post(_url(sid, "address/locate"), json={}).json()
        assert snap["located"] is False
        assert snap["address"]["location_error"]

    def test_full_booking(self, client, sid, store):
        _walk_to_payment(client, sid)

        declined = client.post(_url(sid, "pay"), json={"token": "tok_decline"}).json()
        assert declined["confirmed"] is False
        assert declined["payment_error"] == "Your card was declined."

        snap = client.post(_url(sid, "pay"), json={"token": "tok_visa"}).json()
        assert snap["confirmed"] is True
        assert snap["step_name"] == "success"
        assert store.get(snap["booking_id"]) is not None
        assert snap["emails_sent"] == ["client", "admin"]

    def test_booked_slot_disappears_for_next_customer(self, client, sid):
        _walk_to_payment(client, sid)
        booked = client.get(_url(sid)).json()["state"]["time_slot"]
        client.post(_url(sid, "pay"), json={"token": "tok_visa"})

        other = client.post("/api/wizard/sessions").json()["session_id"]
        client.post(_url(other, "service"), json={"service_id": "standard"})
        day = (date.today() + timedelta(days=7)).isoformat()
        slots = client.post(_url(other, "date"), json={"date": day}).json()["slots"]
        same = next(s for s in slots if s["start"] == booked["start"])
        assert same["available"] is False

    def test_booked_slot_reports_already_booked(self, client, sid):
        _walk_to_payment(client, sid)
        booked = client.get(_url(sid)).json()["state"]["time_slot"]
        client.post(_url(sid, "pay"), json={"token": "tok_visa"})

        other = client.post("/api/wizard/sessions").json()["session_id"]
        client.post(_url(other, "service"), json={"service_id": "standard"})
        day = (date.today() + timedelta(days=7)).isoformat()
        client.post(_url(other, "date"), json={"date": day})
        resp = client.post(_url(other, "slot"), json={"start": booked["start"], "end": booked["end"]})
        assert resp.status_code == 400
        assert "already booked" in resp.json()["error"]

    def test_completed_session_is_released(self, client, sid):
        _walk_to_payment(client, sid)
        client.post(_url(sid, "pay"), json={"token": "tok_decline"})
        assert client.get(_url(sid)).status_code == 200

        snap = client.post(_url(sid, "pay"), json={"token": "tok_visa"}).json()
        assert snap["confirmed"] is True
        assert snap["booking_id"]
        assert client.get(_url(sid)).status_code == 404
        assert sid not in get_active_sessions()
        assert sid not in events._broadcasters

    def test_idle_sessions_swept_on_new_session(self, client, sid):
        get_active_sessions()[sid]._last_active = 0.0
        fresh = client.post("/api/wizard/sessions").json()["session_id"]
        assert client.get(_url(sid)).status_code == 404
        assert client.get(_url(fresh)).status_code == 200
        assert sid not in events._broadcasters

    def test_delete(self, client, sid):
        assert client.delete(_url(sid)).json()["closed"] is True
        assert client.get(_url(sid)).status_code == 404


# ── Admin ─────────────────────────────────────────────────────────


class TestAdminEndpoints:
    def test_sessions_requires_token(self, client, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings())
        assert client.get("/api/admin/sessions").status_code == 401

    def test_sessions_list(self, client, sid, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings())
        resp = client.get("/api/admin/sessions", headers={"Authorization": "Bearer secret"})
        assert resp.status_code == 200
        assert resp.json()["count"] == 1

    def test_event_stream(self, client, sid, monkeypatch):
        monkeypatch.setattr("reservation.auth.settings", FakeSettings())
        with client.websocket_connect(f"/api/admin/sessions/{sid}/events?token=secret") as ws:
            client.post(_url(sid, "service"), json={"service_id": "deep"})
            event = ws.receive_json()
            assert event["type"] == "service"
            assert event["data"]["service"] == "deep"
