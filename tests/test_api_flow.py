from __future__ import annotations

import json
from datetime import datetime

CLIENT_PAYLOAD = {
    "name": "Acme Bakery",
    "address": "12 Elm Street",
    "latitude": 40.0,
    "longitude": -73.0,
}


def _create_client(api, headers, **overrides):
    response = api.post("/clients", json={**CLIENT_PAYLOAD, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_root(api):
    assert api.get("/").json() == {"status": "Backend running successfully"}


def test_register_login_and_me(api):
    response = api.post(
        "/auth/register",
        json={
            "username": "NewTech",
            "password": "hunter22",
            "business_type": "Electrician",
            "business_hours": {"days": ["mon", "wed"], "startTime": "07:30", "endTime": "16:00"},
            "timezone": "Europe/Berlin",
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["username"] == "newtech"
    assert json.loads(body["business_hours"]) == {
        "days": ["mon", "wed"],
        "startTime": "07:30",
        "endTime": "16:00",
    }

    login = api.post("/auth/login", data={"username": "newtech", "password": "hunter22"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = api.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["timezone"] == "Europe/Berlin"


def test_register_rejects_bad_business_hours(api):
    response = api.post(
        "/auth/register",
        json={
            "username": "latebird",
            "password": "hunter22",
            "business_type": "Bakery",
            "business_hours": {"days": ["mon"], "startTime": "17:00", "endTime": "08:00"},
        },
    )
    assert response.status_code == 422


def test_login_with_wrong_password(api, user):
    response = api.post("/auth/login", data={"username": user.username, "password": "nope"})
    assert response.status_code == 401


def test_requests_without_token_are_rejected(api):
    assert api.get("/visits").status_code == 401
    assert api.get("/visits", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_visit_to_invoice_flow(api, auth_headers, clock):
    client = _create_client(api, auth_headers)

    response = api.post("/visits/start", json={"latitude": 40.0, "longitude": -73.0}, headers=auth_headers)
    assert response.status_code == 201, response.text
    visit = response.json()
    assert visit["client_id"] == client["id"]
    assert visit["is_known_location"] is True
    assert visit["address"] == "12 Elm Street"

    current = api.get("/visits/current", headers=auth_headers)
    assert current.status_code == 200
    assert current.json()["id"] == visit["id"]

    clock.advance(minutes=90)
    response = api.post(f"/visits/{visit['id']}/end", headers=auth_headers)
    assert response.status_code == 200, response.text
    assert response.json()["duration"] == 90

    assert api.get("/visits/current", headers=auth_headers).status_code == 404

    uninvoiced = api.get("/visits/uninvoiced", headers=auth_headers).json()
    assert [v["id"] for v in uninvoiced] == [visit["id"]]

    response = api.post("/invoices", json={"visit_id": visit["id"]}, headers=auth_headers)
    assert response.status_code == 201, response.text
    invoice = response.json()
    assert invoice["amount"] == 90.0
    assert invoice["client_id"] == client["id"]
    assert invoice["invoice_number"].startswith("INV-2026-")

    again = api.post("/invoices", json={"visit_id": visit["id"], "amount": 10}, headers=auth_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "already_invoiced"

    assert api.get("/visits/uninvoiced", headers=auth_headers).json() == []

    paid = api.put(f"/invoices/{invoice['id']}", json={"is_paid": True}, headers=auth_headers)
    assert paid.status_code == 200
    assert paid.json()["is_paid"] is True


def test_domain_errors_map_to_status_codes(api, auth_headers, login, other_user):
    missing = api.post("/visits/start", json={"latitude": 40.0}, headers=auth_headers)
    assert missing.status_code == 400
    assert missing.json()["code"] == "invalid_location"

    first = api.post("/visits/start", json={"latitude": 40.0, "longitude": -73.0}, headers=auth_headers)
    assert first.status_code == 201

    second = api.post("/visits/start", json={"latitude": 40.0, "longitude": -73.0}, headers=auth_headers)
    assert second.status_code == 409
    assert second.json()["code"] == "visit_already_open"

    other_headers = login(other_user.username)
    foreign = api.post(f"/visits/{first.json()['id']}/end", headers=other_headers)
    assert foreign.status_code == 403

    assert api.get("/visits/9999", headers=auth_headers).status_code == 404

    api.post(f"/visits/{first.json()['id']}/end", headers=auth_headers)
    ended = api.post(f"/visits/{first.json()['id']}/end", headers=auth_headers)
    assert ended.status_code == 400
    assert ended.json()["code"] == "already_ended"

    neither = api.post("/invoices", json={"amount": 10}, headers=auth_headers)
    assert neither.status_code == 400
    assert neither.json()["code"] == "invalid_request"


def test_end_of_day_invoicing(api, auth_headers, clock):
    ids = []
    for minutes in (30, 60):
        visit = api.post("/visits/start", json={"latitude": 41.0, "longitude": -74.0}, headers=auth_headers).json()
        clock.advance(minutes=minutes)
        api.post(f"/visits/{visit['id']}/end", headers=auth_headers)
        ids.append(visit["id"])

    api.post("/invoices", json={"visit_id": ids[1]}, headers=auth_headers)

    response = api.post("/invoices/end-of-day", json={"visit_ids": ids}, headers=auth_headers)
    assert response.status_code == 200, response.text
    body = response.json()
    assert [invoice["visit_id"] for invoice in body["created"]] == [ids[0]]
    assert body["created"][0]["amount"] == 30.0
    assert body["failed"] == [
        {"visit_id": ids[1], "code": "already_invoiced", "detail": "Visit already has an invoice"}
    ]


def test_client_crud_and_ownership(api, auth_headers, login, other_user):
    client = _create_client(api, auth_headers)

    updated = api.put(f"/clients/{client['id']}", json={"phone": "555-0100"}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["phone"] == "555-0100"

    half = api.put(f"/clients/{client['id']}", json={"latitude": 1.0}, headers=auth_headers)
    assert half.status_code == 422

    other_headers = login(other_user.username)
    assert api.get(f"/clients/{client['id']}", headers=other_headers).status_code == 403
    assert api.get("/clients", headers=other_headers).json() == []

    assert api.delete(f"/clients/{client['id']}", headers=auth_headers).status_code == 200
    assert api.get(f"/clients/{client['id']}", headers=auth_headers).status_code == 404


def test_tracking_endpoints(api, auth_headers, clock):
    _create_client(api, auth_headers)

    response = api.post("/tracking/samples", json={"latitude": 40.0, "longitude": -73.0}, headers=auth_headers)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["in_business_hours"] is True
    assert body["started_visit"]["is_known_location"] is True

    status = api.get("/tracking/status", headers=auth_headers).json()
    assert status["tracking"] is True
    assert status["latest_sample"]["latitude"] == 40.0

    clock.advance(minutes=30)
    stopped = api.post("/tracking/stop", headers=auth_headers)
    assert stopped.status_code == 200
    assert stopped.json()["duration"] == 30

    clock.advance(minutes=5)
    tick = api.post("/tracking/tick", headers=auth_headers).json()
    assert tick["started_visit"] is None
    assert tick["tracking"] is False

    clock.set(datetime(2026, 10, 12, 17, 30))
    tick = api.post("/tracking/tick", headers=auth_headers).json()
    assert tick["in_business_hours"] is False
    assert [v["id"] for v in tick["end_of_day"]] == [body["started_visit"]["id"]]


def test_business_hours_update_refreshes_tracking(api, auth_headers):
    response = api.put(
        "/auth/me/business-hours",
        json={"business_hours": {"days": ["sat"], "startTime": "10:00", "endTime": "12:00"}},
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text

    status = api.get("/tracking/status", headers=auth_headers).json()
    assert status["in_business_hours"] is False
