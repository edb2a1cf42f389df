from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from shiftwatch.main import create_app

from conftest import MONDAY, seed_day

PAYER_HEADERS = {"X-Actor-Role": "payer", "X-Actor-Id": "1"}
ADMIN_HEADERS = {"X-Actor-Role": "admin", "X-Actor-Id": "99"}


@pytest.fixture
def client(monkeypatch, container):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(container)
    return app.test_client()


def _pending_payment(container) -> int:
    seed_day(container, 1, MONDAY, present=8)
    return container.payment_service.create(1, MONDAY, now=datetime(2026, 3, 2, 18, 0)).payment_id


def test_efficiency_endpoint(client, container):
    seed_day(container, 1, MONDAY, present=8)

    resp = client.get("/api/workers/1/efficiency?date=2026-03-02")

    assert resp.status_code == 200
    assert resp.get_json() == {"worker_id": 1, "date": "2026-03-02", "efficiency": 90}


def test_efficiency_for_unknown_worker_is_404(client):
    resp = client.get("/api/workers/42/efficiency?date=2026-03-02")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_bad_date_is_400(client):
    assert client.get("/api/workers/1/efficiency?date=02/03/2026").status_code == 400


def test_payer_approves_over_http(client, container):
    payment_id = _pending_payment(container)

    resp = client.post(f"/api/payments/{payment_id}/approve", headers=PAYER_HEADERS)

    assert resp.status_code == 200
    assert resp.get_json()["payment"]["status"] == "settling"


def test_illegal_transition_returns_409_with_current_status(client, container):
    payment_id = _pending_payment(container)
    client.post(f"/api/payments/{payment_id}/approve", headers=PAYER_HEADERS)

    resp = client.post(f"/api/payments/{payment_id}/decline", headers=PAYER_HEADERS, json={"reason": "too late"})

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["error"] == "illegal_transition"
    assert body["current_status"] == "settling"


def test_missing_actor_is_403(client, container):
    payment_id = _pending_payment(container)

    assert client.post(f"/api/payments/{payment_id}/approve").status_code == 403


def test_insufficient_funds_is_402(client, container):
    payment_id = _pending_payment(container)
    payer = container.payers_repo.get_by_id(1)
    container.payers_repo.save(replace(payer, balance=Decimal("0.00")))

    resp = client.post(f"/api/payments/{payment_id}/approve", headers=PAYER_HEADERS)

    assert resp.status_code == 402
    assert resp.get_json()["current_status"] == "pending"


def test_decline_and_admin_review_over_http(client, container):
    payment_id = _pending_payment(container)

    declined = client.post(f"/api/payments/{payment_id}/decline", headers=PAYER_HEADERS, json={"reason": "disputed hours"})
    reviewed = client.post(
        f"/api/payments/{payment_id}/admin_review", headers=ADMIN_HEADERS, json={"approve": False, "note": "no evidence"}
    )

    assert declined.get_json()["payment"]["status"] == "admin_review"
    assert reviewed.get_json()["payment"]["status"] == "admin_rejected"


def test_transfer_webhook_completes_payment(client, container):
    payment_id = _pending_payment(container)
    client.post(f"/api/payments/{payment_id}/approve", headers=PAYER_HEADERS)

    resp = client.post("/api/transfers/webhook", json={"reference": f"pay-{payment_id}", "status": "success"})

    assert resp.status_code == 200
    assert resp.get_json()["payment"]["status"] == "completed"


def test_triggers(client, container):
    seed_day(container, 1, MONDAY, present=8)

    start = client.post("/api/triggers/day-start", json={"date": "2026-03-02"})
    end = client.post("/api/triggers/end-of-day", json={"date": "2026-03-02"})
    sweep = client.post("/api/triggers/sweep")

    assert start.status_code == 200
    assert end.get_json()["work_date"] == "2026-03-02"
    assert len(end.get_json()["created"]) == 1
    assert sweep.get_json()["escalated"] == []


def test_clock_in_out_and_progress_report(client, container, timers):
    timers.set_now(datetime(2026, 3, 2, 9, 0))
    assert client.post("/api/workers/1/clock-in").status_code == 201
    assert client.post("/api/workers/1/clock-in").status_code == 400

    report = client.post("/api/workers/1/progress-reports", json={"summary": "reviewed PRs", "tasks_completed": 4})
    timers.set_now(datetime(2026, 3, 2, 17, 0))
    out = client.post("/api/workers/1/clock-out")

    assert report.status_code == 201
    assert out.get_json()["attendance"]["working_hours"] == "7.00"


def test_deactivate_worker(client, container):
    container.scheduler.start_day(MONDAY)

    resp = client.post("/api/workers/1/deactivate")

    assert resp.get_json()["cancelled_captures"] == 10
    assert container.workers_repo.get_by_id(1).is_active is False


def test_top_up_rejects_float_and_negative(client):
    assert client.post("/api/payers/1/top-up", json={"amount": 10.5}).status_code == 400
    assert client.post("/api/payers/1/top-up", json={"amount": "-5"}).status_code == 400
    ok = client.post("/api/payers/1/top-up", json={"amount": "500.00"})
    assert ok.get_json()["balance"] == "20500.00"


def test_sweep_at_a_given_instant_settles_overdue_payments(client, container):
    payment_id = _pending_payment(container)

    early = client.post("/api/triggers/sweep", json={"now": "2026-03-02T18:30:00"})
    late = client.post("/api/triggers/sweep", json={"now": "2026-03-02T19:05:00"})

    assert early.get_json()["auto_settled"] == []
    assert late.get_json()["auto_settled"] == [payment_id]
    assert client.post("/api/triggers/sweep", json={"now": "tomorrow"}).status_code == 400


def test_malformed_json_fields_are_400_not_500(client, container, timers):
    timers.set_now(datetime(2026, 3, 2, 9, 0))
    assert client.post("/api/workers/1/clock-in").status_code == 201
    tasks = client.post("/api/workers/1/progress-reports", json={"summary": "reviewed PRs", "tasks_completed": "lots"})
    summary = client.post("/api/workers/1/progress-reports", json={"summary": ["a", "b"]})
    payment_id = _pending_payment(container)
    decline = client.post(f"/api/payments/{payment_id}/decline", headers=PAYER_HEADERS, json={"reason": 42})

    assert decline.status_code == 400
    assert tasks.status_code == 400
    assert summary.status_code == 400
    assert container.payment_service.get(payment_id).status.value == "pending"


def test_sweep_accepts_an_offset_timestamp(client, container):
    _pending_payment(container)

    resp = client.post("/api/triggers/sweep", json={"now": "2026-03-02T19:05:00+00:00"})

    assert resp.status_code == 200
