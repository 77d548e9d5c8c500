from decimal import Decimal
from uuid import uuid4

import pytest


@pytest.fixture
def account_id(client):
    r = client.post("/api/v1/accounts/", json={"name": "Main bank", "opening_balance": "1000"})
    assert r.status_code == 201, r.text
    return r.json()["id"]


@pytest.fixture
def tx_ids(client, account_id):
    ids = []
    for kind, amount, day in [("income", "500", "2026-01-05"), ("expenditure", "200", "2026-01-10")]:
        r = client.post(
            f"/api/v1/accounts/{account_id}/transactions",
            json={"kind": kind, "amount": amount, "date": day},
        )
        assert r.status_code == 201, r.text
        ids.append(r.json()["id"])
    return ids


def _open(client, account_id, bank_balance):
    r = client.post(
        "/api/v1/reconciliations/",
        json={
            "account_id": account_id,
            "start_date": "2026-01-01",
            "end_date": "2026-01-31",
            "bank_balance": bank_balance,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_account_balance(client, account_id, tx_ids):
    r = client.get(f"/api/v1/accounts/{account_id}/balance")

    assert r.status_code == 200
    assert Decimal(r.json()["balance"]) == Decimal("1300")


def test_full_reconciliation_flow(client, account_id, tx_ids):
    rec = _open(client, account_id, "1400")
    rid = rec["id"]
    assert Decimal(rec["book_balance"]) == Decimal("1300")
    assert Decimal(rec["difference"]) == Decimal("100")

    suggestion = client.get(f"/api/v1/reconciliations/{rid}/adjustment-suggestion").json()
    assert suggestion["kind"] == "expenditure"
    assert Decimal(suggestion["amount"]) == Decimal("100")

    batch = client.post(
        f"/api/v1/reconciliations/{rid}/transactions/batch",
        json={"transaction_ids": tx_ids, "is_reconciled": True},
    ).json()
    assert batch["ok"] is True
    assert batch["progress"]["percent"] == 100.0

    adj = client.post(f"/api/v1/reconciliations/{rid}/adjustments", json={"kind": "expenditure", "amount": "100"})
    assert adj.status_code == 201, adj.text
    assert Decimal(adj.json()["book_balance"]) == Decimal("1400")
    assert Decimal(adj.json()["difference"]) == Decimal("0")
    assert adj.json()["warning"] is None

    detail = client.get(f"/api/v1/reconciliations/{rid}").json()
    assert detail["summary"]["is_balanced"] is True
    assert detail["summary"]["total_transactions"] == 3
    assert "adjust" in detail["allowed_operations"]

    done = client.post(f"/api/v1/reconciliations/{rid}/complete").json()
    assert done["balanced"] is True
    assert done["reconciliation"]["status"] == "completed"

    locked = client.post(f"/api/v1/reconciliations/{rid}/adjustments", json={"kind": "income", "amount": "1"})
    assert locked.status_code == 409
    assert locked.json()["code"] == "SESSION_LOCKED"

    deleted = client.delete(f"/api/v1/reconciliations/{rid}").json()
    assert deleted["deleted"]["session"] == 1
    assert deleted["deleted"]["adjustments"] == 1
    assert deleted["failures"] == []

    gone = client.get(f"/api/v1/reconciliations/{rid}")
    assert gone.status_code == 404
    assert gone.json()["code"] == "NOT_FOUND"


def test_toggle_and_list(client, account_id, tx_ids):
    rid = _open(client, account_id, "1300")["id"]

    r = client.post(
        f"/api/v1/reconciliations/{rid}/transactions/toggle",
        json={"transaction_id": tx_ids[0], "is_reconciled": True},
    )
    assert r.status_code == 200
    assert r.json()["reconciliation_id"] == rid

    rows = client.get(f"/api/v1/reconciliations/{rid}/transactions").json()
    assert sorted(t["is_reconciled"] for t in rows) == [False, True]


def test_remove_adjustment(client, account_id, tx_ids):
    rid = _open(client, account_id, "1250")["id"]
    adj = client.post(f"/api/v1/reconciliations/{rid}/adjustments", json={"kind": "income", "amount": "50"}).json()
    assert Decimal(adj["book_balance"]) == Decimal("1250")

    r = client.delete(f"/api/v1/reconciliations/{rid}/adjustments/{adj['transaction']['id']}")

    assert r.status_code == 200
    assert Decimal(r.json()["book_balance"]) == Decimal("1300")


def test_removing_manual_transaction_as_adjustment_is_rejected(client, account_id, tx_ids):
    rid = _open(client, account_id, "1300")["id"]

    r = client.delete(f"/api/v1/reconciliations/{rid}/adjustments/{tx_ids[0]}")

    assert r.status_code == 422


def test_items(client, account_id, tx_ids):
    rid = _open(client, account_id, "1300")["id"]

    r = client.post(
        f"/api/v1/reconciliations/{rid}/items",
        json={"transaction_kind": "income", "amount": "500", "date": "2026-01-05", "transaction_id": tx_ids[0], "is_cleared": True},
    )
    assert r.status_code == 201, r.text

    items = client.get(f"/api/v1/reconciliations/{rid}/items").json()
    assert [i["transaction_id"] for i in items] == [tx_ids[0]]


def test_refresh(client, account_id, tx_ids):
    rid = _open(client, account_id, "1300")["id"]

    r = client.post(f"/api/v1/reconciliations/{rid}/refresh")

    assert r.status_code == 200
    assert r.json()["preserved"] is False
    assert Decimal(r.json()["account_balance"]) == Decimal("1300")


def test_unknown_account_is_404(client):
    r = client.get(f"/api/v1/accounts/{uuid4()}/balance")

    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


def test_inverted_period_is_422(client, account_id):
    r = client.post(
        "/api/v1/reconciliations/",
        json={"account_id": account_id, "start_date": "2026-02-01", "end_date": "2026-01-01", "bank_balance": "0"},
    )

    assert r.status_code == 422


def test_toggle_outside_period_is_422(client, account_id):
    rid = _open(client, account_id, "1000")["id"]
    late = client.post(
        f"/api/v1/accounts/{account_id}/transactions",
        json={"kind": "income", "amount": "5", "date": "2026-03-01"},
    ).json()

    r = client.post(
        f"/api/v1/reconciliations/{rid}/transactions/toggle",
        json={"transaction_id": late["id"], "is_reconciled": True},
    )

    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"
