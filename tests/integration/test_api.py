"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient

from yield_ledger.config import settings

ADMIN = {"X-Admin-Actor": "ops@example.com"}
BANK = {"bank_name": "Zenith", "account_number": "0123456789", "account_holder_name": "Ada Obi"}


@pytest.fixture
def funded(client: TestClient):
    """Registered account with an approved 2000 recharge and the starter product in the catalog"""
    client.put(
        "/v1/admin/products/starter",
        json={"name": "Starter", "price": "500", "daily_income": "50", "contract_period": 10},
        headers=ADMIN,
    )
    account = client.post("/v1/accounts", json={"phone": "+2348099999999"}).json()
    recharge = client.post(f"/v1/accounts/{account['id']}/recharges", json={"amount": "2000"}).json()
    client.post(f"/v1/admin/recharges/{recharge['id']}/approve", headers=ADMIN)
    return account


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "ledger_purchases_total" in response.text


def test_register_with_inviter(client: TestClient):
    inviter = client.post("/v1/accounts", json={"phone": "+2348010000001"}).json()

    response = client.post("/v1/accounts", json={"phone": "+2348010000002", "inviter_id": inviter["id"]})

    assert response.status_code == 201
    assert response.json()["inviter_chain"] == [inviter["id"], None, None, None]


def test_duplicate_phone_is_422(client: TestClient):
    client.post("/v1/accounts", json={"phone": "+2348010000003"})

    response = client.post("/v1/accounts", json={"phone": "+2348010000003"})

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_unknown_account_is_404(client: TestClient):
    response = client.get("/v1/accounts/missing")

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "NotFound"
    assert body["context"]["entity_id"] == "missing"


def test_purchase_flow(client: TestClient, funded):
    response = client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})

    assert response.status_code == 201
    contract = response.json()["contract"]
    assert contract["remaining_days"] == 9
    assert contract["status"] == "active"

    account = client.get(f"/v1/accounts/{funded['id']}").json()
    assert account["spendable_balance"] == "1550.00"
    assert account["is_valid_member"] is True

    listed = client.get(f"/v1/accounts/{funded['id']}/contracts").json()
    assert [c["id"] for c in listed] == [contract["id"]]


def test_purchase_limit_is_409_with_numbers(client: TestClient, funded):
    client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})

    response = client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "PurchaseLimitExceeded"
    assert body["context"] == {"product_id": "starter", "limit": 1, "held": 1}


def test_insufficient_funds_is_409(client: TestClient):
    client.put(
        "/v1/admin/products/gold",
        json={"name": "Gold", "price": "5000", "daily_income": "400", "contract_period": 30},
        headers=ADMIN,
    )
    account = client.post("/v1/accounts", json={"phone": "+2348010000004"}).json()

    response = client.post(f"/v1/accounts/{account['id']}/contracts", json={"product_id": "gold"})

    assert response.status_code == 409
    assert response.json()["context"] == {"balance": "0.00", "required": "5000.00"}


def test_session_start(client: TestClient, funded):
    client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})

    response = client.post(f"/v1/accounts/{funded['id']}/session")

    assert response.status_code == 200
    body = response.json()
    # Purchased moments ago: no whole day has passed
    assert body["income_credited"] == "0.00"
    assert body["vip_level"] == 0
    assert body["salary_paid"] is None


def test_withdrawal_lifecycle(client: TestClient, funded):
    client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})

    created = client.post(
        f"/v1/accounts/{funded['id']}/withdrawals",
        json={"amount": "1000", "bank_details": BANK},
    )
    assert created.status_code == 201
    request = created.json()
    assert request["fee"] == "60.00"
    assert request["net_payout"] == "940.00"

    again = client.post(f"/v1/accounts/{funded['id']}/withdrawals", json={"amount": "300", "bank_details": BANK})
    assert again.status_code == 409
    assert again.json()["error"] == "DailyLimitReached"

    decision = client.post(
        f"/v1/admin/withdrawals/{request['id']}/decision",
        json={"decision": "rejected", "refund": True},
        headers=ADMIN,
    )
    assert decision.status_code == 200
    assert decision.json()["refunded"] is True
    assert client.get(f"/v1/accounts/{funded['id']}").json()["spendable_balance"] == "1550.00"

    conflicting = client.post(
        f"/v1/admin/withdrawals/{request['id']}/decision",
        json={"decision": "approved"},
        headers=ADMIN,
    )
    assert conflicting.status_code == 409

    deleted = client.delete(f"/v1/admin/withdrawals/{request['id']}", headers=ADMIN)
    assert deleted.status_code == 204
    assert client.get(f"/v1/accounts/{funded['id']}/withdrawals").json() == []


def test_withdrawal_out_of_range_is_422(client: TestClient, funded):
    client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})

    response = client.post(f"/v1/accounts/{funded['id']}/withdrawals", json={"amount": "100", "bank_details": BANK})

    assert response.status_code == 422


def test_admin_requires_actor(client: TestClient, funded):
    response = client.get(f"/v1/admin/accounts/{funded['id']}/audit")

    assert response.status_code == 401


def test_admin_overrides(client: TestClient, funded):
    contract = client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"}).json()["contract"]

    adjusted = client.put(
        f"/v1/admin/contracts/{contract['id']}/period",
        json={"new_period": 15, "reason": "promo"},
        headers=ADMIN,
    )
    assert adjusted.status_code == 200
    assert adjusted.json()["remaining_days"] == 14

    missing_reason = client.put(
        f"/v1/admin/contracts/{contract['id']}/period",
        json={"new_period": 16},
        headers=ADMIN,
    )
    assert missing_reason.status_code == 422

    bulk = client.post("/v1/admin/contracts/adjust-period", json={"day_delta": 2, "reason": "holiday"}, headers=ADMIN)
    assert bulk.json() == {"contracts_adjusted": 1}

    balance = client.put(
        f"/v1/admin/accounts/{funded['id']}/balance",
        json={"value": "42", "reason": "correction"},
        headers=ADMIN,
    )
    assert balance.json()["spendable_balance"] == "42.00"

    history = client.get(f"/v1/admin/overrides/{contract['id']}", headers=ADMIN).json()
    assert [entry["action"] for entry in history] == ["adjust_contract_period"]
    assert history[0]["actor"] == "ops@example.com"


def test_restriction_and_rules(client: TestClient, funded):
    client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})

    restricted = client.put(
        f"/v1/admin/accounts/{funded['id']}/restriction",
        json={"reason": "chargeback"},
        headers=ADMIN,
    )
    assert restricted.status_code == 200
    blocked = client.post(f"/v1/accounts/{funded['id']}/withdrawals", json={"amount": "500", "bank_details": BANK})
    assert blocked.status_code == 409
    assert blocked.json()["context"]["reason"] == "chargeback"
    assert client.delete(f"/v1/admin/accounts/{funded['id']}/restriction", headers=ADMIN).status_code == 204

    rules = client.put(
        "/v1/admin/withdrawal-rules",
        json={"max_withdrawal_percent": "25", "product_rules": {"starter": "5000"}},
        headers=ADMIN,
    )
    assert rules.status_code == 200
    capped = client.post(f"/v1/accounts/{funded['id']}/withdrawals", json={"amount": "600", "bank_details": BANK})
    assert capped.status_code == 409
    assert capped.json()["error"] == "ProductRequirementNotMet"
    assert capped.json()["context"]["cap"] == "500.00"


def test_audit_and_revenue(client: TestClient, funded):
    audit = client.get(f"/v1/admin/accounts/{funded['id']}/audit", headers=ADMIN)
    assert audit.status_code == 200
    assert audit.json()["is_safe"] is False
    assert audit.json()["debits"] == "2000.00"

    revenue = client.get("/v1/admin/revenue", headers=ADMIN).json()
    assert revenue["all_time"]["recharge"] == "2000.00"
    assert revenue["today"]["net"] == "2000.00"


def test_cron_sync(client: TestClient, funded, monkeypatch):
    client.post(f"/v1/accounts/{funded['id']}/contracts", json={"product_id": "starter"})
    monkeypatch.setattr(settings, "cron_secret", "s3cret")

    assert client.post("/v1/cron/sync-income").status_code == 401

    response = client.post("/v1/cron/sync-income", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
    assert response.json()["failures"] == []


def test_product_upsert_is_recorded(client: TestClient):
    response = client.put(
        "/v1/admin/products/silver",
        json={"name": "Silver", "price": "1000", "daily_income": "90", "contract_period": 20},
        headers=ADMIN,
    )
    assert response.status_code == 200

    history = client.get("/v1/admin/overrides/silver", headers=ADMIN).json()
    assert [entry["action"] for entry in history] == ["upsert_product"]
    assert history[0]["actor"] == "ops@example.com"
    assert history[0]["details"]["price"] == "1000.00"
