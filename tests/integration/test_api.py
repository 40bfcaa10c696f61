"""Integration tests for API endpoints"""

import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

HEADERS = {"X-User-ID": "user_good"}


def _create_account(client: TestClient, name="Checking", balance="0", headers=HEADERS) -> dict:
    response = client.post("/v1/accounts", json={"name": name, "currency": "KRW", "balance": balance}, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def debit_setup(client: TestClient):
    """Debit card with 3000 on it, min balance 10000, auto-transfer from 100000 savings"""
    settlement = _create_account(client)
    savings = _create_account(client, name="Savings", balance="100000")
    response = client.post(
        "/v1/cards",
        json={
            "name": "Everyday",
            "type": "DEBIT",
            "account_id": settlement["id"],
            "balance": "3000",
            "linked_account_id": savings["id"],
            "auto_transfer_enabled": True,
            "min_balance": "10000",
        },
        headers=HEADERS,
    )
    assert response.status_code == 201
    return settlement, savings, response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "fintrack_card_payment_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    """Test request ID header is echoed back"""
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_user_header_is_required(client: TestClient):
    """Test missing X-User-ID header"""
    response = client.post("/v1/accounts", json={"name": "Checking", "currency": "KRW"})
    assert response.status_code == 422


def test_account_round_trip(client: TestClient):
    """Test account create and fetch"""
    account = _create_account(client, balance="1234.56")

    response = client.get(f"/v1/accounts/{account['id']}", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["balance"] == "1234.56"


def test_account_of_another_user_is_404(client: TestClient):
    """Test account fetch by another user"""
    account = _create_account(client)
    response = client.get(f"/v1/accounts/{account['id']}", headers={"X-User-ID": "someone_else"})
    assert response.status_code == 404
    assert response.json()["error"] == "ACCOUNT_NOT_FOUND"


def test_card_create_rejects_fields_of_other_type(client: TestClient):
    """Test card create with terms of another type"""
    account = _create_account(client)
    response = client.post(
        "/v1/cards",
        json={"name": "Credit", "type": "CREDIT", "account_id": account["id"], "balance": "100"},
        headers=HEADERS,
    )
    assert response.status_code == 422


def test_debit_payment_with_auto_transfer(client: TestClient, debit_setup):
    """POST /v1/cards/{id}/payments tops up the card from savings first"""
    settlement, savings, card = debit_setup

    response = client.post(
        f"/v1/cards/{card['id']}/payments",
        json={"amount": "5000", "currency": "KRW", "description": "Coffee"},
        headers=HEADERS,
    )

    assert response.status_code == 201
    assert response.json()["type"] == "EXPENSE"
    assert response.json()["amount"] == "5000"

    detail = client.get(f"/v1/cards/{card['id']}", headers=HEADERS).json()
    assert detail["card"]["balance"] == "10000"
    assert detail["monthly_usage"] == "5000"
    assert detail["recent_auto_transfers"][0]["amount"] == "12000"
    assert detail["recent_auto_transfers"][0]["triggered_by"] == "PAYMENT"

    savings_after = client.get(f"/v1/accounts/{savings['id']}", headers=HEADERS).json()
    assert savings_after["balance"] == "88000"


def test_credit_limit_exceeded_is_422(client: TestClient):
    """Test credit limit error response"""
    account = _create_account(client)
    card = client.post(
        "/v1/cards",
        json={"name": "Credit", "type": "CREDIT", "account_id": account["id"], "credit_limit": "10000"},
        headers=HEADERS,
    ).json()

    response = client.post(
        f"/v1/cards/{card['id']}/payments",
        json={"amount": "15000", "currency": "KRW", "description": "TV"},
        headers=HEADERS,
    )

    assert response.status_code == 422
    assert response.json()["error"] == "CREDIT_LIMIT_EXCEEDED"


def test_manual_auto_transfer(client: TestClient, debit_setup):
    """Test manual auto-transfer endpoint"""
    _, _, card = debit_setup

    response = client.post(
        f"/v1/cards/{card['id']}/auto-transfer",
        json={"required_amount": "5000", "currency": "KRW"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["executed"] is True
    assert body["auto_transfer"]["triggered_by"] == "LOW_BALANCE"


def test_auto_transfer_on_credit_card_is_409(client: TestClient):
    """Test auto-transfer endpoint on a credit card"""
    account = _create_account(client)
    card = client.post(
        "/v1/cards",
        json={"name": "Credit", "type": "CREDIT", "account_id": account["id"]},
        headers=HEADERS,
    ).json()

    response = client.post(
        f"/v1/cards/{card['id']}/auto-transfer",
        json={"required_amount": "5000", "currency": "KRW"},
        headers=HEADERS,
    )

    assert response.status_code == 409
    assert response.json()["error"] == "AUTO_TRANSFER_NOT_ENABLED"


def test_prepaid_charge_and_payment(client: TestClient):
    """Test prepaid charge then over-balance payment"""
    wallet = _create_account(client, name="Wallet", balance="50000")
    settlement = _create_account(client)
    card = client.post(
        "/v1/cards",
        json={"name": "Gift", "type": "PREPAID", "account_id": settlement["id"]},
        headers=HEADERS,
    ).json()

    charge = client.post(
        f"/v1/cards/{card['id']}/charge",
        json={"amount": "1000", "from_account_id": wallet["id"]},
        headers=HEADERS,
    )
    assert charge.status_code == 201

    payment = client.post(
        f"/v1/cards/{card['id']}/payments",
        json={"amount": "2000", "currency": "KRW", "description": "Shoes"},
        headers=HEADERS,
    )
    assert payment.status_code == 422
    assert payment.json()["error"] == "INSUFFICIENT_PREPAID_BALANCE"


def test_card_update_and_listing(client: TestClient, debit_setup):
    """Test card update and inactive listing"""
    _, _, card = debit_setup

    response = client.patch(
        f"/v1/cards/{card['id']}",
        json={"name": "Renamed", "min_balance": "2000"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["min_balance"] == "2000"
    assert response.json()["balance"] == "3000"

    client.patch(f"/v1/cards/{card['id']}", json={"is_active": False}, headers=HEADERS)
    assert client.get("/v1/cards", headers=HEADERS).json() == []
    assert len(client.get("/v1/cards?include_inactive=true", headers=HEADERS).json()) == 1


def test_scheduled_lifecycle_over_http(client: TestClient):
    """Test create, execute and list scheduled transactions"""
    account = _create_account(client, balance="100000")
    due = (datetime.now(timezone.utc) + timedelta(days=2)).replace(microsecond=0)

    created = client.post(
        "/v1/scheduled-transactions",
        json={
            "account_id": account["id"],
            "type": "EXPENSE",
            "amount": "25000",
            "currency": "KRW",
            "description": "Rent",
            "due_date": due.isoformat(),
            "frequency": "MONTHLY",
            "is_recurring": True,
        },
        headers=HEADERS,
    )
    assert created.status_code == 201
    scheduled_id = created.json()["id"]

    executed = client.post(f"/v1/scheduled-transactions/{scheduled_id}/execute", headers=HEADERS)
    assert executed.status_code == 200
    body = executed.json()
    assert body["scheduled"]["status"] == "COMPLETED"
    assert body["next_scheduled"]["status"] == "PENDING"
    assert body["transaction"]["description"] == "Rent (scheduled)"

    again = client.post(f"/v1/scheduled-transactions/{scheduled_id}/execute", headers=HEADERS)
    assert again.status_code == 409
    assert again.json()["error"] == "ALREADY_EXECUTED"

    balance = client.get(f"/v1/accounts/{account['id']}", headers=HEADERS).json()["balance"]
    assert balance == "75000"

    listing = client.get("/v1/scheduled-transactions?status=PENDING", headers=HEADERS).json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == body["next_scheduled"]["id"]


def test_recurring_without_frequency_is_409(client: TestClient):
    """Test recurring create without frequency"""
    account = _create_account(client)
    response = client.post(
        "/v1/scheduled-transactions",
        json={
            "account_id": account["id"],
            "type": "EXPENSE",
            "amount": "10",
            "currency": "KRW",
            "description": "Gym",
            "due_date": datetime.now(timezone.utc).isoformat(),
            "is_recurring": True,
        },
        headers=HEADERS,
    )
    assert response.status_code == 409
    assert response.json()["error"] == "RECURRING_REQUIRES_FREQUENCY"


def test_scheduled_update_cancel_delete(client: TestClient):
    """Test update, cancel and delete endpoints"""
    account = _create_account(client)
    scheduled_id = client.post(
        "/v1/scheduled-transactions",
        json={
            "account_id": account["id"],
            "type": "INCOME",
            "amount": "3000",
            "currency": "KRW",
            "description": "Allowance",
            "due_date": (datetime.now(timezone.utc) + timedelta(days=5)).isoformat(),
        },
        headers=HEADERS,
    ).json()["id"]

    updated = client.patch(f"/v1/scheduled-transactions/{scheduled_id}", json={"amount": "3500"}, headers=HEADERS)
    assert updated.status_code == 200
    assert updated.json()["amount"] == "3500"

    cancelled = client.post(f"/v1/scheduled-transactions/{scheduled_id}/cancel", headers=HEADERS)
    assert cancelled.json()["status"] == "CANCELLED"

    assert client.patch(
        f"/v1/scheduled-transactions/{scheduled_id}", json={"amount": "1"}, headers=HEADERS
    ).status_code == 409

    assert client.delete(f"/v1/scheduled-transactions/{scheduled_id}", headers=HEADERS).status_code == 204
    assert client.get(f"/v1/scheduled-transactions/{scheduled_id}", headers=HEADERS).status_code == 404


def test_mark_overdue_and_reminders(client: TestClient):
    """Test overdue sweep and reminders endpoints"""
    account = _create_account(client)
    for description, due in [
        ("Late", datetime.now(timezone.utc) - timedelta(days=1)),
        ("Soon", datetime.now(timezone.utc) + timedelta(hours=6)),
    ]:
        client.post(
            "/v1/scheduled-transactions",
            json={
                "account_id": account["id"],
                "type": "EXPENSE",
                "amount": "10",
                "currency": "KRW",
                "description": description,
                "due_date": due.isoformat(),
            },
            headers=HEADERS,
        )

    marked = client.post("/v1/scheduled-transactions/mark-overdue", headers=HEADERS)
    assert marked.json() == {"marked": 1}

    reminders = client.get("/v1/scheduled-transactions/reminders", headers=HEADERS).json()
    assert [item["description"] for item in reminders] == ["Soon"]


def test_payment_amount_beyond_supported_digits_is_422(client: TestClient):
    """Amounts are bounded at the API edge before any ledger arithmetic"""
    account = _create_account(client)
    card = client.post(
        "/v1/cards",
        json={"name": "Credit", "type": "CREDIT", "account_id": account["id"], "credit_limit": "1000"},
        headers=HEADERS,
    ).json()

    response = client.post(
        f"/v1/cards/{card['id']}/payments",
        json={"amount": "1E+70", "currency": "KRW", "description": "Too much"},
        headers=HEADERS,
    )

    assert response.status_code == 422
    detail = client.get(f"/v1/cards/{card['id']}", headers=HEADERS).json()
    assert detail["monthly_usage"] == "0"
