"""Integration tests for the SQLAlchemy ledger store"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from fintrack_ledger.domain.exceptions import (
    AlreadyExecutedError,
    InsufficientLinkedBalanceError,
    LedgerUnavailableError,
)
from fintrack_ledger.domain.models import (
    DebitTerms,
    Frequency,
    PostpayTerms,
    ScheduledStatus,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount
from fintrack_ledger.infrastructure.database.models import AccountRow, CardRow, TransactionRow
from fintrack_ledger.infrastructure.database.repositories import SqlLedgerStore
from fintrack_ledger.services.accounts import AccountService
from fintrack_ledger.services.card_payments import CardPaymentProcessor
from fintrack_ledger.services.cards import CardService
from fintrack_ledger.services.scheduled import ScheduledTransactionLifecycle

NOW = datetime(2024, 3, 15, 12, 0, 0)


@pytest.fixture
def sql_store(db: Session) -> SqlLedgerStore:
    return SqlLedgerStore(db)


@pytest.fixture
def accounts(sql_store) -> AccountService:
    return AccountService(sql_store)


@pytest.fixture
def cards(sql_store) -> CardService:
    return CardService(sql_store, clock=lambda: NOW)


def test_money_survives_storage_exactly(accounts, db):
    """Test money columns keep exact decimals"""
    account = accounts.create_account("user_1", "Checking", "USD", "0.10")
    db.expire_all()

    reloaded = accounts.get_account("user_1", account.id)

    assert reloaded.balance == MoneyAmount("0.10")
    assert str(reloaded.balance) == "0.10"


def test_debit_auto_transfer_payment_commits_every_change(accounts, cards, sql_store, db):
    """Test debit payment with top-up persists all writes"""
    settlement = accounts.create_account("user_1", "Checking", "KRW")
    linked = accounts.create_account("user_1", "Savings", "KRW", "100000")
    card = cards.create_card(
        "user_1",
        "Everyday",
        settlement.id,
        DebitTerms(
            balance=MoneyAmount("3000"),
            linked_account_id=linked.id,
            auto_transfer_enabled=True,
            min_balance=MoneyAmount("10000"),
        ),
    )

    CardPaymentProcessor(sql_store, clock=lambda: NOW).process_payment("user_1", card.id, "5000", "KRW", "Coffee")
    db.expire_all()

    assert db.get(AccountRow, linked.id).balance == MoneyAmount("88000")
    assert db.get(AccountRow, settlement.id).balance == MoneyAmount("12000")
    assert db.get(CardRow, card.id).balance == MoneyAmount("10000")
    assert db.query(TransactionRow).count() == 3


def test_failed_payment_rolls_back(accounts, cards, sql_store, db):
    """Test failed payment leaves the database unchanged"""
    settlement = accounts.create_account("user_1", "Checking", "KRW")
    linked = accounts.create_account("user_1", "Savings", "KRW", "500")
    card = cards.create_card(
        "user_1",
        "Everyday",
        settlement.id,
        DebitTerms(
            balance=MoneyAmount("3000"),
            linked_account_id=linked.id,
            auto_transfer_enabled=True,
            min_balance=MoneyAmount("10000"),
        ),
    )

    with pytest.raises(InsufficientLinkedBalanceError):
        CardPaymentProcessor(sql_store, clock=lambda: NOW).process_payment("user_1", card.id, "5000", "KRW", "Coffee")
    db.expire_all()

    assert db.get(AccountRow, linked.id).balance == MoneyAmount("500")
    assert db.get(CardRow, card.id).balance == MoneyAmount("3000")
    assert db.query(TransactionRow).count() == 0


def test_commit_failure_surfaces_as_ledger_unavailable(accounts, db, monkeypatch):
    """Test commit error maps to ledger unavailable"""
    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(LedgerUnavailableError):
        accounts.create_account("user_1", "Checking", "KRW", "100")

    monkeypatch.undo()
    assert db.query(AccountRow).count() == 0


def test_postpay_limit_uses_stored_expenses(accounts, cards, sql_store):
    """Test postpay limit reads stored expenses"""
    settlement = accounts.create_account("user_1", "Checking", "KRW")
    card = cards.create_card("user_1", "Later", settlement.id, PostpayTerms(monthly_limit=MoneyAmount("1000")))
    processor = CardPaymentProcessor(sql_store, clock=lambda: NOW)

    processor.process_payment("user_1", card.id, "600", "KRW", "First")
    processor.process_payment("user_1", card.id, "400", "KRW", "Second")

    detail = cards.get_card_detail("user_1", card.id)
    assert detail.monthly_usage == MoneyAmount("1000")


def test_scheduled_execution_round_trip(accounts, sql_store, db):
    """Test scheduled execution persists item, successor and transaction"""
    account = accounts.create_account("user_1", "Checking", "KRW", "100000")
    lifecycle = ScheduledTransactionLifecycle(sql_store, clock=lambda: NOW)
    item = lifecycle.create(
        "user_1",
        account.id,
        TransactionType.EXPENSE,
        "25000",
        "KRW",
        "Rent",
        datetime(2024, 2, 1),
        frequency=Frequency.MONTHLY,
        end_date=datetime(2024, 12, 31),
        is_recurring=True,
    )

    result = lifecycle.execute("user_1", item.id)
    with pytest.raises(AlreadyExecutedError):
        lifecycle.execute("user_1", item.id)
    db.expire_all()

    assert result.next_scheduled.due_date == datetime(2024, 3, 1)
    assert db.get(AccountRow, account.id).balance == MoneyAmount("75000")
    assert db.query(TransactionRow).count() == 1
    assert lifecycle.get("user_1", item.id).status is ScheduledStatus.COMPLETED


def test_mark_overdue_then_list(accounts, sql_store):
    """Test overdue sweep then listing"""
    account = accounts.create_account("user_1", "Checking", "KRW")
    lifecycle = ScheduledTransactionLifecycle(sql_store, clock=lambda: NOW)
    late = lifecycle.create("user_1", account.id, TransactionType.EXPENSE, "10", "KRW", "Late", NOW - timedelta(days=1))
    soon = lifecycle.create("user_1", account.id, TransactionType.EXPENSE, "10", "KRW", "Soon", NOW + timedelta(days=1))

    page = lifecycle.list("user_1")

    assert [item.id for item in page.items] == [soon.id, late.id]
    assert page.items[1].status is ScheduledStatus.OVERDUE
    assert lifecycle.mark_overdue() == 0
