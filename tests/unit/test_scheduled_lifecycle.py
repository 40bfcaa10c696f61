"""Unit tests for the scheduled transaction lifecycle"""

import pytest
from datetime import datetime, timedelta
from fintrack_ledger.domain.exceptions import (
    AccountNotFoundError,
    AlreadyExecutedError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    RecurringRequiresFrequencyError,
    ScheduledTransactionNotFoundError,
    ValidationFailedError,
)
from fintrack_ledger.domain.models import (
    Frequency,
    ScheduledFilter,
    ScheduledStatus,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount
from fintrack_ledger.services.scheduled import ScheduledTransactionLifecycle

# Pinned wall clock for every lifecycle in this module
FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def lifecycle(store, clock) -> ScheduledTransactionLifecycle:
    return ScheduledTransactionLifecycle(store, clock=clock)


@pytest.fixture
def account(add_account):
    return add_account(balance="100000")


@pytest.fixture
def schedule(lifecycle, account):
    def _schedule(**overrides):
        fields = dict(
            account_id=account.id,
            type=TransactionType.EXPENSE,
            amount="25000",
            currency="KRW",
            description="Rent",
            due_date=FIXED_NOW + timedelta(days=3),
        )
        fields.update(overrides)
        return lifecycle.create("user_1", **fields)

    return _schedule


# Create / update


def test_create_defaults(schedule):
    """Test new item starts pending with no reminder"""
    item = schedule()
    assert item.status is ScheduledStatus.PENDING
    assert item.reminder_days == 1
    assert item.amount == MoneyAmount("25000")


def test_recurring_requires_frequency(schedule):
    """Test recurring item without a frequency"""
    with pytest.raises(RecurringRequiresFrequencyError):
        schedule(is_recurring=True)


def test_create_rejects_non_positive_amount(schedule):
    """Test zero amount on create"""
    with pytest.raises(InvalidAmountError):
        schedule(amount="0")


def test_create_rejects_reminder_days_out_of_range(schedule):
    """Test reminder days outside the allowed window"""
    with pytest.raises(ValidationFailedError):
        schedule(reminder_days=31)


def test_create_for_unknown_account(lifecycle):
    """Test create against a missing account"""
    with pytest.raises(AccountNotFoundError):
        lifecycle.create("user_1", "missing", TransactionType.INCOME, "10", "KRW", "Gift", FIXED_NOW)


def test_update_merges_fields(lifecycle, schedule):
    """Test update changes only the given fields"""
    item = schedule()
    updated = lifecycle.update("user_1", item.id, {"amount": "30000", "description": "Rent (new lease)"})
    assert updated.amount == MoneyAmount("30000")
    assert updated.description == "Rent (new lease)"
    assert updated.due_date == item.due_date


def test_update_checks_merged_item_for_frequency(lifecycle, schedule):
    """Test update validates the merged result"""
    item = schedule()
    with pytest.raises(RecurringRequiresFrequencyError):
        lifecycle.update("user_1", item.id, {"is_recurring": True})


def test_update_rejects_unknown_fields(lifecycle, schedule):
    """Test update with a field that does not exist"""
    item = schedule()
    with pytest.raises(ValidationFailedError):
        lifecycle.update("user_1", item.id, {"status": "COMPLETED"})


def test_update_moving_due_date_forward_clears_overdue(lifecycle, schedule):
    """Test rescheduling an overdue item makes it pending"""
    item = schedule(due_date=FIXED_NOW - timedelta(days=2))
    lifecycle.mark_overdue()

    updated = lifecycle.update("user_1", item.id, {"due_date": FIXED_NOW + timedelta(days=7)})

    assert updated.status is ScheduledStatus.PENDING


# Execute


def test_execute_applies_expense_to_account(lifecycle, schedule, account, store):
    """Test executing an expense debits the account"""
    item = schedule(notes="Landlord: Kim")

    result = lifecycle.execute("user_1", item.id)

    assert result.scheduled.status is ScheduledStatus.COMPLETED
    assert result.scheduled.completed_at == FIXED_NOW
    assert result.next_scheduled is None
    assert result.transaction.description == "Rent (scheduled)"
    assert result.transaction.notes == f"Scheduled transaction ID: {item.id}\nLandlord: Kim"
    assert store.state.accounts[account.id].balance == MoneyAmount("75000")


def test_execute_income_credits_account(lifecycle, schedule, account, store):
    """Test executing income credits the account"""
    item = schedule(type=TransactionType.INCOME, amount="5000", description="Salary")
    lifecycle.execute("user_1", item.id, execute_date=datetime(2024, 3, 20))
    assert store.state.accounts[account.id].balance == MoneyAmount("105000")
    assert store.state.transactions[0].date == datetime(2024, 3, 20)


def test_execute_twice_is_rejected_and_records_one_transaction(lifecycle, schedule, account, store):
    """Test second execution is rejected"""
    item = schedule()
    lifecycle.execute("user_1", item.id)

    with pytest.raises(AlreadyExecutedError):
        lifecycle.execute("user_1", item.id)

    assert len(store.state.transactions) == 1
    assert store.state.accounts[account.id].balance == MoneyAmount("75000")


def test_execute_monthly_creates_next_occurrence(lifecycle, schedule, store):
    """MONTHLY due 2024-02-01, ending 2024-12-31"""
    item = schedule(
        due_date=datetime(2024, 2, 1),
        end_date=datetime(2024, 12, 31),
        frequency=Frequency.MONTHLY,
        is_recurring=True,
    )

    result = lifecycle.execute("user_1", item.id, create_recurring=True)

    successor = result.next_scheduled
    assert successor.due_date == datetime(2024, 3, 1)
    assert successor.status is ScheduledStatus.PENDING
    assert successor.is_recurring
    assert successor.end_date == datetime(2024, 12, 31)
    assert successor.id != item.id
    assert store.state.scheduled[successor.id].status is ScheduledStatus.PENDING


def test_execute_without_recurrence_flag_skips_successor(lifecycle, schedule, store):
    """Test non-recurring item has no successor"""
    item = schedule(frequency=Frequency.WEEKLY, is_recurring=True)
    result = lifecycle.execute("user_1", item.id, create_recurring=False)
    assert result.next_scheduled is None
    assert len(store.state.scheduled) == 1


def test_execute_last_occurrence_ends_series(lifecycle, schedule):
    """Test execution on the final occurrence"""
    item = schedule(
        due_date=datetime(2024, 12, 1),
        end_date=datetime(2024, 12, 31),
        frequency=Frequency.MONTHLY,
        is_recurring=True,
    )
    assert lifecycle.execute("user_1", item.id).next_scheduled is None


def test_execute_overdue_item(lifecycle, schedule):
    """Test overdue items can still be executed"""
    item = schedule(due_date=FIXED_NOW - timedelta(days=10))
    lifecycle.mark_overdue()
    assert lifecycle.execute("user_1", item.id).scheduled.status is ScheduledStatus.COMPLETED


def test_execute_cancelled_item_is_rejected(lifecycle, schedule, store):
    """Test execution of a cancelled item"""
    item = schedule()
    lifecycle.cancel("user_1", item.id)

    with pytest.raises(InvalidStatusTransitionError):
        lifecycle.execute("user_1", item.id)
    assert store.state.transactions == []


def test_execute_other_users_item(lifecycle, schedule):
    """Test execution of another user's item"""
    item = schedule()
    with pytest.raises(ScheduledTransactionNotFoundError):
        lifecycle.execute("user_2", item.id)


# Overdue, listing, cancel, delete


def test_mark_overdue_is_idempotent(lifecycle, schedule):
    """Test repeated overdue sweep"""
    late = schedule(due_date=FIXED_NOW - timedelta(hours=1))
    schedule(due_date=FIXED_NOW + timedelta(hours=1))

    assert lifecycle.mark_overdue() == 1
    assert lifecycle.mark_overdue() == 0
    assert lifecycle.get("user_1", late.id).status is ScheduledStatus.OVERDUE


def test_mark_overdue_leaves_terminal_items_alone(lifecycle, schedule):
    """Test overdue sweep skips completed and cancelled items"""
    item = schedule(due_date=FIXED_NOW - timedelta(days=1))
    lifecycle.cancel("user_1", item.id)
    assert lifecycle.mark_overdue() == 0
    assert lifecycle.get("user_1", item.id).status is ScheduledStatus.CANCELLED


def test_list_flags_overdue_and_orders_by_status_then_due_date(lifecycle, schedule):
    """Test listing order and overdue flag"""
    later = schedule(due_date=FIXED_NOW + timedelta(days=9))
    sooner = schedule(due_date=FIXED_NOW + timedelta(days=2))
    late = schedule(due_date=FIXED_NOW - timedelta(days=1))

    page = lifecycle.list("user_1")

    assert [item.id for item in page.items] == [sooner.id, later.id, late.id]
    assert page.items[-1].status is ScheduledStatus.OVERDUE
    assert page.total == 3


def test_list_filters_and_paginates(lifecycle, schedule):
    """Test listing filters and pagination"""
    for day in range(5):
        schedule(due_date=FIXED_NOW + timedelta(days=day + 1))
    schedule(type=TransactionType.INCOME, description="Salary")

    page = lifecycle.list("user_1", ScheduledFilter(type=TransactionType.EXPENSE, page=2, limit=2))

    assert page.total == 5
    assert page.pages == 3
    assert len(page.items) == 2
    assert all(item.type is TransactionType.EXPENSE for item in page.items)


def test_cancel_completed_item_is_rejected(lifecycle, schedule):
    """Test cancel after completion"""
    item = schedule()
    lifecycle.execute("user_1", item.id)
    with pytest.raises(InvalidStatusTransitionError):
        lifecycle.cancel("user_1", item.id)


def test_update_cancelled_item_is_rejected(lifecycle, schedule):
    """Test update after cancel"""
    item = schedule()
    lifecycle.cancel("user_1", item.id)
    with pytest.raises(InvalidStatusTransitionError):
        lifecycle.update("user_1", item.id, {"amount": "1"})


def test_delete(lifecycle, schedule):
    """Test delete removes the item"""
    item = schedule()
    lifecycle.delete("user_1", item.id)
    with pytest.raises(ScheduledTransactionNotFoundError):
        lifecycle.get("user_1", item.id)


# Reminders


def test_due_reminders_respects_reminder_window(lifecycle, schedule):
    """Test reminders only inside the reminder window"""
    tomorrow = schedule(due_date=FIXED_NOW + timedelta(hours=20))
    schedule(due_date=FIXED_NOW + timedelta(days=3))
    in_a_week = schedule(due_date=FIXED_NOW + timedelta(days=7), reminder_days=7)
    schedule(due_date=FIXED_NOW + timedelta(days=60), reminder_days=30)

    reminders = lifecycle.due_reminders()

    assert [item.id for item in reminders] == [tomorrow.id, in_a_week.id]


def test_due_reminders_for_one_user(lifecycle, schedule):
    """Test reminders scoped to one user"""
    schedule(due_date=FIXED_NOW + timedelta(hours=2))
    assert lifecycle.due_reminders(user_id="user_2") == []
    assert len(lifecycle.due_reminders(user_id="user_1")) == 1
