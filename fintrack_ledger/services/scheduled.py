"""Scheduled transaction lifecycle: state machine, execution and recurrence"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fintrack_ledger.config import settings
from fintrack_ledger.domain.exceptions import (
    AccountNotFoundError,
    AlreadyExecutedError,
    DomainException,
    InvalidAmountError,
    InvalidStatusTransitionError,
    RecurringRequiresFrequencyError,
    ScheduledTransactionNotFoundError,
    ValidationFailedError,
)
from fintrack_ledger.domain.ledger import BalanceRef, LedgerSession, LedgerStore
from fintrack_ledger.domain.models import (
    ExecutionResult,
    Frequency,
    ScheduledFilter,
    ScheduledPage,
    ScheduledStatus,
    ScheduledTransaction,
    Transaction,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount, MoneyLike
from fintrack_ledger.domain.recurrence import next_occurrence
from fintrack_ledger.infrastructure.observability.logging import log_execution
from fintrack_ledger.infrastructure.observability.metrics import overdue_marked_counter, record_execution
from fintrack_ledger.services.common import Clock, ledger_now, run_unit

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "account_id",
        "category_id",
        "type",
        "amount",
        "currency",
        "description",
        "due_date",
        "frequency",
        "end_date",
        "is_recurring",
        "reminder_days",
        "notes",
    }
)

EXECUTED_SUFFIX = " (scheduled)"


def balance_delta(item: ScheduledTransaction) -> MoneyAmount:
    """Signed effect of executing item on its account"""
    if item.type is TransactionType.EXPENSE:
        return item.amount.negate()
    return item.amount


class ScheduledTransactionLifecycle:
    """
    Owns the PENDING/OVERDUE/COMPLETED/CANCELLED state machine.

    PENDING and OVERDUE items may be executed or cancelled. COMPLETED and
    CANCELLED are terminal. OVERDUE is derived from due_date < now and is
    recomputed by mark_overdue on every listing.
    """

    def __init__(self, store: LedgerStore, clock: Clock | None = None):
        self.store = store
        self.clock = clock or ledger_now

    def _validate(self, item: ScheduledTransaction) -> None:
        if not item.amount.is_positive():
            raise InvalidAmountError("Scheduled amount must be positive")
        if item.is_recurring and item.frequency is None:
            raise RecurringRequiresFrequencyError()
        if not 0 <= item.reminder_days <= settings.max_reminder_days:
            raise ValidationFailedError(f"reminder_days must be between 0 and {settings.max_reminder_days}")

    def _load(self, session: LedgerSession, user_id: str, scheduled_id: str) -> ScheduledTransaction:
        item = session.get_scheduled(scheduled_id, user_id)
        if item is None:
            raise ScheduledTransactionNotFoundError()
        return item

    def create(
        self,
        user_id: str,
        account_id: str,
        type: TransactionType,
        amount: MoneyLike,
        currency: str,
        description: str,
        due_date: datetime,
        frequency: Optional[Frequency] = None,
        end_date: Optional[datetime] = None,
        is_recurring: bool = False,
        reminder_days: Optional[int] = None,
        category_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ScheduledTransaction:
        item = ScheduledTransaction(
            user_id=user_id,
            account_id=account_id,
            type=TransactionType(type),
            amount=MoneyAmount(amount),
            currency=currency,
            description=description,
            due_date=due_date,
            frequency=Frequency(frequency) if frequency else None,
            end_date=end_date,
            is_recurring=is_recurring,
            reminder_days=settings.default_reminder_days if reminder_days is None else reminder_days,
            category_id=category_id,
            notes=notes,
        )
        self._validate(item)

        def unit(session: LedgerSession) -> ScheduledTransaction:
            if session.get_account(account_id, user_id) is None:
                raise AccountNotFoundError()
            return session.create_scheduled(item)

        return run_unit(self.store, "scheduled_create", unit, account_id=account_id, amount=item.amount)

    def update(self, user_id: str, scheduled_id: str, changes: Dict[str, Any]) -> ScheduledTransaction:
        """Apply field changes to an open (PENDING or OVERDUE) item"""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationFailedError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        now = self.clock()

        def unit(session: LedgerSession) -> ScheduledTransaction:
            item = self._load(session, user_id, scheduled_id)
            if item.status.is_terminal:
                raise InvalidStatusTransitionError(f"Cannot modify a {item.status.value} scheduled transaction")

            for field_name, value in changes.items():
                if field_name == "amount":
                    value = MoneyAmount(value)
                elif field_name == "type":
                    value = TransactionType(value)
                elif field_name == "frequency" and value is not None:
                    value = Frequency(value)
                setattr(item, field_name, value)

            if item.status is ScheduledStatus.OVERDUE and item.due_date >= now:
                item.status = ScheduledStatus.PENDING

            self._validate(item)
            if "account_id" in changes and session.get_account(item.account_id, user_id) is None:
                raise AccountNotFoundError()
            return session.save_scheduled(item)

        return run_unit(self.store, "scheduled_update", unit, scheduled_id=scheduled_id)

    def get(self, user_id: str, scheduled_id: str) -> ScheduledTransaction:
        return run_unit(
            self.store,
            "scheduled_get",
            lambda session: self._load(session, user_id, scheduled_id),
            scheduled_id=scheduled_id,
        )

    def list(self, user_id: str, criteria: ScheduledFilter | None = None) -> ScheduledPage:
        """List the user's items after refreshing their overdue flags"""
        criteria = criteria or ScheduledFilter()
        now = self.clock()

        def unit(session: LedgerSession) -> ScheduledPage:
            marked = session.mark_overdue(now, user_id)
            if marked:
                overdue_marked_counter.inc(marked)
            return session.list_scheduled(user_id, criteria)

        return run_unit(self.store, "scheduled_list", unit)

    def mark_overdue(self, now: datetime | None = None, user_id: str | None = None) -> int:
        """Flag every PENDING item due before now as OVERDUE. Safe to run repeatedly."""
        now = now or self.clock()
        marked = run_unit(self.store, "scheduled_mark_overdue", lambda session: session.mark_overdue(now, user_id))
        if marked:
            overdue_marked_counter.inc(marked)
            logger.info("Scheduled transactions marked overdue", extra={"count": marked})
        return marked

    def execute(
        self,
        user_id: str,
        scheduled_id: str,
        execute_date: datetime | None = None,
        create_recurring: bool = True,
    ) -> ExecutionResult:
        """
        Turn a scheduled item into a real transaction.

        In one unit of work: record the transaction, apply it to the account
        balance, complete the item and, for recurring series that have not
        reached end_date, create the next PENDING occurrence.

        Raises:
            ScheduledTransactionNotFoundError: No such item for this user
            AlreadyExecutedError: Item is COMPLETED
            InvalidStatusTransitionError: Item is CANCELLED
            AccountNotFoundError: Item's account no longer exists
        """
        executed_at = execute_date or self.clock()

        def unit(session: LedgerSession) -> ExecutionResult:
            item = self._load(session, user_id, scheduled_id)
            if item.status is ScheduledStatus.COMPLETED:
                raise AlreadyExecutedError()
            if item.status is ScheduledStatus.CANCELLED:
                raise InvalidStatusTransitionError("Cannot execute a cancelled scheduled transaction")
            if session.get_account(item.account_id, user_id) is None:
                raise AccountNotFoundError()

            transaction = session.create_transaction(
                Transaction(
                    user_id=user_id,
                    account_id=item.account_id,
                    category_id=item.category_id,
                    type=item.type,
                    amount=item.amount,
                    currency=item.currency,
                    date=executed_at,
                    description=f"{item.description}{EXECUTED_SUFFIX}",
                    notes=f"Scheduled transaction ID: {item.id}" + (f"\n{item.notes}" if item.notes else ""),
                )
            )
            session.increment_balance(BalanceRef.account(item.account_id), balance_delta(item))

            item.status = ScheduledStatus.COMPLETED
            item.completed_at = executed_at
            session.save_scheduled(item)

            successor = None
            next_due = next_occurrence(item) if create_recurring else None
            if next_due is not None:
                successor = session.create_scheduled(
                    ScheduledTransaction(
                        user_id=item.user_id,
                        account_id=item.account_id,
                        category_id=item.category_id,
                        type=item.type,
                        amount=item.amount,
                        currency=item.currency,
                        description=item.description,
                        due_date=next_due,
                        frequency=item.frequency,
                        end_date=item.end_date,
                        is_recurring=True,
                        reminder_days=item.reminder_days,
                        notes=item.notes,
                    )
                )

            return ExecutionResult(transaction=transaction, scheduled=item, next_scheduled=successor)

        try:
            result = run_unit(self.store, "scheduled_execute", unit, scheduled_id=scheduled_id)
        except DomainException as e:
            record_execution(e.kind)
            raise

        record_execution("completed")
        log_execution(
            user_id,
            scheduled_id,
            result.transaction.id,
            result.next_scheduled.id if result.next_scheduled else None,
        )
        return result

    def cancel(self, user_id: str, scheduled_id: str) -> ScheduledTransaction:
        def unit(session: LedgerSession) -> ScheduledTransaction:
            item = self._load(session, user_id, scheduled_id)
            if item.status.is_terminal:
                raise InvalidStatusTransitionError(f"Cannot cancel a {item.status.value} scheduled transaction")
            item.status = ScheduledStatus.CANCELLED
            return session.save_scheduled(item)

        return run_unit(self.store, "scheduled_cancel", unit, scheduled_id=scheduled_id)

    def delete(self, user_id: str, scheduled_id: str) -> None:
        def unit(session: LedgerSession) -> None:
            self._load(session, user_id, scheduled_id)
            session.delete_scheduled(scheduled_id)

        run_unit(self.store, "scheduled_delete", unit, scheduled_id=scheduled_id)

    def due_reminders(self, now: datetime | None = None, user_id: str | None = None) -> List[ScheduledTransaction]:
        """
        Read-only projection for the reminder scheduler.

        PENDING items due within the lookahead window whose reminder period
        (due_date - reminder_days) has started. All users unless user_id is given.
        """
        now = now or self.clock()
        horizon = now + timedelta(days=settings.reminder_lookahead_days)
        candidates = run_unit(
            self.store,
            "scheduled_reminders",
            lambda session: session.list_pending_due_between(now, horizon),
        )
        return [
            item
            for item in candidates
            if (user_id is None or item.user_id == user_id)
            and now >= item.due_date - timedelta(days=item.reminder_days)
        ]
