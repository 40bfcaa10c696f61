"""Data access layer: SQLAlchemy implementation of the ledger store"""

from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fintrack_ledger.domain.exceptions import LedgerUnavailableError
from fintrack_ledger.domain.ledger import BalanceRef, LedgerSession, LedgerStore
from fintrack_ledger.domain.models import (
    Account,
    AutoTransfer,
    AutoTransferStatus,
    AutoTransferTrigger,
    Card,
    CardTerms,
    CardType,
    CreditTerms,
    DebitTerms,
    Frequency,
    PostpayTerms,
    PrepaidTerms,
    ScheduledFilter,
    ScheduledPage,
    ScheduledStatus,
    ScheduledTransaction,
    Transaction,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount, sum_of
from fintrack_ledger.infrastructure.database.models import (
    AccountRow,
    AutoTransferRow,
    CardRow,
    ScheduledTransactionRow,
    TransactionRow,
)

T = TypeVar("T")

_TERM_COLUMNS = (
    "credit_limit",
    "billing_date",
    "payment_date",
    "linked_account_id",
    "auto_transfer_enabled",
    "min_balance",
    "monthly_limit",
    "settlement_day",
)

# Rank follows the declaration order of ScheduledStatus
_STATUS_RANK = case(
    {status.value: index for index, status in enumerate(ScheduledStatus)},
    value=ScheduledTransactionRow.status,
)


# Row <-> domain mapping


def _account(row: AccountRow) -> Account:
    return Account(id=row.id, user_id=row.user_id, name=row.name, currency=row.currency, balance=row.balance)


def _terms(row: CardRow) -> CardTerms:
    card_type = CardType(row.type)
    if card_type is CardType.CREDIT:
        return CreditTerms(
            credit_limit=row.credit_limit,
            billing_date=row.billing_date,
            payment_date=row.payment_date,
        )
    if card_type is CardType.DEBIT:
        return DebitTerms(
            balance=row.balance or MoneyAmount.zero(),
            linked_account_id=row.linked_account_id,
            auto_transfer_enabled=bool(row.auto_transfer_enabled),
            min_balance=row.min_balance or MoneyAmount.zero(),
        )
    if card_type is CardType.PREPAID:
        return PrepaidTerms(balance=row.balance or MoneyAmount.zero())
    return PostpayTerms(monthly_limit=row.monthly_limit, settlement_day=row.settlement_day)


def _card(row: CardRow) -> Card:
    return Card(
        id=row.id,
        user_id=row.user_id,
        account_id=row.account_id,
        name=row.name,
        is_active=row.is_active,
        terms=_terms(row),
    )


def _write_terms(row: CardRow, terms: CardTerms) -> None:
    """Set the columns of terms' card type and clear every other type's columns"""
    for column in _TERM_COLUMNS:
        setattr(row, column, None)
    row.type = terms.card_type.value

    if isinstance(terms, CreditTerms):
        row.credit_limit = terms.credit_limit
        row.billing_date = terms.billing_date
        row.payment_date = terms.payment_date
    elif isinstance(terms, DebitTerms):
        row.linked_account_id = terms.linked_account_id
        row.auto_transfer_enabled = terms.auto_transfer_enabled
        row.min_balance = terms.min_balance
    elif isinstance(terms, PostpayTerms):
        row.monthly_limit = terms.monthly_limit
        row.settlement_day = terms.settlement_day


def _transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        account_id=row.account_id,
        card_id=row.card_id,
        category_id=row.category_id,
        type=TransactionType(row.type),
        amount=row.amount,
        currency=row.currency,
        date=row.date,
        description=row.description,
        notes=row.notes,
    )


def _auto_transfer(row: AutoTransferRow) -> AutoTransfer:
    return AutoTransfer(
        id=row.id,
        user_id=row.user_id,
        card_id=row.card_id,
        from_account_id=row.from_account_id,
        to_account_id=row.to_account_id,
        amount=row.amount,
        currency=row.currency,
        status=AutoTransferStatus(row.status),
        triggered_by=AutoTransferTrigger(row.triggered_by),
        reason=row.reason,
        created_at=row.created_at,
        executed_at=row.executed_at,
    )


def _scheduled(row: ScheduledTransactionRow) -> ScheduledTransaction:
    return ScheduledTransaction(
        id=row.id,
        user_id=row.user_id,
        account_id=row.account_id,
        category_id=row.category_id,
        type=TransactionType(row.type),
        amount=row.amount,
        currency=row.currency,
        description=row.description,
        due_date=row.due_date,
        frequency=Frequency(row.frequency) if row.frequency else None,
        end_date=row.end_date,
        is_recurring=row.is_recurring,
        status=ScheduledStatus(row.status),
        reminder_days=row.reminder_days,
        notes=row.notes,
        completed_at=row.completed_at,
    )


def _write_scheduled(row: ScheduledTransactionRow, item: ScheduledTransaction) -> None:
    row.user_id = item.user_id
    row.account_id = item.account_id
    row.category_id = item.category_id
    row.type = item.type.value
    row.amount = item.amount
    row.currency = item.currency
    row.description = item.description
    row.due_date = item.due_date
    row.frequency = item.frequency.value if item.frequency else None
    row.end_date = item.end_date
    row.is_recurring = item.is_recurring
    row.status = item.status.value
    row.reminder_days = item.reminder_days
    row.notes = item.notes
    row.completed_at = item.completed_at


class SqlLedgerSession(LedgerSession):
    """Ledger operations inside one database transaction"""

    def __init__(self, db: Session):
        self.db = db

    def _locked(self, model, row_id: str):
        stmt = (
            select(model)
            .where(model.id == row_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    # Accounts

    def get_account(self, account_id: str, user_id: str) -> Optional[Account]:
        row = self._locked(AccountRow, account_id)
        if row is None or row.user_id != user_id:
            return None
        return _account(row)

    def create_account(self, account: Account) -> Account:
        self.db.add(
            AccountRow(
                id=account.id,
                user_id=account.user_id,
                name=account.name,
                currency=account.currency,
                balance=account.balance,
            )
        )
        self.db.flush()
        return account

    # Cards

    def get_card(self, card_id: str, user_id: Optional[str] = None) -> Optional[Card]:
        row = self._locked(CardRow, card_id)
        if row is None or (user_id is not None and row.user_id != user_id):
            return None
        return _card(row)

    def list_cards(self, user_id: str, include_inactive: bool = False) -> List[Card]:
        stmt = select(CardRow).where(CardRow.user_id == user_id)
        if not include_inactive:
            stmt = stmt.where(CardRow.is_active.is_(True))
        stmt = stmt.order_by(CardRow.created_at.desc(), CardRow.id)
        return [_card(row) for row in self.db.execute(stmt).scalars()]

    def create_card(self, card: Card) -> Card:
        row = CardRow(
            id=card.id,
            user_id=card.user_id,
            account_id=card.account_id,
            name=card.name,
            is_active=card.is_active,
        )
        _write_terms(row, card.terms)
        row.balance = card.balance
        self.db.add(row)
        self.db.flush()
        return card

    def save_card(self, card: Card) -> Card:
        row = self._locked(CardRow, card.id)
        row.name = card.name
        row.is_active = card.is_active
        _write_terms(row, card.terms)
        self.db.flush()
        return _card(row)

    # Balances

    def increment_balance(self, ref: BalanceRef, delta: MoneyAmount) -> MoneyAmount:
        model = AccountRow if ref.kind == "account" else CardRow
        row = self._locked(model, ref.id)
        if row is None:
            raise LedgerUnavailableError(f"{ref.kind} {ref.id} vanished during unit of work")
        if row.balance is None:
            raise ValueError(f"Card {ref.id} has no stored balance")
        row.balance = row.balance.add(delta)
        self.db.flush()
        return row.balance

    # Transactions and transfers

    def create_transaction(self, transaction: Transaction) -> Transaction:
        self.db.add(
            TransactionRow(
                id=transaction.id,
                user_id=transaction.user_id,
                account_id=transaction.account_id,
                card_id=transaction.card_id,
                category_id=transaction.category_id,
                type=transaction.type.value,
                amount=transaction.amount,
                currency=transaction.currency,
                date=transaction.date,
                description=transaction.description,
                notes=transaction.notes,
            )
        )
        self.db.flush()
        return transaction

    def list_transactions(
        self,
        user_id: str,
        card_id: Optional[str] = None,
        account_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Transaction]:
        stmt = select(TransactionRow).where(TransactionRow.user_id == user_id)
        if card_id is not None:
            stmt = stmt.where(TransactionRow.card_id == card_id)
        if account_id is not None:
            stmt = stmt.where(TransactionRow.account_id == account_id)
        stmt = stmt.order_by(TransactionRow.date.desc()).limit(limit)
        return [_transaction(row) for row in self.db.execute(stmt).scalars()]

    def create_auto_transfer(self, transfer: AutoTransfer) -> AutoTransfer:
        self.db.add(
            AutoTransferRow(
                id=transfer.id,
                user_id=transfer.user_id,
                card_id=transfer.card_id,
                from_account_id=transfer.from_account_id,
                to_account_id=transfer.to_account_id,
                amount=transfer.amount,
                currency=transfer.currency,
                status=transfer.status.value,
                triggered_by=transfer.triggered_by.value,
                reason=transfer.reason,
                created_at=transfer.created_at,
                executed_at=transfer.executed_at,
            )
        )
        self.db.flush()
        return transfer

    def list_auto_transfers(self, card_id: str, limit: int = 5) -> List[AutoTransfer]:
        stmt = (
            select(AutoTransferRow)
            .where(AutoTransferRow.card_id == card_id)
            .order_by(func.coalesce(AutoTransferRow.executed_at, AutoTransferRow.created_at).desc())
            .limit(limit)
        )
        return [_auto_transfer(row) for row in self.db.execute(stmt).scalars()]

    def aggregate_monthly_expense(
        self, card_id: str, since: datetime, until: Optional[datetime] = None
    ) -> MoneyAmount:
        # Summed here rather than with SUM() so SQLite's text money never passes through a float
        stmt = select(TransactionRow.amount).where(
            TransactionRow.card_id == card_id,
            TransactionRow.type == TransactionType.EXPENSE.value,
            TransactionRow.date >= since,
        )
        if until is not None:
            stmt = stmt.where(TransactionRow.date <= until)
        return sum_of(self.db.execute(stmt).scalars())

    # Scheduled transactions

    def get_scheduled(self, scheduled_id: str, user_id: str) -> Optional[ScheduledTransaction]:
        row = self._locked(ScheduledTransactionRow, scheduled_id)
        if row is None or row.user_id != user_id:
            return None
        return _scheduled(row)

    def create_scheduled(self, item: ScheduledTransaction) -> ScheduledTransaction:
        row = ScheduledTransactionRow(id=item.id)
        _write_scheduled(row, item)
        self.db.add(row)
        self.db.flush()
        return item

    def save_scheduled(self, item: ScheduledTransaction) -> ScheduledTransaction:
        row = self._locked(ScheduledTransactionRow, item.id)
        _write_scheduled(row, item)
        self.db.flush()
        return item

    def delete_scheduled(self, scheduled_id: str) -> None:
        row = self.db.get(ScheduledTransactionRow, scheduled_id)
        if row is not None:
            self.db.delete(row)
            self.db.flush()

    def list_scheduled(self, user_id: str, criteria: ScheduledFilter) -> ScheduledPage:
        filters = [ScheduledTransactionRow.user_id == user_id]
        if criteria.status is not None:
            filters.append(ScheduledTransactionRow.status == criteria.status.value)
        if criteria.type is not None:
            filters.append(ScheduledTransactionRow.type == criteria.type.value)
        if criteria.account_id is not None:
            filters.append(ScheduledTransactionRow.account_id == criteria.account_id)
        if criteria.category_id is not None:
            filters.append(ScheduledTransactionRow.category_id == criteria.category_id)
        if criteria.is_recurring is not None:
            filters.append(ScheduledTransactionRow.is_recurring.is_(criteria.is_recurring))
        if criteria.due_from is not None:
            filters.append(ScheduledTransactionRow.due_date >= criteria.due_from)
        if criteria.due_until is not None:
            filters.append(ScheduledTransactionRow.due_date <= criteria.due_until)

        total = self.db.execute(select(func.count()).select_from(ScheduledTransactionRow).where(*filters)).scalar_one()
        stmt = (
            select(ScheduledTransactionRow)
            .where(*filters)
            .order_by(_STATUS_RANK, ScheduledTransactionRow.due_date)
            .offset(criteria.offset)
            .limit(criteria.limit)
            .execution_options(populate_existing=True)
        )
        return ScheduledPage(
            items=[_scheduled(row) for row in self.db.execute(stmt).scalars()],
            total=total,
            page=criteria.page,
            limit=criteria.limit,
        )

    def mark_overdue(self, now: datetime, user_id: Optional[str] = None) -> int:
        stmt = update(ScheduledTransactionRow).where(
            ScheduledTransactionRow.status == ScheduledStatus.PENDING.value,
            ScheduledTransactionRow.due_date < now,
        )
        if user_id is not None:
            stmt = stmt.where(ScheduledTransactionRow.user_id == user_id)
        result = self.db.execute(
            stmt.values(status=ScheduledStatus.OVERDUE.value).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def list_pending_due_between(self, start: datetime, end: datetime) -> List[ScheduledTransaction]:
        stmt = (
            select(ScheduledTransactionRow)
            .where(
                ScheduledTransactionRow.status == ScheduledStatus.PENDING.value,
                ScheduledTransactionRow.due_date >= start,
                ScheduledTransactionRow.due_date <= end,
            )
            .order_by(ScheduledTransactionRow.due_date)
            .execution_options(populate_existing=True)
        )
        return [_scheduled(row) for row in self.db.execute(stmt).scalars()]


class SqlLedgerStore(LedgerStore):
    """
    Ledger store over a SQLAlchemy session.

    Each unit of work commits once on success and rolls back on any error.
    Database errors surface as LedgerUnavailableError; domain errors pass
    through unchanged.
    """

    def __init__(self, db: Session):
        self.db = db

    def with_transaction(self, fn: Callable[[LedgerSession], T]) -> T:
        try:
            result = fn(SqlLedgerSession(self.db))
            self.db.commit()
            return result
        except SQLAlchemyError as e:
            self.db.rollback()
            raise LedgerUnavailableError(f"Ledger commit failed: {e.__class__.__name__}") from e
        except BaseException:
            self.db.rollback()
            raise
