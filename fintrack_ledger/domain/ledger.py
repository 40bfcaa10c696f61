"""
Ledger storage interface.

The services depend on this contract, never on a concrete database. A
``LedgerStore`` runs one unit of work at a time through ``with_transaction``;
everything done through the ``LedgerSession`` handle inside that call commits
or aborts together.

Implementations must:
- give the unit a consistent snapshot and isolate it from concurrent units
  touching the same rows (row locks or serializable isolation), so two
  payments on one card cannot both pass a limit check on a stale total
- let ``DomainException`` raised by the unit propagate unchanged after rollback
- translate storage aborts and timeouts into ``LedgerUnavailableError``
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from fintrack_ledger.domain.models import (
    Account,
    AutoTransfer,
    Card,
    ScheduledFilter,
    ScheduledPage,
    ScheduledTransaction,
    Transaction,
)
from fintrack_ledger.domain.money import MoneyAmount

T = TypeVar("T")


@dataclass(frozen=True)
class BalanceRef:
    """Points at a mutable balance: an account's or a card's"""

    kind: str  # "account" | "card"
    id: str

    @classmethod
    def account(cls, account_id: str) -> "BalanceRef":
        return cls("account", account_id)

    @classmethod
    def card(cls, card_id: str) -> "BalanceRef":
        return cls("card", card_id)


class LedgerSession(ABC):
    """Transactional handle passed to a unit of work"""

    # Accounts

    @abstractmethod
    def get_account(self, account_id: str, user_id: str) -> Optional[Account]:
        """Fetch an account owned by user_id (None if absent or foreign)"""

    @abstractmethod
    def create_account(self, account: Account) -> Account:
        ...

    # Cards

    @abstractmethod
    def get_card(self, card_id: str, user_id: Optional[str] = None) -> Optional[Card]:
        """Fetch a card and lock it for the rest of the unit; user_id=None skips the owner filter"""

    @abstractmethod
    def list_cards(self, user_id: str, include_inactive: bool = False) -> List[Card]:
        ...

    @abstractmethod
    def create_card(self, card: Card) -> Card:
        ...

    @abstractmethod
    def save_card(self, card: Card) -> Card:
        """Persist name, activity flag and terms of an existing card (balance excluded)"""

    # Balances

    @abstractmethod
    def increment_balance(self, ref: BalanceRef, delta: MoneyAmount) -> MoneyAmount:
        """Add delta (may be negative) to the referenced balance; returns the new balance"""

    # Transactions and transfers

    @abstractmethod
    def create_transaction(self, transaction: Transaction) -> Transaction:
        ...

    @abstractmethod
    def list_transactions(
        self,
        user_id: str,
        card_id: Optional[str] = None,
        account_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Transaction]:
        """Most recent first"""

    @abstractmethod
    def create_auto_transfer(self, transfer: AutoTransfer) -> AutoTransfer:
        ...

    @abstractmethod
    def list_auto_transfers(self, card_id: str, limit: int = 5) -> List[AutoTransfer]:
        """Most recent first"""

    @abstractmethod
    def aggregate_monthly_expense(
        self, card_id: str, since: datetime, until: Optional[datetime] = None
    ) -> MoneyAmount:
        """Sum of the card's EXPENSE transactions dated in [since, until]"""

    # Scheduled transactions

    @abstractmethod
    def get_scheduled(self, scheduled_id: str, user_id: str) -> Optional[ScheduledTransaction]:
        ...

    @abstractmethod
    def create_scheduled(self, item: ScheduledTransaction) -> ScheduledTransaction:
        ...

    @abstractmethod
    def save_scheduled(self, item: ScheduledTransaction) -> ScheduledTransaction:
        ...

    @abstractmethod
    def delete_scheduled(self, scheduled_id: str) -> None:
        ...

    @abstractmethod
    def list_scheduled(self, user_id: str, criteria: ScheduledFilter) -> ScheduledPage:
        """Ordered by status then due date"""

    @abstractmethod
    def mark_overdue(self, now: datetime, user_id: Optional[str] = None) -> int:
        """Flag PENDING items due before now as OVERDUE; returns how many changed"""

    @abstractmethod
    def list_pending_due_between(self, start: datetime, end: datetime) -> List[ScheduledTransaction]:
        ...


class LedgerStore(ABC):
    """Factory for atomic units of work"""

    @abstractmethod
    def with_transaction(self, fn: Callable[[LedgerSession], T]) -> T:
        """Run fn inside one atomic unit; commit on return, roll back on any exception"""
