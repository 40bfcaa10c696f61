"""In-memory ledger store for tests and local experimentation"""

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, TypeVar

from fintrack_ledger.domain.ledger import BalanceRef, LedgerSession, LedgerStore
from fintrack_ledger.domain.models import (
    Account,
    AutoTransfer,
    Card,
    DebitTerms,
    PrepaidTerms,
    ScheduledFilter,
    ScheduledPage,
    ScheduledStatus,
    ScheduledTransaction,
    Transaction,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount, sum_of

T = TypeVar("T")

_STATUS_ORDER = {status: index for index, status in enumerate(ScheduledStatus)}


@dataclass
class LedgerState:
    accounts: Dict[str, Account] = field(default_factory=dict)
    cards: Dict[str, Card] = field(default_factory=dict)
    transactions: List[Transaction] = field(default_factory=list)
    auto_transfers: List[AutoTransfer] = field(default_factory=list)
    scheduled: Dict[str, ScheduledTransaction] = field(default_factory=dict)


class InMemoryLedgerSession(LedgerSession):
    """Operates on a private working copy; reads and writes copy entities in and out"""

    def __init__(self, state: LedgerState):
        self.state = state

    def get_account(self, account_id: str, user_id: str) -> Optional[Account]:
        account = self.state.accounts.get(account_id)
        if account is None or account.user_id != user_id:
            return None
        return copy.deepcopy(account)

    def create_account(self, account: Account) -> Account:
        self.state.accounts[account.id] = copy.deepcopy(account)
        return account

    def get_card(self, card_id: str, user_id: Optional[str] = None) -> Optional[Card]:
        card = self.state.cards.get(card_id)
        if card is None or (user_id is not None and card.user_id != user_id):
            return None
        return copy.deepcopy(card)

    def list_cards(self, user_id: str, include_inactive: bool = False) -> List[Card]:
        return [
            copy.deepcopy(card)
            for card in reversed(list(self.state.cards.values()))
            if card.user_id == user_id and (include_inactive or card.is_active)
        ]

    def create_card(self, card: Card) -> Card:
        self.state.cards[card.id] = copy.deepcopy(card)
        return card

    def save_card(self, card: Card) -> Card:
        stored = self.state.cards[card.id]
        terms = copy.deepcopy(card.terms)
        if isinstance(terms, (DebitTerms, PrepaidTerms)):
            terms.balance = stored.terms.balance
        stored.name = card.name
        stored.is_active = card.is_active
        stored.terms = terms
        return copy.deepcopy(stored)

    def increment_balance(self, ref: BalanceRef, delta: MoneyAmount) -> MoneyAmount:
        if ref.kind == "account":
            account = self.state.accounts[ref.id]
            account.balance = account.balance.add(delta)
            return account.balance

        card = self.state.cards[ref.id]
        if not isinstance(card.terms, (DebitTerms, PrepaidTerms)):
            raise ValueError(f"Card {ref.id} has no stored balance")
        card.terms.balance = card.terms.balance.add(delta)
        return card.terms.balance

    def create_transaction(self, transaction: Transaction) -> Transaction:
        self.state.transactions.append(copy.deepcopy(transaction))
        return transaction

    def list_transactions(
        self,
        user_id: str,
        card_id: Optional[str] = None,
        account_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Transaction]:
        matches = [
            t
            for t in self.state.transactions
            if t.user_id == user_id
            and (card_id is None or t.card_id == card_id)
            and (account_id is None or t.account_id == account_id)
        ]
        matches.sort(key=lambda t: t.date, reverse=True)
        return copy.deepcopy(matches[:limit])

    def create_auto_transfer(self, transfer: AutoTransfer) -> AutoTransfer:
        self.state.auto_transfers.append(copy.deepcopy(transfer))
        return transfer

    def list_auto_transfers(self, card_id: str, limit: int = 5) -> List[AutoTransfer]:
        matches = [t for t in self.state.auto_transfers if t.card_id == card_id]
        matches.sort(key=lambda t: t.executed_at or t.created_at, reverse=True)
        return copy.deepcopy(matches[:limit])

    def aggregate_monthly_expense(
        self, card_id: str, since: datetime, until: Optional[datetime] = None
    ) -> MoneyAmount:
        return sum_of(
            t.amount
            for t in self.state.transactions
            if t.card_id == card_id
            and t.type is TransactionType.EXPENSE
            and t.date >= since
            and (until is None or t.date <= until)
        )

    def get_scheduled(self, scheduled_id: str, user_id: str) -> Optional[ScheduledTransaction]:
        item = self.state.scheduled.get(scheduled_id)
        if item is None or item.user_id != user_id:
            return None
        return copy.deepcopy(item)

    def create_scheduled(self, item: ScheduledTransaction) -> ScheduledTransaction:
        self.state.scheduled[item.id] = copy.deepcopy(item)
        return item

    def save_scheduled(self, item: ScheduledTransaction) -> ScheduledTransaction:
        self.state.scheduled[item.id] = copy.deepcopy(item)
        return item

    def delete_scheduled(self, scheduled_id: str) -> None:
        self.state.scheduled.pop(scheduled_id, None)

    def list_scheduled(self, user_id: str, criteria: ScheduledFilter) -> ScheduledPage:
        matches = [
            item
            for item in self.state.scheduled.values()
            if item.user_id == user_id
            and (criteria.status is None or item.status is criteria.status)
            and (criteria.type is None or item.type is criteria.type)
            and (criteria.account_id is None or item.account_id == criteria.account_id)
            and (criteria.category_id is None or item.category_id == criteria.category_id)
            and (criteria.is_recurring is None or item.is_recurring == criteria.is_recurring)
            and (criteria.due_from is None or item.due_date >= criteria.due_from)
            and (criteria.due_until is None or item.due_date <= criteria.due_until)
        ]
        matches.sort(key=lambda item: (_STATUS_ORDER[item.status], item.due_date))
        window = matches[criteria.offset : criteria.offset + criteria.limit]
        return ScheduledPage(
            items=copy.deepcopy(window),
            total=len(matches),
            page=criteria.page,
            limit=criteria.limit,
        )

    def mark_overdue(self, now: datetime, user_id: Optional[str] = None) -> int:
        changed = 0
        for item in self.state.scheduled.values():
            if user_id is not None and item.user_id != user_id:
                continue
            if item.status is ScheduledStatus.PENDING and item.due_date < now:
                item.status = ScheduledStatus.OVERDUE
                changed += 1
        return changed

    def list_pending_due_between(self, start: datetime, end: datetime) -> List[ScheduledTransaction]:
        matches = [
            item
            for item in self.state.scheduled.values()
            if item.status is ScheduledStatus.PENDING and start <= item.due_date <= end
        ]
        matches.sort(key=lambda item: item.due_date)
        return copy.deepcopy(matches)


class InMemoryLedgerStore(LedgerStore):
    """
    Ledger store holding state in process memory.

    Units of work are serialized by a lock. Each unit runs against a deep copy
    of the committed state, which replaces the committed state only when the
    unit returns normally, so an exception leaves no trace.
    """

    def __init__(self, state: LedgerState | None = None):
        self._state = state or LedgerState()
        self._lock = threading.RLock()

    @property
    def state(self) -> LedgerState:
        """Committed state (read-only use; tests inspect it directly)"""
        return self._state

    def with_transaction(self, fn: Callable[[LedgerSession], T]) -> T:
        with self._lock:
            working = copy.deepcopy(self._state)
            result = fn(InMemoryLedgerSession(working))
            self._state = working
            return result
