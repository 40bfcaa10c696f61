"""Domain models - pure Python dataclasses representing ledger entities"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from fintrack_ledger.domain.money import MoneyAmount


def new_id() -> str:
    return str(uuid.uuid4())


class CardType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    PREPAID = "PREPAID"
    POSTPAY = "POSTPAY"


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class AutoTransferStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class AutoTransferTrigger(str, Enum):
    PAYMENT = "PAYMENT"
    LOW_BALANCE = "LOW_BALANCE"


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class ScheduledStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (ScheduledStatus.COMPLETED, ScheduledStatus.CANCELLED)


@dataclass
class Account:
    """User-owned account holding a balance in a single currency"""

    user_id: str
    name: str
    currency: str
    balance: MoneyAmount = field(default_factory=MoneyAmount.zero)
    id: str = field(default_factory=new_id)


# Card terms: exactly one of these hangs off every Card


@dataclass
class CreditTerms:
    credit_limit: Optional[MoneyAmount] = None  # None means no limit is enforced
    billing_date: Optional[int] = None  # day of month
    payment_date: Optional[int] = None

    card_type = CardType.CREDIT


@dataclass
class DebitTerms:
    balance: MoneyAmount = field(default_factory=MoneyAmount.zero)
    linked_account_id: Optional[str] = None
    auto_transfer_enabled: bool = False
    min_balance: MoneyAmount = field(default_factory=MoneyAmount.zero)

    card_type = CardType.DEBIT


@dataclass
class PrepaidTerms:
    balance: MoneyAmount = field(default_factory=MoneyAmount.zero)

    card_type = CardType.PREPAID


@dataclass
class PostpayTerms:
    monthly_limit: Optional[MoneyAmount] = None
    settlement_day: Optional[int] = None

    card_type = CardType.POSTPAY


CardTerms = Union[CreditTerms, DebitTerms, PrepaidTerms, PostpayTerms]


@dataclass
class Card:
    """Payment card drawing on a settlement account under type-specific terms"""

    user_id: str
    account_id: str
    name: str
    terms: CardTerms
    is_active: bool = True
    id: str = field(default_factory=new_id)

    @property
    def type(self) -> CardType:
        return self.terms.card_type

    @property
    def balance(self) -> Optional[MoneyAmount]:
        """Stored card balance; only DEBIT and PREPAID cards carry one"""
        if isinstance(self.terms, (DebitTerms, PrepaidTerms)):
            return self.terms.balance
        return None


@dataclass
class Transaction:
    """Realized ledger entry; amount is always positive, direction comes from type"""

    user_id: str
    account_id: str
    type: TransactionType
    amount: MoneyAmount
    currency: str
    date: datetime
    description: str
    card_id: Optional[str] = None
    category_id: Optional[str] = None
    notes: Optional[str] = None
    id: str = field(default_factory=new_id)


@dataclass
class AutoTransfer:
    """Record of a linked-account top-up performed for a debit card"""

    user_id: str
    card_id: str
    from_account_id: str
    to_account_id: str
    amount: MoneyAmount
    currency: str
    triggered_by: AutoTransferTrigger
    created_at: datetime
    status: AutoTransferStatus = AutoTransferStatus.PENDING
    reason: Optional[str] = None
    executed_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)


@dataclass
class ScheduledTransaction:
    """Planned future transaction, optionally recurring"""

    user_id: str
    account_id: str
    type: TransactionType
    amount: MoneyAmount
    currency: str
    description: str
    due_date: datetime
    frequency: Optional[Frequency] = None
    end_date: Optional[datetime] = None
    is_recurring: bool = False
    status: ScheduledStatus = ScheduledStatus.PENDING
    reminder_days: int = 1
    category_id: Optional[str] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)


@dataclass
class ScheduledFilter:
    """Listing criteria for scheduled transactions"""

    status: Optional[ScheduledStatus] = None
    type: Optional[TransactionType] = None
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    is_recurring: Optional[bool] = None
    due_from: Optional[datetime] = None
    due_until: Optional[datetime] = None
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class ScheduledPage:
    items: List[ScheduledTransaction]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@dataclass
class ExecutionResult:
    """Outcome of executing a scheduled transaction"""

    transaction: Transaction
    scheduled: ScheduledTransaction
    next_scheduled: Optional[ScheduledTransaction] = None


@dataclass
class CardDetail:
    card: Card
    monthly_usage: MoneyAmount
    recent_transactions: List[Transaction]
    recent_auto_transfers: List[AutoTransfer]
