"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator, model_validator

from fintrack_ledger.config import settings
from fintrack_ledger.domain.models import (
    Account,
    AutoTransfer,
    AutoTransferStatus,
    AutoTransferTrigger,
    Card,
    CardDetail,
    CardType,
    CreditTerms,
    DebitTerms,
    ExecutionResult,
    Frequency,
    PostpayTerms,
    PrepaidTerms,
    ScheduledPage,
    ScheduledStatus,
    ScheduledTransaction,
    Transaction,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount

TERMS_BY_TYPE = {
    CardType.CREDIT: CreditTerms,
    CardType.DEBIT: DebitTerms,
    CardType.PREPAID: PrepaidTerms,
    CardType.POSTPAY: PostpayTerms,
}

TERM_FIELDS = {
    CardType.CREDIT: {"credit_limit", "billing_date", "payment_date"},
    CardType.DEBIT: {"balance", "linked_account_id", "auto_transfer_enabled", "min_balance"},
    CardType.PREPAID: {"balance"},
    CardType.POSTPAY: {"monthly_limit", "settlement_day"},
}

ALL_TERM_FIELDS = set().union(*TERM_FIELDS.values())


# Amounts with more digits than this are rejected before reaching the ledger
MoneyDecimal = Annotated[Decimal, Field(max_digits=24, decimal_places=8)]


def to_ledger_time(value: Optional[datetime]) -> Optional[datetime]:
    """Ledger datetimes are naive wall time in the reference timezone"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(settings.reference_timezone)).replace(tzinfo=None)


def money(value: Optional[MoneyAmount]) -> Optional[str]:
    return None if value is None else str(value)


# Accounts


class AccountCreateRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    name: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(..., min_length=3, max_length=3, description="ISO 4217 code")
    balance: MoneyDecimal = Field(Decimal("0"), description="Opening balance")


class AccountResponse(BaseModel):
    id: str
    user_id: str
    name: str
    currency: str
    balance: str

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            user_id=account.user_id,
            name=account.name,
            currency=account.currency,
            balance=money(account.balance),
        )


# Cards


class CardCreateRequest(BaseModel):
    """
    Request body for POST /v1/cards.

    Only the term fields belonging to the chosen type may be sent.
    """

    name: str = Field(..., min_length=1, max_length=100)
    type: CardType
    account_id: str = Field(..., min_length=1, description="Settlement account")

    credit_limit: Optional[MoneyDecimal] = None
    billing_date: Optional[int] = None
    payment_date: Optional[int] = None
    balance: Optional[MoneyDecimal] = None
    linked_account_id: Optional[str] = None
    auto_transfer_enabled: Optional[bool] = None
    min_balance: Optional[MoneyDecimal] = None
    monthly_limit: Optional[MoneyDecimal] = None
    settlement_day: Optional[int] = None

    @model_validator(mode="after")
    def check_term_fields(self) -> "CardCreateRequest":
        foreign = (self.model_fields_set & ALL_TERM_FIELDS) - TERM_FIELDS[self.type]
        if foreign:
            raise ValueError(f"{self.type.value} cards do not accept: {', '.join(sorted(foreign))}")
        return self

    def to_terms(self):
        values = {
            name: getattr(self, name)
            for name in TERM_FIELDS[self.type]
            if getattr(self, name) is not None
        }
        for name in ("credit_limit", "balance", "min_balance", "monthly_limit"):
            if name in values:
                values[name] = MoneyAmount(values[name])
        return TERMS_BY_TYPE[self.type](**values)


class CardUpdateRequest(BaseModel):
    """Request body for PATCH /v1/cards/{card_id}; balance and type are not editable"""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None

    credit_limit: Optional[MoneyDecimal] = None
    billing_date: Optional[int] = None
    payment_date: Optional[int] = None
    linked_account_id: Optional[str] = None
    auto_transfer_enabled: Optional[bool] = None
    min_balance: Optional[MoneyDecimal] = None
    monthly_limit: Optional[MoneyDecimal] = None
    settlement_day: Optional[int] = None

    def term_changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"name", "is_active"})


class CardResponse(BaseModel):
    id: str
    user_id: str
    account_id: str
    name: str
    type: CardType
    is_active: bool
    balance: Optional[str] = None
    credit_limit: Optional[str] = None
    billing_date: Optional[int] = None
    payment_date: Optional[int] = None
    linked_account_id: Optional[str] = None
    auto_transfer_enabled: Optional[bool] = None
    min_balance: Optional[str] = None
    monthly_limit: Optional[str] = None
    settlement_day: Optional[int] = None

    @classmethod
    def from_domain(cls, card: Card) -> "CardResponse":
        terms = {}
        for name in TERM_FIELDS[card.type]:
            value = getattr(card.terms, name)
            terms[name] = money(value) if isinstance(value, MoneyAmount) else value
        return cls(
            id=card.id,
            user_id=card.user_id,
            account_id=card.account_id,
            name=card.name,
            type=card.type,
            is_active=card.is_active,
            **terms,
        )


class TransactionResponse(BaseModel):
    id: str
    account_id: str
    card_id: Optional[str] = None
    category_id: Optional[str] = None
    type: TransactionType
    amount: str
    currency: str
    date: datetime
    description: str
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, transaction: Transaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            account_id=transaction.account_id,
            card_id=transaction.card_id,
            category_id=transaction.category_id,
            type=transaction.type,
            amount=money(transaction.amount),
            currency=transaction.currency,
            date=transaction.date,
            description=transaction.description,
            notes=transaction.notes,
        )


class AutoTransferResponse(BaseModel):
    id: str
    card_id: str
    from_account_id: str
    to_account_id: str
    amount: str
    currency: str
    status: AutoTransferStatus
    triggered_by: AutoTransferTrigger
    reason: Optional[str] = None
    created_at: datetime
    executed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, transfer: AutoTransfer) -> "AutoTransferResponse":
        return cls(
            id=transfer.id,
            card_id=transfer.card_id,
            from_account_id=transfer.from_account_id,
            to_account_id=transfer.to_account_id,
            amount=money(transfer.amount),
            currency=transfer.currency,
            status=transfer.status,
            triggered_by=transfer.triggered_by,
            reason=transfer.reason,
            created_at=transfer.created_at,
            executed_at=transfer.executed_at,
        )


class CardDetailResponse(BaseModel):
    card: CardResponse
    monthly_usage: str
    recent_transactions: List[TransactionResponse]
    recent_auto_transfers: List[AutoTransferResponse]

    @classmethod
    def from_domain(cls, detail: CardDetail) -> "CardDetailResponse":
        return cls(
            card=CardResponse.from_domain(detail.card),
            monthly_usage=money(detail.monthly_usage),
            recent_transactions=[TransactionResponse.from_domain(t) for t in detail.recent_transactions],
            recent_auto_transfers=[AutoTransferResponse.from_domain(t) for t in detail.recent_auto_transfers],
        )


class PaymentRequest(BaseModel):
    """Request body for POST /v1/cards/{card_id}/payments"""

    amount: MoneyDecimal = Field(..., description="Positive amount in the card's currency")
    currency: str = Field(..., min_length=3, max_length=3)
    description: str = Field(..., min_length=1, max_length=255)
    category_id: Optional[str] = None


class ChargeRequest(BaseModel):
    """Request body for POST /v1/cards/{card_id}/charge"""

    amount: MoneyDecimal
    from_account_id: str = Field(..., min_length=1)


class AutoTransferRequest(BaseModel):
    """Request body for POST /v1/cards/{card_id}/auto-transfer"""

    required_amount: MoneyDecimal
    currency: str = Field(..., min_length=3, max_length=3)


class AutoTransferResult(BaseModel):
    executed: bool
    auto_transfer: Optional[AutoTransferResponse] = None


# Scheduled transactions


class ScheduledCreateRequest(BaseModel):
    """Request body for POST /v1/scheduled-transactions"""

    account_id: str = Field(..., min_length=1)
    type: TransactionType
    amount: MoneyDecimal
    currency: str = Field(..., min_length=3, max_length=3)
    description: str = Field(..., min_length=1, max_length=255)
    due_date: datetime
    frequency: Optional[Frequency] = None
    end_date: Optional[datetime] = None
    is_recurring: bool = False
    reminder_days: Optional[int] = None
    category_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("due_date", "end_date")
    @classmethod
    def in_ledger_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_ledger_time(value)


class ScheduledUpdateRequest(BaseModel):
    """Request body for PATCH /v1/scheduled-transactions/{id}; only sent fields change"""

    account_id: Optional[str] = None
    type: Optional[TransactionType] = None
    amount: Optional[MoneyDecimal] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    due_date: Optional[datetime] = None
    frequency: Optional[Frequency] = None
    end_date: Optional[datetime] = None
    is_recurring: Optional[bool] = None
    reminder_days: Optional[int] = None
    category_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("due_date", "end_date")
    @classmethod
    def in_ledger_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_ledger_time(value)

    @model_validator(mode="after")
    def check_required_not_null(self) -> "ScheduledUpdateRequest":
        required = ("account_id", "type", "amount", "currency", "description", "due_date", "is_recurring", "reminder_days")
        for name in required:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ExecuteRequest(BaseModel):
    """Optional body for POST /v1/scheduled-transactions/{id}/execute"""

    execute_date: Optional[datetime] = None
    create_recurring: bool = True

    @field_validator("execute_date")
    @classmethod
    def in_ledger_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_ledger_time(value)


class ScheduledResponse(BaseModel):
    id: str
    account_id: str
    category_id: Optional[str] = None
    type: TransactionType
    amount: str
    currency: str
    description: str
    due_date: datetime
    frequency: Optional[Frequency] = None
    end_date: Optional[datetime] = None
    is_recurring: bool
    status: ScheduledStatus
    reminder_days: int
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, item: ScheduledTransaction) -> "ScheduledResponse":
        return cls(
            id=item.id,
            account_id=item.account_id,
            category_id=item.category_id,
            type=item.type,
            amount=money(item.amount),
            currency=item.currency,
            description=item.description,
            due_date=item.due_date,
            frequency=item.frequency,
            end_date=item.end_date,
            is_recurring=item.is_recurring,
            status=item.status,
            reminder_days=item.reminder_days,
            notes=item.notes,
            completed_at=item.completed_at,
        )


class ScheduledListResponse(BaseModel):
    items: List[ScheduledResponse]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_domain(cls, page: ScheduledPage) -> "ScheduledListResponse":
        return cls(
            items=[ScheduledResponse.from_domain(item) for item in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )


class ExecutionResponse(BaseModel):
    transaction: TransactionResponse
    scheduled: ScheduledResponse
    next_scheduled: Optional[ScheduledResponse] = None

    @classmethod
    def from_domain(cls, result: ExecutionResult) -> "ExecutionResponse":
        return cls(
            transaction=TransactionResponse.from_domain(result.transaction),
            scheduled=ScheduledResponse.from_domain(result.scheduled),
            next_scheduled=ScheduledResponse.from_domain(result.next_scheduled) if result.next_scheduled else None,
        )


class MarkOverdueResponse(BaseModel):
    marked: int
