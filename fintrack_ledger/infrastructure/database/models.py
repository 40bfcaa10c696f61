"""SQLAlchemy ORM models for accounts, cards and ledger records"""

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator

from fintrack_ledger.domain.money import MoneyAmount

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class MoneyType(TypeDecorator):
    """
    Money column: unconstrained NUMERIC where the database has exact decimals,
    canonical decimal text on SQLite (whose NUMERIC affinity would store floats).
    """

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = MoneyAmount(value)
        return str(amount) if dialect.name == "sqlite" else amount.as_decimal()

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return MoneyAmount(value if isinstance(value, Decimal) else str(value))


class AccountRow(Base):
    """User account with a running balance"""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    currency = Column(String(3), nullable=False)
    balance = Column(MoneyType(), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class CardRow(Base):
    """Card; columns outside the card's type stay NULL"""

    __tablename__ = "cards"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    name = Column(Text, nullable=False)
    type = Column(String(16), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # CREDIT
    credit_limit = Column(MoneyType(), nullable=True)
    billing_date = Column(Integer, nullable=True)
    payment_date = Column(Integer, nullable=True)
    # DEBIT / PREPAID
    balance = Column(MoneyType(), nullable=True)
    # DEBIT
    linked_account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    auto_transfer_enabled = Column(Boolean, nullable=True)
    min_balance = Column(MoneyType(), nullable=True)
    # POSTPAY
    monthly_limit = Column(MoneyType(), nullable=True)
    settlement_day = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    auto_transfers = relationship("AutoTransferRow", back_populates="card", cascade="all, delete-orphan")


class TransactionRow(Base):
    """Immutable ledger entry"""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    card_id = Column(String(36), ForeignKey("cards.id"), nullable=True, index=True)
    category_id = Column(Text, nullable=True)
    type = Column(String(16), nullable=False)
    amount = Column(MoneyType(), nullable=False)
    currency = Column(String(3), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    description = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class AutoTransferRow(Base):
    """Debit card top-up from a linked account"""

    __tablename__ = "auto_transfers"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(Text, nullable=False)
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    from_account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    to_account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    amount = Column(MoneyType(), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(16), nullable=False, default="PENDING")
    triggered_by = Column(String(16), nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    executed_at = Column(DateTime, nullable=True)

    card = relationship("CardRow", back_populates="auto_transfers")


class ScheduledTransactionRow(Base):
    """Planned transaction and its lifecycle status"""

    __tablename__ = "scheduled_transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    category_id = Column(Text, nullable=True)
    type = Column(String(16), nullable=False)
    amount = Column(MoneyType(), nullable=False)
    currency = Column(String(3), nullable=False)
    description = Column(Text, nullable=False)
    due_date = Column(DateTime, nullable=False, index=True)
    frequency = Column(String(16), nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default="PENDING", index=True)
    reminder_days = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
