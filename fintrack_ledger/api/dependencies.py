"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from fintrack_ledger.domain.ledger import LedgerStore
from fintrack_ledger.infrastructure.database.repositories import SqlLedgerStore
from fintrack_ledger.infrastructure.database.session import get_db
from fintrack_ledger.services.accounts import AccountService
from fintrack_ledger.services.auto_transfer import AutoTransferEngine
from fintrack_ledger.services.card_payments import CardPaymentProcessor
from fintrack_ledger.services.cards import CardService
from fintrack_ledger.services.scheduled import ScheduledTransactionLifecycle


def get_user_id(x_user_id: str = Header(..., min_length=1, description="Authenticated user id")) -> str:
    """Caller identity, resolved upstream by the auth gateway"""
    return x_user_id


def get_ledger_store(db: Session = Depends(get_db)) -> LedgerStore:
    """Provide the SQL-backed ledger store for this request"""
    return SqlLedgerStore(db)


def get_account_service(store: LedgerStore = Depends(get_ledger_store)) -> AccountService:
    return AccountService(store)


def get_card_service(store: LedgerStore = Depends(get_ledger_store)) -> CardService:
    return CardService(store)


def get_auto_transfer_engine(store: LedgerStore = Depends(get_ledger_store)) -> AutoTransferEngine:
    return AutoTransferEngine(store)


def get_payment_processor(store: LedgerStore = Depends(get_ledger_store)) -> CardPaymentProcessor:
    return CardPaymentProcessor(store)


def get_scheduled_lifecycle(store: LedgerStore = Depends(get_ledger_store)) -> ScheduledTransactionLifecycle:
    return ScheduledTransactionLifecycle(store)
