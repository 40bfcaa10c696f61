"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fintrack_ledger.api.main import create_app
from fintrack_ledger.infrastructure.database.models import Base
from fintrack_ledger.infrastructure.database.session import get_db
from fintrack_ledger.infrastructure.memory.store import InMemoryLedgerStore
from fintrack_ledger.domain.models import Account, Card, CardTerms
from fintrack_ledger.domain.money import MoneyAmount


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Mid-month so "this month" windows are unambiguous
FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def add_account(store: InMemoryLedgerStore):
    """Seed an account straight into committed state"""

    def _add(user_id: str = "user_1", name: str = "Checking", balance=0, currency: str = "KRW") -> Account:
        account = Account(user_id=user_id, name=name, currency=currency, balance=MoneyAmount(balance))
        store.state.accounts[account.id] = account
        return account

    return _add


@pytest.fixture
def add_card(store: InMemoryLedgerStore, add_account):
    """Seed a card (with a fresh settlement account unless one is given)"""

    def _add(terms: CardTerms, user_id: str = "user_1", account: Account | None = None, is_active: bool = True) -> Card:
        account = account or add_account(user_id=user_id)
        card = Card(user_id=user_id, account_id=account.id, name="Test Card", terms=terms, is_active=is_active)
        store.state.cards[card.id] = card
        return card

    return _add
