"""Helpers shared by the ledger services"""

from datetime import datetime
from typing import Any, Callable, TypeVar

from fintrack_ledger.config import settings
from fintrack_ledger.domain.exceptions import LedgerUnavailableError
from fintrack_ledger.domain.ledger import LedgerSession, LedgerStore
from fintrack_ledger.infrastructure.observability.logging import log_ledger_failure
from fintrack_ledger.infrastructure.observability.metrics import ledger_unavailable_counter
from fintrack_ledger.utils.date_utils import local_now

T = TypeVar("T")

Clock = Callable[[], datetime]


def ledger_now() -> datetime:
    """Wall time in the configured reference timezone"""
    return local_now(settings.reference_timezone)


def run_unit(store: LedgerStore, operation: str, fn: Callable[[LedgerSession], T], **context: Any) -> T:
    """
    Run exactly one unit of work against the store.

    A LedgerUnavailableError is counted, logged with the reconciliation
    context and re-raised; it is never retried here because the commit
    outcome is ambiguous.
    """
    try:
        return store.with_transaction(fn)
    except LedgerUnavailableError:
        ledger_unavailable_counter.labels(operation=operation).inc()
        log_ledger_failure(operation, **context)
        raise
