"""Structured JSON logging for production observability"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from fintrack_ledger.config import settings

# Set by RequestIDMiddleware so service-layer logs can be correlated per request
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

logger = logging.getLogger("fintrack_ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp, service and request metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name
        log_record.setdefault("request_id", request_id_var.get())


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_payment(user_id: str, card_id: str, card_type: str, amount: str, transaction_id: str) -> None:
    """Log an accepted card payment"""
    logger.info(
        "Card payment recorded",
        extra={
            "user_id": user_id,
            "card_id": card_id,
            "card_type": card_type,
            "amount": amount,
            "transaction_id": transaction_id,
            "step": "payment_complete",
        },
    )


def log_execution(user_id: str, scheduled_id: str, transaction_id: str, next_scheduled_id: str | None) -> None:
    """Log a scheduled transaction turned into a real one"""
    logger.info(
        "Scheduled transaction executed",
        extra={
            "user_id": user_id,
            "scheduled_id": scheduled_id,
            "transaction_id": transaction_id,
            "next_scheduled_id": next_scheduled_id,
            "step": "scheduled_execute",
        },
    )


def log_ledger_failure(operation: str, **context: Any) -> None:
    """
    Record a failed or timed-out commit with the context needed for manual reconciliation.

    The caller decides whether to retry; nothing here does.
    """
    logger.error(
        "Ledger unit of work failed",
        extra={"operation": operation, **{k: str(v) for k, v in context.items() if v is not None}},
    )
