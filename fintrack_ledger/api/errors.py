"""Translate domain exceptions into HTTP responses"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from fintrack_ledger.domain.exceptions import (
    DomainException,
    InvalidStateError,
    LedgerUnavailableError,
    NotFoundError,
    PolicyViolationError,
)

logger = logging.getLogger(__name__)

# Checked in order; the first matching family wins
STATUS_BY_FAMILY = (
    (NotFoundError, 404),
    (PolicyViolationError, 422),
    (InvalidStateError, 409),
    (LedgerUnavailableError, 503),
)


def status_for(exc: DomainException) -> int:
    for family, status_code in STATUS_BY_FAMILY:
        if isinstance(exc, family):
            return status_code
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "error": exc.kind})
    else:
        logger.info("Request rejected", extra={"path": request.url.path, "error": exc.kind})
    return JSONResponse(status_code=status_code, content={"error": exc.kind, "detail": exc.message})
