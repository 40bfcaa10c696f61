"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from fintrack_ledger.api.errors import domain_exception_handler
from fintrack_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from fintrack_ledger.api.v1 import accounts, cards, scheduled
from fintrack_ledger.domain.exceptions import DomainException
from fintrack_ledger.infrastructure.observability.logging import setup_logging
from fintrack_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="FinTrack Ledger",
        description="Card payments, auto-transfers and scheduled transactions",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(cards.router, prefix="/v1", tags=["cards"])
    app.include_router(scheduled.router, prefix="/v1", tags=["scheduled-transactions"])

    return app


app = create_app()
