"""FastAPI application factory"""

import asyncio
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from yield_ledger.api.middleware import MetricsMiddleware, RequestIDMiddleware
from yield_ledger.api.v1 import accounts, admin, contracts, cron, withdrawals
from yield_ledger.config import settings
from yield_ledger.domain.events import ALL_ACCOUNTS, event_bus
from yield_ledger.domain.exceptions import (
    ConcurrencyConflict,
    InvalidStateTransition,
    LedgerError,
    NotFound,
    ValidationError,
)
from yield_ledger.infrastructure.clients.webhook import WebhookClient, WebhookForwarder
from yield_ledger.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)

# First match wins; anything else rooted at LedgerError is a business-rule denial
STATUS_CODES = [
    (InvalidStateTransition, 409),
    (ValidationError, 422),
    (NotFound, 404),
    (ConcurrencyConflict, 503),
]


def status_for_error(exc: LedgerError) -> int:
    for error_type, status in STATUS_CODES:
        if isinstance(exc, error_type):
            return status
    return 409


def _jsonable(context: Dict[str, Any]) -> Dict[str, Any]:
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in context.items()}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status = status_for_error(exc)
    if status == 503:
        logging.error(f"Unit abandoned: {exc}", extra={"request_id": getattr(request.state, "request_id", None)})
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": exc.message, "context": _jsonable(exc.context)},
    )


def create_app(webhook_client: Optional[WebhookClient] = None) -> FastAPI:
    """Create and configure FastAPI application"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        forwarder = None
        client = webhook_client or (WebhookClient() if settings.event_webhook_url else None)
        if client is not None:
            forwarder = WebhookForwarder(client, asyncio.get_running_loop())
            event_bus.subscribe(ALL_ACCOUNTS, forwarder)
        try:
            yield
        finally:
            if forwarder is not None:
                event_bus.unsubscribe(ALL_ACCOUNTS, forwarder)

    app = FastAPI(
        title="Yield Ledger",
        description="Wallet ledger, contract accrual and withdrawal service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(LedgerError, ledger_error_handler)

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
    app.include_router(contracts.router, prefix="/v1", tags=["contracts"])
    app.include_router(withdrawals.router, prefix="/v1", tags=["withdrawals"])
    app.include_router(cron.router, prefix="/v1", tags=["cron"])
    app.include_router(admin.router, prefix="/v1", tags=["admin"])

    return app


app = create_app()
