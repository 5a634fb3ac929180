import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from produce_ledger.core.observability import (
    http_exception_handler,
    ledger_error_handler,
    log_ledger_event,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from produce_ledger.core.config import settings
from produce_ledger.core.errors import LedgerReferenceError, LedgerValidationError
from produce_ledger.db.session import engine
from produce_ledger.routers import balances, damages, integrity, inventory, master, payments, procurement, reports, sales

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Ledger backend for a daily perishable-goods market.\n\n"
        "Swagger quick test flow:\n"
        "1. `POST /procurement/sessions` and `POST /sales/sessions` for the business date.\n"
        "2. Record `POST /procurement/entries`, then `POST /sales/entries`.\n"
        "3. Check `/inventory/available` and `/balances/{party_kind}/{party_id}/{item_id}`."
    ),
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "master", "description": "Items, suppliers and sellers (read-only)."},
        {"name": "procurement", "description": "Daily procurement sessions and purchases from suppliers."},
        {"name": "sales", "description": "Daily sales sessions and sales to sellers."},
        {"name": "damages", "description": "Damaged stock, returns to suppliers and supplier discounts."},
        {"name": "payments", "description": "Standalone payments by sellers and to suppliers."},
        {"name": "opening-balances", "description": "Carried-in balances per party and item, with replay on edit."},
        {"name": "balances", "description": "Outstanding balances, running ledgers and totals."},
        {"name": "inventory", "description": "Live stock, daily snapshots and carry-forward availability."},
        {"name": "reports", "description": "Daily dues and end-of-day summaries."},
        {"name": "integrity", "description": "Journal-based consistency check and repair."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(LedgerValidationError, ledger_error_handler)
app.add_exception_handler(LedgerReferenceError, ledger_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

LOCALHOST_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

wildcard_cors = "*" in settings.cors_origins
origin_regex = settings.cors_origin_regex
if origin_regex is None and not settings.is_production:
    # Any localhost port outside production.
    origin_regex = LOCALHOST_ORIGIN_REGEX

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if wildcard_cors else settings.cors_origins,
    allow_origin_regex=origin_regex,
    allow_credentials=not wildcard_cors,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-API-Timeout-Hint-Ms"],
)

for router in (
    master.router,
    procurement.router,
    sales.router,
    damages.router,
    payments.router,
    balances.opening_router,
    balances.router,
    inventory.router,
    reports.router,
    integrity.router,
):
    app.include_router(router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "env": settings.env,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log_ledger_event("readiness_failed", level=logging.ERROR, error=str(exc))
        return JSONResponse(status_code=503, content={"ok": False, "database": "unreachable"})
    return {"ok": True, "database": "ok"}
