import json
import logging
import time
import traceback
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from produce_ledger.core.config import settings
from produce_ledger.core.errors import LedgerReferenceError, error_code_for

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
api_logger = logging.getLogger("produce_ledger.api")
ledger_logger = logging.getLogger("produce_ledger.ledger")


def setup_observability() -> None:
    """Attach a one-JSON-object-per-line handler to both loggers. Safe to call twice."""
    for target in (api_logger, ledger_logger):
        if target.handlers:
            continue
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        target.addHandler(handler)
        target.setLevel(logging.INFO)
        target.propagate = False


def _emit(target: logging.Logger, level: int, event: str, fields: dict[str, Any]) -> None:
    payload: dict[str, Any] = {"event": event, "request_id": request_id_ctx.get()}
    payload.update(fields)
    target.log(level, json.dumps(payload, default=str))


def log_ledger_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    _emit(ledger_logger, level, event, fields)


def _request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or request_id_ctx.get()


def _envelope(
    request: Request,
    status_code: int,
    message: str,
    *,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "error": {
                "code": error_code_for(status_code),
                "message": message,
                "request_id": _request_id_of(request),
                "path": request.url.path,
                "details": details,
            }
        },
    )


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        _emit(
            api_logger,
            logging.INFO,
            "request",
            {
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        request_id_ctx.reset(token)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-API-Timeout-Hint-Ms"] = str(settings.api_timeout_hint_ms)
    return response


async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, str):
        return _envelope(request, exc.status_code, exc.detail, headers=exc.headers)
    return _envelope(request, exc.status_code, "HTTP error", details=exc.detail, headers=exc.headers)


async def ledger_error_handler(request: Request, exc: Exception):
    # Service errors that a route did not translate itself.
    status_code = 404 if isinstance(exc, LedgerReferenceError) else 400
    _emit(api_logger, logging.WARNING, "ledger_error", {"path": request.url.path, "status_code": status_code, "error": str(exc)})
    return _envelope(request, status_code, str(exc))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", []) if part != "body"]
        details.append(
            {
                "field": ".".join(location) or "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )
    return _envelope(request, 422, "Validation failed", details=details)


async def unhandled_exception_handler(request: Request, exc: Exception):
    _emit(
        api_logger,
        logging.ERROR,
        "unhandled_exception",
        {
            "path": request.url.path,
            "error": str(exc),
            "traceback": traceback.format_exc(limit=10),
        },
    )
    return _envelope(request, 500, "Internal server error")

