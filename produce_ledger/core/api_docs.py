from produce_ledger.core.errors import ERROR_CODES
from produce_ledger.schemas.common import ErrorOut


def _example(status_code: int) -> dict:
    code, message = ERROR_CODES.get(status_code, ("http_error", "HTTP error"))
    details = None
    if status_code == 422:
        details = [{"field": "quantity", "message": "Input should be greater than 0", "type": "greater_than"}]
    return {
        "error": {
            "code": code,
            "message": message,
            "request_id": "3f0c2b9e-7d1a-4c55-9a0e-2d6f1b8c4e11",
            "path": "/procurement/entries",
            "details": details,
        }
    }


def error_responses(*status_codes: int) -> dict[int, dict]:
    """OpenAPI `responses=` entries sharing the error envelope model."""
    return {
        status_code: {
            "model": ErrorOut,
            "description": ERROR_CODES.get(status_code, ("http_error", "HTTP error"))[0].replace("_", " "),
            "content": {"application/json": {"example": _example(status_code)}},
        }
        for status_code in status_codes
    }
