class LedgerValidationError(ValueError):
    """Event input rejected before any aggregate write."""


class LedgerReferenceError(LookupError):
    """Event refers to a party, item or session that does not exist."""


# status -> (envelope code, sample message shown in the OpenAPI docs)
ERROR_CODES: dict[int, tuple[str, str]] = {
    400: ("bad_request", "Procurement session is completed"),
    404: ("not_found", "Supplier not found: 5Ww3qkqVvRrVPvW7hDyW8J"),
    422: ("validation_error", "Validation failed"),
    500: ("internal_error", "Internal server error"),
}


def error_code_for(status_code: int) -> str:
    return ERROR_CODES.get(status_code, ("http_error", ""))[0]
