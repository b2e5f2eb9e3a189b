from typing import Any, Dict, Optional

from marketplace_client.core.locales import translate


class ApiError(Exception):
    """
    Base error for every failed backend call.

    status is 0 when no HTTP response was received. errors holds the
    field -> message map of a validation failure (empty otherwise).
    """
    status: int = 0

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        errors: Optional[Dict[str, str]] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.errors = errors or {}
        self.payload = payload

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status={self.status}, message={self.message!r})"


class NetworkError(ApiError):
    status = 0


class AuthError(ApiError):
    status = 401


class ForbiddenError(ApiError):
    status = 403


class NotFoundError(ApiError):
    status = 404


class ConflictError(ApiError):
    status = 409


class ValidationError(ApiError):
    status = 422


class ServerError(ApiError):
    status = 500


_ERRORS_BY_STATUS = {
    401: AuthError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def _first_message(value: Any) -> Optional[str]:
    if isinstance(value, list):
        return str(value[0]) if value else None
    if value is None:
        return None
    return str(value)


def field_errors_from_body(body: Any) -> Dict[str, str]:
    """
    Flatten a validation body into field -> first message.

    Accepts {"errors": {field: [msg, ...]}} as well as the bare
    {field: [msg, ...]} map some endpoints return.
    """
    if not isinstance(body, dict):
        return {}
    errors = body.get("errors")
    if not isinstance(errors, dict):
        # Bare field map: every value is a list of messages
        candidates = {k: v for k, v in body.items() if k != "message"}
        if candidates and all(isinstance(v, list) for v in candidates.values()):
            errors = candidates
        else:
            return {}
    flattened: Dict[str, str] = {}
    for field, messages in errors.items():
        first = _first_message(messages)
        if first:
            flattened[field] = first
    return flattened


def error_from_response(status: int, body: Any, language: str = "en") -> ApiError:
    """Build the ApiError subclass matching an HTTP error response."""
    message = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
    elif isinstance(body, str) and body.strip():
        message = body.strip()

    errors: Dict[str, str] = {}
    if status == 422:
        errors = field_errors_from_body(body)
        if not message:
            message = next(iter(errors.values()), None) or translate("invalid_input", language)

    if status >= 500:
        return ServerError(message or translate("server_error", language), status=status, payload=body)

    error_cls = _ERRORS_BY_STATUS.get(status, ApiError)
    return error_cls(message or f"HTTP {status}", status=status, errors=errors, payload=body)


def describe(error: Exception, language: str = "en") -> str:
    """Human-readable text for an alert."""
    if isinstance(error, ApiError) and error.message:
        return error.message
    return str(error) or translate("unknown_error", language)


__all__ = [
    "ApiError", "NetworkError", "AuthError", "ForbiddenError", "NotFoundError",
    "ConflictError", "ValidationError", "ServerError",
    "error_from_response", "field_errors_from_body", "describe",
]
