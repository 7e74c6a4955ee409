"""
Transport settings and error mapping shared by the Bitbucket and Jenkins clients.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx

from shipit.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    ShipitError,
    ValidationError,
)


@dataclass
class RetryConfig:
    """Configuration for automatic retry behavior."""

    max_retries: int = 3
    backoff_factor: float = 2.0
    retry_on: list[int] = field(default_factory=lambda: [429, 500, 502, 503])
    respect_retry_after: bool = True
    max_backoff: float = 60.0  # Maximum backoff time in seconds
    jitter: float = 0.1  # Jitter factor (0.1 = ±10%)


NO_RETRY = RetryConfig(max_retries=0)


def error_message_from_body(data: Any, status_code: int) -> tuple[str, str]:
    """
    Extract an error code and message from a decoded error body.

    Bitbucket Server answers with ``{"errors": [{"message": ..., "exceptionName": ...}]}``;
    anything else falls back to the HTTP status.

    Args:
        data: Decoded JSON body (any shape)
        status_code: HTTP status code

    Returns:
        Tuple of (code, message)
    """
    code = f"HTTP_{status_code}"
    message = f"HTTP {status_code}"
    if not isinstance(data, dict):
        return code, message

    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0] if isinstance(errors[0], dict) else {}
        message = str(first.get("message") or message)
        exception_name = first.get("exceptionName")
        if exception_name:
            code = str(exception_name).rsplit(".", 1)[-1]
        return code, message

    if isinstance(data.get("message"), str):
        message = data["message"]
    return code, message


def parse_error_response(response: httpx.Response) -> ShipitError:
    """
    Parse an error response into a typed exception.

    Args:
        response: HTTP response with error status

    Returns:
        Appropriate ShipitError subclass
    """
    try:
        data = response.json()
    except ValueError:
        data = {}

    code, message = error_message_from_body(data, response.status_code)
    request_id = response.headers.get("X-AREQUESTID")

    status_code = response.status_code

    if status_code == 401:
        return AuthenticationError(code, message, request_id)
    elif status_code == 403:
        return AuthorizationError(code, message, request_id)
    elif status_code == 404:
        return NotFoundError(code, message, request_id)
    elif status_code == 409:
        return ConflictError(code, message, request_id)
    elif status_code == 429:
        retry_after_str = response.headers.get("Retry-After", "60")
        try:
            retry_after = int(retry_after_str)
        except ValueError:
            retry_after = 60
        return RateLimitedError(code, message, retry_after, request_id)
    elif status_code >= 500:
        return ServerError(code, message, request_id)
    else:
        return ValidationError(code, message, request_id)
