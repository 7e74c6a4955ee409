"""
shipit exception classes.

Every failure talking to Bitbucket or Jenkins surfaces as a ShipitError
subclass chosen from the HTTP status. ``code`` is a short machine-readable tag
("HTTP_409", "CONNECTION_ERROR", "INVALID_RESPONSE", ...) and ``message`` the
server's own explanation where it gave one.
"""


class ShipitError(Exception):
    """Base exception for all shipit errors."""

    def __init__(
        self, code: str, message: str, request_id: str | None = None
    ) -> None:
        self.code = code
        self.message = message
        self.request_id = request_id  # Bitbucket's X-AREQUESTID, when present
        super().__init__(f"[{code}] {message}")


class ConfigurationError(ShipitError):
    """Raised at startup when settings are missing or invalid. Fatal for the run."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class AuthenticationError(ShipitError):
    """401, or an anonymous whoami: the token or Jenkins credentials were rejected."""

    pass


class AuthorizationError(ShipitError):
    """403: authenticated, but not allowed to read or merge."""

    pass


class NotFoundError(ShipitError):
    """404: the pull request, commit or Jenkins build does not exist (any more)."""

    pass


class ConflictError(ShipitError):
    """409: merge conflicts, stale pull request versions, already merged requests."""

    pass


class RateLimitedError(ShipitError):
    """429 that outlasted the transport's retries."""

    def __init__(
        self,
        code: str,
        message: str,
        retry_after: int,
        request_id: str | None = None,
    ) -> None:
        super().__init__(code, message, request_id)
        self.retry_after = retry_after


class ValidationError(ShipitError):
    """Other 4xx responses, and input we refuse to send (bad build URL, no parameters)."""

    pass


class ServerError(ShipitError):
    """5xx, connection failures and timeouts, and payloads we cannot parse."""

    pass
