"""Casdoor-specific exceptions for error handling."""


class CasdoorError(Exception):
    """Base exception for all Casdoor API operations."""
    pass


class CasdoorAPIError(CasdoorError):
    """Casdoor answered, but not with a usable success envelope.

    Covers HTTP error statuses, ``"status": "error"`` envelopes and bodies
    that are not JSON.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class CasdoorConnectionError(CasdoorError):
    """Request could not be completed (DNS, refused connection, timeout)."""
    pass


class AuthenticationError(CasdoorError):
    """Username/password login could not produce application credentials."""
    pass
