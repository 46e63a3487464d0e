"""Exceptions raised by the Gramps Web client."""
from __future__ import annotations


class GrampsAPIError(Exception):
    """Base exception for Gramps Web API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint


class AuthenticationError(GrampsAPIError):
    """Credential exchange rejected, or a request still rejected after refresh."""

    def __init__(
        self,
        message: str = "Authentication failed",
        status_code: int | None = 401,
        endpoint: str | None = None,
    ) -> None:
        super().__init__(message, status_code, endpoint)


class NotFoundError(GrampsAPIError):
    """The requested record does not exist."""

    def __init__(self, entity_type: str, identifier: str, endpoint: str | None = None) -> None:
        super().__init__(f"{entity_type} not found: {identifier}", 404, endpoint)


class RequestTimeoutError(GrampsAPIError):
    """A request exceeded its deadline."""

    def __init__(self, timeout: float, endpoint: str | None = None) -> None:
        super().__init__(f"Request timeout after {timeout:g}s", None, endpoint)
        self.timeout = timeout


def format_error(error: BaseException) -> str:
    """Render an exception as a one-line, user-facing message."""
    if isinstance(error, GrampsAPIError):
        message = error.message
        if error.status_code:
            message = f"[{error.status_code}] {message}"
        if error.endpoint:
            message = f"{message} (endpoint: {error.endpoint})"
        return message
    return str(error)
