"""Consolidated exceptions for qwire.

All custom exceptions are defined here to provide a single source of truth
for error handling across the package. Transport failures are not wrapped:
they surface as ``httpx.HTTPError`` subclasses.
"""

from datetime import datetime, timezone
from typing import Any

# Error code used when the server's error body could not be decoded
UNPARSEABLE_ERROR_CODE = -999


class QwireError(Exception):
    """Base exception for qwire errors"""

    pass


class QuestradeClientError(QwireError):
    """Base exception for Questrade client errors"""

    pass


class QuestradeAuthenticationError(QuestradeClientError):
    """Raised when no usable session exists (not logged in, no refresh token)"""

    pass


class QuestradeSerializationError(QuestradeClientError):
    """Raised when a request body cannot be serialised to JSON"""

    pass


class QuestradeDecodeError(QuestradeClientError):
    """Raised when a successful response body cannot be decoded"""

    def __init__(self, message: str, endpoint: str = "") -> None:
        super().__init__(message)
        self.endpoint = endpoint


class QuestradeStreamError(QuestradeClientError):
    """Raised when a WebSocket handshake or read fails"""

    pass


class QuestradeAPIError(QuestradeClientError):
    """Structured error reported by the Questrade servers (HTTP status != 200)

    Attributes:
        code: Questrade error code, or UNPARSEABLE_ERROR_CODE
        status_code: HTTP status of the failing response
        message: Server message, or the raw body when it was unparseable
        endpoint: Fully resolved URL of the failing request
        rate_limit_remaining: X-RateLimit-Remaining of the failing response
        rate_limit_reset: X-RateLimit-Reset of the failing response
        order_id: Order id reported by order endpoints, if any
        orders: Orders reported by order endpoints, if any
    """

    def __init__(
        self,
        code: int,
        status_code: int,
        message: str,
        endpoint: str,
        rate_limit_remaining: int = 0,
        rate_limit_reset: datetime | None = None,
        order_id: int = 0,
        orders: list[Any] | None = None,
    ) -> None:
        self.code = code
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        self.rate_limit_remaining = rate_limit_remaining
        self.rate_limit_reset = rate_limit_reset or datetime.fromtimestamp(
            0, tz=timezone.utc
        )
        self.order_id = order_id
        self.orders = list(orders or [])
        super().__init__(str(self))

    @property
    def is_unparseable(self) -> bool:
        """True when the error body could not be decoded"""
        return self.code == UNPARSEABLE_ERROR_CODE

    def __str__(self) -> str:
        return (
            f"Questrade error: HTTP {self.status_code} at {self.endpoint} "
            f"(code {self.code}): {self.message}"
        )

    def __repr__(self) -> str:
        return (
            f"QuestradeAPIError(code={self.code}, status_code={self.status_code}, "
            f"message={self.message!r}, endpoint={self.endpoint!r})"
        )
