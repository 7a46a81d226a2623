"""Questrade infrastructure module

QuestradeAuthManager - Refresh-token login, revocation and session expiry
QuestradeRequestClient - Authenticated HTTP requests and rate-limit tracking
QuoteStream - Authenticated WebSocket quote stream reader
QuestradeClient - Facade exposing the REST resources
"""

from qwire.shared.exceptions import (
    UNPARSEABLE_ERROR_CODE,
    QuestradeAPIError,
    QuestradeAuthenticationError,
    QuestradeClientError,
    QuestradeDecodeError,
    QuestradeSerializationError,
    QuestradeStreamError,
)

from .auth import Credentials, CredentialStore, QuestradeAuthManager, SessionTimer
from .errors import classify_error
from .facade import QuestradeClient
from .requests import QuestradeRequestClient
from .streaming import QuoteStream, open_quote_stream
from .utils import RateLimit, build_id_string

__all__ = [
    "UNPARSEABLE_ERROR_CODE",
    "Credentials",
    "CredentialStore",
    "QuestradeAPIError",
    "QuestradeAuthManager",
    "QuestradeAuthenticationError",
    "QuestradeClient",
    "QuestradeClientError",
    "QuestradeDecodeError",
    "QuestradeRequestClient",
    "QuestradeSerializationError",
    "QuestradeStreamError",
    "QuoteStream",
    "RateLimit",
    "SessionTimer",
    "build_id_string",
    "classify_error",
    "open_quote_stream",
]
