"""QuestradeAuthManager - refresh-token login, revocation and expiry tracking"""

import threading
from datetime import datetime, timedelta, timezone

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from qwire.core.config import Environment, mask_token
from qwire.shared.exceptions import (
    QuestradeAuthenticationError,
    QuestradeClientError,
    QuestradeDecodeError,
)

from .errors import classify_error


class Credentials(BaseModel):
    """Login credentials issued by the Questrade authorization server

    Immutable: a login replaces the whole record rather than updating fields.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = ""
    token_type: str = ""
    expires_in: int = 0
    refresh_token: str = ""
    api_server: str = ""

    @property
    def auth_header(self) -> str:
        """Value of the Authorization header for resource calls"""
        return f"{self.token_type} {self.access_token}"

    @property
    def is_authenticated(self) -> bool:
        """True once a login has populated the access token and API server"""
        return bool(self.access_token and self.api_server)


class CredentialStore:
    """Holds the current Credentials, swapped atomically under a lock"""

    def __init__(self, refresh_token: str = "") -> None:
        self._lock = threading.Lock()
        self._credentials = Credentials(refresh_token=refresh_token)

    def snapshot(self) -> Credentials:
        """Get the current credentials"""
        with self._lock:
            return self._credentials

    def replace(self, credentials: Credentials) -> None:
        """Overwrite all credentials"""
        with self._lock:
            self._credentials = credentials

    def clear(self) -> None:
        """Reset to empty credentials, refresh token included"""
        with self._lock:
            self._credentials = Credentials()


class SessionTimer:
    """Advisory timer that flags when the access token has expired

    Firing only sets ``expired``; callers are expected to log in again.
    """

    def __init__(self, expires_in: float) -> None:
        self._expired = threading.Event()
        self._expires_at = datetime.now(timezone.utc) + timedelta(
            seconds=expires_in
        )
        self._timer = threading.Timer(max(expires_in, 0), self._fire)
        self._timer.daemon = True
        self._timer.name = "QuestradeSessionTimer"
        self._timer.start()

    def _fire(self) -> None:
        self._expired.set()
        logger.warning("Questrade session expired - login() again to continue")

    @property
    def expired(self) -> bool:
        """True once the session lifetime has elapsed"""
        return self._expired.is_set()

    @property
    def expires_at(self) -> datetime:
        """UTC time at which the access token expires"""
        return self._expires_at

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the session expires or timeout elapses

        Returns:
            True if the session expired
        """
        return self._expired.wait(timeout)

    def cancel(self) -> None:
        """Stop the timer without firing"""
        self._timer.cancel()


class QuestradeAuthManager:
    """Manages the Questrade OAuth session

    Responsibilities:
    - Refresh-token login (and re-login after expiry)
    - Token revocation
    - Credential storage
    - Session expiry timer
    """

    def __init__(
        self,
        refresh_token: str,
        environment: Environment | str = Environment.PRODUCTION,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize auth manager

        Args:
            refresh_token: Seed refresh token from the Questrade app hub
            environment: Login environment, resolved once here
            http_client: HTTP client used to reach the authorization server
        """
        self._environment = Environment.from_value(environment)
        self._store = CredentialStore(refresh_token)
        self._http_client = http_client
        self._session_timer: SessionTimer | None = None
        self._timer_lock = threading.Lock()

    @property
    def environment(self) -> Environment:
        """Login environment"""
        return self._environment

    @property
    def login_url(self) -> str:
        """OAuth2 base URL for the configured environment"""
        return self._environment.login_url

    @property
    def credentials(self) -> Credentials:
        """Snapshot of the current credentials"""
        return self._store.snapshot()

    @property
    def session_timer(self) -> SessionTimer | None:
        """Expiry timer of the current session, if logged in"""
        return self._session_timer

    @property
    def session_expired(self) -> bool:
        """True if the session timer has fired"""
        timer = self._session_timer
        return timer is not None and timer.expired

    @property
    def expires_at(self) -> datetime | None:
        """UTC expiry time of the current access token"""
        timer = self._session_timer
        return timer.expires_at if timer is not None else None

    def set_http_client(self, client: httpx.AsyncClient) -> None:
        """Set the HTTP client (for testing or external management)"""
        self._http_client = client

    def _require_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            raise QuestradeClientError("HTTP client not initialized")
        return self._http_client

    async def login(self) -> Credentials:
        """Exchange the current refresh token for a new access token

        Overwrites all credentials on success, including the rotated refresh
        token, and restarts the session timer.

        Returns:
            The new credentials

        Raises:
            QuestradeAuthenticationError: If no refresh token is available
            QuestradeAPIError: If the authorization server rejects the token
            QuestradeDecodeError: If the login response cannot be decoded
            httpx.HTTPError: On transport failure
        """
        http_client = self._require_http_client()
        refresh_token = self._store.snapshot().refresh_token
        if not refresh_token:
            raise QuestradeAuthenticationError(
                "No refresh token available - cannot log in"
            )

        logger.info(
            f"Logging in to Questrade ({self._environment.value}) "
            f"with refresh token {mask_token(refresh_token)}..."
        )

        response = await http_client.post(
            f"{self.login_url}token",
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
        )
        try:
            await response.aread()
            if response.status_code != 200:
                error = classify_error(response)
                logger.error(f"Login failed: {error}")
                raise error
            credentials = self._decode_credentials(response)
        finally:
            await response.aclose()

        self._store.replace(credentials)
        self._restart_timer(credentials.expires_in)

        logger.info(
            f"Logged in, API server {credentials.api_server}, "
            f"session expires in {credentials.expires_in}s"
        )
        return credentials

    async def revoke(self) -> None:
        """Revoke the current access token

        Credentials are cleared before the response is inspected, even if the
        request itself fails.

        Raises:
            QuestradeAPIError: If the authorization server rejects the request
            httpx.HTTPError: On transport failure
        """
        access_token = self._store.snapshot().access_token
        logger.info("Revoking Questrade access token...")

        try:
            http_client = self._require_http_client()
            response = await http_client.post(
                f"{self.login_url}revoke", data={"token": access_token}
            )
        finally:
            self._store.clear()
            self._cancel_timer()

        try:
            await response.aread()
            if response.status_code != 200:
                error = classify_error(response)
                logger.error(f"Revocation failed: {error}")
                raise error
        finally:
            await response.aclose()

        logger.info("Access token revoked")

    def close(self) -> None:
        """Drop the session timer"""
        self._cancel_timer()

    def _decode_credentials(self, response: httpx.Response) -> Credentials:
        try:
            credentials = Credentials.model_validate_json(response.content)
        except ValidationError as e:
            raise QuestradeDecodeError(
                f"Could not decode login response: {e}",
                endpoint=str(response.request.url),
            ) from e

        if not credentials.is_authenticated:
            raise QuestradeDecodeError(
                "Login response is missing access_token or api_server",
                endpoint=str(response.request.url),
            )
        return credentials

    def _restart_timer(self, expires_in: int) -> None:
        with self._timer_lock:
            if self._session_timer is not None:
                self._session_timer.cancel()
            self._session_timer = SessionTimer(expires_in)

    def _cancel_timer(self) -> None:
        with self._timer_lock:
            if self._session_timer is not None:
                self._session_timer.cancel()
                self._session_timer = None
