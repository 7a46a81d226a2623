"""QuestradeRequestClient - authenticated HTTP requests and rate-limit tracking"""

import json
import threading
from functools import lru_cache
from typing import Any, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError

from qwire.shared.exceptions import (
    QuestradeAuthenticationError,
    QuestradeClientError,
    QuestradeDecodeError,
    QuestradeSerializationError,
)
from qwire.shared.logging_bridge import install_logging_bridge

from .auth import QuestradeAuthManager
from .errors import classify_error
from .utils import RATE_LIMIT_REMAINING_HEADER, RateLimit

T = TypeVar("T")

MASKED = "***"


@lru_cache(maxsize=None)
def _type_adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def _masked_headers(headers: httpx.Headers) -> dict[str, str]:
    return {
        name: MASKED if name.lower() == "authorization" else value
        for name, value in headers.items()
    }


async def _trace_request(request: httpx.Request) -> None:
    logger.debug(
        f"Sending {request.method} {request.url} "
        f"headers={_masked_headers(request.headers)}"
    )


async def _trace_response(response: httpx.Response) -> None:
    remaining = response.headers.get(RATE_LIMIT_REMAINING_HEADER, "n/a")
    logger.debug(
        f"Received {response.status_code} for {response.request.method} "
        f"{response.url} (rate limit remaining: {remaining})"
    )


class QuestradeRequestClient:
    """Low-level HTTP request client for the Questrade resource server

    Responsibilities:
    - Authorization header injection
    - Request body serialisation
    - Response decoding into typed targets
    - Rate-limit bookkeeping
    - Error classification
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, auth_manager: QuestradeAuthManager) -> None:
        """Initialize request client

        Args:
            auth_manager: Auth manager holding the session credentials
        """
        self._auth_manager = auth_manager
        self._http_client: httpx.AsyncClient | None = None
        self._rate_limit = RateLimit()
        self._rate_limit_lock = threading.Lock()
        install_logging_bridge()

    @staticmethod
    def create_http_client(
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> httpx.AsyncClient:
        """Create an AsyncClient that traces every exchange to loguru

        The Authorization header is masked in the trace.
        """
        return httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [_trace_request], "response": [_trace_response]},
        )

    def set_http_client(self, client: httpx.AsyncClient) -> None:
        """Set the HTTP client (for testing or external management)"""
        self._http_client = client

    @property
    def http_client(self) -> httpx.AsyncClient | None:
        """HTTP client used for resource calls"""
        return self._http_client

    @property
    def rate_limit(self) -> RateLimit:
        """Rate-limit state mirrored from the last response"""
        with self._rate_limit_lock:
            return self._rate_limit

    async def get(
        self,
        endpoint: str,
        target: type[T] | Any,
        params: dict | None = None,
    ) -> T:
        """Make GET request

        Args:
            endpoint: Path relative to the API server (e.g. "v1/time")
            target: Type the JSON body is decoded into
            params: Query parameters (None values are dropped)

        Returns:
            Decoded response body
        """
        return await self.request("GET", endpoint, target, params=params)

    async def post(
        self,
        endpoint: str,
        target: type[T] | Any,
        body: Any = None,
    ) -> T:
        """Make POST request with a JSON body

        Args:
            endpoint: Path relative to the API server
            target: Type the JSON body is decoded into
            body: Pydantic model or JSON-serialisable payload

        Returns:
            Decoded response body
        """
        return await self.request("POST", endpoint, target, body=body)

    async def delete(self, endpoint: str, target: type[T] | Any) -> T:
        """Make DELETE request

        Args:
            endpoint: Path relative to the API server
            target: Type the JSON body is decoded into

        Returns:
            Decoded response body
        """
        return await self.request("DELETE", endpoint, target)

    async def request(
        self,
        method: str,
        endpoint: str,
        target: type[T] | Any,
        params: dict | None = None,
        body: Any = None,
    ) -> T:
        """Make authenticated HTTP request

        No retries: every failure is raised to the caller.

        Args:
            method: HTTP method (GET, POST, DELETE)
            endpoint: Path relative to the API server
            target: Type the JSON body is decoded into
            params: Query parameters
            body: JSON payload for POST requests

        Returns:
            Decoded response body

        Raises:
            QuestradeAuthenticationError: If not logged in
            QuestradeSerializationError: If the body cannot be serialised
            QuestradeAPIError: If the server answers with status != 200
            QuestradeDecodeError: If the response body does not match target
            httpx.HTTPError: On transport failure
        """
        if self._http_client is None:
            raise QuestradeClientError("HTTP client not initialized")

        credentials = self._auth_manager.credentials
        if not credentials.is_authenticated:
            raise QuestradeAuthenticationError(
                "Not logged in - call login() first"
            )

        method = method.upper()
        if method not in ("GET", "POST", "DELETE"):
            raise ValueError(f"Unsupported HTTP method: {method}")

        headers = {"Authorization": credentials.auth_header}
        content = None
        if method == "POST" and body is not None:
            content = self._serialize_body(body)
            headers["Content-Type"] = "application/json"

        url = self._build_url(credentials.api_server, endpoint)
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        logger.debug(f"{method} {url}")
        response = await self._http_client.request(
            method, url, params=params, content=content, headers=headers
        )
        try:
            await response.aread()
            self._update_rate_limit(response)

            if response.status_code != 200:
                error = classify_error(response)
                logger.error(f"Request failed: {error}")
                raise error

            return self._decode(response, target)
        finally:
            await response.aclose()

    @staticmethod
    def _build_url(api_server: str, endpoint: str) -> str:
        base = api_server if api_server.endswith("/") else f"{api_server}/"
        return f"{base}{endpoint.lstrip('/')}"

    @staticmethod
    def _serialize_body(body: Any) -> bytes:
        try:
            if isinstance(body, BaseModel):
                payload = body.model_dump(
                    mode="json", by_alias=True, exclude_none=True
                )
            else:
                payload = body
            return json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise QuestradeSerializationError(
                f"Could not serialise request body: {e}"
            ) from e

    @staticmethod
    def _decode(response: httpx.Response, target: Any) -> Any:
        content = response.content or b"{}"
        try:
            return _type_adapter(target).validate_json(content)
        except ValidationError as e:
            logger.error(f"Could not decode response from {response.url}: {e}")
            raise QuestradeDecodeError(
                f"Could not decode response from {response.url}: {e}",
                endpoint=str(response.url),
            ) from e

    def _update_rate_limit(self, response: httpx.Response) -> None:
        rate_limit = RateLimit.from_headers(response.headers)
        with self._rate_limit_lock:
            self._rate_limit = rate_limit
        logger.debug(
            f"Rate limit: {rate_limit.remaining} remaining, "
            f"resets at {rate_limit.reset_at.isoformat()}"
        )
