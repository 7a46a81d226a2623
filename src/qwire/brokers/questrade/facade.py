"""QuestradeClient - facade over session, request and streaming components"""

from datetime import datetime, timezone

import httpx
from loguru import logger
from pydantic import Field

from qwire.core.config import Config, Environment
from qwire.domain.models import (
    Account,
    AccountBalances,
    Candlestick,
    Execution,
    Market,
    OptionChain,
    Order,
    OrderImpact,
    OrderPlacement,
    OrderRequest,
    Position,
    QuestradeModel,
    Quote,
    Symbol,
    SymbolSearchResult,
)
from qwire.shared.exceptions import QuestradeClientError

from .auth import Credentials, QuestradeAuthManager
from .requests import QuestradeRequestClient
from .streaming import Connector, QuoteStream, open_quote_stream
from .utils import RateLimit, build_id_string


class _ServerTime(QuestradeModel):
    time: datetime


class _AccountList(QuestradeModel):
    userId: int = 0
    accounts: list[Account] = Field(default_factory=list)


class _PositionList(QuestradeModel):
    positions: list[Position] = Field(default_factory=list)


class _ExecutionList(QuestradeModel):
    executions: list[Execution] = Field(default_factory=list)


class _OrderList(QuestradeModel):
    orders: list[Order] = Field(default_factory=list)


class _SymbolList(QuestradeModel):
    symbols: list[Symbol] = Field(default_factory=list)


class _SymbolSearchList(QuestradeModel):
    symbols: list[SymbolSearchResult] = Field(default_factory=list)


class _OptionChainList(QuestradeModel):
    optionChain: list[OptionChain] = Field(default_factory=list)


class _MarketList(QuestradeModel):
    markets: list[Market] = Field(default_factory=list)


class _QuoteList(QuestradeModel):
    quotes: list[Quote] = Field(default_factory=list)


class _CandleList(QuestradeModel):
    candles: list[Candlestick] = Field(default_factory=list)


class _StreamPort(QuestradeModel):
    streamPort: int


class _DeletedOrder(QuestradeModel):
    orderId: int = 0


def _format_time(value: datetime | None) -> str | None:
    """RFC 3339 timestamp; naive datetimes are taken as UTC"""
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _stream_mode(use_websocket: bool) -> str:
    return "WebSocket" if use_websocket else "RawSocket"


def _orders_endpoint(request: OrderRequest) -> str:
    endpoint = f"v1/accounts/{request.accountNumber}/orders"
    if request.orderId:
        endpoint += f"/{request.orderId}"
    return endpoint


class QuestradeClient:
    """Questrade REST and streaming API client

    Delegates session handling to QuestradeAuthManager and HTTP calls to
    QuestradeRequestClient; the methods below only build paths and queries.
    """

    def __init__(
        self,
        refresh_token: str,
        environment: Environment | str = Environment.PRODUCTION,
        timeout: float = QuestradeRequestClient.DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client without logging in

        Args:
            refresh_token: Seed refresh token
            environment: Production or practice login server
            timeout: Upper bound for every HTTP call (seconds)
            transport: Optional httpx transport (for testing)
        """
        self._auth_manager = QuestradeAuthManager(refresh_token, environment)
        self._request_client = QuestradeRequestClient(self._auth_manager)
        http_client = QuestradeRequestClient.create_http_client(
            timeout=timeout, transport=transport
        )
        self._request_client.set_http_client(http_client)
        self._auth_manager.set_http_client(http_client)
        self._http_client = http_client

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "QuestradeClient":
        """Build a client from a Config without logging in"""
        return cls(
            config.refresh_token,
            environment=config.environment,
            timeout=config.request_timeout,
            transport=transport,
        )

    @classmethod
    async def create(
        cls,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "QuestradeClient":
        """Build a client from a Config and log in

        Raises:
            QuestradeAPIError: If the login is rejected
        """
        client = cls.from_config(config, transport=transport)
        try:
            await client.login()
        except BaseException:
            await client.close()
            raise
        return client

    @property
    def auth_manager(self) -> QuestradeAuthManager:
        """Access auth manager"""
        return self._auth_manager

    @property
    def request_client(self) -> QuestradeRequestClient:
        """Access request client"""
        return self._request_client

    @property
    def credentials(self) -> Credentials:
        """Snapshot of the current credentials"""
        return self._auth_manager.credentials

    @property
    def rate_limit(self) -> RateLimit:
        """Rate-limit state from the last response"""
        return self._request_client.rate_limit

    @property
    def session_expired(self) -> bool:
        """True once the access token lifetime has elapsed"""
        return self._auth_manager.session_expired

    async def login(self) -> Credentials:
        """Log in (or log in again) with the current refresh token"""
        return await self._auth_manager.login()

    async def revoke(self) -> None:
        """Revoke the access token and clear the credentials"""
        await self._auth_manager.revoke()

    async def close(self) -> None:
        """Stop the session timer and close the HTTP client"""
        self._auth_manager.close()
        await self._http_client.aclose()

    async def __aenter__(self) -> "QuestradeClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # Accounts

    async def get_server_time(self) -> datetime:
        """Get the current time on the Questrade server"""
        result = await self._request_client.get("v1/time", _ServerTime)
        return result.time

    async def get_accounts(self) -> tuple[int, list[Account]]:
        """Get the user id and the accounts of the logged-in user"""
        result = await self._request_client.get("v1/accounts", _AccountList)
        return result.userId, result.accounts

    async def get_positions(self, number: str) -> list[Position]:
        """Get the positions of an account"""
        result = await self._request_client.get(
            f"v1/accounts/{number}/positions", _PositionList
        )
        return result.positions

    async def get_balances(self, number: str) -> AccountBalances:
        """Get the balances of an account"""
        return await self._request_client.get(
            f"v1/accounts/{number}/balances", AccountBalances
        )

    async def get_executions(
        self,
        number: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Execution]:
        """Get executions of an account between start and end

        Omitted times default server-side to the current day.
        """
        params = {"startTime": _format_time(start), "endTime": _format_time(end)}
        result = await self._request_client.get(
            f"v1/accounts/{number}/executions", _ExecutionList, params=params
        )
        return result.executions

    async def get_orders(
        self,
        number: str,
        start: datetime | None = None,
        end: datetime | None = None,
        state: str = "All",
    ) -> list[Order]:
        """Get orders of an account filtered by time and state

        Args:
            number: Account number
            start: Start of the period (server default: start of today)
            end: End of the period (server default: end of today)
            state: "All", "Open" or "Closed"
        """
        params = {
            "startTime": _format_time(start),
            "endTime": _format_time(end),
            "stateFilter": state,
        }
        result = await self._request_client.get(
            f"v1/accounts/{number}/orders", _OrderList, params=params
        )
        return result.orders

    async def get_orders_by_id(self, number: str, *order_ids: int) -> list[Order]:
        """Get specific orders of an account"""
        result = await self._request_client.get(
            f"v1/accounts/{number}/orders",
            _OrderList,
            params={"ids": build_id_string(order_ids)},
        )
        return result.orders

    # Market data

    async def get_symbols(self, *symbol_ids: int) -> list[Symbol]:
        """Get detailed information for the given symbol ids"""
        result = await self._request_client.get(
            "v1/symbols", _SymbolList, params={"ids": build_id_string(symbol_ids)}
        )
        return result.symbols

    async def search_symbols(
        self, prefix: str, offset: int = 0
    ) -> list[SymbolSearchResult]:
        """Search symbols by prefix, starting at offset in the results"""
        result = await self._request_client.get(
            "v1/symbols/search",
            _SymbolSearchList,
            params={"prefix": prefix, "offset": offset},
        )
        return result.symbols

    async def get_option_chain(self, symbol_id: int) -> list[OptionChain]:
        """Get the option chain of an underlying symbol"""
        result = await self._request_client.get(
            f"v1/symbols/{symbol_id}/options", _OptionChainList
        )
        return result.optionChain

    async def get_markets(self) -> list[Market]:
        """Get supported markets"""
        result = await self._request_client.get("v1/markets", _MarketList)
        return result.markets

    async def get_quote(self, symbol_id: int) -> Quote:
        """Get a Level 1 quote for one symbol

        Raises:
            QuestradeClientError: If the server does not return exactly one quote
        """
        result = await self._request_client.get(
            f"v1/markets/quotes/{symbol_id}", _QuoteList
        )
        if len(result.quotes) != 1:
            raise QuestradeClientError(
                f"Could not retrieve quote for symbol {symbol_id}: "
                f"got {len(result.quotes)} quotes"
            )
        return result.quotes[0]

    async def get_quotes(self, symbol_ids: list[int]) -> list[Quote]:
        """Get Level 1 quotes for many symbols"""
        result = await self._request_client.get(
            "v1/markets/quotes",
            _QuoteList,
            params={"ids": build_id_string(symbol_ids)},
        )
        return result.quotes

    async def get_candles(
        self,
        symbol_id: int,
        start: datetime,
        end: datetime,
        interval: str,
    ) -> list[Candlestick]:
        """Get historical OHLC candles

        Args:
            symbol_id: Internal symbol identifier
            start: Start of the period (naive times are taken as UTC)
            end: End of the period (naive times are taken as UTC)
            interval: Granularity (e.g. "OneMinute", "OneDay")
        """
        params = {
            "startTime": _format_time(start),
            "endTime": _format_time(end),
            "interval": interval,
        }
        result = await self._request_client.get(
            f"v1/markets/candles/{symbol_id}", _CandleList, params=params
        )
        return result.candles

    # Orders

    async def get_order_impact(self, request: OrderRequest) -> OrderImpact:
        """Calculate the impact of an order without placing it"""
        return await self._request_client.post(
            f"{_orders_endpoint(request)}/impact", OrderImpact, body=request
        )

    async def place_order(self, request: OrderRequest) -> list[Order]:
        """Place an order, or replace one when request.orderId is set"""
        logger.info(
            f"Placing order: {request.action} {request.quantity} x symbol "
            f"{request.symbolId} ({request.orderType}) on {request.accountNumber}"
        )
        result = await self._request_client.post(
            _orders_endpoint(request), OrderPlacement, body=request
        )
        return result.orders

    async def delete_order(self, number: str, order_id: int) -> int:
        """Cancel an order

        Returns:
            Id of the cancelled order
        """
        logger.info(f"Cancelling order {order_id} on {number}")
        result = await self._request_client.delete(
            f"v1/accounts/{number}/orders/{order_id}", _DeletedOrder
        )
        return result.orderId

    # Streaming

    async def get_notification_stream_port(self, use_websocket: bool = True) -> int:
        """Get the port on which order notifications are streamed"""
        result = await self._request_client.get(
            "v1/notifications",
            _StreamPort,
            params={"mode": _stream_mode(use_websocket)},
        )
        return result.streamPort

    async def get_quote_stream_port(
        self, symbol_ids: list[int], use_websocket: bool = True
    ) -> int:
        """Get the port on which quotes for symbol_ids are streamed"""
        params = {
            "mode": _stream_mode(use_websocket),
            "stream": "true",
            "ids": build_id_string(symbol_ids),
        }
        result = await self._request_client.get(
            "v1/markets/quotes", _StreamPort, params=params
        )
        return result.streamPort

    def stream_uri(self, port: int) -> str:
        """WebSocket address on the session's API host"""
        host = httpx.URL(self.credentials.api_server).host
        if not host:
            raise QuestradeClientError("Not logged in - no API server known")
        return f"wss://{host}:{port}"

    async def stream_quotes(
        self,
        symbol_ids: list[int],
        connect: Connector | None = None,
    ) -> QuoteStream:
        """Open an authenticated quote stream for symbol_ids

        Args:
            symbol_ids: Symbols to stream
            connect: Connection factory, defaults to websockets.connect

        Returns:
            QuoteStream; the caller owns and closes it
        """
        port = await self.get_quote_stream_port(symbol_ids)
        return await open_quote_stream(
            self.stream_uri(port), self.credentials.access_token, connect=connect
        )
