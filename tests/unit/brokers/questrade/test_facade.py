"""Tests for QuestradeClient resource methods and lifecycle"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from qwire.brokers.questrade import QuestradeAuthManager, QuestradeClient
from qwire.core.config import Config, Environment
from qwire.domain.models import OrderRequest
from qwire.shared.exceptions import QuestradeAPIError, QuestradeClientError

from tests.fakes import API_SERVER, LOGIN_URL, FakeQuestrade, fake_websocket

API = API_SERVER.rstrip("/")
ACCOUNT = "26598145"


def order_request(**overrides) -> OrderRequest:
    fields = {
        "accountNumber": ACCOUNT,
        "symbolId": 8049,
        "quantity": 10,
        "limitPrice": 537.0,
        "orderType": "Limit",
        "action": "Buy",
    }
    fields.update(overrides)
    return OrderRequest(**fields)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_then_request_attaches_bearer_token(client, fake_server, login_payload):
    """Requests after login carry the issued access token"""
    fake_server.add(
        "GET",
        f"{API}/v1/time",
        httpx.Response(200, json={"time": "2014-10-24T12:14:42.730000-04:00"}),
    )

    async with client:
        await client.login()
        server_time = await client.get_server_time()

    request = fake_server.last_request
    assert request.headers["Authorization"] == f"Bearer {login_payload['access_token']}"
    assert server_time.year == 2014
    assert server_time.utcoffset().total_seconds() == -4 * 3600


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_accounts(client, fake_server, load_fixture):
    """Accounts are returned with the user id"""
    fake_server.add(
        "GET", f"{API}/v1/accounts", httpx.Response(200, json=load_fixture("accounts.json"))
    )

    async with client:
        await client.login()
        user_id, accounts = await client.get_accounts()

    assert user_id == 3000124
    assert [a.number for a in accounts] == [ACCOUNT]
    assert accounts[0].isPrimary


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_positions_and_balances(client, fake_server):
    """Account sub-resources use the account number in the path"""
    fake_server.add(
        "GET",
        f"{API}/v1/accounts/{ACCOUNT}/positions",
        httpx.Response(
            200,
            json={"positions": [{"symbol": "THI.TO", "symbolId": 38738, "openQuantity": 100}]},
        ),
    )
    fake_server.add(
        "GET",
        f"{API}/v1/accounts/{ACCOUNT}/balances",
        httpx.Response(
            200,
            json={"combinedBalances": [{"currency": "CAD", "cash": 243971.7}]},
        ),
    )

    async with client:
        await client.login()
        positions = await client.get_positions(ACCOUNT)
        balances = await client.get_balances(ACCOUNT)

    assert positions[0].openQuantity == 100
    assert balances.combinedBalances[0].cash == pytest.approx(243971.7)
    assert balances.perCurrencyBalances == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_orders_sends_time_and_state_filters(client, fake_server, load_fixture):
    """Order queries carry ISO times and the state filter"""
    fake_server.add(
        "GET",
        f"{API}/v1/accounts/{ACCOUNT}/orders",
        httpx.Response(200, json={"orders": load_fixture("order_placed.json")["orders"]}),
    )
    start = datetime(2014, 10, 22, tzinfo=timezone.utc)

    async with client:
        await client.login()
        orders = await client.get_orders(ACCOUNT, start=start, state="Open")

    params = fake_server.last_request.url.params
    assert params["startTime"] == start.isoformat()
    assert params["stateFilter"] == "Open"
    assert "endTime" not in params
    assert orders[0].id == 177106005


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_orders_by_id(client, fake_server):
    """Specific orders are requested with a comma separated id list"""
    fake_server.add(
        "GET", f"{API}/v1/accounts/{ACCOUNT}/orders", httpx.Response(200, json={"orders": []})
    )

    async with client:
        await client.login()
        await client.get_orders_by_id(ACCOUNT, 1, 2, 3)

    assert fake_server.last_request.url.params["ids"] == "1,2,3"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_quote_returns_single_quote(client, fake_server, load_fixture):
    """A single quote is unwrapped from the quotes envelope"""
    fake_server.add(
        "GET",
        f"{API}/v1/markets/quotes/38738",
        httpx.Response(200, json=load_fixture("quotes.json")),
    )

    async with client:
        await client.login()
        quote = await client.get_quote(38738)

    assert quote.symbol == "THI.TO"
    assert quote.symbolId == 38738
    assert quote.bidPrice == pytest.approx(83.65)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_quote_without_result_raises(client, fake_server):
    """An empty quote list is a client error"""
    fake_server.add(
        "GET", f"{API}/v1/markets/quotes/1", httpx.Response(200, json={"quotes": []})
    )

    async with client:
        await client.login()
        with pytest.raises(QuestradeClientError, match="symbol 1"):
            await client.get_quote(1)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_quotes_sends_ids(client, fake_server, load_fixture):
    """Multiple quotes are requested with an ids parameter"""
    fake_server.add(
        "GET", f"{API}/v1/markets/quotes", httpx.Response(200, json=load_fixture("quotes.json"))
    )

    async with client:
        await client.login()
        quotes = await client.get_quotes([38738, 8049])

    assert fake_server.last_request.url.params["ids"] == "38738,8049"
    assert len(quotes) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_symbol_lookups(client, fake_server):
    """Symbol details, search and option chains decode their envelopes"""
    fake_server.add(
        "GET",
        f"{API}/v1/symbols",
        httpx.Response(200, json={"symbols": [{"symbol": "AAPL", "symbolId": 8049, "yield": 1.2}]}),
    )
    fake_server.add(
        "GET",
        f"{API}/v1/symbols/search",
        httpx.Response(200, json={"symbols": [{"symbol": "BMO", "symbolId": 9292}]}),
    )
    fake_server.add(
        "GET",
        f"{API}/v1/symbols/9291/options",
        httpx.Response(
            200,
            json={
                "optionChain": [
                    {
                        "expiryDate": "2015-01-17T00:00:00.000000-05:00",
                        "chainPerRoot": [
                            {
                                "optionRoot": "BMO",
                                "multiplier": 100,
                                "chainPerStrikePrice": [
                                    {"strikePrice": 60, "callSymbolId": 6101993, "putSymbolId": 6102009}
                                ],
                            }
                        ],
                    }
                ]
            },
        ),
    )

    async with client:
        await client.login()
        symbols = await client.get_symbols(8049)
        assert fake_server.last_request.url.params["ids"] == "8049"

        matches = await client.search_symbols("BM", offset=5)
        assert fake_server.last_request.url.params["prefix"] == "BM"
        assert fake_server.last_request.url.params["offset"] == "5"

        chain = await client.get_option_chain(9291)

    assert symbols[0].yield_ == pytest.approx(1.2)
    assert matches[0].symbolId == 9292
    strike = chain[0].chainPerRoot[0].chainPerStrikePrice[0]
    assert strike.callSymbolId == 6101993


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_candles(client, fake_server):
    """Candles carry the period and interval in the query"""
    fake_server.add(
        "GET",
        f"{API}/v1/markets/candles/38738",
        httpx.Response(200, json={"candles": [{"open": 1.0, "close": 2.0, "volume": 10}]}),
    )
    start = datetime(2014, 10, 1, tzinfo=timezone.utc)
    end = datetime(2014, 10, 2, tzinfo=timezone.utc)

    async with client:
        await client.login()
        candles = await client.get_candles(38738, start, end, "OneDay")

    params = fake_server.last_request.url.params
    assert params["interval"] == "OneDay"
    assert params["endTime"] == end.isoformat()
    assert len(candles) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_naive_times_are_sent_as_utc(client, fake_server):
    """Times without an offset are sent with an explicit UTC offset"""
    fake_server.add(
        "GET", f"{API}/v1/markets/candles/1", httpx.Response(200, json={"candles": []})
    )
    fake_server.add(
        "GET",
        f"{API}/v1/accounts/{ACCOUNT}/executions",
        httpx.Response(200, json={"executions": []}),
    )

    async with client:
        await client.login()
        await client.get_candles(1, datetime(2014, 10, 1), datetime(2014, 10, 2), "OneDay")
        candle_params = fake_server.last_request.url.params
        await client.get_executions(ACCOUNT, start=datetime(2014, 10, 1, 9, 30))
        execution_params = fake_server.last_request.url.params

    assert candle_params["startTime"] == "2014-10-01T00:00:00+00:00"
    assert candle_params["endTime"] == "2014-10-02T00:00:00+00:00"
    assert execution_params["startTime"] == "2014-10-01T09:30:00+00:00"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_aware_times_keep_their_offset(client, fake_server):
    """Times with an offset are sent unchanged"""
    fake_server.add(
        "GET", f"{API}/v1/accounts/{ACCOUNT}/orders", httpx.Response(200, json={"orders": []})
    )
    eastern = timezone(timedelta(hours=-4))

    async with client:
        await client.login()
        await client.get_orders(ACCOUNT, end=datetime(2014, 10, 24, 16, 0, tzinfo=eastern))

    assert fake_server.last_request.url.params["endTime"] == "2014-10-24T16:00:00-04:00"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_place_order_posts_to_account_orders(client, fake_server, load_fixture):
    """New orders are posted to the account's order collection"""
    fake_server.add(
        "POST",
        f"{API}/v1/accounts/{ACCOUNT}/orders",
        httpx.Response(200, json=load_fixture("order_placed.json")),
    )

    async with client:
        await client.login()
        orders = await client.place_order(order_request())

    body = fake_server.last_request.read()
    assert b'"symbolId": 8049' in body or b'"symbolId":8049' in body
    assert b"accountNumber" in body
    assert orders[0].id == 177106005
    assert orders[0].state == "Pending"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_replace_order_posts_to_order_path(client, fake_server, load_fixture):
    """Replacing an order targets the existing order id"""
    fake_server.add(
        "POST",
        f"{API}/v1/accounts/{ACCOUNT}/orders/177106005",
        httpx.Response(200, json=load_fixture("order_placed.json")),
    )

    async with client:
        await client.login()
        await client.place_order(order_request(orderId=177106005, limitPrice=540.0))

    assert fake_server.last_request.url.path.endswith("/orders/177106005")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_order_impact(client, fake_server):
    """Order impact is calculated on the impact sub-resource"""
    fake_server.add(
        "POST",
        f"{API}/v1/accounts/{ACCOUNT}/orders/impact",
        httpx.Response(
            200,
            json={"estimatedCommissions": 24.95, "buyingPowerEffect": -1000, "side": "Buy"},
        ),
    )

    async with client:
        await client.login()
        impact = await client.get_order_impact(order_request())

    assert impact.estimatedCommissions == pytest.approx(24.95)
    assert impact.buyingPowerEffect == -1000


@pytest.mark.unit
@pytest.mark.asyncio
async def test_order_rejection_carries_order_details(client, fake_server):
    """Rejected orders raise a structured error with the order fields"""
    fake_server.add(
        "POST",
        f"{API}/v1/accounts/{ACCOUNT}/orders",
        httpx.Response(
            400,
            json={"code": 1019, "message": "Insufficient buying power", "orderId": 5},
        ),
    )

    async with client:
        await client.login()
        with pytest.raises(QuestradeAPIError) as excinfo:
            await client.place_order(order_request())

    assert excinfo.value.code == 1019
    assert excinfo.value.order_id == 5
    assert excinfo.value.endpoint == f"{API}/v1/accounts/{ACCOUNT}/orders"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_order(client, fake_server):
    """Cancelling an order returns its id"""
    fake_server.add(
        "DELETE",
        f"{API}/v1/accounts/{ACCOUNT}/orders/177106005",
        httpx.Response(200, json={"orderId": 177106005}),
    )

    async with client:
        await client.login()
        order_id = await client.delete_order(ACCOUNT, 177106005)

    assert order_id == 177106005
    assert fake_server.last_request.method == "DELETE"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_ports(client, fake_server):
    """Stream port lookups carry the streaming mode"""
    fake_server.add(
        "GET", f"{API}/v1/markets/quotes", httpx.Response(200, json={"streamPort": 54321})
    )
    fake_server.add(
        "GET", f"{API}/v1/notifications", httpx.Response(200, json={"streamPort": 12345})
    )

    async with client:
        await client.login()
        quote_port = await client.get_quote_stream_port([8049, 9292])
        quote_params = fake_server.last_request.url.params
        notification_port = await client.get_notification_stream_port(use_websocket=False)
        notification_params = fake_server.last_request.url.params

    assert quote_port == 54321
    assert quote_params["mode"] == "WebSocket"
    assert quote_params["stream"] == "true"
    assert quote_params["ids"] == "8049,9292"
    assert notification_port == 12345
    assert notification_params["mode"] == "RawSocket"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_uri_uses_api_host(client):
    """Stream addresses reuse the session's API host"""
    with pytest.raises(QuestradeClientError, match="Not logged in"):
        client.stream_uri(54321)

    async with client:
        await client.login()
        assert client.stream_uri(54321) == "wss://api01.iq.questrade.com:54321"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_quotes_authenticates_connection(client, fake_server, login_payload):
    """Streaming looks up the port and hands the access token to the socket"""
    fake_server.add(
        "GET", f"{API}/v1/markets/quotes", httpx.Response(200, json={"streamPort": 54321})
    )
    connection = fake_websocket(
        {"success": True}, {"quotes": [{"symbol": "AAPL", "symbolId": 8049}]}
    )
    connect = AsyncMock(return_value=connection)

    async with client:
        await client.login()
        async with await client.stream_quotes([8049], connect=connect) as stream:
            quotes = await stream.read_next()

    connect.assert_awaited_once_with("wss://api01.iq.questrade.com:54321")
    connection.send.assert_awaited_once_with(login_payload["access_token"])
    assert quotes[0].symbolId == 8049


@pytest.mark.unit
@pytest.mark.asyncio
async def test_request_before_login_is_rejected(client, fake_server):
    """Resource calls require a session"""
    async with client:
        with pytest.raises(QuestradeClientError):
            await client.get_markets()

    assert fake_server.requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_logs_in_from_config(fake_server, login_payload):
    """create() builds the client and logs in"""
    config = Config(refresh_token="from_config", environment=Environment.PRODUCTION)

    client = await QuestradeClient.create(config, transport=fake_server.transport)
    try:
        assert client.credentials.access_token == login_payload["access_token"]
        assert not client.session_expired
    finally:
        await client.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_closes_client_on_failed_login(mocker):
    """A rejected login surfaces the structured error and closes the client"""
    close_spy = mocker.spy(QuestradeAuthManager, "close")
    server = FakeQuestrade()
    server.add(
        "POST",
        f"{LOGIN_URL}token",
        httpx.Response(400, json={"code": 1017, "message": "Bad refresh token"}),
    )

    with pytest.raises(QuestradeAPIError) as excinfo:
        await QuestradeClient.create(
            Config(refresh_token="stale"), transport=server.transport
        )

    assert excinfo.value.status_code == 400
    close_spy.assert_called_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_revoke_clears_session(client, fake_server):
    """Revocation through the client clears credentials"""
    fake_server.add("POST", f"{LOGIN_URL}revoke", httpx.Response(200))

    async with client:
        await client.login()
        await client.revoke()

    assert not client.credentials.is_authenticated
    assert client.auth_manager.session_timer is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rate_limit_exposed(client, fake_server):
    """The latest rate-limit headers are visible on the client"""
    fake_server.add(
        "GET",
        f"{API}/v1/markets",
        httpx.Response(
            200,
            json={"markets": [{"name": "TSX"}]},
            headers={"X-RateLimit-Remaining": "29999", "X-RateLimit-Reset": "1700000000"},
        ),
    )

    async with client:
        await client.login()
        markets = await client.get_markets()

    assert markets[0].name == "TSX"
    assert client.rate_limit.remaining == 29999
