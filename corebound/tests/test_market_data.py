"""Tests for venue market lists, mid prices and the market list cache."""

from unittest.mock import AsyncMock, Mock

import ccxt.async_support as ccxt
import pytest

from corebound.config import CoreboundConfig
from corebound.exceptions import ExchangeConnectionError, ExchangeError
from corebound.providers.coinbase import CoinbaseMarketData, ticker_symbol
from corebound.providers.factory import create_market_data
from corebound.providers.hyperliquid import HyperliquidVerifier
from corebound.providers.market_data import MarketListCache, order_markets


def coinbase_market(product_id, quote="USD", **info):
    base = product_id.split("-")[0]
    return {"id": product_id, "base": base, "quote": quote, "info": {"status": "online", **info}}


class TestOrderMarkets:

    def test_majors_first_then_alphabetical(self):
        markets = [{"symbol": s} for s in ("WIF-PERP", "ETH-PERP", "ARB-PERP", "BTC-PERP")]

        ordered = order_markets(markets, ("BTC", "ETH", "SOL"))

        assert [m["symbol"] for m in ordered] == ["BTC-PERP", "ETH-PERP", "ARB-PERP", "WIF-PERP"]


class TestMarketListCache:
    """Test the TTL and the stale fallback."""

    @pytest.fixture
    def clock(self):
        clock = Mock(return_value=1000.0)
        return clock

    @pytest.mark.asyncio
    async def test_fresh_copy_reused(self, clock):
        cache = MarketListCache(ttl_seconds=300, clock=clock)
        loader = AsyncMock(return_value=[{"symbol": "BTC-PERP"}])

        await cache.get(loader)
        clock.return_value = 1299.0
        markets, stale = await cache.get(loader)

        assert markets == [{"symbol": "BTC-PERP"}]
        assert stale is False
        loader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_copy_reloaded(self, clock):
        cache = MarketListCache(ttl_seconds=300, clock=clock)
        loader = AsyncMock(side_effect=[[{"symbol": "BTC-PERP"}], [{"symbol": "ETH-PERP"}]])

        await cache.get(loader)
        clock.return_value = 1300.0
        markets, _ = await cache.get(loader)

        assert markets == [{"symbol": "ETH-PERP"}]

    @pytest.mark.asyncio
    async def test_stale_copy_on_venue_error(self, clock):
        cache = MarketListCache(ttl_seconds=300, clock=clock)
        await cache.get(AsyncMock(return_value=[{"symbol": "BTC-PERP"}]))
        clock.return_value = 2000.0

        markets, stale = await cache.get(AsyncMock(side_effect=ExchangeConnectionError("down")))

        assert markets == [{"symbol": "BTC-PERP"}]
        assert stale is True

    @pytest.mark.asyncio
    async def test_error_without_cache(self, clock):
        cache = MarketListCache(clock=clock)
        with pytest.raises(ExchangeConnectionError):
            await cache.get(AsyncMock(side_effect=ExchangeConnectionError("down")))


class TestHyperliquidMarketData:

    @pytest.fixture
    def client(self):
        return HyperliquidVerifier("https://hyperliquid.test")

    @pytest.mark.asyncio
    async def test_markets(self, client):
        client._info = AsyncMock(return_value={"universe": [
            {"name": "DOGE"},
            {"name": "ETH"},
            {"name": "LUNA", "isDelisted": True},
            {"name": "BTC"},
            {"name": "BTC"},
        ]})

        markets = await client.get_markets()

        assert markets == [
            {"symbol": "BTC-PERP", "display": "BTC-PERP", "type": "PERP"},
            {"symbol": "ETH-PERP", "display": "ETH-PERP", "type": "PERP"},
            {"symbol": "DOGE-PERP", "display": "DOGE-PERP", "type": "PERP"},
        ]
        client._info.assert_awaited_once_with({"type": "meta"})

    @pytest.mark.asyncio
    async def test_mid_prices(self, client):
        client._info = AsyncMock(return_value={"BTC": "116845.5", "ETH": "3915.35", "@142": "1.2", "BAD": "0"})

        prices = await client.get_mid_prices(["BTC-PERP", "ETH-PERP", "BAD-PERP", "NOPE-PERP"])

        assert prices == {"BTC-PERP": 116845.5, "ETH-PERP": 3915.35}

    @pytest.mark.asyncio
    async def test_mid_prices_batch_limit(self, client):
        client._info = AsyncMock(return_value={coin: "1" for coin in "ABCDEFG"})

        prices = await client.get_mid_prices([f"{coin}-PERP" for coin in "ABCDEFG"])

        assert list(prices) == ["A-PERP", "B-PERP", "C-PERP", "D-PERP", "E-PERP"]

    @pytest.mark.asyncio
    async def test_balance_breakdown(self, client):
        async def info(payload):
            if payload["type"] == "clearinghouseState":
                return {"marginSummary": {"accountValue": "300", "totalMarginUsed": "50"}}
            return {"balances": [{"coin": "USDC", "total": "1000"}]}

        client._info = AsyncMock(side_effect=info)

        breakdown = await client.balance_breakdown("0x" + "ab" * 20)

        assert breakdown["total_equity"] == 1000
        assert breakdown["perp_equity"] == 250
        assert breakdown["spot_usdc"] == 1000


class TestCoinbaseMarketData:
    """Test the public Coinbase Exchange client over a mocked ccxt exchange."""

    @pytest.mark.asyncio
    async def test_markets(self):
        exchange = Mock()
        exchange.load_markets = AsyncMock(return_value={
            "AAVE/USD": coinbase_market("AAVE-USD"),
            "ETH/USD": coinbase_market("ETH-USD"),
            "BTC/USD": coinbase_market("BTC-USD"),
            "ETH/BTC": coinbase_market("ETH-BTC", quote="BTC"),
            "OLD/USD": coinbase_market("OLD-USD", status="delisted"),
            "NEW/USD": coinbase_market("NEW-USD", auction_mode=True),
        })
        client = CoinbaseMarketData(exchange=exchange)

        markets = await client.get_markets()

        assert [m["symbol"] for m in markets] == ["BTC-USD", "ETH-USD", "AAVE-USD"]
        assert markets[0] == {
            "symbol": "BTC-USD",
            "display": "BTC/USD",
            "type": "SPOT",
            "baseAsset": "BTC",
            "quoteAsset": "USD",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,expected", [
        (ccxt.NetworkError("timed out"), ExchangeConnectionError),
        (ccxt.ExchangeError("bad request"), ExchangeError),
    ])
    async def test_markets_errors(self, error, expected):
        exchange = Mock()
        exchange.load_markets = AsyncMock(side_effect=error)

        with pytest.raises(expected):
            await CoinbaseMarketData(exchange=exchange).get_markets()

    @pytest.mark.asyncio
    async def test_mid_prices(self):
        tickers = {
            "BTC/USD": {"bid": 60000.0, "ask": 60010.0, "last": 60004.0},
            "ETH/USD": {"bid": None, "ask": None, "last": 3000.0},
        }

        async def fetch_ticker(symbol):
            if symbol not in tickers:
                raise ccxt.BadSymbol(symbol)
            return tickers[symbol]

        exchange = Mock()
        exchange.fetch_ticker = AsyncMock(side_effect=fetch_ticker)
        exchange.close = AsyncMock()
        client = CoinbaseMarketData(exchange=exchange)

        prices = await client.get_mid_prices(["BTC-PERP-INTX", "ETH-USD", "NOPE-USD"])
        await client.close()

        assert prices == {"BTC-PERP-INTX": 60005.0, "ETH-USD": 3000.0}
        exchange.close.assert_awaited_once()

    @pytest.mark.parametrize("product_id,symbol", [
        ("BTC-USD", "BTC/USD"),
        ("ETH-USDC", "ETH/USDC"),
        ("BTC-PERP-INTX", "BTC/USD"),
        ("SOL-PERP", "SOL/USD"),
    ])
    def test_ticker_symbol(self, product_id, symbol):
        assert ticker_symbol(product_id) == symbol


class TestCreateMarketData:

    def test_venues(self):
        config = CoreboundConfig(hyperliquid_api_url="https://hl.test")

        assert isinstance(create_market_data("coinbase", config), CoinbaseMarketData)
        hyperliquid = create_market_data("hyperliquid", config)
        assert isinstance(hyperliquid, HyperliquidVerifier)
        assert hyperliquid.base_url == "https://hl.test"
