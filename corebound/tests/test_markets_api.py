"""API tests for market lists, prices and the Hyperliquid balance breakdown."""

from unittest.mock import AsyncMock, Mock

import pytest

from corebound.api.deps import get_market_data_factory
from corebound.exceptions import ExchangeConnectionError

WALLET = "0x" + "ab" * 20
PRIVATE_KEY = "0x" + "cd" * 32

PERP_MARKETS = [
    {"symbol": "BTC-PERP", "display": "BTC-PERP", "type": "PERP"},
    {"symbol": "ETH-PERP", "display": "ETH-PERP", "type": "PERP"},
]


@pytest.fixture
def market_client(app):
    """
    Market data client returned for every venue.

    Usage:
        def test_example(client, market_client):
            market_client.get_markets.return_value = [...]
    """
    market_client = Mock()
    market_client.get_markets = AsyncMock(return_value=PERP_MARKETS)
    market_client.get_mid_prices = AsyncMock(return_value={"BTC-PERP": 60000.0})
    market_client.close = AsyncMock()
    market_client.venues = []

    def factory(venue, config):
        market_client.venues.append(venue)
        return market_client

    app.dependency_overrides[get_market_data_factory] = lambda: factory
    return market_client


class TestMarkets:

    def test_hyperliquid_markets(self, client, market_client):
        response = client.get("/api/hyperliquid/markets")

        assert response.status_code == 200
        assert response.json() == {"markets": PERP_MARKETS}
        assert response.headers["Cache-Control"] == "public, s-maxage=60, stale-while-revalidate=300"
        assert market_client.venues == ["hyperliquid"]
        market_client.close.assert_awaited_once()

    def test_list_cached_between_requests(self, client, market_client):
        client.get("/api/coinbase/markets")
        client.get("/api/coinbase/markets")

        market_client.get_markets.assert_awaited_once()
        assert market_client.venues == ["coinbase", "coinbase"]

    def test_venues_cached_separately(self, client, market_client):
        client.get("/api/hyperliquid/markets")
        client.get("/api/coinbase/markets")

        assert market_client.get_markets.await_count == 2

    def test_stale_list_served_on_error(self, client, app, market_client):
        client.get("/api/hyperliquid/markets")
        app.state.market_caches["hyperliquid"].ttl_seconds = 0
        market_client.get_markets.side_effect = ExchangeConnectionError("Hyperliquid API error: 503")

        response = client.get("/api/hyperliquid/markets")

        assert response.status_code == 200
        assert response.json() == {
            "markets": PERP_MARKETS,
            "cached": True,
            "error": "Using cached data due to API error",
        }

    def test_error_without_cache(self, client, market_client):
        market_client.get_markets.side_effect = ExchangeConnectionError("Coinbase API request failed: timeout")

        response = client.get("/api/coinbase/markets")

        assert response.status_code == 502
        assert response.json() == {"error": "Coinbase API request failed: timeout"}
        market_client.close.assert_awaited_once()


class TestPrices:

    def test_prices(self, client, market_client):
        response = client.post("/api/hyperliquid/prices", json={"markets": ["BTC-PERP"]})

        assert response.json() == {"prices": {"BTC-PERP": 60000.0}}
        market_client.get_mid_prices.assert_awaited_once_with(["BTC-PERP"])

    def test_coinbase_prices(self, client, market_client):
        market_client.get_mid_prices.return_value = {"BTC-USD": 60005.0}

        response = client.post("/api/coinbase/prices", json={"markets": ["BTC-USD"]})

        assert response.json() == {"prices": {"BTC-USD": 60005.0}}
        assert market_client.venues == ["coinbase"]

    @pytest.mark.parametrize("body", [{}, {"markets": []}, {"markets": "BTC-PERP"}, {"markets": [1, 2]}])
    def test_markets_required(self, client, market_client, body):
        response = client.post("/api/hyperliquid/prices", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "markets array is required"}
        market_client.get_mid_prices.assert_not_awaited()


class TestBalanceBreakdown:

    def test_without_connection(self, client, auth_headers, wallet_checker, user_id):
        response = client.get("/api/hyperliquid/balance-breakdown", headers=auth_headers(user_id))

        assert response.json() == {"perpEquity": 0, "spotUsdcBalance": 0, "totalEquity": 0, "hasConnection": False}

    def test_funds_in_spot_only(self, client, auth_headers, wallet_checker, user_id):
        client.post(
            "/api/exchange-connections",
            json={"venue": "hyperliquid", "wallet_address": WALLET, "key_material_encrypted": PRIVATE_KEY},
            headers=auth_headers(user_id),
        )
        wallet_checker.balance_breakdown = AsyncMock(return_value={
            "total_equity": 500.0,
            "perp_equity": 0.0,
            "spot_usdc": 500.0,
            "margin_used": 0.0,
        })

        response = client.get("/api/hyperliquid/balance-breakdown", headers=auth_headers(user_id))

        assert response.json() == {
            "perpEquity": 0.0,
            "spotUsdcBalance": 500.0,
            "totalEquity": 500.0,
            "hasConnection": True,
            "fundsInSpotOnly": True,
            "tradingAvailable": True,
        }
        wallet_checker.balance_breakdown.assert_awaited_once_with(WALLET)

    def test_requires_auth(self, client):
        assert client.get("/api/hyperliquid/balance-breakdown").status_code == 401
