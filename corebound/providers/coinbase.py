"""Coinbase account verifier and public market data.

Uses ccxt's async ``coinbase`` exchange to read spot balances and price
them in USD. Market lists and prices come from the public Coinbase Exchange
API (``coinbaseexchange``), which needs no key.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import ccxt.async_support as ccxt

from ..exceptions import ExchangeConnectionError, ExchangeError
from ..validation import round_to, safe_number
from .base import BaseAccountVerifier
from .market_data import COINBASE_MAJORS, PRICE_BATCH_LIMIT, base_asset, order_markets

USD_ASSETS = ("USD", "USDC", "USDT")
DUST_USD = 1.0
BALANCES_SHOWN = 5


class CoinbaseVerifier(BaseAccountVerifier):
    """Verify Coinbase API keys by pricing the account's spot balances.

    A fresh ccxt exchange is opened per call and closed before returning.
    """

    def __init__(self, api_key: str, api_secret: str, exchange: Optional[Any] = None):
        """Initialize Coinbase verifier.

        Args:
            api_key: Coinbase API key name
            api_secret: Decrypted API secret
            exchange: Prebuilt ccxt exchange (tests); built per call otherwise
        """
        self.api_key = api_key
        self.api_secret = api_secret
        self._exchange = exchange
        self.logger = logging.getLogger(__name__)

    def get_venue_name(self) -> str:
        return "Coinbase"

    def _build_exchange(self):
        if self._exchange is not None:
            return self._exchange
        return ccxt.coinbase({
            'apiKey': self.api_key,
            'secret': self.api_secret,
            'enableRateLimit': True,
        })

    async def _price(self, exchange, asset: str) -> float:
        try:
            ticker = await exchange.fetch_ticker(f"{asset}/USD")
            return safe_number(ticker.get("last"))
        except ccxt.BaseError as e:
            self.logger.debug(f"No USD price for {asset}: {e}")
            return 0.0

    async def get_spot_balances(self) -> List[dict]:
        """Non-zero balances with their USD value.

        Raises:
            ExchangeConnectionError: Coinbase could not be reached
            ExchangeError: Coinbase rejected the request (bad key, permissions)
        """
        exchange = self._build_exchange()
        try:
            raw = await exchange.fetch_balance()
            totals = raw.get('total') or {}
            free = raw.get('free') or {}

            balances = []
            for asset, total in totals.items():
                total = safe_number(total)
                if total == 0:
                    continue
                balances.append({
                    "asset": asset,
                    "total": total,
                    "available": safe_number(free.get(asset)),
                    "usdValue": total if asset in USD_ASSETS else 0.0,
                })

            priced = [b for b in balances if b["asset"] not in USD_ASSETS]
            prices = await asyncio.gather(*(self._price(exchange, b["asset"]) for b in priced))
            for balance, price in zip(priced, prices):
                balance["usdValue"] = balance["total"] * price

            return balances

        except ccxt.NetworkError as e:
            raise ExchangeConnectionError(f"Coinbase API request failed: {e}") from e
        except ccxt.BaseError as e:
            raise ExchangeError(str(e)) from e
        finally:
            await exchange.close()

    async def account_equity(self, connection: Any) -> float:
        balances = await self.get_spot_balances()
        return sum(b["usdValue"] for b in balances)

    async def verify(self, connection: Any) -> dict:
        balances = await self.get_spot_balances()
        equity = round_to(sum(b["usdValue"] for b in balances), 2)
        non_dust = [b for b in balances if b["usdValue"] >= DUST_USD]

        self.logger.info(f"Verified Coinbase key {self.api_key[:8]}... (equity ${equity:.2f})")
        return {
            "success": True,
            "message": "Connection verified successfully",
            "account": {
                "api_key": connection.api_key,
                "equity": equity,
                "balances_count": len(non_dust),
                "balances": [
                    {"asset": b["asset"], "available": b["available"], "usdValue": b["usdValue"]}
                    for b in non_dust[:BALANCES_SHOWN]
                ],
            },
        }


def ticker_symbol(product_id: str) -> str:
    """ccxt symbol priced for a product; INTX perpetuals track their USD spot pair.

    Examples:
        >>> ticker_symbol("ETH-USDC")
        'ETH/USDC'
        >>> ticker_symbol("BTC-PERP-INTX")
        'BTC/USD'
    """
    parts = product_id.split("-")
    if len(parts) == 2 and parts[1] not in ("PERP", "INTX"):
        return f"{parts[0]}/{parts[1]}"
    return f"{base_asset(product_id)}/USD"


class CoinbaseMarketData:
    """USD spot markets and mid prices from the public Coinbase Exchange API."""

    def __init__(self, exchange: Optional[Any] = None):
        self._exchange = exchange
        self.logger = logging.getLogger(__name__)

    def _get_exchange(self):
        if self._exchange is None:
            self._exchange = ccxt.coinbaseexchange({'enableRateLimit': True})
        return self._exchange

    async def close(self) -> None:
        if self._exchange is not None:
            await self._exchange.close()
        self._exchange = None

    async def get_markets(self) -> List[dict]:
        """Online USD spot markets, majors first.

        Auction-only and post-only products are skipped.

        Raises:
            ExchangeConnectionError: Coinbase could not be reached
            ExchangeError: Coinbase rejected the request
        """
        try:
            loaded = await self._get_exchange().load_markets()
        except ccxt.NetworkError as e:
            raise ExchangeConnectionError(f"Coinbase API request failed: {e}") from e
        except ccxt.BaseError as e:
            raise ExchangeError(str(e)) from e

        markets = []
        seen = set()
        for market in loaded.values():
            info = market.get("info") or {}
            if market.get("quote") != "USD" or info.get("status", "online") != "online":
                continue
            if info.get("auction_mode") or info.get("post_only"):
                continue
            product_id = market["id"]
            if product_id in seen:
                continue
            seen.add(product_id)
            markets.append({
                "symbol": product_id,
                "display": f"{market['base']}/{market['quote']}",
                "type": "SPOT",
                "baseAsset": market["base"],
                "quoteAsset": market["quote"],
            })

        self.logger.info(f"Loaded {len(markets)} Coinbase USD spot markets")
        return order_markets(markets, COINBASE_MAJORS)

    async def _mid_price(self, product_id: str) -> float:
        try:
            ticker = await self._get_exchange().fetch_ticker(ticker_symbol(product_id))
        except ccxt.BaseError as e:
            self.logger.warning(f"No Coinbase price for {product_id}: {e}")
            return 0.0
        bid = safe_number(ticker.get("bid"))
        ask = safe_number(ticker.get("ask"))
        if bid > 0 and ask > 0:
            return (bid + ask) / 2
        return safe_number(ticker.get("last"))

    async def get_mid_prices(self, markets: List[str]) -> Dict[str, float]:
        """Mid prices keyed by product id; products without a price are left out."""
        batch = markets[:PRICE_BATCH_LIMIT]
        prices = await asyncio.gather(*(self._mid_price(product_id) for product_id in batch))
        return {product_id: price for product_id, price in zip(batch, prices) if price > 0}
