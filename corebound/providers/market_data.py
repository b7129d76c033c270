"""Market lists and mid prices for the strategy builder.

Both venues expose public market data. Market lists change rarely, so they
are cached for five minutes and a stale copy is served when the venue is
unreachable. Prices are always fetched fresh.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..exceptions import ExchangeError

logger = logging.getLogger(__name__)

HYPERLIQUID_MAJORS = ("BTC", "ETH", "SOL")
COINBASE_MAJORS = ("BTC", "ETH", "SOL", "DOGE", "XRP", "ADA", "AVAX", "LINK")

MARKETS_CACHE_TTL_SECONDS = 300
# prices are fetched for at most this many markets per request
PRICE_BATCH_LIMIT = 5


def base_asset(symbol: str) -> str:
    """Base asset of "BTC-USD", "BTC-PERP" or "BTC-PERP-INTX"."""
    return symbol.split("-")[0]


def order_markets(markets: List[Dict[str, Any]], majors: Sequence[str]) -> List[Dict[str, Any]]:
    """Majors first in their listed order, then the rest alphabetically.

    Example:
        >>> order_markets([{"symbol": "ARB-PERP"}, {"symbol": "ETH-PERP"}, {"symbol": "BTC-PERP"}], ("BTC", "ETH"))
        [{'symbol': 'BTC-PERP'}, {'symbol': 'ETH-PERP'}, {'symbol': 'ARB-PERP'}]
    """
    def key(market):
        base = base_asset(market["symbol"])
        if base in majors:
            return (0, majors.index(base), "")
        return (1, 0, market["symbol"])

    return sorted(markets, key=key)


class MarketListCache:
    """Per-venue market list with a TTL and a stale fallback."""

    def __init__(self, ttl_seconds: float = MARKETS_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._markets: Optional[List[Dict[str, Any]]] = None
        self._loaded_at = 0.0

    async def get(self, loader: Callable[[], Awaitable[List[Dict[str, Any]]]]) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Return cached markets or load fresh ones.

        Args:
            loader: Coroutine function fetching the market list from the venue

        Returns:
            (markets, stale) tuple; stale is True when the venue failed and
            an expired copy was served instead

        Raises:
            ExchangeError: If the venue fails and nothing is cached
        """
        now = self.clock()
        if self._markets is not None and now - self._loaded_at < self.ttl_seconds:
            return self._markets, False

        try:
            markets = await loader()
        except ExchangeError as e:
            if self._markets is None:
                raise
            logger.warning(f"Serving cached markets after venue error: {e}")
            return self._markets, True

        self._markets = markets
        self._loaded_at = now
        return markets, False
