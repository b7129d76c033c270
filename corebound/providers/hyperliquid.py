"""Hyperliquid account verifier.

Talks to the public info endpoint (``POST {base}/info``); no signing is
needed to read a wallet's clearinghouse state.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..exceptions import ExchangeAccountNotFoundError, ExchangeConnectionError
from ..validation import safe_number
from .base import BaseAccountVerifier
from .market_data import HYPERLIQUID_MAJORS, PRICE_BATCH_LIMIT, base_asset, order_markets

DEFAULT_API_URL = "https://api.hyperliquid.xyz"


def summarize_equity(margin_summary: Dict[str, Any], spot_balances: List[dict]) -> Dict[str, float]:
    """Combine perp margin and spot balances into equity figures.

    Hyperliquid accounts run unified margin: the spot USDC balance already is
    total equity and perp margin is pledged out of it, so the two are never
    added together.

    Returns:
        ``total_equity``, ``perp_equity``, ``spot_usdc`` and ``margin_used``
    """
    account_value = safe_number(margin_summary.get("accountValue"))
    margin_used = safe_number(margin_summary.get("totalMarginUsed"))
    spot_usdc = next(
        (safe_number(b.get("total")) for b in spot_balances if b.get("coin") == "USDC"),
        0.0,
    )
    return {
        "total_equity": spot_usdc,
        "perp_equity": account_value - margin_used if margin_used > 0 else 0.0,
        "spot_usdc": spot_usdc,
        "margin_used": margin_used,
    }


class HyperliquidVerifier(BaseAccountVerifier):
    """Verify Hyperliquid wallets through the info API.

    Example:
        >>> verifier = HyperliquidVerifier("https://api.hyperliquid.xyz")
        >>> state = await verifier.get_account_state("0x" + "ab" * 20)
        >>> state["margin_summary"]["accountValue"]
        '0'
        >>> await verifier.close()
    """

    def __init__(self, base_url: str = DEFAULT_API_URL, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.logger = logging.getLogger(__name__)
        self._session: Optional[aiohttp.ClientSession] = None

    def get_venue_name(self) -> str:
        return "Hyperliquid"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _info(self, payload: dict) -> Any:
        url = f"{self.base_url}/info"
        try:
            async with self._get_session().post(url, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ExchangeConnectionError(
                        f"Hyperliquid API error: {response.status} {error_text}".strip()
                    )
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExchangeConnectionError(f"Hyperliquid API request failed: {e}") from e

    async def get_account_state(self, wallet_address: str) -> dict:
        """Fetch perp positions and margin summary for a wallet.

        Raises:
            ExchangeAccountNotFoundError: Hyperliquid has no state for the wallet
            ExchangeConnectionError: The API could not be reached
        """
        data = await self._info({"type": "clearinghouseState", "user": wallet_address})
        if not isinstance(data, dict):
            raise ExchangeAccountNotFoundError(
                "Could not find this wallet address on Hyperliquid. "
                "Make sure you're using the correct address."
            )

        summary = data.get("marginSummary") or {}
        return {
            "positions": data.get("assetPositions") or [],
            "margin_summary": {
                "accountValue": summary.get("accountValue") or "0",
                "totalMarginUsed": summary.get("totalMarginUsed") or "0",
                "totalNtlPos": summary.get("totalNtlPos") or "0",
                "totalRawUsd": summary.get("totalRawUsd") or "0",
            },
        }

    async def get_spot_balances(self, wallet_address: str) -> List[dict]:
        """Spot wallet balances; an unreachable spot endpoint reads as empty."""
        try:
            data = await self._info({"type": "spotClearinghouseState", "user": wallet_address})
        except ExchangeConnectionError as e:
            self.logger.error(f"Failed to get spot balances: {e}")
            return []

        balances = (data or {}).get("balances") or []
        return [
            {
                "coin": b.get("coin") or "UNKNOWN",
                "total": safe_number(b.get("total")),
                "hold": safe_number(b.get("hold")),
                "available": safe_number(b.get("total")) - safe_number(b.get("hold")),
            }
            for b in balances
        ]

    async def _state_and_equity(self, wallet_address: str):
        state, balances = await asyncio.gather(
            self.get_account_state(wallet_address),
            self.get_spot_balances(wallet_address),
        )
        return state, summarize_equity(state["margin_summary"], balances)

    async def account_equity(self, connection: Any) -> float:
        _, equity = await self._state_and_equity(connection.wallet_address)
        return equity["total_equity"]

    async def verify(self, connection: Any) -> dict:
        state, equity = await self._state_and_equity(connection.wallet_address)
        summary = state["margin_summary"]

        self.logger.info(
            f"Verified Hyperliquid wallet {connection.wallet_address[:8]}... "
            f"(equity ${equity['total_equity']:.2f})"
        )
        return {
            "success": True,
            "message": "Connection verified successfully",
            "account": {
                "wallet_address": connection.wallet_address,
                "account_value": f"{equity['total_equity']:.2f}",
                "perp_equity": f"{equity['perp_equity']:.2f}",
                "spot_usdc": f"{equity['spot_usdc']:.2f}",
                "margin_used": summary["totalMarginUsed"],
                "total_position_value": summary["totalNtlPos"],
                "positions_count": len(state["positions"]),
            },
        }

    async def balance_breakdown(self, wallet_address: str) -> Dict[str, float]:
        """Spot versus perp equity, used to warn when funds sit outside perps."""
        _, equity = await self._state_and_equity(wallet_address)
        return equity

    async def get_markets(self) -> List[dict]:
        """Listed perpetual markets as ``{symbol, display, type}``, majors first.

        Raises:
            ExchangeConnectionError: The API could not be reached
        """
        data = await self._info({"type": "meta"})
        markets = []
        seen = set()
        for asset in (data or {}).get("universe") or []:
            name = asset.get("name")
            if not name or asset.get("isDelisted"):
                continue
            symbol = f"{name}-PERP"
            if symbol in seen:
                continue
            seen.add(symbol)
            markets.append({"symbol": symbol, "display": symbol, "type": "PERP"})
        return order_markets(markets, HYPERLIQUID_MAJORS)

    async def get_mid_prices(self, markets: List[str]) -> Dict[str, float]:
        """Mid prices keyed by market; markets without a valid price are left out.

        Raises:
            ExchangeConnectionError: The API could not be reached
        """
        mids = await self._info({"type": "allMids"})
        if not isinstance(mids, dict):
            mids = {}

        prices = {}
        for market in markets[:PRICE_BATCH_LIMIT]:
            # allMids is keyed by coin ("BTC"); "@142" style keys are spot pairs
            price = safe_number(mids.get(base_asset(market)))
            if price > 0:
                prices[market] = price
            else:
                self.logger.warning(f"No Hyperliquid mid price for {market}")
        return prices
