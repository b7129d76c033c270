"""Market data API: tradable markets, mid prices and Hyperliquid balances."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import CoreboundConfig
from ..database.connection import get_db
from ..database.repositories import ExchangeConnectionRepository
from ..providers.hyperliquid import HyperliquidVerifier
from ..providers.market_data import MarketListCache
from ..validation import ValidationError
from ..web.auth import CurrentUser, get_config, get_current_user
from .deps import MarketDataFactory, get_market_caches, get_market_data_factory, get_wallet_checker

router = APIRouter(prefix="/api", tags=["markets"])
logger = logging.getLogger(__name__)

MARKETS_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=300"


class PricesRequest(BaseModel):
    markets: Any = None


async def _markets(venue: str, cache: MarketListCache, factory: MarketDataFactory, config: CoreboundConfig):
    client = factory(venue, config)
    try:
        markets, stale = await cache.get(client.get_markets)
    finally:
        await client.close()

    if stale:
        return {"markets": markets, "cached": True, "error": "Using cached data due to API error"}
    return JSONResponse({"markets": markets}, headers={"Cache-Control": MARKETS_CACHE_CONTROL})


async def _prices(venue: str, body: PricesRequest, factory: MarketDataFactory, config: CoreboundConfig):
    markets = body.markets
    if not isinstance(markets, list) or not markets or not all(isinstance(m, str) for m in markets):
        raise ValidationError("markets array is required", field="markets")

    client = factory(venue, config)
    try:
        prices = await client.get_mid_prices(markets)
    finally:
        await client.close()
    return {"prices": prices}


@router.get("/hyperliquid/markets")
async def hyperliquid_markets(
    caches: Dict[str, MarketListCache] = Depends(get_market_caches),
    factory: MarketDataFactory = Depends(get_market_data_factory),
    config: CoreboundConfig = Depends(get_config),
):
    """Listed perpetuals, majors first; a stale list is served if Hyperliquid is down."""
    return await _markets("hyperliquid", caches["hyperliquid"], factory, config)


@router.post("/hyperliquid/prices")
async def hyperliquid_prices(
    body: PricesRequest,
    factory: MarketDataFactory = Depends(get_market_data_factory),
    config: CoreboundConfig = Depends(get_config),
):
    return await _prices("hyperliquid", body, factory, config)


@router.get("/coinbase/markets")
async def coinbase_markets(
    caches: Dict[str, MarketListCache] = Depends(get_market_caches),
    factory: MarketDataFactory = Depends(get_market_data_factory),
    config: CoreboundConfig = Depends(get_config),
):
    """Online USD spot products, majors first."""
    return await _markets("coinbase", caches["coinbase"], factory, config)


@router.post("/coinbase/prices")
async def coinbase_prices(
    body: PricesRequest,
    factory: MarketDataFactory = Depends(get_market_data_factory),
    config: CoreboundConfig = Depends(get_config),
):
    return await _prices("coinbase", body, factory, config)


@router.get("/hyperliquid/balance-breakdown")
async def hyperliquid_balance_breakdown(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    checker: HyperliquidVerifier = Depends(get_wallet_checker),
):
    """Spot and perp balances of the user's Hyperliquid wallet.

    Unified margin lets spot USDC back perp trades, so trading is available
    whenever total equity reaches $1.
    """
    connection = ExchangeConnectionRepository(db).get_for_venue(user.id, "hyperliquid")
    if connection is None:
        await checker.close()
        return {"perpEquity": 0, "spotUsdcBalance": 0, "totalEquity": 0, "hasConnection": False}

    try:
        breakdown = await checker.balance_breakdown(connection.wallet_address)
    finally:
        await checker.close()

    return {
        "perpEquity": breakdown["perp_equity"],
        "spotUsdcBalance": breakdown["spot_usdc"],
        "totalEquity": breakdown["total_equity"],
        "hasConnection": True,
        "fundsInSpotOnly": breakdown["spot_usdc"] > 1 and breakdown["perp_equity"] < 1,
        "tradingAvailable": breakdown["total_equity"] >= 1,
    }
