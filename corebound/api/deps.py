"""Shared FastAPI dependencies for the API routers."""

from typing import Any, Callable, Dict

from fastapi import Depends, Request

from ..config import CoreboundConfig
from ..providers.base import BaseAccountVerifier
from ..providers.factory import create_market_data, create_verifier
from ..providers.hyperliquid import HyperliquidVerifier
from ..providers.market_data import MarketListCache
from ..web.auth import get_config
from ..web.rate_limit import RateLimiter

VerifierFactory = Callable[[object, CoreboundConfig], BaseAccountVerifier]
MarketDataFactory = Callable[[str, CoreboundConfig], Any]


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_verifier_factory() -> VerifierFactory:
    """Factory turning a stored connection into a verifier (overridden in tests)."""
    return create_verifier


def get_wallet_checker(config: CoreboundConfig = Depends(get_config)) -> HyperliquidVerifier:
    """Hyperliquid client used to check a wallet before it is stored."""
    return HyperliquidVerifier(config.hyperliquid_api_url, config.exchange_timeout_seconds)


def get_market_data_factory() -> MarketDataFactory:
    """Factory building a venue's public market data client (overridden in tests)."""
    return create_market_data


def get_market_caches(request: Request) -> Dict[str, MarketListCache]:
    return request.app.state.market_caches
