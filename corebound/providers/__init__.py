"""Exchange account verifiers and market data (Hyperliquid, Coinbase)."""

from .base import BaseAccountVerifier
from .factory import create_market_data, create_verifier, venue_display_name

__all__ = [
    "BaseAccountVerifier",
    "create_market_data",
    "create_verifier",
    "venue_display_name",
]
