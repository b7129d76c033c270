"""Verifier factory for stored exchange connections.

Decrypts the connection's key material on the way in, so a CredentialError
surfaces before any network call is made.
"""

from typing import Any

from ..config import CoreboundConfig
from ..credentials import decrypt_credential
from .base import BaseAccountVerifier


def venue_display_name(venue: str) -> str:
    return "Coinbase" if venue == "coinbase" else "Hyperliquid"


def create_verifier(connection: Any, config: CoreboundConfig) -> BaseAccountVerifier:
    """Create the verifier for a connection's venue.

    Args:
        connection: Stored exchange connection
        config: Application configuration (API URL, timeout, encryption key)

    Returns:
        CoinbaseVerifier for ``coinbase``, HyperliquidVerifier otherwise

    Raises:
        CredentialError: If the stored secret cannot be decrypted

    Example:
        >>> verifier = create_verifier(connection, CoreboundConfig.from_env())
        >>> verifier.get_venue_name()
        'Hyperliquid'
    """
    # Import verifiers locally so only the venue in use pulls in its client
    if connection.venue == "coinbase":
        from .coinbase import CoinbaseVerifier
        secret = decrypt_credential(connection.api_secret_encrypted, config)
        return CoinbaseVerifier(connection.api_key, secret)

    from .hyperliquid import HyperliquidVerifier
    # the private key is only checked for decryptability; reads need no signing
    decrypt_credential(connection.key_material_encrypted, config)
    return HyperliquidVerifier(config.hyperliquid_api_url, config.exchange_timeout_seconds)


def create_market_data(venue: str, config: CoreboundConfig) -> Any:
    """Public market data client for a venue.

    Returns:
        CoinbaseMarketData for ``coinbase``, HyperliquidVerifier otherwise.
        Both offer ``get_markets``, ``get_mid_prices`` and ``close``.
    """
    if venue == "coinbase":
        from .coinbase import CoinbaseMarketData
        return CoinbaseMarketData()

    from .hyperliquid import HyperliquidVerifier
    return HyperliquidVerifier(config.hyperliquid_api_url, config.exchange_timeout_seconds)
