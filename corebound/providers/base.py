"""Base exchange account verifier interface.

A verifier answers one question for a stored exchange connection: do these
credentials reach a real account, and what does it hold?
"""

from abc import ABC, abstractmethod
from typing import Any


class BaseAccountVerifier(ABC):
    """Abstract base class for exchange account verifiers.

    Every venue a user can connect implements this interface so the
    exchange-connection and session routes stay venue-agnostic.
    """

    @abstractmethod
    async def verify(self, connection: Any) -> dict:
        """Check that the connection reaches a live account.

        Args:
            connection: Stored exchange connection (``ExchangeConnection`` row)

        Returns:
            ``{"success": True, "message": ..., "account": {...}}``

        Raises:
            ExchangeError: If the exchange cannot be reached or rejects the account

        Example:
            >>> verifier = create_verifier(connection, config)
            >>> result = await verifier.verify(connection)
            >>> result["account"]["account_value"]
            '1250.00'
        """
        pass

    @abstractmethod
    async def account_equity(self, connection: Any) -> float:
        """Current total account equity in USD.

        Used to seed the starting equity of a live account.
        """
        pass

    @abstractmethod
    def get_venue_name(self) -> str:
        """Display name of the venue (e.g. "Hyperliquid")."""
        pass

    async def close(self) -> None:
        """Release network resources. Safe to call more than once."""
        return None
