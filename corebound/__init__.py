"""Corebound API.

Backend for AI trading strategies: profiles and community, exchange
connections, strategies with their decision cadence and filters, sessions
in virtual/live/arena mode, and the arena leaderboard.

Main components:
    - CoreboundConfig: Configuration from environment variables
    - strategy: cadence normalization, filter migration/validation, presets
    - arena: leaderboard and return-series helpers
    - web.create_app: FastAPI application factory

Example usage:
    >>> from corebound import CoreboundConfig
    >>> from corebound.web import create_app
    >>>
    >>> app = create_app(CoreboundConfig.from_env())
"""

__version__ = "1.0.0"

from .config import CoreboundConfig
from .exceptions import CoreboundError

__all__ = [
    "CoreboundConfig",
    "CoreboundError",
    "__version__",
]
