"""Database repositories for data access patterns.

One repository per aggregate; route handlers go through these instead of
querying the session directly.
"""

from .api_key_repository import ApiKeyRepository
from .arena_repository import ArenaRepository
from .exchange_repository import ExchangeConnectionRepository
from .follow_repository import FollowRepository
from .message_repository import MessageRepository
from .post_repository import PostRepository
from .profile_post_repository import ProfilePostRepository
from .profile_repository import ProfileRepository
from .session_repository import SessionRepository
from .strategy_repository import StrategyRepository
from .support_repository import SupportRepository

__all__ = [
    "ApiKeyRepository",
    "ArenaRepository",
    "ExchangeConnectionRepository",
    "FollowRepository",
    "MessageRepository",
    "PostRepository",
    "ProfilePostRepository",
    "ProfileRepository",
    "SessionRepository",
    "StrategyRepository",
    "SupportRepository",
]
