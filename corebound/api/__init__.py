"""REST API routers, one module per resource."""

from . import (
    arena,
    exchange_connections,
    follow,
    markets,
    messages,
    posts,
    profile_posts,
    profiles,
    sessions,
    settings,
    strategies,
    support,
)

ROUTERS = [
    profiles.router,
    follow.router,
    posts.router,
    profile_posts.router,
    messages.router,
    exchange_connections.router,
    markets.router,
    settings.router,
    strategies.router,
    sessions.router,
    arena.router,
    support.router,
]

__all__ = ["ROUTERS"]
