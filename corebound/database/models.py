"""SQLAlchemy models for the Corebound schema.

Tables cover profiles and the community (follows, posts, comments, profile
posts, direct messages), exchange and AI credentials, strategies with their
sessions and accounts, the arena, and support intake.

IDs are UUID strings so the same models run on PostgreSQL and on the
in-memory SQLite used by tests. JSON columns use JSONB on PostgreSQL.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

JSONType = JSON().with_variant(JSONB, "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value):
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def iso(value):
    return ensure_utc(value).isoformat() if value else None


def _id_column():
    return Column(String(36), primary_key=True, default=new_id)


def _timestamp(**kwargs):
    return Column(TIMESTAMP(timezone=True), **kwargs)


# ============================================================================
# Profiles and community
# ============================================================================

class Profile(Base):
    """Public profile, keyed by the auth user ID."""

    __tablename__ = 'profiles'

    id = Column(String(36), primary_key=True)
    username = Column(String(20), unique=True, nullable=True, index=True)
    display_name = Column(Text, nullable=True)
    avatar_url = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    gender = Column(String(32), nullable=True)
    age = Column(Integer, nullable=True)

    # Legal acceptance
    terms_accepted_at = _timestamp(nullable=True)
    risk_accepted_at = _timestamp(nullable=True)
    accepted_ip = Column(Text, nullable=True)
    accepted_user_agent = Column(Text, nullable=True)

    created_at = _timestamp(default=utcnow, nullable=False)
    updated_at = _timestamp(default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Profile(id='{self.id}', username='{self.username}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "bio": self.bio,
            "gender": self.gender,
            "age": self.age,
            "terms_accepted_at": iso(self.terms_accepted_at),
            "risk_accepted_at": iso(self.risk_accepted_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def to_summary(self):
        """Author fields embedded in posts, replies and follower lists."""
        return {
            "id": self.id,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
        }


class Follow(Base):
    __tablename__ = 'follows'
    __table_args__ = (UniqueConstraint('follower_id', 'following_id', name='uq_follows_pair'),)

    id = _id_column()
    follower_id = Column(String(36), nullable=False, index=True)
    following_id = Column(String(36), nullable=False, index=True)
    created_at = _timestamp(default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "follower_id": self.follower_id,
            "following_id": self.following_id,
            "created_at": iso(self.created_at),
        }


class Post(Base):
    """Community feed post."""

    __tablename__ = 'posts'

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    likes_count = Column(Integer, nullable=False, default=0)
    created_at = _timestamp(default=utcnow, nullable=False, index=True)

    media = relationship("PostMedia", cascade="all, delete-orphan", order_by="PostMedia.created_at")
    comments = relationship("Comment", cascade="all, delete-orphan", back_populates="post")
    likes = relationship("PostLike", cascade="all, delete-orphan")
    saves = relationship("SavedPost", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "body": self.body,
            "likes_count": self.likes_count or 0,
            "created_at": iso(self.created_at),
            "media": [m.to_dict() for m in self.media],
        }


class PostMedia(Base):
    __tablename__ = 'post_media'

    id = _id_column()
    post_id = Column(String(36), ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    media_url = Column(Text, nullable=False)
    created_at = _timestamp(default=utcnow, nullable=False)

    def to_dict(self):
        return {"id": self.id, "media_url": self.media_url}


class PostLike(Base):
    __tablename__ = 'post_likes'
    __table_args__ = (UniqueConstraint('post_id', 'user_id', name='uq_post_likes'),)

    id = _id_column()
    post_id = Column(String(36), ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    created_at = _timestamp(default=utcnow, nullable=False)


class SavedPost(Base):
    __tablename__ = 'saved_posts'
    __table_args__ = (UniqueConstraint('user_id', 'post_id', name='uq_saved_posts'),)

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    post_id = Column(String(36), ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = _timestamp(default=utcnow, nullable=False)

    post = relationship("Post", overlaps="saves")


class Comment(Base):
    """Comment on a community post; replies point at their parent."""

    __tablename__ = 'comments'

    id = _id_column()
    post_id = Column(String(36), ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    parent_comment_id = Column(
        String(36), ForeignKey('comments.id', ondelete='CASCADE'), nullable=True, index=True
    )
    body = Column(Text, nullable=False)
    created_at = _timestamp(default=utcnow, nullable=False)

    post = relationship("Post", back_populates="comments")
    replies = relationship("Comment", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "post_id": self.post_id,
            "user_id": self.user_id,
            "parent_comment_id": self.parent_comment_id,
            "body": self.body,
            "created_at": iso(self.created_at),
        }


class ProfilePost(Base):
    """Post shown on an author's profile page."""

    __tablename__ = 'profile_posts'

    id = _id_column()
    author_id = Column(String(36), nullable=False, index=True)
    content = Column(Text, nullable=False)
    media_urls = Column(JSONType, nullable=False, default=list)
    visibility = Column(String(16), nullable=False, default='profile_only')
    likes_count = Column(Integer, nullable=False, default=0)
    created_at = _timestamp(default=utcnow, nullable=False, index=True)

    replies = relationship(
        "ProfilePostReply", cascade="all, delete-orphan", order_by="ProfilePostReply.created_at"
    )
    likes = relationship("ProfilePostLike", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "author_id": self.author_id,
            "content": self.content,
            "media_urls": self.media_urls or [],
            "visibility": self.visibility,
            "likes_count": self.likes_count or 0,
            "created_at": iso(self.created_at),
        }


class ProfilePostLike(Base):
    __tablename__ = 'profile_post_likes'
    __table_args__ = (UniqueConstraint('post_id', 'user_id', name='uq_profile_post_likes'),)

    id = _id_column()
    post_id = Column(
        String(36), ForeignKey('profile_posts.id', ondelete='CASCADE'), nullable=False, index=True
    )
    user_id = Column(String(36), nullable=False, index=True)
    created_at = _timestamp(default=utcnow, nullable=False)


class ProfilePostReply(Base):
    __tablename__ = 'profile_post_replies'

    id = _id_column()
    post_id = Column(
        String(36), ForeignKey('profile_posts.id', ondelete='CASCADE'), nullable=False, index=True
    )
    author_id = Column(String(36), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = _timestamp(default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "post_id": self.post_id,
            "author_id": self.author_id,
            "content": self.content,
            "created_at": iso(self.created_at),
        }


class DirectMessage(Base):
    __tablename__ = 'direct_messages'

    id = _id_column()
    sender_id = Column(String(36), nullable=False, index=True)
    recipient_id = Column(String(36), nullable=False, index=True)
    content = Column(Text, nullable=False)
    image_url = Column(Text, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = _timestamp(default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "content": self.content,
            "image_url": self.image_url,
            "read": self.read,
            "created_at": iso(self.created_at),
        }


# ============================================================================
# Credentials
# ============================================================================

class ExchangeConnection(Base):
    """Exchange account linked by a user; one per venue.

    Secrets are stored through corebound.credentials ("enc:" / "plain:").
    """

    __tablename__ = 'exchange_connections'
    __table_args__ = (UniqueConstraint('user_id', 'venue', name='uq_exchange_connections_venue'),)

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    venue = Column(String(32), nullable=False, default='hyperliquid')
    wallet_address = Column(Text, nullable=True)
    key_material_encrypted = Column(Text, nullable=True)
    api_key = Column(Text, nullable=True)
    api_secret_encrypted = Column(Text, nullable=True)
    created_at = _timestamp(default=utcnow, nullable=False)

    def to_dict(self):
        """Public view; key material never leaves the server."""
        return {
            "id": self.id,
            "venue": self.venue,
            "wallet_address": self.wallet_address,
            "api_key": self.api_key,
            "created_at": iso(self.created_at),
        }


class UserApiKey(Base):
    """Saved AI provider key."""

    __tablename__ = 'user_api_keys'
    __table_args__ = (UniqueConstraint('user_id', 'provider', 'label', name='uq_user_api_keys_label'),)

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    label = Column(String(50), nullable=False)
    encrypted_key = Column(Text, nullable=False)
    key_preview = Column(String(16), nullable=False)
    created_at = _timestamp(default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "provider": self.provider,
            "label": self.label,
            "key_preview": self.key_preview,
            "created_at": iso(self.created_at),
        }


# ============================================================================
# Strategies, sessions and accounts
# ============================================================================

class Strategy(Base):
    __tablename__ = 'strategies'

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(Text, nullable=False)
    model_provider = Column(String(32), nullable=False)
    model_name = Column(Text, nullable=False)
    prompt = Column(Text, nullable=False)
    filters = Column(JSONType, nullable=False, default=dict)
    api_key_ciphertext = Column(Text, nullable=True)
    saved_api_key_id = Column(
        String(36), ForeignKey('user_api_keys.id', ondelete='SET NULL'), nullable=True
    )
    use_platform_key = Column(Boolean, nullable=False, default=False)
    created_at = _timestamp(default=utcnow, nullable=False, index=True)
    updated_at = _timestamp(default=utcnow, onupdate=utcnow, nullable=False)

    sessions = relationship("StrategySession", cascade="all, delete-orphan", back_populates="strategy")

    def to_dict(self):
        """Strategy without its API key ciphertext."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "model_provider": self.model_provider,
            "model_name": self.model_name,
            "prompt": self.prompt,
            "filters": self.filters or {},
            "saved_api_key_id": self.saved_api_key_id,
            "use_platform_key": self.use_platform_key,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class VirtualAccount(Base):
    """Paper account backing a virtual or arena session."""

    __tablename__ = 'virtual_accounts'

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(Text, nullable=False)
    starting_equity = Column(Float, nullable=False)
    cash_balance = Column(Float, nullable=False)
    equity = Column(Float, nullable=False)
    created_at = _timestamp(default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "starting_equity": self.starting_equity,
            "cash_balance": self.cash_balance,
            "equity": self.equity,
        }


class LiveAccount(Base):
    """Account mirror of a live exchange, one per user and venue."""

    __tablename__ = 'live_accounts'

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    venue = Column(String(32), nullable=False)
    starting_equity = Column(Float, nullable=False)
    cash_balance = Column(Float, nullable=False)
    equity = Column(Float, nullable=False)
    created_at = _timestamp(default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "venue": self.venue,
            "starting_equity": self.starting_equity,
            "cash_balance": self.cash_balance,
            "equity": self.equity,
        }


class StrategySession(Base):
    """One run of a strategy in virtual, live or arena mode."""

    __tablename__ = 'strategy_sessions'

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    strategy_id = Column(
        String(36), ForeignKey('strategies.id', ondelete='CASCADE'), nullable=False, index=True
    )
    mode = Column(String(16), nullable=False, default='virtual')
    status = Column(String(16), nullable=False, default='stopped', index=True)
    markets = Column(JSONType, nullable=False, default=list)
    cadence_seconds = Column(Integer, nullable=False)
    starting_equity = Column(Float, nullable=False)
    venue = Column(String(32), nullable=False)
    account_id = Column(
        String(36), ForeignKey('virtual_accounts.id', ondelete='SET NULL'), nullable=True
    )
    live_account_id = Column(
        String(36), ForeignKey('live_accounts.id', ondelete='SET NULL'), nullable=True
    )
    started_at = _timestamp(nullable=True)
    last_tick_at = _timestamp(nullable=True)
    created_at = _timestamp(default=utcnow, nullable=False, index=True)

    strategy = relationship("Strategy", back_populates="sessions")
    virtual_account = relationship("VirtualAccount")
    live_account = relationship("LiveAccount")
    equity_points = relationship(
        "EquityPoint", cascade="all, delete-orphan", order_by="EquityPoint.t"
    )
    arena_entries = relationship("ArenaEntry", cascade="all, delete-orphan", back_populates="session")

    def __repr__(self):
        return f"<StrategySession(id='{self.id}', mode='{self.mode}', status='{self.status}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "strategy_id": self.strategy_id,
            "mode": self.mode,
            "status": self.status,
            "markets": self.markets or [],
            "cadence_seconds": self.cadence_seconds,
            "starting_equity": self.starting_equity,
            "venue": self.venue,
            "account_id": self.account_id,
            "live_account_id": self.live_account_id,
            "started_at": iso(self.started_at),
            "last_tick_at": iso(self.last_tick_at),
            "created_at": iso(self.created_at),
        }


class EquityPoint(Base):
    __tablename__ = 'equity_points'

    id = _id_column()
    session_id = Column(
        String(36), ForeignKey('strategy_sessions.id', ondelete='CASCADE'), nullable=False, index=True
    )
    t = _timestamp(default=utcnow, nullable=False, index=True)
    equity = Column(Float, nullable=False)

    def to_dict(self):
        return {"session_id": self.session_id, "t": iso(self.t), "equity": self.equity}


# ============================================================================
# Arena
# ============================================================================

class ArenaEntry(Base):
    __tablename__ = 'arena_entries'

    id = _id_column()
    user_id = Column(String(36), nullable=False, index=True)
    session_id = Column(
        String(36), ForeignKey('strategy_sessions.id', ondelete='CASCADE'), nullable=False, index=True
    )
    mode = Column(String(16), nullable=False, default='arena')
    display_name = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    arena_status = Column(String(16), nullable=True, default='active')
    opted_in_at = _timestamp(default=utcnow, nullable=False)
    left_at = _timestamp(nullable=True)

    session = relationship("StrategySession", back_populates="arena_entries")
    snapshots = relationship(
        "ArenaSnapshot", cascade="all, delete-orphan", order_by="ArenaSnapshot.captured_at"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "mode": self.mode,
            "display_name": self.display_name,
            "active": self.active,
            "arena_status": self.arena_status,
            "opted_in_at": iso(self.opted_in_at),
            "left_at": iso(self.left_at),
        }


class ArenaSnapshot(Base):
    __tablename__ = 'arena_snapshots'

    id = _id_column()
    arena_entry_id = Column(
        String(36), ForeignKey('arena_entries.id', ondelete='CASCADE'), nullable=False, index=True
    )
    equity = Column(Float, nullable=True)
    trades_count = Column(Integer, nullable=False, default=0)
    win_rate = Column(Float, nullable=True)
    max_drawdown_pct = Column(Float, nullable=True)
    captured_at = _timestamp(default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "arena_entry_id": self.arena_entry_id,
            "equity": self.equity,
            "trades_count": self.trades_count,
            "win_rate": self.win_rate,
            "max_drawdown_pct": self.max_drawdown_pct,
            "captured_at": iso(self.captured_at),
        }


# ============================================================================
# Support
# ============================================================================

class ContactSubmission(Base):
    __tablename__ = 'contact_submissions'

    id = _id_column()
    user_id = Column(String(36), nullable=True)
    email = Column(Text, nullable=False)
    subject = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    account_email = Column(Text, nullable=True)
    username = Column(Text, nullable=True)
    submitted_at = _timestamp(default=utcnow, nullable=False, index=True)
    read = Column(Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "subject": self.subject,
            "message": self.message,
            "submitted_at": iso(self.submitted_at),
            "read": self.read,
        }


class ClientError(Base):
    """Error reported by a browser error boundary."""

    __tablename__ = 'client_errors'

    id = _id_column()
    created_at = _timestamp(default=utcnow, nullable=False, index=True)
    path = Column(Text, nullable=True, index=True)
    message = Column(Text, nullable=True)
    stack = Column(Text, nullable=True)
    component_stack = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    digest = Column(Text, nullable=True)
    error_boundary = Column(Text, nullable=True)
    full_error = Column(JSONType, nullable=True)
    full_error_info = Column(JSONType, nullable=True)
    user_id = Column(String(36), nullable=True, index=True)
    session_id = Column(Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "created_at": iso(self.created_at),
            "path": self.path,
            "message": self.message,
            "user_id": self.user_id,
            "session_id": self.session_id,
        }
