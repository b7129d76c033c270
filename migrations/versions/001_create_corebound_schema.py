"""Create Corebound schema: profiles, community, strategies, sessions and arena

Revision ID: 001
Revises:
Create Date: 2026-01-12

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

TS = sa.TIMESTAMP(timezone=True)


def _id():
    return sa.Column('id', sa.String(length=36), nullable=False)


def _created_at():
    return sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    """Create every table with its indexes and constraints."""

    # Profiles and social graph
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('username', sa.String(length=20), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('gender', sa.String(length=32), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('terms_accepted_at', TS, nullable=True),
        sa.Column('risk_accepted_at', TS, nullable=True),
        sa.Column('accepted_ip', sa.Text(), nullable=True),
        sa.Column('accepted_user_agent', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', TS, server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profiles_username', 'profiles', ['username'], unique=True)

    op.create_table(
        'follows',
        _id(),
        sa.Column('follower_id', sa.String(length=36), nullable=False),
        sa.Column('following_id', sa.String(length=36), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('follower_id', 'following_id', name='uq_follows_pair')
    )
    op.create_index('ix_follows_follower_id', 'follows', ['follower_id'])
    op.create_index('ix_follows_following_id', 'follows', ['following_id'])

    # Community posts
    op.create_table(
        'posts',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('likes_count', sa.Integer(), server_default='0', nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_posts_user_id', 'posts', ['user_id'])
    op.create_index('ix_posts_created_at', 'posts', ['created_at'])

    op.create_table(
        'post_media',
        _id(),
        sa.Column('post_id', sa.String(length=36), nullable=False),
        sa.Column('media_url', sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_post_media_post_id', 'post_media', ['post_id'])

    op.create_table(
        'post_likes',
        _id(),
        sa.Column('post_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('post_id', 'user_id', name='uq_post_likes')
    )
    op.create_index('ix_post_likes_post_id', 'post_likes', ['post_id'])
    op.create_index('ix_post_likes_user_id', 'post_likes', ['user_id'])

    op.create_table(
        'saved_posts',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('post_id', sa.String(length=36), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'post_id', name='uq_saved_posts')
    )
    op.create_index('ix_saved_posts_user_id', 'saved_posts', ['user_id'])
    op.create_index('ix_saved_posts_post_id', 'saved_posts', ['post_id'])

    op.create_table(
        'comments',
        _id(),
        sa.Column('post_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('parent_comment_id', sa.String(length=36), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_comment_id'], ['comments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_comments_post_id', 'comments', ['post_id'])
    op.create_index('ix_comments_user_id', 'comments', ['user_id'])
    op.create_index('ix_comments_parent_comment_id', 'comments', ['parent_comment_id'])

    # Profile wall
    op.create_table(
        'profile_posts',
        _id(),
        sa.Column('author_id', sa.String(length=36), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('media_urls', JSONB, server_default='[]', nullable=False),
        sa.Column('visibility', sa.String(length=16), server_default='profile_only', nullable=False),
        sa.Column('likes_count', sa.Integer(), server_default='0', nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profile_posts_author_id', 'profile_posts', ['author_id'])
    op.create_index('ix_profile_posts_created_at', 'profile_posts', ['created_at'])

    op.create_table(
        'profile_post_likes',
        _id(),
        sa.Column('post_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['post_id'], ['profile_posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('post_id', 'user_id', name='uq_profile_post_likes')
    )
    op.create_index('ix_profile_post_likes_post_id', 'profile_post_likes', ['post_id'])
    op.create_index('ix_profile_post_likes_user_id', 'profile_post_likes', ['user_id'])

    op.create_table(
        'profile_post_replies',
        _id(),
        sa.Column('post_id', sa.String(length=36), nullable=False),
        sa.Column('author_id', sa.String(length=36), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['post_id'], ['profile_posts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profile_post_replies_post_id', 'profile_post_replies', ['post_id'])
    op.create_index('ix_profile_post_replies_author_id', 'profile_post_replies', ['author_id'])

    op.create_table(
        'direct_messages',
        _id(),
        sa.Column('sender_id', sa.String(length=36), nullable=False),
        sa.Column('recipient_id', sa.String(length=36), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('read', sa.Boolean(), server_default='false', nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_direct_messages_sender_id', 'direct_messages', ['sender_id'])
    op.create_index('ix_direct_messages_recipient_id', 'direct_messages', ['recipient_id'])
    op.create_index('ix_direct_messages_created_at', 'direct_messages', ['created_at'])

    # Credentials
    op.create_table(
        'exchange_connections',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('venue', sa.String(length=32), server_default='hyperliquid', nullable=False),
        sa.Column('wallet_address', sa.Text(), nullable=True),
        sa.Column('key_material_encrypted', sa.Text(), nullable=True),
        sa.Column('api_key', sa.Text(), nullable=True),
        sa.Column('api_secret_encrypted', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'venue', name='uq_exchange_connections_venue')
    )
    op.create_index('ix_exchange_connections_user_id', 'exchange_connections', ['user_id'])

    op.create_table(
        'user_api_keys',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('provider', sa.String(length=32), nullable=False),
        sa.Column('label', sa.String(length=50), nullable=False),
        sa.Column('encrypted_key', sa.Text(), nullable=False),
        sa.Column('key_preview', sa.String(length=16), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'provider', 'label', name='uq_user_api_keys_label')
    )
    op.create_index('ix_user_api_keys_user_id', 'user_api_keys', ['user_id'])

    # Strategies and sessions
    op.create_table(
        'strategies',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('model_provider', sa.String(length=32), nullable=False),
        sa.Column('model_name', sa.Text(), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('filters', JSONB, server_default='{}', nullable=False),
        sa.Column('api_key_ciphertext', sa.Text(), nullable=True),
        sa.Column('saved_api_key_id', sa.String(length=36), nullable=True),
        sa.Column('use_platform_key', sa.Boolean(), server_default='false', nullable=False),
        _created_at(),
        sa.Column('updated_at', TS, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['saved_api_key_id'], ['user_api_keys.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_strategies_user_id', 'strategies', ['user_id'])
    op.create_index('ix_strategies_created_at', 'strategies', ['created_at'])

    for table in ('virtual_accounts', 'live_accounts'):
        label = sa.Column('name', sa.Text(), nullable=False) if table == 'virtual_accounts' \
            else sa.Column('venue', sa.String(length=32), nullable=False)
        op.create_table(
            table,
            _id(),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            label,
            sa.Column('starting_equity', sa.Float(), nullable=False),
            sa.Column('cash_balance', sa.Float(), nullable=False),
            sa.Column('equity', sa.Float(), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(f'ix_{table}_user_id', table, ['user_id'])

    op.create_table(
        'strategy_sessions',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('strategy_id', sa.String(length=36), nullable=False),
        sa.Column('mode', sa.String(length=16), server_default='virtual', nullable=False),
        sa.Column('status', sa.String(length=16), server_default='stopped', nullable=False),
        sa.Column('markets', JSONB, server_default='[]', nullable=False),
        sa.Column('cadence_seconds', sa.Integer(), nullable=False),
        sa.Column('starting_equity', sa.Float(), nullable=False),
        sa.Column('venue', sa.String(length=32), nullable=False),
        sa.Column('account_id', sa.String(length=36), nullable=True),
        sa.Column('live_account_id', sa.String(length=36), nullable=True),
        sa.Column('started_at', TS, nullable=True),
        sa.Column('last_tick_at', TS, nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['strategy_id'], ['strategies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['virtual_accounts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['live_account_id'], ['live_accounts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_strategy_sessions_user_id', 'strategy_sessions', ['user_id'])
    op.create_index('ix_strategy_sessions_strategy_id', 'strategy_sessions', ['strategy_id'])
    op.create_index('ix_strategy_sessions_status', 'strategy_sessions', ['status'])
    op.create_index('ix_strategy_sessions_created_at', 'strategy_sessions', ['created_at'])

    op.create_table(
        'equity_points',
        _id(),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('t', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('equity', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['strategy_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_equity_points_session_id', 'equity_points', ['session_id'])
    op.create_index('ix_equity_points_t', 'equity_points', ['t'])

    # Arena
    op.create_table(
        'arena_entries',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('mode', sa.String(length=16), server_default='arena', nullable=False),
        sa.Column('display_name', sa.Text(), nullable=False),
        sa.Column('active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('arena_status', sa.String(length=16), server_default='active', nullable=True),
        sa.Column('opted_in_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('left_at', TS, nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['strategy_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_arena_entries_user_id', 'arena_entries', ['user_id'])
    op.create_index('ix_arena_entries_session_id', 'arena_entries', ['session_id'])

    op.create_table(
        'arena_snapshots',
        _id(),
        sa.Column('arena_entry_id', sa.String(length=36), nullable=False),
        sa.Column('equity', sa.Float(), nullable=True),
        sa.Column('trades_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('win_rate', sa.Float(), nullable=True),
        sa.Column('max_drawdown_pct', sa.Float(), nullable=True),
        sa.Column('captured_at', TS, server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['arena_entry_id'], ['arena_entries.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_arena_snapshots_arena_entry_id', 'arena_snapshots', ['arena_entry_id'])
    op.create_index('ix_arena_snapshots_captured_at', 'arena_snapshots', ['captured_at'])

    # Support intake
    op.create_table(
        'contact_submissions',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('subject', sa.Text(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('account_email', sa.Text(), nullable=True),
        sa.Column('username', sa.Text(), nullable=True),
        sa.Column('submitted_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('read', sa.Boolean(), server_default='false', nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_contact_submissions_submitted_at', 'contact_submissions', ['submitted_at'])

    op.create_table(
        'client_errors',
        _id(),
        _created_at(),
        sa.Column('path', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('stack', sa.Text(), nullable=True),
        sa.Column('component_stack', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('digest', sa.Text(), nullable=True),
        sa.Column('error_boundary', sa.Text(), nullable=True),
        sa.Column('full_error', JSONB, nullable=True),
        sa.Column('full_error_info', JSONB, nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('session_id', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_client_errors_created_at', 'client_errors', ['created_at'])
    op.create_index('ix_client_errors_path', 'client_errors', ['path'])
    op.create_index('ix_client_errors_user_id', 'client_errors', ['user_id'])


def downgrade() -> None:
    """Drop every Corebound table, children first."""
    for table in (
        'client_errors',
        'contact_submissions',
        'arena_snapshots',
        'arena_entries',
        'equity_points',
        'strategy_sessions',
        'live_accounts',
        'virtual_accounts',
        'strategies',
        'user_api_keys',
        'exchange_connections',
        'direct_messages',
        'profile_post_replies',
        'profile_post_likes',
        'profile_posts',
        'comments',
        'saved_posts',
        'post_likes',
        'post_media',
        'posts',
        'follows',
        'profiles',
    ):
        op.drop_table(table)
