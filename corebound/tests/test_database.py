"""Tests for engine setup and model serialization."""

from datetime import datetime

from sqlalchemy import inspect

from corebound.database.connection import create_db_engine, init_db, test_connection as check_connection
from corebound.database.models import Base, Strategy, StrategySession, ensure_utc


class TestConnection:

    def test_init_db_creates_tables(self):
        engine = create_db_engine("sqlite://")

        init_db(bind=engine)

        tables = set(inspect(engine).get_table_names())
        assert tables == set(Base.metadata.tables)
        assert {"strategy_sessions", "arena_entries", "client_errors"} <= tables
        assert check_connection(bind=engine) is True
        engine.dispose()


class TestModels:
    """Test serialization helpers on the models."""

    def test_strategy_to_dict_hides_ciphertext(self, db_session):
        strategy = Strategy(
            user_id="u-1",
            name="Momentum",
            model_provider="openai",
            model_name="gpt-4o-mini",
            prompt="p",
            filters={"markets": ["BTC-PERP"]},
            api_key_ciphertext="enc:abc",
        )
        db_session.add(strategy)
        db_session.commit()

        row = strategy.to_dict()

        assert len(row["id"]) == 36
        assert "api_key_ciphertext" not in row
        assert row["filters"] == {"markets": ["BTC-PERP"]}
        assert row["created_at"].endswith("+00:00")

    def test_session_defaults(self, db_session):
        session = StrategySession(
            user_id="u-1",
            strategy_id="s-1",
            cadence_seconds=60,
            starting_equity=100000,
            venue="hyperliquid",
        )

        assert "StrategySession" in repr(session)
        assert session.to_dict()["markets"] == []

    def test_ensure_utc_marks_naive_values(self):
        assert ensure_utc(datetime(2026, 1, 1, 12, 0)).utcoffset().total_seconds() == 0
        assert ensure_utc(None) is None
