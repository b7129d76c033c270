"""
Shared pytest fixtures for Corebound testing.
Provides an in-memory database, an API client, token minting and mock exchange verifiers.
"""
import os

# Keep the module-level engine off PostgreSQL while tests import the package
os.environ.setdefault("DATABASE_URL", "sqlite://")

import time
import uuid
from unittest.mock import AsyncMock, Mock

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from corebound.api.deps import get_verifier_factory, get_wallet_checker
from corebound.config import CoreboundConfig
from corebound.credentials import generate_key
from corebound.database.connection import get_db
from corebound.database.models import Base
from corebound.web.rate_limit import RateLimiter
from corebound.web.server import create_app

TEST_JWT_SECRET = "test-jwt-secret-for-corebound"
APP_ORIGIN = "http://localhost:3000"


@pytest.fixture
def config():
    """Configuration with a JWT secret and a fresh credentials key."""
    return CoreboundConfig(
        database_url="sqlite://",
        jwt_secret=TEST_JWT_SECRET,
        credentials_encryption_key=generate_key(),
        app_url="https://corebound.example",
        hyperliquid_api_url="https://hyperliquid.test",
    )


@pytest.fixture
def db_engine():
    """In-memory SQLite shared by every connection of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    yield session
    session.close()


@pytest.fixture
def mock_verifier():
    """
    Exchange verifier returned by the overridden factory.

    Defaults: account equity 2500.0 and a successful verify() payload.
    """
    verifier = Mock()
    verifier.account_equity = AsyncMock(return_value=2500.0)
    verifier.verify = AsyncMock(return_value={
        "success": True,
        "message": "Connection verified successfully",
        "account": {"account_value": "2500.00"},
    })
    verifier.close = AsyncMock()
    return verifier


@pytest.fixture
def wallet_checker():
    """Hyperliquid wallet checker used when a connection is created."""
    checker = Mock()
    checker.get_account_state = AsyncMock(return_value={
        "positions": [],
        "margin_summary": {"accountValue": "2500.0"},
    })
    checker.close = AsyncMock()
    return checker


@pytest.fixture
def rate_limiter():
    return RateLimiter()


@pytest.fixture
def app(config, db_session, mock_verifier, wallet_checker, rate_limiter):
    """Application wired to the test database and mock exchanges."""
    application = create_app(config, rate_limiter=rate_limiter)

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_verifier_factory] = lambda: (lambda connection, cfg: mock_verifier)
    application.dependency_overrides[get_wallet_checker] = lambda: wallet_checker
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_token():
    """
    Factory fixture for access tokens signed with the test secret.

    Usage:
        def test_example(make_token):
            token = make_token("user-1", username="alice")
    """
    def _make_token(
        user_id: str,
        email: str = None,
        username: str = None,
        expires_in: int = 3600,
        secret: str = TEST_JWT_SECRET,
    ) -> str:
        claims = {
            "sub": user_id,
            "email": email or f"{user_id}@example.com",
            "exp": int(time.time()) + expires_in,
        }
        if username:
            claims["user_metadata"] = {"username": username}
        return jwt.encode(claims, secret, algorithm="HS256")

    return _make_token


@pytest.fixture
def auth_headers(make_token):
    """
    Factory fixture for Authorization headers.

    Usage:
        def test_example(client, auth_headers):
            client.get("/api/strategies", headers=auth_headers("user-1"))
    """
    def _auth_headers(user_id: str, username: str = None, origin: bool = False) -> dict:
        headers = {"Authorization": f"Bearer {make_token(user_id, username=username)}"}
        if origin:
            headers["Origin"] = APP_ORIGIN
        return headers

    return _auth_headers


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def other_user_id():
    return str(uuid.uuid4())


def _valid_filters(**overrides) -> dict:
    filters = {
        "venue": "hyperliquid",
        "markets": ["BTC-PERP", "ETH-PERP"],
        "cadenceSeconds": 120,
        "risk": {"maxPositionUsd": 1000, "maxLeverage": 5, "maxDailyLossPct": 10},
        "guardrails": {"allowLong": True, "allowShort": True},
    }
    filters.update(overrides)
    return filters


@pytest.fixture
def valid_filters():
    """
    Factory fixture for strategy filters that pass server-side validation.

    Usage:
        def test_example(valid_filters):
            filters = valid_filters(cadenceSeconds=300)
    """
    return _valid_filters


@pytest.fixture
def create_strategy(client, auth_headers):
    """
    Factory fixture creating a strategy through the API.

    Usage:
        def test_example(create_strategy, user_id):
            strategy = create_strategy(user_id, filters=valid_filters())
    """
    def _create_strategy(owner_id: str, **overrides) -> dict:
        body = {
            "name": "Momentum",
            "model_provider": "openai",
            "model_name": "gpt-4o-mini",
            "prompt": "Trade momentum breakouts.",
            "filters": _valid_filters(),
            "use_platform_key": True,
        }
        body.update(overrides)
        response = client.post("/api/strategies", json=body, headers=auth_headers(owner_id))
        assert response.status_code == 201, response.json()
        return response.json()["strategy"]

    return _create_strategy
