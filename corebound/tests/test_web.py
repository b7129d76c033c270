"""Tests for the HTTP plumbing: auth, origin checks, rate limiting, middleware."""

from types import SimpleNamespace

import pytest

from corebound.config import CoreboundConfig
from corebound.exceptions import AuthenticationError
from corebound.web.auth import CurrentUser, decode_access_token, display_name_for
from corebound.web.csrf import allowed_origins, should_bypass
from corebound.web.rate_limit import RateLimiter, client_ip

APP_ORIGIN = "http://localhost:3000"


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestRateLimiter:
    """Test fixed-window counting."""

    def test_allows_up_to_limit(self):
        limiter = RateLimiter(clock=FakeClock())

        results = [limiter.check("contact:1.2.3.4", limit=3, window_seconds=300) for _ in range(3)]

        assert [r.limited for r in results] == [False, False, False]
        assert [r.remaining for r in results] == [2, 1, 0]

    def test_limited_with_retry_after(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        for _ in range(3):
            limiter.check("k", limit=3, window_seconds=300)

        clock.now += 100
        result = limiter.check("k", limit=3, window_seconds=300)

        assert result.limited
        assert result.remaining == 0
        assert result.retry_after_ms == 200_000

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        for _ in range(4):
            limiter.check("k", limit=3, window_seconds=300)

        clock.now += 301
        assert not limiter.check("k", limit=3, window_seconds=300).limited

    def test_keys_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        for _ in range(3):
            limiter.check("a", limit=3, window_seconds=60)
        assert not limiter.check("b", limit=3, window_seconds=60).limited

    def test_expired_windows_cleaned_up(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("old", limit=3, window_seconds=10)

        clock.now += 120
        limiter.check("new", limit=3, window_seconds=10)

        assert set(limiter.windows) == {"new"}


class TestClientIp:

    def _request(self, headers, host="10.0.0.1"):
        return SimpleNamespace(headers=headers, client=SimpleNamespace(host=host) if host else None)

    def test_forwarded_for_first_hop(self):
        request = self._request({"x-forwarded-for": "203.0.113.9, 10.0.0.2"})
        assert client_ip(request) == "203.0.113.9"

    def test_real_ip(self):
        assert client_ip(self._request({"x-real-ip": "198.51.100.4"})) == "198.51.100.4"

    def test_socket_peer_and_unknown(self):
        assert client_ip(self._request({})) == "10.0.0.1"
        assert client_ip(self._request({}, host=None)) == "unknown"


class TestAccessTokens:
    """Test JWT validation."""

    def test_valid_token(self, config, make_token):
        user = decode_access_token(make_token("user-1", username="alice"), config)
        assert user == CurrentUser(id="user-1", email="user-1@example.com", username="alice")

    def test_expired(self, config, make_token):
        with pytest.raises(AuthenticationError, match="Token expired"):
            decode_access_token(make_token("user-1", expires_in=-60), config)

    def test_wrong_secret(self, config, make_token):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_access_token(make_token("user-1", secret="not-the-secret"), config)

    def test_garbage(self, config):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_access_token("not.a.jwt", config)

    def test_audience_enforced_when_configured(self, config, make_token):
        config.jwt_audience = "authenticated"
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_access_token(make_token("user-1"), config)

    def test_no_secret_configured(self, make_token):
        with pytest.raises(AuthenticationError):
            decode_access_token(make_token("user-1"), CoreboundConfig())

    def test_display_name_for(self):
        assert display_name_for(CurrentUser(id="u", email="bob@x.io", username="bobby")) == "bobby"
        assert display_name_for(CurrentUser(id="u", email="bob@x.io")) == "bob"
        assert display_name_for(CurrentUser(id="1234567890")) == "User 12345678"


class TestAuthenticatedRoutes:

    def test_missing_token(self, client):
        response = client.get("/api/strategies")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_non_bearer_scheme(self, client):
        response = client.get("/api/strategies", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_expired_token(self, client, make_token):
        token = make_token("user-1", expires_in=-60)
        response = client.get("/api/strategies", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json() == {"error": "Token expired"}


class TestOriginCheck:
    """Test origin enforcement on state-changing routes."""

    def test_allowed_origins(self):
        config = CoreboundConfig(app_url="https://corebound.example/")
        assert allowed_origins(config) == [
            "https://corebound.example",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]

    def test_bypass_prefixes(self):
        assert should_bypass("/api/cron/tick")
        assert should_bypass("/api/webhooks/stripe")
        assert not should_bypass("/api/strategies/1")

    def test_origin_required(self, client, auth_headers, user_id):
        response = client.delete("/api/strategies/abc", headers=auth_headers(user_id))
        assert response.status_code == 403
        assert response.json() == {"error": "Origin header required"}

    def test_foreign_origin(self, client, auth_headers, user_id):
        headers = {**auth_headers(user_id), "Origin": "https://evil.example"}
        response = client.delete("/api/strategies/abc", headers=headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Invalid origin"}

    def test_app_url_origin(self, client, auth_headers, user_id):
        headers = {**auth_headers(user_id), "Origin": "https://corebound.example"}
        response = client.delete("/api/strategies/abc", headers=headers)
        assert response.status_code == 404

    def test_referer_fallback(self, client, auth_headers, user_id):
        headers = {**auth_headers(user_id), "Referer": f"{APP_ORIGIN}/dashboard/strategies"}
        assert client.delete("/api/strategies/abc", headers=headers).status_code == 404

        headers["Referer"] = "https://evil.example/page"
        assert client.delete("/api/strategies/abc", headers=headers).status_code == 403


class TestServer:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_generated(self, client):
        assert client.get("/health").headers["X-Request-ID"]

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_body_validation_errors_are_400(self, client, auth_headers, user_id):
        response = client.post("/api/strategies", content="not json", headers={
            **auth_headers(user_id),
            "Content-Type": "application/json",
        })
        assert response.status_code == 400
        assert "error" in response.json()
