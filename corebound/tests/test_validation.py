"""Tests for input validation helpers."""

import math

import pytest

from corebound.validation import (
    ValidationError,
    clamp,
    is_valid_return_url,
    require_finite_number,
    round_to,
    safe_divide,
    safe_number,
    safe_positive_number,
    sanitize_return_url,
    validate_age,
    validate_ai_provider,
    validate_api_key_label,
    validate_display_name,
    validate_email,
    validate_gender,
    validate_private_key,
    validate_username,
    validate_visibility,
    validate_wallet_address,
)

WALLET = "0x" + "ab" * 20
PRIVATE_KEY = "0x" + "cd" * 32


class TestIdentityFields:
    """Test usernames, display names and profile fields."""

    @pytest.mark.parametrize("username", ["abc", "trader_01", "A" * 20])
    def test_valid_usernames(self, username):
        assert validate_username(username) == username

    @pytest.mark.parametrize("username", ["ab", "a" * 21, "has space", "dash-name", "", None, 123])
    def test_invalid_usernames(self, username):
        with pytest.raises(ValidationError, match="Username must be 3-20 characters"):
            validate_username(username)

    def test_display_name_trimmed(self):
        assert validate_display_name("  Alice  ") == "Alice"

    def test_display_name_rejected(self):
        with pytest.raises(ValidationError, match="display_name cannot be empty"):
            validate_display_name("   ")
        with pytest.raises(ValidationError, match="display_name must be a string"):
            validate_display_name(42)

    def test_gender(self):
        assert validate_gender(None) is None
        assert validate_gender("non-binary") == "non-binary"
        with pytest.raises(ValidationError, match="32 characters or less"):
            validate_gender("x" * 33)

    @pytest.mark.parametrize("age,expected", [(1, 1), (30, 30), (119, 119), (45.0, 45), (None, None)])
    def test_valid_ages(self, age, expected):
        assert validate_age(age) == expected

    @pytest.mark.parametrize("age", [0, 120, -3, 30.5, "30", True, math.inf])
    def test_invalid_ages(self, age):
        with pytest.raises(ValidationError, match="age must be between 1 and 119"):
            validate_age(age)

    @pytest.mark.parametrize("email", ["a@b.co", "first.last@example.com"])
    def test_valid_emails(self, email):
        assert validate_email(email) == email

    @pytest.mark.parametrize("email", ["no-at.com", "a@b", "a b@c.com", "", None])
    def test_invalid_emails(self, email):
        with pytest.raises(ValidationError, match="Invalid email address"):
            validate_email(email)


class TestExchangeCredentials:

    def test_wallet_address(self):
        assert validate_wallet_address(WALLET) == WALLET
        for bad in ("ab" * 21, WALLET[:-1], None):
            with pytest.raises(ValidationError, match="Invalid wallet address format"):
                validate_wallet_address(bad)

    def test_private_key(self):
        assert validate_private_key(PRIVATE_KEY) == PRIVATE_KEY
        for bad in (PRIVATE_KEY[2:], PRIVATE_KEY + "0", None):
            with pytest.raises(ValidationError, match="Invalid private key format"):
                validate_private_key(bad)


class TestSettingsFields:

    def test_api_key_label(self):
        assert validate_api_key_label("  Main key_1 ") == "Main key_1"

    @pytest.mark.parametrize("label,message", [
        ("x" * 51, "50 characters or less"),
        ("bad!label", "can only contain"),
        (7, "Label must be a string"),
    ])
    def test_invalid_labels(self, label, message):
        with pytest.raises(ValidationError, match=message):
            validate_api_key_label(label)

    def test_ai_provider(self):
        assert validate_ai_provider("anthropic") == "anthropic"
        with pytest.raises(ValidationError, match="Invalid provider"):
            validate_ai_provider("skynet")

    def test_visibility(self):
        assert validate_visibility("public") == "public"
        assert validate_visibility("profile_only") == "profile_only"
        with pytest.raises(ValidationError, match="Invalid visibility value"):
            validate_visibility("friends")


class TestReturnUrls:
    """Test post-login redirect targets."""

    @pytest.mark.parametrize("url", [
        "/dashboard",
        "/dashboard/sessions/abc?tab=trades",
        "/u/alice",
        "/messages#latest",
    ])
    def test_allowed(self, url):
        assert is_valid_return_url(url)

    @pytest.mark.parametrize("url", [
        "//evil.com",
        "/%2fevil.com",
        "/%2Fevil.com",
        "https://evil.com/dashboard",
        "/dashboard\\..\\evil",
        "/admin",
        "dashboard",
        "",
        None,
    ])
    def test_rejected(self, url):
        assert not is_valid_return_url(url)

    def test_sanitize(self):
        assert sanitize_return_url("/arena") == "/arena"
        assert sanitize_return_url("//evil.com") == "/dashboard"
        assert sanitize_return_url("/admin", default_url="/settings") == "/settings"


class TestSafeNumbers:

    def test_safe_number(self):
        assert safe_number(None) == 0
        assert safe_number("123.45") == 123.45
        assert safe_number(float("nan"), 100) == 100
        assert safe_number("abc", 7) == 7

    def test_safe_positive_number(self):
        assert safe_positive_number(-5, 1) == 1
        assert safe_positive_number("3") == 3

    def test_safe_divide(self):
        assert safe_divide(10, 4) == 2.5
        assert safe_divide(10, 0, default=-1) == -1
        assert safe_divide(math.inf, 2) == 0

    def test_round_to_bankers(self):
        """Test exact halves round to even."""
        assert round_to(123.456, 2) == 123.46
        assert round_to(0.125, 2) == 0.12
        assert round_to(0.375, 2) == 0.38
        assert round_to(float("nan")) == 0

    def test_clamp(self):
        assert clamp(150, 0, 100) == 100
        assert clamp(-1, 0, 100) == 0
        assert clamp("oops", 5, 10) == 5

    def test_require_finite_number(self):
        assert require_finite_number("2.5", "price") == 2.5
        with pytest.raises(ValidationError, match="price must be a finite number"):
            require_finite_number("inf", "price")
