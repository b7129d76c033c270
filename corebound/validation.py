"""Input validation utilities for security boundaries.

This module provides validation functions applied to every request body
before it reaches a repository (profile fields, wallet material, labels,
redirect targets, numeric inputs).

Security Philosophy:
- Validate at every boundary (defense in depth)
- Fail fast with clear error messages
- Trust internal code, validate external input
"""

import math
import re
from typing import Any, Optional
from urllib.parse import urljoin, urlsplit


class ValidationError(Exception):
    """Raised when input validation fails.

    The API layer answers with 400 and {"error": message}.
    """

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9_]{3,20}")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
API_KEY_LABEL_PATTERN = re.compile(r"[a-zA-Z0-9\s\-_]+")

VISIBILITY_VALUES = ("public", "profile_only")

AI_PROVIDERS = (
    "openai",
    "anthropic",
    "google",
    "xai",
    "deepseek",
    "meta",
    "qwen",
    "glm",
    "perplexity",
    "openrouter",
    "together",
    "groq",
    "fireworks",
)

RETURN_URL_PREFIXES = (
    "/dashboard",
    "/settings",
    "/arena",
    "/community",
    "/strategy",
    "/pricing",
    "/u/",
    "/messages",
)

DEFAULT_RETURN_URL = "/dashboard"


def validate_username(username: Any) -> str:
    """Validate public username.

    Args:
        username: Candidate username

    Returns:
        Validated username

    Raises:
        ValidationError: If not 3-20 letters, digits or underscores

    Examples:
        >>> validate_username("trader_01")
        "trader_01"
        >>> validate_username("a b")  # Blocked
        ValidationError: Username must be 3-20 characters...
    """
    if not isinstance(username, str) or not USERNAME_PATTERN.fullmatch(username):
        raise ValidationError(
            "Username must be 3-20 characters and contain only letters, numbers, and underscores",
            field="username",
        )
    return username


def validate_wallet_address(address: Any) -> str:
    """Validate an EVM wallet address (0x + 40 hex chars).

    Why: Hyperliquid identifies accounts by wallet address; a malformed
         address would only fail later inside the exchange call.
    """
    if not isinstance(address, str) or not address.startswith("0x") or len(address) != 42:
        raise ValidationError(
            "Invalid wallet address format. Address must start with '0x' and be 42 characters long.",
            field="wallet_address",
        )
    return address


def validate_private_key(key: Any) -> str:
    """Validate an EVM private key (0x + 64 hex chars)."""
    if not isinstance(key, str) or not key.startswith("0x") or len(key) != 66:
        raise ValidationError(
            "Invalid private key format. Private key must start with '0x' and be 66 "
            "characters long (0x + 64 hex characters).",
            field="key_material_encrypted",
        )
    return key


def validate_display_name(display_name: Any) -> str:
    """Validate and trim a profile display name."""
    if not isinstance(display_name, str):
        raise ValidationError("display_name must be a string", field="display_name")
    trimmed = display_name.strip()
    if not trimmed:
        raise ValidationError("display_name cannot be empty", field="display_name")
    return trimmed


def validate_gender(gender: Any) -> Optional[str]:
    if gender is None:
        return None
    if not isinstance(gender, str) or len(gender) > 32:
        raise ValidationError("gender must be 32 characters or less", field="gender")
    return gender


def validate_age(age: Any) -> Optional[int]:
    """Validate optional age.

    Examples:
        >>> validate_age(30)
        30
        >>> validate_age(None)
        None
        >>> validate_age(120)  # Blocked
        ValidationError: age must be between 1 and 119
    """
    if age is None:
        return None
    if (
        isinstance(age, bool)
        or not isinstance(age, (int, float))
        or not math.isfinite(age)
        or age != int(age)
    ):
        raise ValidationError("age must be between 1 and 119", field="age")
    if age <= 0 or age >= 120:
        raise ValidationError("age must be between 1 and 119", field="age")
    return int(age)


def validate_email(email: Any) -> str:
    if not isinstance(email, str) or not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Invalid email address", field="email")
    return email


def validate_api_key_label(label: Any) -> str:
    """Validate a saved API key label (50 chars max, letters/digits/space/dash/underscore)."""
    if not isinstance(label, str):
        raise ValidationError("Label must be a string", field="label")
    if len(label) > 50:
        raise ValidationError("Label must be 50 characters or less", field="label")
    if not API_KEY_LABEL_PATTERN.fullmatch(label):
        raise ValidationError(
            "Label can only contain letters, numbers, spaces, dashes, and underscores",
            field="label",
        )
    return label.strip()


def validate_ai_provider(provider: Any) -> str:
    if provider not in AI_PROVIDERS:
        raise ValidationError(
            f"Invalid provider. Must be one of: {', '.join(AI_PROVIDERS)}",
            field="provider",
        )
    return provider


def validate_visibility(visibility: Any) -> str:
    if visibility not in VISIBILITY_VALUES:
        raise ValidationError("Invalid visibility value", field="visibility")
    return visibility


# ============================================================================
# Redirect targets
# ============================================================================

def is_valid_return_url(url: Any) -> bool:
    """Check if a URL is a safe post-login redirect target.

    A valid return URL must start with a single forward slash, carry no
    host or scheme, and start with one of RETURN_URL_PREFIXES.

    Why: Blocks open redirects such as "//evil.com" or "/%2fevil.com".

    Examples:
        >>> is_valid_return_url("/dashboard/sessions/abc")
        True
        >>> is_valid_return_url("//evil.com")
        False
        >>> is_valid_return_url("/admin")
        False
    """
    if not url or not isinstance(url, str):
        return False

    if not url.startswith("/") or url.startswith("//"):
        return False

    if url.lower().startswith("/%2f") or "\\" in url:
        return False

    parsed = urlsplit(urljoin("http://dummy.com", url))
    if parsed.netloc != "dummy.com" or parsed.scheme != "http":
        return False

    path_only = url.split("?")[0].split("#")[0]
    return any(path_only == prefix or path_only.startswith(prefix) for prefix in RETURN_URL_PREFIXES)


def sanitize_return_url(url: Any, default_url: str = DEFAULT_RETURN_URL) -> str:
    """Return url when it is a safe redirect target, else default_url."""
    return url if is_valid_return_url(url) else default_url


# ============================================================================
# Numeric safety
# ============================================================================

def safe_number(value: Any, default: float = 0) -> float:
    """Convert value to a finite number, falling back to default.

    Examples:
        >>> safe_number(None)
        0
        >>> safe_number("123.45")
        123.45
        >>> safe_number(float("nan"), 100)
        100
    """
    if value is None:
        return default
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(num):
        return default
    return num


def require_finite_number(value: Any, name: str) -> float:
    """Require a finite number, raising ValidationError otherwise."""
    try:
        num = float(value)
    except (TypeError, ValueError):
        num = math.nan
    if not math.isfinite(num):
        raise ValidationError(
            f"{name} must be a finite number, got: {value} (type: {type(value).__name__})"
        )
    return num


def safe_positive_number(value: Any, default: float = 0) -> float:
    num = safe_number(value, default)
    return num if num >= 0 else default


def safe_divide(numerator: float, denominator: float, default: float = 0) -> float:
    """Divide, returning default for zero or non-finite operands."""
    if not math.isfinite(numerator) or not math.isfinite(denominator):
        return default
    if denominator == 0:
        return default
    result = numerator / denominator
    return result if math.isfinite(result) else default


def round_to(value: float, decimals: int = 2) -> float:
    """Round with banker's rounding on exact halves.

    Examples:
        >>> round_to(123.456, 2)
        123.46
        >>> round_to(0.125, 2)
        0.12
    """
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0

    multiplier = 10 ** decimals
    shifted = value * multiplier
    floor = math.floor(shifted)

    if shifted - floor == 0.5:
        return (floor if floor % 2 == 0 else floor + 1) / multiplier

    return math.floor(shifted + 0.5) / multiplier


def clamp(value: Any, minimum: float, maximum: float) -> float:
    num = safe_number(value, minimum)
    return max(minimum, min(maximum, num))
