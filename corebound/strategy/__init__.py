"""Strategy configuration: cadence, filters and presets."""

from .cadence import (
    CadenceParts,
    MIN_CADENCE_SECONDS,
    DEFAULT_SESSION_CADENCE_SECONDS,
    total_cadence_seconds,
    split_cadence,
    clamp_seconds_field,
    format_cadence,
    should_tick,
    check_minimum_cadence,
    coerce_cadence_seconds,
    with_numeric_cadence,
    session_cadence,
)
from .filters import (
    Venue,
    StrategyForm,
    FilterValidationError,
    migrate_filters,
    build_filters,
    validate_filters,
    parse_manual_markets,
    is_coinbase_intx,
)
from .presets import STRATEGY_PRESETS, PresetMode, get_preset, apply_preset

__all__ = [
    "CadenceParts",
    "MIN_CADENCE_SECONDS",
    "DEFAULT_SESSION_CADENCE_SECONDS",
    "total_cadence_seconds",
    "split_cadence",
    "clamp_seconds_field",
    "format_cadence",
    "should_tick",
    "check_minimum_cadence",
    "coerce_cadence_seconds",
    "with_numeric_cadence",
    "session_cadence",
    "Venue",
    "StrategyForm",
    "FilterValidationError",
    "migrate_filters",
    "build_filters",
    "validate_filters",
    "parse_manual_markets",
    "is_coinbase_intx",
    "STRATEGY_PRESETS",
    "PresetMode",
    "get_preset",
    "apply_preset",
]
