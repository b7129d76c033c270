"""Strategy filters: load-time migration, save-time normalization and validation.

A strategy's ``filters`` JSON carries everything except the prompt and model:
venue, markets, cadence, the AI inputs, entry/exit rules, guardrails and risk
limits. Three shapes meet here:

- legacy rows (flat ``entryMode``/``exitMode``/``takeProfitPct`` keys),
- current rows (nested ``entryExit``),
- form state being saved (``StrategyForm``, fields possibly blank).

``migrate_filters`` lifts any stored row to the current shape,
``build_filters`` turns a form into the JSON that is stored, and
``validate_filters`` enforces the limits the API accepts.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..validation import ValidationError
from .cadence import MIN_CADENCE_SECONDS, coerce_cadence_seconds, total_cadence_seconds

logger = logging.getLogger(__name__)


class Venue(str, Enum):
    """Execution target of a strategy."""
    HYPERLIQUID = "hyperliquid"
    COINBASE = "coinbase"
    VIRTUAL = "virtual"
    ARENA = "arena"


VENUES = tuple(v.value for v in Venue)
DEFAULT_VENUE = Venue.HYPERLIQUID.value

VOLATILITY_MIN_BY_TIMEFRAME = {
    "1m": 0.2,
    "3m": 0.25,
    "5m": 0.3,
    "15m": 0.5,
    "30m": 0.7,
    "1h": 1.0,
    "2h": 1.3,
    "4h": 1.8,
    "8h": 2.5,
    "12h": 2.5,
    "1d": 2.5,
    "3d": 2.5,
    "1w": 2.5,
    "1M": 2.5,
}

MAX_LEVERAGE = 20
MAX_POSITION_USD = 100000
MAX_DAILY_LOSS_PCT = 50

_INTX_SOURCE = re.compile(r"^([A-Z0-9]+)-(USD|USDC|USDT)$")
_WHITESPACE = re.compile(r"\s+")


def default_volatility_min(timeframe: Optional[str]) -> float:
    """Default minimum volatility % for a candle timeframe (5m default: 0.3)."""
    return VOLATILITY_MIN_BY_TIMEFRAME.get(timeframe or "", 0.3)


def default_ai_inputs() -> Dict[str, Any]:
    return {
        "candles": {"enabled": True, "count": 200, "timeframe": "5m"},
        "orderbook": {"enabled": False, "depth": 20},
        "indicators": {
            "rsi": {"enabled": True, "period": 14},
            "atr": {"enabled": False, "period": 14},
            "volatility": {"enabled": True, "window": 50},
            "ema": {"enabled": False, "fast": 12, "slow": 26},
        },
        "includePositionState": True,
        "includeRecentDecisions": True,
        "recentDecisionsCount": 5,
        "includeRecentTrades": True,
        "recentTradesCount": 10,
    }


def default_trade_control() -> Dict[str, Any]:
    return {
        "maxTradesPerHour": 2,
        "maxTradesPerDay": 10,
        "cooldownMinutes": 15,
        "minHoldMinutes": 5,
        "allowReentrySameDirection": False,
    }


def default_entry_exit() -> Dict[str, Any]:
    return {
        "entry": {
            "mode": "signal",
            "behaviors": {"trend": True, "breakout": True, "meanReversion": True},
            "confirmation": {
                "minSignals": 2,
                "requireVolatilityCondition": False,
                "volatilityMin": default_volatility_min("5m"),
                "volatilityMax": None,
            },
            "timing": {"waitForClose": False, "maxSlippagePct": 0.005},
        },
        "exit": {
            "mode": "signal",
            "maxLossProtectionPct": None,
            "maxProfitCapPct": None,
            "takeProfitPct": 2.0,
            "stopLossPct": 1.0,
            "trailingStopPct": None,
            "initialStopLossPct": None,
            "maxHoldMinutes": None,
        },
        "tradeControl": default_trade_control(),
        "confidenceControl": {"minConfidence": 0.65, "confidenceScaling": True},
    }


def default_guardrails() -> Dict[str, Any]:
    return {"allowLong": True, "allowShort": True}


def default_risk() -> Dict[str, Any]:
    return {"maxDailyLossPct": 5, "maxPositionUsd": 1000, "maxLeverage": 2}


# ============================================================================
# Markets
# ============================================================================

def parse_manual_markets(text: Optional[str]) -> List[str]:
    """Parse one market per line into upper-case symbols.

    Examples:
        >>> parse_manual_markets(" btc perp \\n\\neth-usd ")
        ['BTC-PERP', 'ETH-USD']
    """
    if not text:
        return []
    return [
        _WHITESPACE.sub("-", line.strip().upper())
        for line in text.split("\n")
        if line.strip()
    ]


def to_intx_market(market: str) -> str:
    """Map a Coinbase spot symbol to its INTX perpetual (BTC-USD -> BTC-PERP-INTX)."""
    match = _INTX_SOURCE.match(market)
    if not match:
        return market
    return f"{match.group(1)}-PERP-INTX"


def is_coinbase_intx(filters: Mapping[str, Any]) -> bool:
    """True when a Coinbase strategy trades INTX perpetuals."""
    if filters.get("venue") != Venue.COINBASE.value:
        return False
    return any(str(m).endswith("-PERP-INTX") for m in filters.get("markets") or [])


# ============================================================================
# Load-time migration
# ============================================================================

def _behaviors_from_mode(mode: Optional[str]) -> Dict[str, bool]:
    return {
        "trend": mode in ("trend", "signal"),
        "breakout": mode in ("breakout", "signal"),
        "meanReversion": mode in ("meanReversion", "signal"),
    }


def _legacy_entry_exit(filters: Mapping[str, Any]) -> Dict[str, Any]:
    mode = filters.get("entryMode") or "signal"
    guardrails = filters.get("guardrails") or {}
    return {
        "entry": {
            "mode": mode,
            "behaviors": _behaviors_from_mode(mode),
            "confirmation": {
                "minSignals": 2,
                "requireVolatilityCondition": False,
                "volatilityMin": default_volatility_min(filters.get("candleTimeframe") or "5m"),
                "volatilityMax": None,
            },
            "timing": {"waitForClose": False, "maxSlippagePct": 0.005},
        },
        "exit": {
            "mode": filters.get("exitMode") or "signal",
            "maxLossProtectionPct": None,
            "maxProfitCapPct": None,
            "takeProfitPct": filters.get("takeProfitPct") or 2.0,
            "stopLossPct": filters.get("stopLossPct") or 1.0,
            "trailingStopPct": filters.get("trailingStopPct") or None,
            "initialStopLossPct": None,
            "maxHoldMinutes": filters.get("timeStopMinutes") or None,
        },
        "tradeControl": filters.get("tradeFrequency") or default_trade_control(),
        "confidenceControl": {
            "minConfidence": guardrails.get("minConfidence") or 0.65,
            "confidenceScaling": True,
        },
    }


def migrate_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Lift stored filters to the current shape.

    The input is never mutated.

    Args:
        filters: Filters JSON as stored, possibly None or legacy

    Returns:
        New dict with current-shape filters
    """
    migrated = copy.deepcopy(dict(filters or {}))

    if migrated.get("venue") not in VENUES:
        migrated["venue"] = DEFAULT_VENUE

    if migrated.get("marketProcessingMode") != "round-robin":
        migrated["marketProcessingMode"] = "all"

    ai_inputs = migrated.get("aiInputs")
    if isinstance(ai_inputs, dict):
        ai_inputs.setdefault("includeRecentTrades", True)
        ai_inputs.setdefault("recentTradesCount", 10)
        ai_inputs.setdefault("includeRecentDecisions", True)
        ai_inputs.setdefault("recentDecisionsCount", 5)
        ai_inputs.setdefault("includePositionState", True)

    entry_exit = migrated.get("entryExit")
    if isinstance(entry_exit, dict):
        entry = entry_exit.setdefault("entry", {})
        if not entry.get("behaviors"):
            entry["behaviors"] = _behaviors_from_mode(entry.get("mode"))
            logger.debug(f"Derived entry behaviors from mode={entry.get('mode')!r}")
        exit_rules = entry_exit.setdefault("exit", {})
        exit_rules.setdefault("maxLossProtectionPct", None)
        exit_rules.setdefault("maxProfitCapPct", None)
        exit_rules.setdefault("initialStopLossPct", None)
    elif migrated.get("entryMode") or migrated.get("exitMode"):
        migrated["entryExit"] = _legacy_entry_exit(migrated)

    guardrails = migrated.get("guardrails")
    if isinstance(guardrails, dict):
        guardrails["allowLong"] = guardrails.get("allowLong") is not False
        guardrails["allowShort"] = guardrails.get("allowShort") is not False

    risk = migrated.get("risk")
    if isinstance(risk, dict):
        risk["maxDailyLossPct"] = risk.get("maxDailyLossPct") or 5
        risk["maxPositionUsd"] = risk.get("maxPositionUsd") or 1000
        risk["maxLeverage"] = risk.get("maxLeverage") or 2

    return migrated


# ============================================================================
# Save-time normalization
# ============================================================================

@dataclass
class StrategyForm:
    """Editable strategy settings as submitted by a client.

    Numeric fields may be blank ("") while being edited; build_filters
    substitutes defaults for them.
    """

    venue: str = DEFAULT_VENUE
    markets: List[str] = field(default_factory=list)
    manual_markets_input: str = ""
    use_manual_input: bool = False
    cadence_hours: Any = 0
    cadence_minutes: Any = 0
    cadence_seconds: Any = MIN_CADENCE_SECONDS
    market_processing_mode: str = "all"
    coinbase_intx_enabled: bool = False
    ai_inputs: Dict[str, Any] = field(default_factory=default_ai_inputs)
    entry_exit: Dict[str, Any] = field(default_factory=default_entry_exit)
    guardrails: Dict[str, Any] = field(default_factory=default_guardrails)
    risk: Dict[str, Any] = field(default_factory=default_risk)

    @property
    def cadence_total(self) -> int:
        return total_cadence_seconds(self.cadence_hours, self.cadence_minutes, self.cadence_seconds)

    def final_markets(self) -> List[str]:
        if self.use_manual_input and self.manual_markets_input.strip():
            return parse_manual_markets(self.manual_markets_input)
        return list(self.markets)


def _num(value: Any, default: float) -> float:
    """Return value when it is a number, else default (blank fields)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def _with(section: Optional[Mapping[str, Any]], **values) -> Dict[str, Any]:
    merged = dict(section or {})
    merged.update(values)
    return merged


def build_filters(form: StrategyForm) -> Dict[str, Any]:
    """Normalize a strategy form into the filters JSON that is stored.

    Example:
        >>> form = StrategyForm(markets=["BTC-PERP"], cadence_minutes=2, cadence_seconds=60)
        >>> build_filters(form)["cadenceSeconds"]
        120
    """
    markets = form.final_markets()
    ai = form.ai_inputs
    indicators = ai.get("indicators") or {}
    entry_exit = form.entry_exit
    entry = entry_exit.get("entry") or {}
    exit_rules = entry_exit.get("exit") or {}
    trade_control = entry_exit.get("tradeControl") or {}
    confidence = entry_exit.get("confidenceControl") or {}

    ai_inputs = _with(
        ai,
        candles=_with(ai.get("candles"), count=_num((ai.get("candles") or {}).get("count"), 200)),
        orderbook=_with(ai.get("orderbook"), depth=_num((ai.get("orderbook") or {}).get("depth"), 20)),
        indicators=_with(
            indicators,
            rsi=_with(indicators.get("rsi"), period=_num((indicators.get("rsi") or {}).get("period"), 14)),
            atr=_with(indicators.get("atr"), period=_num((indicators.get("atr") or {}).get("period"), 14)),
            volatility=_with(
                indicators.get("volatility"),
                window=_num((indicators.get("volatility") or {}).get("window"), 50),
            ),
            ema=_with(
                indicators.get("ema"),
                fast=_num((indicators.get("ema") or {}).get("fast"), 12),
                slow=_num((indicators.get("ema") or {}).get("slow"), 26),
            ),
        ),
        recentDecisionsCount=_num(ai.get("recentDecisionsCount"), 5),
        recentTradesCount=_num(ai.get("recentTradesCount"), 10),
    )

    min_confidence = _num(confidence.get("minConfidence"), 0.65)
    normalized_entry_exit = {
        "entry": _with(
            entry,
            timing=_with(
                entry.get("timing"),
                waitForClose=False,
                maxSlippagePct=_num((entry.get("timing") or {}).get("maxSlippagePct"), 0.15),
            ),
            confirmation=_with(
                entry.get("confirmation"),
                minSignals=_num((entry.get("confirmation") or {}).get("minSignals"), 2),
            ),
        ),
        "exit": _with(
            exit_rules,
            takeProfitPct=_num(exit_rules.get("takeProfitPct"), 2),
            stopLossPct=_num(exit_rules.get("stopLossPct"), 1),
        ),
        "tradeControl": _with(
            trade_control,
            maxTradesPerHour=_num(trade_control.get("maxTradesPerHour"), 2),
            maxTradesPerDay=_num(trade_control.get("maxTradesPerDay"), 10),
            cooldownMinutes=_num(trade_control.get("cooldownMinutes"), 15),
            minHoldMinutes=_num(trade_control.get("minHoldMinutes"), 5),
        ),
        "confidenceControl": _with(confidence, minConfidence=min_confidence),
    }

    # Coinbase spot cannot use leverage or go short; INTX can
    coinbase_spot = form.venue == Venue.COINBASE.value and not form.coinbase_intx_enabled
    leverage = 1 if coinbase_spot else _num(form.risk.get("maxLeverage"), 2)
    allow_short = False if coinbase_spot else form.guardrails.get("allowShort", True)

    return {
        "venue": form.venue,
        "cadenceSeconds": form.cadence_total,
        "markets": markets,
        "marketProcessingMode": form.market_processing_mode if len(markets) > 1 else "all",
        "aiInputs": ai_inputs,
        "entryExit": normalized_entry_exit,
        "guardrails": {
            "minConfidence": min_confidence,
            "allowLong": form.guardrails.get("allowLong", True),
            "allowShort": allow_short,
        },
        "risk": {
            "maxDailyLossPct": _num(form.risk.get("maxDailyLossPct"), 5),
            "maxPositionUsd": _num(form.risk.get("maxPositionUsd"), 1000),
            "maxLeverage": leverage,
        },
    }


# ============================================================================
# Validation
# ============================================================================

class FilterValidationError(ValidationError):
    """Filters rejected on save; ``tab`` names the form tab holding the field."""

    def __init__(self, message: str, tab: str, field: Optional[str] = None):
        self.tab = tab
        super().__init__(message, field=field)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def minimum_position_usd(filters: Mapping[str, Any]) -> tuple[float, str]:
    """Smallest order an exchange accepts, with the exchange label.

    Returns:
        (minimum_usd, exchange_label) tuple
    """
    if filters.get("venue") == Venue.COINBASE.value:
        if is_coinbase_intx(filters):
            return 10, "Coinbase INTX"
        return 1, "Coinbase"
    return 10, "Hyperliquid"


def validate_filters(filters: Mapping[str, Any]) -> None:
    """Validate filters before they are stored.

    Raises:
        FilterValidationError: On the first rule that fails
    """
    try:
        cadence = coerce_cadence_seconds(filters.get("cadenceSeconds"))
    except ValidationError as e:
        raise FilterValidationError(e.message, "basics", "cadence") from e
    if cadence is not None:
        if cadence <= 0:
            raise FilterValidationError(
                "Please set a decision cadence (at least 1 second)", "basics", "cadence"
            )
        if cadence < MIN_CADENCE_SECONDS:
            raise FilterValidationError(
                "Minimum AI cadence is 60 seconds (1 minute)", "basics", "cadence"
            )

    if not filters.get("markets"):
        raise FilterValidationError("Please select at least one market in the Markets tab", "markets")

    entry_exit = filters.get("entryExit") or {}
    confirmation = (entry_exit.get("entry") or {}).get("confirmation") or {}
    if confirmation.get("requireVolatilityCondition"):
        volatility_min = confirmation.get("volatilityMin")
        volatility_max = confirmation.get("volatilityMax")
        if _is_number(volatility_min) and volatility_min < 0:
            raise FilterValidationError("Min Volatility % must be 0 or greater", "entry")
        if _is_number(volatility_max) and volatility_max < 0:
            raise FilterValidationError("Max Volatility % must be 0 or greater", "entry")
        if _is_number(volatility_min) and _is_number(volatility_max) and volatility_min > volatility_max:
            raise FilterValidationError(
                "Min Volatility % cannot be greater than Max Volatility %", "entry"
            )

    exit_rules = entry_exit.get("exit") or {}
    exit_mode = exit_rules.get("mode")
    if exit_mode == "trailing":
        trailing = exit_rules.get("trailingStopPct")
        if not _is_number(trailing) or trailing <= 0:
            raise FilterValidationError(
                "Trailing Stop % is required when using Trailing exit mode", "entry"
            )

    if exit_mode == "tp_sl":
        take_profit = exit_rules.get("takeProfitPct")
        stop_loss = exit_rules.get("stopLossPct")
        if not _is_number(take_profit) or take_profit <= 0:
            raise FilterValidationError("Take Profit % must be greater than 0", "entry")
        if not _is_number(stop_loss) or stop_loss <= 0:
            raise FilterValidationError("Stop Loss % must be greater than 0", "entry")
        if take_profit <= stop_loss:
            raise FilterValidationError("Take Profit % must be greater than Stop Loss %", "entry")

    risk = filters.get("risk") or {}
    leverage = risk.get("maxLeverage")
    if _is_number(leverage) and leverage > MAX_LEVERAGE:
        raise FilterValidationError("Max Leverage must be 20x or less", "risk")

    position = risk.get("maxPositionUsd")
    if _is_number(position):
        minimum, exchange_label = minimum_position_usd(filters)
        if position < minimum:
            raise FilterValidationError(
                f"Max Position Size must be at least ${minimum} ({exchange_label} minimum order size)",
                "risk",
            )
        if position > MAX_POSITION_USD:
            raise FilterValidationError("Max Position Size must be $100,000 or less", "risk")

    daily_loss = risk.get("maxDailyLossPct")
    if _is_number(daily_loss) and daily_loss > MAX_DAILY_LOSS_PCT:
        raise FilterValidationError("Max Daily Loss % must be 50% or less", "risk")
