"""Quick-setup strategy presets.

Three starting points for the strategy builder. Each preset fills the
prompt, cadence, AI inputs, entry/exit rules, guardrails and risk limits;
venue, markets and model stay with the user.

Usage:
    from corebound.strategy.presets import apply_preset

    fields = apply_preset("balanced")
    fields["cadence"]   # {'hours': 0, 'minutes': 2, 'seconds': 0}
"""

import copy
from enum import Enum
from typing import Any, Dict

from ..validation import ValidationError
from .cadence import split_cadence


class PresetMode(str, Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


def _ai_inputs(timeframe: str, orderbook: bool, atr: bool, ema: bool) -> Dict[str, Any]:
    return {
        "candles": {"enabled": True, "count": 200, "timeframe": timeframe},
        "orderbook": {"enabled": orderbook, "depth": 20},
        "indicators": {
            "rsi": {"enabled": True, "period": 14},
            "atr": {"enabled": atr, "period": 14},
            "volatility": {"enabled": True, "window": 50},
            "ema": {"enabled": ema, "fast": 12, "slow": 26},
        },
        "includePositionState": True,
        "includeRecentDecisions": True,
        "recentDecisionsCount": 5,
        "includeRecentTrades": True,
        "recentTradesCount": 10,
    }


STRATEGY_PRESETS: Dict[str, Dict[str, Any]] = {
    PresetMode.CONSERVATIVE.value: {
        "label": "Conservative",
        "description": (
            "Capital preservation with high-conviction entries only. Lower frequency, "
            "tighter risk limits, and trend-only trading."
        ),
        "tagline": "Capital Preservation",
        "color": "emerald",
        "prompt": (
            "You are a conservative trading agent focused on capital preservation.\n"
            "Only enter positions when you have very high conviction based on clear trend signals.\n"
            "Prefer fewer, higher-quality trades over frequent entries.\n"
            "Always prioritize protecting capital over maximizing gains.\n"
            "Wait for strong confirmation before entering - avoid uncertain setups.\n"
            "Focus on established trends rather than catching reversals or breakouts."
        ),
        "cadenceSeconds": 300,
        "aiInputs": _ai_inputs("15m", orderbook=False, atr=False, ema=False),
        "entryExit": {
            "entry": {
                "mode": "signal",
                "behaviors": {"trend": True, "breakout": False, "meanReversion": False},
                "confirmation": {
                    "minSignals": 3,
                    "requireVolatilityCondition": False,
                    "volatilityMin": 0.5,
                    "volatilityMax": None,
                },
                "timing": {"waitForClose": False, "maxSlippagePct": 0.003},
            },
            "exit": {
                "mode": "signal",
                "maxLossProtectionPct": None,
                "maxProfitCapPct": None,
                "takeProfitPct": 3.0,
                "stopLossPct": 1.5,
                "trailingStopPct": None,
                "initialStopLossPct": None,
                "maxHoldMinutes": None,
            },
            "tradeControl": {
                "maxTradesPerHour": 1,
                "maxTradesPerDay": 5,
                "cooldownMinutes": 30,
                "minHoldMinutes": 10,
                "allowReentrySameDirection": False,
            },
            "confidenceControl": {"minConfidence": 0.75, "confidenceScaling": True},
        },
        "guardrails": {"allowLong": True, "allowShort": False},
        "risk": {"maxDailyLossPct": 3, "maxPositionUsd": 500, "maxLeverage": 2},
    },
    PresetMode.BALANCED.value: {
        "label": "Balanced",
        "description": (
            "Moderate risk/reward with a mix of trading strategies. "
            "Good starting point for most traders."
        ),
        "tagline": "Balanced Growth",
        "color": "blue",
        "prompt": (
            "You are a balanced trading agent that uses a mix of strategies.\n"
            "Analyze trends, breakouts, and mean-reversion opportunities equally.\n"
            "Take trades when there is reasonable conviction backed by multiple signals.\n"
            "Balance risk and reward - aim for consistent performance rather than home runs.\n"
            "Manage positions actively and respect risk limits strictly."
        ),
        "cadenceSeconds": 120,
        "aiInputs": _ai_inputs("5m", orderbook=False, atr=False, ema=True),
        "entryExit": {
            "entry": {
                "mode": "signal",
                "behaviors": {"trend": True, "breakout": True, "meanReversion": True},
                "confirmation": {
                    "minSignals": 2,
                    "requireVolatilityCondition": False,
                    "volatilityMin": 0.3,
                    "volatilityMax": None,
                },
                "timing": {"waitForClose": False, "maxSlippagePct": 0.005},
            },
            "exit": {
                "mode": "signal",
                "maxLossProtectionPct": 10,
                "maxProfitCapPct": None,
                "takeProfitPct": 2.0,
                "stopLossPct": 1.0,
                "trailingStopPct": None,
                "initialStopLossPct": None,
                "maxHoldMinutes": None,
            },
            "tradeControl": {
                "maxTradesPerHour": 2,
                "maxTradesPerDay": 10,
                "cooldownMinutes": 15,
                "minHoldMinutes": 5,
                "allowReentrySameDirection": False,
            },
            "confidenceControl": {"minConfidence": 0.70, "confidenceScaling": True},
        },
        "guardrails": {"allowLong": True, "allowShort": True},
        "risk": {"maxDailyLossPct": 5, "maxPositionUsd": 1000, "maxLeverage": 5},
    },
    PresetMode.AGGRESSIVE.value: {
        "label": "Aggressive",
        "description": (
            "Maximum opportunities with higher risk tolerance. Active trading with "
            "momentum focus and all strategies enabled."
        ),
        "tagline": "Maximum Opportunity",
        "color": "orange",
        "prompt": (
            "You are an aggressive trading agent focused on maximizing opportunities.\n"
            "Actively monitor momentum and take trades frequently when signals align.\n"
            "Use all available strategies - trends, breakouts, and mean-reversion.\n"
            "Be willing to take trades with lower conviction if the risk/reward is favorable.\n"
            "Trade actively but still respect your risk limits.\n"
            "Look for momentum shifts and act quickly on breakout signals."
        ),
        "cadenceSeconds": 60,
        "aiInputs": _ai_inputs("5m", orderbook=True, atr=True, ema=True),
        "entryExit": {
            "entry": {
                "mode": "signal",
                "behaviors": {"trend": True, "breakout": True, "meanReversion": True},
                "confirmation": {
                    "minSignals": 1,
                    "requireVolatilityCondition": False,
                    "volatilityMin": 0.3,
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
            "tradeControl": {
                "maxTradesPerHour": 5,
                "maxTradesPerDay": 20,
                "cooldownMinutes": 5,
                "minHoldMinutes": 2,
                "allowReentrySameDirection": True,
            },
            "confidenceControl": {"minConfidence": 0.65, "confidenceScaling": True},
        },
        "guardrails": {"allowLong": True, "allowShort": True},
        "risk": {"maxDailyLossPct": 10, "maxPositionUsd": 2000, "maxLeverage": 10},
    },
}


def get_preset(mode: str) -> Dict[str, Any]:
    """Return a deep copy of a preset.

    Raises:
        ValidationError: If mode is not a known preset
    """
    if mode not in STRATEGY_PRESETS:
        raise ValidationError(
            f"Unknown preset: {mode}. Must be one of: {', '.join(STRATEGY_PRESETS)}",
            field="mode",
        )
    return copy.deepcopy(STRATEGY_PRESETS[mode])


def apply_preset(mode: str) -> Dict[str, Any]:
    """Form fields a preset fills in.

    Returns:
        Dict with prompt, cadence parts, aiInputs, entryExit, guardrails and risk
    """
    preset = get_preset(mode)
    return {
        "mode": mode,
        "prompt": preset["prompt"],
        "cadenceSeconds": preset["cadenceSeconds"],
        "cadence": split_cadence(preset["cadenceSeconds"]).to_dict(),
        "aiInputs": preset["aiInputs"],
        "entryExit": preset["entryExit"],
        "guardrails": preset["guardrails"],
        "risk": preset["risk"],
    }
