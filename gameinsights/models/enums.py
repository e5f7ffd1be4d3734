"""
Enumeration types for the predictive engine.

All enums inherit from str to ensure JSON serialization compatibility with
persisted model snapshots and API responses.
"""

from enum import Enum


class BenchmarkComparison(str, Enum):
    """Position of a retention value relative to the industry benchmark band."""

    ABOVE = "above"
    AT = "at"
    BELOW = "below"


class TrendDirection(str, Enum):
    """Direction of the learned revenue trend."""

    GROWING = "growing"
    STABLE = "stable"
    DECLINING = "declining"


class ForecastPeriod(str, Enum):
    """Aggregation period of a revenue forecast."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class GameType(str, Enum):
    """
    Game genres with a known retention decay pattern.

    The retention predictor infers the closest genre from its trained curve
    and falls back to that genre's pattern when it has nothing else to go on.
    """

    PUZZLE = "puzzle"
    IDLE = "idle"
    BATTLE_ROYALE = "battle_royale"
    MATCH3_META = "match3_meta"
    GACHA_RPG = "gacha_rpg"
    DEFAULT = "default"
