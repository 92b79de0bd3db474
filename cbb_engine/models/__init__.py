"""StatSet and player data models."""

from .player import IndivPosInfo, PlayerCodeId, RosterEntry, TradPosition
from .stat_set import Metric, OverrideRecord, StatSet, StatSetFormatError

__all__ = [
    "IndivPosInfo",
    "Metric",
    "OverrideRecord",
    "PlayerCodeId",
    "RosterEntry",
    "StatSet",
    "StatSetFormatError",
    "TradPosition",
]
