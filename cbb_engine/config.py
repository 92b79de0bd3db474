"""Engine configuration and the per-roster position rule files."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .stats.lineup_positions import LineupOverrideRule

logger = logging.getLogger(__name__)

LUCK_CONFIG_BASES = ("baseline", "season")


@dataclass
class EngineConfig:
    """Settings shared by the table-building entry points."""

    avg_efficiency: float = 100.0
    adjust_for_luck: bool = False
    luck_config_base: str = "baseline"
    lineup_rules_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build from ``CBB_*`` environment variables, defaulting where unset or invalid."""
        config = cls()
        config.avg_efficiency = _safe_float(os.getenv("CBB_AVG_EFFICIENCY"), config.avg_efficiency)
        config.adjust_for_luck = str(os.getenv("CBB_ADJUST_FOR_LUCK", "")).strip().lower() in {
            "1", "true", "yes", "y"
        }
        luck_base = str(os.getenv("CBB_LUCK_BASE", "")).strip().lower()
        if luck_base in LUCK_CONFIG_BASES:
            config.luck_config_base = luck_base
        elif luck_base:
            logger.warning("Ignoring CBB_LUCK_BASE=%s (expected one of %s)", luck_base, LUCK_CONFIG_BASES)
        config.lineup_rules_path = os.getenv("CBB_LINEUP_RULES") or None
        return config


def _safe_float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _load_rules_file(path: Optional[str]) -> Dict:
    if not path:
        return {}
    rules_path = Path(path)
    if not rules_path.exists():
        logger.warning("Position rules file not found: %s", rules_path)
        return {}
    with open(rules_path, "r") as f:
        return json.load(f)


def load_lineup_order_rules(path: Optional[str]) -> Dict[str, List[LineupOverrideRule]]:
    """Lineup slot rules by team-season key.

    File shape: ``{"lineup_swaps": {"<team season>": [["first", "second"], ...]}}``
    where ``first`` should play an earlier slot than ``second``.
    """
    data = _load_rules_file(path)
    rules: Dict[str, List[LineupOverrideRule]] = {}
    for team_season, pairs in (data.get("lineup_swaps") or {}).items():
        rules[team_season] = [LineupOverrideRule(first=str(a), second=str(b)) for a, b in pairs]
    return rules


def load_position_overrides(path: Optional[str]) -> Dict[str, Dict[str, str]]:
    """Manual position classes: ``{"positions": {"<team season>": {"<player>": "<class>"}}}``."""
    data = _load_rules_file(path)
    return {
        team_season: {str(k): str(v) for k, v in players.items()}
        for team_season, players in (data.get("positions") or {}).items()
    }
