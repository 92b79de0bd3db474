"""
On-ball defense adjustments to DRtg.

Tracking data tags the defender on each play, giving a per-defender sample
of shots allowed by zone.  The adjustment runs in two passes:

1. ``build_on_ball_defense_adjustments_phase1`` grades one defender's
   sample against the shooting their lineups allowed overall, producing a
   provisional points-per-100 adjustment.
2. ``inject_on_ball_defense_adjustments_phase2`` removes the roster-wide
   (possession weighted) mean of the provisional numbers, since the team
   total is already in every player's DRtg, and writes the result onto each
   player's DRtg diagnostics.

The normalization is a single pass; there is no iterative solve.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models.stat_set import StatSet
from .ratings import DRtgDiagnostics

logger = logging.getLogger(__name__)

# Expected FG% by zone when the on-court sample has no attempts there
DEFAULT_ZONE_FG_PCT: Dict[str, float] = {"rim": 0.58, "mid": 0.36, "3p": 0.34}
DEFAULT_FT_PCT = 0.70

# zone -> (StatSet suffix, points per make)
_ZONES = {"rim": ("2prim", 2), "mid": ("2pmid", 2), "3p": ("3p", 3)}


@dataclass
class OnBallDefenseModel:
    """Tracked on-ball defense sample for one defender (or the team total)."""

    code: str = ""
    title: str = ""
    pts: float = 0.0
    plays: float = 0.0
    tov: float = 0.0
    rim_attempts: float = 0.0
    rim_made: float = 0.0
    mid_attempts: float = 0.0
    mid_made: float = 0.0
    three_attempts: float = 0.0
    three_made: float = 0.0
    fta: float = 0.0
    ftm: float = 0.0
    # Team plays with no tagged defender, shared out by tracked plays
    uncat_pts: float = 0.0
    uncat_plays: float = 0.0

    def zone(self, zone: str):
        """``(attempts, made)`` for ``rim``, ``mid`` or ``3p``."""
        if zone == "rim":
            return self.rim_attempts, self.rim_made
        if zone == "mid":
            return self.mid_attempts, self.mid_made
        return self.three_attempts, self.three_made

    @classmethod
    def from_dict(cls, data: dict) -> "OnBallDefenseModel":
        fields = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**fields)


@dataclass
class OnBallDefenseDiags:
    """Phase 1 grading of one defender, completed by phase 2."""

    targeted_pct: float = 0.0
    expected_rim_pct: float = 0.0
    expected_mid_pct: float = 0.0
    expected_3p_pct: float = 0.0
    expected_ft_pct: float = 0.0
    delta_rim_pts: float = 0.0
    delta_mid_pts: float = 0.0
    delta_3p_pts: float = 0.0
    delta_ft_pts: float = 0.0
    total_delta_pts: float = 0.0
    oppo_poss: float = 0.0
    provisional_adjustment: float = 0.0
    # Phase 2
    team_adjustment: float = 0.0
    resolved_adjustment: float = 0.0
    adj_def_rtg: Optional[float] = None


def inject_uncat_on_ball_defense_stats(
    team: OnBallDefenseModel, players: List[OnBallDefenseModel]
) -> List[OnBallDefenseModel]:
    """Share the team's untagged plays/points out in proportion to tracked plays.

    Returns copies; the inputs are not modified.
    """
    tracked_plays = sum(p.plays for p in players)
    uncat_plays = max(team.plays - tracked_plays, 0.0)
    uncat_pts = max(team.pts - sum(p.pts for p in players), 0.0)

    result = []
    for player in players:
        share = player.plays / tracked_plays if tracked_plays > 0 else 0.0
        mutable = copy.copy(player)
        mutable.uncat_plays = uncat_plays * share
        mutable.uncat_pts = uncat_pts * share
        result.append(mutable)
    return result


def build_on_ball_defense_adjustments_phase1(
    stat_set: StatSet,
    drtg_diags: DRtgDiagnostics,
    on_ball: OnBallDefenseModel,
) -> OnBallDefenseDiags:
    """Grade a defender's tracked sample against the shooting their lineups allowed."""
    oppo_poss = stat_set.value("oppo_total_def_poss") or drtg_diags.oppo_poss
    diags = OnBallDefenseDiags(oppo_poss=oppo_poss)

    total = 0.0
    for zone, (suffix, pts_per_make) in _ZONES.items():
        zone_attempts = stat_set.value(f"oppo_total_def_{suffix}_attempts")
        zone_made = stat_set.value(f"oppo_total_def_{suffix}_made")
        expected = zone_made / zone_attempts if zone_attempts > 0 else DEFAULT_ZONE_FG_PCT[zone]
        attempts, made = on_ball.zone(zone)
        delta = pts_per_make * (made - attempts * expected)
        setattr(diags, f"expected_{zone}_pct", expected)
        setattr(diags, f"delta_{zone}_pts", delta)
        total += delta

    oppo_fta = stat_set.value("oppo_total_def_fta")
    diags.expected_ft_pct = (
        stat_set.value("oppo_total_def_ftm") / oppo_fta if oppo_fta > 0 else DEFAULT_FT_PCT
    )
    diags.delta_ft_pts = on_ball.ftm - on_ball.fta * diags.expected_ft_pct
    total += diags.delta_ft_pts

    diags.total_delta_pts = total
    diags.targeted_pct = (on_ball.plays + on_ball.uncat_plays) / oppo_poss if oppo_poss > 0 else 0.0
    diags.provisional_adjustment = 100 * total / oppo_poss if oppo_poss > 0 else 0.0
    return diags


def _weight(player: StatSet, team_stat: Optional[StatSet]) -> float:
    if player.has_value("def_team_poss_pct"):
        return player.value("def_team_poss_pct")
    team_poss = team_stat.value("def_poss") if team_stat is not None else 0.0
    return player.value("def_team_poss") / team_poss if team_poss > 0 else 0.0


def inject_on_ball_defense_adjustments_phase2(
    players: List[StatSet], team_stat: Optional[StatSet] = None
) -> None:
    """Normalize phase 1 adjustments across the roster, mutating each player.

    Touches only ``diag_def_rtg.on_ball_diags`` (``team_adjustment``,
    ``resolved_adjustment``, ``adj_def_rtg``).  Reads only phase 1 outputs,
    so calling it again gives the same result.
    """
    graded = [
        p for p in players
        if isinstance(p.diag_def_rtg, DRtgDiagnostics) and p.diag_def_rtg.on_ball_diags is not None
    ]
    if not graded:
        return

    weights = [_weight(p, team_stat) for p in graded]
    total_weight = sum(weights)
    provisional = [p.diag_def_rtg.on_ball_diags.provisional_adjustment for p in graded]
    if total_weight > 0:
        team_adjustment = sum(w * a for w, a in zip(weights, provisional)) / total_weight
    else:
        team_adjustment = sum(provisional) / len(provisional)

    for player, adjustment in zip(graded, provisional):
        diags: OnBallDefenseDiags = player.diag_def_rtg.on_ball_diags
        diags.team_adjustment = team_adjustment
        diags.resolved_adjustment = adjustment - team_adjustment
        diags.adj_def_rtg = player.diag_def_rtg.d_rtg + diags.resolved_adjustment
    logger.debug(
        "On-ball defense: %d graded players, team adjustment %.3f", len(graded), team_adjustment
    )
