"""
Luck adjustment of small-sample rates.

Shooting (3P%, 2P%, FT%), turnover and offensive rebound rates over a few
hundred possessions are mostly noise.  Each sample rate is shrunk toward
an expected rate:

* offense: the weighted mean of the on-court players' own baseline rates
  (each regressed toward the team baseline), so a lineup of shooters is
  expected to shoot better than a lineup of centers;
* defense: the baseline rate allowed, with 3P% further regressed toward
  how well the sample's opponents shoot in general (``def_3p_opp``).

The rate changes are then propagated to makes, turnovers, rebounds,
points, eFG% and points per 100 possessions.  ``inject_luck`` writes these
deltas into a StatSet in a way that can be repeated or undone.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..models.stat_set import Metric, OverrideRecord, StatSet
from .overrides import LUCK_ADJUSTED

logger = logging.getLogger(__name__)

# Pseudo-volume pulling a player's baseline toward the team baseline
PLAYER_3P_PRIOR_ATTEMPTS = 30.0
PLAYER_2P_PRIOR_ATTEMPTS = 40.0
PLAYER_FT_PRIOR_ATTEMPTS = 20.0
PLAYER_TO_PRIOR_POSS = 50.0
PLAYER_ORB_PRIOR_CHANCES = 30.0
# Pseudo-volume pulling the sample rate toward its target
SAMPLE_3P_PRIOR_ATTEMPTS = 100.0
SAMPLE_2P_PRIOR_ATTEMPTS = 150.0
SAMPLE_FT_PRIOR_ATTEMPTS = 50.0
SAMPLE_TO_PRIOR_POSS = 200.0
SAMPLE_ORB_PRIOR_POSS = 200.0
# Pseudo-attempts pulling the baseline 3P% allowed toward opponent quality
DEF_3P_SOS_PRIOR_ATTEMPTS = 200.0

# Marks an ``oppo_def_3p`` that inject_luck derived from the opponent totals
DERIVED_OPPO_DEF_3P = "Derived from opponent 3P totals"

LUCK_OVERRIDE_STATS = ("off_3p", "off_2p", "off_ft", "off_to")

# Offensive rate -> (volume field, player prior).  The volume both shrinks a
# player's baseline and weights that player inside the lineup.
OFF_PLAYER_RATES: Dict[str, Tuple[str, float]] = {
    "off_3p": ("total_off_3p_attempts", PLAYER_3P_PRIOR_ATTEMPTS),
    "off_2p": ("total_off_2p_attempts", PLAYER_2P_PRIOR_ATTEMPTS),
    "off_ft": ("total_off_fta", PLAYER_FT_PRIOR_ATTEMPTS),
    "off_to": ("off_poss", PLAYER_TO_PRIOR_POSS),
    "off_orb": ("off_team_poss", PLAYER_ORB_PRIOR_CHANCES),
}


@dataclass
class OffLuckAdjustmentDiags:
    """How an offensive sample was luck adjusted."""

    avg_eff: float = 0.0
    # Sample
    sample_3p: float = 0.0
    sample_3pa: float = 0.0
    sample_2p: float = 0.0
    sample_2pa: float = 0.0
    sample_ft: float = 0.0
    sample_fta: float = 0.0
    sample_to: float = 0.0
    sample_fga: float = 0.0
    sample_fgm: float = 0.0
    sample_poss: float = 0.0
    sample_off_orb: float = 0.0
    sample_off_ppp: float = 0.0
    sample_def_sos: float = 0.0
    # Targets
    base_team_3p: float = 0.0
    base_team_2p: float = 0.0
    base_team_ft: float = 0.0
    base_team_to: float = 0.0
    base_team_orb: float = 0.0
    base_3p: float = 0.0
    base_2p: float = 0.0
    base_ft: float = 0.0
    base_to: float = 0.0
    base_orb: float = 0.0
    player_3p: Dict[str, float] = field(default_factory=dict)
    player_2p: Dict[str, float] = field(default_factory=dict)
    player_ft: Dict[str, float] = field(default_factory=dict)
    player_to: Dict[str, float] = field(default_factory=dict)
    player_orb: Dict[str, float] = field(default_factory=dict)
    adj_3p: float = 0.0
    adj_2p: float = 0.0
    adj_ft: float = 0.0
    adj_to: float = 0.0
    adj_orb: float = 0.0
    # Deltas
    delta_3p: float = 0.0
    delta_2p: float = 0.0
    delta_ft: float = 0.0
    delta_to: float = 0.0
    delta_orb: float = 0.0
    delta_3p_made: float = 0.0
    delta_2p_made: float = 0.0
    delta_ftm: float = 0.0
    delta_tos: float = 0.0
    delta_orbs: float = 0.0
    delta_pts: float = 0.0
    delta_off_efg: float = 0.0
    delta_off_ppp: float = 0.0
    delta_off_adj_ppp: float = 0.0

    def deltas(self) -> Dict[str, float]:
        """Stat name -> change to apply, as consumed by ``inject_luck``."""
        return {
            "off_3p": self.delta_3p,
            "off_2p": self.delta_2p,
            "off_ft": self.delta_ft,
            "off_to": self.delta_to,
            "off_orb": self.delta_orb,
            "off_efg": self.delta_off_efg,
            "off_ppp": self.delta_off_ppp,
            "off_adj_ppp": self.delta_off_adj_ppp,
        }


@dataclass
class DefLuckAdjustmentDiags:
    """How a defensive sample was luck adjusted."""

    avg_eff: float = 0.0
    # Sample
    sample_3p: float = 0.0
    sample_3pa: float = 0.0
    sample_3p_opp: float = 0.0
    sample_2p: float = 0.0
    sample_2pa: float = 0.0
    sample_ft: float = 0.0
    sample_fta: float = 0.0
    sample_to: float = 0.0
    sample_fga: float = 0.0
    sample_fgm: float = 0.0
    sample_poss: float = 0.0
    sample_def_orb: float = 0.0
    sample_def_ppp: float = 0.0
    sample_off_sos: float = 0.0
    # Targets
    base_3p: float = 0.0
    base_3pa: float = 0.0
    base_2p: float = 0.0
    base_ft: float = 0.0
    base_to: float = 0.0
    base_orb: float = 0.0
    target_3p: float = 0.0
    adj_3p: float = 0.0
    adj_2p: float = 0.0
    adj_ft: float = 0.0
    adj_to: float = 0.0
    adj_orb: float = 0.0
    # Deltas
    delta_3p: float = 0.0
    delta_2p: float = 0.0
    delta_ft: float = 0.0
    delta_to: float = 0.0
    delta_orb: float = 0.0
    delta_3p_made: float = 0.0
    delta_2p_made: float = 0.0
    delta_ftm: float = 0.0
    delta_tos: float = 0.0
    delta_orbs: float = 0.0
    delta_pts: float = 0.0
    delta_def_efg: float = 0.0
    delta_def_ppp: float = 0.0
    delta_def_adj_ppp: float = 0.0

    def deltas(self) -> Dict[str, float]:
        """Stat name -> change to apply, as consumed by ``inject_luck``."""
        return {
            "def_3p": self.delta_3p,
            "def_2p": self.delta_2p,
            "def_ft": self.delta_ft,
            "def_to": self.delta_to,
            "def_orb": self.delta_orb,
            "def_efg": self.delta_def_efg,
            "def_ppp": self.delta_def_ppp,
            "def_adj_ppp": self.delta_def_adj_ppp,
            "oppo_def_3p": self.delta_3p,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _pre_luck(stat_set: StatSet, name: str) -> float:
    """Metric value as it was before any luck adjustment."""
    metric = stat_set.get(name)
    if metric is None:
        return 0.0
    if metric.override == LUCK_ADJUSTED and metric.old_value is not None:
        return metric.old_value
    return metric.value or 0.0


def _pre_luck_or(stat_set: StatSet, name: str, fallback: float) -> float:
    return _pre_luck(stat_set, name) if stat_set.has_value(name) else fallback


def _shrink(observed: float, volume: float, target: float, prior: float) -> float:
    """``(n * observed + K * target) / (n + K)``."""
    volume = max(volume, 0.0)
    return (volume * observed + prior * target) / (volume + prior)


def _sample_shrink(
    sample: StatSet, name: str, observed: float, volume: float, target: float, prior: float
) -> float:
    # A rate the sample never reported is left where it is
    if not sample.has_value(name):
        return observed
    return _shrink(observed, volume, target, prior)


def _misses(fga: float, fgm: float, has_fgm: bool) -> float:
    return max(fga - fgm, 0.0) if has_fgm else 0.0


def _points_delta(
    delta_2pm: float,
    delta_3pm: float,
    delta_ftm: float,
    delta_tos: float,
    delta_orbs: float,
    orb_pct: float,
    ppp: float,
) -> float:
    pts_per_poss = ppp / 100
    # A make that used to be a miss also removes the offensive rebound chance
    lost_putbacks = (delta_2pm + delta_3pm) * orb_pct * pts_per_poss
    return (
        2 * delta_2pm
        + 3 * delta_3pm
        + delta_ftm
        - lost_putbacks
        - delta_tos * pts_per_poss
        + delta_orbs * pts_per_poss
    )


def _luck_overrides(manual_overrides: Optional[Iterable[OverrideRecord]]) -> Dict[str, Dict[str, float]]:
    out: Dict[str, Dict[str, float]] = {}
    for record in manual_overrides or []:
        if record.use and record.stat_name in LUCK_OVERRIDE_STATS:
            out.setdefault(record.row_id, {})[record.stat_name] = record.new_val
    return out


def _player_baseline_rate(base_player: StatSet, stat: str) -> Tuple[Optional[float], float]:
    """A player's baseline ``(rate, volume)``; ``None`` when it has no such rate.

    A player's ORB% is the team's offensive rebounding while they are on
    the floor, over the rebound chances seen.
    """
    if stat == "off_orb":
        boards = base_player.value("team_total_off_orb")
        chances = boards + base_player.value("oppo_total_def_drb")
        return (boards / chances if chances > 0 else None), chances
    if not base_player.has_value(stat):
        return None, 0.0
    return _pre_luck(base_player, stat), base_player.value(OFF_PLAYER_RATES[stat][0])


def _composition_rate(
    stat: str,
    players: List[Tuple[StatSet, StatSet]],
    team_rate: float,
    overrides: Dict[str, Dict[str, float]],
) -> Tuple[float, Dict[str, float]]:
    """Lineup expectation for ``stat``: player baselines weighted by sample volume."""
    volume_field, prior = OFF_PLAYER_RATES[stat]
    player_rates: Dict[str, float] = {}
    weighted = weight = 0.0
    for player, base_player in players:
        rate = overrides.get(player.key, {}).get(stat)
        if rate is None:
            base_rate, base_volume = _player_baseline_rate(base_player, stat)
            rate = team_rate if base_rate is None else _shrink(base_rate, base_volume, team_rate, prior)
        player_rates[player.key] = rate
        player_volume = player.value(volume_field)
        weighted += player_volume * rate
        weight += player_volume
    return (weighted / weight if weight > 0 else team_rate), player_rates


# ---------------------------------------------------------------------------
# Offense
# ---------------------------------------------------------------------------

def _calc_off_luck_adj(
    sample: StatSet,
    sample_players: List[StatSet],
    baseline: StatSet,
    baseline_players_by_id: Dict[str, StatSet],
    avg_efficiency: float,
    sample_3pa_override: Optional[float],
    manual_overrides: Optional[Iterable[OverrideRecord]],
    include_rebounding: bool,
) -> OffLuckAdjustmentDiags:
    overrides = _luck_overrides(manual_overrides)
    diags = OffLuckAdjustmentDiags(avg_eff=avg_efficiency)

    diags.sample_3p = _pre_luck(sample, "off_3p")
    diags.sample_3pa = (
        sample_3pa_override if sample_3pa_override is not None
        else sample.value("total_off_3p_attempts")
    )
    diags.sample_2p = _pre_luck(sample, "off_2p")
    diags.sample_2pa = sample.value("total_off_2p_attempts")
    diags.sample_ft = _pre_luck(sample, "off_ft")
    diags.sample_fta = sample.value("total_off_fta")
    diags.sample_to = _pre_luck(sample, "off_to")
    diags.sample_fga = sample.value("total_off_fga")
    diags.sample_fgm = sample.value("total_off_fgm")
    diags.sample_poss = sample.value("off_poss")
    diags.sample_off_orb = _pre_luck(sample, "off_orb")
    diags.sample_off_ppp = _pre_luck(sample, "off_ppp")
    diags.sample_def_sos = sample.value("def_adj_opp") or avg_efficiency

    diags.base_team_3p = _pre_luck_or(baseline, "off_3p", diags.sample_3p)
    diags.base_team_2p = _pre_luck_or(baseline, "off_2p", diags.sample_2p)
    diags.base_team_ft = _pre_luck_or(baseline, "off_ft", diags.sample_ft)
    diags.base_team_to = _pre_luck_or(baseline, "off_to", diags.sample_to)

    players: List[Tuple[StatSet, StatSet]] = []
    for player in sample_players:
        base_player = baseline_players_by_id.get(player.key)
        if base_player is None:
            logger.debug("No baseline stats for %s, skipping in luck target", player.key)
            continue
        players.append((player, base_player))

    diags.base_3p, diags.player_3p = _composition_rate("off_3p", players, diags.base_team_3p, overrides)
    diags.base_2p, diags.player_2p = _composition_rate("off_2p", players, diags.base_team_2p, overrides)
    diags.base_ft, diags.player_ft = _composition_rate("off_ft", players, diags.base_team_ft, overrides)
    diags.base_to, diags.player_to = _composition_rate("off_to", players, diags.base_team_to, overrides)

    diags.adj_3p = _sample_shrink(
        sample, "off_3p", diags.sample_3p, diags.sample_3pa, diags.base_3p, SAMPLE_3P_PRIOR_ATTEMPTS
    )
    diags.adj_2p = _sample_shrink(
        sample, "off_2p", diags.sample_2p, diags.sample_2pa, diags.base_2p, SAMPLE_2P_PRIOR_ATTEMPTS
    )
    diags.adj_ft = _sample_shrink(
        sample, "off_ft", diags.sample_ft, diags.sample_fta, diags.base_ft, SAMPLE_FT_PRIOR_ATTEMPTS
    )
    diags.adj_to = _sample_shrink(
        sample, "off_to", diags.sample_to, diags.sample_poss, diags.base_to, SAMPLE_TO_PRIOR_POSS
    )
    diags.base_team_orb = _pre_luck_or(baseline, "off_orb", diags.sample_off_orb)
    diags.base_orb, diags.player_orb = _composition_rate(
        "off_orb", players, diags.base_team_orb, overrides
    )
    diags.adj_orb = (
        _sample_shrink(
            sample, "off_orb", diags.sample_off_orb, diags.sample_poss, diags.base_orb,
            SAMPLE_ORB_PRIOR_POSS,
        )
        if include_rebounding else diags.sample_off_orb
    )

    diags.delta_3p = diags.adj_3p - diags.sample_3p
    diags.delta_2p = diags.adj_2p - diags.sample_2p
    diags.delta_ft = diags.adj_ft - diags.sample_ft
    diags.delta_to = diags.adj_to - diags.sample_to
    diags.delta_orb = diags.adj_orb - diags.sample_off_orb

    # Makes change over the attempts actually taken
    diags.delta_3p_made = diags.delta_3p * sample.value("total_off_3p_attempts")
    diags.delta_2p_made = diags.delta_2p * diags.sample_2pa
    diags.delta_ftm = diags.delta_ft * diags.sample_fta
    diags.delta_tos = diags.delta_to * diags.sample_poss
    diags.delta_orbs = diags.delta_orb * _misses(
        diags.sample_fga, diags.sample_fgm, sample.has_value("total_off_fgm")
    )
    diags.delta_pts = _points_delta(
        diags.delta_2p_made, diags.delta_3p_made, diags.delta_ftm, diags.delta_tos,
        diags.delta_orbs, diags.sample_off_orb, diags.sample_off_ppp,
    )
    diags.delta_off_efg = (
        (diags.delta_2p_made + 1.5 * diags.delta_3p_made) / diags.sample_fga
        if diags.sample_fga > 0 else 0.0
    )
    diags.delta_off_ppp = 100 * diags.delta_pts / diags.sample_poss if diags.sample_poss > 0 else 0.0
    diags.delta_off_adj_ppp = (
        diags.delta_off_ppp * avg_efficiency / diags.sample_def_sos if diags.sample_def_sos else 0.0
    )
    return diags


def calc_off_team_luck_adj(
    sample: StatSet,
    sample_players: List[StatSet],
    baseline: StatSet,
    baseline_players_by_id: Dict[str, StatSet],
    avg_efficiency: float,
    sample_3pa_override: Optional[float] = None,
    manual_overrides: Optional[Iterable[OverrideRecord]] = None,
) -> OffLuckAdjustmentDiags:
    """Offensive luck adjustment of a team or lineup sample.

    Args:
        sample: The on-court sample to adjust.
        sample_players: Player samples making up ``sample``; their volumes
            (attempts, possessions) weight each player's baseline rate.
        baseline: Team baseline the player rates are regressed toward.
        baseline_players_by_id: Player baselines, keyed by player key.
        avg_efficiency: League average points per 100 possessions.
        sample_3pa_override: Volume used to shrink the sample 3P%, in place
            of the sample's own attempts.
        manual_overrides: ``off_3p``/``off_2p``/``off_ft``/``off_to``
            overrides keyed by player key, used as that player's baseline rate.
    """
    return _calc_off_luck_adj(
        sample, sample_players, baseline, baseline_players_by_id, avg_efficiency,
        sample_3pa_override, manual_overrides, include_rebounding=True,
    )


def calc_off_player_luck_adj(
    sample: StatSet, baseline: StatSet, avg_efficiency: float
) -> OffLuckAdjustmentDiags:
    """Offensive luck adjustment of one player: a lineup of one.

    A single player has no lineup offensive rebounding, so ORB% is not
    regressed.
    """
    return _calc_off_luck_adj(
        sample, [sample], baseline, {baseline.key: baseline}, avg_efficiency,
        None, None, include_rebounding=False,
    )


# ---------------------------------------------------------------------------
# Defense
# ---------------------------------------------------------------------------

def calc_def_team_luck_adj(
    sample: StatSet,
    baseline: StatSet,
    avg_efficiency: float,
    sample_3pa_override: Optional[float] = None,
) -> DefLuckAdjustmentDiags:
    """Defensive luck adjustment of a team or lineup sample.

    Defense is judged against whichever opponents were faced, so no lineup
    composition weighting is needed.
    """
    diags = DefLuckAdjustmentDiags(avg_eff=avg_efficiency)

    diags.sample_3p = _pre_luck(sample, "def_3p")
    diags.sample_3pa = (
        sample_3pa_override if sample_3pa_override is not None
        else sample.value("total_def_3p_attempts")
    )
    diags.sample_3p_opp = sample.value("def_3p_opp")
    diags.sample_2p = _pre_luck(sample, "def_2p")
    diags.sample_2pa = sample.value("total_def_2p_attempts")
    diags.sample_ft = _pre_luck(sample, "def_ft")
    diags.sample_fta = sample.value("total_def_fta")
    diags.sample_to = _pre_luck(sample, "def_to")
    diags.sample_fga = sample.value("total_def_fga")
    diags.sample_fgm = sample.value("total_def_fgm")
    diags.sample_poss = sample.value("def_poss")
    diags.sample_def_orb = _pre_luck(sample, "def_orb")
    diags.sample_def_ppp = _pre_luck(sample, "def_ppp")
    diags.sample_off_sos = sample.value("off_adj_opp") or avg_efficiency

    diags.base_3p = _pre_luck(baseline, "def_3p")
    diags.base_3pa = baseline.value("total_def_3p_attempts")
    diags.base_2p = _pre_luck_or(baseline, "def_2p", diags.sample_2p)
    diags.base_ft = _pre_luck(baseline, "def_ft") or diags.sample_ft
    diags.base_to = _pre_luck_or(baseline, "def_to", diags.sample_to)
    diags.base_orb = _pre_luck_or(baseline, "def_orb", diags.sample_def_orb)

    # How well these particular opponents shoot, when known
    if diags.sample_3p_opp > 0:
        diags.target_3p = _shrink(
            diags.base_3p, diags.base_3pa, diags.sample_3p_opp, DEF_3P_SOS_PRIOR_ATTEMPTS
        )
    else:
        diags.target_3p = diags.base_3p

    diags.adj_3p = _shrink(diags.sample_3p, diags.sample_3pa, diags.target_3p, SAMPLE_3P_PRIOR_ATTEMPTS)
    diags.adj_2p = _sample_shrink(
        sample, "def_2p", diags.sample_2p, diags.sample_2pa, diags.base_2p, SAMPLE_2P_PRIOR_ATTEMPTS
    )
    diags.adj_ft = _shrink(diags.sample_ft, diags.sample_fta, diags.base_ft, SAMPLE_FT_PRIOR_ATTEMPTS)
    diags.adj_to = _sample_shrink(
        sample, "def_to", diags.sample_to, diags.sample_poss, diags.base_to, SAMPLE_TO_PRIOR_POSS
    )
    diags.adj_orb = _sample_shrink(
        sample, "def_orb", diags.sample_def_orb, diags.sample_poss, diags.base_orb, SAMPLE_ORB_PRIOR_POSS
    )
    diags.delta_3p = diags.adj_3p - diags.sample_3p
    diags.delta_2p = diags.adj_2p - diags.sample_2p
    diags.delta_ft = diags.adj_ft - diags.sample_ft
    diags.delta_to = diags.adj_to - diags.sample_to
    diags.delta_orb = diags.adj_orb - diags.sample_def_orb

    diags.delta_3p_made = diags.delta_3p * sample.value("total_def_3p_attempts")
    diags.delta_2p_made = diags.delta_2p * diags.sample_2pa
    diags.delta_ftm = diags.delta_ft * diags.sample_fta
    diags.delta_tos = diags.delta_to * diags.sample_poss
    diags.delta_orbs = diags.delta_orb * _misses(
        diags.sample_fga, diags.sample_fgm, sample.has_value("total_def_fgm")
    )
    diags.delta_pts = _points_delta(
        diags.delta_2p_made, diags.delta_3p_made, diags.delta_ftm, diags.delta_tos,
        diags.delta_orbs, diags.sample_def_orb, diags.sample_def_ppp,
    )
    diags.delta_def_efg = (
        (diags.delta_2p_made + 1.5 * diags.delta_3p_made) / diags.sample_fga
        if diags.sample_fga > 0 else 0.0
    )
    diags.delta_def_ppp = 100 * diags.delta_pts / diags.sample_poss if diags.sample_poss > 0 else 0.0
    diags.delta_def_adj_ppp = (
        diags.delta_def_ppp * avg_efficiency / diags.sample_off_sos if diags.sample_off_sos else 0.0
    )
    return diags


def _player_as_def_sample(player: StatSet) -> StatSet:
    """A player's on-court opponent stats under the team defensive names."""
    out = StatSet(key=player.key, code=player.code, doc_count=player.doc_count)
    attempts_3p = player.value("oppo_total_def_3p_attempts")
    attempts_2p = player.value("oppo_total_def_2p_attempts")
    fta = player.value("oppo_total_def_fta")
    poss = player.value("oppo_total_def_poss")
    out.set_value(
        "def_3p", player.value("oppo_total_def_3p_made") / attempts_3p if attempts_3p > 0 else 0.0
    )
    out.set_value("def_3p_opp", player.value("oppo_def_3p_opp"))
    out.set_value("def_poss", poss)
    out.set_value("total_def_3p_attempts", attempts_3p)
    if attempts_2p > 0:
        out.set_value("def_2p", player.value("oppo_total_def_2p_made") / attempts_2p)
        out.set_value("total_def_2p_attempts", attempts_2p)
    if poss > 0 and player.has_value("oppo_total_def_to"):
        out.set_value("def_to", player.value("oppo_total_def_to") / poss)
    out.set_value("def_ft", player.value("oppo_total_def_ftm") / fta if fta > 0 else 0.0)
    out.set_value("total_def_fta", fta)
    out.set_value("total_def_fga", player.value("oppo_total_def_fga"))
    if player.has_value("oppo_total_def_fgm"):
        out.set_value("total_def_fgm", player.value("oppo_total_def_fgm"))
    out.set_value(
        "def_ppp", 100 * player.value("oppo_total_def_pts") / poss if poss > 0 else 0.0
    )
    out.set_value("off_adj_opp", player.value("off_adj_opp"))
    return out


def calc_def_player_luck_adj(
    sample: StatSet, baseline: StatSet, avg_efficiency: float
) -> DefLuckAdjustmentDiags:
    """Defensive luck adjustment of one player, from the opponents faced on court.

    Rebounding and schedule strength have no individual meaning, so
    ``sample_def_orb`` and ``sample_off_sos`` are reported as 0.
    """
    player_sample = _player_as_def_sample(sample)
    diags = calc_def_team_luck_adj(
        player_sample,
        _player_as_def_sample(baseline),
        avg_efficiency,
        sample.value("oppo_total_def_3p_attempts"),
    )
    return dataclasses.replace(diags, sample_def_orb=0.0, sample_off_sos=0.0)


# ---------------------------------------------------------------------------
# Injection
# ---------------------------------------------------------------------------

def _reset_luck(stat_set: StatSet) -> None:
    for name in list(stat_set):
        metric = stat_set[name]
        if metric.override != LUCK_ADJUSTED:
            continue
        if metric.extra_info == DERIVED_OPPO_DEF_3P:
            del stat_set[name]
            continue
        stat_set[name] = Metric(
            value=metric.old_value,
            color_override=metric.color_override,
            extra_info=metric.extra_info,
        )


def inject_luck(
    stat_set: StatSet,
    off_adj: Optional[OffLuckAdjustmentDiags],
    def_adj: Optional[DefLuckAdjustmentDiags],
) -> None:
    """Apply luck deltas to ``stat_set`` in place.

    Every adjusted metric becomes ``{value: base + delta, old_value: base,
    override: "Luck adjusted"}``.  The base is always the pre-luck value, so
    injecting the same bundles twice is the same as once, and passing
    ``None`` for both bundles restores the StatSet exactly.  Metrics that are
    absent, valueless or carry another override are left alone.
    """
    _reset_luck(stat_set)
    if off_adj is None and def_adj is None:
        return

    deltas: Dict[str, float] = {}
    if off_adj is not None:
        deltas.update(off_adj.deltas())
    if def_adj is not None:
        deltas.update(def_adj.deltas())
        attempts = stat_set.value("oppo_total_def_3p_attempts")
        if "oppo_def_3p" not in stat_set and attempts > 0:
            stat_set["oppo_def_3p"] = Metric(
                value=stat_set.value("oppo_total_def_3p_made") / attempts,
                extra_info=DERIVED_OPPO_DEF_3P,
            )

    for name, delta in deltas.items():
        metric = stat_set.get(name)
        if metric is None or metric.value is None:
            continue
        if metric.override is not None or metric.old_value is not None:
            logger.debug("Not luck adjusting %s: already overridden (%s)", name, metric.override)
            continue
        stat_set[name] = Metric(
            value=metric.value + delta,
            old_value=metric.value,
            override=LUCK_ADJUSTED,
            color_override=metric.color_override,
            extra_info=metric.extra_info,
        )
