"""
Individual offensive and defensive ratings.

Both ratings follow the Basketball-Reference individual rating method
(https://www.basketball-reference.com/about/ratings.html).  Every team
number in a player's StatSet is measured while that player is on the floor,
so the ``MP / (Team_MP / 5)`` terms of the published formulas are all 1.

Each calculator returns ``(rating, adj_rating, raw_rating, raw_adj_rating,
diagnostics)``.  ``raw_*`` hold the ratings recomputed with overrides
disabled, and are only populated when ``override_adjusted`` is set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..models.stat_set import Metric, StatSet
from .overrides import override_diff

logger = logging.getLogger(__name__)

# Fraction of free throw attempts that end a possession
FTA_TO_POSS = 0.475

# Offensive rebounds are worth more than a plain miss-recovery
ORB_MISS_FACTOR = 1.07

# Usage-regressed adjusted ORtg (from the PORPAGATU method)
SD_SLOPE_PER_USAGE = -0.144
SD_INTERCEPT = 13.023
SD_AT_USAGE_20 = 10.143
USAGE_BONUS_ABOVE_20 = 1.25
USAGE_BONUS_BELOW_20 = 1.5

# Team giveaways are split evenly across the lineup
PLAYERS_ON_FLOOR = 5

# Largest TO% an override can impose
MAX_OVERRIDE_TO_PCT = 0.9

# Shot zones as (field suffix, assist zone id, points per make)
SHOT_ZONES: List[Tuple[str, str, int]] = [
    ("2prim", "rim", 2),
    ("2pmid", "mid", 2),
    ("3p", "3p", 3),
]

RatingResult = Tuple[
    Optional[Metric], Optional[Metric], Optional[Metric], Optional[Metric], Any
]


@dataclass
class TeamTurnoverContext:
    """Team turnovers vs the sum of turnovers attributed to individual players."""

    total_off_to: float = 0.0
    sum_total_off_to: float = 0.0


@dataclass
class ORtgDiagnostics:
    """Every intermediate of the ORtg calculation, for explanation views."""

    # Basic player numbers
    raw_fga: float = 0.0
    raw_fgx: float = 0.0
    raw_fgm: float = 0.0
    pts_fgm: float = 0.0
    raw_ftm: float = 0.0
    raw_assist: float = 0.0
    raw_assist_info: List[str] = field(default_factory=list)
    raw_pts: float = 0.0
    raw_orb: float = 0.0
    raw_to: float = 0.0
    raw_team_to_share: float = 0.0
    team_to_ratio: float = 0.0
    raw_3_fga: float = 0.0
    raw_2mid_fga: float = 0.0
    raw_2rim_fga: float = 0.0
    raw_3_fgm: float = 0.0
    raw_2mid_fgm: float = 0.0
    raw_2rim_fgm: float = 0.0
    # Basic team numbers
    team_orb: float = 0.0
    team_pts: float = 0.0
    team_fga: float = 0.0
    team_fgm: float = 0.0
    team_fta: float = 0.0
    team_ft_pct: float = 0.0
    team_orb_pct: float = 0.0
    team_to: float = 0.0
    team_poss: float = 0.0
    # Points produced
    efg: float = 0.0
    team_pts_per_score: float = 0.0
    team_ft_hit_one_plus: float = 0.0
    team_prob_ft_hit_one_plus: float = 0.0
    roster_orb: float = 0.0
    team_orb_credit_to_rebounder: float = 0.0
    team_orb_credit_to_scorer: float = 0.0
    team_score_from_rebound_pct: float = 0.0
    team_orb_weight: float = 0.0
    others_assist: float = 0.0
    other_efg: float = 0.0
    other_efg_info: List[str] = field(default_factory=list)
    other_pts_per_fgm: float = 0.0
    team_orb_contrib_pct: float = 0.0
    team_scored_play_pct: float = 0.0
    team_assist_rate_classic: float = 0.0
    pp_fg_team_ast_pct_classic: float = 0.0
    team_assist_rate: float = 0.0
    pp_fg_team_ast_pct: float = 0.0
    team_assisted_efg: float = 0.0
    pts_prod: float = 0.0
    pp_orb: float = 0.0
    pp_assist: float = 0.0
    pp_assist_classic: float = 0.0
    pp_fg: float = 0.0
    # Possessions
    off_poss: float = 0.0
    ft_poss: float = 0.0
    ft_pct: float = 0.0
    missed_both_fts: float = 0.0
    off_plays_less_poss: float = 0.0
    fg_part: float = 0.0
    ft_part: float = 0.0
    ast_part: float = 0.0
    ast_part_classic: float = 0.0
    orb_part: float = 0.0
    team_scoring_poss: float = 0.0
    team_plays: float = 0.0
    adj_poss: float = 0.0
    scoring_poss: float = 0.0
    fgx_poss: float = 0.0
    ftx_poss: float = 0.0
    # Adjusted
    o_rtg: float = 0.0
    o_rtg_classic: float = 0.0
    def_sos: float = 0.0
    avg_eff: float = 0.0
    sd_at_usage: float = 0.0
    sds_above_mean: float = 0.0
    sd_at_usage_20: float = SD_AT_USAGE_20
    regressed_o_rtg: float = 0.0
    usage: float = 0.0
    usage_bonus: float = 0.0
    adj_o_rtg: float = 0.0
    adj_o_rtg_plus: float = 0.0


@dataclass
class DRtgDiagnostics:
    """Every intermediate of the DRtg calculation, for explanation views."""

    # Basic player numbers
    stl: float = 0.0
    blk: float = 0.0
    drb: float = 0.0
    pf_pct: float = 0.0
    # Advanced player numbers
    player_rtg: float = 0.0
    player_delta: float = 0.0
    sc_poss_conceded: float = 0.0
    no_shot_credit: float = 0.0
    rebound_credit: float = 0.0
    miss_ft_credit: float = 0.0
    stops_ind_pct: float = 0.0
    stops_team_pct: float = 0.0
    # Basic team numbers
    team_blk: float = 0.0
    oppo_pts: float = 0.0
    oppo_poss: float = 0.0
    oppo_fga: float = 0.0
    oppo_fgm: float = 0.0
    oppo_ftm: float = 0.0
    oppo_fta: float = 0.0
    oppo_ft_poss: float = 0.0
    oppo_tov: float = 0.0
    team_stl: float = 0.0
    opponent_orb_pct: float = 0.0
    opponent_fg_pct: float = 0.0
    # Advanced team numbers
    team_orb_credit_to_defender: float = 0.0
    team_orb_credit_to_rebounder: float = 0.0
    team_dvs_reb_credit: float = 0.0
    oppo_fg_miss: float = 0.0
    oppo_non_stl_tov: float = 0.0
    team_miss_weight: float = 0.0
    oppo_ft_pct: float = 0.0
    oppo_ft_hit_one_plus: float = 0.0
    oppo_prob_ft_hit_one_plus: float = 0.0
    oppo_sc_poss: float = 0.0
    oppo_pts_per_score: float = 0.0
    team_rtg: float = 0.0
    # Adjusted
    d_rtg: float = 0.0
    off_sos: float = 0.0
    avg_eff: float = 0.0
    adj_d_rtg: float = 0.0
    adj_d_rtg_plus: float = 0.0
    # Filled in by the on-ball defense phases
    on_ball_def: Any = None
    on_ball_diags: Any = None


def _safe_div(num: float, denom: float, default: float = 0.0) -> float:
    return num / denom if denom else default


# ---------------------------------------------------------------------------
# Offense
# ---------------------------------------------------------------------------

def build_off_overrides(stat_set: StatSet) -> Dict[str, Metric]:
    """Re-derive the counting stats that depend on overridden offensive rates.

    Attempts are held fixed.  A TO% override adds the extra turnovers that
    hit the new rate: ``(tos + x) / (poss + x) = new_to%`` gives
    ``x = (new_to% * poss - tos) / (1 - new_to%)``.
    """
    three_tries = stat_set.value("total_off_3p_attempts")
    two_tries = stat_set.value("total_off_2p_attempts")
    ft_tries = stat_set.value("total_off_fta")

    extra_3pm = override_diff(stat_set.get("off_3p")) * three_tries
    extra_2pm = override_diff(stat_set.get("off_2p")) * two_tries
    extra_fgm = extra_3pm + extra_2pm
    extra_ftm = override_diff(stat_set.get("off_ft")) * ft_tries

    extra_tos = 0.0
    to_metric = stat_set.get("off_to")
    if (
        to_metric is not None
        and to_metric.old_value is not None
        and to_metric.value != to_metric.old_value
    ):
        new_to_pct = min(to_metric.value or 0.0, MAX_OVERRIDE_TO_PCT)
        extra_tos = (
            new_to_pct * stat_set.value("off_poss") - stat_set.value("total_off_to")
        ) / (1 - new_to_pct)

    def plus(name: str, extra: float) -> Metric:
        return Metric(value=stat_set.value(name) + extra)

    return {
        "total_off_fgm": plus("total_off_fgm", extra_fgm),
        "total_off_2p_made": plus("total_off_2p_made", extra_2pm),
        "total_off_3p_made": plus("total_off_3p_made", extra_3pm),
        "total_off_ftm": plus("total_off_ftm", extra_ftm),
        "total_off_to": plus("total_off_to", extra_tos),
        "off_poss": plus("off_poss", extra_tos),
        "team_total_off_pts": plus("team_total_off_pts", 3 * extra_3pm + 2 * extra_2pm + extra_ftm),
        "team_total_off_fgm": plus("team_total_off_fgm", extra_fgm),
        "team_total_off_3p_made": plus("team_total_off_3p_made", extra_3pm),
        "team_total_off_ftm": plus("team_total_off_ftm", extra_ftm),
        "team_total_off_to": plus("team_total_off_to", extra_tos),
    }


def build_ortg(
    stat_set: Optional[StatSet],
    roster_stats_by_code: Dict[str, StatSet],
    team_turnover_context: Optional[TeamTurnoverContext],
    avg_efficiency: float,
    calc_diags: bool,
    override_adjusted: bool,
) -> RatingResult:
    """Offensive rating (points produced per 100 individual possessions).

    Args:
        stat_set: Player stats; team stats are the on-floor team totals.
        roster_stats_by_code: Teammates by player code, for assisted-shot eFG.
        team_turnover_context: Team-wide vs player-attributed turnovers; the
            unattributed share of the on-floor team turnovers is charged to
            the player when ``off_team_poss_pct`` is populated.
        avg_efficiency: League average points per 100 possessions.
        calc_diags: Build the ``ORtgDiagnostics`` bundle.
        override_adjusted: Re-derive counting stats from overridden rates.
    """
    if stat_set is None:
        return None, None, None, None, None

    overrides = build_off_overrides(stat_set) if override_adjusted else {}

    def stat_get(key: str) -> float:
        if key in overrides:
            return overrides[key].value or 0.0
        return stat_set.value(key)

    fga = stat_set.value("total_off_fga")
    fgm = stat_get("total_off_fgm")
    ftm = stat_get("total_off_ftm")
    fta = stat_set.value("total_off_fta")
    ast = stat_set.value("total_off_assist")
    tov = stat_get("total_off_to")
    orb = stat_set.value("total_off_orb")
    fg2pm = stat_get("total_off_2p_made")
    fg3pm = stat_get("total_off_3p_made")
    off_poss = stat_get("off_poss")
    usage = 100 * stat_set.value("off_usage")
    def_sos = stat_set.value("def_adj_opp") or avg_efficiency

    made = [stat_get(f"total_off_{loc}_made") for loc, _, _ in SHOT_ZONES]
    attempts = [stat_get(f"total_off_{loc}_attempts") or 1.0 for loc, _, _ in SHOT_ZONES]
    assisted_pct = [stat_get(f"off_{loc}_ast") for loc, _, _ in SHOT_ZONES]
    assist_totals = [stat_get(f"total_off_ast_{zone}") for _, zone, _ in SHOT_ZONES]
    shot_bonus = [bonus for _, _, bonus in SHOT_ZONES]

    team_ast = stat_set.value("team_total_off_assist")
    team_fgm = stat_get("team_total_off_fgm")
    team_fga = stat_set.value("team_total_off_fga")
    team_ftm = stat_get("team_total_off_ftm")
    team_fta = stat_set.value("team_total_off_fta")
    team_pts = stat_get("team_total_off_pts")
    team_tov = stat_get("team_total_off_to")
    team_3pm = stat_get("team_total_off_3p_made")
    team_poss = stat_get("team_total_off_poss")

    # Team giveaways (shot clock, lane violations, ...) nobody was charged
    # with.  The ratio of team-wide to player-attributed turnovers says how
    # much of the on-floor team count was never attributed; the five players
    # on the floor share that remainder equally.
    team_to_ratio = 0.0
    team_to_share = 0.0
    poss_pct = stat_set.get("off_team_poss_pct")
    if (
        team_turnover_context is not None
        and poss_pct is not None
        and poss_pct.value is not None
        and team_turnover_context.sum_total_off_to > 0
    ):
        team_to_ratio = team_turnover_context.total_off_to / team_turnover_context.sum_total_off_to
        on_floor_tos = team_tov or team_turnover_context.total_off_to * poss_pct.value
        if team_to_ratio > 1:
            team_to_share = on_floor_tos * (1 - 1 / team_to_ratio)
            tov += team_to_share / PLAYERS_ON_FLOOR

    team_orb = stat_set.value("team_total_off_orb")
    opponent_drb = stat_set.value("oppo_total_def_drb")
    sum_players_orb = sum(p.value("total_off_orb") for p in roster_stats_by_code.values())
    global_orb = sum(p.value("team_total_off_orb") for p in roster_stats_by_code.values()) / 5
    roster_orb = team_orb * (sum_players_orb / (global_orb or 1))

    pts_from_fg = 2 * fg2pm + 3 * fg3pm
    efg = _safe_div(pts_from_fg, 2 * fga)
    team_pts_from_fg = team_pts - team_ftm
    others_fga = team_fga - fga
    others_fgm = team_fgm - fgm
    others_ast = team_ast - ast
    others_efg = _safe_div(team_pts_from_fg - pts_from_fg, 2 * others_fga) if others_fga > 0 else 0.0

    # Classic assist credit, kept for comparison in the diagnostics
    q_ast_classic = 1.14 * (others_ast / team_fgm) if team_fgm > 0 else 0.0
    team_assist_contrib_classic = (0.5 * efg) * q_ast_classic
    fg_part_classic = fgm * (1 - team_assist_contrib_classic)
    ast_part_classic = (
        0.5 * ((team_pts_from_fg - pts_from_fg) / (2 * others_fga)) * ast if others_fga > 0 else 0.0
    )

    # Zone-aware assist credit: (0.5 * zone eFG) of each assisted make
    fgm_minus_assist_penalty = []
    for index, player_made in enumerate(made):
        zone_efg = (0.5 * shot_bonus[index]) * (player_made / attempts[index])
        fgm_minus_assist_penalty.append(player_made * (1 - (0.5 * zone_efg) * assisted_pct[index]))
    fg_part = sum(fgm_minus_assist_penalty)
    q_ast = _safe_div(sum(assisted_pct[i] * m for i, m in enumerate(made)), fgm)
    team_assist_contrib = 1 - fg_part / fgm if fgm > 0 else 0.0
    team_assisted_efg = 2 * (team_assist_contrib / q_ast) if q_ast > 0 else 0.0

    efg_by_shot_type = []
    for index, (loc, zone, bonus) in enumerate(SHOT_ZONES):
        efg_part_1 = 0.5 * bonus
        total_count = assist_totals[index] or 1.0
        weighted = 0.0
        for code, count in stat_set.assist_targets.get(zone, {}).items():
            teammate = roster_stats_by_code.get(code)
            # Unknown teammates fall back to the team eFG
            zone_pct = teammate.value(f"off_{loc}") if teammate is not None else 0.0
            weighted += efg_part_1 * (zone_pct or (others_efg / efg_part_1)) * count
        efg_by_shot_type.append(weighted / total_count)
    ast_part = [(0.5 * zone_efg) * assist_totals[i] for i, zone_efg in enumerate(efg_by_shot_type)]

    prob_miss_both_ft = (1 - ftm / fta) ** 2 if fta > 0 else 0.0
    ft_part = (1 - prob_miss_both_ft) * FTA_TO_POSS * fta if fta > 0 else 0.0

    team_prob_hit_1plus_ft = 1 - (1 - team_ftm / team_fta) ** 2 if team_fta > 0 else 0.0
    team_scoring_poss = (
        team_fgm + team_prob_hit_1plus_ft * team_fta * FTA_TO_POSS if team_fta > 0 else 0.0
    )

    team_orb_pct = _safe_div(team_orb, team_orb + opponent_drb)
    num_team_plays = team_fga + team_fta * FTA_TO_POSS + team_tov
    team_play_pct = _safe_div(team_scoring_poss, num_team_plays) if num_team_plays > 0 else 0.0

    credit_to_rebounder = (1 - team_orb_pct) * team_play_pct
    credit_to_scorer = team_orb_pct * (1 - team_play_pct)
    team_orb_weight_denom = credit_to_rebounder + credit_to_scorer
    team_orb_weight = credit_to_rebounder / team_orb_weight_denom if team_orb_weight_denom > 0 else 0.0
    team_score_rebound_pct = (
        (roster_orb * team_play_pct) / team_scoring_poss if team_scoring_poss > 0 else 0.0
    )
    team_orb_contrib = team_orb_weight * team_score_rebound_pct

    orb_part = orb * team_orb_weight * team_play_pct

    sc_poss = (fg_part + sum(ast_part) + ft_part) * (1 - team_orb_contrib) + orb_part
    sc_poss_classic = (
        (fg_part_classic + ast_part_classic + ft_part) * (1 - team_orb_contrib) + orb_part
    )

    fgx_poss = (fga - fgm) * (1 - ORB_MISS_FACTOR * team_orb_pct)
    ftx_poss = prob_miss_both_ft * FTA_TO_POSS * fta if fta > 0 else 0.0
    tot_poss = sc_poss + fgx_poss + ftx_poss + tov

    pprod_fg_part_classic = pts_from_fg * (1 - team_assist_contrib_classic)
    pprod_fg_part = sum(f * shot_bonus[i] for i, f in enumerate(fgm_minus_assist_penalty))

    other_efg = (team_fgm - fgm + 0.5 * (team_3pm - fg3pm)) / others_fga if others_fga > 0 else 0.0
    other_pts_per_fgm = (team_pts_from_fg - pts_from_fg) / others_fgm if others_fgm > 0 else 0.0
    pprod_ast_part_classic = (0.5 * other_efg) * ast * other_pts_per_fgm
    pprod_ast_part = sum(shot_bonus[i] * a for i, a in enumerate(ast_part))

    team_fts_hit_1plus = (
        team_prob_hit_1plus_ft * FTA_TO_POSS * team_fta if team_fta > 0 else 0.0
    )
    team_pts_per_score = _safe_div(team_pts, team_fgm + team_fts_hit_1plus)
    pprod_orb_part = orb * team_orb_weight * team_play_pct * team_pts_per_score

    pprod = (pprod_fg_part + pprod_ast_part + ftm) * (1 - team_orb_contrib) + pprod_orb_part
    o_rtg = 100 * (pprod / tot_poss) if tot_poss > 0 else 0.0

    pprod_classic = (
        (pprod_fg_part_classic + pprod_ast_part_classic + ftm) * (1 - team_orb_contrib)
        + pprod_orb_part
    )
    tot_poss_classic = sc_poss_classic + fgx_poss + ftx_poss + tov
    o_rtg_classic = 100 * (pprod_classic / tot_poss_classic) if tot_poss_classic > 0 else 0.0

    # Adjusted efficiency, regressed by usage
    o_adj = avg_efficiency / (def_sos or 1)
    sd_at_usage = usage * SD_SLOPE_PER_USAGE + SD_INTERCEPT
    sds_above_mean = (o_rtg - avg_efficiency) / sd_at_usage if sd_at_usage > 0 else 0.0
    regressed_o_rtg = avg_efficiency + sds_above_mean * SD_AT_USAGE_20
    if usage > 20:
        usage_bonus = (usage - 20) * USAGE_BONUS_ABOVE_20
    else:
        usage_bonus = (usage - 20) * USAGE_BONUS_BELOW_20
    adj_o_rtg = (regressed_o_rtg + usage_bonus) * o_adj
    adj_o_rtg_plus = 0.2 * (adj_o_rtg - avg_efficiency)

    raw_rating: Optional[Metric] = None
    raw_adj_rating: Optional[Metric] = None
    if override_adjusted:
        raw_rating, raw_adj_rating, _, _, _ = build_ortg(
            stat_set, roster_stats_by_code, team_turnover_context, avg_efficiency, False, False
        )

    if tot_poss > 0:
        rating, adj_rating = Metric(value=o_rtg), Metric(value=adj_o_rtg_plus)
    else:
        rating, adj_rating = Metric(value=0.0), Metric(value=0.0)

    diags = None
    if calc_diags:
        diags = ORtgDiagnostics(
            raw_fga=fga,
            raw_fgx=fga - fgm,
            raw_fgm=fgm,
            pts_fgm=pts_from_fg,
            raw_ftm=ftm,
            raw_assist=ast,
            raw_assist_info=[f"{total:.0f}" for total in reversed(assist_totals)],  # 3P first
            raw_pts=pts_from_fg + ftm,
            raw_orb=orb,
            raw_to=tov,
            raw_team_to_share=team_to_share,
            team_to_ratio=team_to_ratio,
            raw_3_fga=stat_set.value("total_off_3p_attempts"),
            raw_2mid_fga=stat_set.value("total_off_2pmid_attempts"),
            raw_2rim_fga=stat_set.value("total_off_2prim_attempts"),
            raw_3_fgm=stat_get("total_off_3p_made"),
            raw_2mid_fgm=stat_set.value("total_off_2pmid_made"),
            raw_2rim_fgm=stat_set.value("total_off_2prim_made"),
            team_orb=team_orb,
            team_pts=team_pts,
            team_fga=team_fga,
            team_fgm=team_fgm,
            team_fta=team_fta,
            team_ft_pct=_safe_div(team_ftm, team_fta),
            team_orb_pct=team_orb_pct,
            team_to=team_tov,
            team_poss=team_poss,
            efg=efg,
            team_pts_per_score=team_pts_per_score,
            team_ft_hit_one_plus=team_fts_hit_1plus,
            team_prob_ft_hit_one_plus=team_prob_hit_1plus_ft,
            roster_orb=roster_orb,
            team_orb_credit_to_rebounder=credit_to_rebounder,
            team_orb_credit_to_scorer=credit_to_scorer,
            team_score_from_rebound_pct=team_score_rebound_pct,
            team_orb_weight=team_orb_weight,
            others_assist=others_ast,
            other_efg=other_efg,
            other_efg_info=[f"{100 * e:.1f}" for e in reversed(efg_by_shot_type)],  # 3P first
            other_pts_per_fgm=other_pts_per_fgm,
            team_orb_contrib_pct=team_orb_contrib,
            team_scored_play_pct=team_play_pct,
            team_assist_rate_classic=q_ast_classic,
            pp_fg_team_ast_pct_classic=team_assist_contrib_classic,
            team_assist_rate=q_ast,
            pp_fg_team_ast_pct=team_assist_contrib,
            team_assisted_efg=team_assisted_efg,
            pts_prod=pprod,
            pp_orb=pprod_orb_part,
            pp_assist=pprod_ast_part,
            pp_assist_classic=pprod_ast_part_classic,
            pp_fg=pprod_fg_part,
            off_poss=off_poss,
            ft_poss=FTA_TO_POSS * fta,
            ft_pct=_safe_div(ftm, fta),
            missed_both_fts=prob_miss_both_ft,
            off_plays_less_poss=fga + fta * FTA_TO_POSS + tov - off_poss,
            fg_part=fg_part,
            ft_part=ft_part,
            ast_part=sum(ast_part),
            ast_part_classic=ast_part_classic,
            orb_part=orb_part,
            team_scoring_poss=team_scoring_poss,
            team_plays=num_team_plays,
            adj_poss=tot_poss,
            scoring_poss=sc_poss,
            fgx_poss=fgx_poss,
            ftx_poss=ftx_poss,
            o_rtg=o_rtg,
            o_rtg_classic=o_rtg_classic,
            def_sos=def_sos,
            avg_eff=avg_efficiency,
            sd_at_usage=sd_at_usage,
            sds_above_mean=sds_above_mean,
            regressed_o_rtg=regressed_o_rtg,
            usage=usage,
            usage_bonus=usage_bonus,
            adj_o_rtg=adj_o_rtg,
            adj_o_rtg_plus=adj_o_rtg_plus,
        )

    return rating, adj_rating, raw_rating, raw_adj_rating, diags


# ---------------------------------------------------------------------------
# Defense
# ---------------------------------------------------------------------------

def build_def_overrides(stat_set: StatSet) -> Dict[str, Metric]:
    """Opponent makes and points implied by an ``oppo_def_3p`` override."""
    three_tries = stat_set.value("oppo_total_def_3p_attempts")
    extra_3pm = override_diff(stat_set.get("oppo_def_3p")) * three_tries
    return {
        "oppo_total_def_pts": Metric(value=stat_set.value("oppo_total_def_pts") + 3 * extra_3pm),
        "oppo_total_def_fgm": Metric(value=stat_set.value("oppo_total_def_fgm") + extra_3pm),
    }


def build_drtg(
    stat_set: Optional[StatSet],
    avg_efficiency: float,
    calc_diags: bool,
    override_adjusted: bool,
) -> RatingResult:
    """Defensive rating (points allowed per 100 possessions with the player on court).

    Stops are credited to the individual (steals, blocks, defensive rebounds,
    missed free throws after their fouls) and to the team (forced misses and
    non-steal turnovers, shared five ways).
    """
    if stat_set is None:
        return None, None, None, None, None

    overrides = build_def_overrides(stat_set) if override_adjusted else {}

    def stat_get(key: str) -> float:
        if key in overrides:
            return overrides[key].value or 0.0
        return stat_set.value(key)

    stl = stat_set.value("total_off_stl")
    blk = stat_set.value("total_off_blk")
    drb = stat_set.value("total_off_drb")
    pf = stat_set.value("total_off_foul")
    team_drb = stat_set.value("team_total_off_drb")
    team_blk = stat_set.value("team_total_off_blk")
    team_stl = stat_set.value("team_total_off_stl")
    team_pf = stat_set.value("team_total_off_foul")
    opponent_fga = stat_set.value("oppo_total_def_fga")
    opponent_fgm = stat_get("oppo_total_def_fgm")
    opponent_orb = stat_set.value("oppo_total_def_orb")
    opponent_tov = stat_set.value("oppo_total_def_to")
    opponent_fta = stat_set.value("oppo_total_def_fta")
    opponent_ftm = stat_set.value("oppo_total_def_ftm")
    opponent_poss = stat_set.value("oppo_total_def_poss")
    opponent_pts = stat_get("oppo_total_def_pts")

    opponent_ft_poss = FTA_TO_POSS * opponent_fta

    # Credit for a miss + defensive rebound is split between forcing the miss
    # and securing the rebound, by their relative difficulty
    dfg_pct = _safe_div(opponent_fgm, opponent_fga)
    team_dor_pct = _safe_div(opponent_orb, opponent_orb + team_drb)
    credit_to_shot_defense = dfg_pct * (1 - team_dor_pct)
    credit_to_rebounder = (1 - dfg_pct) * team_dor_pct
    fm_wt = _safe_div(credit_to_shot_defense, credit_to_shot_defense + credit_to_rebounder)

    team_miss_weight = fm_wt * (1 - ORB_MISS_FACTOR * team_dor_pct)
    pf_pct = _safe_div(pf, team_pf)
    opponent_miss_all_fts = (1 - opponent_ftm / opponent_fta) ** 2 if opponent_fta > 0 else 0.0
    no_shot_credit = stl + blk * team_miss_weight
    rebound_credit = drb * (1 - fm_wt)
    ft_miss_credit = pf_pct * opponent_ft_poss * opponent_miss_all_fts
    stops_ind = no_shot_credit + rebound_credit + ft_miss_credit

    opponent_fg_miss = opponent_fga - opponent_fgm - team_blk
    opponent_non_stl_tov = opponent_tov - team_stl
    stops_team = 0.2 * (opponent_fg_miss * team_miss_weight + opponent_non_stl_tov)

    stops = stops_ind + stops_team
    stop_pct = _safe_div(stops, 0.2 * opponent_poss)

    opponent_hit_fts = 1 - opponent_miss_all_fts
    team_d_rtg = 100 * _safe_div(opponent_pts, opponent_poss)

    sc_poss = opponent_fgm + opponent_hit_fts * opponent_ft_poss
    d_pts_per_sc_poss = _safe_div(opponent_pts, sc_poss)

    player_d_rtg = 100 * d_pts_per_sc_poss * (1 - stop_pct)
    player_delta = 0.2 * (player_d_rtg - team_d_rtg)

    d_rtg = team_d_rtg + player_delta
    off_sos = stat_set.value("off_adj_opp") or avg_efficiency
    adj_d_rtg = d_rtg * (avg_efficiency / off_sos) if off_sos > 0 else 0.0
    adj_d_rtg_plus = 0.2 * (adj_d_rtg - avg_efficiency)

    raw_rating: Optional[Metric] = None
    raw_adj_rating: Optional[Metric] = None
    if override_adjusted:
        raw_rating, raw_adj_rating, _, _, _ = build_drtg(stat_set, avg_efficiency, False, False)

    if opponent_poss > 0:
        rating, adj_rating = Metric(value=d_rtg), Metric(value=adj_d_rtg_plus)
    else:
        rating, adj_rating = Metric(value=0.0), Metric(value=0.0)

    diags = None
    if calc_diags:
        diags = DRtgDiagnostics(
            stl=stl,
            blk=blk,
            drb=drb,
            pf_pct=pf_pct,
            player_rtg=player_d_rtg,
            player_delta=player_delta,
            sc_poss_conceded=1 - stop_pct,
            no_shot_credit=no_shot_credit,
            rebound_credit=rebound_credit,
            miss_ft_credit=ft_miss_credit,
            stops_ind_pct=_safe_div(stops_ind, 0.2 * opponent_poss),
            stops_team_pct=_safe_div(stops_team, 0.2 * opponent_poss),
            team_blk=team_blk,
            oppo_pts=opponent_pts,
            oppo_poss=opponent_poss,
            oppo_fga=opponent_fga,
            oppo_fgm=opponent_fgm,
            oppo_ftm=opponent_ftm,
            oppo_fta=opponent_fta,
            oppo_ft_poss=opponent_ft_poss,
            oppo_tov=opponent_tov,
            team_stl=team_stl,
            opponent_orb_pct=team_dor_pct,
            opponent_fg_pct=dfg_pct,
            team_orb_credit_to_defender=credit_to_shot_defense,
            team_orb_credit_to_rebounder=credit_to_rebounder,
            team_dvs_reb_credit=fm_wt,
            oppo_fg_miss=opponent_fg_miss,
            oppo_non_stl_tov=opponent_non_stl_tov,
            team_miss_weight=team_miss_weight,
            oppo_ft_pct=_safe_div(opponent_ftm, opponent_fta),
            oppo_ft_hit_one_plus=opponent_hit_fts * opponent_ft_poss,
            oppo_prob_ft_hit_one_plus=opponent_hit_fts,
            oppo_sc_poss=sc_poss,
            oppo_pts_per_score=d_pts_per_sc_poss,
            team_rtg=team_d_rtg,
            d_rtg=d_rtg,
            off_sos=off_sos,
            avg_eff=avg_efficiency,
            adj_d_rtg=adj_d_rtg,
            adj_d_rtg_plus=adj_d_rtg_plus,
        )

    return rating, adj_rating, raw_rating, raw_adj_rating, diags
