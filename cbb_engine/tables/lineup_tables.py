"""
Player and lineup enrichment for stats tables.

These functions chain the calculators in the order the tables need them:
possession share, luck, manual overrides, ratings, on-ball defense and
positions.  They mutate the StatSets they are given, as documented per
function, and return lookups keyed by player or lineup key.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..models.player import IndivPosInfo, PlayerCodeId, RosterEntry
from ..models.stat_set import Metric, StatSet
from ..stats.lineup_positions import (
    LineupOverrideRule,
    build_positional_aware_filter,
    order_lineup,
    test_positional_aware_filter as matches_filter,
)
from ..stats.luck import (
    calc_def_player_luck_adj,
    calc_def_team_luck_adj,
    calc_off_player_luck_adj,
    calc_off_team_luck_adj,
    inject_luck,
)
from ..stats.on_ball_defense import (
    OnBallDefenseModel,
    build_on_ball_defense_adjustments_phase1,
    inject_on_ball_defense_adjustments_phase2,
)
from ..stats.overrides import LUCK_ADJUSTED, apply_overrides
from ..stats.positions import build_position, build_position_confidences
from ..stats.ratings import TeamTurnoverContext, build_drtg, build_ortg

logger = logging.getLogger(__name__)

TOTAL_LINEUP_ID = "TOTAL"


def _rating_metric(
    rating: Optional[Metric], raw: Optional[Metric], reason: Optional[str], scale: float = 1.0
) -> Metric:
    value = rating.value * scale if rating is not None and rating.value is not None else None
    old_value = raw.value * scale if raw is not None and raw.value is not None else None
    return Metric(value=value, old_value=old_value, override=reason)


def build_baseline_player_info(
    players: Optional[List[StatSet]],
    global_roster_stats_by_code: Dict[str, StatSet],
    team_stat: StatSet,
    avg_efficiency: float,
    adjust_for_luck: bool,
    luck_config_base: str = "baseline",
    manual_overrides_as_map: Optional[Dict[str, Dict[str, float]]] = None,
    on_ball_defense_by_code: Optional[Dict[str, OnBallDefenseModel]] = None,
) -> Dict[str, StatSet]:
    """Add ratings and derived stats to each baseline player, in place.

    For each player: ``off_team_poss_pct``/``def_team_poss_pct``, luck
    (``off_luck``/``def_luck`` when ``adjust_for_luck``), manual overrides,
    ``off_rtg``/``off_adj_rtg``/``off_adj_prod``/``off_usage``,
    ``def_rtg``/``def_adj_rtg``/``def_adj_prod``, the rating diagnostics,
    on-ball defense and roster metadata.

    Args:
        luck_config_base: ``"baseline"`` regresses luck toward the player's
            own sample, ``"season"`` toward the full-season stats in
            ``global_roster_stats_by_code``.
        manual_overrides_as_map: ``{row_id: {stat: new_val}}``, where a
            player's row id is its player key.

    Returns:
        The mutated players keyed by player key.
    """
    players = players or []
    manual_overrides_as_map = manual_overrides_as_map or {}
    on_ball_defense_by_code = on_ball_defense_by_code or {}

    for player in players:
        player.code = player.code or player.key
    roster_by_code = {p.code: p for p in players}

    turnover_context = TeamTurnoverContext(
        total_off_to=team_stat.value("total_off_to"),
        # Player turnovers are never luck adjusted, so no pre-luck lookup needed
        sum_total_off_to=sum(p.value("total_off_to") for p in players),
    )

    baseline_info: Dict[str, StatSet] = {}
    for player in players:
        player.set_value(
            "off_team_poss_pct",
            min(player.value("off_team_poss") / (team_stat.value("off_poss") or 1), 1.0),
        )
        player.set_value(
            "def_team_poss_pct",
            min(player.value("def_team_poss") / (team_stat.value("def_poss") or 1), 1.0),
        )

        if player.doc_count:
            if luck_config_base == "season":
                luck_base = global_roster_stats_by_code.get(player.code) or player
            else:
                luck_base = player
            off_luck = calc_off_player_luck_adj(player, luck_base, avg_efficiency) if adjust_for_luck else None
            def_luck = calc_def_player_luck_adj(player, luck_base, avg_efficiency) if adjust_for_luck else None
            if off_luck is not None:
                player.off_luck = off_luck
            if def_luck is not None:
                player.def_luck = def_luck
            inject_luck(player, off_luck, def_luck)

        reason, overrode_off_fields = apply_overrides(
            player, player.key, manual_overrides_as_map, adjust_for_luck
        )

        o_rtg, adj_o_rtg, raw_o_rtg, raw_adj_o_rtg, o_rtg_diag = build_ortg(
            player,
            roster_by_code,
            turnover_context,
            avg_efficiency,
            True,
            adjust_for_luck or overrode_off_fields,
        )
        d_rtg, adj_d_rtg, raw_d_rtg, raw_adj_d_rtg, d_rtg_diag = build_drtg(
            player, avg_efficiency, True, adjust_for_luck
        )
        def_reason = LUCK_ADJUSTED if adjust_for_luck else None

        player["off_rtg"] = _rating_metric(o_rtg, raw_o_rtg, reason)
        player["off_adj_rtg"] = _rating_metric(adj_o_rtg, raw_adj_o_rtg, reason)
        player["off_adj_prod"] = _rating_metric(
            adj_o_rtg, raw_adj_o_rtg, reason, player.value("off_team_poss_pct")
        )
        if o_rtg_diag is not None:
            player.set_value("off_usage", 0.01 * o_rtg_diag.usage)
        player.diag_off_rtg = o_rtg_diag

        player["def_rtg"] = _rating_metric(d_rtg, raw_d_rtg, def_reason)
        player["def_adj_rtg"] = _rating_metric(adj_d_rtg, raw_adj_d_rtg, def_reason)
        player["def_adj_prod"] = _rating_metric(
            adj_d_rtg, raw_adj_d_rtg, def_reason, player.value("def_team_poss_pct")
        )
        player.diag_def_rtg = d_rtg_diag

        on_ball = on_ball_defense_by_code.get(player.code)
        if d_rtg_diag is not None and on_ball is not None:
            d_rtg_diag.on_ball_def = on_ball
            d_rtg_diag.on_ball_diags = build_on_ball_defense_adjustments_phase1(
                player, d_rtg_diag, on_ball
            )

        roster_source = global_roster_stats_by_code.get(player.code)
        if roster_source is not None and roster_source.roster is not None:
            player.roster = roster_source.roster

        baseline_info[player.key] = player

    unmatched = set(on_ball_defense_by_code) - set(roster_by_code)
    if unmatched:
        logger.warning("On-ball defense samples with no matching player: %s", sorted(unmatched))
    if on_ball_defense_by_code:
        inject_on_ball_defense_adjustments_phase2(list(baseline_info.values()), team_stat)
    return baseline_info


def build_position_player_map(
    players: Optional[List[StatSet]],
    team_season_key: Optional[str] = None,
    external_roster: Optional[Dict[str, RosterEntry]] = None,
    position_overrides: Optional[Dict[str, Dict[str, str]]] = None,
) -> Dict[str, IndivPosInfo]:
    """Position confidences and class for each player, keyed by player key."""
    out: Dict[str, IndivPosInfo] = {}
    for player in players or []:
        roster = player.roster or (external_roster or {}).get(player.key)
        height = roster.height_inches if roster is not None else None
        confidences, diags = build_position_confidences(player, height)
        if player.roster is None and roster is not None:
            player.roster = roster
        pos_class, _ = build_position(
            confidences,
            player,
            team_season_key,
            diags.confs_no_height,
            position_overrides,
        )
        out[player.key] = IndivPosInfo(
            pos_confidences=list(confidences.values()),
            pos_class=pos_class,
            roster=roster,
        )
    return out


def sorter(sort_str: str) -> Callable[[StatSet], float]:
    """Sort key for ``"(asc|desc):<field>"``; ``diff_<x>`` sorts on off_x - def_x."""
    direction, _, field_name = sort_str.partition(":")
    sign = -1.0 if direction == "desc" else 1.0
    if field_name.startswith("diff_"):
        base = field_name[len("diff_"):]

        def key(stat: StatSet) -> float:
            return sign * (stat.value(f"off_{base}") - stat.value(f"def_{base}"))
    else:
        def key(stat: StatSet) -> float:
            return sign * stat.value(field_name)
    return key


def filter_lineups(
    lineups: List[StatSet],
    filter_str: str,
    min_poss: float = 0.0,
    team_season_key: Optional[str] = None,
    position_from_player_key: Optional[Dict[str, IndivPosInfo]] = None,
    sort_by: Optional[str] = None,
    max_size: Optional[int] = None,
    override_rules: Optional[Dict[str, List[LineupOverrideRule]]] = None,
    team: Optional[str] = None,
) -> List[StatSet]:
    """Lineups passing a minimum possession gate and a lineup filter.

    ``filter_str`` is a ``||``-separated OR of position-aware filters (see
    ``build_positional_aware_filter``).  Positional clauses are tested
    against the lineup in PG..C order.  With a ``team_season_key`` the
    team itself (code ``team``, defaulting to the key) is tested after
    the players, so filters can also match on team name.
    """
    or_fragments = [build_positional_aware_filter(frag) for frag in (filter_str or "").split("||")]
    filter_on_position = any(frag[2] for frag in or_fragments)
    team_entry = (
        [PlayerCodeId(code=team or team_season_key, id=team_season_key)] if team_season_key else []
    )

    def passes(lineup: StatSet) -> bool:
        if lineup.value("off_poss") < min_poss and lineup.value("def_poss") < min_poss:
            return False
        names = lineup.players
        if filter_on_position:
            names = order_lineup(names, position_from_player_key or {}, team_season_key, override_rules)
        names_and_team = names + team_entry
        return any(
            matches_filter(names_and_team, positives, negatives)
            for positives, negatives, _ in or_fragments
        )

    result = [lineup for lineup in lineups if lineup.key and passes(lineup)]
    if sort_by:
        result.sort(key=sorter(sort_by))
    if max_size is not None:
        result = result[:max_size]
    return result


def enrich_lineups(
    lineups: List[StatSet],
    baseline_team: StatSet,
    baseline_players_by_id: Dict[str, StatSet],
    avg_efficiency: float,
    adjust_for_luck: bool,
    team_season_key: Optional[str] = None,
    position_from_player_key: Optional[Dict[str, IndivPosInfo]] = None,
    override_rules: Optional[Dict[str, List[LineupOverrideRule]]] = None,
    luck_config_base: str = "baseline",
    season_team: Optional[StatSet] = None,
    season_players_by_id: Optional[Dict[str, StatSet]] = None,
) -> List[StatSet]:
    """Order each lineup's players and luck adjust it, in place.

    Lineups regress toward ``baseline_team`` and the baseline players, or
    with ``luck_config_base="season"`` toward ``season_team`` and the
    season players (falling back to the baseline ones where missing).  The
    3P volume used to shrink every lineup is the luck team's, so the
    adjusted lineups aggregate back to the adjusted team.
    """
    if luck_config_base == "season":
        luck_team = season_team or baseline_team
        season_players_by_id = season_players_by_id or {}
    else:
        luck_team = baseline_team
        season_players_by_id = {}

    for lineup in lineups:
        if lineup.key != TOTAL_LINEUP_ID:
            lineup.players = order_lineup(
                lineup.players, position_from_player_key or {}, team_season_key, override_rules
            )
        if not (adjust_for_luck and lineup.doc_count and lineup.key != TOTAL_LINEUP_ID):
            continue
        lineup_players = {
            p.id: season_players_by_id.get(p.id)
            or baseline_players_by_id.get(p.id)
            or StatSet(key=p.id, code=p.code)
            for p in lineup.players
        }
        off_3pa = luck_team.get("total_off_3p_attempts")
        def_3pa = luck_team.get("total_def_3p_attempts")
        off_luck = calc_off_team_luck_adj(
            lineup,
            list(lineup_players.values()),
            luck_team,
            lineup_players,
            avg_efficiency,
            off_3pa.value if off_3pa is not None else None,
        )
        def_luck = calc_def_team_luck_adj(
            lineup,
            luck_team,
            avg_efficiency,
            def_3pa.value if def_3pa is not None else None,
        )
        inject_luck(lineup, off_luck, def_luck)
        lineup.off_luck = off_luck
        lineup.def_luck = def_luck
    return lineups
