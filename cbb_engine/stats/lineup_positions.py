"""Lineup slot ordering and position-aware lineup filters."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..models.player import IndivPosInfo, PlayerCodeId

logger = logging.getLogger(__name__)

# Position class -> nominal slot (0 = PG .. 4 = C)
POS_CLASS_RANK: Dict[str, float] = {
    "PG": 0.0,
    "s-PG": 0.5,
    "CG": 1.0,
    "WG": 1.5,
    "G?": 1.5,
    "WF": 2.5,
    "S-PF": 3.0,
    "F/C?": 3.5,
    "PF/C": 3.5,
    "C": 4.0,
}
UNKNOWN_RANK = 2.0
UNIFORM_CONFIDENCES = [0.2] * 5

POS_SPEC_SLOTS: Dict[str, FrozenSet[int]] = {
    "1": frozenset({0}), "2": frozenset({1}), "3": frozenset({2}),
    "4": frozenset({3}), "5": frozenset({4}),
    "pg": frozenset({0}), "sg": frozenset({1}), "sf": frozenset({2}),
    "pf": frozenset({3}), "c": frozenset({4}),
    "g": frozenset({0, 1}), "f": frozenset({2, 3}),
}


@dataclass(frozen=True)
class LineupOverrideRule:
    """``first`` must be placed in an earlier slot than ``second``."""

    first: str
    second: str


@dataclass(frozen=True)
class FilterClause:
    """One ``name[=posSpec]`` clause; ``slots`` of ``None`` means any slot."""

    name: str
    slots: Optional[FrozenSet[int]] = None

    def matches(self, player: PlayerCodeId, slot: int) -> bool:
        if self.slots is not None and slot not in self.slots:
            return False
        return self.name in player.id.lower() or self.name in player.code.lower()


def _centroid(confidences: Sequence[float]) -> float:
    total = sum(confidences)
    if total <= 0:
        return UNKNOWN_RANK
    return sum(i * c for i, c in enumerate(confidences)) / total


def _matches_player(name: str, player: PlayerCodeId) -> bool:
    return name == player.id or name == player.code


def order_lineup(
    codes_and_ids: List[PlayerCodeId],
    players_by_id: Dict[str, IndivPosInfo],
    team_season_key: Optional[str] = None,
    override_rules: Optional[Dict[str, List[LineupOverrideRule]]] = None,
) -> List[PlayerCodeId]:
    """Order a lineup into PG, SG, SF, PF, C slots.

    Players are ranked by position class.  Players sharing a rank are
    assigned to that rank's slots by maximizing their total confidence in
    those slots.  The players are first put in a canonical order, so the
    result depends only on the set of players, not on the input order.
    """
    entries = []
    for player in codes_and_ids:
        info = players_by_id.get(player.id)
        confidences = list(info.pos_confidences) if info and info.pos_confidences else UNIFORM_CONFIDENCES
        rank = POS_CLASS_RANK.get(info.pos_class, UNKNOWN_RANK) if info else UNKNOWN_RANK
        entries.append((rank, _centroid(confidences), player.id, player.code, confidences, player))
    entries.sort(key=lambda e: e[:4])

    ordered: List[PlayerCodeId] = []
    start = 0
    while start < len(entries):
        end = start
        while end < len(entries) and entries[end][0] == entries[start][0]:
            end += 1
        group = entries[start:end]
        if len(group) == 1:
            ordered.append(group[0][5])
        else:
            slots = range(start, end)
            cost = np.array([[-e[4][min(s, 4)] for s in slots] for e in group])
            rows, cols = linear_sum_assignment(cost)
            by_slot = sorted(zip(cols, rows))
            ordered.extend(group[row][5] for _, row in by_slot)
        start = end

    for rule in (override_rules or {}).get(team_season_key or "", []):
        first = next((i for i, p in enumerate(ordered) if _matches_player(rule.first, p)), None)
        second = next((i for i, p in enumerate(ordered) if _matches_player(rule.second, p)), None)
        if first is not None and second is not None and first > second:
            logger.debug("Lineup rule for %s: swapping %s and %s", team_season_key, rule.first, rule.second)
            ordered[first], ordered[second] = ordered[second], ordered[first]
    return ordered


def _parse_pos_spec(spec: str) -> Optional[FrozenSet[int]]:
    slots = set()
    for token in spec.split("+"):
        token = token.strip().lower()
        if token in POS_SPEC_SLOTS:
            slots |= POS_SPEC_SLOTS[token]
        elif token:
            logger.debug("Ignoring unknown position token %r", token)
    return frozenset(slots) if slots else None


def build_positional_aware_filter(
    filter_expression: str,
) -> Tuple[List[FilterClause], List[FilterClause], bool]:
    """Parse ``name[=posSpec]`` clauses separated by ``;`` or ``,``.

    A leading ``-`` makes a clause negative.  ``posSpec`` is ``+``-joined
    tokens: ``1``-``5``, ``PG``/``SG``/``SF``/``PF``/``C``, ``G`` (slots 1-2)
    or ``F`` (slots 3-4).  Returns ``(positives, negatives,
    filters_on_position)``.
    """
    positives: List[FilterClause] = []
    negatives: List[FilterClause] = []
    for fragment in re.split(r"[;,]", filter_expression or ""):
        fragment = fragment.strip()
        negative = fragment.startswith("-")
        if negative:
            fragment = fragment[1:].strip()
        name, _, spec = fragment.partition("=")
        name = name.strip().lower()
        if not name:
            continue
        clause = FilterClause(name=name, slots=_parse_pos_spec(spec) if spec else None)
        (negatives if negative else positives).append(clause)
    filters_on_position = any(c.slots is not None for c in positives + negatives)
    return positives, negatives, filters_on_position


def test_positional_aware_filter(
    lineup: List[PlayerCodeId],
    positives: List[FilterClause],
    negatives: List[FilterClause],
) -> bool:
    """Every positive clause matches some player and no negative clause matches any."""
    def any_match(clause: FilterClause) -> bool:
        return any(clause.matches(player, slot) for slot, player in enumerate(lineup))

    return all(any_match(c) for c in positives) and not any(any_match(c) for c in negatives)
