"""
Positional classification of players.

A player's box score is reduced to six features (assist rate, A:TO,
free-throw shooting relative to eFG, and relative make rates at the three
shot zones).  A linear model per traditional position scores the
features; a softmax of the scores against each position's average score
gives the confidence vector ``{pos_pg, pos_sg, pos_sf, pos_pf, pos_c}``.
Height, when known, is blended in as a damped likelihood.

``build_position`` turns the confidence vector into one of the position
classes below through an ordered rule list, and returns the rule that
fired as a plain-text explanation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.stats import norm

from ..models.stat_set import StatSet

logger = logging.getLogger(__name__)

TRAD_POS_LIST = ["pos_pg", "pos_sg", "pos_sf", "pos_pf", "pos_c"]
PG, SG, SF, PF, C = range(5)

ID_TO_POSITION: Dict[str, str] = {
    "PG": "Pure PG",
    "s-PG": "Scoring PG",
    "CG": "Combo Guard",
    "WG": "Wing Guard",
    "WF": "Wing Forward",
    "S-PF": "Stretch PF",
    "PF/C": "Power Forward/Center",
    "C": "Center",
    "G?": "Unknown - probably Guard",
    "F/C?": "Unknown - probably Forward/Center",
}

GUARD_POSITIONS = ("PG", "s-PG", "CG", "WG")
FORWARD_CENTER_POSITIONS = ("WF", "S-PF", "PF/C", "C")
GUARD_FALLBACK = "G?"
FORWARD_CENTER_FALLBACK = "F/C?"

# ---------------------------------------------------------------------------
# Scoring model
# ---------------------------------------------------------------------------

FEATURE_NAMES = [
    "calc_assist_per_fga",
    "calc_ast_tov",
    "calc_ft_relative_inv",
    "calc_three_relative",
    "calc_mid_relative",
    "calc_rim_relative",
]

# D1 averages the relative features are built from
LEAGUE_3P_PCT = 0.34
LEAGUE_MID_PCT = 0.37
LEAGUE_RIM_PCT = 0.60

AVERAGE_FEATURES = np.array([0.12, 1.0, 0.70, 1.0, 1.0, 1.0])
FEATURE_SDS = np.array([0.08, 0.5, 0.12, 0.2, 0.2, 0.15])

# Rows in TRAD_POS_LIST order, columns in FEATURE_NAMES order
POSITION_WEIGHTS = np.array([
    [1.5, 0.2, -0.5, 0.2, 0.1, -0.4],
    [0.6, 0.1, -0.3, 0.4, 0.1, -0.2],
    [-0.1, 0.0, 0.1, 0.2, 0.0, 0.0],
    [-0.8, -0.1, 0.5, -0.2, 0.0, 0.3],
    [-1.5, -0.3, 1.0, -0.6, -0.2, 0.6],
])
POSITION_INTERCEPTS = np.array([0.22, -0.292, -0.368, -0.224, 0.40])

# Score of a league-average player at each position
AVERAGE_SCORES_BY_POS: Dict[str, float] = dict(
    zip(TRAD_POS_LIST, (POSITION_WEIGHTS @ AVERAGE_FEATURES + POSITION_INTERCEPTS).tolist())
)

CONFIDENCE_SHARPNESS = 8.0

# Height likelihood, inches
HEIGHT_MEANS_BY_POS = np.array([73.5, 75.5, 77.5, 79.5, 82.0])
HEIGHT_SD = 2.0
HEIGHT_DAMPING = 0.5

# Shot-quality regression
SHOT_VOLUME_FLOOR = 15.0
SHOT_SHARE_THRESHOLD = 0.25
RARE_THREE_SHARE = 0.05
MAX_REGRESSION_Z = 3.0
SHOT_QUALITY_ATTEMPTS = {
    "calc_three_relative": "total_off_3p_attempts",
    "calc_mid_relative": "total_off_2pmid_attempts",
    "calc_rim_relative": "total_off_2prim_attempts",
}

# Classification thresholds
MIN_USED_POSSESSIONS = 25.0
MIN_ASSIST_RATE = 0.09
MIN_STRETCH_3PR = 0.2
DOMINANT_CONFIDENCE = 0.85
MAJORITY_CONFIDENCE = 0.5

Confidences = Union[Dict[str, float], Sequence[float]]


@dataclass
class PositionDiagnostics:
    """Intermediates of ``build_position_confidences``."""

    scores: Dict[str, float]
    calculated: Dict[str, float]
    confs_no_height: Optional[Dict[str, float]] = None


def _ratio(num: float, denom: float, default: float) -> float:
    return num / denom if denom else default


def calculate_features(player: StatSet) -> Dict[str, float]:
    """The six raw classification features (league average where undefined)."""
    avg = dict(zip(FEATURE_NAMES, AVERAGE_FEATURES.tolist()))
    assists = player.value("total_off_assist")
    return {
        "calc_assist_per_fga": _ratio(assists, player.value("total_off_fga"), avg["calc_assist_per_fga"]),
        "calc_ast_tov": _ratio(assists, player.value("total_off_to"), avg["calc_ast_tov"]),
        "calc_ft_relative_inv": _ratio(
            player.value("off_efg"), player.value("off_ft"), avg["calc_ft_relative_inv"]
        ),
        "calc_three_relative": player.value("off_3p") / LEAGUE_3P_PCT
        if player.value("total_off_3p_attempts") > 0 else avg["calc_three_relative"],
        "calc_mid_relative": player.value("off_2pmid") / LEAGUE_MID_PCT
        if player.value("total_off_2pmid_attempts") > 0 else avg["calc_mid_relative"],
        "calc_rim_relative": player.value("off_2prim") / LEAGUE_RIM_PCT
        if player.value("total_off_2prim_attempts") > 0 else avg["calc_rim_relative"],
    }


def regress_shot_quality(raw_value: float, z_score: float, feature: str, player: StatSet) -> float:
    """Shrink a shot-zone feature toward 0 when the player rarely takes that shot.

    Only the three zone features are regressed.  A three-point share under
    5% shrinks by the z-score alone; otherwise fewer than 15 attempts at
    under 25% of all shots shrinks by both volume and z-score.
    """
    attempts_field = SHOT_QUALITY_ATTEMPTS.get(feature)
    if attempts_field is None:
        return raw_value

    attempts = player.value(attempts_field)
    fga = player.value("total_off_fga")
    share = attempts / fga if fga > 0 else 0.0
    z_weight = min(abs(z_score), MAX_REGRESSION_Z) / MAX_REGRESSION_Z

    if feature == "calc_three_relative" and share < RARE_THREE_SHARE:
        return raw_value * (1 - z_weight)
    if attempts < SHOT_VOLUME_FLOOR and share < SHOT_SHARE_THRESHOLD:
        return raw_value * (1 - (1 - attempts / SHOT_VOLUME_FLOOR) * z_weight)
    return raw_value


def incorporate_height(height_in: float, confidences: Dict[str, float]) -> Dict[str, float]:
    """Blend a damped height likelihood into a confidence vector."""
    base = np.array([confidences[pos] for pos in TRAD_POS_LIST])
    likelihood = norm.pdf(height_in, loc=HEIGHT_MEANS_BY_POS, scale=HEIGHT_SD) ** HEIGHT_DAMPING
    combined = base * likelihood
    total = combined.sum()
    if not np.isfinite(total) or total <= 0:
        return dict(confidences)
    return dict(zip(TRAD_POS_LIST, (combined / total).tolist()))


def build_position_confidences(
    player: StatSet, height_override: Optional[float] = None
) -> Tuple[Dict[str, float], PositionDiagnostics]:
    """Confidence vector for ``player`` plus the scores and features behind it."""
    calculated = calculate_features(player)
    raw = np.array([calculated[name] for name in FEATURE_NAMES])
    centered = raw - AVERAGE_FEATURES
    z_scores = centered / FEATURE_SDS
    regressed = np.array([
        regress_shot_quality(centered[i], z_scores[i], name, player)
        for i, name in enumerate(FEATURE_NAMES)
    ])

    scores = POSITION_WEIGHTS @ (AVERAGE_FEATURES + regressed) + POSITION_INTERCEPTS
    averages = np.array([AVERAGE_SCORES_BY_POS[pos] for pos in TRAD_POS_LIST])
    logits = CONFIDENCE_SHARPNESS * (scores - averages)
    exp = np.exp(logits - logits.max())
    confidences = dict(zip(TRAD_POS_LIST, (exp / exp.sum()).tolist()))

    diags = PositionDiagnostics(
        scores=dict(zip(TRAD_POS_LIST, scores.tolist())),
        calculated=calculated,
    )

    height = height_override
    if height is None and player.roster is not None:
        height = player.roster.height_inches
    if height:
        diags.confs_no_height = confidences
        confidences = incorporate_height(height, confidences)
    return confidences, diags


# ---------------------------------------------------------------------------
# Classification rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionRule:
    """One entry of the ordered classification cascade."""

    code: str  # prefix used when a demotion rewrites the diagnostic
    label: str
    diag: str
    matches: Callable[[List[float], int], bool]
    demotion: Optional[str] = None  # "assist" | "three_rate"


POSITION_RULES: List[PositionRule] = [
    PositionRule("PG", "PG", "(P[PG] >= 85%)",
                 lambda c, m: c[PG] >= DOMINANT_CONFIDENCE, "assist"),
    PositionRule("pG", "s-PG", "(P[PG] >= 50%)",
                 lambda c, m: c[PG] >= MAJORITY_CONFIDENCE, "assist"),
    PositionRule("CG", "CG", "(Max[P] == PG)",
                 lambda c, m: m == PG, "assist"),
    PositionRule("CG", "CG", "(Max[P] == SG) AND (P[PG] >= P[SF] + P[PF] + P[C])",
                 lambda c, m: m == SG and c[PG] >= c[SF] + c[PF] + c[C], "assist"),
    PositionRule("WG", "WG", "(Max[P] == SG) AND (P[PG] < P[SF] + P[PF] + P[C])",
                 lambda c, m: m == SG),
    PositionRule("WG", "WG", "(Max[P] == SF) AND (P[PG] + P[SG] >= P[PF] + P[C])",
                 lambda c, m: m == SF and c[PG] + c[SG] >= c[PF] + c[C]),
    PositionRule("WF", "WF", "(Max[P] == SF) AND (P[PG] + P[SG] < P[PF] + P[C])",
                 lambda c, m: m == SF),
    PositionRule("PF", "PF/C", "(P[PF] >= 85%)",
                 lambda c, m: c[PF] >= DOMINANT_CONFIDENCE),
    PositionRule("C", "C", "(P[C] >= 85%)",
                 lambda c, m: c[C] >= DOMINANT_CONFIDENCE),
    PositionRule("S4", "S-PF", "(Max[P] == PF) AND (P[PG] + P[SG] + P[SF] >= P[C])",
                 lambda c, m: m == PF and c[PG] + c[SG] + c[SF] >= c[C], "three_rate"),
    PositionRule("PF/C", "PF/C", "(Max[P] == C) OR ((Max[P] == PF) AND (P[PG] + P[SG] + P[SF] < P[C]))",
                 lambda c, m: m == C or m == PF),
]

# (stats label, roster G/F/C) -> compromise label
ROSTER_POSITION_OVERRIDES: Dict[Tuple[str, str], str] = {
    ("S-PF", "G"): "WF",
    ("PF/C", "G"): "S-PF",
    ("C", "G"): "PF/C",
    ("PG", "F"): "s-PG",
    ("s-PG", "F"): "CG",
    ("CG", "F"): "WG",
    ("C", "F"): "PF/C",
    ("WG", "C"): "WF",
    ("WF", "C"): "S-PF",
    ("S-PF", "C"): "PF/C",
}


def _as_list(confidences: Confidences) -> List[float]:
    if isinstance(confidences, dict):
        return [float(confidences.get(pos) or 0.0) for pos in TRAD_POS_LIST]
    values = [float(v or 0.0) for v in confidences]
    return (values + [0.0] * 5)[:5]


def _js_num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _fallback_for(label: str) -> str:
    return GUARD_FALLBACK if label in GUARD_POSITIONS else FORWARD_CENTER_FALLBACK


def using_roster_pos(label: str, roster_pos: Optional[str]) -> Optional[str]:
    """Compromise label when the roster's G/F/C listing disagrees with ``label``."""
    if not roster_pos:
        return None
    return ROSTER_POSITION_OVERRIDES.get((label, roster_pos))


def _height_note(rule: PositionRule, confidences_no_height: Optional[Confidences]) -> str:
    if confidences_no_height is None or rule.label not in ("PG", "s-PG"):
        return ""
    pg_no_height = _as_list(confidences_no_height)[PG]
    if rule.label == "PG" and pg_no_height < DOMINANT_CONFIDENCE:
        return " [height moved s-PG to PG]"
    if rule.label == "s-PG" and pg_no_height >= DOMINANT_CONFIDENCE:
        return " [height moved PG to s-PG]"
    return ""


def build_position(
    confidences: Confidences,
    player: Union[StatSet, Dict[str, dict]],
    team_season_key: Optional[str] = None,
    confidences_no_height: Optional[Confidences] = None,
    manual_overrides: Optional[Dict[str, Dict[str, str]]] = None,
) -> Tuple[str, str]:
    """Position class and the diagnostic explaining it.

    Args:
        confidences: Vector keyed by ``TRAD_POS_LIST`` (or a 5-list).
        player: Player stats (``off_assist``, ``off_3pr``, ``off_team_poss``,
            ``off_usage``, optional roster).
        team_season_key: Selects ``manual_overrides`` for the roster.
        confidences_no_height: Vector before height was blended in, used to
            note when height decided between PG and s-PG.
        manual_overrides: ``{team_season_key: {player key: label}}``.
    """
    if not isinstance(player, StatSet):
        player = StatSet.from_dict(player)

    if team_season_key and manual_overrides:
        manual = manual_overrides.get(team_season_key, {}).get(player.key)
        if manual:
            return manual, f"(Manual override for [{team_season_key}])"

    conf = _as_list(confidences)
    max_index = max(range(5), key=lambda i: conf[i])

    label, diag = "", ""
    for rule in POSITION_RULES:
        if not rule.matches(conf, max_index):
            continue
        label, diag = rule.label, rule.diag + _height_note(rule, confidences_no_height)
        if rule.demotion == "assist":
            assist_rate = player.value("off_assist")
            if assist_rate < MIN_ASSIST_RATE:
                label = "WG"
                diag = f"({rule.code}:){diag} BUT (AST%[{100 * assist_rate:.1f}] < 9%)"
        elif rule.demotion == "three_rate":
            three_rate = player.value("off_3pr")
            if three_rate < MIN_STRETCH_3PR:
                label = "PF/C"
                diag = f"({rule.code}:){diag} BUT 3PR%[{100 * three_rate:.1f}] < 20%"
        break

    if not label:
        # Only reachable with non-numeric confidences
        logger.debug("No position rule matched %s for %s", conf, player.key)
        return FORWARD_CENTER_FALLBACK, "(No rule matched)"

    team_poss = player.value("off_team_poss")
    usage = player.value("off_usage")
    used_poss = team_poss * usage
    if used_poss < MIN_USED_POSSESSIONS:
        return _fallback_for(label), (
            f"Too few used possessions [{used_poss:.1f}]=[{_js_num(team_poss)}]*[{100 * usage:.1f}]%"
            f" < [{MIN_USED_POSSESSIONS:.1f}]. Would have matched [{label}] from rule [{diag}]"
        )

    roster_pos = player.roster.coarse_pos if player.roster is not None else None
    compromise = using_roster_pos(label, roster_pos)
    if compromise:
        diag = f"({label}:){diag} BUT (Roster[{roster_pos}])"
        label = compromise
    return label, diag
