"""Manual stat overrides.

Users can replace one raw rate of one row (eg "this player's true 3P% is
0.35").  The replaced metric keeps the sample value in ``old_value`` so the
rating calculators can re-derive the dependent counting stats from the
difference.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

from ..models.stat_set import Metric, OverrideRecord, StatSet

logger = logging.getLogger(__name__)

MANUALLY_ADJUSTED = "Manually adjusted"
LUCK_ADJUSTED = "Luck adjusted"

# Rates that feed build_off_overrides / build_def_overrides
OFF_OVERRIDE_STATS = ("off_3p", "off_2p", "off_ft", "off_to")
DEF_OVERRIDE_STATS = ("oppo_def_3p",)
OVERRIDABLE_STATS = OFF_OVERRIDE_STATS + DEF_OVERRIDE_STATS


def override_diff(metric: Optional[Metric]) -> float:
    """Overridden value minus the sample value (0 when not overridden)."""
    if metric is None or metric.old_value is None or metric.value is None:
        return 0.0
    return metric.value - metric.old_value


def overrides_as_map(records: Iterable[OverrideRecord]) -> Dict[str, Dict[str, float]]:
    """Active override records as ``{row_id: {stat_name: new_val}}``."""
    out: Dict[str, Dict[str, float]] = {}
    for record in records:
        if not record.use:
            continue
        out.setdefault(record.row_id, {})[record.stat_name] = record.new_val
    return out


def apply_overrides(
    stat_set: StatSet,
    row_id: str,
    overrides: Dict[str, Dict[str, float]],
    adjust_for_luck: bool = False,
) -> Tuple[Optional[str], bool]:
    """Apply the overrides for ``row_id`` to ``stat_set`` in place.

    Returns ``(adjustment_reason, overrode_off_fields)``: the annotation to
    put on ratings derived from the mutated stats (``None`` when nothing
    changed) and whether any offensive rate was replaced.
    """
    applied = False
    overrode_off_fields = False
    for stat_name, new_val in (overrides.get(row_id) or {}).items():
        if stat_name not in OVERRIDABLE_STATS:
            logger.debug("Ignoring override of unknown stat %s for %s", stat_name, row_id)
            continue
        metric = stat_set.get(stat_name)
        if metric is None or metric.value is None:
            logger.debug("Ignoring override of %s: %s has no sample value", stat_name, row_id)
            continue
        old_value = metric.old_value if metric.old_value is not None else metric.value
        stat_set[stat_name] = Metric(
            value=new_val,
            old_value=old_value,
            override=MANUALLY_ADJUSTED,
            color_override=metric.color_override,
            extra_info=metric.extra_info,
        )
        applied = True
        if stat_name in OFF_OVERRIDE_STATS:
            overrode_off_fields = True

    if applied and adjust_for_luck:
        reason = "Luck and manually adjusted"
    elif applied:
        reason = MANUALLY_ADJUSTED
    elif adjust_for_luck:
        reason = LUCK_ADJUSTED
    else:
        reason = None
    return reason, overrode_off_fields
