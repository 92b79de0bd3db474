"""Shared StatSet / Metric data shapes.

A ``StatSet`` is one entity's (player, lineup or team) aggregated possession
statistics for a single filter context, keyed by the analytics-store field
names (``off_3p``, ``total_off_3p_attempts``, ``oppo_total_def_poss`` ...).
Those names are a fixed contract with the query layer and are never renamed
here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .player import PlayerCodeId, RosterEntry


class StatSetFormatError(ValueError):
    """Raised when a serialized StatSet payload has an unusable shape."""


# Serialized names of the optional metric annotations
_WIRE_NAMES = {
    "old_value": "old_value",
    "override": "override",
    "color_override": "colorOverride",
    "extra_info": "extraInfo",
}

# Shot zones used by the per-zone assist networks (field suffix -> zone id)
ASSIST_TARGET_ZONES = ("rim", "mid", "3p")


@dataclass
class Metric:
    """A metric value with optional override metadata."""

    value: Optional[float] = None
    old_value: Optional[float] = None
    override: Optional[str] = None
    color_override: Optional[float] = None
    extra_info: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"value": self.value}
        for attr, wire in _WIRE_NAMES.items():
            val = getattr(self, attr)
            if val is not None:
                out[wire] = val
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "Metric":
        if data is None:
            return cls()
        if isinstance(data, Metric):
            return Metric(**vars(data))
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return cls(value=float(data))
        if not isinstance(data, dict):
            raise StatSetFormatError(f"Cannot build a metric from {type(data).__name__}: {data!r}")
        kwargs = {attr: data.get(wire) for attr, wire in _WIRE_NAMES.items()}
        return cls(value=data.get("value"), **kwargs)


@dataclass
class OverrideRecord:
    """A user-supplied correction to one raw rate stat of one row."""

    row_id: str
    stat_name: str
    new_val: float
    use: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "OverrideRecord":
        return cls(
            row_id=data["rowId"] if "rowId" in data else data["row_id"],
            stat_name=data["statName"] if "statName" in data else data["stat_name"],
            new_val=float(data["newVal"] if "newVal" in data else data["new_val"]),
            use=bool(data.get("use", True)),
        )


@dataclass
class StatSet:
    """Mapping of metric name -> ``Metric`` plus typed per-entity slots.

    The engine reads metrics through :meth:`value`, so an absent metric, a
    metric with no value and a zero all read the same way as the default.
    """

    key: str = ""
    metrics: Dict[str, Metric] = field(default_factory=dict)
    code: Optional[str] = None
    doc_count: int = 0
    roster: Optional["RosterEntry"] = None
    # zone ("rim" | "mid" | "3p") -> {player code: assists to that player}
    assist_targets: Dict[str, Dict[str, float]] = field(default_factory=dict)
    players: List["PlayerCodeId"] = field(default_factory=list)
    # Derived outputs written by the calculators
    diag_off_rtg: Any = None
    diag_def_rtg: Any = None
    off_luck: Any = None
    def_luck: Any = None

    def __contains__(self, name: str) -> bool:
        return name in self.metrics

    def __getitem__(self, name: str) -> Metric:
        return self.metrics[name]

    def __setitem__(self, name: str, metric: Metric) -> None:
        self.metrics[name] = metric

    def __delitem__(self, name: str) -> None:
        del self.metrics[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.metrics)

    def get(self, name: str) -> Optional[Metric]:
        return self.metrics.get(name)

    def value(self, name: str, default: float = 0.0) -> float:
        metric = self.metrics.get(name)
        if metric is None or metric.value is None:
            return default
        return metric.value

    def has_value(self, name: str) -> bool:
        metric = self.metrics.get(name)
        return metric is not None and metric.value is not None

    def set_value(self, name: str, value: Optional[float]) -> Metric:
        metric = Metric(value=value)
        self.metrics[name] = metric
        return metric

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the analytics-store shape."""
        out: Dict[str, Any] = {"key": self.key}
        if self.code is not None:
            out["code"] = self.code
        if self.doc_count:
            out["doc_count"] = self.doc_count
        for name, metric in self.metrics.items():
            out[name] = metric.to_dict()
        for zone, targets in self.assist_targets.items():
            out[f"off_ast_{zone}_target"] = {"value": dict(targets)}
        if self.roster is not None:
            out["roster"] = self.roster.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "StatSet":
        """Build from the analytics-store shape ``{"key": ..., "<stat>": {"value": ...}}``."""
        from .player import PlayerCodeId, RosterEntry

        if not isinstance(data, dict):
            raise StatSetFormatError(f"Expected a stat set object, got {type(data).__name__}")

        stat_set = cls(key=str(data.get("key", "")), code=data.get("code"))
        stat_set.doc_count = int(data.get("doc_count", 0) or 0)
        for name, payload in data.items():
            if name in ("key", "code", "doc_count"):
                continue
            if name == "roster":
                stat_set.roster = RosterEntry.from_dict(payload or {})
            elif name == "players":
                stat_set.players = [PlayerCodeId.from_dict(p) for p in payload or []]
            elif name.startswith("off_ast_") and name.endswith("_target"):
                zone = name[len("off_ast_"):-len("_target")]
                targets = (payload or {}).get("value") or {}
                stat_set.assist_targets[zone] = {str(k): float(v) for k, v in targets.items()}
            else:
                stat_set.metrics[name] = Metric.from_dict(payload)
        return stat_set
