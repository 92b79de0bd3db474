"""Player-level identity, roster and positional data models."""

import re
from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum


class TradPosition(Enum):
    """Traditional positions, in canonical lineup slot order."""
    POINT_GUARD = "PG"
    SHOOTING_GUARD = "SG"
    SMALL_FORWARD = "SF"
    POWER_FORWARD = "PF"
    CENTER = "C"

    @property
    def conf_key(self) -> str:
        """Key of this position in a confidence vector (eg ``pos_pg``)."""
        return f"pos_{self.value.lower()}"

    @property
    def slot(self) -> int:
        """0-based lineup slot (PG=0 .. C=4)."""
        return list(TradPosition).index(self)


_HEIGHT_RE = re.compile(r"^\s*(\d+)\s*[-']\s*(\d+)")

# Roster positions as listed by teams, coarsened to G / F / C
_COARSE_ROSTER_POS = {
    "G": "G", "PG": "G", "SG": "G", "CG": "G",
    "F": "F", "SF": "F", "PF": "F", "W": "F",
    "C": "C",
}


@dataclass
class RosterEntry:
    """Roster metadata for one player, as declared by the team."""

    pos: Optional[str] = None
    height: Optional[str] = None  # eg "6-5"
    height_in: Optional[float] = None
    number: Optional[str] = None
    year_class: Optional[str] = None
    origin: Optional[str] = None

    @property
    def height_inches(self) -> Optional[float]:
        """Height in inches, from ``height_in`` or parsed from ``height``."""
        if self.height_in:
            return float(self.height_in)
        if self.height:
            match = _HEIGHT_RE.match(self.height)
            if match:
                return 12.0 * int(match.group(1)) + int(match.group(2))
        return None

    @property
    def coarse_pos(self) -> Optional[str]:
        """Roster position coarsened to ``G``, ``F`` or ``C`` (``None`` if unknown)."""
        if not self.pos:
            return None
        pos = self.pos.strip().upper()
        if pos in _COARSE_ROSTER_POS:
            return _COARSE_ROSTER_POS[pos]
        # Combined listings ("G/F", "F-C") count as their first position
        first = re.split(r"[/\-]", pos)[0]
        return _COARSE_ROSTER_POS.get(first)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            k: v for k, v in {
                "pos": self.pos,
                "height": self.height,
                "height_in": self.height_in,
                "number": self.number,
                "year_class": self.year_class,
                "origin": self.origin,
            }.items() if v is not None
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RosterEntry":
        """Create from dictionary."""
        return cls(
            pos=data.get("pos"),
            height=data.get("height"),
            height_in=data.get("height_in"),
            number=data.get("number"),
            year_class=data.get("year_class"),
            origin=data.get("origin"),
        )


@dataclass(frozen=True)
class PlayerCodeId:
    """A player's short code (eg ``AnCowan``) and full id (eg ``Cowan, Anthony``)."""

    code: str
    id: str

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerCodeId":
        return cls(code=str(data.get("code", "")), id=str(data.get("id", "")))


@dataclass
class IndivPosInfo:
    """Positional classification of one player."""

    pos_confidences: List[float] = field(default_factory=list)
    pos_class: str = ""
    roster: Optional[RosterEntry] = None

    def to_dict(self) -> dict:
        return {
            "posConfidences": list(self.pos_confidences),
            "posClass": self.pos_class,
            "roster": self.roster.to_dict() if self.roster else None,
        }
