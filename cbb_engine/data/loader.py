"""Data loader for team stat bundles."""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models.stat_set import OverrideRecord, StatSet, StatSetFormatError
from ..stats.on_ball_defense import OnBallDefenseModel, inject_uncat_on_ball_defense_stats

logger = logging.getLogger(__name__)


@dataclass
class TeamBundle:
    """Everything the table builders need for one team-season."""

    team_season_key: str
    team: StatSet
    players: List[StatSet] = field(default_factory=list)
    lineups: List[StatSet] = field(default_factory=list)
    season_players: Dict[str, StatSet] = field(default_factory=dict)
    season_team: Optional[StatSet] = None
    on_ball: Dict[str, OnBallDefenseModel] = field(default_factory=dict)


def _stat_set_list(data: dict, name: str) -> List[StatSet]:
    payload = data.get(name) or []
    if not isinstance(payload, list):
        raise StatSetFormatError(f"'{name}' must be a list, got {type(payload).__name__}")
    return [StatSet.from_dict(item) for item in payload]


class DataLoader:
    """Loads stat bundles and overrides from JSON files."""

    @staticmethod
    def load_team_bundle(file_path: str) -> TeamBundle:
        """
        Load a team bundle from a JSON file.

        Expected shape::

            {"team_season": "Maryland 2023/24",
             "team": {...}, "players": [...], "lineups": [...],
             "season_team": {...}, "season_players": [...],
             "on_ball": [...], "on_ball_team": {...}}

        Args:
            file_path: Path to JSON file

        Returns:
            TeamBundle with parsed StatSets

        Raises:
            StatSetFormatError: if the payload has no usable ``team`` object
        """
        with open(file_path, 'r') as f:
            data = json.load(f)
        return DataLoader.team_bundle_from_dict(data)

    @staticmethod
    def team_bundle_from_dict(data: dict) -> TeamBundle:
        """Parse an already-decoded team bundle."""
        if not isinstance(data, dict) or not isinstance(data.get("team"), dict):
            raise StatSetFormatError("Team bundle must be an object with a 'team' stat set")

        season_players = {
            (p.code or p.key): p for p in _stat_set_list(data, "season_players")
        }
        season_team = data.get("season_team")
        if season_team is not None:
            if not isinstance(season_team, dict):
                raise StatSetFormatError("'season_team' must be a stat set object")
            season_team = StatSet.from_dict(season_team)

        on_ball: Dict[str, OnBallDefenseModel] = {}
        for item in data.get("on_ball") or []:
            model = OnBallDefenseModel.from_dict(item)
            if not model.code:
                logger.warning("Skipping on-ball defense row with no player code: %s", item)
                continue
            on_ball[model.code] = model
        if isinstance(data.get("on_ball_team"), dict) and on_ball:
            team_on_ball = OnBallDefenseModel.from_dict(data["on_ball_team"])
            on_ball = {
                model.code: model
                for model in inject_uncat_on_ball_defense_stats(team_on_ball, list(on_ball.values()))
            }

        bundle = TeamBundle(
            team_season_key=str(data.get("team_season", "")),
            team=StatSet.from_dict(data["team"]),
            players=_stat_set_list(data, "players"),
            lineups=_stat_set_list(data, "lineups"),
            season_players=season_players,
            season_team=season_team,
            on_ball=on_ball,
        )
        logger.info(
            "Loaded %s: %d players, %d lineups, %d on-ball samples",
            bundle.team_season_key or "team bundle",
            len(bundle.players),
            len(bundle.lineups),
            len(bundle.on_ball),
        )
        return bundle

    @staticmethod
    def load_overrides(file_path: Optional[str]) -> List[OverrideRecord]:
        """
        Load manual overrides from a JSON file.

        Args:
            file_path: Path to JSON file holding ``{"overrides": [...]}`` or a bare list

        Returns:
            List of OverrideRecord objects (empty when no path is given)
        """
        if not file_path:
            return []
        with open(file_path, 'r') as f:
            data = json.load(f)
        records = data.get("overrides", []) if isinstance(data, dict) else data
        try:
            return [OverrideRecord.from_dict(record) for record in records]
        except (KeyError, TypeError, ValueError) as e:
            raise StatSetFormatError(f"Invalid override record in {file_path}: {e}") from e

    @staticmethod
    def save_stat_sets_to_json(stat_sets: List[StatSet], file_path: str) -> None:
        """
        Save stat sets to a JSON file.

        Args:
            stat_sets: StatSets to save
            file_path: Output file path
        """
        with open(file_path, 'w') as f:
            json.dump({"stat_sets": [s.to_dict() for s in stat_sets]}, f, indent=2)
