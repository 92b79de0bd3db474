"""Tests for positional classification."""

import random

import pytest

from cbb_engine.models.player import RosterEntry
from cbb_engine.models.stat_set import StatSet
from cbb_engine.stats.positions import (
    AVERAGE_SCORES_BY_POS,
    ID_TO_POSITION,
    TRAD_POS_LIST,
    build_position,
    build_position_confidences,
    incorporate_height,
    regress_shot_quality,
    using_roster_pos,
)

# (confidences, extra player stats, position, fallback, diagnostic, full name)
BUILD_POSITION_CASES = [
    # Point guards
    ([0.9, 0.1, 0, 0, 0], {"off_assist": 0.10, "off_3pr": 0.20},
     "PG", "G?", "(P[PG] >= 85%)", "Pure PG"),
    ([0.9, 0.1, 0, 0, 0], {"off_assist": 0.05, "off_3pr": 0.20},
     "WG", "G?", "(PG:)(P[PG] >= 85%) BUT (AST%[5.0] < 9%)", None),
    ([0.6, 0.4, 0, 0, 0], {"off_assist": 0.10, "off_3pr": 0.20},
     "s-PG", "G?", "(P[PG] >= 50%)", "Scoring PG"),
    ([0.6, 0.4, 0, 0, 0], {"off_assist": 0.05, "off_3pr": 0.20},
     "WG", "G?", "(pG:)(P[PG] >= 50%) BUT (AST%[5.0] < 9%)", None),
    # Combo guards
    ([0.4, 0.3, 0.2, 0.1, 0], {"off_assist": 0.10, "off_3pr": 0.20},
     "CG", "G?", "(Max[P] == PG)", "Combo Guard"),
    ([0.4, 0.3, 0.2, 0.1, 0], {"off_assist": 0.05, "off_3pr": 0.20},
     "WG", "G?", "(CG:)(Max[P] == PG) BUT (AST%[5.0] < 9%)", "Wing Guard"),
    ([0.2, 0.6, 0.1, 0.0, 0.1], {"off_assist": 0.10, "off_3pr": 0.20},
     "CG", "G?", "(Max[P] == SG) AND (P[PG] >= P[SF] + P[PF] + P[C])", None),
    ([0.2, 0.6, 0.1, 0.0, 0.1], {"off_assist": 0.05, "off_3pr": 0.20},
     "WG", "G?", "(CG:)(Max[P] == SG) AND (P[PG] >= P[SF] + P[PF] + P[C]) BUT (AST%[5.0] < 9%)", None),
    # Wing guards
    ([0.1, 0.6, 0.1, 0.1, 0.1], {"off_assist": 0.10, "off_3pr": 0.20},
     "WG", "G?", "(Max[P] == SG) AND (P[PG] < P[SF] + P[PF] + P[C])", None),
    ([0.2, 0.2, 0.3, 0.2, 0.1], {"off_assist": 0.10, "off_3pr": 0.20},
     "WG", "G?", "(Max[P] == SF) AND (P[PG] + P[SG] >= P[PF] + P[C])", None),
    # Wing forwards
    ([0.2, 0.1, 0.3, 0.2, 0.2], {"off_assist": 0.10, "off_3pr": 0.20},
     "WF", "F/C?", "(Max[P] == SF) AND (P[PG] + P[SG] < P[PF] + P[C])", "Wing Forward"),
    # Stretch PF
    ([0.0, 0.1, 0.1, 0.6, 0.2], {"off_assist": 0.10, "off_3pr": 0.25},
     "S-PF", "F/C?", "(Max[P] == PF) AND (P[PG] + P[SG] + P[SF] >= P[C])", "Stretch PF"),
    ([0.0, 0.1, 0.1, 0.6, 0.2], {"off_assist": 0.10, "off_3pr": 0.15},
     "PF/C", "F/C?", "(S4:)(Max[P] == PF) AND (P[PG] + P[SG] + P[SF] >= P[C]) BUT 3PR%[15.0] < 20%", None),
    # PF/C
    ([0.0, 0.0, 0.1, 0.9, 0.0], {"off_assist": 0.10, "off_3pr": 0.25},
     "PF/C", "F/C?", "(P[PF] >= 85%)", "Power Forward/Center"),
    ([0.0, 0.0, 0.05, 0.8, 0.15], {"off_assist": 0.10, "off_3pr": 0.25},
     "PF/C", "F/C?", "(Max[P] == C) OR ((Max[P] == PF) AND (P[PG] + P[SG] + P[SF] < P[C]))", None),
    ([0.0, 0.0, 0.0, 0.2, 0.8], {"off_assist": 0.10, "off_3pr": 0.25},
     "PF/C", "F/C?", "(Max[P] == C) OR ((Max[P] == PF) AND (P[PG] + P[SG] + P[SF] < P[C]))", None),
    # C
    ([0.0, 0.0, 0.0, 0.1, 0.9], {"off_assist": 0.10, "off_3pr": 0.25},
     "C", "F/C?", "(P[C] >= 85%)", "Center"),
]


def _player_dict(extra, team_poss=1000, usage=0.20, **more):
    stats = dict(extra, off_team_poss=team_poss, off_usage=usage, **more)
    return {name: {"value": value} for name, value in stats.items()}


def _conf_dict(confs):
    return dict(zip(TRAD_POS_LIST, confs))


class TestAverageScores:
    def test_average_scores_by_position(self):
        assert list(AVERAGE_SCORES_BY_POS) == TRAD_POS_LIST
        rounded = [round(AVERAGE_SCORES_BY_POS[pos], 2) for pos in TRAD_POS_LIST]
        assert rounded == pytest.approx([0.15, -0.03, -0.11, 0.03, 0.42])


class TestBuildPosition:
    @pytest.mark.parametrize("confs,extra,pos,fallback,diag,name", BUILD_POSITION_CASES)
    def test_rule_cascade(self, confs, extra, pos, fallback, diag, name):
        assert build_position(_conf_dict(confs), _player_dict(extra)) == (pos, diag)
        if name:
            assert ID_TO_POSITION[pos] == name

    @pytest.mark.parametrize("confs,extra,pos,fallback,diag,name", BUILD_POSITION_CASES)
    def test_too_few_used_possessions(self, confs, extra, pos, fallback, diag, name):
        result = build_position(_conf_dict(confs), _player_dict(extra, team_poss=100))
        assert result == (
            fallback,
            f"Too few used possessions [20.0]=[100]*[20.0]% < [25.0]. "
            f"Would have matched [{pos}] from rule [{diag}]",
        )

    def test_accepts_list_confidences_and_stat_set(self):
        player = StatSet.from_dict(_player_dict({"off_assist": 0.10}))
        assert build_position([0.9, 0.1, 0, 0, 0], player) == ("PG", "(P[PG] >= 85%)")

    def test_unknown_position_names(self):
        assert ID_TO_POSITION["G?"] == "Unknown - probably Guard"
        assert ID_TO_POSITION["F/C?"] == "Unknown - probably Forward/Center"

    def test_roster_compromise(self):
        player = _player_dict({"off_assist": 0.10})
        player["roster"] = {"pos": "F"}
        assert build_position(_conf_dict([0.9, 0.1, 0, 0, 0]), player) == (
            "s-PG",
            "(PG:)(P[PG] >= 85%) BUT (Roster[F])",
        )

    def test_roster_agreeing_with_stats_is_ignored(self):
        player = _player_dict({"off_assist": 0.10})
        player["roster"] = {"pos": "G"}
        assert build_position(_conf_dict([0.9, 0.1, 0, 0, 0]), player) == ("PG", "(P[PG] >= 85%)")

    def test_manual_override_wins(self):
        player = StatSet.from_dict(dict(_player_dict({"off_assist": 0.10}), key="Cowan, Anthony"))
        overrides = {"Maryland 2019/20": {"Cowan, Anthony": "CG"}}
        label, diag = build_position(
            _conf_dict([0.9, 0.1, 0, 0, 0]), player, "Maryland 2019/20", manual_overrides=overrides
        )
        assert label == "CG"
        assert "Maryland 2019/20" in diag

        # Only applies to the named team season
        label, _ = build_position(
            _conf_dict([0.9, 0.1, 0, 0, 0]), player, "Maryland 2020/21", manual_overrides=overrides
        )
        assert label == "PG"

    def test_height_note(self):
        label, diag = build_position(
            _conf_dict([0.9, 0.1, 0, 0, 0]),
            _player_dict({"off_assist": 0.10}),
            confidences_no_height=_conf_dict([0.6, 0.4, 0, 0, 0]),
        )
        assert label == "PG"
        assert diag == "(P[PG] >= 85%) [height moved s-PG to PG]"

    def test_always_returns_a_known_class(self):
        rng = random.Random(2019)
        for _ in range(200):
            raw = [rng.random() for _ in range(5)]
            confs = [v / sum(raw) for v in raw]
            extra = {"off_assist": rng.random() * 0.3, "off_3pr": rng.random() * 0.6}
            usage = rng.random() * 0.3
            label, diag = build_position(_conf_dict(confs), _player_dict(extra, usage=usage))
            assert label in ID_TO_POSITION
            assert diag


class TestRegressShotQuality:
    def test_share_gate_beats_volume_floor(self):
        player = StatSet.from_dict({
            "total_off_fga": {"value": 25},
            "total_off_2prim_attempts": {"value": 8},
        })
        assert regress_shot_quality(100, 3, "calc_rim_relative", player) == 100

    def test_low_volume_low_share_is_shrunk(self):
        player = StatSet.from_dict({
            "total_off_fga": {"value": 100},
            "total_off_2pmid_attempts": {"value": 5},
        })
        assert regress_shot_quality(100, 3, "calc_mid_relative", player) == pytest.approx(100 / 3)

    def test_rare_threes_shrink_by_z_score(self):
        player = StatSet.from_dict({
            "total_off_fga": {"value": 100},
            "total_off_3p_attempts": {"value": 4},
        })
        assert regress_shot_quality(100, 3, "calc_three_relative", player) == pytest.approx(0.0)
        assert regress_shot_quality(100, 1.5, "calc_three_relative", player) == pytest.approx(50.0)
        assert regress_shot_quality(100, -6, "calc_three_relative", player) == pytest.approx(0.0)

    def test_non_shot_features_untouched(self):
        assert regress_shot_quality(0.7, 3, "calc_assist_per_fga", StatSet()) == 0.7

    def test_bounded_by_raw_value(self):
        rng = random.Random(7)
        for _ in range(100):
            player = StatSet.from_dict({
                "total_off_fga": {"value": rng.randint(0, 200)},
                "total_off_2prim_attempts": {"value": rng.randint(0, 30)},
            })
            raw = rng.uniform(-2, 2)
            result = regress_shot_quality(raw, rng.uniform(-5, 5), "calc_rim_relative", player)
            assert abs(result) <= abs(raw) + 1e-12
            assert result * raw >= 0


class TestBuildPositionConfidences:
    def test_average_player_is_uniform(self):
        confidences, diags = build_position_confidences(StatSet())
        assert list(confidences) == TRAD_POS_LIST
        assert list(diags.scores) == TRAD_POS_LIST
        for value in confidences.values():
            assert value == pytest.approx(0.2)
        assert diags.confs_no_height is None

    def test_playmaker_leans_point_guard(self):
        player = StatSet.from_dict({
            "total_off_assist": {"value": 40},
            "total_off_fga": {"value": 100},
            "total_off_to": {"value": 20},
        })
        confidences, diags = build_position_confidences(player)
        assert sum(confidences.values()) == pytest.approx(1.0)
        assert max(confidences, key=confidences.get) == "pos_pg"
        assert diags.calculated["calc_assist_per_fga"] == pytest.approx(0.4)
        assert diags.calculated["calc_ast_tov"] == pytest.approx(2.0)

    def test_height_from_roster(self):
        player = StatSet(roster=RosterEntry(height="6-10"))
        confidences, diags = build_position_confidences(player)
        assert diags.confs_no_height is not None
        assert max(confidences, key=confidences.get) == "pos_c"
        assert sum(confidences.values()) == pytest.approx(1.0)

    def test_height_override(self):
        confidences, _ = build_position_confidences(StatSet(), height_override=73.0)
        assert max(confidences, key=confidences.get) == "pos_pg"

    def test_incorporate_height_keeps_zero_confidences(self):
        confs = _conf_dict([0.5, 0.5, 0.0, 0.0, 0.0])
        blended = incorporate_height(84.0, confs)
        assert blended["pos_sf"] == 0.0
        assert blended["pos_c"] == 0.0
        assert blended["pos_sg"] > blended["pos_pg"]


class TestRosterOverrides:
    def test_using_roster_pos(self):
        assert using_roster_pos("C", "G") == "PF/C"
        assert using_roster_pos("WG", "C") == "WF"
        assert using_roster_pos("WG", "G") is None
        assert using_roster_pos("PG", None) is None

    def test_roster_entry_coarse_pos(self):
        assert RosterEntry(pos="G/F").coarse_pos == "G"
        assert RosterEntry(pos="pf").coarse_pos == "F"
        assert RosterEntry(pos="C").coarse_pos == "C"
        assert RosterEntry().coarse_pos is None

    def test_roster_entry_height(self):
        assert RosterEntry(height="6-5").height_inches == 77.0
        assert RosterEntry(height_in=80).height_inches == 80.0
        assert RosterEntry(height="tall").height_inches is None
