"""Tests for luck adjustment."""

import copy

import pytest

from cbb_engine.models.stat_set import Metric, OverrideRecord, StatSet
from cbb_engine.stats.luck import (
    DERIVED_OPPO_DEF_3P,
    calc_def_player_luck_adj,
    calc_def_team_luck_adj,
    calc_off_player_luck_adj,
    calc_off_team_luck_adj,
    inject_luck,
)
from cbb_engine.stats.overrides import LUCK_ADJUSTED, MANUALLY_ADJUSTED


def _stat_set(key="", **values):
    return StatSet(key=key, metrics={name: Metric(value=value) for name, value in values.items()})


def _hot_lineup():
    return _stat_set(
        key="lineup",
        off_3p=0.50,
        total_off_3p_attempts=100,
        off_ft=0.80,
        total_off_fta=50,
        total_off_fga=200,
        off_poss=250,
        off_orb=0.30,
        off_ppp=110.0,
        off_efg=0.55,
        off_adj_ppp=108.0,
        def_3p=0.40,
        total_def_3p_attempts=100,
        def_3p_opp=0.33,
        def_ft=0.70,
        total_def_fta=40,
        total_def_fga=180,
        def_poss=250,
        def_orb=0.25,
        def_ppp=105.0,
        def_efg=0.52,
        def_adj_ppp=104.0,
    )


def _baseline_team():
    return _stat_set(
        key="team",
        off_3p=0.35,
        off_ft=0.72,
        def_3p=0.32,
        total_def_3p_attempts=300,
        def_ft=0.70,
    )


def _shooter(key="shooter", attempts=100):
    return _stat_set(key=key, total_off_3p_attempts=attempts, total_off_fta=0)


class TestOffLuck:
    def test_target_is_players_regressed_baseline(self):
        player_base = _stat_set(key="shooter", off_3p=0.40, total_off_3p_attempts=200)
        diags = calc_off_team_luck_adj(
            _hot_lineup(), [_shooter()], _baseline_team(), {"shooter": player_base}, 100.0
        )
        player_3p = (200 * 0.40 + 30 * 0.35) / 230
        assert diags.player_3p["shooter"] == pytest.approx(player_3p)
        assert diags.base_3p == pytest.approx(player_3p)
        assert diags.adj_3p == pytest.approx((100 * 0.50 + 100 * player_3p) / 200)
        assert diags.delta_3p == pytest.approx(diags.adj_3p - 0.50)
        assert diags.delta_3p_made == pytest.approx(100 * diags.delta_3p)
        assert diags.delta_off_efg == pytest.approx(1.5 * diags.delta_3p_made / 200)

    def test_missing_players_fall_back_to_team(self):
        diags = calc_off_team_luck_adj(_hot_lineup(), [_shooter("nobody")], _baseline_team(), {}, 100.0)
        assert diags.base_3p == pytest.approx(0.35)
        assert diags.base_ft == pytest.approx(0.72)

    def test_manual_override_sets_player_rate(self):
        player_base = _stat_set(key="shooter", off_3p=0.40, total_off_3p_attempts=200)
        overrides = [
            OverrideRecord(row_id="shooter", stat_name="off_3p", new_val=0.45),
            OverrideRecord(row_id="shooter", stat_name="off_ft", new_val=0.9, use=False),
        ]
        diags = calc_off_team_luck_adj(
            _hot_lineup(), [_shooter()], _baseline_team(), {"shooter": player_base}, 100.0,
            manual_overrides=overrides,
        )
        assert diags.player_3p["shooter"] == pytest.approx(0.45)
        assert diags.player_ft["shooter"] != pytest.approx(0.9)

    def test_3pa_override_changes_shrinkage_only(self):
        args = (_hot_lineup(), [], _baseline_team(), {}, 100.0)
        default = calc_off_team_luck_adj(*args)
        heavier = calc_off_team_luck_adj(*args, sample_3pa_override=300)
        assert heavier.sample_3pa == 300
        assert abs(heavier.delta_3p) < abs(default.delta_3p)

    def test_player_is_lineup_of_one(self):
        sample = _stat_set(
            key="p1", off_3p=0.45, total_off_3p_attempts=40, off_ft=0.6, total_off_fta=20,
            total_off_fga=80, off_poss=90, off_ppp=105.0,
        )
        baseline = _stat_set(key="p1", off_3p=0.38, total_off_3p_attempts=120, off_ft=0.7, total_off_fta=60)
        assert calc_off_player_luck_adj(sample, baseline, 100.0) == calc_off_team_luck_adj(
            sample, [sample], baseline, {"p1": baseline}, 100.0
        )

    def test_empty_inputs(self):
        diags = calc_off_team_luck_adj(StatSet(), [], StatSet(), {}, 100.0)
        assert all(delta == 0.0 for delta in diags.deltas().values())


class TestDefLuck:
    def test_target_regressed_toward_opponent_quality(self):
        diags = calc_def_team_luck_adj(_hot_lineup(), _baseline_team(), 100.0)
        target = (300 * 0.32 + 200 * 0.33) / 500
        assert diags.target_3p == pytest.approx(target)
        assert diags.adj_3p == pytest.approx((100 * 0.40 + 100 * target) / 200)
        assert diags.delta_3p == pytest.approx(diags.adj_3p - 0.40)
        assert diags.deltas()["oppo_def_3p"] == diags.delta_3p

    def test_unknown_opponent_quality_uses_baseline(self):
        lineup = _hot_lineup()
        del lineup["def_3p_opp"]
        diags = calc_def_team_luck_adj(lineup, _baseline_team(), 100.0)
        assert diags.target_3p == pytest.approx(0.32)

    def test_player_reports_no_rebounding_or_schedule(self):
        player = _stat_set(
            key="p1",
            oppo_total_def_3p_attempts=60,
            oppo_total_def_3p_made=27,
            oppo_total_def_fta=20,
            oppo_total_def_ftm=14,
            oppo_total_def_poss=150,
            oppo_total_def_pts=160,
            off_adj_opp=103.0,
        )
        diags = calc_def_player_luck_adj(player, player, 100.0)
        assert diags.sample_def_orb == 0.0
        assert diags.sample_off_sos == 0.0
        assert diags.sample_3p == pytest.approx(0.45)
        assert diags.sample_3pa == 60
        # Own sample as baseline: nothing to regress toward
        assert diags.delta_3p == pytest.approx(0.0)

    def test_empty_inputs(self):
        diags = calc_def_team_luck_adj(StatSet(), StatSet(), 100.0)
        assert all(delta == 0.0 for delta in diags.deltas().values())


class TestInjectLuck:
    def _diags(self, lineup):
        off = calc_off_team_luck_adj(lineup, [], _baseline_team(), {}, 100.0)
        deff = calc_def_team_luck_adj(lineup, _baseline_team(), 100.0)
        return off, deff

    def test_marks_adjusted_metrics(self):
        lineup = _hot_lineup()
        off, deff = self._diags(lineup)
        inject_luck(lineup, off, deff)
        assert lineup["off_3p"].override == LUCK_ADJUSTED
        assert lineup["off_3p"].old_value == 0.50
        assert lineup["off_3p"].value == pytest.approx(0.50 + off.delta_3p)
        assert lineup["def_ppp"].value == pytest.approx(105.0 + deff.delta_def_ppp)
        assert lineup["total_off_3p_attempts"].override is None

    def test_idempotent(self):
        lineup = _hot_lineup()
        off, deff = self._diags(lineup)
        inject_luck(lineup, off, deff)
        once = copy.deepcopy(lineup.to_dict())
        inject_luck(lineup, off, deff)
        assert lineup.to_dict() == once

    def test_recalculating_after_injection_is_stable(self):
        lineup = _hot_lineup()
        off, deff = self._diags(lineup)
        inject_luck(lineup, off, deff)
        assert self._diags(lineup) == (off, deff)

    def test_reversible(self):
        lineup = _hot_lineup()
        lineup.set_value("oppo_total_def_3p_attempts", 50)
        lineup.set_value("oppo_total_def_3p_made", 20)
        original = copy.deepcopy(lineup.to_dict())
        off, deff = self._diags(lineup)
        inject_luck(lineup, off, deff)
        assert lineup.to_dict() != original
        inject_luck(lineup, None, None)
        assert lineup.to_dict() == original

    def test_derives_oppo_def_3p(self):
        lineup = _hot_lineup()
        lineup.set_value("oppo_total_def_3p_attempts", 50)
        lineup.set_value("oppo_total_def_3p_made", 20)
        off, deff = self._diags(lineup)
        inject_luck(lineup, off, deff)
        metric = lineup["oppo_def_3p"]
        assert metric.old_value == pytest.approx(0.4)
        assert metric.value == pytest.approx(0.4 + deff.delta_3p)
        assert metric.extra_info == DERIVED_OPPO_DEF_3P

        inject_luck(lineup, None, None)
        assert "oppo_def_3p" not in lineup

    def test_manual_overrides_are_left_alone(self):
        lineup = _hot_lineup()
        lineup["off_3p"] = Metric(value=0.42, old_value=0.50, override=MANUALLY_ADJUSTED)
        off, deff = self._diags(lineup)
        inject_luck(lineup, off, deff)
        assert lineup["off_3p"] == Metric(value=0.42, old_value=0.50, override=MANUALLY_ADJUSTED)
        assert lineup["off_ft"].override == LUCK_ADJUSTED

    def test_empty_stat_set(self):
        stat_set = StatSet()
        inject_luck(stat_set, *self._diags(_hot_lineup()))
        assert stat_set.to_dict() == {"key": ""}


class TestOtherRates:
    def test_two_point_target_is_composition_aware(self):
        sample = _stat_set(
            key="lineup", off_2p=0.60, total_off_2p_attempts=150, total_off_fga=200,
            off_poss=250, off_ppp=110.0,
        )
        players = [
            _stat_set(key="big", total_off_2p_attempts=100),
            _stat_set(key="wing", total_off_2p_attempts=50),
        ]
        baselines = {
            "big": _stat_set(key="big", off_2p=0.55, total_off_2p_attempts=160),
            "wing": _stat_set(key="wing", total_off_2p_attempts=80),
        }
        diags = calc_off_team_luck_adj(sample, players, _stat_set(off_2p=0.50), baselines, 100.0)

        assert diags.player_2p["big"] == pytest.approx(0.54)
        assert diags.player_2p["wing"] == pytest.approx(0.50)
        assert diags.base_2p == pytest.approx(79 / 150)
        assert diags.adj_2p == pytest.approx((0.60 + 79 / 150) / 2)
        assert diags.delta_2p_made == pytest.approx(-5.5)
        assert diags.delta_off_efg == pytest.approx(-0.0275)
        assert diags.delta_off_ppp == pytest.approx(-4.4)
        assert diags.delta_3p == 0.0

    def test_turnovers_cost_a_possession(self):
        sample = _stat_set(key="lineup", off_to=0.25, off_poss=200, off_ppp=100.0)
        diags = calc_off_team_luck_adj(sample, [], _stat_set(off_to=0.15), {}, 100.0)
        assert diags.adj_to == pytest.approx(0.20)
        assert diags.delta_tos == pytest.approx(-10.0)
        assert diags.delta_pts == pytest.approx(10.0)
        assert diags.delta_off_ppp == pytest.approx(5.0)
        assert diags.deltas()["off_to"] == pytest.approx(-0.05)

    def test_offensive_rebounding(self):
        sample = _stat_set(
            key="lineup", off_orb=0.40, off_poss=200, total_off_fga=150, total_off_fgm=70,
            off_ppp=100.0,
        )
        player = _stat_set(key="p1", off_team_poss=100)
        baseline_player = _stat_set(key="p1", team_total_off_orb=30, oppo_total_def_drb=70)
        diags = calc_off_team_luck_adj(
            sample, [player], _stat_set(off_orb=0.30), {"p1": baseline_player}, 100.0
        )
        assert diags.player_orb["p1"] == pytest.approx(0.30)
        assert diags.adj_orb == pytest.approx(0.35)
        assert diags.delta_orbs == pytest.approx(-4.0)
        assert diags.delta_off_ppp == pytest.approx(-2.0)

    def test_player_rebounding_not_regressed(self):
        sample = _stat_set(key="p1", off_orb=0.40, off_poss=200, total_off_fga=150, total_off_fgm=70)
        baseline = _stat_set(key="p1", off_orb=0.10)
        diags = calc_off_player_luck_adj(sample, baseline, 100.0)
        assert diags.delta_orb == 0.0
        assert diags.delta_orbs == 0.0

    def test_manual_turnover_override(self):
        sample = _stat_set(key="lineup", off_to=0.25, off_poss=200)
        player = _stat_set(key="p1", off_poss=80)
        overrides = [OverrideRecord(row_id="p1", stat_name="off_to", new_val=0.10)]
        diags = calc_off_team_luck_adj(
            sample, [player], _stat_set(off_to=0.15), {"p1": _stat_set(key="p1", off_to=0.2)},
            100.0, manual_overrides=overrides,
        )
        assert diags.player_to["p1"] == pytest.approx(0.10)
        assert diags.base_to == pytest.approx(0.10)

    def test_defensive_two_pointers_and_turnovers(self):
        sample = _stat_set(
            key="lineup", def_2p=0.55, total_def_2p_attempts=100, def_to=0.12, def_poss=200,
            def_ppp=100.0,
        )
        diags = calc_def_team_luck_adj(sample, _stat_set(def_2p=0.45, def_to=0.18), 100.0)
        assert diags.adj_2p == pytest.approx(0.49)
        assert diags.adj_to == pytest.approx(0.15)
        assert diags.delta_2p_made == pytest.approx(-6.0)
        assert diags.delta_tos == pytest.approx(6.0)
        assert diags.delta_def_ppp == pytest.approx(-9.0)
        assert diags.deltas()["def_2p"] == pytest.approx(-0.06)
        assert diags.deltas()["def_to"] == pytest.approx(0.03)

    def test_inject_adjusts_every_rate(self):
        lineup = _hot_lineup()
        lineup.set_value("off_2p", 0.58)
        lineup.set_value("total_off_2p_attempts", 100)
        lineup.set_value("off_to", 0.22)
        team = _baseline_team()
        team.set_value("off_2p", 0.50)
        team.set_value("off_to", 0.17)
        off = calc_off_team_luck_adj(lineup, [], team, {}, 100.0)
        inject_luck(lineup, off, None)
        assert lineup["off_2p"].value == pytest.approx(0.58 + off.delta_2p)
        assert lineup["off_2p"].old_value == 0.58
        assert lineup["off_to"].override == LUCK_ADJUSTED
        assert off.delta_2p < 0
        assert off.delta_to < 0
