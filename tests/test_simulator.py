"""
Tests for simulator.py - Monte Carlo hole simulation.
"""

import numpy as np
import pytest
from unittest.mock import MagicMock

from conftest import TEE, make_dist, make_hazard, make_hole, offset
from course_caddie.geo import haversine_yards, polygon_centroid
from course_caddie.models import NamedStrategyPlan, PlannedShot, StrategyCategory, StrategyMode
from course_caddie.simulator import (
    Simulator,
    compute_carry_note,
    compute_score_distribution,
    generate_caddie_tip,
    get_simulator,
    round_half_up,
)
from course_caddie.strategy import compensate_for_bias


def single_shot_plan(club, aim, name="Test"):
    return NamedStrategyPlan(name, StrategyCategory.BALANCED, [PlannedShot(club, aim)])


@pytest.fixture
def simulator(rng):
    return Simulator(n_trials=500, rng=rng)


class TestShortGame:
    """Tests for the putting and chipping model."""

    def test_tap_in(self, simulator):
        assert simulator.expected_putts(0) == 1.0
        assert simulator.expected_putts(1) == 1.0

    def test_log_curve(self, simulator):
        assert simulator.expected_putts(3) == pytest.approx(1 + 0.42 * np.log(3))

    def test_capped_at_three(self, simulator):
        assert simulator.expected_putts(1000) == 3.0

    def test_chip_threshold_from_shortest_club(self, simulator, sample_distributions):
        assert simulator.chip_threshold(sample_distributions) == pytest.approx(57.5)

    def test_chip_threshold_floor(self, simulator):
        assert simulator.chip_threshold([make_dist(mean_carry=15)]) == 10.0


class TestScoreDistribution:
    """Tests for bucketing trial scores."""

    def test_one_per_bucket(self):
        dist = compute_score_distribution([2, 3, 4, 5, 6, 7], par=4)
        for bucket in ("eagle", "birdie", "par", "bogey", "double", "worse"):
            assert getattr(dist, bucket) == pytest.approx(1 / 6)

    def test_half_rounds_up(self):
        assert compute_score_distribution([4.5], par=4).bogey == 1.0
        assert compute_score_distribution([3.49], par=4).birdie == 1.0

    def test_empty(self):
        assert compute_score_distribution([], par=4).total == 0.0

    def test_sums_to_one(self):
        scores = np.random.default_rng(3).normal(4.3, 1.1, 300)
        assert compute_score_distribution(scores, par=4).total == pytest.approx(1.0)

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-0.5) == 0


class TestTakeShot:
    """Tests for a single simulated shot."""

    def test_draws_carry_then_offline(self):
        rng = MagicMock()
        rng.normal.side_effect = [200.0, 0.0]
        sim = Simulator(n_trials=1, rng=rng)
        club = make_dist(mean_carry=210, std_carry=7, mean_offline=0, std_offline=4)

        landing, strokes = sim.take_shot(TEE, offset(TEE, north_yards=300), club, [])

        assert rng.normal.call_args_list[0].args == (210, 7)
        assert rng.normal.call_args_list[1].args == (0, 4)
        assert strokes == 1.0
        assert abs(haversine_yards(TEE, landing) - 200) <= 1

    def test_hazard_penalty_and_drop(self):
        rng = MagicMock()
        rng.normal.side_effect = [200.0, 0.0]
        sim = Simulator(n_trials=1, rng=rng)
        water = make_hazard(offset(TEE, north_yards=200), 20, type="water", penalty=1)

        landing, strokes = sim.take_shot(TEE, offset(TEE, north_yards=300), make_dist(), [water])

        assert strokes == 2.0
        assert abs(haversine_yards(TEE, landing) - 195) <= 1

    def test_offline_moves_ball_right(self):
        rng = MagicMock()
        rng.normal.side_effect = [200.0, 10.0]
        sim = Simulator(n_trials=1, rng=rng)

        landing, _ = sim.take_shot(TEE, offset(TEE, north_yards=300), make_dist(), [])

        assert landing.lng > TEE.lng


class TestSimulateHole:
    """Tests for running many trials of one plan."""

    def test_seeded_runs_repeat(self):
        hole = make_hole(3, 165)
        plan = single_shot_plan(make_dist(), hole.pin)
        dists = [make_dist()]
        first = Simulator(n_trials=300, rng=np.random.default_rng(7)).simulate_hole(plan, hole, dists)
        second = Simulator(n_trials=300, rng=np.random.default_rng(7)).simulate_hole(plan, hole, dists)
        assert first.expected_strokes == second.expected_strokes

    def test_converges_across_seeds(self):
        hole = make_hole(3, 165)
        plan = single_shot_plan(make_dist(), hole.pin)
        dists = [make_dist()]
        a = Simulator(n_trials=2000, rng=np.random.default_rng(1)).simulate_hole(plan, hole, dists)
        b = Simulator(n_trials=2000, rng=np.random.default_rng(2)).simulate_hole(plan, hole, dists)
        assert abs(a.expected_strokes - b.expected_strokes) < 0.15

    def test_result_fields(self, simulator):
        hole = make_hole(3, 165)
        result = simulator.simulate_hole(single_shot_plan(make_dist(), hole.pin, "Pin Hunting"), hole, [make_dist()])
        assert result.strategy_name == "Pin Hunting"
        assert result.strategy_type == StrategyCategory.BALANCED
        assert result.clubs == [{"club_id": "iron7", "club_name": "7 Iron"}]
        assert result.label == "7 Iron (165)"
        assert result.score_distribution.total == pytest.approx(1.0)
        assert result.blowup_risk == pytest.approx(
            result.score_distribution.double + result.score_distribution.worse
        )
        assert len(result.aim_points) == 1

    def test_multi_shot_label(self, simulator, sample_distributions):
        hole = make_hole(4, 400)
        driver, iron = sample_distributions[0], sample_distributions[4]
        plan = NamedStrategyPlan("Two", StrategyCategory.SCORING, [
            PlannedShot(driver, hole.targets[0].coordinate), PlannedShot(iron, hole.pin),
        ])
        result = simulator.simulate_hole(plan, hole, sample_distributions, trials=20)
        assert result.label == "Driver (275) → 9 Iron (135)"

    def test_par_four_end_to_end(self):
        hole = make_hole(4, 400)
        club = make_dist(club_id="d", club_name="Driver", mean_carry=250, std_carry=10, std_offline=5)
        sim = Simulator(n_trials=1000, rng=np.random.default_rng(11))
        results = sim.optimize_hole(hole, "blue", [club])
        assert 4.0 <= results[0].expected_strokes <= 5.5

    def test_hazards_raise_expected_strokes(self):
        clean = make_hole(3, 165)
        wet = make_hole(3, 165, hazards=[make_hazard(clean.pin, 30, type="water", penalty=1)])
        plan = single_shot_plan(make_dist(), clean.pin)

        dry_xs = Simulator(n_trials=1000, rng=np.random.default_rng(5)).simulate_hole(plan, clean, [make_dist()])
        wet_xs = Simulator(n_trials=1000, rng=np.random.default_rng(5)).simulate_hole(plan, wet, [make_dist()])

        assert wet_xs.expected_strokes > dry_xs.expected_strokes + 0.5

    def test_stroke_cap(self):
        hole = make_hole(4, 400)
        tiny = make_dist(club_id="t", club_name="Tiny", mean_carry=5, std_carry=0.1, std_offline=0.1)
        sim = Simulator(n_trials=50, rng=np.random.default_rng(0))
        result = sim.simulate_hole(single_shot_plan(tiny, hole.pin), hole, [tiny])
        # capped at 8 full shots, then a 3-putt from far away
        assert result.expected_strokes == pytest.approx(11.0)
        assert result.blowup_risk == 1.0


class TestOptimizeHole:
    """Tests for ranking strategies."""

    def test_scoring_mode_sorted_by_expected_strokes(self, simulator, sample_distributions):
        results = simulator.optimize_hole(make_hole(4, 400), "blue", sample_distributions, trials=200)
        strokes = [r.expected_strokes for r in results]
        assert strokes == sorted(strokes)
        assert len(results) == 3

    def test_safe_mode_sorted_by_blowup(self, simulator, sample_distributions):
        results = simulator.optimize_hole(
            make_hole(5, 530), "blue", sample_distributions, mode=StrategyMode.SAFE, trials=200,
        )
        risks = [r.blowup_risk for r in results]
        assert risks == sorted(risks)

    def test_no_distributions(self, simulator):
        assert simulator.optimize_hole(make_hole(4, 400), "blue", []) == []

    def test_unsupported_par(self, simulator, sample_distributions):
        assert simulator.optimize_hole(make_hole(6, 650), "blue", sample_distributions) == []


class TestAimPoints:
    """Tests for per-shot aim annotations."""

    def test_one_per_shot(self, simulator, sample_distributions):
        hole = make_hole(4, 400)
        plan = NamedStrategyPlan("Two", StrategyCategory.SCORING, [
            PlannedShot(sample_distributions[0], hole.targets[0].coordinate),
            PlannedShot(sample_distributions[4], hole.pin),
        ])
        aims = simulator.build_aim_points(plan, hole)
        assert [a.shot_number for a in aims] == [1, 2]
        assert [a.club_name for a in aims] == ["Driver", "9 Iron"]
        assert [a.carry for a in aims] == [275, 135]
        assert aims[0].tip == "Down the center"
        assert aims[1].tip == "Straight at the pin"

    def test_aim_compensates_bias(self, simulator):
        hole = make_hole(3, 165)
        fader = make_dist(mean_offline=6)
        aims = simulator.build_aim_points(single_shot_plan(fader, hole.pin), hole)
        assert aims[0].position.lng < hole.pin.lng


class TestCarryNote:
    """Tests for carry-versus-hazard notes."""

    def bunker_ahead(self, yards=200, **overrides):
        return make_hazard(offset(TEE, north_yards=yards), 8, **overrides)

    def test_carries_past(self):
        assert compute_carry_note(TEE, 230, 0, [self.bunker_ahead()]) == "+30y past bunker"

    def test_comes_up_short(self):
        assert compute_carry_note(TEE, 190, 0, [self.bunker_ahead()]) == "-10y short of bunker"

    def test_farthest_hazard_wins(self):
        hazards = [self.bunker_ahead(150), self.bunker_ahead(220, type="water")]
        assert compute_carry_note(TEE, 230, 0, hazards) == "+10y past water"

    def test_off_line_ignored(self):
        wide = make_hazard(offset(TEE, east_yards=200, north_yards=100), 8)
        assert compute_carry_note(TEE, 230, 0, [wide]) is None

    def test_too_close_ignored(self):
        assert compute_carry_note(TEE, 230, 0, [self.bunker_ahead(10)]) is None

    def test_too_far_ignored(self):
        assert compute_carry_note(TEE, 150, 0, [self.bunker_ahead(260)]) is None


class TestCaddieTip:
    """Tests for aiming advice strings."""

    target = offset(TEE, north_yards=200)

    def fader_aim(self):
        club = make_dist(mean_offline=5)
        return club, compensate_for_bias(self.target, 0, club)

    def test_straight_tee_shot(self):
        club = make_dist()
        assert generate_caddie_tip(TEE, self.target, self.target, club, [], False) == "Down the center"

    def test_straight_approach(self):
        club = make_dist()
        assert generate_caddie_tip(TEE, self.target, self.target, club, [], True) == "Straight at the pin"

    def test_start_left_works_right(self):
        club, aim = self.fader_aim()
        tip = generate_caddie_tip(TEE, aim, self.target, club, [], False)
        assert tip == "Start left side, works right to center"

    def test_approach_start_left(self):
        club, aim = self.fader_aim()
        tip = generate_caddie_tip(TEE, aim, self.target, club, [], True)
        assert tip == "Start left, works right toward the pin"

    def test_avoids_hazard_on_other_side(self):
        club, aim = self.fader_aim()
        bunker = make_hazard(offset(self.target, east_yards=25), 6)
        dist = haversine_yards(TEE, polygon_centroid(bunker.polygon))
        tip = generate_caddie_tip(TEE, aim, self.target, club, [bunker], False)
        assert tip == f"Aim left of the right bunker at {dist}y, works right to the fairway"

    def test_approach_avoids_hazard(self):
        club, aim = self.fader_aim()
        bunker = make_hazard(offset(self.target, east_yards=25), 6)
        tip = generate_caddie_tip(TEE, aim, self.target, club, [bunker], True)
        assert tip == "Aim left of the right bunker, works right to the pin"

    def test_distant_hazard_ignored(self):
        club, aim = self.fader_aim()
        far = make_hazard(offset(self.target, east_yards=80), 6)
        tip = generate_caddie_tip(TEE, aim, self.target, club, [far], False)
        assert tip == "Start left side, works right to center"


class TestGetSimulator:
    """Tests for the simulator factory."""

    def test_trials_from_config(self):
        assert get_simulator().n_trials == 2000

    def test_explicit_trials(self):
        assert get_simulator(seed=1, n_trials=50).n_trials == 50
