"""
Monte Carlo simulation engine for Course Caddie.
Plays each named strategy many times to estimate expected strokes and risk.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import Config, get_config, hazard_label
from .geo import (
    bearing_between,
    haversine_yards,
    normalize_angle,
    polygon_centroid,
    project_point,
)
from .hazards import check_hazards
from .models import (
    AimPoint,
    ClubDistribution,
    Coordinate,
    CourseHole,
    Hazard,
    NamedStrategyPlan,
    OptimizedStrategy,
    ScoreDistribution,
    StrategyMode,
)
from .strategy import (
    BIAS_TOLERANCE_YARDS,
    closest_club,
    compensate_for_bias,
    generate_named_strategies,
)

logger = logging.getLogger(__name__)

# Distance the ball is moved back toward the previous position after a hazard
HAZARD_DROP_YARDS = 5

# Carry note window
CARRY_NOTE_MIN_YARDS = 20
CARRY_NOTE_BEYOND_YARDS = 50
CARRY_NOTE_MAX_ANGLE = 35

# Caddie tip window
TIP_HAZARD_RADIUS_YARDS = 50


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_score_distribution(scores: Sequence[float], par: int) -> ScoreDistribution:
    """Bucket trial scores by (rounded score - par). Fractions sum to 1."""
    dist = ScoreDistribution()
    n = len(scores)
    if n == 0:
        return dist

    counts = {"eagle": 0, "birdie": 0, "par": 0, "bogey": 0, "double": 0, "worse": 0}
    for score in scores:
        diff = round_half_up(score) - par
        if diff <= -2:
            counts["eagle"] += 1
        elif diff == -1:
            counts["birdie"] += 1
        elif diff == 0:
            counts["par"] += 1
        elif diff == 1:
            counts["bogey"] += 1
        elif diff == 2:
            counts["double"] += 1
        else:
            counts["worse"] += 1

    return ScoreDistribution(**{k: v / n for k, v in counts.items()})


def compute_carry_note(
    origin: Coordinate,
    carry: float,
    bearing: float,
    hazards: Sequence[Hazard],
) -> Optional[str]:
    """
    Describe the carry against the farthest hazard roughly on the line.
    e.g. "+12y past bunker" or "-8y short of water".
    """
    best_note = None
    best_dist = 0

    for hazard in hazards:
        if not hazard.is_testable:
            continue
        centroid = polygon_centroid(hazard.polygon)
        dist = haversine_yards(origin, centroid)
        if dist > carry + CARRY_NOTE_BEYOND_YARDS or dist < CARRY_NOTE_MIN_YARDS:
            continue
        if abs(normalize_angle(bearing_between(origin, centroid) - bearing)) > CARRY_NOTE_MAX_ANGLE:
            continue

        if dist > best_dist:
            best_dist = dist
            label = hazard_label(hazard.type)
            clearance = round_half_up(carry - dist)
            if clearance >= 0:
                best_note = f"+{clearance}y past {label}"
            else:
                best_note = f"{clearance}y short of {label}"

    return best_note


def generate_caddie_tip(
    origin: Coordinate,
    aim: Coordinate,
    target: Coordinate,
    club: ClubDistribution,
    hazards: Sequence[Hazard],
    is_approach: bool,
) -> str:
    """Plain-language aiming advice for one shot."""
    shot_bearing = bearing_between(origin, target)

    aim_shift = normalize_angle(bearing_between(origin, aim) - shot_bearing)
    aim_side = "left" if aim_shift < -1 else "right" if aim_shift > 1 else None

    ball_dir = "right" if club.mean_offline > 1 else "left" if club.mean_offline < -1 else None
    ball_works = f"works {ball_dir}" if ball_dir else None

    nearby = []
    for hazard in hazards:
        if not hazard.is_testable:
            continue
        centroid = polygon_centroid(hazard.polygon)
        dist_to_target = haversine_yards(target, centroid)
        if dist_to_target > TIP_HAZARD_RADIUS_YARDS:
            continue
        rel = normalize_angle(bearing_between(origin, centroid) - shot_bearing)
        side = "right" if rel >= 0 else "left"
        desc = f"{side} {hazard_label(hazard.type)}"
        if not is_approach:
            desc += f" at {haversine_yards(origin, centroid)}y"
        nearby.append((dist_to_target, side, desc))

    nearby.sort(key=lambda item: item[0])
    by_side = {}
    for _, side, desc in nearby:
        by_side.setdefault(side, desc)

    dest = "the pin" if is_approach else "the fairway"
    works_suffix = f", {ball_works} to {dest}" if ball_works else ""

    if is_approach:
        if not aim_side:
            return "Straight at the pin"
        avoiding = next((desc for side, desc in by_side.items() if side != aim_side), None)
        if avoiding:
            return f"Aim {aim_side} of the {avoiding}{works_suffix}"
        if ball_works:
            return f"Start {aim_side}, {ball_works} toward the pin"
        return "Aim at the pin"

    if not aim_side and not ball_works:
        return "Down the center"

    if by_side and aim_side:
        same = by_side.get(aim_side)
        opposite = by_side.get("right" if aim_side == "left" else "left")
        if same and ball_works:
            return f"Start at the {same}, {ball_works} to {dest}"
        if opposite:
            return f"Aim {aim_side} of the {opposite}{works_suffix}"

    if aim_side and ball_works:
        return f"Start {aim_side} side, {ball_works} to center"

    return "Down the center"


class Simulator:
    """Monte Carlo hole simulator."""

    def __init__(
        self,
        n_trials: int = None,
        rng: Optional[np.random.Generator] = None,
        config: Optional[Config] = None,
    ):
        """Initialize simulator. Pass a seeded Generator for reproducible runs."""
        self.config = config or get_config()
        self.n_trials = n_trials or self.config.default_trials
        self._rng = rng if rng is not None else np.random.default_rng()

    def expected_putts(self, distance: float) -> float:
        """Average putts from a distance in yards."""
        if distance <= 1:
            return 1.0
        return min(self.config.max_putts, 1 + self.config.putt_log_coefficient * math.log(distance))

    def chip_threshold(self, distributions: Sequence[ClubDistribution]) -> float:
        shortest = min(d.mean_carry for d in distributions)
        return max(self.config.chip_floor_yards, shortest * self.config.chip_carry_fraction)

    def take_shot(
        self,
        position: Coordinate,
        aim: Coordinate,
        club: ClubDistribution,
        hazards: Sequence[Hazard],
    ) -> Tuple[Coordinate, float]:
        """
        Hit one shot from position toward aim.
        Returns the resting position and the strokes it cost (1 plus any penalty).
        """
        carry = self._rng.normal(club.mean_carry, club.std_carry)
        offline = self._rng.normal(club.mean_offline, club.std_offline)

        raw_bearing = bearing_between(position, aim)
        shot_bearing = bearing_between(position, compensate_for_bias(aim, raw_bearing, club))

        landing = project_point(position, shot_bearing, carry)
        if abs(offline) > BIAS_TOLERANCE_YARDS:
            landing = project_point(landing, shot_bearing + 90, offline)

        strokes = 1.0
        check = check_hazards(landing, hazards)
        if check.in_hazard:
            strokes += check.penalty
            landing = project_point(landing, bearing_between(landing, position), HAZARD_DROP_YARDS)

        return landing, strokes

    def play_trial(
        self,
        plan: NamedStrategyPlan,
        hole: CourseHole,
        distributions: Sequence[ClubDistribution],
        chip: float,
    ) -> float:
        """Play the hole once and return the score."""
        position = hole.tee
        strokes = 0.0

        for shot in plan.shots:
            position, cost = self.take_shot(position, shot.aim_point, shot.club, hole.hazards)
            strokes += cost
            if haversine_yards(position, hole.pin) <= chip:
                break

        distance = haversine_yards(position, hole.pin)
        while distance > chip and strokes < self.config.max_shots_per_hole:
            club = closest_club(distance, distributions)
            position, cost = self.take_shot(position, hole.pin, club, hole.hazards)
            strokes += cost
            distance = haversine_yards(position, hole.pin)

        if self.config.holed_tolerance_yards < distance <= chip:
            return strokes + 1 + self.expected_putts(3)
        return strokes + self.expected_putts(distance)

    def build_aim_points(self, plan: NamedStrategyPlan, hole: CourseHole) -> List[AimPoint]:
        """Per-shot aim annotations along the plan's intended path."""
        aim_points = []
        aim_from = hole.tee
        for i, shot in enumerate(plan.shots):
            bearing = bearing_between(aim_from, shot.aim_point)
            position = compensate_for_bias(shot.aim_point, bearing, shot.club)
            aim_points.append(AimPoint(
                position=position,
                club_name=shot.club.club_name,
                shot_number=i + 1,
                carry=round_half_up(shot.club.mean_carry),
                carry_note=compute_carry_note(aim_from, shot.club.mean_carry, bearing, hole.hazards),
                tip=generate_caddie_tip(
                    aim_from, position, shot.aim_point, shot.club, hole.hazards,
                    is_approach=i == len(plan.shots) - 1,
                ),
            ))
            aim_from = shot.aim_point
        return aim_points

    def simulate_hole(
        self,
        plan: NamedStrategyPlan,
        hole: CourseHole,
        distributions: Sequence[ClubDistribution],
        trials: int = None,
    ) -> OptimizedStrategy:
        """Run trials of one strategy on one hole."""
        trials = trials or self.n_trials
        chip = self.chip_threshold(distributions)

        scores = np.array([
            self.play_trial(plan, hole, distributions, chip)
            for _ in range(trials)
        ])

        score_dist = compute_score_distribution(scores, hole.par)

        return OptimizedStrategy(
            strategy_name=plan.name,
            strategy_type=plan.category,
            expected_strokes=float(scores.mean()),
            std_strokes=float(scores.std()),
            score_distribution=score_dist,
            blowup_risk=score_dist.double + score_dist.worse,
            clubs=[{"club_id": s.club.club_id, "club_name": s.club.club_name} for s in plan.shots],
            label=" → ".join(
                f"{s.club.club_name} ({round_half_up(s.club.mean_carry)})" for s in plan.shots
            ),
            aim_points=self.build_aim_points(plan, hole),
        )

    def optimize_hole(
        self,
        hole: CourseHole,
        tee_box: str,
        distributions: Sequence[ClubDistribution],
        mode: StrategyMode = StrategyMode.SCORING,
        trials: int = None,
    ) -> List[OptimizedStrategy]:
        """
        Simulate every named strategy for a hole and rank them.
        Scoring mode ranks by expected strokes, safe mode by blow-up risk.
        """
        if not distributions:
            return []

        plans = generate_named_strategies(hole, tee_box, distributions)
        if not plans:
            return []

        results = [self.simulate_hole(plan, hole, distributions, trials) for plan in plans]

        if mode == StrategyMode.SAFE:
            results.sort(key=lambda r: r.blowup_risk)
        else:
            results.sort(key=lambda r: r.expected_strokes)

        logger.debug(
            f"Hole {hole.hole_number}: best {results[0].strategy_name} "
            f"({results[0].expected_strokes:.2f} xS)"
        )
        return results


def get_simulator(seed: Optional[int] = None, n_trials: int = None) -> Simulator:
    """Get a simulator, seeded when a seed is given."""
    return Simulator(n_trials=n_trials, rng=np.random.default_rng(seed))
