"""
Whole-round game plan aggregation.
"""

import logging
from datetime import date
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .models import (
    ClubDistribution,
    Course,
    GamePlan,
    HolePlan,
    OptimizedStrategy,
    RiskTier,
    ScoreDistribution,
    StrategyMode,
)
from .simulator import Simulator, get_simulator

logger = logging.getLogger(__name__)

KEY_HOLE_COUNT = 4
BIRDIE_GREEN_THRESHOLD = 0.15
BLOWUP_RED_THRESHOLD = 0.20


def color_code_hole(strategy: OptimizedStrategy) -> RiskTier:
    if strategy.score_distribution.birdie > BIRDIE_GREEN_THRESHOLD:
        return RiskTier.GREEN
    if strategy.blowup_risk > BLOWUP_RED_THRESHOLD:
        return RiskTier.RED
    return RiskTier.YELLOW


def aggregate_score_distribution(holes: Sequence[HolePlan]) -> ScoreDistribution:
    """Mean of the per-hole distributions of the winning strategies."""
    if not holes:
        return ScoreDistribution()
    frame = pd.DataFrame([h.strategy.score_distribution.to_dict() for h in holes])
    return ScoreDistribution.from_dict(frame.mean().to_dict())


def select_key_holes(deltas: Sequence[Tuple[int, float]], count: int = KEY_HOLE_COUNT) -> List[int]:
    """Holes where strategy choice matters most, returned in hole order."""
    ranked = sorted(deltas, key=lambda d: d[1], reverse=True)
    return sorted(hole_number for hole_number, _ in ranked[:count])


def generate_game_plan(
    course: Course,
    tee_box: str,
    distributions: Sequence[ClubDistribution],
    mode: StrategyMode = StrategyMode.SCORING,
    simulator: Optional[Simulator] = None,
    trials: int = None,
) -> GamePlan:
    """
    Optimize every hole on a course and roll the winners up into a game plan.
    Holes that produce no strategies are left out of the plan.
    """
    simulator = simulator or get_simulator()
    holes: List[HolePlan] = []
    deltas: List[Tuple[int, float]] = []

    for hole in course.holes:
        strategies = simulator.optimize_hole(hole, tee_box, distributions, mode, trials)
        if not strategies:
            logger.debug(f"Hole {hole.hole_number}: no strategies, skipping")
            continue

        winner = strategies[0]
        expected = [s.expected_strokes for s in strategies]
        deltas.append((hole.hole_number, max(expected) - min(expected)))

        holes.append(HolePlan(
            hole_number=hole.hole_number,
            par=hole.par,
            yardage=hole.scorecard_yardage(tee_box),
            plays_like_yardage=hole.plays_like_for(tee_box),
            strategy=winner,
            risk_tier=color_code_hole(winner),
        ))

    total_plays_like = sum(
        h.plays_like_yardage if h.plays_like_yardage is not None else h.yardage
        for h in holes
    )

    return GamePlan(
        course_name=course.name,
        tee_box=tee_box,
        mode=mode,
        date=date.today().isoformat(),
        total_expected=sum(h.strategy.expected_strokes for h in holes),
        breakdown=aggregate_score_distribution(holes),
        key_holes=select_key_holes(deltas),
        total_plays_like=total_plays_like,
        holes=holes,
    )
