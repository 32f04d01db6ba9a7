"""
Strategy generation for Course Caddie.

Builds a small set of named, multi-shot plans per hole. Each par has its own
layout class. The simulator scores the plans afterwards.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Type

from .geo import (
    bearing_between,
    center_line_point,
    haversine_yards,
    polygon_centroid,
    project_point,
    shift_toward,
)
from .hazards import find_safe_landing
from .models import (
    ClubDistribution,
    Coordinate,
    CourseHole,
    NamedStrategyPlan,
    PlannedShot,
    StrategyCategory,
)

logger = logging.getLogger(__name__)

# Bias smaller than this is treated as straight
BIAS_TOLERANCE_YARDS = 0.5

BAIL_OUT_YARDS = 15
AGGRESSIVE_SHIFT_YARDS = 12
LAYUP_CARRY_GAP_YARDS = 20
SAFE_LAYUP_MID_FRACTION = 0.55


def closest_club(distance: float, distributions: Sequence[ClubDistribution]) -> Optional[ClubDistribution]:
    """Club whose mean carry is closest to the distance. Ties go to the earlier club."""
    if not distributions:
        return None
    return min(distributions, key=lambda d: abs(d.mean_carry - distance))


def longest_club(distributions: Sequence[ClubDistribution]) -> ClubDistribution:
    return max(distributions, key=lambda d: d.mean_carry)


def shortest_club(distributions: Sequence[ClubDistribution]) -> ClubDistribution:
    return min(distributions, key=lambda d: d.mean_carry)


def expected_landing(origin: Coordinate, bearing: float, club: ClubDistribution) -> Coordinate:
    """Where the club's average shot finishes, including its lateral bias."""
    landing = project_point(origin, bearing, club.mean_carry)
    if abs(club.mean_offline) > BIAS_TOLERANCE_YARDS:
        landing = project_point(landing, bearing + 90, club.mean_offline)
    return landing


def compensate_for_bias(target: Coordinate, bearing: float, club: ClubDistribution) -> Coordinate:
    """Shift the aim opposite the club's average miss."""
    if abs(club.mean_offline) <= BIAS_TOLERANCE_YARDS:
        return target
    return project_point(target, bearing + 90, -club.mean_offline)


class HoleLayout(ABC):
    """Generates the named strategies for one hole shape."""

    par: int = 0

    def __init__(self, hole: CourseHole, distance: float, distributions: Sequence[ClubDistribution]):
        self.hole = hole
        self.distance = distance
        self.distributions = list(distributions)
        self.tee = hole.tee
        self.pin = hole.pin
        self.heading = bearing_between(hole.tee, hole.pin)

    @abstractmethod
    def strategies(self) -> List[NamedStrategyPlan]:
        """Candidate plans for this hole."""

    def closest(self, distance: float) -> ClubDistribution:
        return closest_club(distance, self.distributions)

    def safe(self, target: Coordinate) -> Coordinate:
        return find_safe_landing(target, self.hole.hazards, self.heading)

    def along_center_line(self, distance: float) -> Coordinate:
        return center_line_point(self.hole.center_line, self.tee, distance, self.heading)

    def target(self, index: int) -> Coordinate:
        return self.hole.targets[index].coordinate

    def tee_then_approach(self, name: str, category: StrategyCategory,
                          tee_target: Coordinate, tee_club: ClubDistribution) -> NamedStrategyPlan:
        """Tee shot to a target, then the club that covers the rest to the pin."""
        landing = expected_landing(self.tee, self.heading, tee_club)
        approach = self.closest(haversine_yards(landing, self.pin))
        return NamedStrategyPlan(
            name=name,
            category=category,
            shots=[PlannedShot(tee_club, tee_target), PlannedShot(approach, self.pin)],
        )


class ParThreeLayout(HoleLayout):
    """Pin Hunting, Center Green, Bail Out."""

    par = 3

    def strategies(self) -> List[NamedStrategyPlan]:
        plans = [NamedStrategyPlan(
            "Pin Hunting", StrategyCategory.SCORING,
            [PlannedShot(self.closest(self.distance), self.pin)],
        )]

        center = self.green_center()
        plans.append(NamedStrategyPlan(
            "Center Green", StrategyCategory.BALANCED,
            [PlannedShot(self.closest(haversine_yards(self.tee, center)), center)],
        ))

        bail = self.bail_point()
        plans.append(NamedStrategyPlan(
            "Bail Out", StrategyCategory.SAFE,
            [PlannedShot(self.closest(haversine_yards(self.tee, bail)), bail)],
        ))
        return plans

    def green_center(self) -> Coordinate:
        for polygon in (self.hole.green, self.hole.fairway):
            if len(polygon) >= 3:
                return polygon_centroid(polygon)
        return project_point(self.tee, self.heading, self.distance)

    def bail_point(self) -> Coordinate:
        """15 yards off the pin, directly away from the nearest hazard."""
        testable = [h for h in self.hole.hazards if h.is_testable]
        if not testable:
            return project_point(self.pin, self.heading + 90, BAIL_OUT_YARDS)

        nearest = min(testable, key=lambda h: haversine_yards(self.pin, polygon_centroid(h.polygon)))
        toward = bearing_between(self.pin, polygon_centroid(nearest.polygon))
        return project_point(self.pin, toward + 180, BAIL_OUT_YARDS)


class ParFourLayout(HoleLayout):
    """Conservative, Aggressive, Layup."""

    par = 4

    def strategies(self) -> List[NamedStrategyPlan]:
        longest = longest_club(self.distributions)

        raw = self.target(0) if self.hole.targets else self.along_center_line(longest.mean_carry)
        conservative = self.safe(raw)
        aggressive = self.safe(shift_toward(conservative, self.pin, AGGRESSIVE_SHIFT_YARDS))

        mid_clubs = [d for d in self.distributions if d.mean_carry < longest.mean_carry - LAYUP_CARRY_GAP_YARDS]
        layup_club = longest_club(mid_clubs) if mid_clubs else longest
        layup = self.safe(self.along_center_line(layup_club.mean_carry))

        return [
            self.tee_then_approach(
                "Conservative", StrategyCategory.BALANCED,
                conservative, self.closest(haversine_yards(self.tee, conservative)),
            ),
            self.tee_then_approach(
                "Aggressive", StrategyCategory.SCORING,
                aggressive, self.closest(haversine_yards(self.tee, aggressive)),
            ),
            self.tee_then_approach("Layup", StrategyCategory.SAFE, layup, layup_club),
        ]


class ParFiveLayout(HoleLayout):
    """Conservative 3-Shot, Go-For-It, Safe Layup."""

    par = 5

    def strategies(self) -> List[NamedStrategyPlan]:
        longest = longest_club(self.distributions)
        return [
            self.three_shot(),
            self.go_for_it(longest),
            self.safe_layup(longest),
        ]

    def waypoints(self):
        segment = self.distance / 3
        if len(self.hole.targets) >= 2:
            raw = (self.target(0), self.target(1))
        else:
            raw = (self.along_center_line(segment), self.along_center_line(segment * 2))
        return self.safe(raw[0]), self.safe(raw[1])

    def three_shot(self) -> NamedStrategyPlan:
        wp1, wp2 = self.waypoints()

        club1 = self.closest(haversine_yards(self.tee, wp1))
        landing1 = expected_landing(self.tee, self.heading, club1)
        club2 = self.closest(haversine_yards(landing1, wp2))
        landing2 = expected_landing(landing1, bearing_between(landing1, wp2), club2)
        club3 = self.closest(haversine_yards(landing2, self.pin))

        return NamedStrategyPlan("Conservative 3-Shot", StrategyCategory.BALANCED, [
            PlannedShot(club1, wp1),
            PlannedShot(club2, wp2),
            PlannedShot(club3, self.pin),
        ])

    def go_for_it(self, longest: ClubDistribution) -> NamedStrategyPlan:
        target = self.safe(self.along_center_line(longest.mean_carry))
        return self.tee_then_approach("Go-For-It", StrategyCategory.SCORING, target, longest)

    def safe_layup(self, longest: ClubDistribution) -> NamedStrategyPlan:
        target1 = self.safe(self.along_center_line(longest.mean_carry))
        landing1 = expected_landing(self.tee, self.heading, longest)

        mid_club = self.closest((self.distance - longest.mean_carry) * SAFE_LAYUP_MID_FRACTION)
        bearing2 = bearing_between(landing1, self.pin)
        target2 = project_point(landing1, bearing2, mid_club.mean_carry)
        landing2 = expected_landing(landing1, bearing2, mid_club)

        wedge = self.closest(haversine_yards(landing2, self.pin)) or shortest_club(self.distributions)

        return NamedStrategyPlan("Safe Layup", StrategyCategory.SAFE, [
            PlannedShot(longest, target1),
            PlannedShot(mid_club, target2),
            PlannedShot(wedge, self.pin),
        ])


LAYOUTS: Dict[int, Type[HoleLayout]] = {
    layout.par: layout for layout in (ParThreeLayout, ParFourLayout, ParFiveLayout)
}


def generate_named_strategies(
    hole: CourseHole,
    tee_box: str,
    distributions: Sequence[ClubDistribution],
) -> List[NamedStrategyPlan]:
    """Candidate strategies for a hole, or an empty list when none can be built."""
    if not distributions:
        return []

    distance = hole.playing_distance(tee_box)
    if not distance:
        return []

    layout_cls = LAYOUTS.get(hole.par)
    if layout_cls is None:
        logger.warning(f"No strategy layout for par {hole.par} (hole {hole.hole_number})")
        return []

    return layout_cls(hole, distance, distributions).strategies()
