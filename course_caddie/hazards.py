"""
Hazard checks and corridor filtering.

A hole's "corridor" is the tee->pin segment widened by a half-width. Hazards
whose centroid sits outside it are irrelevant to play on that hole.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from .geo import (
    distance_to_segment_yards,
    haversine_yards,
    point_in_polygon,
    polygon_centroid,
    project_point,
)
from .models import Coordinate, Course, CourseHole, Hazard

logger = logging.getLogger(__name__)

CORRIDOR_HALF_WIDTH_YARDS = 50
WIDE_CORRIDOR_TYPES = {"ob", "trees"}
DEDUP_RADIUS_YARDS = 30
SHARED_HAZARD_TYPES = {"ob", "trees", "water"}

SAFE_LANDING_OFFSETS = (10, 20, 30)


@dataclass
class HazardCheck:
    """Result of testing a landing point against a hole's hazards."""
    in_hazard: bool
    penalty: float = 0.0
    hazard_type: Optional[str] = None


def check_hazards(point: Coordinate, hazards: Sequence[Hazard]) -> HazardCheck:
    """First hazard (in input order) containing the point, if any."""
    for hazard in hazards:
        if not hazard.is_testable:
            continue
        if point_in_polygon(point, hazard.polygon):
            return HazardCheck(in_hazard=True, penalty=hazard.penalty, hazard_type=hazard.type)
    return HazardCheck(in_hazard=False)


def find_safe_landing(target: Coordinate, hazards: Sequence[Hazard], heading: float) -> Coordinate:
    """
    Nudge a target out of hazards.

    Probes 10/20/30 yards left of the heading, then the same offsets to the
    right, and returns the first clear point. Falls back to the raw target.
    """
    if not check_hazards(target, hazards).in_hazard:
        return target

    for direction in (-1, 1):
        for offset in SAFE_LANDING_OFFSETS:
            candidate = project_point(target, heading + 90, direction * offset)
            if not check_hazards(candidate, hazards).in_hazard:
                return candidate

    return target


def corridor_limit(hazard_type: str) -> float:
    if hazard_type in WIDE_CORRIDOR_TYPES:
        return CORRIDOR_HALF_WIDTH_YARDS * 2
    return CORRIDOR_HALF_WIDTH_YARDS


def in_corridor(tee: Coordinate, pin: Coordinate, hazard: Hazard) -> bool:
    """Whether a hazard's centroid lies within the tee->pin corridor."""
    if not hazard.is_testable:
        return False
    centroid = polygon_centroid(hazard.polygon)
    return distance_to_segment_yards(centroid, tee, pin) <= corridor_limit(hazard.type)


def filter_hazards_to_corridor(
    tee: Coordinate,
    pin: Coordinate,
    hazards: Sequence[Hazard],
) -> List[Hazard]:
    """Keep hazards near the line of play. Degenerate polygons are dropped."""
    kept = [h for h in hazards if in_corridor(tee, pin, h)]
    dropped = len(hazards) - len(kept)
    if dropped:
        logger.debug(f"Corridor filter dropped {dropped} of {len(hazards)} hazards")
    return kept


def import_shared_hazards(hole: CourseHole, other_holes: Sequence[CourseHole]) -> List[Hazard]:
    """
    Copy boundary-like hazards (OB, trees, water) from neighbouring holes.

    A hazard is imported when it falls inside this hole's corridor and no
    hazard of the same type already sits within the dedup radius. Returns the
    hole's full hazard list with the imports appended.
    """
    hazards = list(hole.hazards)

    for other in other_holes:
        if other.hole_number == hole.hole_number:
            continue
        for hazard in other.hazards:
            if hazard.type not in SHARED_HAZARD_TYPES:
                continue
            if not in_corridor(hole.tee, hole.pin, hazard):
                continue
            if _has_nearby_duplicate(hazard, hazards):
                continue

            hazards.append(replace(hazard, polygon=list(hazard.polygon)))
            logger.debug(
                f"Imported {hazard.type} '{hazard.name}' from hole "
                f"{other.hole_number} into hole {hole.hole_number}"
            )

    return hazards


def _has_nearby_duplicate(hazard: Hazard, existing: Sequence[Hazard]) -> bool:
    centroid = polygon_centroid(hazard.polygon)
    for other in existing:
        if other.type != hazard.type or not other.is_testable:
            continue
        if haversine_yards(centroid, polygon_centroid(other.polygon)) <= DEDUP_RADIUS_YARDS:
            return True
    return False


def share_course_hazards(course: Course) -> int:
    """
    Borrow shared hazards between a course's holes and trim each hole to its corridor.
    Returns the number of hazards imported across the course.
    """
    before = sum(len(h.hazards) for h in course.holes)
    merged = [import_shared_hazards(hole, course.holes) for hole in course.holes]
    imported = sum(len(m) for m in merged) - before

    for hole, hazards in zip(course.holes, merged):
        hole.hazards = filter_hazards_to_corridor(hole.tee, hole.pin, hazards)

    logger.info(f"{course.name}: imported {imported} shared hazard(s)")
    return imported
