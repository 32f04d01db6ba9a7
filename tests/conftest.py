"""
Shared pytest fixtures for Course Caddie tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from course_caddie.geo import project_point
from course_caddie.models import (
    Club, ClubDistribution, Coordinate, Course, CourseHole, GamePlan, Hazard,
    HolePlan, OptimizedStrategy, RiskTier, ScoreDistribution, Shot,
    StrategyCategory, StrategyMode, Target,
)

# ~1 degree of latitude in yards, used to place pins north of the tee
YARDS_PER_DEGREE = 121100
TEE = Coordinate(lat=33.0, lng=-117.0)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db_path(temp_dir):
    """Create a temporary database path."""
    return temp_dir / "test_data.db"


@pytest.fixture(autouse=True)
def isolated_env():
    """Point the data dir and database at a throwaway location."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with patch.dict(os.environ, {
            "COURSE_CADDIE_DATA_DIR": tmpdir,
            "COURSE_CADDIE_DB_PATH": str(Path(tmpdir) / "caddie.db"),
            "COURSE_CADDIE_TRIALS": "2000",
            "COURSE_CADDIE_REGEN_DEBOUNCE": "5.0",
            "COURSE_CADDIE_LOG_LEVEL": "INFO",
        }, clear=False):
            yield Path(tmpdir)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


# =============================================================================
# Builders
# =============================================================================

def offset(origin: Coordinate, east_yards: float = 0.0, north_yards: float = 0.0) -> Coordinate:
    """Move a point east/north by a number of yards."""
    point = project_point(origin, 0, north_yards) if north_yards else origin
    return project_point(point, 90, east_yards) if east_yards else point


def square(center: Coordinate, half_yards: float):
    """Square polygon around a center point."""
    return [
        offset(center, -half_yards, -half_yards),
        offset(center, half_yards, -half_yards),
        offset(center, half_yards, half_yards),
        offset(center, -half_yards, half_yards),
    ]


def make_dist(**overrides) -> ClubDistribution:
    values = dict(
        club_id="iron7", club_name="7 Iron", mean_carry=165,
        std_carry=6, mean_offline=0, std_offline=5,
    )
    values.update(overrides)
    return ClubDistribution(**values)


def make_hazard(center: Coordinate, half_yards: float = 10, **overrides) -> Hazard:
    values = dict(name="Bunker 1", type="bunker", penalty=1, polygon=square(center, half_yards))
    values.update(overrides)
    return Hazard(**values)


def make_hole(par: int, distance: int = 400, hole_number: int = 1, **overrides) -> CourseHole:
    """A straight hole running due north from the tee."""
    pin = Coordinate(lat=TEE.lat + distance / YARDS_PER_DEGREE, lng=TEE.lng)
    target = Coordinate(lat=TEE.lat + distance * 0.6 / YARDS_PER_DEGREE, lng=TEE.lng)
    values = dict(
        hole_number=hole_number,
        par=par,
        yardages={"blue": distance},
        tee=TEE,
        pin=pin,
        center_line=[TEE, pin],
        targets=[Target(0, target, round(distance * 0.6), round(distance * 0.4))],
    )
    values.update(overrides)
    return CourseHole(**values)


def make_distributions():
    return [
        make_dist(club_id="driver", club_name="Driver", mean_carry=275, std_carry=12, std_offline=8),
        make_dist(club_id="wood3", club_name="3 Wood", mean_carry=235, std_carry=10, std_offline=7),
        make_dist(club_id="iron5", club_name="5 Iron", mean_carry=195, std_carry=7, std_offline=6),
        make_dist(club_id="iron7", club_name="7 Iron", mean_carry=165, std_carry=6, std_offline=5),
        make_dist(club_id="iron9", club_name="9 Iron", mean_carry=135, std_carry=5, std_offline=4),
        make_dist(club_id="pw", club_name="PW", mean_carry=115, std_carry=4, std_offline=3),
    ]


@pytest.fixture
def sample_distributions():
    return make_distributions()


@pytest.fixture
def sample_clubs():
    return [
        Club(id="driver", name="Driver", category="driver", loft=10.5, sort_order=1),
        Club(id="iron7", name="7 Iron", category="iron", loft=33, sort_order=2),
        Club(id="pw", name="PW", category="wedge", loft=46, sort_order=3),
        Club(id="putter", name="Putter", category="putter", sort_order=4),
    ]


@pytest.fixture
def sample_shots():
    shots = []
    for club_id, carries, speed, launch in (
        ("driver", (265, 275, 285, 270), 165, 11.0),
        ("iron7", (160, 165, 170, 168), 120, 16.0),
        ("pw", (110, 115, 120), 100, 24.0),
    ):
        for i, carry in enumerate(carries):
            shots.append(Shot(
                club_id=club_id,
                carry_yards=carry,
                id=f"{club_id}-{i}",
                total_yards=carry + 8,
                ball_speed=speed,
                launch_angle=launch,
                spin_rate=5000,
                spin_axis=-3.0,
                offline_yards=(-4, 2, 5, -1)[i],
            ))
    return shots


@pytest.fixture
def sample_course():
    return Course(
        id="course-1",
        name="Test Links",
        holes=[make_hole(3, 165, hole_number=1), make_hole(4, 400, hole_number=2)],
    )


@pytest.fixture
def sample_game_plan():
    strategy = OptimizedStrategy(
        strategy_name="Pin Hunting",
        strategy_type=StrategyCategory.SCORING,
        expected_strokes=3.2,
        std_strokes=0.6,
        score_distribution=ScoreDistribution(birdie=0.2, par=0.6, bogey=0.2),
        blowup_risk=0.0,
        clubs=[{"club_id": "iron7", "club_name": "7 Iron"}],
        label="7 Iron (165)",
    )
    return GamePlan(
        course_name="Test Links",
        tee_box="blue",
        mode=StrategyMode.SCORING,
        date="2026-01-01",
        total_expected=3.2,
        breakdown=ScoreDistribution(birdie=0.2, par=0.6, bogey=0.2),
        key_holes=[1],
        total_plays_like=165,
        holes=[HolePlan(1, 3, 165, None, strategy, RiskTier.GREEN)],
    )
