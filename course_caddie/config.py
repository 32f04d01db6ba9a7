"""
Configuration management for Course Caddie.
Includes the tour-average physics reference table used for club imputation.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional
from dataclasses import dataclass

from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()


DEFAULT_TRIALS = 2000
DEFAULT_DEBOUNCE_SECONDS = 5.0


@dataclass
class Config:
    """Application configuration."""
    # Paths
    data_dir: Path = Path.home() / ".course_caddie"
    db_path: Optional[Path] = None

    # Simulation settings
    default_trials: int = DEFAULT_TRIALS
    max_shots_per_hole: int = 8
    dispersion_floor_yards: float = 1.0

    # Short game model (empirically tuned, not physically derived)
    chip_floor_yards: float = 10.0
    chip_carry_fraction: float = 0.5
    holed_tolerance_yards: float = 10.0
    putt_log_coefficient: float = 0.42
    max_putts: float = 3.0

    # Background regeneration
    regen_debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    regen_lock_name: str = "plan-regen"
    lock_ttl_seconds: float = 600.0

    log_level: str = "INFO"

    def __post_init__(self):
        """Load overrides from environment."""
        data_dir = os.getenv("COURSE_CADDIE_DATA_DIR")
        if data_dir:
            self.data_dir = Path(data_dir)

        db_path = os.getenv("COURSE_CADDIE_DB_PATH")
        if db_path:
            self.db_path = Path(db_path)
        elif self.db_path is None:
            self.db_path = self.data_dir / "caddie.db"

        self.default_trials = int(os.getenv("COURSE_CADDIE_TRIALS", self.default_trials))
        self.regen_debounce_seconds = float(
            os.getenv("COURSE_CADDIE_REGEN_DEBOUNCE", self.regen_debounce_seconds)
        )
        self.log_level = os.getenv("COURSE_CADDIE_LOG_LEVEL", self.log_level).upper()

        # Ensure directories exist
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors = []
        if self.default_trials <= 0:
            errors.append("COURSE_CADDIE_TRIALS must be a positive integer")
        if self.regen_debounce_seconds <= 0:
            errors.append("COURSE_CADDIE_REGEN_DEBOUNCE must be greater than zero")
        if self.dispersion_floor_yards <= 0:
            errors.append("dispersion_floor_yards must be greater than zero")
        if self.max_shots_per_hole < 1:
            errors.append("max_shots_per_hole must be at least 1")
        return errors


def get_config() -> Config:
    """Get application configuration."""
    return Config()


# ============================================================================
# TOUR-AVERAGE PHYSICS REFERENCE - HAND FIT
# loft -> carry/total/ball speed/launch/spin/apex/descent at tour swing speed
# ============================================================================

@dataclass(frozen=True)
class ReferenceShot:
    """One row of the loft-indexed reference table."""
    loft: float
    carry: float
    total: float
    ball_speed: float
    launch_angle: float
    spin_rate: float
    apex_height: float
    descent_angle: float


TOUR_REFERENCE: List[ReferenceShot] = [
    ReferenceShot(10.5, 275, 299, 167, 10.9, 2686, 32, 38),
    ReferenceShot(15, 245, 264, 158, 11.2, 3655, 30, 43),
    ReferenceShot(19, 230, 246, 152, 12.5, 4350, 31, 47),
    ReferenceShot(21, 212, 220, 142, 10.4, 4630, 27, 46),
    ReferenceShot(24, 203, 210, 137, 11.0, 4836, 28, 48),
    ReferenceShot(27, 194, 200, 132, 12.1, 5361, 31, 49),
    ReferenceShot(30, 183, 189, 127, 14.1, 6231, 30, 50),
    ReferenceShot(33, 172, 177, 120, 16.3, 7097, 30, 50),
    ReferenceShot(37, 160, 164, 115, 18.1, 7998, 30, 50),
    ReferenceShot(41, 148, 150, 109, 20.4, 8647, 30, 51),
    ReferenceShot(46, 136, 137, 102, 24.2, 9304, 29, 52),
    ReferenceShot(51, 115, 115, 97, 27.0, 9800, 29, 53),
    ReferenceShot(56, 97, 97, 92, 30.0, 10200, 28, 54),
    ReferenceShot(60, 83, 83, 86, 33.0, 10500, 28, 55),
]


def get_reference_table() -> List[ReferenceShot]:
    """Get the physics reference table, sorted by loft."""
    return sorted(TOUR_REFERENCE, key=lambda r: r.loft)


# Short labels used in caddie notes
HAZARD_LABELS: Dict[str, str] = {
    "fairway_bunker": "bunker",
    "greenside_bunker": "bunker",
    "bunker": "bunker",
    "water": "water",
    "ob": "OB",
    "trees": "trees",
    "rough": "rough",
}


def hazard_label(hazard_type: str) -> str:
    """Short human label for a hazard type."""
    return HAZARD_LABELS.get(hazard_type, hazard_type)
