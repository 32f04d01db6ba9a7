"""
Course Caddie
Turns practice-shot data and mapped hole geometry into ranked playing strategies.
"""

__version__ = "1.0.0"

from .models import (
    Club, Shot, ClubDistribution, Coordinate, Hazard, Target, CourseHole, Course,
    NamedStrategyPlan, OptimizedStrategy, ScoreDistribution, GamePlan, HolePlan,
    StrategyCategory, StrategyMode, RiskTier,
)
from .config import get_config
from .database import Database, DatabaseError
from .distributions import build_bag_distributions
from .strategy import generate_named_strategies
from .simulator import Simulator, get_simulator
from .game_plan import generate_game_plan
from .locks import DistributedLock, InMemoryLock, SqliteAdvisoryLock
from .regenerator import PlanCacheManager, RegenerationScheduler

__all__ = [
    # Models
    "Club", "Shot", "ClubDistribution", "Coordinate", "Hazard", "Target",
    "CourseHole", "Course", "NamedStrategyPlan", "OptimizedStrategy",
    "ScoreDistribution", "GamePlan", "HolePlan",
    "StrategyCategory", "StrategyMode", "RiskTier",
    # Config
    "get_config",
    # Core classes
    "Database", "DatabaseError", "Simulator", "PlanCacheManager", "RegenerationScheduler",
    "DistributedLock", "InMemoryLock", "SqliteAdvisoryLock",
    # Functions
    "build_bag_distributions", "generate_named_strategies", "generate_game_plan",
    "get_simulator",
]
