"""
Data models for Course Caddie.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


class ClubCategory(Enum):
    """Club family."""
    DRIVER = "driver"
    WOOD = "wood"
    HYBRID = "hybrid"
    IRON = "iron"
    WEDGE = "wedge"
    PUTTER = "putter"


class StrategyCategory(Enum):
    """Risk flavour of a named strategy."""
    SCORING = "scoring"
    SAFE = "safe"
    BALANCED = "balanced"


class StrategyMode(Enum):
    """How the winning strategy is picked per hole."""
    SCORING = "scoring"  # Lowest expected strokes
    SAFE = "safe"        # Lowest blow-up risk


class RiskTier(Enum):
    """Colour code for a hole in the game plan."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass
class Coordinate:
    """A lat/lng point, optionally with elevation in meters."""
    lat: float
    lng: float
    elevation: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng, "elevation": self.elevation}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        return cls(
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            elevation=float(data.get("elevation") or 0.0),
        )


def _coords(points: Optional[List[Dict[str, Any]]]) -> List[Coordinate]:
    return [Coordinate.from_dict(p) for p in (points or [])]


@dataclass
class Club:
    """A club in the player's bag."""
    id: str
    name: str
    category: str = ClubCategory.IRON.value
    loft: Optional[float] = None
    manual_carry: Optional[float] = None
    manual_total: Optional[float] = None
    preferred_shape: Optional[str] = None
    sort_order: int = 0

    @property
    def is_putter(self) -> bool:
        return self.category == ClubCategory.PUTTER.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Club":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            category=data.get("category", ClubCategory.IRON.value),
            loft=data.get("loft"),
            manual_carry=data.get("manual_carry"),
            manual_total=data.get("manual_total"),
            preferred_shape=data.get("preferred_shape"),
            sort_order=int(data.get("sort_order", 0)),
        )


@dataclass(frozen=True)
class Shot:
    """A recorded practice shot. Immutable once recorded."""
    club_id: str
    carry_yards: float
    id: Optional[str] = None
    total_yards: Optional[float] = None
    ball_speed: Optional[float] = None
    launch_angle: Optional[float] = None
    spin_rate: Optional[float] = None
    spin_axis: Optional[float] = None
    apex_height: Optional[float] = None
    descent_angle: Optional[float] = None
    offline_yards: Optional[float] = None
    shape: Optional[str] = None
    quality: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shot":
        return cls(
            club_id=str(data["club_id"]),
            carry_yards=float(data["carry_yards"]),
            id=data.get("id"),
            total_yards=data.get("total_yards"),
            ball_speed=data.get("ball_speed"),
            launch_angle=data.get("launch_angle"),
            spin_rate=data.get("spin_rate"),
            spin_axis=data.get("spin_axis"),
            apex_height=data.get("apex_height"),
            descent_angle=data.get("descent_angle"),
            offline_yards=data.get("offline_yards"),
            shape=data.get("shape"),
            quality=data.get("quality"),
        )


@dataclass
class ClubDistribution:
    """Carry/offline Gaussian parameters for one club. Derived, never persisted."""
    club_id: str
    club_name: str
    mean_carry: float
    std_carry: float
    mean_offline: float = 0.0
    std_offline: float = 5.0
    imputed: bool = False
    dominant_shape: Optional[str] = None


@dataclass
class Hazard:
    """A hazard polygon on a hole."""
    name: str
    type: str
    penalty: float = 0.0  # Added strokes
    confidence: str = "high"  # high, medium, low
    source: str = "manual"  # detected, manual
    polygon: List[Coordinate] = field(default_factory=list)
    status: str = "accepted"  # accepted, pending

    @property
    def is_testable(self) -> bool:
        """Polygons need at least three vertices to be tested."""
        return len(self.polygon) >= 3

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "penalty": self.penalty,
            "confidence": self.confidence,
            "source": self.source,
            "polygon": [p.to_dict() for p in self.polygon],
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hazard":
        return cls(
            name=data.get("name", ""),
            type=data.get("type", "bunker"),
            penalty=float(data.get("penalty", 0)),
            confidence=data.get("confidence", "high"),
            source=data.get("source", "manual"),
            polygon=_coords(data.get("polygon")),
            status=data.get("status", "accepted"),
        )


@dataclass
class Target:
    """A waypoint on the hole with its distances from tee and to pin."""
    index: int
    coordinate: Coordinate
    from_tee: float = 0.0
    to_pin: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "coordinate": self.coordinate.to_dict(),
            "from_tee": self.from_tee,
            "to_pin": self.to_pin,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Target":
        return cls(
            index=int(data.get("index", 0)),
            coordinate=Coordinate.from_dict(data["coordinate"]),
            from_tee=float(data.get("from_tee", 0)),
            to_pin=float(data.get("to_pin", 0)),
        )


@dataclass
class CourseHole:
    """Geometry and scorecard data for a single hole."""
    hole_number: int
    par: int
    yardages: Dict[str, int]
    tee: Coordinate
    pin: Coordinate
    center_line: List[Coordinate] = field(default_factory=list)
    targets: List[Target] = field(default_factory=list)
    hazards: List[Hazard] = field(default_factory=list)
    fairway: List[Coordinate] = field(default_factory=list)
    green: List[Coordinate] = field(default_factory=list)
    plays_like_yards: Optional[Dict[str, int]] = None

    def scorecard_yardage(self, tee_box: str) -> int:
        """Yardage for the tee box, falling back to the first listed tee."""
        if tee_box in self.yardages:
            return self.yardages[tee_box]
        return next(iter(self.yardages.values()), 0)

    def plays_like_for(self, tee_box: str) -> Optional[int]:
        if not self.plays_like_yards:
            return None
        return self.plays_like_yards.get(tee_box)

    def playing_distance(self, tee_box: str) -> int:
        """Plays-like yardage when known, otherwise scorecard yardage."""
        plays_like = self.plays_like_for(tee_box)
        if plays_like is not None:
            return plays_like
        return self.scorecard_yardage(tee_box)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hole_number": self.hole_number,
            "par": self.par,
            "yardages": dict(self.yardages),
            "tee": self.tee.to_dict(),
            "pin": self.pin.to_dict(),
            "center_line": [p.to_dict() for p in self.center_line],
            "targets": [t.to_dict() for t in self.targets],
            "hazards": [h.to_dict() for h in self.hazards],
            "fairway": [p.to_dict() for p in self.fairway],
            "green": [p.to_dict() for p in self.green],
            "plays_like_yards": dict(self.plays_like_yards) if self.plays_like_yards else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CourseHole":
        return cls(
            hole_number=int(data["hole_number"]),
            par=int(data["par"]),
            yardages={k: int(v) for k, v in (data.get("yardages") or {}).items()},
            tee=Coordinate.from_dict(data["tee"]),
            pin=Coordinate.from_dict(data["pin"]),
            center_line=_coords(data.get("center_line")),
            targets=[Target.from_dict(t) for t in data.get("targets") or []],
            hazards=[Hazard.from_dict(h) for h in data.get("hazards") or []],
            fairway=_coords(data.get("fairway")),
            green=_coords(data.get("green")),
            plays_like_yards=data.get("plays_like_yards"),
        )


@dataclass
class Course:
    """A course with its holes ordered by number."""
    id: str
    name: str
    holes: List[CourseHole] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Course":
        holes = [CourseHole.from_dict(h) for h in data.get("holes") or []]
        return cls(
            id=str(data["id"]),
            name=data["name"],
            holes=sorted(holes, key=lambda h: h.hole_number),
        )


# ============================================================================
# Strategy and simulation results
# ============================================================================

@dataclass
class PlannedShot:
    """One (club, aim point) step of a strategy."""
    club: ClubDistribution
    aim_point: Coordinate


@dataclass
class NamedStrategyPlan:
    """A candidate way to play a hole. Always has at least one shot."""
    name: str
    category: StrategyCategory
    shots: List[PlannedShot]


@dataclass
class ScoreDistribution:
    """Fraction of trials landing in each score-to-par bucket."""
    eagle: float = 0.0
    birdie: float = 0.0
    par: float = 0.0
    bogey: float = 0.0
    double: float = 0.0
    worse: float = 0.0

    @property
    def total(self) -> float:
        return self.eagle + self.birdie + self.par + self.bogey + self.double + self.worse

    def to_dict(self) -> Dict[str, float]:
        return {
            "eagle": self.eagle, "birdie": self.birdie, "par": self.par,
            "bogey": self.bogey, "double": self.double, "worse": self.worse,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreDistribution":
        return cls(**{k: float(data.get(k, 0.0)) for k in cls().to_dict()})


@dataclass
class AimPoint:
    """Where to aim on one planned shot, with caddie notes."""
    position: Coordinate
    club_name: str
    shot_number: int
    carry: int
    carry_note: Optional[str]
    tip: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position.to_dict(),
            "club_name": self.club_name,
            "shot_number": self.shot_number,
            "carry": self.carry,
            "carry_note": self.carry_note,
            "tip": self.tip,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AimPoint":
        return cls(
            position=Coordinate.from_dict(data["position"]),
            club_name=data["club_name"],
            shot_number=int(data["shot_number"]),
            carry=int(data["carry"]),
            carry_note=data.get("carry_note"),
            tip=data.get("tip", ""),
        )


@dataclass
class OptimizedStrategy:
    """Simulation results for one named strategy."""
    strategy_name: str
    strategy_type: StrategyCategory
    expected_strokes: float
    std_strokes: float
    score_distribution: ScoreDistribution
    blowup_risk: float
    clubs: List[Dict[str, str]] = field(default_factory=list)
    label: str = ""
    aim_points: List[AimPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "strategy_type": self.strategy_type.value,
            "expected_strokes": self.expected_strokes,
            "std_strokes": self.std_strokes,
            "score_distribution": self.score_distribution.to_dict(),
            "blowup_risk": self.blowup_risk,
            "clubs": [dict(c) for c in self.clubs],
            "label": self.label,
            "aim_points": [a.to_dict() for a in self.aim_points],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizedStrategy":
        return cls(
            strategy_name=data["strategy_name"],
            strategy_type=StrategyCategory(data["strategy_type"]),
            expected_strokes=float(data["expected_strokes"]),
            std_strokes=float(data.get("std_strokes", 0.0)),
            score_distribution=ScoreDistribution.from_dict(data.get("score_distribution") or {}),
            blowup_risk=float(data.get("blowup_risk", 0.0)),
            clubs=list(data.get("clubs") or []),
            label=data.get("label", ""),
            aim_points=[AimPoint.from_dict(a) for a in data.get("aim_points") or []],
        )


@dataclass
class HolePlan:
    """The winning strategy for one hole."""
    hole_number: int
    par: int
    yardage: int
    plays_like_yardage: Optional[int]
    strategy: OptimizedStrategy
    risk_tier: RiskTier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hole_number": self.hole_number,
            "par": self.par,
            "yardage": self.yardage,
            "plays_like_yardage": self.plays_like_yardage,
            "strategy": self.strategy.to_dict(),
            "risk_tier": self.risk_tier.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HolePlan":
        return cls(
            hole_number=int(data["hole_number"]),
            par=int(data["par"]),
            yardage=int(data["yardage"]),
            plays_like_yardage=data.get("plays_like_yardage"),
            strategy=OptimizedStrategy.from_dict(data["strategy"]),
            risk_tier=RiskTier(data["risk_tier"]),
        )


@dataclass
class GamePlan:
    """A whole-round plan for one course, tee box and mode."""
    course_name: str
    tee_box: str
    mode: StrategyMode
    date: str
    total_expected: float
    breakdown: ScoreDistribution
    key_holes: List[int]
    total_plays_like: int
    holes: List[HolePlan] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course_name": self.course_name,
            "tee_box": self.tee_box,
            "mode": self.mode.value,
            "date": self.date,
            "total_expected": self.total_expected,
            "breakdown": self.breakdown.to_dict(),
            "key_holes": list(self.key_holes),
            "total_plays_like": self.total_plays_like,
            "holes": [h.to_dict() for h in self.holes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GamePlan":
        return cls(
            course_name=data["course_name"],
            tee_box=data["tee_box"],
            mode=StrategyMode(data["mode"]),
            date=data.get("date", ""),
            total_expected=float(data["total_expected"]),
            breakdown=ScoreDistribution.from_dict(data.get("breakdown") or {}),
            key_holes=[int(n) for n in data.get("key_holes") or []],
            total_plays_like=int(data.get("total_plays_like", 0)),
            holes=[HolePlan.from_dict(h) for h in data.get("holes") or []],
        )


# ============================================================================
# Cache records
# ============================================================================

@dataclass
class CachedPlanRecord:
    """A cached game plan, unique per (course, tee box, mode)."""
    course_id: str
    tee_box: str
    mode: StrategyMode
    plan: Optional[GamePlan]
    stale: bool = False
    stale_reason: Optional[str] = None
    stale_generation: int = 0
    created_at: str = ""
    updated_at: str = ""

    @property
    def cache_id(self) -> str:
        return plan_cache_id(self.course_id, self.tee_box, self.mode)


@dataclass
class PlanHistoryEntry:
    """Append-only snapshot written on every successful regeneration."""
    id: str
    course_id: str
    tee_box: str
    mode: StrategyMode
    total_expected: float
    trigger_reason: Optional[str]
    created_at: str
    plan: Optional[GamePlan] = None


def plan_cache_id(course_id: str, tee_box: str, mode: StrategyMode) -> str:
    """Stable row id for a cache key."""
    return f"{course_id}_{tee_box}_{mode.value}"
