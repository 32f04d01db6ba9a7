"""
Distribution builder for Course Caddie.

Turns raw practice shots into per-club carry/offline distributions, imputing
clubs that have no shots either from a manual carry plus the physics reference
table, or by interpolating across the clubs we do know.
"""

import logging
import math
from collections import defaultdict
from dataclasses import asdict, dataclass, fields
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from .classifier import classify_shots, dominant_shape
from .config import get_reference_table
from .models import Club, ClubDistribution, Shot

logger = logging.getLogger(__name__)

MIN_SHOTS_FOR_DISTRIBUTION = 3
DEFAULT_STD_OFFLINE = 5.0
MIN_IMPUTED_STD = 2.0
FALLBACK_STD_CARRY_PCT = 0.04
FALLBACK_STD_OFFLINE_PCT = 0.05
DISPERSION_FLOOR_YARDS = 1.0

SHOT_COLUMNS = [f.name for f in fields(Shot)]


@dataclass
class ImputedMetrics:
    """Full metric set for a club, measured or inferred."""
    carry: float
    total: float
    ball_speed: float
    launch_angle: float
    spin_rate: float
    apex_height: float
    descent_angle: float


@dataclass
class KnownClubAverage(ImputedMetrics):
    """Average metrics of a club with a known loft."""
    loft: float = 0.0


@dataclass
class ClubShotGroup:
    """Shots for one club. Imputed groups hold a single synthetic shot."""
    club_id: str
    club_name: str
    shots: List[Shot]
    imputed: bool = False


def shots_frame(shots: Sequence[Shot]) -> pd.DataFrame:
    """Shots as a DataFrame with one column per Shot field."""
    if not shots:
        return pd.DataFrame(columns=SHOT_COLUMNS)
    frame = pd.DataFrame([asdict(s) for s in shots], columns=SHOT_COLUMNS)
    numeric = [c for c in SHOT_COLUMNS if c not in ("club_id", "id", "shape", "quality")]
    frame[numeric] = frame[numeric].apply(pd.to_numeric, errors="coerce")
    return frame


def interpolate(points: Sequence[Tuple[float, float]], target_loft: float) -> float:
    """
    Piecewise-linear interpolation of (loft, value) points.
    Extrapolates linearly beyond either end using the outermost segment.
    """
    if not points:
        return 0.0
    if len(points) == 1:
        return points[0][1]

    def _slope(p0, p1):
        if p1[0] == p0[0]:
            return 0.0
        return (p1[1] - p0[1]) / (p1[0] - p0[0])

    if target_loft <= points[0][0]:
        p0, p1 = points[0], points[1]
        return p0[1] + _slope(p0, p1) * (target_loft - p0[0])

    if target_loft >= points[-1][0]:
        p0, p1 = points[-2], points[-1]
        return p1[1] + _slope(p0, p1) * (target_loft - p1[0])

    for p0, p1 in zip(points, points[1:]):
        if p0[0] <= target_loft <= p1[0]:
            if p1[0] == p0[0]:
                return p0[1]
            t = (target_loft - p0[0]) / (p1[0] - p0[0])
            return p0[1] + t * (p1[1] - p0[1])

    return points[-1][1]


def _rounded(carry, total, ball_speed, launch_angle, spin_rate, apex_height, descent_angle) -> ImputedMetrics:
    return ImputedMetrics(
        carry=round(carry),
        total=round(total),
        ball_speed=round(ball_speed, 1),
        launch_angle=round(launch_angle, 1),
        spin_rate=round(spin_rate),
        apex_height=round(apex_height),
        descent_angle=round(descent_angle, 1),
    )


def impute_from_carry_and_loft(carry: float, loft: float) -> ImputedMetrics:
    """
    Derive a full metric set from a manual carry and the club's loft.

    Ball speed and apex scale with the ratio of actual to reference carry; spin
    follows it damped (0.7 + 0.3 * scale). Launch and descent depend on loft only.
    """
    table = get_reference_table()

    def ref(attr: str) -> float:
        return interpolate([(r.loft, getattr(r, attr)) for r in table], loft)

    tour_carry = ref("carry")
    scale = carry / tour_carry if tour_carry > 0 else 1.0
    rollout = max(0.0, 0.12 * math.exp(-0.05 * loft))

    return _rounded(
        carry=carry,
        total=carry * (1 + rollout),
        ball_speed=ref("ball_speed") * scale,
        launch_angle=ref("launch_angle"),
        spin_rate=ref("spin_rate") * (0.7 + 0.3 * scale),
        apex_height=ref("apex_height") * scale,
        descent_angle=ref("descent_angle"),
    )


def impute_club_metrics(known: Sequence[KnownClubAverage], target_loft: float) -> ImputedMetrics:
    """Interpolate/extrapolate every metric against loft from known clubs."""
    ordered = sorted(known, key=lambda k: k.loft)

    def at(attr: str) -> float:
        return interpolate([(k.loft, getattr(k, attr)) for k in ordered], target_loft)

    return _rounded(**{f.name: at(f.name) for f in fields(ImputedMetrics)})


def build_known_club_average(club: Club, shots: Sequence[Shot]) -> Optional[KnownClubAverage]:
    """Average a club's metrics. Needs a loft and at least one total, ball speed and launch."""
    if not club.loft or not shots:
        return None

    frame = shots_frame(shots)
    required = frame[["total_yards", "ball_speed", "launch_angle"]].count()
    if (required == 0).any():
        return None

    def avg(column: str) -> float:
        value = frame[column].mean()
        return 0.0 if pd.isna(value) else float(value)

    return KnownClubAverage(
        loft=club.loft,
        carry=avg("carry_yards"),
        total=avg("total_yards"),
        ball_speed=avg("ball_speed"),
        launch_angle=avg("launch_angle"),
        spin_rate=avg("spin_rate"),
        apex_height=avg("apex_height"),
        descent_angle=avg("descent_angle"),
    )


def synthetic_shot(club_id: str, metrics: ImputedMetrics) -> Shot:
    return Shot(
        club_id=club_id,
        carry_yards=metrics.carry,
        id=f"imputed-{club_id}",
        total_yards=metrics.total,
        ball_speed=metrics.ball_speed,
        launch_angle=metrics.launch_angle,
        spin_rate=metrics.spin_rate,
        apex_height=metrics.apex_height,
        descent_angle=metrics.descent_angle,
    )


def _manual_metrics(club: Club) -> ImputedMetrics:
    physics = impute_from_carry_and_loft(club.manual_carry, club.loft)
    physics.carry = club.manual_carry
    if club.manual_total:
        physics.total = club.manual_total
    return physics


def compute_club_shot_groups(clubs: Sequence[Club], shots: Sequence[Shot]) -> List[ClubShotGroup]:
    """Group shots by club and add synthetic groups for clubs we can impute."""
    shots_by_club: Dict[str, List[Shot]] = defaultdict(list)
    for shot in shots:
        shots_by_club[shot.club_id].append(shot)

    known: List[KnownClubAverage] = []
    for club in clubs:
        avg = build_known_club_average(club, shots_by_club.get(club.id, []))
        if avg:
            known.append(avg)

    for club in clubs:
        if not shots_by_club.get(club.id) and club.loft and club.manual_carry:
            known.append(KnownClubAverage(loft=club.loft, **asdict(_manual_metrics(club))))

    groups: List[ClubShotGroup] = []
    for club in clubs:
        club_shots = shots_by_club.get(club.id)
        if club_shots:
            groups.append(ClubShotGroup(club.id, club.name, club_shots))
            continue
        if club.is_putter or not club.loft:
            continue

        if club.manual_carry:
            metrics = _manual_metrics(club)
        elif len(known) >= 2:
            metrics = impute_club_metrics(known, club.loft)
            if metrics.carry <= 0:
                continue
        else:
            continue

        logger.debug(f"Imputed {club.name}: carry {metrics.carry}")
        groups.append(ClubShotGroup(club.id, club.name, [synthetic_shot(club.id, metrics)], imputed=True))

    return groups


def estimate_dispersion(
    carry: float,
    real: Sequence[ClubDistribution],
) -> Tuple[float, float, float]:
    """
    Estimate (mean_offline, std_carry, std_offline) for an imputed club.
    Regresses known clubs' carry against each parameter when two or more exist.
    """
    if len(real) >= 2:
        x = np.array([[d.mean_carry] for d in real])

        def predict(attr: str) -> float:
            y = np.array([getattr(d, attr) for d in real])
            model = LinearRegression().fit(x, y)
            return float(model.predict(np.array([[carry]]))[0])

        return (
            predict("mean_offline"),
            max(MIN_IMPUTED_STD, predict("std_carry")),
            max(MIN_IMPUTED_STD, predict("std_offline")),
        )

    return 0.0, carry * FALLBACK_STD_CARRY_PCT, carry * FALLBACK_STD_OFFLINE_PCT


def build_distributions(
    groups: Sequence[ClubShotGroup],
    dispersion_floor: float = DISPERSION_FLOOR_YARDS,
) -> List[ClubDistribution]:
    """Build carry/offline distributions: real clubs first, then imputed ones."""
    real_groups = [
        g for g in groups
        if not g.imputed and len(g.shots) >= MIN_SHOTS_FOR_DISTRIBUTION
    ]
    distributions: List[ClubDistribution] = []

    if real_groups:
        frame = shots_frame([s for g in real_groups for s in g.shots])
        stats = frame.groupby("club_id", sort=False).agg(
            mean_carry=("carry_yards", "mean"),
            std_carry=("carry_yards", "std"),
            offline_count=("offline_yards", "count"),
            mean_offline=("offline_yards", "mean"),
            std_offline=("offline_yards", "std"),
        )
        for group in real_groups:
            row = stats.loc[group.club_id]
            has_offline = row["offline_count"] > 0
            std_offline = row["std_offline"] if has_offline else DEFAULT_STD_OFFLINE
            distributions.append(ClubDistribution(
                club_id=group.club_id,
                club_name=group.club_name,
                mean_carry=float(row["mean_carry"]),
                std_carry=_floored(row["std_carry"], dispersion_floor),
                mean_offline=float(row["mean_offline"]) if has_offline else 0.0,
                std_offline=_floored(std_offline, dispersion_floor),
                dominant_shape=dominant_shape(classify_shots(group.shots)),
            ))

    real = list(distributions)
    for group in groups:
        if not group.imputed or not group.shots:
            continue
        carry = group.shots[0].carry_yards
        if carry <= 0:
            continue
        mean_offline, std_carry, std_offline = estimate_dispersion(carry, real)
        distributions.append(ClubDistribution(
            club_id=group.club_id,
            club_name=group.club_name,
            mean_carry=float(carry),
            std_carry=_floored(std_carry, dispersion_floor),
            mean_offline=mean_offline,
            std_offline=_floored(std_offline, dispersion_floor),
            imputed=True,
        ))

    return distributions


def build_bag_distributions(
    clubs: Sequence[Club],
    shots: Sequence[Shot],
    dispersion_floor: float = DISPERSION_FLOOR_YARDS,
) -> List[ClubDistribution]:
    """Distributions for the whole bag from a full snapshot of clubs and shots."""
    groups = compute_club_shot_groups(clubs, shots)
    distributions = build_distributions(groups, dispersion_floor)
    logger.info(
        f"Built {len(distributions)} distributions "
        f"({sum(1 for d in distributions if d.imputed)} imputed)"
    )
    return distributions


def _floored(value, floor: float) -> float:
    if value is None or pd.isna(value):
        return floor
    return max(float(value), floor)
