"""
Shot shape and quality tagging.
"""

from collections import Counter
from dataclasses import replace
from typing import List, Optional

import numpy as np

from .models import Shot

SHAPES = ("straight", "draw", "fade", "hook", "slice", "pull", "push")


def classify_shape(
    spin_axis: Optional[float],
    offline_yards: Optional[float],
    handedness: str = "right",
) -> Optional[str]:
    """Classify ball flight from spin axis and offline miss."""
    if spin_axis is None and offline_yards is None:
        return None

    flip = -1 if handedness == "left" else 1
    sa = (spin_axis or 0.0) * flip
    ol = (offline_yards or 0.0) * flip

    if abs(sa) <= 2 and abs(ol) <= 5:
        return "straight"
    if sa < -8 or (sa < -2 and ol < -15):
        return "hook"
    if sa > 8 or (sa > 2 and ol > 15):
        return "slice"
    if sa < -2:
        return "draw"
    if sa > 2:
        return "fade"
    if ol < -10:
        return "pull"
    if ol > 10:
        return "push"
    return "straight"


def classify_quality(carry: float, avg_carry: float, std_dev: float) -> str:
    """Grade a shot by how far its carry sits from the club average."""
    if std_dev == 0:
        return "pure"
    deviation = abs(carry - avg_carry)
    if deviation <= 0.5 * std_dev:
        return "pure"
    if deviation <= 1.0 * std_dev:
        return "good"
    if deviation <= 1.5 * std_dev:
        return "acceptable"
    return "mishit"


def classify_shots(shots: List[Shot], handedness: str = "right") -> List[Shot]:
    """
    Tag one club's shots with shape and quality.
    Tags already present on a shot are kept.
    """
    if not shots:
        return []

    carries = np.array([s.carry_yards for s in shots], dtype=float)
    avg = float(carries.mean())
    std_dev = float(carries.std(ddof=1)) if len(carries) > 1 else 0.0

    return [
        replace(
            shot,
            shape=shot.shape or classify_shape(shot.spin_axis, shot.offline_yards, handedness),
            quality=shot.quality or classify_quality(shot.carry_yards, avg, std_dev),
        )
        for shot in shots
    ]


def dominant_shape(shots: List[Shot]) -> Optional[str]:
    """Most common shape tag among tagged shots."""
    counts = Counter(s.shape for s in shots if s.shape)
    if not counts:
        return None
    return counts.most_common(1)[0][0]
