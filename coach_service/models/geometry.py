"""
FITSIGHT Coach Service - Landmark Geometry

Body landmark indices, the landmark record, and the stateless geometry helpers
the exercise analyzers are built on.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence

import numpy as np


class JointType(Enum):
    """Body joint indices of the 33-point pose landmark scheme."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_LANDMARKS = len(JointType)


@dataclass
class Landmark:
    """A single pose landmark in normalized image coordinates."""
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Landmark":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            z=float(data.get("z", 0.0)),
            visibility=data.get("visibility"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}


def _index(joint) -> int:
    return joint.value if isinstance(joint, JointType) else int(joint)


def calculate_angle(a, b, c) -> float:
    """
    Calculate the angle at vertex b formed by the rays b->a and b->c.

    Uses the difference of the two rays' polar angles, so the result does not
    depend on winding direction.

    Args:
        a, b, c: Anything exposing ``x`` and ``y`` attributes

    Returns:
        Angle in degrees (0-180). NaN coordinates yield NaN.
    """
    radians = np.arctan2(c.y - b.y, c.x - b.x) - np.arctan2(a.y - b.y, a.x - b.x)
    angle = np.abs(np.degrees(radians))

    if angle > 180.0:
        angle = 360.0 - angle

    return float(angle)


def average_visibility(landmarks: Sequence[Landmark], indices: Iterable) -> float:
    """
    Mean visibility over the given joints.

    Missing landmarks and landmarks without a finite visibility score count
    as 0, so they pull the average down rather than being skipped. Scores
    are clamped to [0, 1].
    """
    indices = [_index(i) for i in indices]
    if not indices:
        return 0.0

    total = 0.0
    for idx in indices:
        if 0 <= idx < len(landmarks):
            visibility = landmarks[idx].visibility
            if visibility is not None and math.isfinite(visibility):
                total += min(max(visibility, 0.0), 1.0)

    return total / len(indices)


def has_landmarks(landmarks: Sequence[Landmark], indices: Iterable) -> bool:
    """True when every index is present and has finite x/y coordinates."""
    for idx in (_index(i) for i in indices):
        if not 0 <= idx < len(landmarks):
            return False
        point = landmarks[idx]
        if not (math.isfinite(point.x) and math.isfinite(point.y)):
            return False
    return True
