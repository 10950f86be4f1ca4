from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Literal, Optional, Sequence, Tuple

import numpy as np

NUM_LANDMARKS = 33

Measurement = Literal["hip_ankle_y", "knee_foot_x"]


class LandmarkIndex(IntEnum):
    """MediaPipe pose slots (33 landmarks)."""
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


# Right-side chain used for the squat (camera sees the right profile)
SQUAT_LANDMARKS = (
    LandmarkIndex.RIGHT_SHOULDER,
    LandmarkIndex.RIGHT_HIP,
    LandmarkIndex.RIGHT_KNEE,
    LandmarkIndex.RIGHT_ANKLE,
    LandmarkIndex.RIGHT_FOOT_INDEX,
    LandmarkIndex.RIGHT_HEEL,
)


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class LandmarkFrame:
    """One frame of normalized 2D landmarks; absent slots are None."""
    frame_number: int
    points: Tuple[Optional[Point], ...] = field(default=(None,) * NUM_LANDMARKS)

    def __post_init__(self):
        if len(self.points) != NUM_LANDMARKS:
            raise ValueError(f"expected {NUM_LANDMARKS} landmark slots, got {len(self.points)}")

    @classmethod
    def from_points(cls, points: Sequence[Optional[Point]], frame_number: int = 0) -> "LandmarkFrame":
        if len(points) > NUM_LANDMARKS:
            raise ValueError(f"at most {NUM_LANDMARKS} landmarks allowed, got {len(points)}")
        padded = tuple(points) + (None,) * (NUM_LANDMARKS - len(points))
        return cls(frame_number=frame_number, points=padded)

    @classmethod
    def from_mapping(cls, landmarks: dict, frame_number: int = 0) -> "LandmarkFrame":
        """Build a frame from {LandmarkIndex: (x, y)}; unspecified slots are absent."""
        slots: list = [None] * NUM_LANDMARKS
        for idx, xy in landmarks.items():
            slots[int(idx)] = xy if isinstance(xy, Point) else Point(float(xy[0]), float(xy[1]))
        return cls(frame_number=frame_number, points=tuple(slots))

    def get(self, index: LandmarkIndex) -> Optional[Point]:
        return self.points[int(index)]

    def require(self, *indices: LandmarkIndex) -> Optional[Tuple[Point, ...]]:
        """Return the requested points, or None if any of them is missing."""
        found = tuple(self.points[int(i)] for i in indices)
        if any(p is None for p in found):
            return None
        return found

    @property
    def detected(self) -> int:
        return sum(1 for p in self.points if p is not None)


# Utility math

def angle_3pt(a: Tuple[float, float], b: Tuple[float, float], c: Tuple[float, float]) -> Optional[int]:
    """Return the exterior angle at vertex B, in whole degrees.

    The interior angle comes from the dot product of B->A and B->C; the
    reported value is ``180 - interior`` so a straight limb reads 0 and a
    fully folded one reads 180. Returns None when A or C coincides with B.
    """
    va = np.asarray(a, dtype=float) - np.asarray(b, dtype=float)
    vc = np.asarray(c, dtype=float) - np.asarray(b, dtype=float)
    mag_a = float(np.linalg.norm(va))
    mag_c = float(np.linalg.norm(vc))
    if mag_a == 0.0 or mag_c == 0.0:
        return None

    cos_theta = float(np.clip(np.dot(va, vc) / (mag_a * mag_c), -1.0, 1.0))
    interior = float(np.degrees(np.arccos(cos_theta)))
    return int(round(180.0 - interior))


def normalized_body_measurement(frame: LandmarkFrame, kind: Measurement) -> Optional[float]:
    """Measurement divided by body height (shoulder to ankle), camera-distance invariant.

    hip_ankle_y: ~0.5 standing, ~0.2 deep squat, ~0.1 very deep.
    knee_foot_x: ~0.0 knee over foot, 0.2+ knee well past the toe.
    """
    if kind == "hip_ankle_y":
        pts = frame.require(LandmarkIndex.RIGHT_SHOULDER, LandmarkIndex.RIGHT_HIP, LandmarkIndex.RIGHT_ANKLE)
        if pts is None:
            return None
        shoulder, hip, ankle = pts
        raw = abs(hip.y - ankle.y)
    elif kind == "knee_foot_x":
        pts = frame.require(
            LandmarkIndex.RIGHT_SHOULDER,
            LandmarkIndex.RIGHT_KNEE,
            LandmarkIndex.RIGHT_ANKLE,
            LandmarkIndex.RIGHT_FOOT_INDEX,
        )
        if pts is None:
            return None
        shoulder, knee, ankle, foot = pts
        raw = knee.x - foot.x
    else:
        raise ValueError(f"unknown measurement: {kind}")

    body_height = abs(shoulder.y - ankle.y)
    return raw / body_height if body_height > 0 else 0.0
