from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple


class EventType(str, Enum):
    REP = "rep"
    WARNING = "warning"
    RESET = "reset"
    TRACE = "trace"


class Stage(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


class WarningKind(str, Enum):
    DEPTH = "depth"


@dataclass(frozen=True)
class AngleSample:
    knee_angle: int = 0
    hip_angle: int = 0
    heel_angle: int = 0

    def to_dict(self) -> dict:
        return {
            "kneeAngle": self.knee_angle,
            "hipAngle": self.hip_angle,
            "heelAngle": self.heel_angle,
        }


@dataclass(frozen=True)
class RepSnapshot:
    """Angles and extrema frozen at the frame a rep completed."""
    knee_angle: int
    hip_angle: int
    heel_angle: int
    min_knee_angle: int
    max_knee_angle: int
    max_hip_angle: int
    max_heel_angle: int
    max_knee_forward: float
    min_hip_ankle_ratio: float = 999.0
    is_showing: bool = True

    def hidden(self) -> "RepSnapshot":
        return replace(self, is_showing=False)

    def to_dict(self) -> dict:
        return {
            "kneeAngle": self.knee_angle,
            "hipAngle": self.hip_angle,
            "heelAngle": self.heel_angle,
            "minKneeAngle": self.min_knee_angle,
            "maxKneeAngle": self.max_knee_angle,
            "maxHipAngle": self.max_hip_angle,
            "maxHeelAngle": self.max_heel_angle,
            "maxKneeForward": self.max_knee_forward,
            "minHipAnkleDiff": self.min_hip_ankle_ratio,
            "isShowing": self.is_showing,
        }


@dataclass(frozen=True)
class FormWarning:
    message: str
    rep_index: int
    kind: WarningKind = WarningKind.DEPTH


@dataclass(frozen=True)
class FrameResult:
    """What the renderer gets back after every frame."""
    frame_number: int
    rep_count: int
    stage: Stage
    live_angles: AngleSample = field(default_factory=AngleSample)
    last_rep: Optional[RepSnapshot] = None
    active_warnings: Tuple[FormWarning, ...] = ()

    @property
    def warning_messages(self) -> Tuple[str, ...]:
        return tuple(w.message for w in self.active_warnings)

    def to_dict(self) -> dict:
        return {
            "frameNumber": self.frame_number,
            "repCount": self.rep_count,
            "stage": self.stage.value,
            "liveAngles": self.live_angles.to_dict(),
            "lastRepSnapshot": self.last_rep.to_dict() if self.last_rep else None,
            "activeWarnings": list(self.warning_messages),
        }
