from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Set

from squatcoach.common.events import AngleSample, FormWarning, Stage, WarningKind
from squatcoach.counter.pose_core import (
    LandmarkFrame,
    LandmarkIndex,
    SQUAT_LANDMARKS,
    angle_3pt,
    normalized_body_measurement,
)

logger = logging.getLogger(__name__)

# Neutral extrema; any real sample replaces them
NEUTRAL_MIN_ANGLE = 360
NEUTRAL_KNEE_FORWARD = -1.0
NEUTRAL_HIP_ANKLE_RATIO = 999.0


@dataclass
class SquatConfig:
    # Thresholds (exterior knee angle, degrees)
    descend_angle: int = 85      # above this -> descent starts
    ascend_angle: int = 30       # below this while descending -> rep done
    too_deep_angle: int = 140    # max knee above this -> "too deep"
    shallow_angle: int = 100     # max knee below this -> "not deep enough"
    # Display timings
    snapshot_display_ms: int = 3000
    warning_display_ms: int = 2000
    # Periodic angle debug log (frames)
    debug_every_n_frames: int = 60


@dataclass
class RepExtrema:
    min_knee_angle: int = NEUTRAL_MIN_ANGLE
    max_knee_angle: int = 0
    max_hip_angle: int = 0
    max_heel_angle: int = 0
    max_knee_forward: float = NEUTRAL_KNEE_FORWARD
    min_hip_ankle_ratio: float = NEUTRAL_HIP_ANKLE_RATIO

    @classmethod
    def seeded(cls, sample: AngleSample, knee_x: float, hip_ankle: Optional[float]) -> "RepExtrema":
        return cls(
            min_knee_angle=sample.knee_angle,
            max_knee_angle=sample.knee_angle,
            max_hip_angle=sample.hip_angle,
            max_heel_angle=sample.heel_angle,
            max_knee_forward=knee_x,
            min_hip_ankle_ratio=hip_ankle if hip_ankle is not None else NEUTRAL_HIP_ANKLE_RATIO,
        )

    def update(self, sample: AngleSample, knee_x: float, hip_ankle: Optional[float]) -> None:
        self.max_knee_angle = max(self.max_knee_angle, sample.knee_angle)
        self.min_knee_angle = min(self.min_knee_angle, sample.knee_angle)
        self.max_hip_angle = max(self.max_hip_angle, sample.hip_angle)
        self.max_heel_angle = max(self.max_heel_angle, sample.heel_angle)
        self.max_knee_forward = max(self.max_knee_forward, knee_x)
        if hip_ankle is not None:
            self.min_hip_ankle_ratio = min(self.min_hip_ankle_ratio, hip_ankle)

    def frozen(self) -> "RepExtrema":
        return replace(self)


@dataclass
class RepState:
    descending: bool = False
    extrema: RepExtrema = field(default_factory=RepExtrema)
    warning_flags: Set[WarningKind] = field(default_factory=set)
    last_warning_ts: float = 0.0


@dataclass(frozen=True)
class CompletedRep:
    rep_index: int
    angles: AngleSample
    extrema: RepExtrema
    warnings: List[FormWarning]


@dataclass(frozen=True)
class TrackerStep:
    angles: AngleSample
    stage: Stage
    completed: Optional[CompletedRep] = None


Evaluate = Callable[[RepExtrema, int, Set[WarningKind]], List[FormWarning]]


def squat_angles(frame: LandmarkFrame) -> Optional[AngleSample]:
    """Knee, hip and heel angles for a frame, or None if it can't be measured."""
    pts = frame.require(*SQUAT_LANDMARKS)
    if pts is None:
        return None
    shoulder, hip, knee, ankle, foot, heel = (p.as_tuple() for p in pts)

    knee_angle = angle_3pt(hip, knee, ankle)
    hip_angle = angle_3pt(shoulder, hip, knee)
    heel_angle = angle_3pt(foot, heel, knee)
    if knee_angle is None or hip_angle is None or heel_angle is None:
        return None
    return AngleSample(knee_angle=knee_angle, hip_angle=hip_angle, heel_angle=heel_angle)


class RepPhaseTracker:
    """
    Two-phase squat detector driven by the knee angle.
    UP --(knee > descend_angle)--> DESCENDING --(knee < ascend_angle)--> UP (rep++)
    The gap between the two thresholds is the only debounce.
    """
    def __init__(self, cfg: SquatConfig, evaluate: Optional[Evaluate] = None):
        self.cfg = cfg
        self._evaluate: Evaluate = evaluate or (lambda *_: [])
        self.state = RepState()
        self.count = 0

    @property
    def stage(self) -> Stage:
        return Stage.DOWN if self.state.descending else Stage.UP

    def reset_rep(self):
        """Neutral extrema and fresh warning flags for the next rep."""
        self.state.descending = False
        self.state.extrema = RepExtrema()
        self.state.warning_flags = set()

    def reset(self):
        self.reset_rep()
        self.state.last_warning_ts = 0.0
        self.count = 0

    def step(self, frame: LandmarkFrame) -> Optional[TrackerStep]:
        """Feed one frame. Returns None when the frame was skipped."""
        sample = squat_angles(frame)
        if sample is None:
            return None

        knee_x = frame.get(LandmarkIndex.RIGHT_KNEE).x
        hip_ankle = normalized_body_measurement(frame, "hip_ankle_y")
        st = self.state

        if sample.knee_angle > self.cfg.descend_angle and not st.descending:
            st.descending = True
            st.extrema = RepExtrema.seeded(sample, knee_x, hip_ankle)
            logger.debug("frame %d: descent started at knee %d°", frame.frame_number, sample.knee_angle)

        if st.descending:
            st.extrema.update(sample, knee_x, hip_ankle)

        if sample.knee_angle < self.cfg.ascend_angle and st.descending:
            self.count += 1
            frozen = st.extrema.frozen()
            warnings = self._evaluate(frozen, self.count, st.warning_flags)
            logger.info(
                "rep %d complete: knee %d..%d°, max hip %d°, max heel %d°",
                self.count, frozen.min_knee_angle, frozen.max_knee_angle,
                frozen.max_hip_angle, frozen.max_heel_angle,
            )
            self.reset_rep()
            return TrackerStep(
                angles=sample,
                stage=Stage.UP,
                completed=CompletedRep(rep_index=self.count, angles=sample, extrema=frozen, warnings=warnings),
            )

        return TrackerStep(angles=sample, stage=self.stage)
