from __future__ import annotations
import logging
import threading
import time
from typing import Callable, List, Optional

from squatcoach.common.events import (
    AngleSample,
    EventType,
    FormWarning,
    FrameResult,
    RepSnapshot,
)
from squatcoach.counter.expiry import DisplayExpiryScheduler, TimerFactory
from squatcoach.counter.form import FormEvaluator
from squatcoach.counter.pipeline import CompletedRep, RepPhaseTracker, SquatConfig
from squatcoach.counter.pose_core import LandmarkFrame

logger = logging.getLogger(__name__)


class SquatSessionManager:
    """
    Owns the whole squat session: tracker state, rep count, active warnings and
    the last-rep snapshot. Every read and write goes through one lock, including
    the expiry callbacks that fire on timer threads.
    """
    def __init__(
        self,
        cfg: Optional[SquatConfig] = None,
        timer_factory: Optional[TimerFactory] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = cfg or SquatConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self.evaluator = FormEvaluator(self.cfg)
        self.tracker = RepPhaseTracker(self.cfg, evaluate=self.evaluator.evaluate)
        self.expiry = DisplayExpiryScheduler(
            self.cfg.snapshot_display_ms, self.cfg.warning_display_ms, timer_factory
        )
        self._event_sink: Optional[Callable[[dict], None]] = None

        self._frame_number = 0
        self._live = AngleSample()
        self._last_rep: Optional[RepSnapshot] = None
        self._warnings: List[FormWarning] = []
        # bumped on reset and on every reschedule; expiry callbacks compare against it
        self._snapshot_gen = 0
        self._warning_gen = 0

    def set_event_sink(self, sink: Optional[Callable[[dict], None]]):
        self._event_sink = sink

    @property
    def count(self) -> int:
        return self.tracker.count

    def _emit(self, ev: dict):
        if self._event_sink is None:
            return
        try:
            self._event_sink(ev)
        except Exception:
            pass

    def _emit_debug(self, msg: str):
        self._emit({"type": EventType.TRACE.value, "msg": msg})

    # ----- frame processing -----

    def process_frame(self, frame: LandmarkFrame) -> FrameResult:
        """Run one frame through the analysis. Never raises for bad input."""
        with self._lock:
            self._frame_number = frame.frame_number
            try:
                step = self.tracker.step(frame)
            except Exception:
                logger.exception("squat analysis failed on frame %d; skipping", frame.frame_number)
                step = None

            if step is not None:
                self._live = step.angles
                self._debug_angles(frame)
                if step.completed is not None:
                    self._on_rep(step.completed)

            return self._result_locked()

    def _debug_angles(self, frame: LandmarkFrame):
        n = self.cfg.debug_every_n_frames
        if n > 0 and frame.frame_number % n == 0:
            logger.debug(
                "frame %d: knee=%d hip=%d heel=%d stage=%s count=%d",
                frame.frame_number, self._live.knee_angle, self._live.hip_angle,
                self._live.heel_angle, self.tracker.stage.value, self.tracker.count,
            )

    def _on_rep(self, rep: CompletedRep):
        ex = rep.extrema
        self._last_rep = RepSnapshot(
            knee_angle=rep.angles.knee_angle,
            hip_angle=rep.angles.hip_angle,
            heel_angle=rep.angles.heel_angle,
            min_knee_angle=ex.min_knee_angle,
            max_knee_angle=ex.max_knee_angle,
            max_hip_angle=ex.max_hip_angle,
            max_heel_angle=ex.max_heel_angle,
            max_knee_forward=ex.max_knee_forward,
            min_hip_ankle_ratio=ex.min_hip_ankle_ratio,
            is_showing=True,
        )
        self._snapshot_gen += 1
        gen = self._snapshot_gen
        self.expiry.schedule_snapshot(lambda: self._expire_snapshot(gen))

        self._emit({"type": EventType.REP.value, "count": rep.rep_index})
        self._emit_debug(f"rep++ → {rep.rep_index} (knee {ex.min_knee_angle}..{ex.max_knee_angle}°)")

        if rep.warnings:
            self._warnings.extend(rep.warnings)
            self.tracker.state.last_warning_ts = self._clock()
            self._warning_gen += 1
            wgen = self._warning_gen
            self.expiry.schedule_warnings(lambda: self._expire_warnings(wgen))
            self._emit({
                "type": EventType.WARNING.value,
                "rep": rep.rep_index,
                "messages": [w.message for w in rep.warnings],
            })

    def _expire_snapshot(self, gen: int):
        with self._lock:
            if gen != self._snapshot_gen or self._last_rep is None:
                return
            self._last_rep = self._last_rep.hidden()

    def _expire_warnings(self, gen: int):
        with self._lock:
            if gen != self._warning_gen:
                return
            self._warnings = []

    # ----- commands / queries -----

    def reset(self) -> FrameResult:
        """Zero the counter and drop all per-rep and display state."""
        with self._lock:
            self.expiry.cancel_all()
            self._snapshot_gen += 1
            self._warning_gen += 1
            self.tracker.reset()
            self._live = AngleSample()
            self._last_rep = None
            self._warnings = []
            self._emit({"type": EventType.RESET.value})
            logger.info("counter reset")
            return self._result_locked()

    def status(self) -> FrameResult:
        with self._lock:
            return self._result_locked()

    def _result_locked(self) -> FrameResult:
        return FrameResult(
            frame_number=self._frame_number,
            rep_count=self.tracker.count,
            stage=self.tracker.stage,
            live_angles=self._live,
            last_rep=self._last_rep,
            active_warnings=tuple(self._warnings),
        )

    def close(self):
        with self._lock:
            self.expiry.cancel_all()


# Global manager factory (so the runtime can share a single session)
_ACTIVE: Optional[SquatSessionManager] = None

def ACTIVE_MANAGER() -> SquatSessionManager:
    global _ACTIVE
    if _ACTIVE is None:
        _ACTIVE = SquatSessionManager()
    return _ACTIVE
