from __future__ import annotations
import logging
from typing import List, Set

from squatcoach.common.events import FormWarning, WarningKind
from squatcoach.counter.pipeline import RepExtrema, SquatConfig

logger = logging.getLogger(__name__)

TOO_DEEP_MSG = "Too deep! Protect your knees"
NOT_DEEP_MSG = "Not deep enough! Go deeper"


class FormEvaluator:
    """
    Checks a finished rep against fixed thresholds.
    Only the depth rule is active; knee-forward travel and back angle are
    tracked on the extrema (max_knee_forward, max_hip_angle) but not judged.
    """
    def __init__(self, cfg: SquatConfig):
        self.cfg = cfg

    def evaluate(self, extrema: RepExtrema, rep_index: int, flags: Set[WarningKind]) -> List[FormWarning]:
        """Return new warnings for this rep; marks each rule in ``flags`` when it fires."""
        out: List[FormWarning] = []

        if WarningKind.DEPTH not in flags:
            msg = None
            if extrema.max_knee_angle > self.cfg.too_deep_angle:
                msg = TOO_DEEP_MSG
            elif extrema.max_knee_angle < self.cfg.shallow_angle:
                msg = NOT_DEEP_MSG
            if msg is not None:
                flags.add(WarningKind.DEPTH)
                out.append(FormWarning(message=msg, rep_index=rep_index, kind=WarningKind.DEPTH))
                logger.info("rep %d: %s (max knee %d°)", rep_index, msg, extrema.max_knee_angle)

        return out
