from __future__ import annotations
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from squatcoach.counter.pose_core import NUM_LANDMARKS, LandmarkFrame, Point


class LandmarkPoint(BaseModel):
    x: float = Field(..., description="Normalized x (0..1)")
    y: float = Field(..., description="Normalized y (0..1)")

    model_config = {"allow_inf_nan": False}


class LandmarkMessage(BaseModel):
    type: Literal["landmarks"] = "landmarks"
    frame_number: int = Field(0, alias="frameNumber", description="Monotonic frame counter from the client")
    landmarks: List[Optional[LandmarkPoint]] = Field(
        default_factory=list,
        max_length=NUM_LANDMARKS,
        description="Up to 33 pose landmarks; null for undetected slots",
    )

    model_config = {"populate_by_name": True}

    def to_frame(self) -> LandmarkFrame:
        pts = [Point(p.x, p.y) if p is not None else None for p in self.landmarks]
        return LandmarkFrame.from_points(pts, frame_number=self.frame_number)


class ResetMessage(BaseModel):
    """Zero the counter. Takes no arguments."""
    type: Literal["reset"] = "reset"

    model_config = {"extra": "forbid"}
