# frameflow/model/board.py
from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class FrameRole(str, Enum):
    START = "START"
    MID = "MID"
    END = "END"


class Frame(BaseModel):
    id: str
    role: FrameRole
    image_url: Optional[str] = None     # data: URL
    video_url: Optional[str] = None     # data: URL, shown instead of the image when set
    prompt: Optional[str] = None
    is_generating: bool = False
    is_animating: bool = False

    @computed_field
    @property
    def display_url(self) -> Optional[str]:
        return self.video_url or self.image_url

    @computed_field
    @property
    def is_busy(self) -> bool:
        return self.is_generating or self.is_animating


class Shot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    index: int
    description: str = ""
    visual_reference: str = ""
    keyframes: List[Frame] = Field(default_factory=list)

    def frame(self, frame_id: str) -> Optional[Frame]:
        return next((f for f in self.keyframes if f.id == frame_id), None)

    def frame_by_role(self, role: FrameRole) -> Optional[Frame]:
        return next((f for f in self.keyframes if f.role == role), None)

    @property
    def start_frame(self) -> Optional[Frame]:
        return self.frame_by_role(FrameRole.START)

    @property
    def end_frame(self) -> Optional[Frame]:
        return self.frame_by_role(FrameRole.END)

    @property
    def mid_frames(self) -> List[Frame]:
        return [f for f in self.keyframes if f.role == FrameRole.MID]


class AppState(BaseModel):
    shots: List[Shot] = Field(default_factory=list)
    is_global_loading: bool = False
    has_api_key: bool = False


# ---------- Results ----------

class OutcomeStatus(str, Enum):
    OK = "ok"
    PARTIAL = "partial"          # some frames committed, some rolled back
    FAILED = "failed"            # gateway failure, nothing committed
    PRECONDITION = "precondition"
    ENTITLEMENT = "entitlement"
    CREDENTIAL = "credential"
    EMPTY = "empty"              # document import extracted nothing


class StageResult(BaseModel):
    """Output of one pipeline stage; the caller decides whether to continue."""
    success: bool
    value: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = None) -> "StageResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "StageResult":
        return cls(success=False, error=error)


class FrameResult(BaseModel):
    frame_id: str
    role: FrameRole
    success: bool
    error: Optional[str] = None


class OperationOutcome(BaseModel):
    operation: str
    shot_id: str
    frame_id: Optional[str] = None
    status: OutcomeStatus
    message: Optional[str] = None
    frames: List[FrameResult] = Field(default_factory=list)


class ExtractedShot(BaseModel):
    """One record of the document extraction response."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: Optional[str] = None
    visual_reference: Optional[str] = Field(None, alias="visualReference")


class ImportResult(BaseModel):
    status: OutcomeStatus
    shots: List[Shot] = Field(default_factory=list)
    message: Optional[str] = None
