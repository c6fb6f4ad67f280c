"""
Pydantic models and enums for the slideshow workflow.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .run_log import RunLog


DEFAULT_FRAME_DURATION = 2.0
DEFAULT_TITLE = "Generated Video"
TITLE_MAX_LENGTH = 100
VIDEO_MIME_TYPE = "video/mp4"


class _CamelModel(BaseModel):
    """Serialises to camelCase on the wire, accepts snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Targets ──────────────────────────────────────────────────────────────────

class Target(str, Enum):
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"


TARGET_ORDER = [Target.FACEBOOK, Target.INSTAGRAM, Target.TIKTOK]


class PublishAction(str, Enum):
    SKIP = "skip"
    REJECT = "reject"
    PROCEED = "proceed"


class PublishDecision(BaseModel):
    action: PublishAction
    reason: Optional[str] = None


# ── Request ──────────────────────────────────────────────────────────────────

class ImageAsset(BaseModel):
    """One uploaded image. Position in the video comes from field_name."""
    field_name: str
    filename: str = ""
    data: bytes


class StorageCredentials(BaseModel):
    access_token: str
    folder_id: Optional[str] = None


class PlatformConfig(BaseModel):
    enabled: bool = False
    access_token: str = ""
    identifier: str = ""
    extra_field: str = ""  # CTA link (facebook) / cover url (instagram)
    session_id: str = ""


class WorkflowRequest(BaseModel):
    prompt: str
    title: str = ""
    caption: str = ""
    frame_duration_seconds: float = DEFAULT_FRAME_DURATION
    images: list[ImageAsset] = Field(default_factory=list)
    storage: Optional[StorageCredentials] = None
    platforms: dict[Target, PlatformConfig] = Field(default_factory=dict)

    @field_validator("prompt", "title", "caption", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return str(value).strip() if value is not None else ""

    @field_validator("frame_duration_seconds", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> float:
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return DEFAULT_FRAME_DURATION
        # Subnormal durations have no finite frame rate
        if not math.isfinite(seconds) or seconds <= 0 or not math.isfinite(1 / seconds):
            return DEFAULT_FRAME_DURATION
        return seconds

    @model_validator(mode="after")
    def _default_title(self) -> "WorkflowRequest":
        if not self.title:
            self.title = self.prompt[:TITLE_MAX_LENGTH] or DEFAULT_TITLE
        return self

    def platform(self, target: Target) -> PlatformConfig:
        return self.platforms.get(target) or PlatformConfig()


# ── Intermediate artifacts ───────────────────────────────────────────────────

class NormalizedFrame(BaseModel):
    index: int
    name: str  # e.g. frame-007.png
    path: str
    width: int
    height: int


class VideoArtifact(BaseModel):
    data: bytes
    file_name: str
    mime_type: str = VIDEO_MIME_TYPE
    frame_count: int
    frame_duration_seconds: float
    nominal_duration_seconds: float


class PublishContext(BaseModel):
    """What a platform step receives from the earlier stages."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    artifact: VideoArtifact
    title: str
    caption: str = ""
    public_link: Optional[str] = None
    run_log: RunLog

    @property
    def text(self) -> str:
        return self.caption or self.title


# ── Results ──────────────────────────────────────────────────────────────────

class PlatformResult(_CamelModel):
    success: bool
    status_code: int
    body: Any = None
    message: Optional[str] = None


class StorageUploadResult(_CamelModel):
    success: bool
    status_code: int
    file_id: Optional[str] = None
    public_link: Optional[str] = None
    body: Any = None
    message: Optional[str] = None


class RunReport(_CamelModel):
    run_id: str
    logs: list[str] = Field(default_factory=list)
    video_base64: Optional[str] = None
    mime_type: Optional[str] = None
    video_duration_seconds: Optional[float] = None
    google_drive_file_id: Optional[str] = None
    google_drive_web_link: Optional[str] = None
    google_drive: Optional[StorageUploadResult] = None
    facebook: Optional[PlatformResult] = None
    instagram: Optional[PlatformResult] = None
    tiktok: Optional[PlatformResult] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.error is not None

    def result_for(self, target: Target) -> Optional[PlatformResult]:
        return getattr(self, target.value)

    def to_response(self) -> dict:
        """Shape sent back to the caller; aborted runs only carry error + logs."""
        if self.aborted:
            return {"error": self.error, "logs": self.logs}
        return self.model_dump(by_alias=True, exclude={"error", "error_code"})
