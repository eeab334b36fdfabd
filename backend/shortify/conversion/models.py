"""Conversion job models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DEFAULT_INPUT_NAME = "input.mp4"
DEFAULT_MEDIA_EXTENSION = ".mp4"
DEFAULT_CONTENT_TYPE = "video/mp4"
RESULT_CONTENT_TYPE = "video/mp4"


class JobState(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    CONVERTING = "converting"
    DONE = "done"
    FAILED = "failed"

    @property
    def busy(self) -> bool:
        return self in (JobState.ACQUIRING, JobState.CONVERTING)


@dataclass(frozen=True)
class MediaInput:
    """Named byte buffer with its declared content type."""

    name: str
    data: bytes = field(repr=False)
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Selection:
    """What the user picked: a local file, a pasted URL, or both."""

    file: Optional[MediaInput] = None
    url: Optional[str] = None

    @property
    def url_text(self) -> str:
        return (self.url or "").strip()

    @property
    def is_empty(self) -> bool:
        return self.file is None and not self.url_text


@dataclass(frozen=True)
class ConversionRequest:
    """Fixed short-clip policy: first 30s, 720px wide, fast H.264, faststart mp4."""

    input_name: str = "input.mp4"
    output_name: str = "output.mp4"
    trim: str = "00:00:30"
    scale_width: int = 720
    # -2 keeps the aspect ratio and rounds the height to an even number
    scale_height: int = -2
    video_codec: str = "libx264"
    preset: str = "veryfast"
    movflags: str = "faststart"

    @property
    def video_filter(self) -> str:
        return f"scale={self.scale_width}:{self.scale_height}"

    def to_argv(self) -> list[str]:
        return [
            "-i", self.input_name,
            "-t", self.trim,
            "-vf", self.video_filter,
            "-c:v", self.video_codec,
            "-preset", self.preset,
            "-movflags", self.movflags,
            self.output_name,
        ]


SHORT_CLIP_REQUEST = ConversionRequest()


@dataclass(frozen=True)
class DisplayHandle:
    """Revocable locator for a published result."""

    handle_id: str
    locator: str


@dataclass
class ResultArtifact:
    data: bytes = field(repr=False)
    handle: DisplayHandle
    content_type: str = RESULT_CONTENT_TYPE
    filename: str = "short.mp4"

    @property
    def size(self) -> int:
        return len(self.data)
