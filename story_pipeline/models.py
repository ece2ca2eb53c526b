"""
Dataclasses describing narrated story render jobs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".webm")


class StoryState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


def is_video_url(url: str) -> bool:
    lowered = url.lower()
    return "video" in lowered or lowered.endswith(VIDEO_EXTENSIONS)


@dataclass(frozen=True)
class RenderJob:
    job_id: str
    status_url: str


@dataclass(frozen=True)
class StoryRequest:
    asset_urls: Tuple[str, ...]
    theme: Optional[str]
    narration: str
    job: RenderJob


@dataclass(frozen=True)
class StoryStatus:
    state: StoryState
    attempts: int
    output_url: Optional[str] = None
    raw_status: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.state is StoryState.COMPLETED


__all__ = [
    "RenderJob",
    "StoryRequest",
    "StoryState",
    "StoryStatus",
    "is_video_url",
]
