"""
Narrated story videos: stage assets, generate narration, render and poll.
"""

from .cli import main
from .client import StoryClient, StoryError
from .models import RenderJob, StoryRequest, StoryState, StoryStatus
from .uploads import publish_assets

__all__ = [
    "main",
    "RenderJob",
    "StoryClient",
    "StoryError",
    "StoryRequest",
    "StoryState",
    "StoryStatus",
    "publish_assets",
]
