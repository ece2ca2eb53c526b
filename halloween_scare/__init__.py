"""
Halloween photo filters, jumpscare timelines and recorded scare clips.
"""

from .app import HalloweenStudio, ScareResult
from .cli import main
from .filters import apply_filter
from .models import EncodedArtifact, FaceBox, HalloweenFilter, Timeline

__all__ = [
    "main",
    "EncodedArtifact",
    "FaceBox",
    "HalloweenFilter",
    "HalloweenStudio",
    "ScareResult",
    "Timeline",
    "apply_filter",
]
