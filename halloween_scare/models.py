"""Data models used across the Halloween scare pipeline."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

DrawProcedure = Callable[[np.ndarray], None]

MEDIA_EXTENSIONS = frozenset({"mp4", "webm", "gif", "mov", "mkv"})


@dataclass(frozen=True)
class FaceBox:
    """Normalized bounding box of a detected face (all values in 0..1)."""

    x_center: float
    y_center: float
    width: float
    height: float

    def to_pixels(self, image_width: int, image_height: int) -> Tuple[float, float, float, float]:
        """Return ``(center_x, center_y, width, height)`` in pixel units."""
        return (
            self.x_center * image_width,
            self.y_center * image_height,
            self.width * image_width,
            self.height * image_height,
        )


class HalloweenFilter(str, Enum):
    """Closed set of filter themes."""

    VAMPIRE = "vampire"
    ZOMBIE = "zombie"
    GHOST = "ghost"
    PUMPKIN = "pumpkin"
    WITCH = "witch"
    DEMON = "demon"
    SKELETON = "skeleton"
    POSSESSED = "possessed"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["HalloweenFilter"]:
        """Return the matching filter, or ``None`` for empty or unknown names."""
        if isinstance(value, cls):
            return value
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class FrameKind(str, Enum):
    REVEAL = "reveal"
    JUMPSCARE = "jumpscare"
    TRANSITION = "transition"
    FINAL = "final"
    CHAPTER = "chapter"


def _frame_boundary(elapsed_ms: int, fps: int) -> int:
    """Index of the frame at ``elapsed_ms``, rounded half up."""
    return (elapsed_ms * fps + 500) // 1000


@dataclass(frozen=True)
class FrameDescriptor:
    """A single timeline entry: what to draw and for how long."""

    kind: FrameKind
    duration_ms: int
    draw: DrawProcedure

    def frame_allocation(self, fps: int) -> int:
        """Frames this entry would occupy on its own at ``fps``.

        Inside a :class:`Timeline` use :meth:`Timeline.frame_allocations`,
        which rounds cumulative boundaries instead of each entry.
        """
        return max(1, _frame_boundary(self.duration_ms, fps))


@dataclass(frozen=True)
class Timeline:
    """Ordered frame descriptors for one recorded clip."""

    entries: Tuple[FrameDescriptor, ...]
    width: int
    height: int

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def total_duration_ms(self) -> int:
        return sum(entry.duration_ms for entry in self.entries)

    def frame_allocations(self, fps: int) -> Tuple[int, ...]:
        """Frames per entry, taken from rounded cumulative time boundaries.

        Rounding errors never accumulate: the total stays within one frame
        of ``total_duration_ms``. Every entry still gets at least one frame.
        """
        allocations = []
        elapsed_ms = 0
        allocated = 0
        for entry in self.entries:
            elapsed_ms += entry.duration_ms
            count = max(1, _frame_boundary(elapsed_ms, fps) - allocated)
            allocations.append(count)
            allocated += count
        return tuple(allocations)

    def total_frames(self, fps: int) -> int:
        return sum(self.frame_allocations(fps))

    def entry_for_frame(self, frame_index: int, fps: int) -> FrameDescriptor:
        """Resolve the entry active at ``frame_index`` (0-based)."""
        if frame_index < 0:
            raise IndexError(f"Frame index must be non-negative, got {frame_index}")
        boundary = 0
        for entry, allocation in zip(self.entries, self.frame_allocations(fps)):
            boundary += allocation
            if frame_index < boundary:
                return entry
        raise IndexError(
            f"Frame index {frame_index} is beyond the timeline ({boundary} frames at {fps} fps)"
        )


@dataclass(frozen=True)
class EncodedArtifact:
    """Encoded clip produced by a recording session."""

    data: bytes
    content_type: str
    extension: str
    frame_count: int

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def write(self, path: Path) -> Path:
        """Write the clip, appending the codec extension unless ``path`` has a media one.

        Dotted stems such as ``my.photo_scare`` keep their full name.
        """
        path = Path(path)
        if path.suffix.lower().lstrip(".") not in MEDIA_EXTENSIONS:
            path = path.with_name(f"{path.name}.{self.extension}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


# ----------------------------------------------------------------------
# Image buffer helpers
# ----------------------------------------------------------------------


def blank_buffer(width: int, height: int, color: Tuple[int, int, int] = (0, 0, 0)) -> np.ndarray:
    """Create an opaque RGBA buffer filled with ``color``."""
    buffer = np.zeros((height, width, 4), dtype=np.uint8)
    buffer[..., :3] = color
    buffer[..., 3] = 255
    return buffer


def to_rgba(image: np.ndarray) -> np.ndarray:
    """Convert an OpenCV image (gray, BGR or BGRA) into a fresh RGBA buffer."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    channels = image.shape[2]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    if channels == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    raise ValueError(f"Unsupported channel count: {channels}")


def load_image(path: Path | str) -> np.ndarray:
    """Read an image file into an RGBA buffer."""
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError(f"Failed to read image: {path}")
    if image.dtype == np.uint16:
        image = (image // 257).astype(np.uint8)
    return to_rgba(image)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) into an RGBA buffer."""
    array = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(array, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError("Failed to decode image data")
    return to_rgba(image)


def encode_png(buffer: np.ndarray) -> bytes:
    """Encode an RGBA buffer as PNG bytes."""
    success, encoded = cv2.imencode(".png", cv2.cvtColor(buffer, cv2.COLOR_RGBA2BGRA))
    if not success:
        raise RuntimeError("Failed to encode frame as PNG")
    return encoded.tobytes()


def save_image(buffer: np.ndarray, path: Path | str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(encode_png(buffer))
    return target


def copy_buffer(buffer: np.ndarray) -> np.ndarray:
    """Return an owned RGBA copy so stages never alias each other's pixels."""
    if buffer.ndim != 3 or buffer.shape[2] != 4:
        raise ValueError(f"Expected an RGBA buffer, got shape {buffer.shape}")
    return np.array(buffer, dtype=np.uint8, copy=True)


def fit_to_max_dimension(buffer: np.ndarray, max_dimension: int) -> np.ndarray:
    """Downscale so the longest side is at most ``max_dimension`` pixels."""
    height, width = buffer.shape[:2]
    longest = max(width, height)
    if max_dimension <= 0 or longest <= max_dimension:
        return copy_buffer(buffer)
    scale = max_dimension / float(longest)
    new_size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    return cv2.resize(buffer, new_size, interpolation=cv2.INTER_AREA)


__all__ = [
    "DrawProcedure",
    "EncodedArtifact",
    "FaceBox",
    "FrameDescriptor",
    "FrameKind",
    "HalloweenFilter",
    "MEDIA_EXTENSIONS",
    "Timeline",
    "blank_buffer",
    "copy_buffer",
    "decode_image",
    "encode_png",
    "fit_to_max_dimension",
    "load_image",
    "save_image",
    "to_rgba",
]
