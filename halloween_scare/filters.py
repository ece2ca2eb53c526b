"""Pixel filter engine: per-pixel channel transforms plus themed overlays."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

import numpy as np

from halloween_scare import drawing, overlays
from halloween_scare.models import FaceBox, HalloweenFilter, copy_buffer

LOGGER = logging.getLogger(__name__)

ChannelTransform = Callable[[np.ndarray, np.random.Generator], np.ndarray]
Overlay = Callable[[np.ndarray, Sequence[FaceBox], np.random.Generator], None]


@dataclass(frozen=True)
class FilterSpec:
    """Transform/overlay pair registered for a filter."""

    transform: ChannelTransform
    overlay: Overlay
    description: str


def _store_rgb(buffer: np.ndarray, rgb: np.ndarray) -> np.ndarray:
    result = buffer.copy()
    result[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    return result


def _scale(buffer: np.ndarray, red: float, green: float, blue: float) -> np.ndarray:
    rgb = buffer[..., :3].astype(np.float32) * np.array([red, green, blue], dtype=np.float32)
    return _store_rgb(buffer, rgb)


def _noise_mask(buffer: np.ndarray, rng: np.random.Generator, threshold: float) -> np.ndarray:
    return rng.random(buffer.shape[:2]) > threshold


def vampire_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    return _scale(buffer, 1.3, 0.6, 0.6)


def zombie_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    result = _scale(buffer, 0.7, 1.2, 0.6)
    result[_noise_mask(result, rng, 0.95), :3] = 0
    return result


def ghost_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    avg = buffer[..., :3].astype(np.float32).mean(axis=2, keepdims=True)
    rgb = avg + np.array([80.0, 90.0, 100.0], dtype=np.float32)
    result = _store_rgb(buffer, rgb)
    result[..., 3] = 200
    return result


def pumpkin_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    return _scale(buffer, 1.5, 0.9, 0.4)


def witch_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    return _scale(buffer, 1.1, 0.6, 1.3)


def demon_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    result = _scale(buffer, 1.8, 0.3, 0.2)
    mask = _noise_mask(result, rng, 0.92)
    count = int(np.count_nonzero(mask))
    result[mask, 0] = 255
    result[mask, 1] = np.floor(rng.random(count) * 100).astype(np.uint8)
    result[mask, 2] = 0
    return result


def skeleton_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    gray = buffer[..., :3].astype(np.float32).sum(axis=2) / 3.0
    result = buffer.copy()
    result[..., :3] = np.where(gray > 128, 255, 0).astype(np.uint8)[..., None]
    return result


def possessed_transform(buffer: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    result = _scale(buffer, 0.8, 0.5, 0.3)
    result[_noise_mask(result, rng, 0.98), :3] = 0
    return result


FILTER_TABLE: Dict[HalloweenFilter, FilterSpec] = {
    HalloweenFilter.VAMPIRE: FilterSpec(
        vampire_transform, overlays.vampire_fangs, "Blood-red tint with fangs"
    ),
    HalloweenFilter.ZOMBIE: FilterSpec(
        zombie_transform, overlays.zombie_wounds, "Rotting green with decay noise"
    ),
    HalloweenFilter.GHOST: FilterSpec(
        ghost_transform, overlays.ghostly_aura, "Pale translucent glow"
    ),
    HalloweenFilter.PUMPKIN: FilterSpec(
        pumpkin_transform, overlays.pumpkin_lines, "Orange pumpkin ribs"
    ),
    HalloweenFilter.WITCH: FilterSpec(
        witch_transform, overlays.witch_stars, "Purple hex with stars"
    ),
    HalloweenFilter.DEMON: FilterSpec(
        demon_transform, overlays.demon_effects, "Hellfire, horns and glowing eyes"
    ),
    HalloweenFilter.SKELETON: FilterSpec(
        skeleton_transform, overlays.skeleton_effects, "High-contrast bone mask"
    ),
    HalloweenFilter.POSSESSED: FilterSpec(
        possessed_transform, overlays.possessed_effects, "Dark veins and energy swirls"
    ),
}

_unregistered = set(HalloweenFilter) - set(FILTER_TABLE)
if _unregistered:
    raise RuntimeError(f"Filters missing from FILTER_TABLE: {sorted(f.value for f in _unregistered)}")


def transform_pixels(
    buffer: np.ndarray,
    filter_id: Optional[HalloweenFilter],
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Apply only the channel transform of ``filter_id`` to a copy of ``buffer``."""
    source = copy_buffer(buffer)
    if filter_id is None:
        return source
    generator = rng if rng is not None else np.random.default_rng()
    return FILTER_TABLE[filter_id].transform(source, generator)


def apply_filter(
    buffer: np.ndarray,
    filter_id: Optional[HalloweenFilter],
    faces: Sequence[FaceBox] = (),
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Produce a new filtered buffer with overlays and the decorative border.

    The input is never modified. ``filter_id=None`` yields the original
    image with only the border drawn.
    """
    generator = rng if rng is not None else np.random.default_rng()
    face_boxes = tuple(faces)
    result = transform_pixels(buffer, filter_id, generator)

    if filter_id is not None:
        LOGGER.debug(
            "Applying %s overlay to %sx%s image with %s face(s)",
            filter_id.value,
            result.shape[1],
            result.shape[0],
            len(face_boxes),
        )
        FILTER_TABLE[filter_id].overlay(result, face_boxes, generator)

    drawing.creepy_border(result)
    return result


__all__ = [
    "FILTER_TABLE",
    "FilterSpec",
    "apply_filter",
    "transform_pixels",
]
