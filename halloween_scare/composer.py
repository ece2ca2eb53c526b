"""Timeline composition for jumpscare clips and horror story reels."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from halloween_scare import drawing
from halloween_scare.models import (
    DrawProcedure,
    FrameDescriptor,
    FrameKind,
    Timeline,
    blank_buffer,
    copy_buffer,
    load_image,
)

LOGGER = logging.getLogger(__name__)

REVEAL_FRAMES = 10
REVEAL_FRAME_MS = 200
JUMPSCARE_FRAMES = 5
JUMPSCARE_FRAME_MS = 50
TRANSITION_FRAMES = 3
TRANSITION_FRAME_MS = 100
FLASH_TRANSITION_INDEX = 1
FINAL_FRAME_MS = 1000

CLIP_REVEAL_MS = 3000
CLIP_JUMPSCARE_MS = 2000

REEL_WIDTH = 600
REEL_HEIGHT = 1067
DEFAULT_IMAGE_SECONDS = 2
MIN_IMAGE_SECONDS = 1
MAX_IMAGE_SECONDS = 5
CAPTION_WORDS_PER_LINE = 4
CAPTION_TOP_PX = 30
CAPTION_LINE_SPACING_PX = 45
CAPTION_CAP_HEIGHT_PX = 26

_CAPTION_REPLACEMENTS = {
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
    "\u2013": "-",
    "\u2014": "-",
    "\u2026": "...",
}

BLOOD_COLORS: Tuple[drawing.Color, ...] = (
    (139, 0, 0),
    (165, 42, 42),
    (220, 20, 60),
    (178, 34, 34),
    (128, 0, 0),
)

CLOSING_MESSAGES: Tuple[str, ...] = (
    "GOTCHA!",
    "Sweet Dreams...",
    "See you in your nightmares!",
    "Happy Halloween!",
)

PLACEHOLDER_COLOR = (139, 0, 0)


def _blit(image: np.ndarray) -> DrawProcedure:
    frozen = copy_buffer(image)
    frozen.setflags(write=False)

    def draw(surface: np.ndarray) -> None:
        surface[...] = frozen

    return draw


# ----------------------------------------------------------------------
# Frame renderers
# ----------------------------------------------------------------------


def render_splatter_background(width: int, height: int, rng: np.random.Generator) -> np.ndarray:
    """Black canvas covered in blood splatters and gravity drips."""
    canvas = blank_buffer(width, height)

    for _ in range(30):
        x = rng.random() * width
        y = rng.random() * height
        size = rng.random() * 80 + 30
        color = BLOOD_COLORS[int(rng.integers(len(BLOOD_COLORS)))]
        drawing.circle(canvas, (x, y), size, color)

        for _ in range(8):
            splatter_x = x + (rng.random() - 0.5) * size * 2
            splatter_y = y + (rng.random() - 0.5) * size * 2
            drawing.circle(canvas, (splatter_x, splatter_y), rng.random() * 20 + 5, color)

    for _ in range(15):
        x = rng.random() * width
        start_y = rng.random() * height * 0.3
        drip_width = rng.random() * 8 + 4
        cv2.rectangle(
            canvas,
            drawing.point(x, start_y),
            drawing.point(x + drip_width, height),
            drawing.rgba(BLOOD_COLORS[0]),
            -1,
        )
        drawing.circle(canvas, (x + drip_width / 2, height), drip_width, BLOOD_COLORS[0])

    return canvas


def render_jumpscare_frame(
    width: int,
    height: int,
    rng: np.random.Generator,
    caption: str = "BOO!",
) -> np.ndarray:
    canvas = render_splatter_background(width, height, rng)
    center_x = width / 2.0
    center_y = height / 2.0

    drawing.circle(canvas, (center_x, center_y), min(width, height) * 0.3, (255, 255, 255))
    drawing.circle(canvas, (center_x, center_y), min(width, height) * 0.3, (255, 0, 0), thickness=5)

    drawing.circle(canvas, (center_x - width * 0.1, center_y - height * 0.05), 30, (0, 0, 0))
    drawing.circle(canvas, (center_x + width * 0.1, center_y - height * 0.05), 30, (0, 0, 0))

    mouth = drawing.quadratic_curve(
        (center_x - width * 0.15, center_y + height * 0.05),
        (center_x, center_y + height * 0.2),
        (center_x + width * 0.15, center_y + height * 0.05),
    )
    cv2.polylines(canvas, [mouth], False, drawing.rgba((0, 0, 0)), 8, cv2.LINE_AA)

    tooth_y = center_y + height * 0.08
    for index in range(-3, 4):
        tooth_x = center_x + index * 20
        drawing.triangle(
            canvas,
            [(tooth_x - 5, tooth_y), (tooth_x, tooth_y + 15), (tooth_x + 5, tooth_y)],
            (255, 255, 255),
            (255, 0, 0),
            2,
        )

    drawing.text(
        canvas,
        caption,
        center_x,
        height * 0.9,
        min(width, height) * 0.15,
        (255, 0, 0),
        baseline="bottom",
    )

    # Red static over ~5% of the frame.
    noise = rng.random((height, width)) > 0.95
    boost = rng.random((height, width)) * 100
    red = canvas[..., 0].astype(np.float32) + boost
    canvas[..., 0] = np.where(noise, np.clip(np.rint(red), 0, 255), canvas[..., 0]).astype(np.uint8)
    canvas[noise, 1] = 0
    canvas[noise, 2] = 0
    return canvas


def render_transition_frame(
    width: int,
    height: int,
    index: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Blood burst whose particle count and spread grow with ``index``."""
    canvas = blank_buffer(width, height)
    intensity = (index + 1) * 0.3
    particles = 50 + index * 20
    spread = width * intensity

    for particle in range(particles):
        angle = (particle / particles) * np.pi * 2
        distance = rng.random() * spread
        x = width / 2.0 + np.cos(angle) * distance
        y = height / 2.0 + np.sin(angle) * distance
        size = rng.random() * 15 + 5
        drawing.blended_circle(canvas, (x, y), size, (139, 0, 0), 1 - distance / spread)

    color, alpha = drawing.radial_gradient(
        width,
        height,
        (width / 2.0, height / 2.0),
        spread,
        (
            (0.0, (220, 20, 60, 0.9)),
            (0.5, (139, 0, 0, 0.6)),
            (1.0, (0, 0, 0, 0.0)),
        ),
    )
    drawing.composite(canvas, color, alpha)

    if index == FLASH_TRANSITION_INDEX:
        drawing.fill_rect(canvas, (255, 255, 255), alpha=0.3)
    return canvas


def choose_closing_message(rng: np.random.Generator) -> str:
    return CLOSING_MESSAGES[int(rng.integers(len(CLOSING_MESSAGES)))]


def render_final_frame(
    width: int,
    height: int,
    rng: np.random.Generator,
    message: Optional[str] = None,
) -> np.ndarray:
    canvas = blank_buffer(width, height)
    closing = message if message is not None else choose_closing_message(rng)
    drawing.text(canvas, closing, width / 2.0, height / 2.0, min(width, height) * 0.08, (255, 0, 0))

    for eye_x in (20, width - 20):
        drawing.circle(canvas, (eye_x, 20), 10, (255, 255, 0))
        drawing.circle(canvas, (eye_x, 20), 5, (255, 0, 0))
    return canvas


def render_placeholder_frame(
    width: int,
    height: int,
    color: drawing.Color = PLACEHOLDER_COLOR,
) -> np.ndarray:
    """Stand-in for a jumpscare photo that could not be loaded."""
    canvas = blank_buffer(width, height, color)
    drawing.text(canvas, "BOO", width / 2.0, height / 2.0, min(width, height) / 6.0, (255, 255, 255))
    return canvas


def scale_to_cover(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Scale ``image`` to cover ``width`` x ``height`` keeping aspect, centre-cropped."""
    src_height, src_width = image.shape[:2]
    scale = max(width / float(src_width), height / float(src_height))
    scaled_width = max(width, int(round(src_width * scale)))
    scaled_height = max(height, int(round(src_height * scale)))
    scaled = cv2.resize(image, (scaled_width, scaled_height), interpolation=cv2.INTER_LINEAR)
    x0 = (scaled_width - width) // 2
    y0 = (scaled_height - height) // 2
    canvas = blank_buffer(width, height)
    canvas[...] = scaled[y0:y0 + height, x0:x0 + width]
    return canvas


def printable_caption(caption: str) -> str:
    """Map typographic punctuation to ASCII and drop what the Hershey font cannot draw."""
    for source, target in _CAPTION_REPLACEMENTS.items():
        caption = caption.replace(source, target)
    ascii_only = caption.encode("ascii", "ignore").decode("ascii")
    return " ".join(ascii_only.split())


def wrap_caption(caption: str, words_per_line: int = CAPTION_WORDS_PER_LINE) -> list[str]:
    words = printable_caption(caption).split(" ")
    return [
        " ".join(words[index:index + words_per_line])
        for index in range(0, len(words), words_per_line)
        if words[index]
    ]


def render_story_slide(
    image: np.ndarray,
    caption: str,
    width: int = REEL_WIDTH,
    height: int = REEL_HEIGHT,
) -> np.ndarray:
    """Portrait story slide: the photo covering a black canvas, caption at the top.

    Each caption line gets a soft drop shadow, a dark outline and a white fill.
    """
    cover = scale_to_cover(image, width, height)
    alpha = cover[..., 3:4].astype(np.float32) / 255.0
    slide = blank_buffer(width, height)
    slide[..., :3] = np.rint(cover[..., :3].astype(np.float32) * alpha).astype(np.uint8)

    center_x = width / 2.0
    size = CAPTION_CAP_HEIGHT_PX
    for index, line in enumerate(wrap_caption(caption)):
        top = CAPTION_TOP_PX + index * CAPTION_LINE_SPACING_PX

        def shadow(layer: np.ndarray, line: str = line, top: float = top) -> None:
            drawing.text(layer, line, center_x + 2, top + 2, size, (0, 0, 0), baseline="top")
            drawing.text(layer, line, center_x + 1, top + 1, size, (0, 0, 0), baseline="top")

        def outline(layer: np.ndarray, line: str = line, top: float = top) -> None:
            drawing.text(layer, line, center_x, top, size, (0, 0, 0), baseline="top", thickness=6)

        drawing.paint(slide, 0.6, shadow)
        drawing.paint(slide, 0.8, outline)
        drawing.text(slide, line, center_x, top, size, (255, 255, 255), baseline="top", thickness=2)
    return slide


# ----------------------------------------------------------------------
# Timeline builders
# ----------------------------------------------------------------------


def compose_timeline(
    filtered: np.ndarray,
    rng: Optional[np.random.Generator] = None,
) -> Timeline:
    """Build the reveal -> jumpscare -> transition -> final timeline.

    Decorative content is randomized at composition time; the structure
    (kinds, order and durations) is always the same.
    """
    generator = rng if rng is not None else np.random.default_rng()
    height, width = filtered.shape[:2]

    entries = []
    reveal = _blit(filtered)
    entries.extend(
        FrameDescriptor(FrameKind.REVEAL, REVEAL_FRAME_MS, reveal) for _ in range(REVEAL_FRAMES)
    )

    jumpscare = _blit(render_jumpscare_frame(width, height, generator))
    entries.extend(
        FrameDescriptor(FrameKind.JUMPSCARE, JUMPSCARE_FRAME_MS, jumpscare)
        for _ in range(JUMPSCARE_FRAMES)
    )

    for index in range(TRANSITION_FRAMES):
        entries.append(
            FrameDescriptor(
                FrameKind.TRANSITION,
                TRANSITION_FRAME_MS,
                _blit(render_transition_frame(width, height, index, generator)),
            )
        )

    entries.append(
        FrameDescriptor(
            FrameKind.FINAL,
            FINAL_FRAME_MS,
            _blit(render_final_frame(width, height, generator)),
        )
    )

    timeline = Timeline(entries=tuple(entries), width=width, height=height)
    LOGGER.debug(
        "Composed timeline with %s entries (%s ms) for %sx%s image",
        len(timeline),
        timeline.total_duration_ms,
        width,
        height,
    )
    return timeline


def load_jumpscare_image(
    paths: Sequence[Path],
    rng: Optional[np.random.Generator] = None,
    logger: Optional[logging.Logger] = None,
) -> Optional[np.ndarray]:
    """Pick one configured jumpscare photo; ``None`` if none can be read."""
    log = logger or LOGGER
    if not paths:
        return None
    generator = rng if rng is not None else np.random.default_rng()
    selected = Path(paths[int(generator.integers(len(paths)))])
    log.info("Selected jumpscare image: %s", selected)
    try:
        return load_image(selected)
    except ValueError as exc:
        log.warning("Jumpscare image failed to load, using placeholder: %s", exc)
        return None


def compose_jumpscare_clip(
    filtered: np.ndarray,
    jumpscare_image: Optional[np.ndarray],
    placeholder_color: drawing.Color = PLACEHOLDER_COLOR,
) -> Timeline:
    """Build the two-stage clip: the filtered photo, then a jumpscare photo.

    A missing jumpscare photo is replaced with a placeholder frame.
    """
    height, width = filtered.shape[:2]
    if jumpscare_image is None:
        scare_frame = render_placeholder_frame(width, height, placeholder_color)
    else:
        scare_frame = scale_to_cover(jumpscare_image, width, height)

    entries = (
        FrameDescriptor(FrameKind.REVEAL, CLIP_REVEAL_MS, _blit(filtered)),
        FrameDescriptor(FrameKind.JUMPSCARE, CLIP_JUMPSCARE_MS, _blit(scare_frame)),
    )
    return Timeline(entries=entries, width=width, height=height)


def check_image_seconds(image_seconds: int) -> int:
    if not MIN_IMAGE_SECONDS <= image_seconds <= MAX_IMAGE_SECONDS:
        raise ValueError(
            f"Seconds per image must be between {MIN_IMAGE_SECONDS} and {MAX_IMAGE_SECONDS}, "
            f"got {image_seconds}"
        )
    return image_seconds


def compose_reel(slides: Sequence[np.ndarray], image_seconds: int = DEFAULT_IMAGE_SECONDS) -> Timeline:
    """Show each story slide for ``image_seconds``, in order."""
    if not slides:
        raise ValueError("A reel needs at least one slide")
    check_image_seconds(image_seconds)
    height, width = slides[0].shape[:2]
    for slide in slides[1:]:
        if slide.shape[:2] != (height, width):
            raise ValueError(f"Slide size {slide.shape[1]}x{slide.shape[0]} differs from {width}x{height}")

    entries = tuple(
        FrameDescriptor(FrameKind.CHAPTER, int(image_seconds * 1000), _blit(slide)) for slide in slides
    )
    LOGGER.debug("Composed reel with %s slides of %ss", len(entries), image_seconds)
    return Timeline(entries=entries, width=width, height=height)


__all__ = [
    "CLOSING_MESSAGES",
    "DEFAULT_IMAGE_SECONDS",
    "REEL_HEIGHT",
    "REEL_WIDTH",
    "check_image_seconds",
    "choose_closing_message",
    "compose_jumpscare_clip",
    "compose_reel",
    "compose_timeline",
    "load_jumpscare_image",
    "printable_caption",
    "render_final_frame",
    "render_jumpscare_frame",
    "render_placeholder_frame",
    "render_splatter_background",
    "render_story_slide",
    "render_transition_frame",
    "scale_to_cover",
    "wrap_caption",
]
