"""Canvas-style drawing primitives operating on RGBA numpy buffers."""

from __future__ import annotations

from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np

Color = Tuple[int, int, int]
GradientStop = Tuple[float, Tuple[int, int, int, float]]

FONT = cv2.FONT_HERSHEY_DUPLEX
# Approximate cap height of FONT_HERSHEY_DUPLEX at scale 1.0.
_FONT_BASE_HEIGHT = 22.0


def rgba(color: Color) -> Tuple[int, int, int, int]:
    """Expand an RGB triple into an opaque RGBA colour for OpenCV calls."""
    return (int(color[0]), int(color[1]), int(color[2]), 255)


def point(x: float, y: float) -> Tuple[int, int]:
    return (int(round(x)), int(round(y)))


def fill_rect(canvas: np.ndarray, color: Color, alpha: float = 1.0) -> None:
    """Fill the whole canvas with ``color`` using source-over compositing."""
    if alpha >= 1.0:
        canvas[..., :3] = color
        canvas[..., 3] = 255
        return
    height, width = canvas.shape[:2]
    layer = np.empty((height, width, 3), dtype=np.float32)
    layer[...] = color
    composite(canvas, layer, np.full((height, width), alpha, dtype=np.float32))


def paint(canvas: np.ndarray, alpha: float, draw: Callable[[np.ndarray], None]) -> None:
    """Run ``draw`` on a copy of the canvas and blend it back at ``alpha``."""
    if alpha >= 1.0:
        draw(canvas)
        return
    layer = canvas.copy()
    draw(layer)
    canvas[...] = cv2.addWeighted(layer, alpha, np.ascontiguousarray(canvas), 1.0 - alpha, 0.0)


def composite(
    canvas: np.ndarray,
    color: np.ndarray,
    alpha: np.ndarray,
    *,
    mode: str = "normal",
    mask: Optional[np.ndarray] = None,
) -> None:
    """Composite a per-pixel colour layer onto ``canvas`` in place.

    ``color`` is ``(H, W, 3)`` in 0..255, ``alpha`` is ``(H, W)`` in 0..1.
    ``mode`` selects the separable blend function applied before
    source-over: ``normal``, ``overlay`` or ``multiply``.
    """
    if mask is not None:
        alpha = np.where(mask, alpha, 0.0)

    base = canvas[..., :3].astype(np.float32) / 255.0
    source = np.asarray(color, dtype=np.float32) / 255.0

    if mode == "normal":
        blended = source
    elif mode == "multiply":
        blended = base * source
    elif mode == "overlay":
        blended = np.where(
            base <= 0.5,
            2.0 * base * source,
            1.0 - 2.0 * (1.0 - base) * (1.0 - source),
        )
    else:
        raise ValueError(f"Unsupported blend mode: {mode}")

    weight = np.clip(alpha, 0.0, 1.0)[..., None].astype(np.float32)
    result = blended * weight + base * (1.0 - weight)
    canvas[..., :3] = np.clip(np.rint(result * 255.0), 0, 255).astype(np.uint8)

    dest_alpha = canvas[..., 3].astype(np.float32) / 255.0
    out_alpha = weight[..., 0] + dest_alpha * (1.0 - weight[..., 0])
    canvas[..., 3] = np.clip(np.rint(out_alpha * 255.0), 0, 255).astype(np.uint8)


def _interpolate_stops(t: np.ndarray, stops: Sequence[GradientStop]) -> Tuple[np.ndarray, np.ndarray]:
    offsets = [offset for offset, _ in stops]
    channels = []
    for index in range(3):
        channels.append(np.interp(t, offsets, [stop[1][index] for stop in stops]))
    color = np.stack(channels, axis=-1).astype(np.float32)
    alpha = np.interp(t, offsets, [stop[1][3] for stop in stops]).astype(np.float32)
    return color, alpha


def linear_gradient(
    width: int,
    height: int,
    start: Tuple[float, float],
    end: Tuple[float, float],
    stops: Sequence[GradientStop],
) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(color, alpha)`` layers for a linear gradient along start->end."""
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32)
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        t = np.zeros((height, width), dtype=np.float32)
    else:
        t = ((xs - start[0]) * dx + (ys - start[1]) * dy) / length_sq
    return _interpolate_stops(np.clip(t, 0.0, 1.0), stops)


def radial_gradient(
    width: int,
    height: int,
    center: Tuple[float, float],
    radius: float,
    stops: Sequence[GradientStop],
) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(color, alpha)`` layers for a radial gradient from ``center``."""
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32)
    distance = np.hypot(xs - center[0], ys - center[1])
    t = distance / radius if radius > 0 else np.ones_like(distance)
    return _interpolate_stops(np.clip(t, 0.0, 1.0), stops)


def quadratic_curve(
    start: Tuple[float, float],
    control: Tuple[float, float],
    end: Tuple[float, float],
    steps: int = 32,
) -> np.ndarray:
    """Sample a quadratic Bezier curve into a polyline suitable for cv2.polylines."""
    t = np.linspace(0.0, 1.0, steps, dtype=np.float32)[:, None]
    p0 = np.asarray(start, dtype=np.float32)
    p1 = np.asarray(control, dtype=np.float32)
    p2 = np.asarray(end, dtype=np.float32)
    points = (1 - t) ** 2 * p0 + 2 * (1 - t) * t * p1 + t ** 2 * p2
    return np.rint(points).astype(np.int32).reshape(-1, 1, 2)


def triangle(
    canvas: np.ndarray,
    vertices: Sequence[Tuple[float, float]],
    fill: Color,
    outline: Optional[Color] = None,
    thickness: int = 1,
) -> None:
    pts = np.array([point(x, y) for x, y in vertices], dtype=np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(canvas, [pts], rgba(fill), lineType=cv2.LINE_AA)
    if outline is not None:
        cv2.polylines(canvas, [pts], True, rgba(outline), thickness, cv2.LINE_AA)


def circle(
    canvas: np.ndarray,
    center: Tuple[float, float],
    radius: float,
    color: Color,
    thickness: int = -1,
) -> None:
    cv2.circle(
        canvas,
        point(*center),
        max(0, int(round(radius))),
        rgba(color),
        thickness,
        cv2.LINE_AA,
    )


def blended_circle(
    canvas: np.ndarray,
    center: Tuple[float, float],
    radius: float,
    color: Color,
    alpha: float,
) -> None:
    """Fill a translucent circle, blending only inside its bounding box."""
    if alpha <= 0.0 or radius <= 0:
        return
    height, width = canvas.shape[:2]
    cx, cy = center
    x0 = max(0, int(cx - radius) - 1)
    y0 = max(0, int(cy - radius) - 1)
    x1 = min(width, int(cx + radius) + 2)
    y1 = min(height, int(cy + radius) + 2)
    if x0 >= x1 or y0 >= y1:
        return
    region = canvas[y0:y1, x0:x1]
    paint(region, min(alpha, 1.0), lambda layer: circle(layer, (cx - x0, cy - y0), radius, color))


def star_points(
    cx: float,
    cy: float,
    spikes: int,
    outer_radius: float,
    inner_radius: float,
) -> np.ndarray:
    """Vertices of a star polygon, starting at the top spike."""
    rotation = np.pi / 2 * 3
    step = np.pi / spikes
    vertices = []
    for _ in range(spikes):
        vertices.append(point(cx + np.cos(rotation) * outer_radius, cy + np.sin(rotation) * outer_radius))
        rotation += step
        vertices.append(point(cx + np.cos(rotation) * inner_radius, cy + np.sin(rotation) * inner_radius))
        rotation += step
    return np.array(vertices, dtype=np.int32).reshape(-1, 1, 2)


def text(
    canvas: np.ndarray,
    message: str,
    x: float,
    y: float,
    size_px: float,
    color: Color,
    *,
    baseline: str = "middle",
    thickness: Optional[int] = None,
) -> None:
    """Draw horizontally centred text with a cap height of roughly ``size_px``.

    ``baseline`` is ``"middle"`` (vertically centred on ``y``), ``"top"``
    (cap line at ``y``) or ``"bottom"`` (text sits on ``y``).
    """
    scale = max(0.1, size_px / _FONT_BASE_HEIGHT)
    stroke = thickness if thickness is not None else max(1, int(round(scale * 2)))
    (text_width, text_height), _ = cv2.getTextSize(message, FONT, scale, stroke)
    origin_x = x - text_width / 2.0
    if baseline == "middle":
        origin_y = y + text_height / 2.0
    elif baseline == "top":
        origin_y = y + text_height
    else:
        origin_y = y
    cv2.putText(
        canvas,
        message,
        point(origin_x, origin_y),
        FONT,
        scale,
        rgba(color),
        stroke,
        cv2.LINE_AA,
    )


def creepy_border(canvas: np.ndarray) -> None:
    """Stroke the diagonal red/black/red gradient frame (10px, inset 5px)."""
    height, width = canvas.shape[:2]
    color, alpha = linear_gradient(
        width,
        height,
        (0.0, 0.0),
        (float(width), float(height)),
        (
            (0.0, (139, 0, 0, 0.8)),
            (0.5, (0, 0, 0, 0.9)),
            (1.0, (139, 0, 0, 0.8)),
        ),
    )
    mask = np.zeros((height, width), dtype=bool)
    edge = 10
    mask[:edge, :] = True
    mask[-edge:, :] = True
    mask[:, :edge] = True
    mask[:, -edge:] = True
    composite(canvas, color, alpha, mask=mask)


__all__ = [
    "Color",
    "GradientStop",
    "blended_circle",
    "circle",
    "composite",
    "creepy_border",
    "fill_rect",
    "linear_gradient",
    "paint",
    "point",
    "quadratic_curve",
    "radial_gradient",
    "rgba",
    "star_points",
    "text",
    "triangle",
]
