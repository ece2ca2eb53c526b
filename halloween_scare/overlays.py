"""Vector overlay graphics drawn on top of filtered images.

Each overlay receives the (already channel-transformed) RGBA buffer, the
detected face boxes and the random source for the current application. When
faces are available features are positioned relative to each face box;
otherwise the overlay falls back to fixed proportions of the canvas.
"""

from __future__ import annotations

from typing import Sequence

import cv2
import numpy as np

from halloween_scare import drawing
from halloween_scare.models import FaceBox

DARK_RED = (139, 0, 0)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
RED = (255, 0, 0)


def _face_geometry(canvas: np.ndarray, faces: Sequence[FaceBox]):
    height, width = canvas.shape[:2]
    for face in faces:
        yield face.to_pixels(width, height)


def vampire_fangs(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]

    if faces:
        for face_x, face_y, face_w, face_h in _face_geometry(canvas, faces):
            mouth_y = face_y + face_h * 0.15
            drawing.triangle(
                canvas,
                [
                    (face_x - face_w * 0.15, mouth_y),
                    (face_x - face_w * 0.1, mouth_y + face_h * 0.25),
                    (face_x - face_w * 0.05, mouth_y),
                ],
                WHITE,
                DARK_RED,
                2,
            )
            drawing.triangle(
                canvas,
                [
                    (face_x + face_w * 0.05, mouth_y),
                    (face_x + face_w * 0.1, mouth_y + face_h * 0.25),
                    (face_x + face_w * 0.15, mouth_y),
                ],
                WHITE,
                DARK_RED,
                2,
            )
            drop_y = mouth_y + face_h * 0.35
            drawing.circle(canvas, (face_x - face_w * 0.1, drop_y), 3, DARK_RED)
            drawing.circle(canvas, (face_x + face_w * 0.1, drop_y), 3, DARK_RED)
        return

    drawing.triangle(
        canvas,
        [(width * 0.35, height * 0.4), (width * 0.37, height * 0.5), (width * 0.39, height * 0.4)],
        WHITE,
        DARK_RED,
        2,
    )
    drawing.triangle(
        canvas,
        [(width * 0.61, height * 0.4), (width * 0.63, height * 0.5), (width * 0.65, height * 0.4)],
        WHITE,
        DARK_RED,
        2,
    )


def zombie_wounds(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]

    def _draw(layer: np.ndarray) -> None:
        for _ in range(5):
            x = rng.random() * width
            y = rng.random() * height
            size = rng.random() * 20 + 10
            drawing.circle(layer, (x, y), size, DARK_RED)

    drawing.paint(canvas, 0.6, _draw)


def ghostly_aura(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]
    color, alpha = drawing.radial_gradient(
        width,
        height,
        (width / 2.0, height / 2.0),
        max(width, height) / 2.0,
        ((0.0, (200, 200, 255, 0.0)), (1.0, (200, 200, 255, 0.5))),
    )
    drawing.composite(canvas, color, alpha)


def pumpkin_lines(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]

    def _draw(layer: np.ndarray) -> None:
        for index in range(1, 4):
            x = width * (index / 4.0)
            curve = drawing.quadratic_curve((x, 0), (x, height / 2.0), (x, height))
            cv2.polylines(layer, [curve], False, drawing.rgba((255, 140, 0)), 3, cv2.LINE_AA)

    drawing.paint(canvas, 0.8, _draw)


def witch_stars(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]

    def _draw(layer: np.ndarray) -> None:
        for _ in range(10):
            x = rng.random() * width
            y = rng.random() * height
            cv2.fillPoly(
                layer,
                [drawing.star_points(x, y, 5, 10, 5)],
                drawing.rgba((255, 255, 0)),
                lineType=cv2.LINE_AA,
            )

    drawing.paint(canvas, 0.8, _draw)


def _glowing_eyes(canvas: np.ndarray, centers, radius: float) -> None:
    height, width = canvas.shape[:2]
    glow = np.zeros((height, width), dtype=np.uint8)
    for center in centers:
        cv2.circle(glow, drawing.point(*center), max(1, int(round(radius))), 255, -1, cv2.LINE_AA)
    glow = cv2.GaussianBlur(glow, (0, 0), sigmaX=10)
    color = np.empty((height, width, 3), dtype=np.float32)
    color[...] = RED
    drawing.composite(canvas, color, glow.astype(np.float32) / 255.0)
    for center in centers:
        drawing.circle(canvas, center, radius, RED)


def demon_effects(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]

    for face_x, face_y, face_w, face_h in _face_geometry(canvas, faces):
        drawing.triangle(
            canvas,
            [
                (face_x - face_w * 0.2, face_y - face_h * 0.4),
                (face_x - face_w * 0.15, face_y - face_h * 0.6),
                (face_x - face_w * 0.1, face_y - face_h * 0.35),
            ],
            BLACK,
            RED,
            3,
        )
        drawing.triangle(
            canvas,
            [
                (face_x + face_w * 0.1, face_y - face_h * 0.35),
                (face_x + face_w * 0.15, face_y - face_h * 0.6),
                (face_x + face_w * 0.2, face_y - face_h * 0.4),
            ],
            BLACK,
            RED,
            3,
        )
        eye_y = face_y - face_h * 0.1
        _glowing_eyes(
            canvas,
            [(face_x - face_w * 0.1, eye_y), (face_x + face_w * 0.1, eye_y)],
            8,
        )

    # Hellfire rises from the bottom edge.
    color, alpha = drawing.linear_gradient(
        width,
        height,
        (0.0, float(height)),
        (0.0, 0.0),
        (
            (0.0, (255, 69, 0, 0.6)),
            (0.5, (255, 140, 0, 0.3)),
            (1.0, (139, 0, 0, 0.2)),
        ),
    )
    drawing.composite(canvas, color, alpha, mode="overlay")


def skeleton_effects(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]

    for face_x, face_y, face_w, face_h in _face_geometry(canvas, faces):
        socket_y = face_y - face_h * 0.1
        drawing.circle(canvas, (face_x - face_w * 0.12, socket_y), face_w * 0.08, BLACK)
        drawing.circle(canvas, (face_x + face_w * 0.12, socket_y), face_w * 0.08, BLACK)

        drawing.triangle(
            canvas,
            [
                (face_x, face_y),
                (face_x - face_w * 0.03, face_y + face_h * 0.15),
                (face_x + face_w * 0.03, face_y + face_h * 0.15),
            ],
            BLACK,
        )

        jaw_y = face_y + face_h * 0.25
        cv2.line(
            canvas,
            drawing.point(face_x - face_w * 0.2, jaw_y),
            drawing.point(face_x + face_w * 0.2, jaw_y),
            drawing.rgba(BLACK),
            6,
            cv2.LINE_AA,
        )
        for index in range(-3, 4):
            tooth_x = face_x + index * (face_w * 0.06)
            top_left = drawing.point(tooth_x - 3, jaw_y)
            bottom_right = drawing.point(tooth_x + 3, jaw_y + 15)
            cv2.rectangle(canvas, top_left, bottom_right, drawing.rgba(WHITE), -1)
            cv2.rectangle(canvas, top_left, bottom_right, drawing.rgba(BLACK), 2)

    mask = np.zeros((height, width), dtype=bool)
    for _ in range(20):
        x = int(rng.random() * width)
        y = int(rng.random() * height)
        length = int(rng.random() * 50 + 20)
        mask[y:y + 3, x:x + length] = True
    color = np.empty((height, width, 3), dtype=np.float32)
    color[...] = (220, 220, 220)
    drawing.composite(
        canvas,
        color,
        np.full((height, width), 0.1, dtype=np.float32),
        mode="multiply",
        mask=mask,
    )


def possessed_effects(canvas: np.ndarray, faces: Sequence[FaceBox], rng: np.random.Generator) -> None:
    height, width = canvas.shape[:2]

    for face_x, face_y, face_w, face_h in _face_geometry(canvas, faces):
        eye_y = face_y - face_h * 0.1
        for index in range(8):
            angle = (index / 8.0) * np.pi * 2
            eye_x = face_x + (-face_w * 0.1 if index < 4 else face_w * 0.1)
            cv2.line(
                canvas,
                drawing.point(eye_x, eye_y),
                drawing.point(
                    eye_x + np.cos(angle) * face_w * 0.15,
                    eye_y + np.sin(angle) * face_h * 0.1,
                ),
                drawing.rgba(BLACK),
                2,
                cv2.LINE_AA,
            )

        def _sockets(layer: np.ndarray, fx=face_x, fw=face_w, ey=eye_y) -> None:
            drawing.circle(layer, (fx - fw * 0.1, ey), fw * 0.06, BLACK)
            drawing.circle(layer, (fx + fw * 0.1, ey), fw * 0.06, BLACK)

        drawing.paint(canvas, 0.7, _sockets)

        mouth = drawing.quadratic_curve(
            (face_x - face_w * 0.1, face_y + face_h * 0.2),
            (face_x, face_y + face_h * 0.25),
            (face_x + face_w * 0.1, face_y + face_h * 0.2),
        )
        cv2.polylines(canvas, [mouth], False, drawing.rgba(BLACK), 3, cv2.LINE_AA)

    def _swirls(layer: np.ndarray) -> None:
        for _ in range(5):
            center = (rng.random() * width, rng.random() * height)
            radius = rng.random() * 80 + 40
            drawing.circle(layer, center, radius, (25, 25, 112), thickness=3)
            drawing.circle(layer, center, radius * 0.6, (25, 25, 112), thickness=3)

    drawing.paint(canvas, 0.6, _swirls)


__all__ = [
    "demon_effects",
    "ghostly_aura",
    "possessed_effects",
    "pumpkin_lines",
    "skeleton_effects",
    "vampire_fangs",
    "witch_stars",
    "zombie_wounds",
]
