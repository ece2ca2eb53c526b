import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from halloween_scare.filters import FILTER_TABLE, apply_filter, transform_pixels
from halloween_scare.models import FaceBox, HalloweenFilter, blank_buffer


def solid(width: int, height: int, color) -> np.ndarray:
    return blank_buffer(width, height, color)


def test_every_filter_is_registered():
    assert set(FILTER_TABLE) == set(HalloweenFilter)


def test_parse_filter_names():
    assert HalloweenFilter.parse("Skeleton") is HalloweenFilter.SKELETON
    assert HalloweenFilter.parse("") is None
    assert HalloweenFilter.parse("werewolf") is None


def test_skeleton_transform_is_binary_grayscale():
    rng = np.random.default_rng(7)
    image = rng.integers(0, 256, size=(400, 400, 4), dtype=np.uint8)
    image[..., 3] = 180

    result = transform_pixels(image, HalloweenFilter.SKELETON, rng)

    rgb = result[..., :3]
    assert np.array_equal(rgb[..., 0], rgb[..., 1])
    assert np.array_equal(rgb[..., 1], rgb[..., 2])
    assert set(np.unique(rgb)).issubset({0, 255})
    assert np.array_equal(result[..., 3], image[..., 3])


def test_vampire_scales_channels_and_clamps():
    image = solid(4, 4, (100, 100, 100))
    result = transform_pixels(image, HalloweenFilter.VAMPIRE)
    assert tuple(result[0, 0]) == (130, 60, 60, 255)

    bright = solid(4, 4, (250, 250, 250))
    clamped = transform_pixels(bright, HalloweenFilter.PUMPKIN)
    assert tuple(clamped[0, 0]) == (255, 225, 100, 255)


def test_ghost_brightens_average_and_sets_alpha():
    image = solid(3, 3, (10, 20, 30))
    result = transform_pixels(image, HalloweenFilter.GHOST)
    assert tuple(result[1, 1]) == (100, 110, 120, 200)


def test_ghost_from_black_pixel():
    result = transform_pixels(solid(2, 2, (0, 0, 0)), HalloweenFilter.GHOST)
    assert tuple(result[0, 0]) == (80, 90, 100, 200)


def test_ghost_clamps_bright_pixels_instead_of_wrapping():
    result = transform_pixels(solid(2, 2, (250, 250, 250)), HalloweenFilter.GHOST)
    assert tuple(result[0, 0]) == (255, 255, 255, 200)

    partial = transform_pixels(solid(2, 2, (200, 180, 160)), HalloweenFilter.GHOST)
    assert tuple(partial[0, 0]) == (255, 255, 255, 200)

    mixed = transform_pixels(solid(2, 2, (200, 150, 100)), HalloweenFilter.GHOST)
    assert tuple(mixed[0, 0]) == (230, 240, 250, 200)


SCALE_FACTORS = {
    HalloweenFilter.VAMPIRE: (1.3, 0.6, 0.6),
    HalloweenFilter.PUMPKIN: (1.5, 0.9, 0.4),
    HalloweenFilter.WITCH: (1.1, 0.6, 1.3),
}


@pytest.mark.parametrize("filter_id", list(HalloweenFilter))
def test_random_buffers_stay_in_range(filter_id):
    rng = np.random.default_rng(21)
    image = rng.integers(0, 256, size=(64, 48, 4), dtype=np.uint8)
    image[:8] = (255, 255, 255, 255)

    result = transform_pixels(image, filter_id, np.random.default_rng(22))

    assert result.shape == image.shape
    assert result.dtype == np.uint8
    if filter_id is HalloweenFilter.GHOST:
        avg = image[..., :3].astype(np.float32).mean(axis=2, keepdims=True)
        expected = np.clip(np.rint(avg + np.array([80.0, 90.0, 100.0], dtype=np.float32)), 0, 255)
        assert np.array_equal(result[..., :3], expected.astype(np.uint8))
        assert np.all(result[..., 3] == 200)
        assert np.all(result[:8, :, :3] == 255)
    else:
        assert np.array_equal(result[..., 3], image[..., 3])
    if filter_id in SCALE_FACTORS:
        factors = np.array(SCALE_FACTORS[filter_id], dtype=np.float32)
        expected = np.clip(np.rint(image[..., :3].astype(np.float32) * factors), 0, 255)
        assert np.array_equal(result[..., :3], expected.astype(np.uint8))


def test_zombie_noise_blackens_roughly_five_percent():
    image = solid(200, 200, (100, 100, 100))
    result = transform_pixels(image, HalloweenFilter.ZOMBIE, np.random.default_rng(1))

    black = np.all(result[..., :3] == 0, axis=2)
    fraction = black.mean()
    assert 0.03 < fraction < 0.07
    untouched = result[~black]
    assert np.all(untouched[:, :3] == (70, 120, 60))


def test_demon_noise_pixels_are_hellfire_red():
    image = solid(200, 200, (100, 100, 100))
    result = transform_pixels(image, HalloweenFilter.DEMON, np.random.default_rng(3))

    noisy = result[..., 0] == 255
    assert 0.06 < noisy.mean() < 0.10
    assert np.all(result[noisy][:, 1] < 100)
    assert np.all(result[noisy][:, 2] == 0)
    assert np.all(result[~noisy][:, :3] == (180, 30, 20))


def test_apply_filter_never_modifies_input():
    image = solid(64, 64, (120, 80, 40))
    snapshot = image.copy()

    for filter_id in HalloweenFilter:
        result = apply_filter(image, filter_id, rng=np.random.default_rng(0))
        assert result is not image
        assert result.shape == image.shape

    assert np.array_equal(image, snapshot)


@pytest.mark.parametrize("filter_id", list(HalloweenFilter))
def test_overlays_draw_with_and_without_faces(filter_id):
    image = solid(120, 120, (128, 128, 128))
    face = FaceBox(x_center=0.5, y_center=0.5, width=0.4, height=0.5)

    without_faces = apply_filter(image, filter_id, [], np.random.default_rng(5))
    with_faces = apply_filter(image, filter_id, [face], np.random.default_rng(5))

    assert without_faces.shape == (120, 120, 4)
    assert with_faces.shape == (120, 120, 4)


def test_face_anchored_fangs_move_with_face():
    image = solid(200, 200, (0, 0, 0))
    face = FaceBox(x_center=0.25, y_center=0.25, width=0.3, height=0.3)

    fallback = apply_filter(image, HalloweenFilter.VAMPIRE, [], np.random.default_rng(0))
    anchored = apply_filter(image, HalloweenFilter.VAMPIRE, [face], np.random.default_rng(0))

    assert not np.array_equal(fallback, anchored)


def test_same_seed_gives_identical_output():
    image = solid(80, 60, (90, 140, 200))
    first = apply_filter(image, HalloweenFilter.WITCH, rng=np.random.default_rng(11))
    second = apply_filter(image, HalloweenFilter.WITCH, rng=np.random.default_rng(11))
    assert np.array_equal(first, second)


def test_border_is_drawn_without_filter():
    image = solid(50, 50, (255, 255, 255))
    result = apply_filter(image, None)

    assert tuple(result[25, 25]) == (255, 255, 255, 255)
    corner = result[0, 0]
    assert corner[0] == 162
    assert corner[1] == 51
    assert corner[2] == 51
