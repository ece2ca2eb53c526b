import logging
import sys
from pathlib import Path
from unittest.mock import patch

import cv2
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from halloween_scare.app import HalloweenStudio
from halloween_scare.cli import _default_output, main
from halloween_scare.config import ApiSettings, Config, RenderSettings, StorageSettings
from halloween_scare.faces import NullFaceLocator
from halloween_scare.logging_setup import PACKAGE_LOGGERS
from halloween_scare.models import HalloweenFilter
from halloween_scare.recorder import StreamRecorder
from halloween_scare.roast import FALLBACK_ROAST


@pytest.fixture(autouse=True)
def detach_cli_log_handlers():
    yield
    for name in PACKAGE_LOGGERS:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True


class FakeCapture:
    def __init__(self):
        self.frames = 0

    def open(self):
        pass

    def write_frame(self, frame):
        self.frames += 1

    def stop(self):
        return [b"encoded-", str(self.frames).encode("ascii")]

    def abort(self):
        pass


def write_photo(path: Path, width: int = 80, height: int = 60) -> Path:
    image = np.full((height, width, 3), 150, dtype=np.uint8)
    cv2.imwrite(str(path), image)
    return path


def make_studio(tmp_path, **render_overrides) -> HalloweenStudio:
    config = Config(
        render=RenderSettings(output_dir=tmp_path / "out", face_detection=False, **render_overrides),
        api=ApiSettings(gemini_api_key=None),
        storage=StorageSettings(database_path=tmp_path / "clips.db", uploads_dir=tmp_path / "uploads"),
        log_file=None,
    )
    recorder = StreamRecorder(
        fps=30,
        encoder_probe=lambda: frozenset({"libx264"}),
        capture_factory=lambda codec, width, height, fps: FakeCapture(),
    )
    logger = logging.getLogger("studio-test")
    return HalloweenStudio(config, logger, recorder=recorder, rng=np.random.default_rng(0))


def test_missing_gemini_key_disables_only_roasts(tmp_path):
    studio = make_studio(tmp_path)

    assert not studio.roast_enabled
    assert isinstance(studio.face_locator, NullFaceLocator)
    assert studio.roast(np.zeros((4, 4, 4), dtype=np.uint8), HalloweenFilter.GHOST) == FALLBACK_ROAST


def test_scare_video_end_to_end(tmp_path):
    studio = make_studio(tmp_path)
    photo = write_photo(tmp_path / "me.png")

    result = studio.create_scare_video(photo, HalloweenFilter.ZOMBIE, tmp_path / "out" / "scare", with_roast=True)

    assert result.filtered.shape == (60, 80, 4)
    assert result.artifact.frame_count == 107
    assert result.output_path == tmp_path / "out" / "scare.mp4"
    assert result.output_path.read_bytes() == b"encoded-107"
    assert result.roast == FALLBACK_ROAST

    artifact_id = studio.save_artifact(result.artifact, HalloweenFilter.ZOMBIE, result.roast)
    stored = studio.store.load(artifact_id)
    assert stored.data == b"encoded-107"
    assert stored.filter_type == "zombie"
    assert studio.store.roast_for(artifact_id) == FALLBACK_ROAST


def test_dotted_photo_name_still_gets_clip_extension(tmp_path):
    studio = make_studio(tmp_path)
    photo = write_photo(tmp_path / "my.photo.png")
    output = _default_output(studio.config, photo, "vampire_scare")

    result = studio.create_scare_video(photo, HalloweenFilter.VAMPIRE, output)

    assert result.output_path == tmp_path / "out" / "my.photo_vampire_scare.mp4"
    assert result.output_path.read_bytes() == b"encoded-107"


def test_jumpscare_clip_uses_placeholder_when_image_missing(tmp_path):
    studio = make_studio(tmp_path, jumpscare_images=(tmp_path / "missing.jpg",))
    photo = write_photo(tmp_path / "me.png")

    result = studio.create_jumpscare_clip(photo, HalloweenFilter.PUMPKIN)

    assert result.artifact.frame_count == 150
    assert result.output_path is None


def test_photos_are_downscaled(tmp_path):
    studio = make_studio(tmp_path, max_image_dimension=40)
    photo = write_photo(tmp_path / "big.png", width=200, height=100)

    assert studio.load_photo(photo).shape == (20, 40, 4)


def test_cli_filter_and_store_fetch(tmp_path, capsys):
    photo = write_photo(tmp_path / "me.png")
    env = {
        "FACE_DETECTION": "false",
        "DATABASE_PATH": str(tmp_path / "clips.db"),
        "OUTPUT_DIR": str(tmp_path / "out"),
    }

    with patch.dict("os.environ", env, clear=True):
        code = main(
            [
                "--config",
                str(tmp_path / "missing.json"),
                "--no-log-file",
                "filter",
                str(photo),
                "--filter",
                "skeleton",
                "--output",
                str(tmp_path / "filtered.png"),
            ]
        )
        assert code == 0
        assert (tmp_path / "filtered.png").exists()

        clip = tmp_path / "clip.mp4"
        clip.write_bytes(b"not-really-mp4")
        assert main(["--config", str(tmp_path / "missing.json"), "--no-log-file", "store", str(clip), "--filter", "ghost"]) == 0
        artifact_id = capsys.readouterr().out.strip().splitlines()[-1]

        exported = tmp_path / "exported.mp4"
        assert main(
            [
                "--config",
                str(tmp_path / "missing.json"),
                "--no-log-file",
                "fetch",
                artifact_id,
                "--output",
                str(exported),
            ]
        ) == 0
        assert exported.read_bytes() == b"not-really-mp4"

        assert main(["--config", str(tmp_path / "missing.json"), "--no-log-file", "fetch", "missing-id"]) == 1


def test_cli_quiz_uses_fallback_pool_without_key(tmp_path, capsys):
    with patch.dict("os.environ", {"FACE_DETECTION": "false"}, clear=True):
        code = main(["--config", str(tmp_path / "missing.json"), "--no-log-file", "quiz"])

    assert code == 0
    output = capsys.readouterr().out
    assert "  A) " in output
    assert "  D) " in output


def test_horror_reel_records_one_chapter_per_photo(tmp_path):
    studio = make_studio(tmp_path)
    photos = [write_photo(tmp_path / f"scene{index}.png") for index in range(5)]

    result = studio.create_horror_reel(photos, tmp_path / "out" / "reel", image_seconds=1)

    assert len(result.chapters) == 5
    assert result.chapters[0] == "Something felt wrong the moment I arrived..."
    assert [slide.shape for slide in result.slides] == [(1067, 600, 4)] * 5
    assert result.artifact.frame_count == 150
    assert result.output_path == tmp_path / "out" / "reel.mp4"


def test_horror_reel_keeps_first_eight_photos(tmp_path):
    studio = make_studio(tmp_path)
    photos = [write_photo(tmp_path / f"scene{index}.png") for index in range(10)]

    result = studio.create_horror_reel(photos)

    assert len(result.slides) == 8
    assert result.artifact.frame_count == 8 * 2 * 30
    assert result.output_path is None


def test_cli_reel_needs_four_photos(tmp_path):
    photos = [str(write_photo(tmp_path / f"scene{index}.png")) for index in range(3)]
    with patch.dict("os.environ", {"FACE_DETECTION": "false"}, clear=True):
        code = main(["--config", str(tmp_path / "missing.json"), "--no-log-file", "reel", *photos])
    assert code == 1


def test_cli_reel_rejects_bad_duration(tmp_path):
    photos = [str(write_photo(tmp_path / f"scene{index}.png")) for index in range(4)]
    with patch.dict("os.environ", {"FACE_DETECTION": "false"}, clear=True):
        code = main(
            ["--config", str(tmp_path / "missing.json"), "--no-log-file", "reel", *photos, "--seconds", "9"]
        )
    assert code == 1
