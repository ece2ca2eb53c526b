"""
Halloween Scare Studio
Filters a photo, composes a jumpscare timeline and records it into a clip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

import numpy as np
from dotenv import load_dotenv

from halloween_scare.composer import (
    DEFAULT_IMAGE_SECONDS,
    check_image_seconds,
    compose_jumpscare_clip,
    compose_reel,
    compose_timeline,
    load_jumpscare_image,
    render_story_slide,
)
from halloween_scare.config import Config
from halloween_scare.faces import FaceLocator, NullFaceLocator
from halloween_scare.filters import apply_filter
from halloween_scare.models import (
    EncodedArtifact,
    HalloweenFilter,
    Timeline,
    encode_png,
    fit_to_max_dimension,
    load_image,
)
from halloween_scare.quiz import GeminiQuestionGenerator, QuestionCache
from halloween_scare.recorder import StreamRecorder
from halloween_scare.roast import FALLBACK_ROAST, MissingCredentialError, RoastRequester
from halloween_scare.storage import ArtifactStore
from halloween_scare.story import HorrorStoryWriter, limit_story_images

# Load environment variables
load_dotenv()


@dataclass(frozen=True)
class ScareResult:
    """Outcome of a full photo -> clip run."""

    filtered: np.ndarray
    artifact: EncodedArtifact
    output_path: Optional[Path] = None
    roast: Optional[str] = None


@dataclass(frozen=True)
class ReelResult:
    """Chapters, captioned slides and the recorded horror reel."""

    chapters: Tuple[str, ...]
    slides: Tuple[np.ndarray, ...]
    artifact: EncodedArtifact
    output_path: Optional[Path] = None


class HalloweenStudio:
    """Wire the filter engine, composer, recorder and optional integrations."""

    def __init__(
        self,
        config: Config,
        logger: Optional[logging.Logger] = None,
        *,
        recorder: Optional[StreamRecorder] = None,
        face_locator=None,
        roast_requester: Optional[RoastRequester] = None,
        store: Optional[ArtifactStore] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger("halloween_scare")
        self.rng = rng if rng is not None else np.random.default_rng()
        render = config.render

        self.recorder = recorder or StreamRecorder(
            logger=self.logger,
            fps=render.capture_fps,
            codec_preferences=render.codec_preferences,
            ffmpeg_path=render.ffmpeg_path,
            quality=render.quality,
            realtime=render.realtime_capture,
        )

        if face_locator is not None:
            self.face_locator = face_locator
        elif render.face_detection:
            self.face_locator = FaceLocator(self.logger)
        else:
            self.face_locator = NullFaceLocator()

        self.roast_requester = roast_requester
        if self.roast_requester is None:
            try:
                self.roast_requester = RoastRequester(
                    config.api.gemini_api_key,
                    model=config.api.gemini_model,
                    base_url=config.api.gemini_base_url,
                    timeout=config.api.request_timeout,
                    logger=self.logger,
                )
            except MissingCredentialError as exc:
                self.logger.warning("Roast feature disabled: %s", exc)

        self._store = store
        self._question_cache: Optional[QuestionCache] = None
        self._story_writer: Optional[HorrorStoryWriter] = None

    # ------------------------------------------------------------------
    # Image pipeline
    # ------------------------------------------------------------------

    @property
    def roast_enabled(self) -> bool:
        return self.roast_requester is not None

    def load_photo(self, path: Path | str) -> np.ndarray:
        image = load_image(path)
        resized = fit_to_max_dimension(image, self.config.render.max_image_dimension)
        self.logger.info(
            "Loaded %s (%sx%s -> %sx%s)",
            path,
            image.shape[1],
            image.shape[0],
            resized.shape[1],
            resized.shape[0],
        )
        return resized

    def filter_image(self, image: np.ndarray, filter_id: Optional[HalloweenFilter]) -> np.ndarray:
        faces = self.face_locator.locate(image) if filter_id is not None else []
        return apply_filter(image, filter_id, faces, self.rng)

    def record(self, timeline: Timeline, output_path: Optional[Path] = None) -> tuple[EncodedArtifact, Optional[Path]]:
        artifact = self.recorder.record(timeline)
        written = None
        if output_path is not None:
            written = artifact.write(output_path)
            self.logger.info("Wrote %s", written)
        return artifact, written

    def create_scare_video(
        self,
        photo_path: Path | str,
        filter_id: Optional[HalloweenFilter],
        output_path: Optional[Path] = None,
        *,
        with_roast: bool = False,
    ) -> ScareResult:
        """Filter a photo and record the reveal -> jumpscare -> finale sequence."""
        filtered = self.filter_image(self.load_photo(photo_path), filter_id)
        timeline = compose_timeline(filtered, self.rng)
        artifact, written = self.record(timeline, output_path)
        roast = self.roast(filtered, filter_id) if with_roast else None
        return ScareResult(filtered=filtered, artifact=artifact, output_path=written, roast=roast)

    def create_jumpscare_clip(
        self,
        photo_path: Path | str,
        filter_id: Optional[HalloweenFilter],
        output_path: Optional[Path] = None,
    ) -> ScareResult:
        """Record the short two-stage clip ending on a configured jumpscare photo."""
        render = self.config.render
        filtered = self.filter_image(self.load_photo(photo_path), filter_id)
        jumpscare = load_jumpscare_image(render.jumpscare_images, self.rng, self.logger)
        timeline = compose_jumpscare_clip(filtered, jumpscare, render.placeholder_color)
        artifact, written = self.record(timeline, output_path)
        return ScareResult(filtered=filtered, artifact=artifact, output_path=written)

    def create_horror_reel(
        self,
        photo_paths: Sequence[Path | str],
        output_path: Optional[Path] = None,
        *,
        image_seconds: int = DEFAULT_IMAGE_SECONDS,
    ) -> ReelResult:
        """Write a chaptered horror story over 4-8 photos and record it as a portrait reel."""
        check_image_seconds(image_seconds)
        paths = limit_story_images(list(photo_paths), self.logger)
        photos = [load_image(path) for path in paths]
        previews = [fit_to_max_dimension(photo, self.config.render.max_image_dimension) for photo in photos]

        chapters = self.story_writer.generate_horror_story(previews)
        slides = []
        for index, (photo, chapter) in enumerate(zip(photos, chapters), start=1):
            self.logger.info("Creating story slide %s/%s", index, len(photos))
            slides.append(render_story_slide(photo, chapter))

        timeline = compose_reel(slides, image_seconds)
        artifact, written = self.record(timeline, output_path)
        return ReelResult(
            chapters=tuple(chapters),
            slides=tuple(slides),
            artifact=artifact,
            output_path=written,
        )

    # ------------------------------------------------------------------
    # Integrations
    # ------------------------------------------------------------------

    def roast(self, image: np.ndarray, filter_id: Optional[HalloweenFilter]) -> str:
        if self.roast_requester is None:
            self.logger.info("Roast requested without GEMINI_API_KEY; returning fallback")
            return FALLBACK_ROAST
        return self.roast_requester.request_roast(encode_png(image), filter_id, mime_type="image/png")

    @property
    def store(self) -> ArtifactStore:
        if self._store is None:
            self._store = ArtifactStore(self.config.storage.database_path, self.logger)
        return self._store

    def save_artifact(
        self,
        artifact: EncodedArtifact,
        filter_id: Optional[HalloweenFilter],
        roast_text: Optional[str] = None,
    ) -> str:
        return self.store.save(
            artifact.to_base64(),
            filter_id.value if filter_id else "none",
            roast_text=roast_text,
            content_type=artifact.content_type,
        )

    @property
    def question_cache(self) -> QuestionCache:
        if self._question_cache is None:
            client = self.roast_requester.client if self.roast_requester is not None else None
            generator = GeminiQuestionGenerator(client, rng=self.rng, logger=self.logger)
            self._question_cache = QuestionCache(generator)
        return self._question_cache

    @property
    def story_writer(self) -> HorrorStoryWriter:
        if self._story_writer is None:
            client = self.roast_requester.client if self.roast_requester is not None else None
            self._story_writer = HorrorStoryWriter(client, logger=self.logger)
        return self._story_writer

    def close(self) -> None:
        self.recorder.close()


__all__ = ["HalloweenStudio", "ReelResult", "ScareResult"]
