"""
Gemini-written horror stories told across a set of photos, one chapter each.
"""

from __future__ import annotations

import base64
import logging
from textwrap import dedent
from typing import List, Optional, Sequence, TypeVar

import numpy as np
import requests

from halloween_scare.models import encode_png
from halloween_scare.roast import GeminiClient, GeminiError

LOGGER = logging.getLogger(__name__)

MIN_STORY_IMAGES = 4
MAX_STORY_IMAGES = 8
CHAPTER_SEPARATOR = "|"
PADDING_CHAPTER = "The horror continues..."

FALLBACK_CHAPTERS = (
    "Something felt wrong the moment I arrived...",
    "The shadows seemed to move on their own...",
    "I should have left when I had the chance...",
    "Now there's no escape from this nightmare...",
)
FALLBACK_EXTRA_CHAPTER = "The terror never ends..."

T = TypeVar("T")


def limit_story_images(items: Sequence[T], logger: Optional[logging.Logger] = None) -> List[T]:
    """Enforce the 4-8 image range, keeping the first eight when more are given."""
    log = logger or LOGGER
    if len(items) < MIN_STORY_IMAGES:
        raise ValueError(
            f"At least {MIN_STORY_IMAGES} images are required for a horror story, got {len(items)}"
        )
    if len(items) > MAX_STORY_IMAGES:
        log.warning(
            "Got %s images; only the first %s are used", len(items), MAX_STORY_IMAGES
        )
    return list(items[:MAX_STORY_IMAGES])


def build_story_prompt(count: int) -> str:
    extra = "- Continue building tension for remaining parts\n" if count > 4 else ""
    return dedent(
        f"""
        Look at these {count} images and create a cohesive horror story that uses each image as a chapter.

        Write a spooky, suspenseful story with {count} parts - one for each image in order.
        Each part should be 1-2 sentences that creates tension and moves the story forward.

        Structure:
        - Part 1: Set the eerie scene
        - Part 2: Something strange begins
        - Part 3: The horror escalates
        - Part 4: The terrifying climax
        {extra}
        Make it genuinely creepy but suitable for social media. Focus on psychological horror
        and suspense rather than gore. Each part should end with a cliffhanger.

        Return ONLY the story parts separated by "|" with no other text. Example format:
        Part 1 text here|Part 2 text here|Part 3 text here|Part 4 text here
        """
    ).strip()


def fallback_chapters(count: int) -> List[str]:
    chapters = list(FALLBACK_CHAPTERS[:count])
    chapters.extend([FALLBACK_EXTRA_CHAPTER] * (count - len(chapters)))
    return chapters


def split_chapters(text: str, count: int, logger: Optional[logging.Logger] = None) -> List[str]:
    """Split model output into exactly ``count`` non-empty chapters.

    Missing chapters are padded with a generic line; extras are dropped.
    """
    log = logger or LOGGER
    chapters = [part.strip() for part in text.split(CHAPTER_SEPARATOR) if part.strip()]
    if len(chapters) != count:
        log.warning("Expected %s story parts, got %s", count, len(chapters))
    chapters.extend([PADDING_CHAPTER] * (count - len(chapters)))
    return chapters[:count]


class HorrorStoryWriter:
    """Ask Gemini for a chaptered story; fall back to a canned one on failure."""

    def __init__(
        self,
        client: Optional[GeminiClient],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.logger = logger or LOGGER

    def generate_horror_story(self, images: Sequence[np.ndarray]) -> List[str]:
        """Return one chapter per image, in image order."""
        count = len(images)
        if count == 0:
            return []
        if self.client is None:
            self.logger.info("No Gemini client configured; using fallback story")
            return fallback_chapters(count)

        encoded = [
            (base64.b64encode(encode_png(image)).decode("ascii"), "image/png") for image in images
        ]
        self.logger.info("Requesting a %s-chapter horror story from %s", count, self.client.model)
        try:
            text = self.client.generate(build_story_prompt(count), images=encoded)
        except (requests.RequestException, GeminiError) as exc:
            self.logger.warning("Story generation failed, using fallback: %s", exc)
            return fallback_chapters(count)
        return split_chapters(text, count, self.logger)


__all__ = [
    "FALLBACK_CHAPTERS",
    "HorrorStoryWriter",
    "MAX_STORY_IMAGES",
    "MIN_STORY_IMAGES",
    "PADDING_CHAPTER",
    "build_story_prompt",
    "fallback_chapters",
    "limit_story_images",
    "split_chapters",
]
