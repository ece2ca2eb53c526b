import logging
import sys
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from halloween_scare.composer import (
    REEL_HEIGHT,
    REEL_WIDTH,
    compose_reel,
    printable_caption,
    render_story_slide,
    wrap_caption,
)
from halloween_scare.models import FrameKind, blank_buffer
from halloween_scare.roast import GeminiClient
from halloween_scare.story import (
    FALLBACK_CHAPTERS,
    PADDING_CHAPTER,
    HorrorStoryWriter,
    build_story_prompt,
    fallback_chapters,
    limit_story_images,
    split_chapters,
)


def make_response(payload, status_code=200):
    def raise_for_status():
        if status_code >= 400:
            raise requests.HTTPError(f"{status_code} Server Error")

    return SimpleNamespace(status_code=status_code, raise_for_status=raise_for_status, json=lambda: payload)


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append(SimpleNamespace(url=url, json=json, timeout=timeout))
        if self.error is not None:
            raise self.error
        return self.response


def candidate(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def photos(count, width=40, height=30):
    return [blank_buffer(width, height, (index * 20, 0, 0)) for index in range(count)]


def test_story_uses_all_images_in_one_request():
    session = FakeSession(make_response(candidate("One.|Two.|Three.|Four.")))
    writer = HorrorStoryWriter(GeminiClient("key", session=session))

    chapters = writer.generate_horror_story(photos(4))

    assert chapters == ["One.", "Two.", "Three.", "Four."]
    assert len(session.calls) == 1
    parts = session.calls[0].json["contents"][0]["parts"]
    assert "create a cohesive horror story" in parts[0]["text"]
    assert [part["inlineData"]["mimeType"] for part in parts[1:]] == ["image/png"] * 4


def test_short_story_is_padded_and_long_one_trimmed():
    assert split_chapters("A|  |B", 4) == ["A", "B", PADDING_CHAPTER, PADDING_CHAPTER]
    assert split_chapters("A|B|C|D|E|F", 4) == ["A", "B", "C", "D"]
    assert split_chapters("No separators at all", 5)[0] == "No separators at all"
    assert len(split_chapters("No separators at all", 5)) == 5


def test_request_failure_uses_fallback_story(caplog):
    session = FakeSession(error=requests.ConnectionError("offline"))
    logger = logging.getLogger("story-test")
    writer = HorrorStoryWriter(GeminiClient("key", session=session), logger=logger)

    with caplog.at_level(logging.WARNING, logger="story-test"):
        chapters = writer.generate_horror_story(photos(6))

    assert chapters[:4] == list(FALLBACK_CHAPTERS)
    assert chapters[4:] == ["The terror never ends..."] * 2
    assert "Story generation failed" in caplog.text


def test_empty_candidate_uses_fallback_story():
    session = FakeSession(make_response(candidate("   ")))
    writer = HorrorStoryWriter(GeminiClient("key", session=session))
    assert writer.generate_horror_story(photos(4)) == fallback_chapters(4)


def test_no_client_uses_fallback_story():
    assert HorrorStoryWriter(None).generate_horror_story(photos(5)) == fallback_chapters(5)
    assert HorrorStoryWriter(None).generate_horror_story([]) == []


def test_prompt_mentions_remaining_parts_only_beyond_four():
    assert "remaining parts" not in build_story_prompt(4)
    assert "remaining parts" in build_story_prompt(7)
    assert "these 7 images" in build_story_prompt(7)


def test_image_count_limits():
    with pytest.raises(ValueError):
        limit_story_images(["a", "b", "c"])
    assert limit_story_images(list("abcd")) == list("abcd")
    assert limit_story_images(list("abcdefghij")) == list("abcdefgh")


def test_caption_cleanup_and_wrapping():
    assert printable_caption("It’s here…  \U0001F47B") == "It's here..."
    assert wrap_caption("one two three four five six") == ["one two three four", "five six"]
    assert wrap_caption("") == []


def test_story_slide_is_portrait_with_caption_on_top():
    photo = blank_buffer(80, 40, (0, 0, 255))
    slide = render_story_slide(photo, "The door creaked open")

    assert slide.shape == (REEL_HEIGHT, REEL_WIDTH, 4)
    assert np.all(slide[..., 3] == 255)
    # Wide photo covers the whole canvas.
    assert tuple(slide[REEL_HEIGHT - 5, 5][:3]) == (0, 0, 255)
    caption_band = slide[30:80, 100:500]
    assert np.any((caption_band[..., 0] > 200) & (caption_band[..., 1] > 200))
    middle = slide[600:700]
    assert not np.any((middle[..., 0] > 200) & (middle[..., 1] > 200))


def test_transparent_photo_pixels_show_black():
    photo = blank_buffer(60, 120, (200, 200, 200))
    photo[..., 3] = 0
    slide = render_story_slide(photo, "")
    assert tuple(slide[REEL_HEIGHT // 2, REEL_WIDTH // 2]) == (0, 0, 0, 255)


def test_reel_timeline_gives_each_slide_equal_time():
    slides = [blank_buffer(60, 100, (index, 0, 0)) for index in range(5)]

    timeline = compose_reel(slides, image_seconds=2)

    assert [entry.kind for entry in timeline.entries] == [FrameKind.CHAPTER] * 5
    assert timeline.frame_allocations(30) == (60,) * 5
    assert timeline.total_frames(30) == 300
    surface = blank_buffer(60, 100)
    timeline.entry_for_frame(125, 30).draw(surface)
    assert surface[0, 0, 0] == 2


def test_reel_rejects_bad_duration_and_mixed_sizes():
    slides = [blank_buffer(60, 100)] * 4
    with pytest.raises(ValueError):
        compose_reel(slides, image_seconds=0)
    with pytest.raises(ValueError):
        compose_reel(slides, image_seconds=6)
    with pytest.raises(ValueError):
        compose_reel([blank_buffer(60, 100), blank_buffer(50, 100)])
    with pytest.raises(ValueError):
        compose_reel([])
