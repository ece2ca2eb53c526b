import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from story_pipeline.client import JSON2VIDEO_API_ROOT, StoryClient, StoryError, build_render_payload
from story_pipeline.models import StoryState
from story_pipeline.uploads import MAX_ASSETS, publish_assets


def make_response(payload, status_code=200, text=""):
    def raise_for_status():
        if status_code >= 400:
            raise requests.HTTPError(f"{status_code} Error")

    return SimpleNamespace(
        status_code=status_code,
        text=text,
        raise_for_status=raise_for_status,
        json=lambda: payload,
    )


class ScriptedSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)


def make_client(gemini=None, render=None, gemini_api_key="gem", render_api_key="render"):
    sleeps = []
    client = StoryClient(
        gemini_api_key=gemini_api_key,
        render_api_key=render_api_key,
        public_base_url="https://scare.example",
        gemini_session=gemini,
        render_session=render,
        sleep=sleeps.append,
    )
    return client, sleeps


def narration_response(text):
    return make_response({"candidates": [{"content": {"parts": [{"text": text}]}}]})


def test_generate_narration_builds_themed_prompt():
    gemini = ScriptedSession(narration_response(" Once upon a midnight dreary... "))
    client, _ = make_client(gemini=gemini)

    script = client.generate_narration(
        ["https://scare.example/uploads/1_a_castle.png", "https://scare.example/uploads/2_b_bats.mp4"]
    )

    assert script == "Once upon a midnight dreary..."
    prompt = gemini.calls[0].json["contents"][0]["parts"][0]["text"]
    assert "Theme: general, family-friendly" in prompt
    assert "  1. 1_a_castle.png" in prompt
    assert "  2. 2_b_bats.mp4" in prompt
    assert "100-150 words" in prompt


def test_generate_narration_errors():
    client, _ = make_client(gemini_api_key=None)
    with pytest.raises(StoryError):
        client.generate_narration(["https://x/a.png"])

    empty, _ = make_client(gemini=ScriptedSession(narration_response("")))
    with pytest.raises(StoryError):
        empty.generate_narration(["https://x/a.png"], theme="spooky")


def test_render_payload_shape():
    payload = build_render_payload(["https://x/a.png", "https://x/clip.MOV"], "Narration")

    clips = payload["timeline"]["tracks"][0]["clips"]
    assert [clip["asset"]["type"] for clip in clips] == ["image", "video"]
    assert [clip["start"] for clip in clips] == [0, 3]
    assert all(clip["length"] == 3 for clip in clips)
    audio = payload["timeline"]["tracks"][1]["clips"][0]["asset"]
    assert audio["type"] == "tts"
    assert audio["text"] == "Narration"
    assert payload["output"] == {"resolution": "1080p", "format": "mp4"}


def test_submit_render_job_defaults_status_url():
    render = ScriptedSession(make_response({"job_id": "job-42"}))
    client, _ = make_client(render=render)

    job = client.submit_render_job(["/uploads/a.png"], "Narration")

    assert job.job_id == "job-42"
    assert job.status_url == f"{JSON2VIDEO_API_ROOT}/render/job-42"
    clip = render.calls[0].json["timeline"]["tracks"][0]["clips"][0]
    assert clip["asset"]["src"] == "https://scare.example/uploads/a.png"


def test_submit_render_job_surfaces_http_errors():
    render = ScriptedSession(make_response({}, status_code=401, text="bad key"))
    client, _ = make_client(render=render)
    with pytest.raises(StoryError, match="bad key"):
        client.submit_render_job(["https://x/a.png"], "Narration")


def test_create_story_chains_narration_and_job():
    gemini = ScriptedSession(narration_response("A tale."))
    render = ScriptedSession(make_response({"id": "abc", "status_url": "https://status/abc"}))
    client, _ = make_client(gemini=gemini, render=render)

    story = client.create_story(["https://x/a.png"], theme="haunted house")

    assert story.narration == "A tale."
    assert story.job.job_id == "abc"
    assert story.job.status_url == "https://status/abc"
    assert story.theme == "haunted house"


def test_poll_status_tolerates_transient_failures():
    render = ScriptedSession(
        requests.ConnectionError("reset"),
        make_response({"status": "rendering"}),
        make_response({}, status_code=502),
        make_response({"status": "done", "url": "https://cdn/story.mp4"}),
    )
    client, sleeps = make_client(render=render)

    status = client.poll_status("https://status/abc", interval=5, max_attempts=10)

    assert status.state is StoryState.COMPLETED
    assert status.completed
    assert status.output_url == "https://cdn/story.mp4"
    assert status.attempts == 4
    assert sleeps == [5, 5, 5, 5]


def test_poll_status_raises_on_failed_job():
    render = ScriptedSession(make_response({"status": "failed", "error": "bad asset"}))
    client, _ = make_client(render=render)

    with pytest.raises(StoryError, match="bad asset"):
        client.poll_status("https://status/abc", interval=0)


def test_poll_status_times_out_after_max_attempts():
    render = ScriptedSession(*[make_response({"status": "queued"}) for _ in range(3)])
    client, sleeps = make_client(render=render)

    status = client.poll_status("https://status/abc", interval=1, max_attempts=3)

    assert status.state is StoryState.TIMED_OUT
    assert status.output_url is None
    assert status.raw_status == "queued"
    assert len(sleeps) == 3


def test_poll_requires_render_key():
    client, _ = make_client(render_api_key=None)
    with pytest.raises(StoryError):
        client.poll_status("https://status/abc")


def test_publish_assets_stages_sanitized_copies(tmp_path):
    source = tmp_path / "my photo!.png"
    source.write_bytes(b"png")
    uploads = tmp_path / "uploads"

    urls = publish_assets([source], uploads, "https://scare.example/")

    assert len(urls) == 1
    assert urls[0].startswith("https://scare.example/uploads/")
    assert urls[0].endswith("_my_photo_.png")
    staged = uploads / urls[0].rsplit("/", 1)[-1]
    assert staged.read_bytes() == b"png"


def test_publish_assets_limits(tmp_path):
    with pytest.raises(ValueError):
        publish_assets([], tmp_path / "uploads", "https://x")

    files = []
    for index in range(MAX_ASSETS + 1):
        path = tmp_path / f"{index}.png"
        path.write_bytes(b"x")
        files.append(path)
    with pytest.raises(ValueError):
        publish_assets(files, tmp_path / "uploads", "https://x")

    with pytest.raises(FileNotFoundError):
        publish_assets([tmp_path / "nope.png"], tmp_path / "uploads", "https://x")
