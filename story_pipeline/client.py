"""
Narration and render-service helpers for turning staged assets into a story video.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

import requests

from halloween_scare.roast import GeminiClient, GeminiError, MissingCredentialError

from .models import RenderJob, StoryRequest, StoryState, StoryStatus, is_video_url

LOGGER = logging.getLogger(__name__)

JSON2VIDEO_API_ROOT = "https://api.json2video.com/v2"
DEFAULT_THEME = "general, family-friendly"
SECONDS_PER_ASSET = 3
POLL_INTERVAL_SECONDS = 5.0
MAX_POLL_ATTEMPTS = 60

COMPLETED_STATUSES = {"completed", "done"}
FAILED_STATUSES = {"failed", "error"}


class StoryError(RuntimeError):
    """Raised when narration generation or the render job fails."""


def _build_session(api_key: str) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": "halloween-story-pipeline",
        }
    )
    return session


def _handle_response(response: requests.Response) -> dict:
    try:
        response.raise_for_status()
    except requests.HTTPError as exc:
        raise StoryError(f"{exc} - {response.text[:500]}") from exc

    try:
        payload = response.json()
    except ValueError as exc:
        raise StoryError("Failed to parse render service response as JSON") from exc
    if not isinstance(payload, dict):
        raise StoryError("Render service response is not a JSON object")
    return payload


def build_narration_prompt(asset_urls: Sequence[str], theme: Optional[str]) -> str:
    lines = [
        "Write a concise, cinematic narration (around 100-150 words) for a short video story.",
        "The narration should:",
        "- Create a cohesive narrative connecting the uploaded images/videos in sequence",
        "- Be engaging and suitable for text-to-speech",
        "- Match the theme provided",
        "",
        f"Theme: {theme or DEFAULT_THEME}",
        "",
        "Assets (in order):",
    ]
    for index, url in enumerate(asset_urls, start=1):
        lines.append(f"  {index}. {url.rstrip('/').rsplit('/', 1)[-1] or 'asset'}")
    lines.extend(["", "Output only the narration text, no scene headings or formatting."])
    return "\n".join(lines)


def build_render_payload(asset_urls: Sequence[str], narration: str) -> Dict[str, object]:
    """Timeline with one clip per asset plus a text-to-speech narration track."""
    clips: List[Dict[str, object]] = []
    for index, url in enumerate(asset_urls):
        clips.append(
            {
                "asset": {"type": "video" if is_video_url(url) else "image", "src": url},
                "start": index * SECONDS_PER_ASSET,
                "length": SECONDS_PER_ASSET,
            }
        )

    return {
        "timeline": {
            "tracks": [
                {"type": "video", "clips": clips},
                {
                    "type": "audio",
                    "clips": [
                        {
                            "asset": {
                                "type": "tts",
                                "provider": "elevenlabs",
                                "voice": "alloy",
                                "text": narration,
                                "language": "en",
                            },
                            "start": 0,
                        }
                    ],
                },
            ]
        },
        "output": {"resolution": "1080p", "format": "mp4"},
    }


class StoryClient:
    """Sequential narration -> render submission -> status polling."""

    def __init__(
        self,
        *,
        gemini_api_key: Optional[str],
        render_api_key: Optional[str],
        public_base_url: str = "http://localhost:5000",
        gemini_model: str = "gemini-pro",
        render_base_url: str = JSON2VIDEO_API_ROOT,
        timeout: float = 30.0,
        gemini_session: Optional[requests.Session] = None,
        render_session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.gemini_api_key = gemini_api_key
        self.render_api_key = render_api_key
        self.public_base_url = public_base_url.rstrip("/")
        self.gemini_model = gemini_model
        self.render_base_url = render_base_url.rstrip("/")
        self.timeout = timeout
        self._gemini_session = gemini_session
        self._render_session = render_session
        self._sleep = sleep
        self.logger = logger or LOGGER

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _gemini(self) -> GeminiClient:
        try:
            return GeminiClient(
                self.gemini_api_key,
                model=self.gemini_model,
                timeout=self.timeout,
                session=self._gemini_session,
            )
        except MissingCredentialError as exc:
            raise StoryError(str(exc)) from exc

    def _render(self) -> requests.Session:
        if not self.render_api_key:
            raise StoryError("JSON2VIDEO_API_KEY is required to render story videos")
        if self._render_session is None:
            self._render_session = _build_session(self.render_api_key)
        return self._render_session

    def absolute_url(self, url: str) -> str:
        if url.startswith("http"):
            return url
        return f"{self.public_base_url}/{url.lstrip('/')}"

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def generate_narration(self, asset_urls: Sequence[str], theme: Optional[str] = None) -> str:
        if not asset_urls:
            raise ValueError("asset_urls must not be empty")
        client = self._gemini()
        try:
            script = client.generate(build_narration_prompt(asset_urls, theme))
        except (requests.RequestException, GeminiError) as exc:
            raise StoryError(f"Narration generation failed: {exc}") from exc
        self.logger.info("Generated narration (%s words)", len(script.split()))
        return script

    def submit_render_job(self, asset_urls: Sequence[str], narration: str) -> RenderJob:
        session = self._render()
        payload = build_render_payload([self.absolute_url(url) for url in asset_urls], narration)
        try:
            response = session.post(f"{self.render_base_url}/render", json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StoryError(f"Render submission failed: {exc}") from exc
        data = _handle_response(response)

        job_id = data.get("id") or data.get("job_id")
        if not job_id:
            job_id = str(int(time.time() * 1000))
            self.logger.warning("Render service returned no job id; using %s", job_id)
        status_url = data.get("status_url") or f"{self.render_base_url}/render/{job_id}"
        job = RenderJob(job_id=str(job_id), status_url=status_url)
        self.logger.info("Submitted render job %s", job.job_id)
        return job

    def create_story(self, asset_urls: Sequence[str], theme: Optional[str] = None) -> StoryRequest:
        narration = self.generate_narration(asset_urls, theme)
        job = self.submit_render_job(asset_urls, narration)
        return StoryRequest(
            asset_urls=tuple(asset_urls),
            theme=theme,
            narration=narration,
            job=job,
        )

    def check_status(self, status_url: str) -> dict:
        session = self._render()
        response = session.get(status_url, timeout=self.timeout)
        return _handle_response(response)

    def poll_status(
        self,
        status_url: str,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ) -> StoryStatus:
        """Poll until the job completes, fails, or ``max_attempts`` checks elapse.

        Status checks that error out are logged and treated as "still
        rendering". A job reported as failed raises ``StoryError``.
        """
        self._render()
        last_status: Optional[str] = None
        for attempt in range(1, max_attempts + 1):
            self._sleep(interval)
            try:
                data = self.check_status(status_url)
            except (requests.RequestException, StoryError) as exc:
                self.logger.warning("Status check %s/%s failed: %s", attempt, max_attempts, exc)
                continue

            status = str(data.get("status") or "").lower()
            last_status = status or last_status
            if status in COMPLETED_STATUSES:
                output_url = data.get("output_url") or data.get("outputUrl") or data.get("url")
                if output_url:
                    self.logger.info("Story video ready after %s check(s): %s", attempt, output_url)
                    return StoryStatus(
                        state=StoryState.COMPLETED,
                        attempts=attempt,
                        output_url=output_url,
                        raw_status=status,
                    )
                self.logger.warning("Render reported %s without an output URL", status)
            elif status in FAILED_STATUSES:
                raise StoryError(str(data.get("error") or "Video rendering failed"))
            else:
                self.logger.info("Rendering... (%s/%s)", attempt, max_attempts)

        self.logger.warning(
            "Rendering is taking longer than expected; check %s later",
            status_url,
        )
        return StoryStatus(state=StoryState.TIMED_OUT, attempts=max_attempts, raw_status=last_status)


__all__ = [
    "StoryClient",
    "StoryError",
    "build_narration_prompt",
    "build_render_payload",
]
