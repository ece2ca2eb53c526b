"""
Gemini helpers for generating a playful roast of a filtered costume photo.
"""

from __future__ import annotations

import base64
import logging
from textwrap import dedent
from typing import Optional, Sequence, Tuple, Union

import requests

from halloween_scare.models import HalloweenFilter

LOGGER = logging.getLogger(__name__)

GEMINI_API_ROOT = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_TIMEOUT = 30.0

FALLBACK_ROAST = (
    "Your costume is so scary, even the AI is too frightened to comment! "
    "(But seriously, you look spook-tacular!)"
)


class MissingCredentialError(RuntimeError):
    """Raised when an integration is constructed without its API key."""


class GeminiError(RuntimeError):
    """Raised when the Gemini API returns an unusable response."""


def _build_session(api_key: str) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "Content-Type": "application/json",
            "User-Agent": "halloween-scare-studio",
            "x-goog-api-key": api_key,
        }
    )
    return session


def build_roast_prompt(filter_id: Optional[HalloweenFilter]) -> str:
    filter_line = (
        f'The person chose a "{filter_id.value}" filter for extra spookiness.'
        if filter_id is not None
        else ""
    )
    return dedent(
        f"""
        Look at this Halloween costume and give it a funny, playful roast!
        Be witty and creative but keep it light-hearted and fun.
        {filter_line}

        Write a short, punchy roast (2-3 sentences max) that would make people laugh.
        Make it Halloween-themed with some spooky humor. Don't be mean, just playfully sarcastic!
        """
    ).strip()


def strip_data_url(data: str) -> str:
    """Drop a ``data:<mime>;base64,`` prefix if one is present."""
    if data.startswith("data:") and "," in data:
        return data.split(",", 1)[1]
    return data


def extract_candidate_text(payload: dict) -> str:
    """Return the first candidate's first text part, or raise ``GeminiError``."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        finish_reason = None
        if isinstance(payload, dict):
            candidates = payload.get("candidates") or [{}]
            if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
                finish_reason = candidates[0].get("finishReason")
        raise GeminiError(
            f"Response missing candidate text (finishReason={finish_reason})"
        ) from exc
    if not isinstance(text, str) or not text.strip():
        raise GeminiError("Response candidate text is empty")
    return text.strip()


class GeminiClient:
    """Thin ``generateContent`` wrapper shared by the roast and quiz features."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = GEMINI_API_ROOT,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise MissingCredentialError("GEMINI_API_KEY is required for AI text generation")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or _build_session(api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate(
        self,
        prompt: str,
        *,
        image_base64: Optional[str] = None,
        mime_type: str = "image/png",
        images: Sequence[Tuple[str, str]] = (),
        generation_config: Optional[dict] = None,
    ) -> str:
        """Send ``prompt`` plus inline images and return the first candidate text.

        ``images`` holds extra ``(base64_data, mime_type)`` pairs, appended in
        order after ``image_base64``.
        """
        parts: list[dict] = [{"text": prompt}]
        if image_base64:
            parts.append({"inlineData": {"mimeType": mime_type, "data": image_base64}})
        for data, image_mime in images:
            parts.append({"inlineData": {"mimeType": image_mime, "data": data}})
        body: dict = {"contents": [{"parts": parts}]}
        if generation_config:
            body["generationConfig"] = generation_config

        response = self.session.post(self.endpoint, json=body, timeout=self.timeout)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise GeminiError(f"Gemini request failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise GeminiError("Failed to parse Gemini response as JSON") from exc
        return extract_candidate_text(payload)


class RoastRequester:
    """Fetch a Halloween roast for an image, falling back to a canned line."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = GEMINI_API_ROOT,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = GeminiClient(
            api_key,
            model=model,
            base_url=base_url,
            timeout=timeout,
            session=session,
        )
        self.logger = logger or LOGGER

    def request_roast(
        self,
        image: Union[bytes, str, None] = None,
        filter_id: Optional[HalloweenFilter] = None,
        *,
        mime_type: str = "image/png",
    ) -> str:
        """Return roast text; transport or parsing failures yield ``FALLBACK_ROAST``."""
        if isinstance(image, bytes):
            image_base64: Optional[str] = base64.b64encode(image).decode("ascii")
        elif isinstance(image, str):
            image_base64 = strip_data_url(image)
        else:
            image_base64 = None

        self.logger.info(
            "Requesting roast from %s (filter=%s)",
            self.client.model,
            filter_id.value if filter_id else "none",
        )
        try:
            text = self.client.generate(
                build_roast_prompt(filter_id),
                image_base64=image_base64,
                mime_type=mime_type,
            )
        except (requests.RequestException, GeminiError) as exc:
            self.logger.warning("Roast generation failed, using fallback: %s", exc)
            return FALLBACK_ROAST

        self.logger.info("Roast generated (%s characters)", len(text))
        return text


__all__ = [
    "FALLBACK_ROAST",
    "GeminiClient",
    "GeminiError",
    "MissingCredentialError",
    "RoastRequester",
    "build_roast_prompt",
    "extract_candidate_text",
    "strip_data_url",
]
