import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from halloween_scare.models import HalloweenFilter
from halloween_scare.roast import (
    FALLBACK_ROAST,
    MissingCredentialError,
    RoastRequester,
    build_roast_prompt,
    strip_data_url,
)


def make_response(payload=None, status_code=200):
    def raise_for_status():
        if status_code >= 400:
            raise requests.HTTPError(f"{status_code} Server Error")

    def json():
        if payload is None:
            raise ValueError("No JSON object could be decoded")
        return payload

    return SimpleNamespace(status_code=status_code, raise_for_status=raise_for_status, json=json)


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


def test_returns_first_candidate_text():
    session = FakeSession(make_response(candidate("  Nice fangs, Dracula.  ")))
    requester = RoastRequester("key", session=session, model="gemini-test", timeout=5)

    roast = requester.request_roast(b"\x89PNG", HalloweenFilter.VAMPIRE)

    assert roast == "Nice fangs, Dracula."
    call = session.calls[0]
    assert call.url.endswith("/models/gemini-test:generateContent")
    assert call.timeout == 5
    parts = call.json["contents"][0]["parts"]
    assert '"vampire" filter' in parts[0]["text"]
    assert parts[1]["inlineData"] == {"mimeType": "image/png", "data": "iVBORw=="}


def test_network_failure_returns_fallback():
    session = FakeSession(error=requests.ConnectionError("offline"))
    requester = RoastRequester("key", session=session)

    assert requester.request_roast(b"img", HalloweenFilter.GHOST) == FALLBACK_ROAST


def test_http_error_returns_fallback():
    session = FakeSession(make_response(candidate("ignored"), status_code=503))
    requester = RoastRequester("key", session=session)

    assert requester.request_roast(None, None) == FALLBACK_ROAST


@pytest.mark.parametrize(
    "payload",
    [
        None,
        {},
        {"candidates": []},
        {"candidates": [{"finishReason": "SAFETY"}]},
        candidate("   "),
    ],
)
def test_malformed_response_returns_fallback(payload):
    session = FakeSession(make_response(payload))
    requester = RoastRequester("key", session=session)

    assert requester.request_roast("data:image/png;base64,AAAA") == FALLBACK_ROAST


def test_missing_key_raises_at_construction():
    with pytest.raises(MissingCredentialError):
        RoastRequester(None)
    with pytest.raises(MissingCredentialError):
        RoastRequester("")


def test_text_only_request_has_no_image_part():
    session = FakeSession(make_response(candidate("Boo.")))
    RoastRequester("key", session=session).request_roast(None, None)

    parts = session.calls[0].json["contents"][0]["parts"]
    assert len(parts) == 1
    assert "filter for extra spookiness" not in parts[0]["text"]


def test_helpers():
    assert strip_data_url("data:image/jpeg;base64,QUJD") == "QUJD"
    assert strip_data_url("QUJD") == "QUJD"
    assert "skeleton" in build_roast_prompt(HalloweenFilter.SKELETON)
