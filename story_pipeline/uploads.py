"""
Stage local photos and clips under public URLs for the render service.
"""

from __future__ import annotations

import logging
import re
import secrets
import shutil
import time
from pathlib import Path
from typing import Iterable, List

LOGGER = logging.getLogger(__name__)

MAX_ASSETS = 20
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def staged_name(original: str) -> str:
    """``<epoch-ms>_<random>_<sanitized name>``, unique per call."""
    timestamp = int(time.time() * 1000)
    return f"{timestamp}_{secrets.token_hex(3)}_{sanitize_filename(original)}"


def publish_assets(
    paths: Iterable[Path],
    uploads_dir: Path,
    public_base_url: str,
) -> List[str]:
    """Copy assets into ``uploads_dir`` and return their public URLs in order."""
    sources = [Path(path) for path in paths]
    if not sources:
        raise ValueError("No files provided")
    if len(sources) > MAX_ASSETS:
        raise ValueError(f"At most {MAX_ASSETS} assets can be published at once (got {len(sources)})")

    missing = [str(path) for path in sources if not path.is_file()]
    if missing:
        raise FileNotFoundError(f"Assets not found: {', '.join(missing)}")

    uploads_dir.mkdir(parents=True, exist_ok=True)
    base = public_base_url.rstrip("/")
    urls: List[str] = []
    for source in sources:
        target = uploads_dir / staged_name(source.name)
        shutil.copyfile(source, target)
        LOGGER.debug("Staged %s as %s", source, target)
        urls.append(f"{base}/uploads/{target.name}")

    LOGGER.info("Published %s asset(s) under %s/uploads", len(urls), base)
    return urls


__all__ = ["MAX_ASSETS", "publish_assets", "sanitize_filename", "staged_name"]
