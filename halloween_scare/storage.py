"""SQLite-backed storage for encoded clips and their roast captions."""

from __future__ import annotations

import base64
import binascii
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "video/mp4"

SCHEMA = """
CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    video_data BLOB NOT NULL,
    content_type TEXT NOT NULL,
    filter_type TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS roasts (
    id TEXT PRIMARY KEY,
    video_id TEXT NOT NULL REFERENCES videos(id) ON DELETE CASCADE,
    roast_text TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""


class ArtifactNotFoundError(RuntimeError):
    """Raised when a stored clip id does not exist."""


@dataclass(frozen=True)
class StoredArtifact:
    id: str
    data: bytes
    content_type: str
    filter_type: str
    created_at: datetime


def _decode_payload(payload: str) -> tuple[bytes, Optional[str]]:
    """Decode base64 data, returning the bytes and any data-URL mime type."""
    text = payload.strip()
    mime_type: Optional[str] = None
    if text.startswith("data:") and "," in text:
        header, text = text.split(",", 1)
        mime_type = header[len("data:"):].split(";base64", 1)[0] or None
    try:
        data = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Video payload is not valid base64: {exc}") from exc
    return data, mime_type


class ArtifactStore:
    """Persist clips keyed by a generated id, with optional roast text."""

    def __init__(self, db_path: Union[str, Path], logger: Optional[logging.Logger] = None) -> None:
        self.db_path = Path(db_path)
        self.logger = logger or LOGGER
        self.initialize()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        self.logger.debug("Artifact store ready at %s", self.db_path)

    def save(
        self,
        video_base64: str,
        filter_type: str,
        roast_text: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """Store a base64 clip (optionally a data URL) and return its id."""
        if not video_base64 or not video_base64.strip():
            raise ValueError("Video payload is required")
        if not filter_type or not filter_type.strip():
            raise ValueError("Filter type is required")

        data, data_url_type = _decode_payload(video_base64)
        if not data:
            raise ValueError("Video payload decoded to zero bytes")

        artifact_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc).isoformat()
        resolved_type = content_type or data_url_type or DEFAULT_CONTENT_TYPE

        with self._connect() as conn:
            conn.execute(
                "INSERT INTO videos (id, video_data, content_type, filter_type, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (artifact_id, sqlite3.Binary(data), resolved_type, filter_type.strip(), created_at),
            )
            if roast_text and roast_text.strip():
                conn.execute(
                    "INSERT INTO roasts (id, video_id, roast_text, created_at) VALUES (?, ?, ?, ?)",
                    (str(uuid.uuid4()), artifact_id, roast_text.strip(), created_at),
                )

        self.logger.info(
            "Stored clip %s (%s bytes, %s, filter=%s)",
            artifact_id,
            len(data),
            resolved_type,
            filter_type,
        )
        return artifact_id

    def load(self, artifact_id: str) -> StoredArtifact:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, video_data, content_type, filter_type, created_at FROM videos WHERE id = ?",
                (artifact_id,),
            ).fetchone()
        if row is None:
            raise ArtifactNotFoundError(f"No stored clip with id {artifact_id}")
        return StoredArtifact(
            id=row[0],
            data=bytes(row[1]),
            content_type=row[2],
            filter_type=row[3],
            created_at=datetime.fromisoformat(row[4]),
        )

    def roast_for(self, artifact_id: str) -> Optional[str]:
        """Latest roast text for a clip; ``None`` when the clip has none."""
        with self._connect() as conn:
            exists = conn.execute("SELECT 1 FROM videos WHERE id = ?", (artifact_id,)).fetchone()
            if exists is None:
                raise ArtifactNotFoundError(f"No stored clip with id {artifact_id}")
            row = conn.execute(
                "SELECT roast_text FROM roasts WHERE video_id = ? ORDER BY created_at DESC LIMIT 1",
                (artifact_id,),
            ).fetchone()
        return row[0] if row else None

    def delete(self, artifact_id: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM videos WHERE id = ?", (artifact_id,))
            if cursor.rowcount == 0:
                raise ArtifactNotFoundError(f"No stored clip with id {artifact_id}")
        self.logger.info("Deleted clip %s", artifact_id)


__all__ = ["ArtifactNotFoundError", "ArtifactStore", "StoredArtifact"]
