"""Configuration dataclasses and loading helpers for the scare studio."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from halloween_scare.recorder import DEFAULT_CODEC_PREFERENCES

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_JSON2VIDEO_BASE_URL = "https://api.json2video.com/v2"


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse truthy/falsy values from multiple input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _parse_positive_int(value: Any, default: int) -> int:
    """Parse a positive integer with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_float(value: Any, default: float) -> float:
    """Parse a floating point number with fallback to default."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_color(value: Any, default: Tuple[int, int, int]) -> Tuple[int, int, int]:
    """Parse ``#rrggbb`` strings or RGB triplets into clamped RGB tuples."""
    if isinstance(value, (list, tuple)) and len(value) == 3:
        try:
            return tuple(max(0, min(255, int(channel))) for channel in value)
        except (TypeError, ValueError):
            return default

    if isinstance(value, str):
        hex_value = value.strip().lstrip("#")
        if len(hex_value) == 6:
            try:
                return (
                    int(hex_value[0:2], 16),
                    int(hex_value[2:4], 16),
                    int(hex_value[4:6], 16),
                )
            except ValueError:
                return default

    return default


def _parse_str_list(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(part).strip() for part in value if str(part).strip())
    return ()


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class RenderSettings:
    """Settings for filtering, composition and capture."""

    capture_fps: int = 30
    quality: int = 23
    max_image_dimension: int = 600
    face_detection: bool = True
    realtime_capture: bool = False
    codec_preferences: Tuple[str, ...] = DEFAULT_CODEC_PREFERENCES
    ffmpeg_path: str = "ffmpeg"
    output_dir: Path = Path("output")
    jumpscare_images: Tuple[Path, ...] = ()
    placeholder_color: Tuple[int, int, int] = (139, 0, 0)


@dataclass(frozen=True)
class ApiSettings:
    """Credentials and endpoints for the external text and render services."""

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    json2video_api_key: Optional[str] = None
    json2video_base_url: str = DEFAULT_JSON2VIDEO_BASE_URL
    public_base_url: str = "http://localhost:5000"
    request_timeout: float = 30.0


@dataclass(frozen=True)
class StorageSettings:
    database_path: Path = Path("data/halloween.db")
    uploads_dir: Path = Path("uploads")


@dataclass(frozen=True)
class Config:
    """Root configuration object."""

    render: RenderSettings = field(default_factory=RenderSettings)
    api: ApiSettings = field(default_factory=ApiSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    log_file: Optional[Path] = Path("logs/halloween_scare.log")


def _parse_render_settings(raw: Mapping[str, Any]) -> RenderSettings:
    default = RenderSettings()
    if not isinstance(raw, Mapping):
        return default
    preferences = _parse_str_list(raw.get("codec_preferences")) or default.codec_preferences
    return RenderSettings(
        capture_fps=_parse_positive_int(raw.get("capture_fps"), default.capture_fps),
        quality=_parse_positive_int(raw.get("quality"), default.quality),
        max_image_dimension=_parse_positive_int(
            raw.get("max_image_dimension"),
            default.max_image_dimension,
        ),
        face_detection=_parse_bool(raw.get("face_detection"), default.face_detection),
        realtime_capture=_parse_bool(raw.get("realtime_capture"), default.realtime_capture),
        codec_preferences=preferences,
        ffmpeg_path=str(raw.get("ffmpeg_path") or default.ffmpeg_path),
        output_dir=Path(raw.get("output_dir") or default.output_dir),
        jumpscare_images=tuple(Path(p) for p in _parse_str_list(raw.get("jumpscare_images"))),
        placeholder_color=_parse_color(raw.get("placeholder_color"), default.placeholder_color),
    )


def _parse_api_settings(raw: Mapping[str, Any]) -> ApiSettings:
    default = ApiSettings()
    if not isinstance(raw, Mapping):
        return default
    return ApiSettings(
        gemini_api_key=_optional_str(raw.get("gemini_api_key")),
        gemini_model=str(raw.get("gemini_model") or default.gemini_model),
        gemini_base_url=str(raw.get("gemini_base_url") or default.gemini_base_url),
        json2video_api_key=_optional_str(raw.get("json2video_api_key")),
        json2video_base_url=str(raw.get("json2video_base_url") or default.json2video_base_url),
        public_base_url=str(raw.get("public_base_url") or default.public_base_url),
        request_timeout=_parse_float(raw.get("request_timeout"), default.request_timeout),
    )


def _parse_storage_settings(raw: Mapping[str, Any]) -> StorageSettings:
    default = StorageSettings()
    if not isinstance(raw, Mapping):
        return default
    return StorageSettings(
        database_path=Path(raw.get("database_path") or default.database_path),
        uploads_dir=Path(raw.get("uploads_dir") or default.uploads_dir),
    )


def _load_env_config(env: Mapping[str, str]) -> Config:
    """Configuration derived from environment variables."""
    render = _parse_render_settings(
        {
            "capture_fps": env.get("CAPTURE_FPS"),
            "quality": env.get("CAPTURE_QUALITY"),
            "max_image_dimension": env.get("MAX_IMAGE_DIMENSION"),
            "face_detection": env.get("FACE_DETECTION", "true"),
            "realtime_capture": env.get("REALTIME_CAPTURE", "false"),
            "codec_preferences": env.get("CODEC_PREFERENCES"),
            "ffmpeg_path": env.get("FFMPEG_PATH"),
            "output_dir": env.get("OUTPUT_DIR"),
            "jumpscare_images": env.get("JUMPSCARE_IMAGES"),
            "placeholder_color": env.get("PLACEHOLDER_COLOR"),
        }
    )
    api = _parse_api_settings(
        {
            "gemini_api_key": env.get("GEMINI_API_KEY"),
            "gemini_model": env.get("GEMINI_MODEL"),
            "gemini_base_url": env.get("GEMINI_BASE_URL"),
            "json2video_api_key": env.get("JSON2VIDEO_API_KEY"),
            "json2video_base_url": env.get("JSON2VIDEO_BASE_URL"),
            "public_base_url": env.get("PUBLIC_BASE_URL"),
            "request_timeout": env.get("REQUEST_TIMEOUT"),
        }
    )
    storage = _parse_storage_settings(
        {
            "database_path": env.get("DATABASE_PATH"),
            "uploads_dir": env.get("UPLOADS_DIR"),
        }
    )
    log_file = env.get("LOG_FILE")
    return Config(
        render=render,
        api=api,
        storage=storage,
        log_file=Path(log_file) if log_file else Config().log_file,
    )


def load_config(config_path: Path | str, env: Mapping[str, str] | None = None) -> Config:
    """Load configuration from a JSON file or environment defaults.

    API keys missing from the file are still picked up from the environment
    so secrets can stay out of ``config.json``.
    """
    source_env = env if env is not None else os.environ
    path = Path(config_path)

    if not path.exists():
        return _load_env_config(source_env)

    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    api_raw = dict(data.get("api", {}) or {})
    api_raw.setdefault("gemini_api_key", source_env.get("GEMINI_API_KEY"))
    api_raw.setdefault("json2video_api_key", source_env.get("JSON2VIDEO_API_KEY"))

    log_file = data.get("log_file", Config().log_file)
    return Config(
        render=_parse_render_settings(data.get("render", {})),
        api=_parse_api_settings(api_raw),
        storage=_parse_storage_settings(data.get("storage", {})),
        log_file=Path(log_file) if log_file else None,
    )


__all__ = [
    "ApiSettings",
    "Config",
    "RenderSettings",
    "StorageSettings",
    "load_config",
]
