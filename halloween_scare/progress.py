"""Progress reporting helpers for frame capture loops."""

from __future__ import annotations

from datetime import datetime, timedelta


def format_duration(seconds: float) -> str:
    """Return a compact human-readable duration string."""
    total_ms = int(round(seconds * 1000))
    if total_ms <= 0:
        return "0ms"
    if total_ms < 1000:
        return f"{total_ms}ms"
    minutes, remainder_ms = divmod(total_ms, 60_000)
    if minutes:
        return f"{minutes}m{remainder_ms // 1000:02d}s"
    return f"{remainder_ms / 1000:.1f}s"


def eta_string(elapsed: float, completed: int, total: int) -> str:
    """Format an ETA string given elapsed time and frame counters."""
    if completed <= 0 or total <= 0 or completed > total or elapsed <= 0.0:
        return "ETA estimating"

    remaining = max(0.0, elapsed / (completed / total) - elapsed)
    finish_time = datetime.now() + timedelta(seconds=remaining)
    return f"ETA {format_duration(remaining)} (finish {finish_time.strftime('%H:%M:%S')})"


def progress_interval(total: int) -> int:
    """Log roughly twenty progress lines per run."""
    return max(1, total // 20)


__all__ = ["eta_string", "format_duration", "progress_interval"]
