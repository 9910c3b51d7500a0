"""Small formatting helpers."""

from __future__ import annotations

_DURATION_UNITS = (
    (365 * 24 * 3600, "y"),
    (30 * 24 * 3600, "M"),
    (24 * 3600, "d"),
    (3600, "h"),
    (60, "m"),
    (1, "s"),
)


def human_duration(seconds: float) -> str:
    """Format ``seconds`` as ``"1h 10s"``; sub-second durations read ``"0s"``."""

    remaining = int(seconds)
    parts = []
    for size, suffix in _DURATION_UNITS:
        if remaining >= size:
            count, remaining = divmod(remaining, size)
            parts.append(f"{count}{suffix}")
    return " ".join(parts) if parts else "0s"


__all__ = ["human_duration"]
