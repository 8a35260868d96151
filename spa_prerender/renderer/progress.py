"""Progress tracking and remaining-time estimation."""
from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class RenderProgress:
    """Timing of the routes rendered so far in a session.

    Skipped routes never reach this object, so they neither count nor
    influence the average used for the estimate.
    """
    processed_count: int = 0
    start_time: float | None = None
    durations: list[float] = field(default_factory=list)
    bytes_written: int = 0

    def start(self) -> None:
        """Record the session start on the first rendered route."""
        if self.start_time is None:
            self.start_time = time.monotonic()

    def record(self, duration: float, size: int) -> None:
        self.processed_count += 1
        self.durations.append(duration)
        self.bytes_written += size

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.monotonic() - self.start_time

    @property
    def average(self) -> float | None:
        if not self.durations:
            return None
        return sum(self.durations) / len(self.durations)

    def eta(self, remaining: int) -> float | None:
        """Estimate seconds left for ``remaining`` routes, None before any data."""
        average = self.average
        if average is None:
            return None
        return average * remaining


def format_duration(seconds: float | None) -> str:
    """Format seconds as H:MM:SS, or '--:--' when unknown."""
    if seconds is None:
        return "--:--"
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def format_size(size: int) -> str:
    """Format a byte count for progress lines."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
