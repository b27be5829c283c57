"""
Phase timing utilities for fixture-builder.

The builder wraps every pipeline phase in `profile_block` so the log stream
and the final `BuildReport` record where a run spent its time. Measures:
- Wall-clock time (perf_counter)
- Resident memory growth across the phase (psutil)

Usage example:
    from fixture_builder.utils.profiler import profile_block

    with profile_block("dumping_tables") as stats:
        writer.dump_tables(tables)

    print(stats.duration_seconds, stats.rss_delta_bytes)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    start_rss_bytes: Optional[int] = field(default=None)
    end_rss_bytes: Optional[int] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def rss_delta_bytes(self) -> Optional[int]:
        if self.start_rss_bytes is None or self.end_rss_bytes is None:
            return None
        return self.end_rss_bytes - self.start_rss_bytes


@contextlib.contextmanager
def profile_block(label: str) -> Generator[ProfileStats, None, None]:
    """
    Context manager to time a block of code.

    The stats object is filled in on exit, including when the block raises,
    so callers can still log how long a failing phase ran.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    stats.start_rss_bytes = process.memory_info().rss

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stats.end_rss_bytes = process.memory_info().rss


__all__ = ["ProfileStats", "profile_block"]
