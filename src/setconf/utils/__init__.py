"""Utility modules for retries, timing and audit logging."""
from .connection import call_with_timeout, retry_async, with_retry
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    timed_section_sync,
    perf_logger,
    PerfStats,
    global_stats,
)

__all__ = [
    "call_with_timeout",
    "retry_async",
    "with_retry",
    "setup_logging",
    "timed",
    "timed_section",
    "timed_section_sync",
    "perf_logger",
    "PerfStats",
    "global_stats",
]
