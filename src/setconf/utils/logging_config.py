"""Logging configuration for setconf.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing decorators and sections, fed into PerfStats

Environment Variables:
    SETCONF_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    SETCONF_LOG_FILE: Path to log file (default: ~/.setconf/setconf.log)
    SETCONF_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    SETCONF_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from setconf.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("read")
    async def read(self, feature, identity):
        ...

    # Or use context manager for sections:
    async with timed_section("apply", device_id="srx-1", feature="lldp"):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import contextmanager, asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("setconf.perf")
main_logger = logging.getLogger("setconf")


LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s"
PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers installed by setup_logging, replaced on the next call
_installed: list[tuple[logging.Logger, logging.Handler]] = []


def get_log_level(level: Optional[str] = None) -> int:
    """Resolve a level name, falling back to SETCONF_LOG_LEVEL then INFO."""
    name = (level or os.environ.get("SETCONF_LOG_LEVEL", "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def get_log_file(log_file: Optional[str] = None) -> Path:
    """Resolve the main log path, falling back to SETCONF_LOG_FILE."""
    default_path = Path.home() / ".setconf" / "setconf.log"
    return Path(os.path.expanduser(
        log_file or os.environ.get("SETCONF_LOG_FILE", str(default_path))
    ))


def _rotating(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=int(os.environ.get("SETCONF_LOG_MAX_SIZE", "10")) * 1024 * 1024,
        backupCount=int(os.environ.get("SETCONF_LOG_BACKUPS", "5")),
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> Path:
    """Configure the setconf loggers.

    Console output honours level (or SETCONF_LOG_LEVEL); the rotating file
    captures DEBUG and above. Perf records go to setconf-perf.log next to the
    main file and nowhere else. Calling it again replaces the handlers of the
    previous call.

    Returns:
        Path of the main log file
    """
    log_level = get_log_level(level)
    path = get_log_file(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    for logger, handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    main_format = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    perf_log_file = path.parent / "setconf-perf.log"
    for logger, handler in (
        (main_logger, console_handler),
        (main_logger, _rotating(path, main_format)),
        (perf_logger, _rotating(perf_log_file, logging.Formatter(PERF_FORMAT, datefmt=DATE_FORMAT))),
    ):
        logger.addHandler(handler)
        _installed.append((logger, handler))

    main_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.propagate = False

    main_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={path}")
    main_logger.debug(f"Performance logging to: {perf_log_file}")
    return path


def _report(operation: str, device_id: Optional[str], start: float,
            error: Optional[BaseException] = None, extra_str: str = "") -> None:
    elapsed = (time.perf_counter() - start) * 1000  # ms
    global_stats.record(operation, elapsed)
    status = "OK" if error is None else f"FAIL: {error}"
    msg = f"{operation:20s} | {device_id or 'N/A':15s} | {elapsed:8.2f}ms | {status}"
    if extra_str:
        msg += f" | {extra_str}"
    if error is None:
        perf_logger.info(msg)
    else:
        perf_logger.warning(msg)


def timed(operation: str, device_id: Optional[str] = None):
    """Decorator to log execution time of sync/async functions.

    Args:
        operation: Name of the operation (e.g., "read", "exists")
        device_id: Optional device identifier (can also be inferred from
            self.device_id)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            # Try to get device_id from self if not provided
            dev_id = device_id
            if dev_id is None and args and hasattr(args[0], 'device_id'):
                dev_id = args[0].device_id

            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(operation, dev_id, start, e)
                raise
            _report(operation, dev_id, start)
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            dev_id = device_id
            if dev_id is None and args and hasattr(args[0], 'device_id'):
                dev_id = args[0].device_id

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(operation, dev_id, start, e)
                raise
            _report(operation, dev_id, start)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, device_id: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Args:
        operation: Name of the operation
        device_id: Device identifier
        **extra: Additional context to log

    Usage:
        async with timed_section("apply", device_id="srx-1", feature="lldp"):
            await executor.apply(...)
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        _report(operation, device_id, start, e, extra_str)
        raise
    _report(operation, device_id, start, extra_str=extra_str)


@contextmanager
def timed_section_sync(operation: str, device_id: Optional[str] = None, **extra):
    """Sync context manager for timing code sections."""
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        _report(operation, device_id, start, e, extra_str)
        raise
    _report(operation, device_id, start, extra_str=extra_str)


class PerfStats:
    """Collect and report performance statistics.

    Usage:
        stats = PerfStats()
        stats.record("apply", 150.5)
        stats.record("read", 50.3)
        print(stats.summary())
    """

    def __init__(self):
        self._data: dict[str, list[float]] = {}

    def record(self, operation: str, duration_ms: float) -> None:
        """Record a timing measurement."""
        self._data.setdefault(operation, []).append(duration_ms)

    def count(self, operation: str) -> int:
        return len(self._data.get(operation, []))

    def summary(self) -> str:
        """Generate summary statistics."""
        lines = ["Performance Summary", "=" * 60]

        for op, times in sorted(self._data.items()):
            if not times:
                continue
            count = len(times)
            avg = sum(times) / count

            lines.append(
                f"{op:20s} | count={count:4d} | "
                f"avg={avg:8.2f}ms | min={min(times):8.2f}ms | max={max(times):8.2f}ms"
            )

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all recorded data."""
        self._data.clear()


# Global stats instance fed by timed / timed_section
global_stats = PerfStats()
