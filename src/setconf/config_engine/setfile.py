"""Offline set file.

Instead of talking to a device, an offline apply appends its statement
batch to a local file that can later be loaded with ``load set``.
"""
import logging
import os
from pathlib import Path

from ..config.settings import DEFAULT_FILE_PERMISSION
from ..errors import ConfigError

logger = logging.getLogger(__name__)


def append_lines(path: str, lines: list[str], permission: int = DEFAULT_FILE_PERMISSION) -> Path:
    """Append lines to the set file, creating it with permission if missing."""
    target = Path(os.path.expanduser(path))
    if not target.parent.is_dir():
        raise ConfigError(f"Set file directory does not exist: {target.parent}")

    fd = os.open(target, os.O_WRONLY | os.O_APPEND | os.O_CREAT, permission)
    with os.fdopen(fd, "a", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")

    logger.info(f"Appended {len(lines)} line(s) to set file {target}")
    return target
