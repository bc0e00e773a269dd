"""Existence checks and statement queries against the device.

Both issue ``show configuration <path>`` and strip the XML framing of the
reply. Existence uses ``| display set`` (absolute lines), reads use
``| display set relative`` so lines come back relative to the base path.
"""
import logging
from typing import Optional

from ..devices.base import DeviceSession
from ..utils.connection import call_with_timeout, with_retry

logger = logging.getLogger(__name__)

CONFIG_OUTPUT_START = "<configuration-output>"
CONFIG_OUTPUT_END = "</configuration-output>"
SET_PREFIX = "set "

# Transient session errors that are safe to retry on a pure query
QUERY_RETRY_EXCEPTIONS = (ConnectionResetError, EOFError)


def strip_framing(output: str) -> list[str]:
    """Extract statement lines from raw ``show configuration`` output.

    Drops the framing markers, blank lines and the ``set`` prefix. A line
    that is only ``set`` is the bare path and comes back as "".
    """
    lines = []
    for item in output.splitlines():
        if CONFIG_OUTPUT_START in item:
            continue
        if CONFIG_OUTPUT_END in item:
            break
        item = item.strip()
        if not item:
            continue
        if item == SET_PREFIX.strip():
            lines.append("")
        elif item.startswith(SET_PREFIX):
            lines.append(item[len(SET_PREFIX):].strip())
        else:
            lines.append(item)
    return lines


class ConfigResolver:
    """Query a device for the existence and content of a configuration path."""

    def __init__(self, session: DeviceSession, command_timeout: Optional[float] = None):
        self.session = session
        self.command_timeout = command_timeout

    @property
    def device_id(self) -> str:
        return self.session.device_id

    async def exists(self, path: str) -> bool:
        """True if any statement exists under path."""
        output = await self._query(f"show configuration {path} | display set")
        found = bool(strip_framing(output))
        logger.debug(f"Exists check on {self.device_id}: {path} -> {found}")
        return found

    async def statements(self, path: str) -> list[str]:
        """Statement lines under path, relative to it.

        Lines come back untokenized; the decompiler tokenizes them and
        reports the ones it cannot read.
        """
        output = await self._query(f"show configuration {path} | display set relative")
        return strip_framing(output)

    @with_retry(max_attempts=3, min_wait=0.5, max_wait=4, exceptions=QUERY_RETRY_EXCEPTIONS)
    async def _query(self, command: str) -> str:
        return await call_with_timeout(
            self.session.command(command), self.command_timeout, command
        )
