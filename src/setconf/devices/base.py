"""Base device session abstraction.

The engine never talks to a transport directly. Everything it needs from a
device (queries, the candidate lock, loading statements, commit, discard)
goes through a DeviceSession implementation supplied by the caller.
"""
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class DeviceSession(ABC):
    """Abstract base class for a configuration session on one device.

    Implementations raise on failure. A config_lock() that fails because
    another client holds the lock should raise DeviceBusyError so that the
    engine retries it.
    """

    def __init__(self, device_id: str):
        self.device_id = device_id

    # Queries
    @abstractmethod
    async def command(self, text: str) -> str:
        """Run an operational command and return its raw output."""
        pass

    # Candidate configuration
    @abstractmethod
    async def config_lock(self) -> None:
        """Acquire the exclusive candidate configuration lock."""
        pass

    @abstractmethod
    async def config_set(self, lines: list[str]) -> None:
        """Load set/delete lines into the candidate configuration."""
        pass

    @abstractmethod
    async def commit_conf(self, description: str) -> list[str]:
        """Commit the candidate configuration.

        Returns:
            Warning messages reported by the device
        """
        pass

    @abstractmethod
    async def config_clear(self) -> None:
        """Discard uncommitted changes and release the lock."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.device_id!r})"
