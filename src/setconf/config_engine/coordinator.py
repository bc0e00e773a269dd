"""Read coordinator.

Serializes query + decompile sequences of concurrent callers that share one
device session. Each engine owns its coordinator.
"""
import asyncio
import logging
from typing import Any, Optional

from .parser import StatementParser
from .resolver import ConfigResolver
from .schema import Block, BlockModel

logger = logging.getLogger(__name__)


class ReadCoordinator:
    """Mutex around reads that go through one resolver."""

    def __init__(self, resolver: ConfigResolver, strict: bool = False):
        self.resolver = resolver
        self.strict = strict
        self._lock = asyncio.Lock()
        self.last_unrecognized: list[str] = []

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def read(
        self,
        path: str,
        model: BlockModel,
        context: Optional[dict[str, Any]] = None
    ) -> tuple[Block, bool]:
        """
        Fetch and decompile the statements under path.

        Returns:
            Tuple of (tree, found); found is False when the device has
            nothing under path
        """
        async with self._lock:
            statements = await self.resolver.statements(path)
            parser = StatementParser(model, context, strict=self.strict)
            tree = parser.parse(statements)
            self.last_unrecognized = parser.unrecognized
            if parser.unrecognized:
                logger.warning(
                    f"{len(parser.unrecognized)} statement(s) under {path} "
                    f"not described by the model on {self.resolver.device_id}"
                )
            return tree, bool(statements)

    async def statements(self, path: str) -> list[str]:
        """Fetch the statements under path without decompiling them."""
        async with self._lock:
            return await self.resolver.statements(path)
