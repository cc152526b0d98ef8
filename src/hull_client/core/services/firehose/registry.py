"""Registry of firehose batchers, one per destination."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

from loguru import logger

from hull_client.core.services.firehose.batcher import FirehoseBatcher, FirehoseHandler

if TYPE_CHECKING:
    from hull_client.core.configuration import Configuration


def batcher_key(config: Configuration) -> str:
    """Stable key of a destination, derived from organization, id and secret."""
    raw = f"{config.get('organization')}/{config.get('id')}/{config.get('secret')}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class BatcherRegistry:
    """Holds the batchers shared by every client targeting the same destination.

    Batchers are created on first use and live until ``clear()``.
    """

    def __init__(self) -> None:
        self._batchers: dict[str, FirehoseBatcher] = {}

    def get_or_create(
        self,
        config: Configuration,
        handler_factory: Callable[[], FirehoseHandler],
    ) -> FirehoseBatcher:
        key = batcher_key(config)
        batcher = self._batchers.get(key)
        if batcher is None:
            batcher = FirehoseBatcher(
                key,
                handler_factory(),
                flush_at=config.get("flush_at"),
                flush_after=config.get("flush_after"),
            )
            self._batchers[key] = batcher
            logger.debug(
                f"Created firehose batcher for {config.get('organization')} (flush_at={batcher.flush_at}, flush_after={batcher.flush_after}ms)"
            )
        return batcher

    def get(self, config: Configuration) -> FirehoseBatcher | None:
        return self._batchers.get(batcher_key(config))

    async def flush_all(self) -> None:
        """Flush every batcher and wait for delivery."""
        await asyncio.gather(*(batcher.flush() for batcher in self._batchers.values()))

    def clear(self) -> None:
        self._batchers.clear()

    def __len__(self) -> int:
        return len(self._batchers)

    def __iter__(self) -> Iterator[FirehoseBatcher]:
        return iter(list(self._batchers.values()))


_registry: BatcherRegistry | None = None


def get_batcher_registry() -> BatcherRegistry:
    """Process-wide registry used by clients built without an explicit one."""
    global _registry
    if _registry is None:
        _registry = BatcherRegistry()
    return _registry


def _reset_registry() -> None:
    """Reset the process-wide registry (for testing)."""
    global _registry
    _registry = None
