"""Firehose batcher.

Write operations (traits, track, alias) are queued and sent to the firehose
endpoint as one request once ``flush_at`` items are waiting or
``flush_after`` milliseconds have passed since the first queued item.

Each ``push`` returns a future settled when the batch holding the item has
been delivered, or failed for good. A failed batch is not merged back into
the live queue: every item of it fails with the same error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

from loguru import logger

from hull_client.runtime.settings import get_environment

if TYPE_CHECKING:
    from hull_client.core.configuration import Configuration
    from hull_client.core.services.rest.rest_api import RestApiService
    from hull_client.runtime.logging import ClientLogger

DEFAULT_FLUSH_AT: Final = 100
DEFAULT_FLUSH_AFTER: Final = 100  # milliseconds

FirehoseHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class BatcherState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


def _retrieve_exception(future: asyncio.Future[None]) -> None:
    if not future.cancelled():
        future.exception()


class FirehoseBatcher:
    """Per-destination queue of firehose writes.

    Args:
        key: Registry key of the destination
        handler: Coroutine function sending ``{"batch": [...]}``
        flush_at: Queue length that triggers an immediate flush
        flush_after: Delay in milliseconds before a timed flush
    """

    def __init__(
        self,
        key: str,
        handler: FirehoseHandler,
        flush_at: int | None = None,
        flush_after: float | None = None,
    ) -> None:
        self.key = key
        self.flush_at = int(flush_at or DEFAULT_FLUSH_AT)
        self.flush_after = float(flush_after or DEFAULT_FLUSH_AFTER)
        self._handler = handler
        self._queue: list[tuple[dict[str, Any], asyncio.Future[None]]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = asyncio.Lock()
        self._flushes: set[asyncio.Task[None]] = set()
        self._in_flight = 0

    @property
    def state(self) -> BatcherState:
        if self._in_flight:
            return BatcherState.FLUSHING
        if self._queue:
            return BatcherState.ACCUMULATING
        return BatcherState.IDLE

    def __len__(self) -> int:
        return len(self._queue)

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            if self._queue:
                logger.warning(
                    f"Firehose batcher {self.key} moved to a new event loop, dropping {len(self._queue)} queued items"
                )
            self._queue = []
            self._timer = None
            self._flushes = set()
            self._in_flight = 0
            self._lock = asyncio.Lock()
            self._loop = loop
        return loop

    def push(self, item: Mapping[str, Any]) -> asyncio.Future[None]:
        """Queue one item and return the future of its delivery."""
        loop = self._bind_loop()
        future: asyncio.Future[None] = loop.create_future()
        # Failures are logged by _send, even when nobody awaits the future
        future.add_done_callback(_retrieve_exception)
        self._queue.append((dict(item), future))

        if len(self._queue) >= self.flush_at:
            self._start_flush()
        elif self._timer is None:
            self._timer = loop.call_later(self.flush_after / 1000, self._start_flush)
        return future

    def _start_flush(self) -> asyncio.Task[None] | None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._queue:
            return None

        batch, self._queue = self._queue, []
        task = asyncio.get_running_loop().create_task(self._send(batch))
        self._flushes.add(task)
        task.add_done_callback(self._flushes.discard)
        return task

    async def _send(self, batch: list[tuple[dict[str, Any], asyncio.Future[None]]]) -> None:
        # One request in flight at a time, batches leave in the order they were cut
        async with self._lock:
            self._in_flight += 1
            try:
                await self._handler({"batch": [item for item, _ in batch]})
            except Exception as e:
                logger.error(
                    f"firehose.flush.error key={self.key} size={len(batch)} error={e}"
                )
                for _, future in batch:
                    if not future.done():
                        future.set_exception(e)
            else:
                logger.debug(f"firehose.flush.success key={self.key} size={len(batch)}")
                for _, future in batch:
                    if not future.done():
                        future.set_result(None)
            finally:
                self._in_flight -= 1

    async def flush(self) -> None:
        """Send whatever is queued and wait for every pending flush to finish."""
        self._bind_loop()
        self._start_flush()
        while self._flushes:
            await asyncio.gather(*list(self._flushes), return_exceptions=True)


def firehose_url(config: Configuration) -> str:
    return config.get("firehose_url") or f"{config.get('protocol')}://firehose.{config.get('domain') or ''}"


def build_firehose_handler(
    config: Configuration,
    rest_api: RestApiService,
    client_logger: ClientLogger | None = None,
) -> FirehoseHandler:
    """Handler posting batches to the firehose as the connector.

    Timeout and retry delay are read from the environment on every flush.
    """
    url = firehose_url(config)

    async def send(body: dict[str, Any]) -> Any:
        env = get_environment()
        return await rest_api.call(
            config,
            url,
            "post",
            body,
            {"timeout": env.batch_timeout, "retry": env.batch_retry},
            client_logger=client_logger,
        )

    return send
