"""Firehose batching."""

from .batcher import (
    BatcherState,
    FirehoseBatcher,
    build_firehose_handler,
    firehose_url,
)
from .registry import BatcherRegistry, batcher_key, get_batcher_registry

__all__ = [
    "BatcherRegistry",
    "BatcherState",
    "FirehoseBatcher",
    "batcher_key",
    "build_firehose_handler",
    "firehose_url",
    "get_batcher_registry",
]
