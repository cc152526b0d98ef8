"""Loguru helpers: per-client context, client logger and log capture."""

from __future__ import annotations

import sys
import weakref
from collections.abc import Mapping
from typing import Any, Final

from loguru import logger

from hull_client.runtime.settings import get_environment

CONTEXT_KEYS: Final = ("organization", "id", "connector_name", "subject_type", "request_id")

# Client log methods mapped onto loguru levels
LEVELS: Final = {
    "silly": "TRACE",
    "debug": "DEBUG",
    "verbose": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "error": "ERROR",
}

# id of a capture list -> [loguru handler id, loggers writing to it]
_capture_handlers: dict[int, list[int]] = {}


def configure_logging(level: str | None = None, serialize: bool = True) -> int:
    """Replace loguru's sinks with a stderr sink.

    Args:
        level: Minimum level, defaults to the ``LOG_LEVEL`` environment variable
        serialize: Emit JSON records instead of plain text

    Returns:
        The loguru handler id of the stderr sink
    """
    logger.remove()
    _capture_handlers.clear()
    return logger.add(
        sys.stderr,
        level=(level or get_environment().log_level).upper(),
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )


def build_log_context(config: Any) -> dict[str, str]:
    """Derive the log context from a ``Configuration`` or a plain mapping."""
    context = {key: config.get(key) for key in CONTEXT_KEYS if config.get(key)}

    for entity_type in ("user", "account"):
        claim = config.get(f"{entity_type}_claim")
        if isinstance(claim, str) and claim:
            context[f"{entity_type}_id"] = claim
        elif isinstance(claim, dict):
            for key, value in claim.items():
                if value:
                    context[f"{entity_type}_{key.lower()}"] = str(value)
    return context


def capture_logs(logs: list) -> int:
    """Append every client log record to ``logs``.

    The sink is installed once per list; later calls return the same handler.
    Each call must be matched by a ``release_logs``, the sink is removed with
    the last one.
    """
    key = id(logs)
    entry = _capture_handlers.get(key)
    if entry is not None:
        entry[1] += 1
        return entry[0]

    def sink(message: Any) -> None:
        record = message.record
        logs.append(
            {
                "message": record["message"],
                "level": record["extra"].get("client_level", record["level"].name.lower()),
                "context": dict(record["extra"]["context"]),
                "data": record["extra"].get("data"),
                "timestamp": record["time"].isoformat(),
            }
        )

    handler_id = logger.add(
        sink,
        level="TRACE",
        filter=lambda record: "context" in record["extra"]
        and record["extra"].get("capture_id") == key,
        format="{message}",
    )
    _capture_handlers[key] = [handler_id, 1]
    return handler_id


def release_logs(logs: list, handler_id: int | None = None) -> None:
    """Drop one user of the capture sink of ``logs``.

    With ``handler_id``, only that sink is released, so a sink installed after
    ``configure_logging`` is not released by loggers created before it.
    """
    key = id(logs)
    entry = _capture_handlers.get(key)
    if entry is None or (handler_id is not None and entry[0] != handler_id):
        return
    entry[1] -= 1
    if entry[1] <= 0:
        del _capture_handlers[key]
        logger.remove(entry[0])


class ClientLogger:
    """Logger bound to one client's context.

    Each method takes a message and an optional data mapping. A logger
    writing to ``logs`` holds the capture sink until it is closed or
    garbage collected.
    """

    def __init__(self, context: Mapping[str, str], logs: list | None = None):
        self.context = dict(context)
        self._logs = logs
        self._release: weakref.finalize | None = None
        if logs is not None:
            self._release = weakref.finalize(self, release_logs, logs, capture_logs(logs))
            self._release.atexit = False

    def close(self) -> None:
        if self._release is not None:
            self._release()

    def _emit(self, client_level: str, message: str, data: Mapping[str, Any] | None) -> None:
        extra: dict[str, Any] = {
            "context": self.context,
            "data": dict(data) if data is not None else None,
            "client_level": client_level,
        }
        if self._logs is not None:
            extra["capture_id"] = id(self._logs)
        logger.bind(**extra).opt(depth=2).log(LEVELS[client_level], message)

    def log(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._emit("info", message, data)

    def silly(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._emit("silly", message, data)

    def debug(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._emit("debug", message, data)

    def verbose(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._emit("verbose", message, data)

    def info(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._emit("info", message, data)

    def warn(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._emit("warn", message, data)

    def error(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self._emit("error", message, data)
