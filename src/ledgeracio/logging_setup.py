"""Logging configuration for the ledgeracio command line.

Everything goes to stderr so ``inspect`` output on stdout stays parseable.
JSON records carry the command being run in addition to any ``extra``
fields the caller attached.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from queue import Full, Queue
from typing import Iterable, override

LOGGER = logging.getLogger(__name__)

QUEUE_SIZE = 1024

_RESERVED_KEYS: frozenset[str] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Args:
        command: Name of the running command, copied into every record.
    """

    def __init__(self, *, command: str | None = None) -> None:
        super().__init__()
        self._command = command

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "command": self._command,
            "message": record.getMessage(),
            "context": _record_context(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _record_context(record: logging.LogRecord) -> Mapping[str, object]:
    return {
        key: value for key, value in record.__dict__.items() if key not in _RESERVED_KEYS
    }


class BoundedQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that counts and drops records instead of blocking."""

    def __init__(self, queue: Queue[logging.LogRecord]) -> None:
        super().__init__(queue)
        self.dropped = 0

    @override
    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.dropped += 1


def configure_structured_logging(
    logger: logging.Logger,
    *,
    command: str | None = None,
    level: int = logging.INFO,
) -> logging.handlers.QueueListener:
    """Attach a JSON stderr handler to ``logger`` behind a bounded queue.

    Returns:
        The started queue listener; stop it with :func:`shutdown_listeners`.
    """
    logger.setLevel(level)
    record_queue: Queue[logging.LogRecord] = Queue(maxsize=QUEUE_SIZE)
    logger.addHandler(BoundedQueueHandler(record_queue))

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(JsonFormatter(command=command))

    listener = logging.handlers.QueueListener(record_queue, stream_handler)
    listener.start()
    return listener


def configure_plain_logging(logger: logging.Logger, *, level: int = logging.WARNING) -> None:
    """Attach a human-readable stderr handler to ``logger``."""
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)


def shutdown_listeners(listeners: Iterable[logging.handlers.QueueListener]) -> None:
    """Flush and stop queue listeners."""
    for listener in listeners:
        try:
            listener.stop()
        except Exception as exc:  # pragma: no cover - logging cleanup
            LOGGER.warning("Failed to stop logging listener", exc_info=exc)
