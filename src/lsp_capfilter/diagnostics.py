"""Logging setup and the frame trace.

Our stdout belongs to the LSP client, so every diagnostic goes to stderr
(or a log file). Records are handed to a QueueHandler and written by a
QueueListener thread: a slow or wedged stderr can delay the trace but
never the bytes flowing to the client. The queue is bounded; when it is
full new records are dropped and counted rather than held in memory.
Errors writing a record are handled by logging itself
(Handler.handleError) and never propagate.
"""
from __future__ import annotations

import logging
import logging.handlers
import queue
import sys

PACKAGE_LOGGER = "lsp_capfilter"
TRACE_LOGGER = f"{PACKAGE_LOGGER}.trace"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
MAX_QUEUED_RECORDS = 10_000

trace = logging.getLogger(TRACE_LOGGER)


class DroppingQueueHandler(logging.handlers.QueueHandler):
    """QueueHandler that discards records instead of blocking on a full queue."""

    def __init__(self, records: queue.Queue) -> None:
        super().__init__(records)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1


class _Listener(logging.handlers.QueueListener):
    def enqueue_sentinel(self) -> None:
        # Blocking put: the listener thread is still draining a full queue.
        self.queue.put(self._sentinel)


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | None = None,
    max_records: int = MAX_QUEUED_RECORDS,
) -> logging.handlers.QueueListener:
    """Route the package logger through a queue to stderr or log_file.

    Replaces handlers from any earlier call. Returns the started
    listener; call .stop() on shutdown to flush.
    """
    if log_file:
        target: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        target = logging.StreamHandler(sys.stderr)
    target.setFormatter(logging.Formatter(LOG_FORMAT))

    records: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=max_records)
    package = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package.handlers):
        package.removeHandler(handler)
    package.addHandler(DroppingQueueHandler(records))
    package.setLevel(level)
    package.propagate = False

    listener = _Listener(records, target)
    listener.start()
    return listener


def mirror(direction: str, data: bytes) -> None:
    """Copy bytes written to a peer into the trace log."""
    if not trace.isEnabledFor(logging.INFO):
        return
    trace.info(
        "%s (%d bytes):\n\t%s",
        direction,
        len(data),
        data.decode("utf-8", errors="replace"),
    )
