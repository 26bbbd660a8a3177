"""Interception pipeline: filter the first capability response, then get out of the way.

State machine, one instance per child stdout stream:

    INTERCEPTING --(capability-bearing frame forwarded)--> PASSTHROUGH
    INTERCEPTING --(framing error)------------------------> PASSTHROUGH (degraded)
    INTERCEPTING --(unexpected error)---------------------> PASSTHROUGH (degraded)

INTERCEPTING: decode frames one at a time.
    - body can't be decoded       -> forward original body, keep looking
    - no result.capabilities      -> forward original body, keep looking
    - result.capabilities found   -> forward filtered message, switch
PASSTHROUGH: write whatever the decoder had read ahead, then copy raw
    chunks until EOF. Nothing is parsed again.

The switch happens exactly at the end of the triggering body, so the
client sees the child's bytes in the child's order. The pipeline is
the only writer to the sink.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum, auto

from lsp_capfilter.diagnostics import mirror
from lsp_capfilter.domain.message import decode_message, encode_message
from lsp_capfilter.domain.policy import FilterPolicy
from lsp_capfilter.interceptor.capabilities import CapabilityFilter
from lsp_capfilter.interceptor.protocol import (
    DEFAULT_CHUNK_SIZE,
    Frame,
    FrameReader,
    FramingError,
    encode_frame,
    read_chunk,
)

log = logging.getLogger(__name__)


class InterceptionState(Enum):
    INTERCEPTING = auto()
    PASSTHROUGH = auto()


@dataclass(slots=True)
class PipelineStats:
    """Counters for one run, mostly for logs and test assertions."""
    frames_forwarded: int = 0
    frames_filtered: int = 0
    passthrough_bytes: int = 0
    degraded: bool = False


class InterceptionPipeline:
    """Drives one child stdout stream into one client sink.

    Args:
        policy: which providers to switch off
        chunk_size: max bytes per read from the source
    """

    def __init__(
        self,
        policy: FilterPolicy,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._filter = CapabilityFilter(policy)
        self._chunk_size = chunk_size
        self._state = InterceptionState.INTERCEPTING
        self._stats = PipelineStats()
        self._reader: FrameReader | None = None

    @property
    def state(self) -> InterceptionState:
        return self._state

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    def run(self, source: io.BufferedIOBase, sink: io.BufferedIOBase) -> PipelineStats:
        """Relay source to sink until source closes or either side fails."""
        self._reader = FrameReader(source, self._chunk_size)
        try:
            self._intercept(sink)
            self._passthrough(source, sink)
        except BrokenPipeError:
            log.debug("Client output closed, stopping relay")
        except OSError:
            log.exception("I/O error relaying server output")
        except Exception:
            # Never leave the child blocked on a full stdout pipe.
            log.exception("Unexpected error intercepting, relaying the rest raw")
            self._stats.degraded = True
            self._drain(source, sink)
        return self._stats

    def _intercept(self, sink: io.BufferedIOBase) -> None:
        try:
            for frame in self._reader:
                self._handle_frame(frame, sink)
                if self._state is InterceptionState.PASSTHROUGH:
                    break
        except FramingError as exc:
            log.error("Framing error, falling back to raw passthrough: %s", exc)
            self._stats.degraded = True
        self._flush_read_ahead(sink)

    def _flush_read_ahead(self, sink: io.BufferedIOBase) -> None:
        self._state = InterceptionState.PASSTHROUGH
        # Bytes already read past the last frame boundary go out first.
        read_ahead = self._reader.remainder()
        if read_ahead:
            self._write_raw(read_ahead, sink)

    def _handle_frame(self, frame: Frame, sink: io.BufferedIOBase) -> None:
        try:
            message = decode_message(frame.body)
        except (ValueError, RecursionError) as exc:
            log.warning("Forwarding frame that could not be decoded: %s", exc)
            self._write_frame(frame.body, sink)
            return

        result = self._filter.apply(message)
        if not result.applicable:
            self._write_frame(frame.body, sink)
            return

        try:
            body = encode_message(result.message)
        except (ValueError, RecursionError) as exc:
            log.error("Cannot re-encode capabilities, forwarding them unfiltered: %s", exc)
            self._write_frame(frame.body, sink)
            self._state = InterceptionState.PASSTHROUGH
            return

        log.info(
            "Intercepted capabilities, disabled: %s",
            ", ".join(result.disabled) or "<none>",
        )
        self._write_frame(body, sink)
        self._stats.frames_filtered += 1
        self._state = InterceptionState.PASSTHROUGH

    def _write_frame(self, body: bytes, sink: io.BufferedIOBase) -> None:
        sink.write(encode_frame(body))
        sink.flush()
        self._stats.frames_forwarded += 1
        mirror("frame to client", body)

    def _write_raw(self, data: bytes, sink: io.BufferedIOBase) -> None:
        sink.write(data)
        sink.flush()
        self._stats.passthrough_bytes += len(data)
        mirror("raw to client", data)

    def _passthrough(self, source: io.BufferedIOBase, sink: io.BufferedIOBase) -> None:
        while True:
            chunk = read_chunk(source, self._chunk_size)
            if not chunk:
                log.debug("Server output closed after %d raw bytes",
                          self._stats.passthrough_bytes)
                return
            self._write_raw(chunk, sink)

    def _drain(self, source: io.BufferedIOBase, sink: io.BufferedIOBase) -> None:
        try:
            self._flush_read_ahead(sink)
            self._passthrough(source, sink)
        except OSError:
            log.debug("Relay ended while draining server output", exc_info=True)
