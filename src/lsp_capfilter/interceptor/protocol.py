"""Content-Length framing used by language servers.

Message format:
    Content-Length: <N>\\r\\n
    [Other-Header: value\\r\\n ...]
    \\r\\n
    N bytes: JSON payload (UTF-8)

N counts bytes, not characters. Headers other than Content-Length are
tolerated and ignored. Header names match case-insensitively.

Unlike a socket protocol where we can ask for "exactly 4 bytes", a pipe
hands us whatever happens to be available: a chunk may end inside a
header line, inside the blank-line terminator, or halfway through a
body, and may also contain the start of the next message. FrameDecoder
therefore keeps its own buffer and only hands out a Frame once every
byte of it has arrived. Bytes it has buffered but not yet returned can
be taken back with take_pending(), which is how the pipeline switches
to raw passthrough without losing or reordering anything.
"""
from __future__ import annotations

import io
from collections.abc import Iterator
from dataclasses import dataclass, field

HEADER_TERMINATOR = b"\r\n\r\n"
CONTENT_LENGTH = "content-length"
MAX_HEADER_SIZE = 8 * 1024              # header block, terminator excluded
MAX_CONTENT_LENGTH = 64 * 1024 * 1024   # 64 MiB safety limit
DEFAULT_CHUNK_SIZE = 64 * 1024


class FramingError(ValueError):
    """The byte stream does not follow Content-Length framing."""


class TruncatedFrameError(FramingError):
    """The stream ended before a declared body was complete."""


@dataclass(frozen=True, slots=True)
class Frame:
    """One complete message: exact-length body plus the headers it came with."""
    body: bytes
    content_length: int
    headers: tuple[tuple[str, str], ...] = field(default=())

    def __post_init__(self) -> None:
        if len(self.body) != self.content_length:
            raise ValueError(
                f"Frame body is {len(self.body)} bytes, "
                f"header declared {self.content_length}"
            )

    def to_bytes(self) -> bytes:
        """Re-frame the body with a single Content-Length header."""
        return encode_frame(self.body)


def encode_frame(body: bytes) -> bytes:
    """Prefix body with its Content-Length header block."""
    return b"Content-Length: %d\r\n\r\n" % len(body) + body


def _parse_headers(block: bytes) -> tuple[int, tuple[tuple[str, str], ...]]:
    """Parse a header block (terminator stripped) -> (content_length, headers).

    Raises:
        FramingError: non-ASCII bytes, missing or malformed Content-Length
    """
    try:
        text = block.decode("ascii")
    except UnicodeDecodeError as exc:
        raise FramingError(f"Non-ASCII byte in header block: {block!r}") from exc

    headers: list[tuple[str, str]] = []
    content_length: int | None = None
    for line in text.split("\r\n"):
        name, sep, value = line.partition(":")
        if not sep:
            continue  # not a header line, ignore it like any unknown header
        name, value = name.strip(), value.strip()
        headers.append((name, value))
        if name.lower() != CONTENT_LENGTH or content_length is not None:
            continue
        # isdigit() alone accepts e.g. superscripts; the ascii decode above rules them out
        if not value.isdigit():
            raise FramingError(f"Invalid Content-Length: {value!r}")
        content_length = int(value)

    if content_length is None:
        raise FramingError(f"Header block has no Content-Length: {text!r}")
    if content_length > MAX_CONTENT_LENGTH:
        raise FramingError(
            f"Content-Length {content_length} exceeds limit {MAX_CONTENT_LENGTH}"
        )
    return content_length, tuple(headers)


class FrameDecoder:
    """Incremental decoder: feed() chunks in, pull Frames out.

    Usage:
        decoder = FrameDecoder()
        decoder.feed(chunk)
        while (frame := decoder.next_frame()) is not None:
            handle(frame)
        ...
        decoder.finish()   # at end of stream

    Not thread-safe; owned by whoever reads the stream.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        # Parsed header of the frame whose body is still arriving.
        self._pending_header: tuple[int, tuple[tuple[str, str], ...], int] | None = None

    def feed(self, data: bytes) -> None:
        self._buffer += data

    def next_frame(self) -> Frame | None:
        """Return the next complete Frame, or None if more bytes are needed.

        Raises:
            FramingError: the buffered header block is malformed
        """
        if self._pending_header is None:
            end = self._buffer.find(HEADER_TERMINATOR)
            if end < 0:
                # The terminator may straddle this chunk and the next, so only
                # complain once the block is clearly oversized.
                if len(self._buffer) > MAX_HEADER_SIZE + len(HEADER_TERMINATOR):
                    raise FramingError(
                        f"No header terminator within {MAX_HEADER_SIZE} bytes"
                    )
                return None
            if end > MAX_HEADER_SIZE:
                raise FramingError(f"Header block exceeds {MAX_HEADER_SIZE} bytes")
            length, headers = _parse_headers(bytes(self._buffer[:end]))
            self._pending_header = (length, headers, end + len(HEADER_TERMINATOR))

        length, headers, body_start = self._pending_header
        body_end = body_start + length
        if len(self._buffer) < body_end:
            return None

        body = bytes(self._buffer[body_start:body_end])
        del self._buffer[:body_end]
        self._pending_header = None
        return Frame(body=body, content_length=length, headers=headers)

    def finish(self) -> None:
        """Signal end of stream.

        A partial header block is a clean end (the peer just stopped).
        A partial body is not: the header promised bytes that never came.

        Raises:
            TruncatedFrameError: stream closed mid-body
        """
        if self._pending_header is None:
            return
        length, _, body_start = self._pending_header
        have = len(self._buffer) - body_start
        raise TruncatedFrameError(
            f"Stream closed with {length - have} of {length} body bytes missing"
        )

    def take_pending(self) -> bytes:
        """Return and clear every byte buffered but not yet returned as a frame."""
        pending = bytes(self._buffer)
        self._buffer.clear()
        self._pending_header = None
        return pending


def read_chunk(stream: io.BufferedIOBase, size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """Read whatever is available, up to size bytes. b"" means EOF.

    read1() returns as soon as the pipe has *some* data, where read(n)
    would sit waiting for all n bytes -- fatal for an interactive peer.
    """
    return stream.read1(size)


class FrameReader:
    """Lazy sequence of Frames pulled from a byte stream.

    Iterating reads chunks with read_chunk() and yields frames as they
    complete. Iteration ends when the stream closes cleanly; the caller
    may stop early (break) at any frame boundary and collect read-ahead
    bytes with remainder().

    Raises (from iteration):
        FramingError / TruncatedFrameError: see FrameDecoder
        OSError: the stream itself failed
    """

    def __init__(
        self,
        stream: io.BufferedIOBase,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._stream = stream
        self._chunk_size = chunk_size
        self._decoder = FrameDecoder()
        self._eof = False

    @property
    def eof(self) -> bool:
        """True once the underlying stream has reported end of file."""
        return self._eof

    def __iter__(self) -> Iterator[Frame]:
        while True:
            frame = self._decoder.next_frame()
            if frame is not None:
                yield frame
                continue
            if self._eof:
                self._decoder.finish()
                return
            chunk = read_chunk(self._stream, self._chunk_size)
            if not chunk:
                self._eof = True
                continue
            self._decoder.feed(chunk)

    def remainder(self) -> bytes:
        """Bytes read from the stream but not (yet) returned in a frame."""
        return self._decoder.take_pending()
