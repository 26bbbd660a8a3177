"""Shared fixtures: policies, canned LSP messages, framed byte streams.

Streams are plain in-memory objects with read1(), so the pipeline can
be driven without a child process. ChunkedStream hands out bytes in
exactly the pieces a test asks for, to exercise split reads.
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from lsp_capfilter.domain.policy import FilterPolicy, Mode
from lsp_capfilter.interceptor.protocol import encode_frame

FAKE_SERVER = Path(__file__).parent / "support" / "fake_server.py"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def frame(message) -> bytes:
    """JSON-encode a message and wrap it in a Content-Length header."""
    return encode_frame(json.dumps(message).encode("utf-8"))


class ChunkedStream:
    """Readable stream that returns the given chunks one read1() at a time."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = list(chunks)
        self.reads = 0

    def read1(self, size: int = -1) -> bytes:
        self.reads += 1
        if not self._chunks:
            return b""
        chunk = self._chunks.pop(0)
        if 0 <= size < len(chunk):
            self._chunks.insert(0, chunk[size:])
            chunk = chunk[:size]
        return chunk


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def enable_completion() -> FilterPolicy:
    return FilterPolicy(mode=Mode.ENABLE, providers=frozenset({"completion"}))


@pytest.fixture()
def disable_hover() -> FilterPolicy:
    return FilterPolicy(mode=Mode.DISABLE, providers=frozenset({"hover"}))


@pytest.fixture()
def initialize_response() -> dict:
    return {
        "jsonrpc": "2.0",
        "id": 0,
        "result": {
            "capabilities": {
                "completionProvider": True,
                "hoverProvider": True,
                "renameProvider": True,
            },
        },
    }


@pytest.fixture()
def log_notification() -> dict:
    return {
        "jsonrpc": "2.0",
        "method": "window/logMessage",
        "params": {"type": 3, "message": "indexing ünïcode/路径"},
    }


@pytest.fixture()
def fake_server_command() -> list[str]:
    """argv prefix that runs the fake language server with this interpreter."""
    return [sys.executable, str(FAKE_SERVER)]


@pytest.fixture()
def restore_package_logger():
    """Undo configure_logging()'s changes to the package logger after a test."""
    package = logging.getLogger("lsp_capfilter")
    handlers, level, propagate = list(package.handlers), package.level, package.propagate
    yield package
    for handler in list(package.handlers):
        package.removeHandler(handler)
    for handler in handlers:
        package.addHandler(handler)
    package.setLevel(level)
    package.propagate = propagate
