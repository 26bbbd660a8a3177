"""Capability interceptor: framing, filtering and the stdio relay.

The language server's first capability response is decoded, filtered
and re-framed; everything after it is relayed byte for byte.
"""
from lsp_capfilter.interceptor.capabilities import (
    CapabilityFilter,
    FilterResult,
    provider_base_name,
)
from lsp_capfilter.interceptor.pipeline import (
    InterceptionPipeline,
    InterceptionState,
    PipelineStats,
)
from lsp_capfilter.interceptor.protocol import (
    Frame,
    FrameDecoder,
    FrameReader,
    FramingError,
    TruncatedFrameError,
    encode_frame,
)
from lsp_capfilter.interceptor.session import LaunchError, ProxySession

__all__ = [
    "CapabilityFilter",
    "FilterResult",
    "provider_base_name",
    "InterceptionPipeline",
    "InterceptionState",
    "PipelineStats",
    "Frame",
    "FrameDecoder",
    "FrameReader",
    "FramingError",
    "TruncatedFrameError",
    "encode_frame",
    "LaunchError",
    "ProxySession",
]
