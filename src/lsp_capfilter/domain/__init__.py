"""Domain model for lsp-capfilter.

Re-exports the public types:
    from lsp_capfilter.domain import FilterPolicy, Mode, Message
"""
from lsp_capfilter.domain.message import (
    JsonObject,
    Message,
    as_bool,
    as_object,
    decode_message,
    encode_message,
    get_object,
)
from lsp_capfilter.domain.policy import ConfigurationError, FilterPolicy, Mode

__all__ = [
    "ConfigurationError",
    "FilterPolicy",
    "JsonObject",
    "Message",
    "Mode",
    "as_bool",
    "as_object",
    "decode_message",
    "encode_message",
    "get_object",
]
