"""Tests for the CapabilityFilter.

Covers: enable/disable modes, non-capability messages, non-provider
keys, non-boolean provider values, the bare "Provider" key, and that
the input message is never mutated.
"""
from __future__ import annotations

import copy

import pytest

from lsp_capfilter.domain.message import as_bool, as_object, get_object
from lsp_capfilter.domain.policy import FilterPolicy
from lsp_capfilter.interceptor.capabilities import CapabilityFilter, provider_base_name


def _capabilities(result) -> dict:
    return result.message["result"]["capabilities"]


def test_enable_mode(enable_completion, initialize_response):
    result = CapabilityFilter(enable_completion).apply(initialize_response)
    assert result.applicable
    assert _capabilities(result) == {
        "completionProvider": True,
        "hoverProvider": False,
        "renameProvider": False,
    }
    assert sorted(result.disabled) == ["hoverProvider", "renameProvider"]


def test_disable_mode(disable_hover, initialize_response):
    result = CapabilityFilter(disable_hover).apply(initialize_response)
    assert result.applicable
    assert _capabilities(result) == {
        "completionProvider": True,
        "hoverProvider": False,
        "renameProvider": True,
    }
    assert result.disabled == ("hoverProvider",)


@pytest.mark.parametrize("message", [
    {"jsonrpc": "2.0", "method": "window/logMessage", "params": {}},
    {"jsonrpc": "2.0", "id": 3, "result": None},
    {"jsonrpc": "2.0", "id": 3, "result": [1, 2]},
    {"jsonrpc": "2.0", "id": 3, "result": {"capabilities": True}},
    {"jsonrpc": "2.0", "id": 3, "result": {"items": []}},
    [{"result": {"capabilities": {"hoverProvider": True}}}],
    "capabilities",
    42,
    None,
])
def test_not_applicable_returns_message_unchanged(disable_hover, message):
    before = copy.deepcopy(message)
    result = CapabilityFilter(disable_hover).apply(message)
    assert not result.applicable
    assert result.message is message
    assert message == before
    assert result.disabled == ()


def test_empty_capabilities_still_applicable(enable_completion):
    result = CapabilityFilter(enable_completion).apply({"result": {"capabilities": {}}})
    assert result.applicable
    assert result.disabled == ()


@pytest.mark.parametrize("policy", [
    FilterPolicy.from_tokens("enable", []),
    FilterPolicy.from_tokens("disable", ["experimental", "textDocumentSync"]),
])
def test_non_provider_keys_untouched(policy):
    message = {"result": {"capabilities": {
        "experimental": {"foo": True},
        "textDocumentSync": 2,
        "providers": True,
        "hoverprovider": True,
        "hoverProvider": True,
    }}}
    caps = _capabilities(CapabilityFilter(policy).apply(message))
    assert caps["experimental"] == {"foo": True}
    assert caps["textDocumentSync"] == 2
    assert caps["providers"] is True
    assert caps["hoverprovider"] is True


def test_never_forces_true():
    policy = FilterPolicy.from_tokens("enable", ["hover", "rename"])
    message = {"result": {"capabilities": {"hoverProvider": False}}}
    caps = _capabilities(CapabilityFilter(policy).apply(message))
    assert caps == {"hoverProvider": False}


def test_object_valued_provider_overwritten_with_false():
    policy = FilterPolicy.from_tokens("disable", ["completion"])
    message = {"result": {"capabilities": {
        "completionProvider": {"resolveProvider": True, "triggerCharacters": ["."]},
        "codeLensProvider": {"resolveProvider": False},
    }}}
    result = CapabilityFilter(policy).apply(message)
    assert _capabilities(result) == {
        "completionProvider": False,
        "codeLensProvider": {"resolveProvider": False},
    }
    assert result.disabled == ("completionProvider",)


def test_already_false_not_reported_as_disabled():
    policy = FilterPolicy.from_tokens("disable", ["hover"])
    result = CapabilityFilter(policy).apply(
        {"result": {"capabilities": {"hoverProvider": False}}}
    )
    assert result.applicable
    assert result.disabled == ()


def test_bare_provider_key_has_empty_base_name():
    assert provider_base_name("Provider") == ""
    message = {"result": {"capabilities": {"Provider": True}}}

    enabled = CapabilityFilter(FilterPolicy.from_tokens("enable", [""])).apply(message)
    assert _capabilities(enabled) == {"Provider": True}

    disabled = CapabilityFilter(FilterPolicy.from_tokens("enable", ["x"])).apply(message)
    assert _capabilities(disabled) == {"Provider": False}


def test_input_not_mutated(enable_completion, initialize_response):
    before = copy.deepcopy(initialize_response)
    result = CapabilityFilter(enable_completion).apply(initialize_response)
    assert initialize_response == before
    assert result.message is not initialize_response
    assert result.message["id"] == 0
    assert result.message["jsonrpc"] == "2.0"


def test_sibling_keys_preserved(disable_hover):
    message = {
        "jsonrpc": "2.0",
        "id": 7,
        "result": {
            "capabilities": {"hoverProvider": True},
            "serverInfo": {"name": "clangd", "version": "17"},
        },
    }
    result = CapabilityFilter(disable_hover).apply(message)
    assert result.message["result"]["serverInfo"] == {"name": "clangd", "version": "17"}
    assert result.message["id"] == 7


def test_accessors():
    assert as_object({"a": 1}) == {"a": 1}
    assert as_object([1]) is None
    assert as_bool(False) is False
    assert as_bool(0) is None
    assert get_object({"a": {"b": {}}}, "a", "b") == {}
    assert get_object({"a": {"b": 1}}, "a", "b") is None
    assert get_object({"a": 1}, "a", "b") is None
