"""Capability filter: given a message and a policy, switch providers off.

The message we care about is the server's answer to "initialize":
    {"jsonrpc": "2.0", "id": 0, "result": {"capabilities": {...}}}

Every capability key ending in "Provider" is a provider key; its base
name is the key minus that suffix. The policy decides, per base name,
whether the advertised value is kept or forced to false. Nothing is
ever forced to true, and keys that aren't provider keys are left alone.

Thread safety: CapabilityFilter only holds the (immutable) policy, and
apply() never mutates its input. It returns a copy of the containers on
the result.capabilities path and shares everything else.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from lsp_capfilter.domain.message import Message, as_bool, get_object
from lsp_capfilter.domain.policy import FilterPolicy

PROVIDER_SUFFIX = "Provider"


@dataclass(slots=True)
class FilterResult:
    """Outcome of filtering one message."""
    message: Message
    applicable: bool
    disabled: tuple[str, ...] = field(default=())


def provider_base_name(key: str) -> str | None:
    """Return "completion" for "completionProvider", None for non-provider keys."""
    if not key.endswith(PROVIDER_SUFFIX):
        return None
    return key[: -len(PROVIDER_SUFFIX)]


class CapabilityFilter:
    """Stateless filter bound to one policy.

    Usage:
        capability_filter = CapabilityFilter(policy)
        result = capability_filter.apply(message)
        if result.applicable:
            ...  # this was the capability-bearing response
    """

    def __init__(self, policy: FilterPolicy) -> None:
        self._policy = policy

    def apply(self, message: Message) -> FilterResult:
        """Filter result.capabilities of message according to the policy.

        Returns a FilterResult with applicable=False and the message
        unchanged when message, result or capabilities is not an object.
        Otherwise applicable=True, even if no key had to change.
        """
        capabilities = get_object(message, "result", "capabilities")
        if capabilities is None:
            return FilterResult(message=message, applicable=False)

        filtered = dict(capabilities)
        disabled: list[str] = []
        for key in capabilities:
            base = provider_base_name(key)
            if base is None or self._policy.allows(base):
                continue
            if as_bool(filtered[key]) is not False:
                disabled.append(key)
            filtered[key] = False

        # Copy the two enclosing objects so the caller's message is untouched.
        result = dict(message["result"])
        result["capabilities"] = filtered
        root = dict(message)
        root["result"] = result
        return FilterResult(message=root, applicable=True, disabled=tuple(disabled))
