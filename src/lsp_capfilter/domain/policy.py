"""Filter policy -- which capability providers survive interception.

A policy is a mode plus a set of provider base names:
  - ENABLE: only the listed providers keep their advertised value
  - DISABLE: the listed providers are switched off, all others untouched

Base names are capability keys without the trailing "Provider",
e.g. "completion" for "completionProvider". Matching is case-sensitive.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, auto


class ConfigurationError(ValueError):
    """Raised when the command line cannot be turned into a session."""


class Mode(Enum):
    ENABLE = auto()
    DISABLE = auto()

    @classmethod
    def parse(cls, token: str) -> Mode:
        """Map the literal tokens "enable"/"disable" to a Mode."""
        try:
            return _MODE_TOKENS[token]
        except KeyError:
            raise ConfigurationError(
                f"Mode must be either enable or disable, not {token!r}"
            ) from None

    @property
    def token(self) -> str:
        return self.name.lower()


_MODE_TOKENS = {"enable": Mode.ENABLE, "disable": Mode.DISABLE}


@dataclass(frozen=True, slots=True)
class FilterPolicy:
    """Immutable (mode, providers) pair built once at startup."""
    mode: Mode
    providers: frozenset[str]

    @classmethod
    def from_tokens(cls, mode: str, providers: Iterable[str]) -> FilterPolicy:
        """Factory: build a policy from raw command-line tokens."""
        return cls(mode=Mode.parse(mode), providers=frozenset(providers))

    def allows(self, base_name: str) -> bool:
        """True if a provider with this base name keeps its advertised value."""
        listed = base_name in self.providers
        if self.mode is Mode.ENABLE:
            return listed
        return not listed

    def describe(self) -> str:
        names = " ".join(sorted(self.providers)) or "<none>"
        return f"{self.mode.token} {names}"
