"""Network tags binding keys and allowlists to a chain."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .errors import UnknownNetworkError

__all__ = ["KUSAMA", "POLKADOT", "Network", "ensure_supported"]

_NAMED_TAGS: Final[dict[int, str]] = {0: "Polkadot", 2: "Kusama"}


@dataclass(frozen=True, slots=True)
class Network:
    """A single-byte network tag.

    The tag doubles as the SS58 address-format prefix. Tags 0 (Polkadot) and
    2 (Kusama) are named; every other byte is ``Custom(tag)``.
    """

    tag: int

    def __post_init__(self) -> None:
        if not isinstance(self.tag, int) or not 0 <= self.tag <= 0xFF:
            raise UnknownNetworkError(
                self.tag, f"network tag {self.tag!r} is not a single byte"
            )

    @classmethod
    def from_tag(cls, tag: int) -> Network:
        """Return the network for a wire byte. Never fails for 0-255."""

        return cls(tag)

    @classmethod
    def from_name(cls, name: str) -> Network:
        """Resolve a network by name, ignoring case."""

        lowered = name.strip().lower()
        for tag, display in _NAMED_TAGS.items():
            if display.lower() == lowered:
                return cls(tag)
        raise UnknownNetworkError(name)

    @property
    def is_custom(self) -> bool:
        return self.tag not in _NAMED_TAGS

    @property
    def name(self) -> str:
        return _NAMED_TAGS.get(self.tag, f"Custom({self.tag})")

    def to_byte(self) -> bytes:
        return bytes((self.tag,))

    def __str__(self) -> str:
        return self.name


POLKADOT: Final[Network] = Network(0)
KUSAMA: Final[Network] = Network(2)


def ensure_supported(network: Network, *, allow_custom: bool = False) -> Network:
    """Reject ``Custom`` networks unless the caller opted in."""

    if network.is_custom and not allow_custom:
        raise UnknownNetworkError(
            network,
            f"network {network} is not supported; only Kusama and Polkadot are "
            "accepted unless custom networks are explicitly allowed",
        )
    return network
