"""Textual allowlist parsing and rendering.

The textual format is one SS58 address per line. Leading and trailing
whitespace is ignored; a line that is empty or whose first non-whitespace
character is ``;`` or ``#`` is a comment. Parsing is deterministic: the same
text and network always produce the same :class:`CanonicalAllowlist`.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Iterator

from . import ss58
from .errors import InvalidAddressError, NetworkMismatchError
from .network import Network, ensure_supported
from .ss58 import AccountId

__all__ = [
    "CanonicalAllowlist",
    "TextualEntry",
    "canonicalize",
    "iter_entries",
    "render",
]

LOGGER = logging.getLogger(__name__)

_COMMENT_MARKERS = (";", "#")


@dataclass(frozen=True, slots=True)
class TextualEntry:
    """A non-comment line of an allowlist source file."""

    line_number: int
    text: str


@dataclass(frozen=True, slots=True)
class CanonicalAllowlist:
    """Ordered account ids bound to a network.

    Order is the source order and duplicates are preserved.
    """

    network: Network
    accounts: tuple[AccountId, ...]

    def __len__(self) -> int:
        return len(self.accounts)

    def __iter__(self) -> Iterator[AccountId]:
        return iter(self.accounts)

    def duplicates(self) -> tuple[AccountId, ...]:
        """Return accounts listed more than once, in first-seen order."""

        counts = Counter(self.accounts)
        return tuple(account for account, count in counts.items() if count > 1)

    def addresses(self) -> list[str]:
        return [account.to_ss58(self.network) for account in self.accounts]


def iter_entries(text: str) -> Iterator[TextualEntry]:
    """Yield stripped, non-comment lines with their 1-based line numbers."""

    for line_number, line in enumerate(text.splitlines(), start=1):
        content = line.strip()
        if not content or content.startswith(_COMMENT_MARKERS):
            continue
        yield TextualEntry(line_number, content)


def canonicalize(
    text: str, expected_network: Network, *, allow_custom: bool = False
) -> CanonicalAllowlist:
    """Parse allowlist text into a :class:`CanonicalAllowlist`.

    Args:
        text: Allowlist source text.
        expected_network: Network every address must be encoded for.
        allow_custom: Accept a ``Custom`` network tag.

    Raises:
        InvalidAddressError: If a line is not a valid SS58 address.
        NetworkMismatchError: If an address is for another network.
    """

    ensure_supported(expected_network, allow_custom=allow_custom)
    accounts: list[AccountId] = []
    for entry in iter_entries(text):
        try:
            account, network = ss58.decode(entry.text)
        except InvalidAddressError as exc:
            raise InvalidAddressError(
                exc.reason, line_number=entry.line_number, text=entry.text
            ) from exc
        if network != expected_network:
            raise NetworkMismatchError(
                expected_network,
                network,
                line_number=entry.line_number,
                text=entry.text,
            )
        accounts.append(account)

    allowlist = CanonicalAllowlist(expected_network, tuple(accounts))
    duplicates = allowlist.duplicates()
    if duplicates:
        LOGGER.warning(
            "Allowlist contains duplicate addresses; they are kept as listed",
            extra={
                "network": expected_network.name,
                "duplicates": [account.to_ss58(expected_network) for account in duplicates],
            },
        )
    if not accounts:
        LOGGER.warning(
            "Allowlist is empty", extra={"network": expected_network.name}
        )
    return allowlist


def render(allowlist: CanonicalAllowlist | Iterable[str]) -> str:
    """Render addresses one per line, in order, with a trailing newline."""

    if isinstance(allowlist, CanonicalAllowlist):
        lines = allowlist.addresses()
    else:
        lines = list(allowlist)
    return "".join(f"{line}\n" for line in lines)
