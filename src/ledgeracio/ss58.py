"""SS58 account address encoding.

An SS58 address is ``base58(prefix || account || checksum)`` where the
prefix is one byte for identifiers below 64 and two bytes for identifiers
64-16383, and the checksum is the first two bytes of
``blake2b-512(b"SS58PRE" || prefix || account)``.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Final

import base58

from .errors import InvalidAddressError
from .network import Network

__all__ = ["ACCOUNT_ID_LENGTH", "AccountId", "decode", "encode"]

ACCOUNT_ID_LENGTH: Final[int] = 32
_CHECKSUM_LENGTH: Final[int] = 2
_CHECKSUM_PREFIX: Final[bytes] = b"SS58PRE"


@dataclass(frozen=True, slots=True)
class AccountId:
    """A 32-byte on-chain account identifier."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)):
            raise InvalidAddressError("account id must be bytes")
        if len(self.raw) != ACCOUNT_ID_LENGTH:
            raise InvalidAddressError(
                f"account ids are {ACCOUNT_ID_LENGTH} bytes, not {len(self.raw)}"
            )
        object.__setattr__(self, "raw", bytes(self.raw))

    def to_ss58(self, network: Network) -> str:
        return encode(self, network)

    def hex(self) -> str:
        return self.raw.hex()


def _checksum(data: bytes) -> bytes:
    return hashlib.blake2b(_CHECKSUM_PREFIX + data, digest_size=64).digest()[
        :_CHECKSUM_LENGTH
    ]


def _encode_prefix(ident: int) -> bytes:
    if ident < 64:
        return bytes((ident,))
    first = ((ident & 0b1111_1100) >> 2) | 0b0100_0000
    second = (ident >> 8) | ((ident & 0b0000_0011) << 6)
    return bytes((first, second))


def encode(account: AccountId, network: Network) -> str:
    """Render ``account`` as an SS58 address for ``network``."""

    body = _encode_prefix(network.tag) + account.raw
    return base58.b58encode(body + _checksum(body)).decode("ascii")


def decode(text: str) -> tuple[AccountId, Network]:
    """Parse an SS58 address into its account id and network.

    Raises:
        InvalidAddressError: If the text is not valid base58, has the wrong
            length, an unusable prefix, or a bad checksum.
    """

    try:
        data = base58.b58decode(text.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as exc:
        raise InvalidAddressError("not valid base58", text=text) from exc

    if not data:
        raise InvalidAddressError("empty address", text=text)

    if data[0] < 64:
        ident, prefix_length = data[0], 1
    elif data[0] < 128:
        if len(data) < 2:
            raise InvalidAddressError("truncated two-byte prefix", text=text)
        lower = ((data[0] << 2) | (data[1] >> 6)) & 0xFF
        upper = data[1] & 0b0011_1111
        ident, prefix_length = lower | (upper << 8), 2
    else:
        raise InvalidAddressError(f"reserved prefix byte {data[0]}", text=text)

    expected_length = prefix_length + ACCOUNT_ID_LENGTH + _CHECKSUM_LENGTH
    if len(data) != expected_length:
        raise InvalidAddressError(
            f"decoded length is {len(data)} bytes, expected {expected_length}",
            text=text,
        )

    body, checksum = data[:-_CHECKSUM_LENGTH], data[-_CHECKSUM_LENGTH:]
    if _checksum(body) != checksum:
        raise InvalidAddressError("checksum mismatch", text=text)

    if ident > 0xFF:
        raise InvalidAddressError(
            f"address format {ident} does not fit in a one-byte network tag",
            text=text,
        )

    return AccountId(body[prefix_length:]), Network.from_tag(ident)
