"""Binary allowlist encoding, signing and verification.

Artifact layout::

    network byte | u32le nonce | N x 32-byte account id | 64-byte signature

The signature is Ed25519 over every byte that precedes it. The entry count
is implied by the artifact length.
"""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Iterator

from .allowlist import CanonicalAllowlist, render
from .errors import (
    InvalidSignatureError,
    KeyMismatchError,
    MalformedPayloadError,
    NetworkMismatchError,
    TruncatedArtifactError,
)
from .keys import SIGNATURE_LENGTH, PublicKey, SigningKeyPair
from .network import Network, ensure_supported
from .nonce import NonceTracker, check_nonce
from .schemas import InspectionReport
from .ss58 import ACCOUNT_ID_LENGTH, AccountId
from .storage import FileAccess, atomic_write

__all__ = [
    "HEADER_LENGTH",
    "MIN_ARTIFACT_LENGTH",
    "BinaryAllowlistArtifact",
    "InspectedAllowlist",
    "encode_payload",
    "inspect",
    "parse_artifact",
    "sign",
    "write_artifact",
]

LOGGER = logging.getLogger(__name__)

_HEADER: Final[struct.Struct] = struct.Struct("<BI")
HEADER_LENGTH: Final[int] = _HEADER.size
MIN_ARTIFACT_LENGTH: Final[int] = HEADER_LENGTH + SIGNATURE_LENGTH


def encode_payload(allowlist: CanonicalAllowlist, nonce: int) -> bytes:
    """Return the unsigned payload for ``allowlist`` and ``nonce``."""

    check_nonce(nonce)
    parts = [_HEADER.pack(allowlist.network.tag, nonce)]
    parts.extend(account.raw for account in allowlist.accounts)
    return b"".join(parts)


@dataclass(frozen=True, slots=True)
class BinaryAllowlistArtifact:
    """A signed allowlist."""

    network: Network
    nonce: int
    accounts: tuple[AccountId, ...]
    signature: bytes

    @property
    def payload(self) -> bytes:
        return encode_payload(CanonicalAllowlist(self.network, self.accounts), self.nonce)

    def to_bytes(self) -> bytes:
        return self.payload + self.signature

    def __len__(self) -> int:
        return MIN_ARTIFACT_LENGTH + ACCOUNT_ID_LENGTH * len(self.accounts)


def sign(
    allowlist: CanonicalAllowlist,
    network: Network,
    nonce: int,
    keypair: SigningKeyPair,
    *,
    public_key: PublicKey | None = None,
    nonce_tracker: NonceTracker | None = None,
    allow_custom: bool = False,
) -> BinaryAllowlistArtifact:
    """Compile and sign ``allowlist``.

    Args:
        allowlist: Canonical accounts to sign.
        network: Network the artifact is bound to.
        nonce: Caller-supplied nonce; must exceed any nonce previously used
            with this key. Only the 32-bit range is checked here.
        keypair: Secret key material.
        public_key: Optional expected public key, checked against ``keypair``
            before anything is signed.
        nonce_tracker: Optional monotonic counter; advanced before signing.
        allow_custom: Accept a ``Custom`` network.

    Raises:
        UnknownNetworkError: If ``network`` is custom and not allowed.
        NetworkMismatchError: If the allowlist or key belongs to another network.
        NonceOutOfRangeError: If ``nonce`` does not fit in 32 bits.
        KeyMismatchError: If ``public_key`` does not belong to ``keypair``.
        StaleNonceError: If ``nonce_tracker`` rejects the nonce.
    """

    ensure_supported(network, allow_custom=allow_custom)
    if allowlist.network != network:
        raise NetworkMismatchError(network, allowlist.network, subject="an allowlist")
    if keypair.network != network:
        raise NetworkMismatchError(network, keypair.network, subject="a key")
    check_nonce(nonce)
    if public_key is not None and public_key != keypair.public_key:
        raise KeyMismatchError(keypair.public_key.hex(), public_key.hex())
    if nonce_tracker is not None:
        nonce_tracker.advance(keypair.public_key, nonce)

    payload = encode_payload(allowlist, nonce)
    signature = keypair.sign(payload)
    LOGGER.info(
        "Signed allowlist",
        extra={
            "network": network.name,
            "nonce": nonce,
            "entries": len(allowlist),
            "public_key": keypair.public_key.hex(),
        },
    )
    return BinaryAllowlistArtifact(network, nonce, allowlist.accounts, signature)


def write_artifact(
    path: str | os.PathLike[str],
    artifact: BinaryAllowlistArtifact,
    *,
    access: FileAccess = FileAccess.WORLD_READABLE,
) -> Path:
    """Atomically write a signed artifact to ``path``."""

    return atomic_write(Path(path), artifact.to_bytes(), access)


@dataclass(frozen=True, slots=True)
class InspectedAllowlist:
    """A verified allowlist.

    Iterating yields SS58 addresses in signed order; every call to
    :func:`iter` starts again from the first entry.
    """

    network: Network
    nonce: int
    accounts: tuple[AccountId, ...]
    public_key: PublicKey

    def __iter__(self) -> Iterator[str]:
        return (account.to_ss58(self.network) for account in self.accounts)

    def __len__(self) -> int:
        return len(self.accounts)

    def to_allowlist(self) -> CanonicalAllowlist:
        return CanonicalAllowlist(self.network, self.accounts)

    def render(self) -> str:
        return render(self)

    def to_report(self) -> InspectionReport:
        return InspectionReport(
            network=self.network.name,
            network_tag=self.network.tag,
            nonce=self.nonce,
            public_key=self.public_key.hex(),
            addresses=list(self),
        )


def parse_artifact(data: bytes) -> BinaryAllowlistArtifact:
    """Split ``data`` into header, accounts and signature without verifying it.

    Callers must check the signature first; :func:`inspect` does.

    Raises:
        TruncatedArtifactError: If ``data`` cannot hold header and signature.
        MalformedPayloadError: If the body is not a whole number of ids.
    """

    data = bytes(data)
    if len(data) < MIN_ARTIFACT_LENGTH:
        raise TruncatedArtifactError(MIN_ARTIFACT_LENGTH, len(data))
    tag, nonce = _HEADER.unpack_from(data)
    body = data[HEADER_LENGTH:-SIGNATURE_LENGTH]
    if len(body) % ACCOUNT_ID_LENGTH:
        raise MalformedPayloadError(len(body), ACCOUNT_ID_LENGTH)
    accounts = tuple(
        AccountId(body[offset : offset + ACCOUNT_ID_LENGTH])
        for offset in range(0, len(body), ACCOUNT_ID_LENGTH)
    )
    return BinaryAllowlistArtifact(
        Network.from_tag(tag), nonce, accounts, data[-SIGNATURE_LENGTH:]
    )


def inspect(
    data: bytes,
    network: Network,
    public_key: PublicKey,
    *,
    allow_custom: bool = False,
) -> InspectedAllowlist:
    """Verify a signed artifact and return its accounts.

    Checks run in a fixed order and the first failure aborts: length,
    network, signature, then body alignment. Nothing from the body is parsed
    before the signature verifies.

    Raises:
        TruncatedArtifactError: If ``data`` cannot hold header and signature.
        NetworkMismatchError: If the artifact is for another network.
        InvalidSignatureError: If the signature does not verify.
        MalformedPayloadError: If the body is not a whole number of ids.
    """

    ensure_supported(network, allow_custom=allow_custom)
    data = bytes(data)
    if len(data) < MIN_ARTIFACT_LENGTH:
        raise TruncatedArtifactError(MIN_ARTIFACT_LENGTH, len(data))

    tag, nonce = _HEADER.unpack_from(data)
    if tag != network.tag:
        raise NetworkMismatchError(
            network, Network.from_tag(tag), subject="an allowlist"
        )

    payload, signature = data[:-SIGNATURE_LENGTH], data[-SIGNATURE_LENGTH:]
    if not public_key.verify(signature, payload):
        LOGGER.warning(
            "Rejected allowlist with invalid signature",
            extra={"network": network.name, "public_key": public_key.hex()},
        )
        raise InvalidSignatureError(public_key.hex())

    artifact = parse_artifact(data)
    LOGGER.debug(
        "Verified allowlist",
        extra={"network": network.name, "nonce": nonce, "entries": len(artifact.accounts)},
    )
    return InspectedAllowlist(network, nonce, artifact.accounts, public_key)
