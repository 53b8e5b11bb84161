"""Ed25519 signing keys and their on-disk formats.

Secret key file (88 bytes)::

    b"Ledgeracio Secret Key" | u16le version (1) | network byte
    | 32-byte Ed25519 seed | 32-byte public key

Public key file (text)::

    Ledgeracio version 1 public key for network <Name>
    <base64 public key>

The secret seed is held in a :class:`bytearray` owned by a single
:class:`SigningKeyPair`; leaving its ``with`` block zeroes it.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import struct
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Final

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from nacl.bindings import crypto_core_ed25519_is_valid_point

from .errors import (
    BadKeyLengthError,
    InvalidFilenameError,
    InvalidKeyEncodingError,
    InvalidMagicError,
    KeyMismatchError,
    NetworkMismatchError,
    RandomSourceError,
    UnknownNetworkError,
    UnsupportedVersionError,
)
from .network import Network, ensure_supported
from .storage import FileAccess, atomic_write, read_file

__all__ = [
    "KEY_MAGIC",
    "KEY_VERSION",
    "PUBLIC_KEY_LENGTH",
    "SECRET_KEY_FILE_LENGTH",
    "SIGNATURE_LENGTH",
    "PublicKey",
    "SigningKeyPair",
    "encode_secret",
    "generate",
    "read_public",
    "read_public_file",
    "read_secret",
    "read_secret_file",
    "render_public",
    "write_key_files",
    "write_public",
    "write_secret",
]

LOGGER = logging.getLogger(__name__)

KEY_MAGIC: Final[bytes] = b"Ledgeracio Secret Key"
KEY_VERSION: Final[int] = 1
SEED_LENGTH: Final[int] = 32
PUBLIC_KEY_LENGTH: Final[int] = 32
SIGNATURE_LENGTH: Final[int] = 64
SECRET_KEY_FILE_LENGTH: Final[int] = (
    len(KEY_MAGIC) + 2 + 1 + SEED_LENGTH + PUBLIC_KEY_LENGTH
)

_VERSION_OFFSET: Final[int] = len(KEY_MAGIC)
_NETWORK_OFFSET: Final[int] = _VERSION_OFFSET + 2
_SEED_OFFSET: Final[int] = _NETWORK_OFFSET + 1
_PUBLIC_OFFSET: Final[int] = _SEED_OFFSET + SEED_LENGTH

_PUBLIC_KEY_RE: Final[re.Pattern[str]] = re.compile(
    r"Ledgeracio version ([1-9][0-9]*) public key for network ([A-Za-z]+)\n"
    r"([A-Za-z0-9/+]+={0,2})\n"
)


@dataclass(frozen=True, slots=True)
class PublicKey:
    """A validated 32-byte Ed25519 public key."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != PUBLIC_KEY_LENGTH:
            raise InvalidKeyEncodingError(
                f"Ed25519 public keys are {PUBLIC_KEY_LENGTH} bytes, not {len(self.raw)}"
            )
        object.__setattr__(self, "raw", bytes(self.raw))
        # OpenSSL loads any 32 bytes; the point itself is checked here.
        if not crypto_core_ed25519_is_valid_point(self.raw):
            raise InvalidKeyEncodingError(
                f"{self.raw.hex()} is not a valid Ed25519 public key"
            )
        self._load()

    def _load(self) -> Ed25519PublicKey:
        try:
            return Ed25519PublicKey.from_public_bytes(self.raw)
        except ValueError as exc:
            raise InvalidKeyEncodingError(f"Invalid Ed25519 public key: {exc}") from exc

    def verify(self, signature: bytes, message: bytes) -> bool:
        """Return ``True`` when ``signature`` is valid for ``message``."""

        if len(signature) != SIGNATURE_LENGTH:
            return False
        try:
            self._load().verify(signature, message)
        except InvalidSignature:
            return False
        return True

    def hex(self) -> str:
        return self.raw.hex()


class SigningKeyPair:
    """Ed25519 seed and public key bound to one network.

    Args:
        seed: 32-byte Ed25519 seed. It is copied into an internal buffer that
            :meth:`wipe` zeroes.
        network: Network the key is bound to.
        public_key: Optional stored public key. When given it must equal the
            key derived from ``seed``.
    """

    version = KEY_VERSION

    def __init__(
        self,
        seed: bytes | bytearray,
        network: Network,
        public_key: PublicKey | None = None,
    ) -> None:
        if len(seed) != SEED_LENGTH:
            raise InvalidKeyEncodingError(
                f"Ed25519 secret keys are {SEED_LENGTH} bytes, not {len(seed)}"
            )
        self._seed = bytearray(seed)
        self._wiped = False
        self.network = network
        derived = PublicKey(
            self._private_key()
            .public_key()
            .public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        )
        if public_key is not None and public_key != derived:
            self.wipe()
            raise KeyMismatchError(derived.hex(), public_key.hex())
        self.public_key = derived

    def _private_key(self) -> Ed25519PrivateKey:
        if self._wiped:
            raise ValueError("signing key has been wiped")
        try:
            return Ed25519PrivateKey.from_private_bytes(bytes(self._seed))
        except ValueError as exc:
            raise InvalidKeyEncodingError(f"Invalid Ed25519 secret key: {exc}") from exc

    def sign(self, message: bytes) -> bytes:
        """Return the deterministic 64-byte Ed25519 signature of ``message``."""

        return self._private_key().sign(message)

    def seed_bytes(self) -> bytearray:
        """Return the live seed buffer. Callers must not retain it."""

        if self._wiped:
            raise ValueError("signing key has been wiped")
        return self._seed

    def wipe(self) -> None:
        """Overwrite the seed with zeroes; the key cannot sign afterwards."""

        for index in range(len(self._seed)):
            self._seed[index] = 0
        self._wiped = True

    def __enter__(self) -> SigningKeyPair:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return (
            f"SigningKeyPair(network={self.network}, "
            f"public_key={self.public_key.hex()})"
        )


def generate(network: Network, *, allow_custom: bool = False) -> SigningKeyPair:
    """Generate a fresh key pair from the operating system CSPRNG."""

    ensure_supported(network, allow_custom=allow_custom)
    try:
        seed = bytearray(os.urandom(SEED_LENGTH))
    except (OSError, NotImplementedError) as exc:
        raise RandomSourceError(f"Operating system entropy source failed: {exc}") from exc
    try:
        keypair = SigningKeyPair(seed, network)
    finally:
        seed[:] = bytes(SEED_LENGTH)
    LOGGER.info(
        "Generated signing key",
        extra={"network": network.name, "public_key": keypair.public_key.hex()},
    )
    return keypair


def encode_secret(keypair: SigningKeyPair) -> bytearray:
    """Serialize ``keypair`` into the 88-byte secret key layout."""

    out = bytearray(KEY_MAGIC)
    out += struct.pack("<HB", KEY_VERSION, keypair.network.tag)
    out += keypair.seed_bytes()
    out += keypair.public_key.raw
    return out


def render_public(public_key: PublicKey, network: Network) -> str:
    """Render the armored public key text for a named network."""

    if network.is_custom:
        raise UnknownNetworkError(
            network, f"public key files cannot name custom network {network}"
        )
    encoded = base64.b64encode(public_key.raw).decode("ascii")
    return f"Ledgeracio version {KEY_VERSION} public key for network {network.name}\n{encoded}\n"


def _key_path(prefix: str | os.PathLike[str], suffix: str) -> Path:
    path = Path(prefix)
    if path.suffix:
        raise InvalidFilenameError(path)
    return path.with_name(path.name + suffix)


def _check_network(keypair: SigningKeyPair, network: Network) -> None:
    if keypair.network != network:
        raise NetworkMismatchError(network, keypair.network, subject="a key")


def write_secret(
    prefix: str | os.PathLike[str],
    keypair: SigningKeyPair,
    network: Network,
    *,
    access: FileAccess = FileAccess.OWNER_READ_WRITE,
) -> Path:
    """Write ``<prefix>.sec`` atomically with owner-only permissions.

    Raises:
        InvalidFilenameError: If ``prefix`` already has an extension.
        ValueError: If ``access`` would grant group or other access.
        KeyStorageError: On filesystem failure.
    """

    path = _key_path(prefix, ".sec")
    if not access.owner_only:
        raise ValueError(f"secret key files must be owner-only, not {access.name}")
    _check_network(keypair, network)
    payload = encode_secret(keypair)
    try:
        atomic_write(path, payload, access)
    finally:
        payload[:] = bytes(len(payload))
    LOGGER.info("Wrote secret key", extra={"path": str(path), "network": network.name})
    return path


def write_public(
    prefix: str | os.PathLike[str],
    keypair: SigningKeyPair,
    network: Network,
    *,
    access: FileAccess = FileAccess.WORLD_READABLE,
) -> Path:
    """Write ``<prefix>.pub`` atomically."""

    path = _key_path(prefix, ".pub")
    _check_network(keypair, network)
    text = render_public(keypair.public_key, network)
    atomic_write(path, text.encode("ascii"), access)
    LOGGER.info("Wrote public key", extra={"path": str(path), "network": network.name})
    return path


def write_key_files(
    prefix: str | os.PathLike[str], keypair: SigningKeyPair
) -> tuple[Path, Path]:
    """Write both key files for ``keypair``; returns ``(secret, public)``."""

    # Validate before touching the filesystem so neither file is written.
    _key_path(prefix, ".sec")
    render_public(keypair.public_key, keypair.network)
    public_path = write_public(prefix, keypair, keypair.network)
    try:
        secret_path = write_secret(prefix, keypair, keypair.network)
    except BaseException:
        public_path.unlink(missing_ok=True)
        raise
    return secret_path, public_path


def read_secret(data: bytes | bytearray) -> tuple[SigningKeyPair, Network]:
    """Parse and validate an 88-byte secret key file.

    Raises:
        BadKeyLengthError: If ``data`` is not exactly 88 bytes.
        InvalidMagicError: If the magic token is wrong.
        UnsupportedVersionError: If the version field is not 1.
        InvalidKeyEncodingError: If the key bytes are not a valid key.
        KeyMismatchError: If the stored public key does not match the seed.
    """

    if len(data) != SECRET_KEY_FILE_LENGTH:
        raise BadKeyLengthError(SECRET_KEY_FILE_LENGTH, len(data))
    if bytes(data[:_VERSION_OFFSET]) != KEY_MAGIC:
        raise InvalidMagicError()
    (version,) = struct.unpack_from("<H", data, _VERSION_OFFSET)
    if version != KEY_VERSION:
        raise UnsupportedVersionError(version)
    network = Network.from_tag(data[_NETWORK_OFFSET])
    public_key = PublicKey(bytes(data[_PUBLIC_OFFSET:]))
    seed = bytearray(data[_SEED_OFFSET:_PUBLIC_OFFSET])
    try:
        keypair = SigningKeyPair(seed, network, public_key)
    finally:
        seed[:] = bytes(SEED_LENGTH)
    return keypair, network


def read_public(text: str | bytes) -> tuple[PublicKey, Network]:
    """Parse an armored public key file.

    Raises:
        InvalidKeyEncodingError: If the text does not follow the grammar or the
            key does not decode to 32 valid bytes.
        UnsupportedVersionError: If the version is not 1.
        UnknownNetworkError: If the network name is not recognised.
    """

    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError as exc:
            raise InvalidKeyEncodingError("Invalid public key: not ASCII text") from exc
    match = _PUBLIC_KEY_RE.fullmatch(text)
    if match is None:
        raise InvalidKeyEncodingError("Invalid public key")
    version, name, data = match.groups()
    if version != str(KEY_VERSION):
        raise UnsupportedVersionError(version)
    network = Network.from_name(name)
    try:
        raw = base64.b64decode(data, validate=True)
    except binascii.Error as exc:
        raise InvalidKeyEncodingError(f"Invalid public key base64: {exc}") from exc
    if len(raw) != PUBLIC_KEY_LENGTH:
        raise InvalidKeyEncodingError(
            f"Public key decodes to {len(raw)} bytes, expected {PUBLIC_KEY_LENGTH}"
        )
    return PublicKey(raw), network


def read_secret_file(path: str | os.PathLike[str]) -> tuple[SigningKeyPair, Network]:
    """Read and validate a secret key file from disk."""

    buffer = bytearray(read_file(Path(path)))
    try:
        return read_secret(buffer)
    finally:
        buffer[:] = bytes(len(buffer))


def read_public_file(path: str | os.PathLike[str]) -> tuple[PublicKey, Network]:
    """Read and validate an armored public key file from disk."""

    return read_public(read_file(Path(path)))
