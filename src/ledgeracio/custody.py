"""Key custody boundary for the allowlist signing key.

The custody store follows a two-state lifecycle: ``NoKeySet`` until a signing
public key is installed, then ``KeySet``. Installing a key never overwrites an
existing one. Hardware-backed stores implement :class:`KeyCustody`;
:class:`FileKeyCustody` is a local, file-backed implementation with the same
contract. Errors raised by a custody store are surfaced unchanged.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import os
from pathlib import Path
from typing import Final, Protocol

from .artifact import InspectedAllowlist, inspect
from .errors import (
    KeyAlreadySetError,
    KeyNotSetError,
    KeyStorageError,
    NetworkMismatchError,
    StaleNonceError,
)
from .keys import PublicKey, read_public
from .network import Network, ensure_supported
from .storage import FileAccess, acquire_lock, atomic_write, read_file

__all__ = [
    "CustodyState",
    "FileKeyCustody",
    "KeyCustody",
    "install_public_key",
    "install_public_key_async",
    "upload_allowlist_async",
]

LOGGER = logging.getLogger(__name__)

_KEY_FILE: Final[str] = "signing_key.bin"
_ALLOWLIST_FILE: Final[str] = "allowlist.bin"
_STATE_FILE: Final[str] = "state.json"


class CustodyState(enum.Enum):
    NO_KEY_SET = "NoKeySet"
    KEY_SET = "KeySet"


class KeyCustody(Protocol):
    """Operations a key custody store exposes to the allowlist tooling."""

    def get_public_key(self) -> bytes:
        """Return the installed 32-byte public key."""

    def set_public_key(self, public_key: bytes) -> None:
        """Install ``public_key``; fail if one is already set."""

    def upload_allowlist(self, artifact: bytes) -> None:
        """Hand a signed allowlist to the store."""


class FileKeyCustody:
    """Directory-backed key custody.

    Args:
        directory: State directory; created on first write.
        network: Network the store accepts allowlists for.
        allow_custom: Accept a ``Custom`` network.
    """

    def __init__(
        self, directory: str | Path, network: Network, *, allow_custom: bool = False
    ) -> None:
        self.directory = Path(directory)
        self.network = ensure_supported(network, allow_custom=allow_custom)
        self._allow_custom = allow_custom

    @property
    def _key_path(self) -> Path:
        return self.directory / _KEY_FILE

    @property
    def _state_path(self) -> Path:
        return self.directory / _STATE_FILE

    @property
    def state(self) -> CustodyState:
        if self._key_path.exists():
            return CustodyState.KEY_SET
        return CustodyState.NO_KEY_SET

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            os.chmod(self.directory, 0o700)
        except OSError as exc:
            raise KeyStorageError(
                f"Failed to prepare custody directory {self.directory}: {exc}"
            ) from exc

    def get_public_key(self) -> bytes:
        if self.state is not CustodyState.KEY_SET:
            raise KeyNotSetError("No allowlist signing key has been set")
        return read_file(self._key_path)

    def set_public_key(self, public_key: bytes) -> None:
        key = PublicKey(bytes(public_key))
        self._ensure_directory()
        with acquire_lock(self._key_path):
            if self.state is CustodyState.KEY_SET:
                raise KeyAlreadySetError("An allowlist signing key has already been set")
            atomic_write(self._key_path, key.raw, FileAccess.OWNER_READ_ONLY)
        LOGGER.info(
            "Installed allowlist signing key",
            extra={"public_key": key.hex(), "network": self.network.name},
        )

    def _last_nonce(self) -> int | None:
        if not self._state_path.exists():
            return None
        try:
            data = json.loads(read_file(self._state_path).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise KeyStorageError(f"Custody state {self._state_path} is corrupt") from exc
        value = data.get("last_nonce") if isinstance(data, dict) else None
        return value if isinstance(value, int) else None

    def upload_allowlist(self, artifact: bytes) -> None:
        """Verify ``artifact`` against the installed key and store it.

        Raises:
            KeyNotSetError: If no signing key has been installed.
            StaleNonceError: If the nonce does not exceed the stored one.
            LedgeracioError: Any verification failure from :func:`inspect`.
        """
        public_key = PublicKey(self.get_public_key())
        with acquire_lock(self.directory / _ALLOWLIST_FILE):
            verified: InspectedAllowlist = inspect(
                artifact, self.network, public_key, allow_custom=self._allow_custom
            )
            last = self._last_nonce()
            if last is not None and verified.nonce <= last:
                raise StaleNonceError(verified.nonce, last, public_key.hex())
            atomic_write(
                self.directory / _ALLOWLIST_FILE, bytes(artifact), FileAccess.OWNER_READ_WRITE
            )
            state = json.dumps({"last_nonce": verified.nonce, "entries": len(verified)})
            atomic_write(self._state_path, state.encode("utf-8"), FileAccess.OWNER_READ_WRITE)
        LOGGER.info(
            "Accepted allowlist upload",
            extra={"nonce": verified.nonce, "entries": len(verified)},
        )


def install_public_key(
    custody: KeyCustody,
    text: str | bytes,
    network: Network,
    *,
    allow_custom: bool = False,
) -> PublicKey:
    """Validate an armored public key and install it in ``custody``.

    The key file must parse and name ``network`` before the store is touched.
    """

    ensure_supported(network, allow_custom=allow_custom)
    public_key, key_network = read_public(text)
    if key_network != network:
        raise NetworkMismatchError(network, key_network, subject="a public key")
    custody.set_public_key(public_key.raw)
    return public_key


async def install_public_key_async(
    custody: KeyCustody,
    text: str | bytes,
    network: Network,
    *,
    allow_custom: bool = False,
) -> PublicKey:
    """Run :func:`install_public_key` without blocking the event loop."""

    return await asyncio.to_thread(
        install_public_key, custody, text, network, allow_custom=allow_custom
    )


async def upload_allowlist_async(custody: KeyCustody, artifact: bytes) -> None:
    """Run ``custody.upload_allowlist`` without blocking the event loop."""

    await asyncio.to_thread(custody.upload_allowlist, artifact)
