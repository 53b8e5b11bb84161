"""Monotonic nonce tracking keyed by signing public key.

The signer itself only checks that a nonce fits in 32 bits. Ordering is the
job of an injected :class:`NonceTracker`; :class:`FileNonceStore` is a
JSON-backed implementation guarded by an advisory lock so concurrent signing
processes serialise their nonce allocation.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Final, Protocol

from .errors import KeyStorageError, NonceOutOfRangeError, StaleNonceError
from .keys import PublicKey
from .storage import FileAccess, acquire_lock, atomic_write

__all__ = ["MAX_NONCE", "FileNonceStore", "NonceTracker", "check_nonce"]

LOGGER = logging.getLogger(__name__)

MAX_NONCE: Final[int] = 2**32 - 1


def check_nonce(nonce: int) -> int:
    """Return ``nonce`` if it fits the 4-byte wire field."""

    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise NonceOutOfRangeError(nonce)
    if not 0 <= nonce <= MAX_NONCE:
        raise NonceOutOfRangeError(nonce)
    return nonce


class NonceTracker(Protocol):
    """Record of the highest nonce used per signing key."""

    def last_nonce(self, public_key: PublicKey) -> int | None:
        """Return the last nonce used with ``public_key``, if any."""

    def advance(self, public_key: PublicKey, nonce: int) -> None:
        """Record ``nonce``; raise :class:`StaleNonceError` unless it increases."""


class FileNonceStore:
    """Persist last-used nonces as ``{public_key_hex: nonce}`` JSON."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise KeyStorageError(f"Failed to read nonce store {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise KeyStorageError(f"Nonce store {self.path} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise KeyStorageError(f"Nonce store {self.path} must be a JSON object")
        return {
            str(key): int(value)
            for key, value in data.items()
            if isinstance(value, int) and not isinstance(value, bool)
        }

    def last_nonce(self, public_key: PublicKey) -> int | None:
        return self._load().get(public_key.hex())

    def advance(self, public_key: PublicKey, nonce: int) -> None:
        check_nonce(nonce)
        key = public_key.hex()
        with acquire_lock(self.path):
            records = self._load()
            last = records.get(key)
            if last is not None and nonce <= last:
                raise StaleNonceError(nonce, last, key)
            records[key] = nonce
            payload = json.dumps(records, sort_keys=True, indent=2) + "\n"
            atomic_write(self.path, payload.encode("utf-8"), FileAccess.OWNER_READ_WRITE)
        LOGGER.debug(
            "Advanced nonce", extra={"public_key": key, "nonce": nonce, "previous": last}
        )
