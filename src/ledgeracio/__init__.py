"""Ledgeracio - signed validator allowlists for staking agents."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "BinaryAllowlistArtifact",
    "CanonicalAllowlist",
    "FileKeyCustody",
    "FileNonceStore",
    "InspectedAllowlist",
    "KUSAMA",
    "Network",
    "POLKADOT",
    "PublicKey",
    "SigningKeyPair",
    "canonicalize",
    "generate",
    "inspect",
    "read_public",
    "read_secret",
    "sign",
]

if TYPE_CHECKING:
    from .allowlist import CanonicalAllowlist, canonicalize
    from .artifact import BinaryAllowlistArtifact, InspectedAllowlist, inspect, sign
    from .custody import FileKeyCustody
    from .keys import PublicKey, SigningKeyPair, generate, read_public, read_secret
    from .network import KUSAMA, POLKADOT, Network
    from .nonce import FileNonceStore


def __getattr__(name: str) -> Any:
    """Lazily import submodules so the CLI starts without loading every backend."""

    module_map = {
        "BinaryAllowlistArtifact": "artifact",
        "CanonicalAllowlist": "allowlist",
        "FileKeyCustody": "custody",
        "FileNonceStore": "nonce",
        "InspectedAllowlist": "artifact",
        "KUSAMA": "network",
        "Network": "network",
        "POLKADOT": "network",
        "PublicKey": "keys",
        "SigningKeyPair": "keys",
        "canonicalize": "allowlist",
        "generate": "keys",
        "inspect": "artifact",
        "read_public": "keys",
        "read_secret": "keys",
        "sign": "artifact",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)
