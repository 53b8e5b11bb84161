#!/usr/bin/env python3
"""
Allowlist Workflow Example

This example demonstrates:
- Generating a Polkadot signing key pair
- Canonicalizing a textual validator allowlist
- Signing the allowlist with a monotonic nonce
- Inspecting the signed artifact and printing its contents
"""

from __future__ import annotations

import sys
import tempfile
from pathlib import Path

from ledgeracio.allowlist import canonicalize
from ledgeracio.artifact import inspect, sign, write_artifact
from ledgeracio.keys import generate, read_public_file, write_key_files
from ledgeracio.network import POLKADOT
from ledgeracio.nonce import FileNonceStore

SAMPLE_ALLOWLIST = """\
; validators we nominate
15oF4uVJwmo4TdGW7VfQxNLavjCXviqxT9S1MgbjMNHr6Sp5

# a second validator
14E5nqKAp3oAJcmzgZhUD2RcptBeUBScxKHgJKU4HPNcKVf3
"""


def run(workdir: Path) -> list[str]:
    """Sign and inspect the sample allowlist inside ``workdir``."""

    keypair = generate(POLKADOT)
    secret_path, public_path = write_key_files(str(workdir / "operator"), keypair)
    print(f"Wrote public key to {public_path} and secret key to {secret_path}")

    allowlist = canonicalize(SAMPLE_ALLOWLIST, POLKADOT)
    print(f"Canonicalized {len(allowlist)} address(es)")

    store = FileNonceStore(workdir / "nonces.json")
    artifact = sign(allowlist, POLKADOT, 1, keypair, nonce_tracker=store)
    artifact_path = workdir / "allowlist.bin"
    write_artifact(artifact_path, artifact)
    print(f"Signed artifact is {len(artifact)} bytes, nonce {artifact.nonce}")

    public_key, _ = read_public_file(public_path)
    inspected = inspect(artifact_path.read_bytes(), POLKADOT, public_key)
    addresses = list(inspected)
    for address in addresses:
        print(f"  {address}")
    return addresses


def main() -> int:
    print("Ledgeracio Allowlist Workflow Example")
    print("=" * 40)
    with tempfile.TemporaryDirectory() as tmp:
        run(Path(tmp))
    return 0


if __name__ == "__main__":
    sys.exit(main())
