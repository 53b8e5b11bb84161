"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import inspect
import os
import sys
from typing import Any

import pytest

# Ensure src/ is on sys.path for tests so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from ledgeracio.keys import SigningKeyPair  # noqa: E402
from ledgeracio.network import KUSAMA, POLKADOT  # noqa: E402
from ledgeracio.ss58 import AccountId  # noqa: E402

# Well-known development accounts (Alice and Bob).
ALICE = AccountId(
    bytes.fromhex("d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d")
)
BOB = AccountId(
    bytes.fromhex("8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48")
)
ALICE_POLKADOT = "15oF4uVJwmo4TdGW7VfQxNLavjCXviqxT9S1MgbjMNHr6Sp5"
ALICE_KUSAMA = "HNZata7iMYWmk5RvZRTiAsSDhV8366zq2YGb3tLH5Upf74F"
ALICE_GENERIC = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"

FIXED_SEED = bytes(range(32))


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring an event loop")


def pytest_pyfunc_call(pyfuncitem: Any) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        }

        event_loop = asyncio.new_event_loop()
        try:
            event_loop.run_until_complete(pyfuncitem.obj(**call_kwargs))
        finally:
            event_loop.close()
        return True
    return None


@pytest.fixture
def polkadot_keypair() -> SigningKeyPair:
    """Deterministic Polkadot key; acceptable only in tests."""

    return SigningKeyPair(FIXED_SEED, POLKADOT)


@pytest.fixture
def kusama_keypair() -> SigningKeyPair:
    return SigningKeyPair(FIXED_SEED, KUSAMA)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    """Keep LEDGERACIO_* variables and config files from leaking into tests."""

    for key in list(os.environ):
        if key.startswith("LEDGERACIO_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
