"""Tests for the SS58 address codec."""

import base58
import pytest
from conftest import ALICE, ALICE_GENERIC, ALICE_KUSAMA, ALICE_POLKADOT

from ledgeracio import ss58
from ledgeracio.errors import InvalidAddressError
from ledgeracio.network import KUSAMA, POLKADOT, Network
from ledgeracio.ss58 import AccountId


def test_known_addresses_encode():
    assert ss58.encode(ALICE, POLKADOT) == ALICE_POLKADOT
    assert ss58.encode(ALICE, KUSAMA) == ALICE_KUSAMA
    assert ss58.encode(ALICE, Network(42)) == ALICE_GENERIC


def test_known_addresses_decode():
    assert ss58.decode(ALICE_POLKADOT) == (ALICE, POLKADOT)
    assert ss58.decode(ALICE_KUSAMA) == (ALICE, KUSAMA)
    assert ss58.decode(ALICE_GENERIC) == (ALICE, Network(42))


@pytest.mark.parametrize("tag", [64, 100, 255])
def test_two_byte_prefixes(tag):
    network = Network(tag)
    address = ALICE.to_ss58(network)
    assert base58.b58decode(address)[0] & 0b1100_0000 == 0b0100_0000
    assert ss58.decode(address) == (ALICE, network)


def test_bad_checksum_rejected():
    raw = bytearray(base58.b58decode(ALICE_POLKADOT))
    raw[-1] ^= 0x01
    with pytest.raises(InvalidAddressError, match="checksum"):
        ss58.decode(base58.b58encode(bytes(raw)).decode())


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not-base58-0OIl",
        ALICE_POLKADOT[:-4],
        base58.b58encode(b"\x00" + bytes(20) + b"\x00\x00").decode(),
        base58.b58encode(b"\xc0" + bytes(34)).decode(),
    ],
)
def test_malformed_addresses_rejected(text):
    with pytest.raises(InvalidAddressError):
        ss58.decode(text)


def test_account_id_length_enforced():
    with pytest.raises(InvalidAddressError, match="32 bytes"):
        AccountId(bytes(31))
    assert AccountId(bytearray(32)).raw == bytes(32)
