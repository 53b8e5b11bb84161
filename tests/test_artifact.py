"""Tests for allowlist signing and verification."""

import struct

import pytest
from conftest import ALICE, BOB, FIXED_SEED
from hypothesis import given, settings, strategies as st

from ledgeracio.allowlist import CanonicalAllowlist, canonicalize, render
from ledgeracio.artifact import (
    MIN_ARTIFACT_LENGTH,
    encode_payload,
    inspect,
    parse_artifact,
    sign,
    write_artifact,
)
from ledgeracio.errors import (
    InvalidSignatureError,
    KeyMismatchError,
    MalformedPayloadError,
    NetworkMismatchError,
    NonceOutOfRangeError,
    StaleNonceError,
    TruncatedArtifactError,
    UnknownNetworkError,
)
from ledgeracio.keys import SigningKeyPair
from ledgeracio.network import KUSAMA, POLKADOT, Network
from ledgeracio.nonce import FileNonceStore
from ledgeracio.ss58 import AccountId

KEYPAIR = SigningKeyPair(FIXED_SEED, POLKADOT)

account_ids = st.binary(min_size=32, max_size=32).map(AccountId)
allowlists = st.lists(account_ids, max_size=6).map(
    lambda accounts: CanonicalAllowlist(POLKADOT, tuple(accounts))
)
nonces = st.integers(min_value=0, max_value=2**32 - 1)


def test_payload_layout():
    allowlist = CanonicalAllowlist(KUSAMA, (ALICE, BOB))
    payload = encode_payload(allowlist, 0x01020304)
    assert payload[0] == KUSAMA.tag
    assert payload[1:5] == b"\x04\x03\x02\x01"
    assert payload[5:37] == ALICE.raw
    assert payload[37:69] == BOB.raw
    assert len(payload) == 5 + 64


def test_artifact_layout_and_signature(polkadot_keypair):
    allowlist = CanonicalAllowlist(POLKADOT, (ALICE, BOB))
    artifact = sign(allowlist, POLKADOT, 1, polkadot_keypair)
    data = artifact.to_bytes()
    assert len(data) == len(artifact) == 5 + 2 * 32 + 64
    assert data[:-64] == encode_payload(allowlist, 1)
    assert polkadot_keypair.public_key.verify(data[-64:], data[:-64])


def test_signing_is_deterministic(polkadot_keypair):
    allowlist = CanonicalAllowlist(POLKADOT, (BOB, ALICE))
    first = sign(allowlist, POLKADOT, 7, polkadot_keypair).to_bytes()
    second = sign(allowlist, POLKADOT, 7, SigningKeyPair(FIXED_SEED, POLKADOT)).to_bytes()
    assert first == second


def test_sign_checks_confirming_public_key(polkadot_keypair):
    allowlist = CanonicalAllowlist(POLKADOT, (ALICE,))
    other = SigningKeyPair(b"\x01" * 32, POLKADOT).public_key
    with pytest.raises(KeyMismatchError):
        sign(allowlist, POLKADOT, 1, polkadot_keypair, public_key=other)
    sign(allowlist, POLKADOT, 1, polkadot_keypair, public_key=polkadot_keypair.public_key)


@pytest.mark.parametrize("nonce", [-1, 2**32, True])
def test_sign_rejects_out_of_range_nonce(polkadot_keypair, nonce):
    with pytest.raises(NonceOutOfRangeError):
        sign(CanonicalAllowlist(POLKADOT, ()), POLKADOT, nonce, polkadot_keypair)


def test_sign_network_checks(polkadot_keypair, kusama_keypair):
    polkadot_list = CanonicalAllowlist(POLKADOT, (ALICE,))
    with pytest.raises(NetworkMismatchError):
        sign(polkadot_list, KUSAMA, 1, kusama_keypair)
    with pytest.raises(NetworkMismatchError):
        sign(polkadot_list, POLKADOT, 1, kusama_keypair)
    custom = Network(42)
    with pytest.raises(UnknownNetworkError):
        sign(CanonicalAllowlist(custom, ()), custom, 1, SigningKeyPair(FIXED_SEED, custom))


def test_sign_advances_injected_nonce_tracker(tmp_path, polkadot_keypair):
    store = FileNonceStore(tmp_path / "nonces.json")
    allowlist = CanonicalAllowlist(POLKADOT, (ALICE,))
    sign(allowlist, POLKADOT, 5, polkadot_keypair, nonce_tracker=store)
    assert store.last_nonce(polkadot_keypair.public_key) == 5
    with pytest.raises(StaleNonceError):
        sign(allowlist, POLKADOT, 5, polkadot_keypair, nonce_tracker=store)


def test_inspect_returns_restartable_addresses(polkadot_keypair):
    allowlist = CanonicalAllowlist(POLKADOT, (BOB, ALICE))
    data = sign(allowlist, POLKADOT, 9, polkadot_keypair).to_bytes()
    verified = inspect(data, POLKADOT, polkadot_keypair.public_key)
    assert verified.nonce == 9
    assert verified.network == POLKADOT
    expected = [BOB.to_ss58(POLKADOT), ALICE.to_ss58(POLKADOT)]
    assert list(verified) == expected
    assert list(verified) == expected
    assert verified.to_allowlist() == allowlist


def test_inspect_report(polkadot_keypair):
    data = sign(CanonicalAllowlist(POLKADOT, (ALICE,)), POLKADOT, 3, polkadot_keypair).to_bytes()
    report = inspect(data, POLKADOT, polkadot_keypair.public_key).to_report()
    assert report.network == "Polkadot"
    assert report.nonce == 3
    assert report.addresses == [ALICE.to_ss58(POLKADOT)]
    assert report.public_key == polkadot_keypair.public_key.hex()


@pytest.mark.parametrize("length", [0, 1, 5, MIN_ARTIFACT_LENGTH - 1])
def test_inspect_truncated(polkadot_keypair, length):
    with pytest.raises(TruncatedArtifactError) as excinfo:
        inspect(bytes(length), POLKADOT, polkadot_keypair.public_key)
    assert excinfo.value.actual == length


def test_inspect_network_mismatch(kusama_keypair):
    data = sign(CanonicalAllowlist(KUSAMA, (ALICE,)), KUSAMA, 1, kusama_keypair).to_bytes()
    with pytest.raises(NetworkMismatchError) as excinfo:
        inspect(data, POLKADOT, kusama_keypair.public_key)
    assert excinfo.value.actual == KUSAMA


def test_inspect_wrong_public_key(polkadot_keypair):
    data = sign(CanonicalAllowlist(POLKADOT, (ALICE,)), POLKADOT, 1, polkadot_keypair).to_bytes()
    other = SigningKeyPair(b"\x02" * 32, POLKADOT).public_key
    with pytest.raises(InvalidSignatureError) as excinfo:
        inspect(data, POLKADOT, other)
    assert ALICE.to_ss58(POLKADOT) not in str(excinfo.value)


def test_inspect_malformed_body_after_valid_signature(polkadot_keypair):
    payload = struct.pack("<BI", POLKADOT.tag, 1) + ALICE.raw + b"\x00" * 5
    data = payload + polkadot_keypair.sign(payload)
    with pytest.raises(MalformedPayloadError) as excinfo:
        inspect(data, POLKADOT, polkadot_keypair.public_key)
    assert excinfo.value.remainder == 5


def test_signature_checked_before_body_structure(polkadot_keypair):
    payload = struct.pack("<BI", POLKADOT.tag, 1) + b"\x00" * 5
    data = payload + bytes(64)
    with pytest.raises(InvalidSignatureError):
        inspect(data, POLKADOT, polkadot_keypair.public_key)


def test_parse_artifact_splits_without_verifying(polkadot_keypair):
    artifact = sign(CanonicalAllowlist(POLKADOT, (BOB, ALICE)), POLKADOT, 9, polkadot_keypair)
    forged = artifact.to_bytes()[:-64] + bytes(64)

    parsed = parse_artifact(forged)

    assert parsed.network == POLKADOT
    assert parsed.nonce == 9
    assert parsed.accounts == (BOB, ALICE)
    assert parsed.signature == bytes(64)
    assert parse_artifact(artifact.to_bytes()) == artifact


def test_parse_artifact_structural_errors():
    with pytest.raises(TruncatedArtifactError):
        parse_artifact(bytes(MIN_ARTIFACT_LENGTH - 1))
    with pytest.raises(MalformedPayloadError):
        parse_artifact(bytes(MIN_ARTIFACT_LENGTH + 3))


def test_write_artifact(tmp_path, polkadot_keypair):
    artifact = sign(CanonicalAllowlist(POLKADOT, (ALICE,)), POLKADOT, 1, polkadot_keypair)
    path = write_artifact(tmp_path / "list.bin", artifact)
    assert path.read_bytes() == artifact.to_bytes()


@settings(max_examples=50, deadline=None)
@given(allowlist=allowlists, nonce=nonces)
def test_round_trip_through_text(allowlist, nonce):
    data = sign(allowlist, POLKADOT, nonce, KEYPAIR).to_bytes()
    verified = inspect(data, POLKADOT, KEYPAIR.public_key)
    assert canonicalize(render(verified), POLKADOT) == allowlist


@settings(max_examples=100, deadline=None)
@given(allowlist=allowlists, nonce=nonces, data=st.data())
def test_any_bit_flip_after_network_byte_is_detected(allowlist, nonce, data):
    signed = bytearray(sign(allowlist, POLKADOT, nonce, KEYPAIR).to_bytes())
    bit = data.draw(st.integers(min_value=8, max_value=len(signed) * 8 - 1))
    signed[bit // 8] ^= 1 << (bit % 8)
    with pytest.raises(InvalidSignatureError):
        inspect(bytes(signed), POLKADOT, KEYPAIR.public_key)


@pytest.mark.parametrize("bit", range(8))
def test_network_byte_flip_is_rejected(bit):
    signed = bytearray(sign(CanonicalAllowlist(POLKADOT, (ALICE,)), POLKADOT, 1, KEYPAIR).to_bytes())
    signed[0] ^= 1 << bit
    with pytest.raises(NetworkMismatchError):
        inspect(bytes(signed), POLKADOT, KEYPAIR.public_key)
