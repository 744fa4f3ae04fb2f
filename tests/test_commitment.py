"""
Tests for the Taproot commit address deriver
"""
import hashlib

import pytest
from bitcoinutils.keys import PrivateKey

from ordbuilder.commitment import (SECP256K1_ORDER, TaprootCommitment, commit_address, generate_private_key,
                                   key_pair_from_hex, reveal_script)
from ordbuilder.errors import CommitmentError, InvalidPrivateKey
from ordbuilder.inscription import Inscription
from tests.utility import key, taproot_address

KEY_ONE = "00" * 31 + "01"


def text_inscription(body=b"hello"):
    return Inscription(content_type="text/plain;charset=utf-8", body=body)


@pytest.mark.parametrize("hex_key", [
    "ab" * 31,
    "ab" * 33,
    "zz" * 32,
    "00" * 32,
    f"{SECP256K1_ORDER:064x}",
    f"{SECP256K1_ORDER + 1:064x}",
])
def test_key_pair_rejects_invalid_keys(hex_key):
    with pytest.raises(InvalidPrivateKey):
        key_pair_from_hex(hex_key)


def test_invalid_private_key_is_commitment_error():
    assert issubclass(InvalidPrivateKey, CommitmentError)


def test_key_pair_from_hex():
    restored = key_pair_from_hex(KEY_ONE)
    expected = PrivateKey(secret_exponent=1)
    assert restored.get_public_key().to_hex() == expected.get_public_key().to_hex()

    upper = key_pair_from_hex(f"{SECP256K1_ORDER - 1:064X}")
    assert upper.to_bytes().hex() == f"{SECP256K1_ORDER - 1:064x}"


def test_generate_private_key():
    generated = generate_private_key()
    assert len(generated) == 64
    assert key_pair_from_hex(generated).to_bytes().hex() == generated


def test_reveal_script_layout():
    private_key = key(7)
    script = reveal_script(private_key, [text_inscription()])
    xonly = private_key.get_public_key().to_x_only_hex()

    assert script.to_hex().startswith("20" + xonly + "ac" + "0063" + "036f7264")
    assert script.to_hex().endswith("68")


def test_reveal_script_without_inscriptions():
    private_key = key(7)
    script = reveal_script(private_key, [])
    assert script.to_hex() == "20" + private_key.get_public_key().to_x_only_hex() + "ac"


def test_derive_commit_address():
    commitment = TaprootCommitment.derive(key(7), [text_inscription()])
    address = commitment.address_string()

    assert address.startswith("tb1p")
    assert len(address) == len(taproot_address(7).to_string())
    assert address != taproot_address(7).to_string()
    assert len(commitment.output_key) == 64


def test_derive_is_deterministic():
    first = TaprootCommitment.derive(key(7), [text_inscription()])
    second = TaprootCommitment.derive(key(7).get_public_key(), [text_inscription()])
    assert first.address_string() == second.address_string()
    assert first.output_key == second.output_key


def test_different_scripts_commit_to_different_addresses():
    hello = TaprootCommitment.derive(key(7), [text_inscription(b"hello")])
    world = TaprootCommitment.derive(key(7), [text_inscription(b"world")])
    other_key = TaprootCommitment.derive(key(8), [text_inscription(b"hello")])

    assert len({hello.address_string(), world.address_string(), other_key.address_string()}) == 3


def test_control_block_for_single_leaf():
    commitment = TaprootCommitment.derive(key(7), [text_inscription()])
    control_block = commitment.control_block().to_hex()

    # leaf version and parity, then the internal key, no merkle path
    assert len(control_block) == 66
    assert control_block[2:] == key(7).get_public_key().to_x_only_hex()
    assert int(control_block[:2], 16) == 0xC0 | int(commitment.is_odd())


def test_commit_address_without_key():
    assert commit_address(None, [text_inscription()], "testnet") is None
    assert commit_address("", [text_inscription()], "testnet") is None


def test_commit_address_per_network():
    inscriptions = [text_inscription()]
    assert commit_address(KEY_ONE, inscriptions, "mainnet").startswith("bc1p")
    assert commit_address(KEY_ONE, inscriptions, "testnet").startswith("tb1p")
    assert commit_address(KEY_ONE, inscriptions, "regtest").startswith("bcrt1p")


def test_commit_address_rejects_bad_key():
    with pytest.raises(InvalidPrivateKey):
        commit_address("not a key", [], "testnet")


def tagged_hash(tag, data):
    tag_digest = hashlib.sha256(tag.encode()).digest()
    return hashlib.sha256(tag_digest + tag_digest + data).digest()


@pytest.mark.parametrize("secret", [1, 7, 0xC0FFEE])
def test_output_key_matches_tweak_of_single_leaf(secret):
    private_key = key(secret)
    public_key = private_key.get_public_key()
    commitment = TaprootCommitment.derive(private_key, [text_inscription()])

    script_bytes = commitment.script.to_bytes()
    assert len(script_bytes) < 0xFD
    leaf_hash = tagged_hash("TapLeaf", bytes([0xC0, len(script_bytes)]) + script_bytes)
    tweak = int.from_bytes(tagged_hash("TapTweak", bytes.fromhex(public_key.to_x_only_hex()) + leaf_hash), "big")

    # Q = P + tG with P lifted to even y
    even_secret = secret if public_key.to_hex().startswith("02") else SECP256K1_ORDER - secret
    output_key = PrivateKey(secret_exponent=(even_secret + tweak) % SECP256K1_ORDER).get_public_key()

    assert commitment.output_key == output_key.to_x_only_hex()
    assert commitment.is_odd() == output_key.to_hex().startswith("03")
