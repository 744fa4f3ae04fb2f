"""
Shared helpers for building deterministic wallets and checking built transactions
"""
import pytest
from bitcoinutils.keys import PrivateKey

from ordbuilder.primitives import Address, OutPoint, SatPoint, dust_value

__all__ = ["key", "outpoint", "taproot_address", "segwit_address", "legacy_address", "assert_invariants"]


# --- Deterministic chain data --- #

def key(n: int) -> PrivateKey:
    return PrivateKey(secret_exponent=n)


def outpoint(n: int, vout: int = 0) -> OutPoint:
    return OutPoint(f"{n:064x}", vout)


def taproot_address(n: int) -> Address:
    return Address(key(n).get_public_key().get_taproot_address())


def segwit_address(n: int) -> Address:
    return Address(key(n).get_public_key().get_segwit_address())


def legacy_address(n: int) -> Address:
    return Address(key(n).get_public_key().get_address())


def assert_invariants(built, outgoing: SatPoint, recipient: Address):
    """Check a built transaction from the outside, independently of the builder's own asserts."""
    tx = built.transaction

    assert built.inputs.count(outgoing.outpoint) == 1

    sat_offset = 0
    for outpoint_, amount in zip(built.inputs, built.input_amounts):
        if outpoint_ == outgoing.outpoint:
            sat_offset += outgoing.offset
            break
        sat_offset += amount

    start = 0
    for tx_out in tx.outputs:
        if start + tx_out.amount > sat_offset:
            assert start == sat_offset
            assert tx_out.script_pubkey.to_bytes() == recipient.script_pubkey().to_bytes()
            break
        start += tx_out.amount
    else:
        pytest.fail("outgoing sat not found in outputs")

    for tx_out in tx.outputs:
        assert tx_out.amount >= dust_value(tx_out.script_pubkey)

    assert sum(built.input_amounts) - sum(tx_out.amount for tx_out in tx.outputs) == built.fee


