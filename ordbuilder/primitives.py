"""
Monetary and chain primitives

Amounts are plain integers of satoshis guarded by checked helpers, fee rates
are exact decimals, and outpoints / satpoints / inscription ids are small
frozen value types with the textual forms used by ord.

Addresses wrap the bitcoin-utils address classes so that every destination
can hand out its scriptPubKey and the dust threshold of that script.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_CEILING
from functools import total_ordering

from bitcoinutils.keys import P2pkhAddress, P2shAddress, P2trAddress, P2wpkhAddress, P2wshAddress
from bitcoinutils.script import Script
from bitcoinutils.setup import setup

from ordbuilder.config import TX_CONFIG
from ordbuilder.errors import ValueOverflow

__all__ = ["MAX_AMOUNT", "checked_add", "checked_sub", "FeeRate", "OutPoint", "SatPoint", "InscriptionId",
           "Address", "dust_value", "use_network", "NETWORKS"]

MAX_AMOUNT = 2 ** 64 - 1

_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")

# signet shares testnet's address encoding in bitcoin-utils
NETWORKS = {
    "mainnet": "mainnet",
    "testnet": "testnet",
    "signet": "testnet",
    "regtest": "regtest",
}


def use_network(network: str) -> None:
    """Configure bitcoin-utils for the given network."""
    if network not in NETWORKS:
        raise ValueError(f"Unsupported network: {network}")
    setup(NETWORKS[network])


# --- Amounts --- #

def checked_add(*values: int) -> int:
    """Sum satoshi values, raising ValueOverflow outside [0, MAX_AMOUNT]."""
    total = 0
    for value in values:
        total += value
        if total < 0 or total > MAX_AMOUNT:
            raise ValueOverflow()
    return total


def checked_sub(minuend: int, subtrahend: int) -> int | None:
    """Return minuend - subtrahend, or None when the result would be negative."""
    if subtrahend > minuend:
        return None
    return minuend - subtrahend


@dataclass(frozen=True)
class FeeRate:
    """
    Fee rate in satoshis per virtual byte.

    Fees are rounded up so that a transaction never pays below the rate.
    """

    sat_vb: Decimal

    def __post_init__(self):
        if not isinstance(self.sat_vb, Decimal):
            object.__setattr__(self, "sat_vb", Decimal(str(self.sat_vb)))
        if not self.sat_vb.is_finite() or self.sat_vb < 0:
            raise ValueError(f"Invalid fee rate: {self.sat_vb}")

    @classmethod
    def from_str(cls, text: str) -> FeeRate:
        try:
            return cls(Decimal(text.strip()))
        except InvalidOperation as e:
            raise ValueError(f"Invalid fee rate: {text!r}") from e

    def fee(self, vbytes: int) -> int:
        fee = (self.sat_vb * vbytes).to_integral_value(rounding=ROUND_CEILING)
        if fee > MAX_AMOUNT:
            raise ValueOverflow()
        return int(fee)

    def __str__(self) -> str:
        return f"{self.sat_vb} sat/vB"


# --- Chain locations --- #

@total_ordering
@dataclass(frozen=True)
class OutPoint:
    """
    A transaction output reference.

    Outpoints order by txid in internal byte order (the reverse of its hex
    form), then by output index.
    """

    txid: str
    vout: int

    def __post_init__(self):
        if not _TXID_RE.match(self.txid):
            raise ValueError(f"Invalid txid: {self.txid!r}")
        if not 0 <= self.vout <= 0xFFFFFFFF:
            raise ValueError(f"Invalid output index: {self.vout}")
        object.__setattr__(self, "txid", self.txid.lower())

    @classmethod
    def from_str(cls, text: str) -> OutPoint:
        txid, sep, vout = text.strip().partition(":")
        if not sep or not vout.isdigit():
            raise ValueError(f"Invalid outpoint: {text!r}")
        return cls(txid, int(vout))

    def sort_key(self) -> tuple[bytes, int]:
        return bytes.fromhex(self.txid)[::-1], self.vout

    def __lt__(self, other):
        if not isinstance(other, OutPoint):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"


@dataclass(frozen=True, order=True)
class SatPoint:
    outpoint: OutPoint
    offset: int

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"Invalid satpoint offset: {self.offset}")

    @classmethod
    def from_str(cls, text: str) -> SatPoint:
        outpoint, sep, offset = text.strip().rpartition(":")
        if not sep or not offset.isdigit():
            raise ValueError(f"Invalid satpoint: {text!r}")
        return cls(OutPoint.from_str(outpoint), int(offset))

    def __str__(self) -> str:
        return f"{self.outpoint}:{self.offset}"


@dataclass(frozen=True, order=True)
class InscriptionId:
    txid: str
    index: int = 0

    def __post_init__(self):
        if not _TXID_RE.match(self.txid):
            raise ValueError(f"Invalid txid: {self.txid!r}")
        if self.index < 0:
            raise ValueError(f"Invalid inscription index: {self.index}")
        object.__setattr__(self, "txid", self.txid.lower())

    @classmethod
    def from_str(cls, text: str) -> InscriptionId:
        txid, sep, index = text.strip().rpartition("i")
        if not sep or not index.isdigit():
            raise ValueError(f"Invalid inscription id: {text!r}")
        return cls(txid, int(index))

    def __str__(self) -> str:
        return f"{self.txid}i{self.index}"


# --- Addresses --- #

def _is_witness_program(script_bytes: bytes) -> bool:
    if not 4 <= len(script_bytes) <= 42:
        return False
    version = script_bytes[0]
    if version != 0x00 and not 0x51 <= version <= 0x60:
        return False
    return script_bytes[1] + 2 == len(script_bytes)


def dust_value(script: Script) -> int:
    """
    Minimum economically spendable value of an output locked by `script`.

    Bitcoin Core's rule: the cost, at the dust relay fee, of the output itself
    plus the input that will later spend it. OP_RETURN outputs are never dust.
    """
    script_bytes = script.to_bytes()
    if script_bytes[:1] == b"\x6a":
        return 0

    length_prefix = 1 if len(script_bytes) < 0xFD else 3
    output_size = 8 + length_prefix + len(script_bytes)

    if _is_witness_program(script_bytes):
        spend_size = 32 + 4 + 1 + (107 // 4) + 4
    else:
        spend_size = 32 + 4 + 1 + 107 + 4

    return TX_CONFIG["dust_relay_fee_sat_vb"] * (output_size + spend_size)


class Address:
    """
    A spending destination on the configured network.

    Two addresses are equal when they lock to the same scriptPubKey.
    """

    def __init__(self, address):
        self.address = address

    @classmethod
    def from_string(cls, text: str) -> Address:
        text = text.strip()
        hrp, sep, data = text.lower().rpartition("1")

        if sep and hrp in ("bc", "tb", "bcrt"):
            if data.startswith("p"):
                return cls(P2trAddress(text))
            # v0 programs: 20-byte key hash or 32-byte script hash
            if len(data) == 39:
                return cls(P2wpkhAddress(text))
            return cls(P2wshAddress(text))

        if text[:1] in ("3", "2"):
            return cls(P2shAddress(text))

        return cls(P2pkhAddress(text))

    def script_pubkey(self) -> Script:
        return self.address.to_script_pub_key()

    def dust_value(self) -> int:
        return dust_value(self.script_pubkey())

    def to_string(self) -> str:
        return self.address.to_string()

    def __eq__(self, other):
        if not isinstance(other, Address):
            return NotImplemented
        return self.script_pubkey().to_bytes() == other.script_pubkey().to_bytes()

    def __hash__(self):
        return hash(self.script_pubkey().to_bytes())

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Address({self.script_pubkey().to_hex()})"
