#!/usr/bin/env python3
"""
Taproot Commit Address Deriver

Derives the one-time Taproot address that an inscription commit transaction
pays to. The address commits to a single-leaf script tree

    [[ <x-only pubkey> OP_CHECKSIG <inscription envelope(s)> ]]

and is tweaked into an output key Q = P + H('TapTweak' || P || merkle_root) * G.
On-chain it looks like any key-path Taproot output until the leaf is revealed
by a script-path spend.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from bitcoinutils.keys import P2trAddress, PrivateKey, PublicKey
from bitcoinutils.script import Script
from bitcoinutils.utils import ControlBlock

from ordbuilder.errors import InvalidPrivateKey
from ordbuilder.inscription import Inscription, append_batch_reveal_script
from ordbuilder.log import get_logger
from ordbuilder.primitives import use_network

logger = get_logger(__name__)

__all__ = ["SECP256K1_ORDER", "key_pair_from_hex", "generate_private_key", "reveal_script", "TaprootCommitment",
           "commit_address"]

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def key_pair_from_hex(hex_key: str) -> PrivateKey:
    """
    Restore a private key from exactly 64 hex characters (32 raw bytes).

    Raises:
        InvalidPrivateKey: malformed, wrong length, or outside [1, n-1]
    """
    if len(hex_key) != 64:
        raise InvalidPrivateKey("Hex string must be exactly 64 characters long")
    if not _HEX_KEY_RE.match(hex_key):
        raise InvalidPrivateKey("Failed to decode hex string")

    key_bytes = bytes.fromhex(hex_key)
    secret_exponent = int.from_bytes(key_bytes, "big")
    if not 0 < secret_exponent < SECP256K1_ORDER:
        raise InvalidPrivateKey("cannot restore private key: secret out of range")

    return PrivateKey(secret_exponent=secret_exponent)


def generate_private_key() -> str:
    """Generate a fresh commit key and return its 32 secret bytes as hex."""
    return PrivateKey().to_bytes().hex()


def _public_key(key: Union[PrivateKey, PublicKey, str]) -> PublicKey:
    if isinstance(key, PrivateKey):
        return key.get_public_key()
    if isinstance(key, PublicKey):
        return key
    return PublicKey(key)


def reveal_script(key: Union[PrivateKey, PublicKey, str], inscriptions: list[Inscription]) -> Script:
    """Build `<x-only pubkey> OP_CHECKSIG` followed by one envelope per inscription."""
    public_key = _public_key(key)
    items = [public_key.to_x_only_hex(), "OP_CHECKSIG"]
    return Script(append_batch_reveal_script(inscriptions, items))


@dataclass
class TaprootCommitment:
    internal_key: PublicKey
    script: Script
    address: P2trAddress
    tree: list = field(default_factory=list)

    @classmethod
    def derive(cls, key: Union[PrivateKey, PublicKey, str],
               inscriptions: Optional[list[Inscription]] = None) -> TaprootCommitment:
        """
        Commit to the reveal script for `inscriptions` under the internal key.

        The tree holds exactly one leaf at depth 0, so the leaf hash is the
        merkle root.
        """
        internal_key = _public_key(key)
        script = reveal_script(internal_key, inscriptions or [])
        tree = [[script]]

        address = internal_key.get_taproot_address(tree)
        output_key = address.to_witness_program()
        assert len(output_key) == 64, f"taproot output key has unexpected length: {output_key}"

        logger.debug(f"committed reveal script {script.to_hex()} to output key {output_key}")

        return cls(internal_key=internal_key, script=script, address=address, tree=tree)

    @property
    def output_key(self) -> str:
        """The tweaked x-only output key, hex encoded."""
        return self.address.to_witness_program()

    def is_odd(self) -> bool:
        return self.address.is_odd()

    def control_block(self) -> ControlBlock:
        """Control block for spending the single leaf via the script path."""
        return ControlBlock(self.internal_key, self.tree, 0, is_odd=self.address.is_odd())

    def address_string(self, network: Optional[str] = None) -> str:
        if network is not None:
            use_network(network)
        return self.address.to_string()


def commit_address(private_key_hex: Optional[str], inscriptions: list[Inscription],
                   network: str) -> Optional[str]:
    """
    Derive the commit address for `inscriptions` under the key in `private_key_hex`.

    Returns None when no private key was supplied.
    """
    if not private_key_hex:
        return None

    private_key = key_pair_from_hex(private_key_hex)
    use_network(network)
    commitment = TaprootCommitment.derive(private_key, inscriptions)
    return commitment.address_string()
