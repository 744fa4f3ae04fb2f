"""
Ordinal-aware transaction construction and Taproot commit address derivation
"""
from ordbuilder.commitment import TaprootCommitment, commit_address, generate_private_key, key_pair_from_hex
from ordbuilder.errors import *
from ordbuilder.inscription import Inscription
from ordbuilder.primitives import Address, FeeRate, InscriptionId, OutPoint, SatPoint, use_network
from ordbuilder.transaction_builder import MAX_POSTAGE, TARGET_POSTAGE, BuiltTransaction, Target, TransactionBuilder

__version__ = "0.1.0"
