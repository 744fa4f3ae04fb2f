#!/usr/bin/env python3
"""
Ordbuilder Configuration and Constants

Defines the default network, postage amounts, transaction shaping constants
and the Esplora endpoints used by the builder, the commit address deriver and
the UTXO scanner.

Nothing here is read implicitly by the builder: callers pass fee rates,
change addresses and targets explicitly and may use these values as defaults.
"""

import os

# Network (mainnet, testnet, signet, regtest)
NETWORK = os.environ.get("ORDBUILDER_NETWORK", "testnet")

# Postage configuration (sats)
POSTAGE_CONFIG = {
    "target_postage": 10_000,   # default value locked with an inscription
    "max_postage": 2 * 10_000,  # outgoing value above this is stripped to target
}

# Transaction shaping constants
TX_CONFIG = {
    "version": 2,
    "sequence": 0xFFFFFFFD,              # RBF enabled, no locktime
    "additional_input_vbytes": 58,       # marginal cost of one taproot key-path input
    "additional_output_vbytes": 43,      # marginal cost of one taproot output
    "schnorr_signature_size": 64,
    "dust_relay_fee_sat_vb": 3,
    "auth_marker": b"orddefi:auth",      # payload of the trailing OP_RETURN output
}

# Inscription envelope constants
INSCRIPTION_CONFIG = {
    "ord_marker": b"ord",
    "max_push_size": 520,
}

# Esplora endpoints per network
ESPLORA_CONFIG = {
    "mainnet": "https://blockstream.info/api",
    "testnet": "https://blockstream.info/testnet/api",
    "signet": "https://mempool.space/signet/api",
    "regtest": "http://localhost:3002",
    "timeout": 10,
}

# Logging
LOG_LEVEL = os.environ.get("ORDBUILDER_LOG_LEVEL", "WARNING")
