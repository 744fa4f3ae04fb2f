#!/usr/bin/env python3
"""
UTXO Scanner

Fetches unspent outputs for a wallet address from an Esplora API and turns
them into the outpoint -> amount view consumed by the transaction builder.

HTTP errors are raised to the caller unchanged; refreshing a stale view is
the caller's decision.
"""

from __future__ import annotations

from typing import Optional

import requests

from ordbuilder.config import ESPLORA_CONFIG, NETWORK
from ordbuilder.log import get_logger
from ordbuilder.primitives import OutPoint

logger = get_logger(__name__)

__all__ = ["esplora_url", "get_available_utxos", "get_unspent_outputs"]


def esplora_url(network: str = NETWORK, base_url: Optional[str] = None) -> str:
    if base_url is not None:
        return base_url.rstrip("/")
    if network not in ESPLORA_CONFIG:
        raise ValueError(f"No Esplora endpoint configured for network: {network}")
    return ESPLORA_CONFIG[network]


def get_available_utxos(address: str, network: str = NETWORK, base_url: Optional[str] = None,
                        confirmed_only: bool = False) -> list[dict]:
    """
    Fetch available UTXOs for an address.

    Args:
        address: Address to query
        network: Network whose Esplora endpoint is used
        base_url: Override for the Esplora endpoint
        confirmed_only: Skip outputs whose funding transaction is unconfirmed

    Returns:
        list[dict]: Each entry contains txid, vout, amount and confirmed.
    """
    url = f"{esplora_url(network, base_url)}/address/{address}/utxo"
    resp = requests.get(url, timeout=ESPLORA_CONFIG["timeout"])
    resp.raise_for_status()

    utxos = []
    for u in resp.json():
        confirmed = bool(u.get("status", {}).get("confirmed", False))
        if confirmed_only and not confirmed:
            continue
        utxos.append({
            "txid": u["txid"],
            "vout": u["vout"],
            "amount": u["value"],
            "confirmed": confirmed,
        })

    logger.info(f"found {len(utxos)} UTXOs for {address}")
    return utxos


def get_unspent_outputs(address: str, network: str = NETWORK, base_url: Optional[str] = None,
                        confirmed_only: bool = False) -> dict[OutPoint, int]:
    """Return the wallet view for `address` as {OutPoint: amount in sats}."""
    return {
        OutPoint(utxo["txid"], utxo["vout"]): utxo["amount"]
        for utxo in get_available_utxos(address, network, base_url, confirmed_only)
    }
