"""
Tests for the Esplora UTXO scanner
"""
from unittest import mock

import pytest
import requests

from ordbuilder.config import ESPLORA_CONFIG
from ordbuilder.primitives import OutPoint
from ordbuilder.utxo_scanner import esplora_url, get_available_utxos, get_unspent_outputs

ADDRESS = "tb1pexampleaddress"
TXID_A = "aa" * 32
TXID_B = "bb" * 32

ESPLORA_UTXOS = [
    {"txid": TXID_A, "vout": 0, "value": 10_000, "status": {"confirmed": True, "block_height": 100}},
    {"txid": TXID_B, "vout": 3, "value": 546, "status": {"confirmed": False}},
]


def esplora_response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@mock.patch("ordbuilder.utxo_scanner.requests.get")
def test_get_available_utxos(mock_get):
    mock_get.return_value = esplora_response(ESPLORA_UTXOS)

    utxos = get_available_utxos(ADDRESS, "testnet")

    mock_get.assert_called_once_with(f"{ESPLORA_CONFIG['testnet']}/address/{ADDRESS}/utxo",
                                     timeout=ESPLORA_CONFIG["timeout"])
    assert utxos == [
        {"txid": TXID_A, "vout": 0, "amount": 10_000, "confirmed": True},
        {"txid": TXID_B, "vout": 3, "amount": 546, "confirmed": False},
    ]


@mock.patch("ordbuilder.utxo_scanner.requests.get")
def test_confirmed_only(mock_get):
    mock_get.return_value = esplora_response(ESPLORA_UTXOS)
    utxos = get_available_utxos(ADDRESS, "testnet", confirmed_only=True)
    assert [utxo["txid"] for utxo in utxos] == [TXID_A]


@mock.patch("ordbuilder.utxo_scanner.requests.get")
def test_get_unspent_outputs(mock_get):
    mock_get.return_value = esplora_response(ESPLORA_UTXOS)

    assert get_unspent_outputs(ADDRESS, "testnet") == {
        OutPoint(TXID_A, 0): 10_000,
        OutPoint(TXID_B, 3): 546,
    }


@mock.patch("ordbuilder.utxo_scanner.requests.get")
def test_http_errors_propagate(mock_get):
    response = esplora_response([])
    response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
    mock_get.return_value = response

    with pytest.raises(requests.HTTPError):
        get_unspent_outputs(ADDRESS, "testnet")


@mock.patch("ordbuilder.utxo_scanner.requests.get")
def test_base_url_override(mock_get):
    mock_get.return_value = esplora_response([])

    assert get_available_utxos(ADDRESS, base_url="http://localhost:3000/api/") == []
    mock_get.assert_called_once_with(f"http://localhost:3000/api/address/{ADDRESS}/utxo",
                                     timeout=ESPLORA_CONFIG["timeout"])


def test_esplora_url():
    assert esplora_url("mainnet") == ESPLORA_CONFIG["mainnet"]
    with pytest.raises(ValueError):
        esplora_url("moonnet")
