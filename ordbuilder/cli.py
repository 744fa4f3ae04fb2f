#!/usr/bin/env python3
"""
Command line entry point

    ordbuilder commit-gen-prv
    ordbuilder commit-gen-addr --prv <HEX> [--file <PATH>]
    ordbuilder send --satpoint <SATPOINT> --recipient <ADDRESS> --change <ADDRESS> --fee-rate <RATE>
                    (--utxo <TXID:VOUT:AMOUNT> ... | --address <ADDRESS>)

Results are printed as JSON. The unsigned transaction produced by `send` has
to be signed and broadcast by the wallet.
"""

import argparse
import json
import sys

from ordbuilder.commitment import commit_address, generate_private_key
from ordbuilder.config import NETWORK
from ordbuilder.errors import CommitmentError, TransactionBuilderError
from ordbuilder.inscription import Inscription
from ordbuilder.primitives import NETWORKS, Address, FeeRate, InscriptionId, OutPoint, SatPoint, use_network
from ordbuilder.transaction_builder import Target, TransactionBuilder
from ordbuilder.utxo_scanner import get_unspent_outputs


def parse_utxo(text):
    outpoint, sep, amount = text.rpartition(":")
    if not sep or not amount.isdigit():
        raise argparse.ArgumentTypeError(f"expected <TXID>:<VOUT>:<AMOUNT>, got {text!r}")
    return OutPoint.from_str(outpoint), int(amount)


def parse_inscription(text):
    satpoint, sep, inscription_id = text.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected <SATPOINT>=<INSCRIPTION_ID>, got {text!r}")
    return SatPoint.from_str(satpoint), InscriptionId.from_str(inscription_id)


def build_parser():
    parser = argparse.ArgumentParser(prog="ordbuilder", description="Ordinal-aware transaction construction")
    parser.add_argument("--network", default=NETWORK, choices=sorted(NETWORKS), help="Bitcoin network")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("commit-gen-prv", help="Generate a private key for a commit address")

    gen_addr = subcommands.add_parser("commit-gen-addr", help="Derive the commit address for an inscription")
    gen_addr.add_argument("--prv", default="", help="Use <PRV> to derive private key.")
    gen_addr.add_argument("--file", help="Inscribe sat with contents of <FILE>.")
    gen_addr.add_argument("--metaprotocol", help="Set inscription metaprotocol to <METAPROTOCOL>.")

    send = subcommands.add_parser("send", help="Build an unsigned transaction sending an inscribed sat")
    send.add_argument("--satpoint", required=True, type=SatPoint.from_str, help="Outgoing <SATPOINT>.")
    send.add_argument("--recipient", required=True, help="Send to <RECIPIENT>.")
    send.add_argument("--change", required=True, action="append", help="Send change to <CHANGE>. Repeatable.")
    send.add_argument("--fee-rate", required=True, type=FeeRate.from_str, help="Use fee rate of <FEE_RATE> sats/vB.")
    target = send.add_mutually_exclusive_group()
    target.add_argument("--postage", type=int, help="Amount of postage to include. Default `10000sat`.")
    target.add_argument("--value", type=int, help="Send exactly <VALUE> sats with the outgoing sat.")
    source = send.add_mutually_exclusive_group(required=True)
    source.add_argument("--utxo", type=parse_utxo, action="append", help="Wallet UTXO <TXID>:<VOUT>:<AMOUNT>.")
    source.add_argument("--address", help="Fetch wallet UTXOs of <ADDRESS> from Esplora.")
    send.add_argument("--inscription", type=parse_inscription, action="append", default=[],
                      help="Inscribed <SATPOINT>=<INSCRIPTION_ID> in the wallet.")
    send.add_argument("--locked", type=OutPoint.from_str, action="append", default=[],
                      help="Locked <OUTPOINT> that must not be spent.")
    send.add_argument("--runic", type=OutPoint.from_str, action="append", default=[],
                      help="Rune-bearing <OUTPOINT> that must not be spent.")

    return parser


def run_send(args):
    if args.value is not None:
        target = Target.value(args.value)
    elif args.postage is not None:
        target = Target.exact_postage(args.postage)
    else:
        target = Target.postage()

    if args.address:
        amounts = get_unspent_outputs(args.address, args.network)
    else:
        amounts = dict(args.utxo)

    built = TransactionBuilder(
        outgoing=args.satpoint,
        inscriptions=dict(args.inscription),
        amounts=amounts,
        locked_utxos=args.locked,
        runic_utxos=args.runic,
        recipient=Address.from_string(args.recipient),
        change=[Address.from_string(change) for change in args.change],
        fee_rate=args.fee_rate,
        target=target,
    ).build_transaction()

    return {
        "transaction": built.transaction.serialize(),
        "txid": built.transaction.get_txid(),
        "inputs": [str(outpoint) for outpoint in built.inputs],
        "fee": built.fee,
    }


def main(argv=None):
    args = build_parser().parse_args(argv)
    use_network(args.network)

    try:
        if args.command == "commit-gen-prv":
            output = {"xprv": generate_private_key()}
        elif args.command == "commit-gen-addr":
            inscriptions = []
            if args.file:
                inscriptions.append(Inscription.from_file(args.file, metaprotocol=args.metaprotocol))
            output = {"address": commit_address(args.prv, inscriptions, args.network)}
        else:
            output = run_send(args)
    except (TransactionBuilderError, CommitmentError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
