"""
Ordinal transaction construction is fraught.

Ordinal-aware transaction construction has additional invariants, constraints,
and concerns in addition to those of normal, non-ordinal-aware Bitcoin
transactions. The TransactionBuilder in this module takes them into account.

Natural call sequence:
builder = TransactionBuilder(outgoing, inscriptions, amounts, locked, runic,
                             recipient, change, fee_rate, Target.postage())
built = builder.build_transaction()

`Target.postage()` ensures that the outgoing value is at most 20,000 sats,
reducing it to 10,000 sats if coin selection requires adding excess value.

`Target.value(amount)` ensures that the outgoing value is the requested
amount, and `Target.exact_postage(amount)` does the same for postage.

Internally build_transaction runs a fixed sequence of transformations, each
responsible for one concern: selecting the outgoing UTXO, aligning the outgoing
sat to the start of the recipient output, padding the alignment output above
dust, adding value to pay the fee, stripping excess value into change, and
deducting the fee. The final `build` asserts every invariant on the assembled
transaction; a failing assertion is a bug in the builder, not a user error.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional, Union

from bitcoinutils.script import Script
from bitcoinutils.transactions import Transaction, TxInput, TxOutput, TxWitnessInput

from ordbuilder.config import POSTAGE_CONFIG, TX_CONFIG
from ordbuilder.errors import (Dust, DuplicateAddress, NotEnoughCardinalUtxos, NotEnoughChangeAddresses, NotInWallet,
                               OutOfRange, UtxoContainsAdditionalInscription)
from ordbuilder.log import get_logger
from ordbuilder.primitives import (Address, FeeRate, InscriptionId, OutPoint, SatPoint, checked_add, checked_sub,
                                   dust_value)
from ordbuilder.selection import select_cardinal_utxo

logger = get_logger(__name__)

__all__ = ["TARGET_POSTAGE", "MAX_POSTAGE", "TargetKind", "Target", "BuiltTransaction", "TransactionBuilder"]

TARGET_POSTAGE = POSTAGE_CONFIG["target_postage"]
MAX_POSTAGE = POSTAGE_CONFIG["max_postage"]

# bitcoin-utils serializes an all-zero txid as a coinbase input
PLACEHOLDER_TXID = "11" * 32


class TargetKind(Enum):
    VALUE = "value"
    POSTAGE = "postage"
    EXACT_POSTAGE = "exact_postage"


@dataclass(frozen=True)
class Target:
    kind: TargetKind
    amount: Optional[int] = None

    @classmethod
    def value(cls, amount: int) -> Target:
        return cls(TargetKind.VALUE, amount)

    @classmethod
    def postage(cls) -> Target:
        return cls(TargetKind.POSTAGE)

    @classmethod
    def exact_postage(cls, amount: int) -> Target:
        return cls(TargetKind.EXACT_POSTAGE, amount)

    def bounds(self) -> tuple[int, int]:
        """Return (max, target): outgoing value above max is stripped down to target."""
        if self.kind is TargetKind.POSTAGE:
            return MAX_POSTAGE, TARGET_POSTAGE
        return self.amount, self.amount


@dataclass
class BuiltTransaction:
    """
    An unsigned transaction together with what is needed to sign it
    """
    transaction: Transaction
    inputs: list[OutPoint]
    input_amounts: list[int]
    fee: int


class TransactionBuilder:
    ADDITIONAL_INPUT_VBYTES = TX_CONFIG["additional_input_vbytes"]
    ADDITIONAL_OUTPUT_VBYTES = TX_CONFIG["additional_output_vbytes"]
    SCHNORR_SIGNATURE_SIZE = TX_CONFIG["schnorr_signature_size"]
    MAX_POSTAGE = MAX_POSTAGE

    def __init__(self, outgoing: SatPoint, inscriptions: Mapping[SatPoint, InscriptionId],
                 amounts: Mapping[OutPoint, int], locked_utxos: Iterable[OutPoint], runic_utxos: Iterable[OutPoint],
                 recipient: Address, change: Union[Address, Iterable[Address]], fee_rate: FeeRate, target: Target,
                 auth_marker: bytes = TX_CONFIG["auth_marker"]):
        self.amounts = dict(amounts)
        self.utxos = set(self.amounts)
        self.inscriptions = dict(inscriptions)
        self.locked_utxos = frozenset(locked_utxos)
        self.runic_utxos = frozenset(runic_utxos)
        self.outgoing = outgoing
        self.recipient = recipient
        self.change_addresses = [change] if isinstance(change, Address) else list(change)
        self.unused_change_addresses = list(self.change_addresses)
        self.fee_rate = fee_rate
        self.target = target
        self.auth_marker = auth_marker
        self.inputs: list[OutPoint] = []
        self.outputs: list[tuple[Address, int]] = []
        self._consumed = False

    def build_transaction(self) -> BuiltTransaction:
        if self._consumed:
            raise RuntimeError("TransactionBuilder instances build a single transaction")
        self._consumed = True

        if self.target.kind in (TargetKind.VALUE, TargetKind.EXACT_POSTAGE):
            recipient_dust_value = self.recipient.dust_value()
            if self.target.amount < recipient_dust_value:
                raise Dust(self.target.amount, recipient_dust_value)

        self._check_change_addresses()

        return (
            self.select_outgoing()
            .align_outgoing()
            .pad_alignment_output()
            .add_value()
            .strip_value()
            .deduct_fee()
            .build()
        )

    def _check_change_addresses(self):
        seen = []
        for address in self.change_addresses:
            if address == self.recipient or address in seen:
                raise DuplicateAddress(address)
            seen.append(address)

    def _next_change_address(self) -> Address:
        if not self.unused_change_addresses:
            raise NotEnoughChangeAddresses()
        return self.unused_change_addresses[0]

    def _take_change_address(self) -> Address:
        address = self._next_change_address()
        self.unused_change_addresses.pop(0)
        return address

    # --- Pipeline stages --- #

    def select_outgoing(self) -> TransactionBuilder:
        dust_limit = self._next_change_address().dust_value()

        for inscribed_satpoint, inscription_id in sorted(self.inscriptions.items(), reverse=True):
            if (self.outgoing.outpoint == inscribed_satpoint.outpoint
                    and self.outgoing.offset != inscribed_satpoint.offset
                    and self.outgoing.offset < inscribed_satpoint.offset + dust_limit):
                raise UtxoContainsAdditionalInscription(self.outgoing, inscribed_satpoint, inscription_id)

        amount = self.amounts.get(self.outgoing.outpoint)
        if amount is None:
            raise NotInWallet(self.outgoing)

        if self.outgoing.offset >= amount:
            raise OutOfRange(self.outgoing, amount - 1)

        self.utxos.remove(self.outgoing.outpoint)
        self.inputs.append(self.outgoing.outpoint)
        self.outputs.append((self.recipient, amount))

        logger.debug(f"selected outgoing outpoint {self.outgoing.outpoint} with value {amount}")

        return self

    def align_outgoing(self) -> TransactionBuilder:
        assert len(self.outputs) == 1, "invariant: only one output"
        assert self.outputs[0][0] == self.recipient, "invariant: first output is recipient"

        sat_offset = self.calculate_sat_offset()

        if sat_offset == 0:
            logger.debug("outgoing is aligned")
        else:
            logger.debug(f"aligned outgoing with {sat_offset} sat padding output")
            self.outputs.insert(0, (self._take_change_address(), sat_offset))
            address, amount = self.outputs[-1]
            self.outputs[-1] = (address, amount - sat_offset)

        return self

    def pad_alignment_output(self) -> TransactionBuilder:
        if self.outputs[0][0] == self.recipient:
            logger.debug("no alignment output")
            return self

        address, _amount = self.outputs[0]
        dust_limit = address.dust_value()

        if self.outputs[0][1] >= dust_limit:
            logger.debug("no padding needed")
            return self

        while self.outputs[0][1] < dust_limit:
            utxo, size = self.select_cardinal_utxo(dust_limit - self.outputs[0][1], prefer_under=True)

            self.inputs.insert(0, utxo)
            self.outputs[0] = (address, checked_add(self.outputs[0][1], size))

            logger.debug(f"padded alignment output to {self.outputs[0][1]} with additional {size} sat input")

        return self

    def add_value(self) -> TransactionBuilder:
        estimated_fee = self.estimate_fee()

        if self.target.kind is TargetKind.POSTAGE:
            min_value = self.outputs[-1][0].dust_value()
        else:
            min_value = self.target.amount

        total = checked_add(min_value, estimated_fee)

        deficit = checked_sub(total, self.outputs[-1][1])
        if deficit is None:
            return self

        while deficit > 0:
            additional_fee = self.fee_rate.fee(self.ADDITIONAL_INPUT_VBYTES)

            needed = checked_add(deficit, additional_fee)

            utxo, value = self.select_cardinal_utxo(needed, prefer_under=False)

            benefit = checked_sub(value, additional_fee)
            if benefit is None:
                raise NotEnoughCardinalUtxos()

            self.inputs.append(utxo)

            address, amount = self.outputs[-1]
            self.outputs[-1] = (address, checked_add(amount, value))

            if benefit > deficit:
                logger.debug(f"added {value} sat input to cover {deficit} sat deficit")
                deficit = 0
            else:
                logger.debug(f"added {value} sat input to reduce {deficit} sat deficit by {benefit} sat")
                deficit -= benefit

        return self

    def strip_value(self) -> TransactionBuilder:
        sat_offset = self.calculate_sat_offset()

        total_output_amount = checked_add(*(amount for _address, amount in self.outputs))

        assert any(address == self.recipient for address, _amount in self.outputs), \
            "couldn't find output that contains the index"

        value = total_output_amount - sat_offset

        excess = checked_sub(value, self.fee_rate.fee(self.estimate_vbytes()))
        if excess is None:
            return self

        maximum, target = self.target.bounds()

        if excess > maximum and value - target > (
                self._next_change_address().dust_value()
                + self.fee_rate.fee(self.estimate_vbytes() + self.ADDITIONAL_OUTPUT_VBYTES)):
            logger.debug(f"stripped {value - target} sats")
            address, _amount = self.outputs[-1]
            self.outputs[-1] = (address, target)
            self.outputs.append((self._take_change_address(), value - target))

        return self

    def deduct_fee(self) -> TransactionBuilder:
        sat_offset = self.calculate_sat_offset()

        fee = self.estimate_fee()

        total_output_amount = checked_add(*(amount for _address, amount in self.outputs))

        address, last_output_amount = self.outputs[-1]

        assert total_output_amount - fee > sat_offset, "invariant: deducting fee does not consume sat"

        assert last_output_amount >= fee, f"invariant: last output can pay fee: {last_output_amount} {fee}"

        self.outputs[-1] = (address, last_output_amount - fee)

        return self

    # --- Fee estimation --- #

    def _auth_script(self) -> Script:
        return Script(["OP_RETURN", self.auth_marker.hex()])

    def _tx_input(self, txid: str, vout: int) -> TxInput:
        txin = TxInput(txid, vout)
        txin.sequence = struct.pack('<I', TX_CONFIG["sequence"])
        return txin

    def _transaction(self, inputs: list[TxInput], outputs: list[TxOutput], witnesses: list[TxWitnessInput]):
        return Transaction(inputs, outputs, version=struct.pack('<i', TX_CONFIG["version"]),
                           has_segwit=True, witnesses=witnesses)

    def _dummy_witnesses(self, count: int) -> list[TxWitnessInput]:
        return [TxWitnessInput(["00" * self.SCHNORR_SIGNATURE_SIZE]) for _ in range(count)]

    def estimate_vbytes(self) -> int:
        """
        Estimate the size in virtual bytes of the transaction under construction.

        All inputs are assumed to be taproot key path spends, so every witness
        is a single Schnorr signature. The trailing OP_RETURN output is counted.
        """
        return self.estimate_vbytes_with(len(self.inputs), [address.script_pubkey() for address, _ in self.outputs])

    def estimate_vbytes_with(self, inputs: int, output_scripts: list[Script]) -> int:
        tx_inputs = [self._tx_input(PLACEHOLDER_TXID, 0) for _ in range(inputs)]
        tx_outputs = [TxOutput(0, script) for script in output_scripts]
        tx_outputs.append(TxOutput(0, self._auth_script()))
        return self._transaction(tx_inputs, tx_outputs, self._dummy_witnesses(inputs)).get_vsize()

    def estimate_fee(self) -> int:
        return self.fee_rate.fee(self.estimate_vbytes())

    # --- Assembly --- #

    def build(self) -> BuiltTransaction:
        recipient = self.recipient.script_pubkey().to_bytes()

        outputs = [TxOutput(amount, address.script_pubkey()) for address, amount in self.outputs]
        outputs.append(TxOutput(0, self._auth_script()))

        inputs = [self._tx_input(outpoint.txid, outpoint.vout) for outpoint in self.inputs]

        transaction = self._transaction(inputs, outputs, [TxWitnessInput([]) for _ in inputs])

        def spends(tx_in: TxInput, outpoint: OutPoint) -> bool:
            return tx_in.txid == outpoint.txid and tx_in.txout_index == outpoint.vout

        assert len([
            outpoint for outpoint, amount in self.amounts.items()
            if outpoint == self.outgoing.outpoint and self.outgoing.offset < amount
        ]) == 1, "invariant: outgoing sat is contained in utxos"

        assert len([
            tx_in for tx_in in transaction.inputs if spends(tx_in, self.outgoing.outpoint)
        ]) == 1, "invariant: inputs spend outgoing sat"

        input_amounts = [self.amounts[outpoint] for outpoint in self.inputs]

        sat_offset = 0
        found = False
        for tx_in, outpoint, amount in zip(transaction.inputs, self.inputs, input_amounts):
            if spends(tx_in, self.outgoing.outpoint):
                sat_offset += self.outgoing.offset
                found = True
                break
            sat_offset += amount
        assert found, "invariant: outgoing sat is found in inputs"

        output_start = 0
        found = False
        for tx_out in transaction.outputs:
            output_end = output_start + tx_out.amount
            if output_end > sat_offset:
                assert tx_out.script_pubkey.to_bytes() == recipient, "invariant: outgoing sat is sent to recipient"
                assert output_start == sat_offset, "invariant: outgoing sat is the first sat of its output"
                found = True
                break
            output_start = output_end
        assert found, "invariant: outgoing sat is found in outputs"

        slop = self.fee_rate.fee(self.ADDITIONAL_OUTPUT_VBYTES)
        for tx_out in transaction.outputs:
            if tx_out.script_pubkey.to_bytes() != recipient:
                continue
            if self.target.kind is TargetKind.POSTAGE:
                assert tx_out.amount <= self.MAX_POSTAGE + slop, "invariant: excess postage is stripped"
            else:
                # an excess too small to pay for its own change output stays with the recipient
                ceiling = self.target.amount + slop + max(
                    (address.dust_value() for address in self.change_addresses), default=0)
                assert self.target.amount <= tx_out.amount <= ceiling, \
                    "invariant: outgoing value matches target"

        actual_fee = sum(input_amounts) - sum(tx_out.amount for tx_out in transaction.outputs)

        modified_tx = self._transaction(transaction.inputs, transaction.outputs,
                                        self._dummy_witnesses(len(transaction.inputs)))
        expected_fee = self.fee_rate.fee(modified_tx.get_vsize())

        assert actual_fee == expected_fee, f"invariant: fee estimation is correct: {actual_fee} {expected_fee}"

        for tx_out in transaction.outputs:
            assert tx_out.amount >= dust_value(tx_out.script_pubkey), "invariant: all outputs are above dust limit"

        logger.debug(f"built transaction with {len(inputs)} inputs, {len(outputs)} outputs, paying {actual_fee} sat fee")

        return BuiltTransaction(transaction=transaction, inputs=list(self.inputs), input_amounts=input_amounts,
                                fee=actual_fee)

    # --- Helpers --- #

    def calculate_sat_offset(self) -> int:
        sat_offset = 0
        for outpoint in self.inputs:
            if outpoint == self.outgoing.outpoint:
                return sat_offset + self.outgoing.offset
            sat_offset += self.amounts[outpoint]

        raise AssertionError("Could not find outgoing sat in inputs")

    def select_cardinal_utxo(self, target_value: int, prefer_under: bool) -> tuple[OutPoint, int]:
        inscribed_utxos = {satpoint.outpoint for satpoint in self.inscriptions}

        return select_cardinal_utxo(self.utxos, self.amounts, target_value, prefer_under,
                                    inscribed=inscribed_utxos, locked=self.locked_utxos, runic=self.runic_utxos)
