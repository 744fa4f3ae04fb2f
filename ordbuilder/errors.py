"""
Exceptions raised by the transaction builder and the commit address deriver.

These are user errors: they describe a request that cannot be satisfied with
the supplied wallet view or key material. Broken builder invariants are not
represented here; they surface as AssertionError.
"""

__all__ = ["TransactionBuilderError", "Dust", "NotInWallet", "OutOfRange", "UtxoContainsAdditionalInscription",
           "NotEnoughCardinalUtxos", "NotEnoughChangeAddresses", "ValueOverflow", "DuplicateAddress",
           "CommitmentError", "InvalidPrivateKey"]


class TransactionBuilderError(Exception):
    """
    Base class for every error returned by TransactionBuilder.build_transaction
    """
    pass


class Dust(TransactionBuilderError):

    def __init__(self, output_value: int, dust_value: int):
        self.output_value = output_value
        self.dust_value = dust_value
        super().__init__(f"output value is below dust value: {output_value} < {dust_value}")


class NotInWallet(TransactionBuilderError):

    def __init__(self, satpoint):
        self.satpoint = satpoint
        super().__init__(f"outgoing satpoint {satpoint} not in wallet")


class OutOfRange(TransactionBuilderError):

    def __init__(self, satpoint, maximum: int):
        self.satpoint = satpoint
        self.maximum = maximum
        super().__init__(f"outgoing satpoint {satpoint} offset higher than maximum {maximum}")


class UtxoContainsAdditionalInscription(TransactionBuilderError):

    def __init__(self, outgoing_satpoint, inscribed_satpoint, inscription_id):
        self.outgoing_satpoint = outgoing_satpoint
        self.inscribed_satpoint = inscribed_satpoint
        self.inscription_id = inscription_id
        super().__init__(
            f"cannot send {outgoing_satpoint} without also sending inscription {inscription_id} "
            f"at {inscribed_satpoint}"
        )


class NotEnoughCardinalUtxos(TransactionBuilderError):

    def __init__(self):
        super().__init__("wallet does not contain enough cardinal UTXOs, please add additional funds to wallet.")


class NotEnoughChangeAddresses(TransactionBuilderError):

    def __init__(self):
        super().__init__("not enough change addresses, please supply an additional change address.")


class ValueOverflow(TransactionBuilderError):

    def __init__(self):
        super().__init__("arithmetic overflow calculating value")


class DuplicateAddress(TransactionBuilderError):

    def __init__(self, address):
        self.address = address
        super().__init__(f"duplicate input address: {address}")


class CommitmentError(Exception):
    """
    For use in the Taproot commit address deriver
    """
    pass


class InvalidPrivateKey(CommitmentError):
    """
    Raised when private key material is rejected before reaching the curve
    """
    pass
