from .errors import InvalidInvoice
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import hashlib


# Maximum size of the memo field within invoices stored in the database.
MAX_MEMO_SIZE = 1024

# Maximum size of the payment receipt stored along side an invoice.
MAX_RECEIPT_SIZE = 1024

MIN_VALUE = -(1 << 63)
MAX_VALUE = (1 << 63) - 1


class Hash32(object):
    """Base for the fixed 32-byte values we pass around.

    Subclasses only differ in name, so a `Preimage` never compares equal to
    a `PaymentHash` even if the bytes happen to match.
    """
    def __init__(self, data: Union[bytes, 'Hash32']) -> None:
        if isinstance(data, Hash32):
            data = data.data
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(
                f"{type(self).__name__} must be bytes, {type(data)} received"
            )
        elif len(data) != 32:
            raise ValueError(
                f"{type(self).__name__} must be 32-byte long. {len(data)} received"
            )
        self.data = bytes(data)

    @classmethod
    def from_hex(cls, s: str):
        return cls(bytes.fromhex(s))

    def to_bytes(self) -> bytes:
        return self.data

    def hex(self) -> str:
        return self.data.hex()

    def __bytes__(self) -> bytes:
        return self.data

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and self.data == other.data

    def __hash__(self):
        return hash((type(self).__name__, self.data))

    def __str__(self):
        return "{}[0x{}]".format(type(self).__name__, self.data.hex())

    __repr__ = __str__


class PaymentHash(Hash32):
    pass


class Preimage(Hash32):
    def payment_hash(self) -> PaymentHash:
        return PaymentHash(hashlib.sha256(self.data).digest())


class ContractTerm(object):
    """The conditions under which an invoice is considered fully settled."""
    def __init__(self, payment_preimage: Union[bytes, Preimage], value: int,
                 settled: bool = False) -> None:
        self.payment_preimage = Preimage(payment_preimage)
        self.value = value
        self.settled = settled

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContractTerm):
            return False

        return (
            self.payment_preimage == other.payment_preimage
            and self.value == other.value
            and bool(self.settled) == bool(other.settled)
        )

    def __repr__(self):
        return "ContractTerm(value={}, settled={})".format(self.value, self.settled)


class Invoice(object):
    """A payment request, stored until (and after) it gets settled.

    Invoices are never deleted: once paid, the `settled` flag of the terms
    is toggled and the record stays around for bookkeeping.
    """
    def __init__(self, terms: ContractTerm, memo: bytes = b'',
                 receipt: bytes = b'',
                 creation_date: Optional[datetime] = None) -> None:
        if creation_date is None:
            creation_date = datetime.now(timezone.utc)
        elif creation_date.tzinfo is None:
            creation_date = creation_date.replace(tzinfo=timezone.utc)

        self.memo = bytes(memo)
        self.receipt = bytes(receipt)
        self.creation_date = creation_date
        self.terms = terms

    @property
    def payment_hash(self) -> PaymentHash:
        return self.terms.payment_preimage.payment_hash()

    @property
    def settled(self) -> bool:
        return bool(self.terms.settled)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Invoice):
            return False

        return (
            self.memo == other.memo
            and self.receipt == other.receipt
            and self.creation_date == other.creation_date
            and self.terms == other.terms
        )

    def __repr__(self):
        return "Invoice(payment_hash={}, memo={!r}, value={}, settled={})".format(
            self.payment_hash.hex(), self.memo, self.terms.value, self.terms.settled
        )


def validate_invoice(i: Invoice) -> None:
    if len(i.memo) > MAX_MEMO_SIZE:
        raise InvalidInvoice(
            "max length a memo is {}, and invoice of length {} was "
            "provided".format(MAX_MEMO_SIZE, len(i.memo))
        )
    if len(i.receipt) > MAX_RECEIPT_SIZE:
        raise InvalidInvoice(
            "max length a receipt is {}, and invoice of length {} was "
            "provided".format(MAX_RECEIPT_SIZE, len(i.receipt))
        )

    value = i.terms.value
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidInvoice("invoice value must be an int, got {}".format(type(value)))
    if not MIN_VALUE <= value <= MAX_VALUE:
        raise InvalidInvoice("invoice value {} is not a signed 64-bit amount".format(value))

    offset = i.creation_date.utcoffset()
    if offset is None or offset % timedelta(minutes=1):
        raise InvalidInvoice(
            "creation date offset {} is not a whole number of minutes".format(offset)
        )

    # Records store the UTC instant and rebuild the local time from it, so
    # both have to be representable.
    try:
        i.creation_date.astimezone(timezone.utc).astimezone(timezone(offset))
    except (OverflowError, ValueError) as e:
        raise InvalidInvoice(
            "creation date {} is out of range: {}".format(i.creation_date, e)
        ) from e
