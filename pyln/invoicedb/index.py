from .errors import DuplicatePaymentHash, InvoiceNotFound, MalformedRecord, StorageError
from .kvdb import Bucket
from .primitives import PaymentHash
from typing import Union

import struct


# Name of key which houses the auto-incrementing invoice ID. Each inserted
# invoice bumps it by one. It lives within the payment hash index bucket.
NUM_INVOICES_KEY = b'nik'

MAX_INVOICE_NUM = 0xFFFFFFFF


def invoice_key(num: int) -> bytes:
    """Primary key of an invoice: the big-endian invoice number."""
    return struct.pack('>I', num)


def invoice_num(key: bytes) -> int:
    if len(key) != 4:
        raise ValueError("invoice key must be 4 bytes, got {}".format(len(key)))
    return struct.unpack('>I', key)[0]


class PaymentHashIndex(object):
    """Secondary index from payment hash to invoice number.

    The index is injective: every payment hash maps to at most one invoice.
    It also stores the next invoice number to hand out.
    """
    def __init__(self, bucket: Bucket) -> None:
        self.bucket = bucket

    def _decode(self, key: bytes, value: bytes) -> int:
        try:
            return invoice_num(value)
        except ValueError as e:
            raise MalformedRecord("index entry {}: {}".format(key.hex(), e)) from e

    def next_identifier(self) -> int:
        counter = self.bucket.get(NUM_INVOICES_KEY)
        if counter is None:
            return 0
        return self._decode(NUM_INVOICES_KEY, counter)

    def reserve(self, payment_hash: Union[bytes, PaymentHash], num: int) -> None:
        payment_hash = PaymentHash(payment_hash)
        if self.bucket.get(payment_hash.to_bytes()) is not None:
            raise DuplicatePaymentHash(payment_hash.hex())
        self.bucket.put(payment_hash.to_bytes(), invoice_key(num))

    def advance_counter(self, num: int) -> None:
        if num >= MAX_INVOICE_NUM:
            raise StorageError("invoice number space exhausted at {}".format(num))
        self.bucket.put(NUM_INVOICES_KEY, invoice_key(num + 1))

    def resolve(self, payment_hash: Union[bytes, PaymentHash]) -> int:
        payment_hash = PaymentHash(payment_hash)
        num = self.bucket.get(payment_hash.to_bytes())
        if num is None:
            raise InvoiceNotFound(payment_hash.hex())
        return self._decode(payment_hash.to_bytes(), num)
