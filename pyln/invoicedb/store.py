from .codec import decode_invoice, encode_invoice
from .errors import DuplicateInvoice, InvoiceNotFound, NoInvoicesCreated
from .index import PaymentHashIndex, invoice_key, invoice_num
from .kvdb import DB, Bucket
from .primitives import Invoice, PaymentHash, validate_invoice
from typing import List, Optional, Union

import logging


# Bucket storing all invoices no matter their final state. Within it, each
# invoice is keyed by its invoice number, a monotonically increasing uint32.
INVOICE_BUCKET = b'invoices'

# Sub-bucket of INVOICE_BUCKET indexing all invoices by their payment hash,
# the sha256 of the payment preimage. Used to reject duplicates and to
# quickly find the invoice an incoming HTLC pays to.
INVOICE_INDEX_BUCKET = b'paymenthashes'


def fetch_invoice(invoices: Bucket, num: int, payment_hash: PaymentHash) -> Invoice:
    record = invoices.get(invoice_key(num))
    if record is None:
        raise InvoiceNotFound(payment_hash.hex())
    return decode_invoice(record)


class InvoiceDB(object):
    """Invoices of a node, persisted in a `DB`.

    Invoices are added when a payment is requested and settled once the
    payment arrives; they are never deleted. Every invoice must have a
    unique payment hash.
    """
    def __init__(self, db: DB) -> None:
        self.db = db
        self.log = logging.getLogger("InvoiceDB")

    @classmethod
    def open(cls, dsn: Optional[str] = None, **options) -> 'InvoiceDB':
        return cls(DB.open(dsn, **options))

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> 'InvoiceDB':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def add_invoice(self, i: Invoice) -> int:
        """Insert the invoice, returning its invoice number.

        If an invoice with the same payment hash already exists the
        insertion is rejected with `DuplicateInvoice`, and nothing is
        written.
        """
        validate_invoice(i)
        payment_hash = i.payment_hash
        record = encode_invoice(i)

        with self.db.update() as tx:
            invoices = tx.create_bucket_if_not_exists(INVOICE_BUCKET)
            index = PaymentHashIndex(
                invoices.create_bucket_if_not_exists(INVOICE_INDEX_BUCKET)
            )

            try:
                index.resolve(payment_hash)
            except InvoiceNotFound:
                pass
            else:
                raise DuplicateInvoice(payment_hash.hex())

            num = index.next_identifier()
            index.reserve(payment_hash, num)
            index.advance_counter(num)
            invoices.put(invoice_key(num), record)

        self.log.info("Added invoice %d for payment_hash %s (value=%d)",
                      num, payment_hash.hex(), i.terms.value)
        return num

    def lookup_invoice(self, payment_hash: Union[bytes, PaymentHash]) -> Invoice:
        """Find the invoice paying to `payment_hash`.

        Callers SHOULD check the contractual terms against the incoming
        payment before settling it.
        """
        payment_hash = PaymentHash(payment_hash)
        with self.db.view() as tx:
            invoices = tx.bucket(INVOICE_BUCKET)
            if invoices is None:
                raise InvoiceNotFound(payment_hash.hex())
            index = invoices.bucket(INVOICE_INDEX_BUCKET)
            if index is None:
                raise InvoiceNotFound(payment_hash.hex())

            num = PaymentHashIndex(index).resolve(payment_hash)
            return fetch_invoice(invoices, num, payment_hash)

    def fetch_all_invoices(self, pending_only: bool = False) -> List[Invoice]:
        """Return all invoices in invoice number order.

        With `pending_only` set, settled invoices are skipped.
        """
        result = []
        with self.db.view() as tx:
            invoices = tx.bucket(INVOICE_BUCKET)
            if invoices is None:
                raise NoInvoicesCreated()

            for k, v in invoices.items():
                # Nested buckets (the index) have no value, and anything
                # not keyed by an invoice number is not an invoice.
                if not v or len(k) != 4:
                    continue

                invoice = decode_invoice(v)
                if pending_only and invoice.terms.settled:
                    continue
                self.log.debug("Fetched invoice %d", invoice_num(k))
                result.append(invoice)

        return result

    def settle_invoice(self, payment_hash: Union[bytes, PaymentHash]) -> Invoice:
        """Mark the invoice paying to `payment_hash` as settled.

        Settling an already settled invoice is a no-op. Returns the settled
        invoice.
        """
        payment_hash = PaymentHash(payment_hash)
        with self.db.update() as tx:
            invoices = tx.bucket(INVOICE_BUCKET)
            if invoices is None:
                raise InvoiceNotFound(payment_hash.hex())
            index = invoices.bucket(INVOICE_INDEX_BUCKET)
            if index is None:
                raise InvoiceNotFound(payment_hash.hex())

            num = PaymentHashIndex(index).resolve(payment_hash)
            invoice = fetch_invoice(invoices, num, payment_hash)
            if invoice.terms.settled:
                self.log.debug("Invoice %d already settled", num)
                return invoice

            invoice.terms.settled = True
            invoices.put(invoice_key(num), encode_invoice(invoice))

        self.log.info("Settled invoice %d for payment_hash %s", num, payment_hash.hex())
        return invoice
