class InvoiceDbError(Exception):
    """Base class for everything the invoice database raises on its own."""


class InvalidInvoice(InvoiceDbError, ValueError):
    """The invoice was rejected before touching the database."""


class DuplicateInvoice(InvoiceDbError):
    def __init__(self, payment_hash):
        super().__init__(
            "invoice with payment_hash {} already exists".format(payment_hash)
        )
        self.payment_hash = payment_hash


class DuplicatePaymentHash(DuplicateInvoice):
    """The payment hash index already has an entry for this hash."""


class InvoiceNotFound(InvoiceDbError, KeyError):
    def __init__(self, payment_hash):
        super().__init__("unable to locate invoice for {}".format(payment_hash))
        self.payment_hash = payment_hash

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]


class NoInvoicesCreated(InvoiceDbError):
    def __init__(self):
        super().__init__("there are no existing invoices")


class MalformedRecord(InvoiceDbError, ValueError):
    """A stored invoice record could not be decoded."""


class StorageError(InvoiceDbError):
    """Misuse of the key-value layer, or a broken configuration."""


class TxNotWritable(StorageError):
    pass


class BucketExists(StorageError):
    pass


class IncompatibleValue(StorageError):
    pass


class UnsupportedBackend(StorageError):
    pass
