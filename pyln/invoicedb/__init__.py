from .codec import decode_invoice, encode_invoice
from .errors import (
    BucketExists,
    DuplicateInvoice,
    DuplicatePaymentHash,
    IncompatibleValue,
    InvalidInvoice,
    InvoiceDbError,
    InvoiceNotFound,
    MalformedRecord,
    NoInvoicesCreated,
    StorageError,
    TxNotWritable,
    UnsupportedBackend,
)
from .index import PaymentHashIndex
from .kvdb import DB
from .primitives import (
    ContractTerm, Invoice, PaymentHash, Preimage, MAX_MEMO_SIZE, MAX_RECEIPT_SIZE
)
from .store import InvoiceDB

__version__ = "0.1.0"

__all__ = [
    "InvoiceDB",
    "Invoice",
    "ContractTerm",
    "Preimage",
    "PaymentHash",
    "PaymentHashIndex",
    "DB",
    "encode_invoice",
    "decode_invoice",
    "MAX_MEMO_SIZE",
    "MAX_RECEIPT_SIZE",
    "InvoiceDbError",
    "InvalidInvoice",
    "DuplicateInvoice",
    "DuplicatePaymentHash",
    "InvoiceNotFound",
    "NoInvoicesCreated",
    "MalformedRecord",
    "StorageError",
    "TxNotWritable",
    "BucketExists",
    "IncompatibleValue",
    "UnsupportedBackend",
    "__version__",
]
