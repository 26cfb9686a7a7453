from datetime import datetime, timezone
from pyln.invoicedb import ContractTerm, Invoice, Preimage
from pyln.invoicedb.config import env

import hashlib


TEST_DEBUG = env("TEST_DEBUG", "0") == "1"
TEST_DB_PROVIDER = env("TEST_DB_PROVIDER", "sqlite3")

# A fixed creation date, so records are reproducible byte for byte.
CREATION_DATE = datetime(2017, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)


def make_preimage(seed) -> Preimage:
    """Deterministic preimage derived from `seed`."""
    return Preimage(hashlib.sha256(str(seed).encode()).digest())


def make_invoice(seed, value=1000, memo=b'', receipt=b'', settled=False,
                 creation_date=CREATION_DATE) -> Invoice:
    return Invoice(
        memo=memo,
        receipt=receipt,
        creation_date=creation_date,
        terms=ContractTerm(make_preimage(seed), value, settled),
    )


def only_one(arr):
    """Invoice listings come back as a list; often we expect a single entry
    """
    assert len(arr) == 1
    return arr[0]
