"""A small transactional key-value store with nested buckets.

The API mirrors what an embedded bucket store offers: a `DB` hands out
read-only (`view`) or read-write (`update`) transactions, a `Tx` gives
access to top-level buckets, and a `Bucket` holds byte keys mapping to
either byte values or nested buckets. Keys iterate in byte order.

Storage is delegated to a SQL `Backend`, see `backends.py`.
"""
from .backends import Backend, backend_from_dsn
from .errors import BucketExists, IncompatibleValue, StorageError, TxNotWritable
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import logging


ROOT_BUCKET = 0


def check_key(key: bytes) -> None:
    if not isinstance(key, bytes):
        raise TypeError("key must be bytes, {} received".format(type(key)))
    if len(key) == 0:
        raise ValueError("key must not be empty")


class Bucket(object):
    def __init__(self, tx: 'Tx', bucket_id: int, name: bytes) -> None:
        self.tx = tx
        self.id = bucket_id
        self.name = name

    def _query(self, name, *params):
        return self.tx.db.backend.query(self.tx.conn, name, params)

    def _bucket_id(self, name: bytes) -> Optional[int]:
        rows = self._query('get_bucket', self.id, name)
        return rows[0][0] if rows else None

    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value at `key`, or None if absent or a nested bucket."""
        self.tx.check_open()
        check_key(key)
        rows = self._query('get_value', self.id, key)
        return rows[0][0] if rows else None

    def put(self, key: bytes, value: bytes) -> None:
        self.tx.check_writable()
        check_key(key)
        if not isinstance(value, bytes):
            raise TypeError("value must be bytes, {} received".format(type(value)))
        if self.id == ROOT_BUCKET:
            raise IncompatibleValue("cannot store values outside of a bucket")
        if self._bucket_id(key) is not None:
            raise IncompatibleValue("{!r} is a bucket in {!r}".format(key, self.name))

        self.tx.db.backend.update(self.tx.conn, 'put_value', (self.id, key, value))

    def bucket(self, name: bytes) -> Optional['Bucket']:
        self.tx.check_open()
        check_key(name)
        bucket_id = self._bucket_id(name)
        if bucket_id is None:
            return None
        return Bucket(self.tx, bucket_id, name)

    def create_bucket(self, name: bytes) -> 'Bucket':
        self.tx.check_writable()
        check_key(name)
        if self._bucket_id(name) is not None:
            raise BucketExists("bucket {!r} already exists".format(name))
        if self.id != ROOT_BUCKET and self._query('get_value', self.id, name):
            raise IncompatibleValue("{!r} holds a value in {!r}".format(name, self.name))

        bucket_id = self.tx.db.backend.insert_bucket(self.tx.conn, self.id, name)
        self.tx.db.log.debug("Created bucket %r (id=%d) in %r", name, bucket_id, self.name)
        return Bucket(self.tx, bucket_id, name)

    def create_bucket_if_not_exists(self, name: bytes) -> 'Bucket':
        self.tx.check_writable()
        b = self.bucket(name)
        if b is not None:
            return b
        return self.create_bucket(name)

    def items(self) -> Iterator[Tuple[bytes, Optional[bytes]]]:
        """Iterate over `(key, value)` in ascending key order.

        Nested buckets are reported with a value of None.
        """
        self.tx.check_open()
        for k, v in self._query('items', self.id, self.id):
            yield k, v

    def __repr__(self):
        return "Bucket({!r})".format(self.name)


class Tx(object):
    def __init__(self, db: 'DB', conn, writable: bool) -> None:
        self.db = db
        self.conn = conn
        self.writable = writable
        self.closed = False
        self.root = Bucket(self, ROOT_BUCKET, b'')

    def check_open(self) -> None:
        if self.closed:
            raise StorageError("transaction has already been closed")

    def check_writable(self) -> None:
        self.check_open()
        if not self.writable:
            raise TxNotWritable("transaction is read-only")

    def bucket(self, name: bytes) -> Optional[Bucket]:
        return self.root.bucket(name)

    def create_bucket(self, name: bytes) -> Bucket:
        return self.root.create_bucket(name)

    def create_bucket_if_not_exists(self, name: bytes) -> Bucket:
        return self.root.create_bucket_if_not_exists(name)


class DB(object):
    """Entry point to the store.

    At most one `update` transaction runs at a time, any number of `view`
    transactions may run concurrently and each sees a consistent snapshot.
    """
    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self.log = logging.getLogger("KvDb")
        self.backend.setup()

    @classmethod
    def open(cls, dsn: Optional[str] = None, **options) -> 'DB':
        return cls(backend_from_dsn(dsn, **options))

    @contextmanager
    def _transaction(self, writable: bool) -> Iterator[Tx]:
        conn = self.backend.connection()
        self.backend.begin(conn, writable)
        tx = Tx(self, conn, writable)
        try:
            yield tx
        except BaseException:
            self.log.debug("Rolling back %s transaction", "write" if writable else "read")
            tx.closed = True
            self.backend.rollback(conn)
            raise

        tx.closed = True
        if not writable:
            # Nothing to persist, this just releases the snapshot
            self.backend.rollback(conn)
            return

        try:
            self.backend.commit(conn)
        except Exception:
            self.log.debug("Commit failed, rolling back")
            self.backend.rollback(conn)
            raise

    def update(self):
        """Run a read-write transaction, committing on success."""
        return self._transaction(writable=True)

    def view(self):
        """Run a read-only transaction."""
        return self._transaction(writable=False)

    def close(self) -> None:
        self.backend.close()

    def __repr__(self):
        return "DB({!r})".format(self.backend)
