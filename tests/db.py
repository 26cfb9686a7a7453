from pyln.invoicedb.config import env
from urllib.parse import urlparse, urlunparse

import logging
import os
import psycopg2  # type: ignore
import random
import string


class SqliteDbProvider(object):
    def __init__(self, directory: str) -> None:
        self.directory = directory

    def start(self) -> None:
        pass

    def get_dsn(self, directory: str, testname: str) -> str:
        path = os.path.join(directory, "invoices.sqlite3")
        return "sqlite3://" + path

    def stop(self) -> None:
        pass


class SystemPostgresDbProvider(object):
    """A DB provider that uses an externally controlled postgres instance.

    Every test gets its own, randomly named, database in the cluster given
    by the `INVOICEDB_TEST_POSTGRES_DSN` environment variable. The user in
    the DSN needs permission to create databases.

    """
    def __init__(self, directory):
        self.directory = directory
        self.dsn = env("INVOICEDB_TEST_POSTGRES_DSN")
        self.conn = None
        self.dbnames = []

    def start(self):
        if self.dsn is None:
            raise ValueError("INVOICEDB_TEST_POSTGRES_DSN must be set to test against postgres")
        self.conn = psycopg2.connect(self.dsn)
        # Required for CREATE DATABASE to work
        self.conn.set_isolation_level(psycopg2.extensions.ISOLATION_LEVEL_AUTOCOMMIT)

    def get_dsn(self, directory, testname):
        # Random suffix to avoid collisions on repeated tests
        nonce = "".join(
            random.choice(string.ascii_lowercase + string.digits) for _ in range(8)
        )
        dbname = "{}_{}".format(testname, nonce).lower()

        cur = self.conn.cursor()
        cur.execute("CREATE DATABASE {};".format(dbname))
        cur.close()
        self.dbnames.append(dbname)

        parts = urlparse(self.dsn)
        return urlunparse(parts._replace(path='/' + dbname))

    def stop(self):
        cur = self.conn.cursor()
        for dbname in self.dbnames:
            try:
                cur.execute("DROP DATABASE IF EXISTS {};".format(dbname))
            except psycopg2.Error:
                logging.exception("Could not drop test database %s", dbname)
        cur.close()
        self.conn.close()
