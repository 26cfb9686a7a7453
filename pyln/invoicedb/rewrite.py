"""Rewrite the KV layer's queries for the database they run on.

Queries are written once, in the sqlite3 dialect with `?` placeholders, and
translated for the other backends at startup.
"""
import logging
import re


log = logging.getLogger("KvDb")


class Rewriter(object):

    def rewrite_types(self, query, mapping):
        for old, new in mapping.items():
            query = re.sub(old, new, query)
        return query

    def rewrite_single(self, query):
        return query

    def rewrite(self, queries):
        rewritten = {}
        for name, org in queries.items():
            rewritten[name] = self.rewrite_single(org)
            log.debug("Rewritten statement\n\tfrom %s\n\t  to %s", org, rewritten[name])
        return rewritten


class Sqlite3Rewriter(Rewriter):
    pass


class PostgresRewriter(Rewriter):
    def rewrite_single(self, q):
        # psycopg2 uses the `format` paramstyle
        query = q.replace('?', '%s')

        typemapping = {
            r'\bINTEGER PRIMARY KEY\b': 'BIGSERIAL PRIMARY KEY',
            r'\bINTEGER\b': 'BIGINT',
            r'\bBLOB\b': 'BYTEA',
        }

        return self.rewrite_types(query, typemapping)


rewriters = {
    "sqlite3": Sqlite3Rewriter(),
    "postgres": PostgresRewriter(),
}
