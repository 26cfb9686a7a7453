from collections import OrderedDict
from typing import Any, Dict, Optional

import os


DEFAULT_DSN = "sqlite3://invoices.sqlite3"

# Engine options, keyed the way lightningd spells its own options. Callers
# may override them using the python spelling (`busy_timeout=1000`).
DB_CONFIG = OrderedDict({
    "busy-timeout": 5000,
    "journal-mode": "WAL",
})


def env(name, default=None):
    """Access to environment variables

    Falls back to `default` if the variable is not set at all; an empty
    value is returned as-is.

    """
    if name in os.environ:
        return os.environ[name]
    else:
        return default


def get_dsn(dsn: Optional[str] = None) -> str:
    """Pick the DSN to use: explicit, then `INVOICEDB_DSN`, then the default."""
    if dsn is not None:
        return dsn
    return env("INVOICEDB_DSN", DEFAULT_DSN)


def get_options(**overrides: Any) -> Dict[str, Any]:
    options = OrderedDict(DB_CONFIG)
    for k, v in overrides.items():
        name = k.replace('_', '-')
        if name not in options:
            raise ValueError("Unknown database option {}".format(k))
        options[name] = v
    return options
