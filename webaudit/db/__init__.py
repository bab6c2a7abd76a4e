"""Database layer package.

Public re-exports so callers can write::

    from webaudit.db import get_connection, init_db
    from webaudit.db import audits
"""

from webaudit.db.connection import get_connection
from webaudit.db.migrations import init_db
from webaudit.db import audits

__all__ = ["get_connection", "init_db", "audits"]
