"""Database layer package.

Public re-exports so callers can write::

    from knowledgebase.db import get_connection, init_db
"""

from knowledgebase.db.connection import get_connection
from knowledgebase.db.migrations import init_db

__all__ = ["get_connection", "init_db"]
