"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from knowledgebase.api import app

    uvicorn knowledgebase.api:app --reload
"""

from knowledgebase.api.app import app

__all__ = ["app"]
