"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from webaudit.api import app

    uvicorn webaudit.api:app --reload
"""

from webaudit.api.app import app

__all__ = ["app"]
