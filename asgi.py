"""
asgi.py -- Application assembly for Gatehouse.

The ASGI entry point servers load. api/main.py owns the app; this module
only re-exports it so deployment commands stay stable if more routers are
mounted later.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
