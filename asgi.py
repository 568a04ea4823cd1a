"""
asgi.py -- ASGI entry point for the Users API.

Run with:  uvicorn asgi:app --reload

Kept separate from api/main.py so process managers and the test suite import
the application the same way: from one module that does nothing else.
"""

from api.main import app

__all__ = ["app"]
