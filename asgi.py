"""
asgi.py -- Application assembly for the NTC bus API.

Run with:  uvicorn asgi:app --reload

The ASGI server imports from here rather than api.main so that deployment
configuration does not depend on the internal package layout.
"""

from api.main import app

__all__ = ["app"]
