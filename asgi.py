"""
asgi.py -- ASGI entrypoint for Stockkeeper.

Run with:  uvicorn asgi:app --reload

Requires SECRET_KEY (and usually DATABASE_URL) in the environment or .env.
"""

from api.main import app

__all__ = ["app"]
