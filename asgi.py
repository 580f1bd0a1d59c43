"""
asgi.py -- ASGI entry point for Mosifra.

Run with:  uvicorn asgi:app --reload

Importing api.main validates Settings; a missing JWT_SECRET or REDIS_URL
stops the server here, before any request is accepted.
"""

from api.main import app

__all__ = ["app"]
