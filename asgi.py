"""
asgi.py -- Application assembly for msid-api.

Settings are read from the environment (and .env) here, once, when the
server imports this module.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app

app = create_app()
