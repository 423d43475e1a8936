"""
Auth service ASGI entry point.

Run with:
    uvicorn asgi:app --port 6001 --reload
"""

from app import create_app

app = create_app()
