"""
API gateway ASGI entry point.

Run with:
    uvicorn gateway_asgi:app --port 6000 --reload
"""

from gateway.app import create_gateway_app

app = create_gateway_app()
