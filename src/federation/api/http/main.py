"""ASGI entry point: ``uvicorn src.federation.api.http.main:app``."""

from src.federation.api.http.app import create_app

app = create_app()
