"""
Route registration for the chat API.
"""

from fastapi import FastAPI

from . import chat, health, models


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application."""
    app.include_router(health.router)
    app.include_router(models.router)
    chat.register_routes(app)
