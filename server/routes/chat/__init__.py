"""
Chat routes.
"""

from fastapi import FastAPI

from . import abort, get, send


def register_routes(app: FastAPI) -> None:
    """Register all chat routes with the FastAPI application."""
    app.include_router(send.router)
    app.include_router(abort.router)
    app.include_router(get.router)
