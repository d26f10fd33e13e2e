"""
Chat server entry point.
"""
import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from backend import create_backend
from config import get_config
from core.state import active_turns
from server import app, set_backend
from server.logging_config import setup_logging

# Initialize logging before anything else
setup_logging()
logger = logging.getLogger(__name__)

# Constants
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the model backend for the lifetime of the app."""
    config = get_config()

    logger.info("Starting chat server")
    logger.info("Provider: %s", config.provider)
    logger.info("Fallback model: %s", config.default_model)
    logger.info("Catalog models: %d", len(config.models))

    set_backend(create_backend(system_prompt=config.chat.system_prompt))
    logger.info("Model backend ready")

    yield

    logger.info("Cancelling in-flight turns...")
    active_turns.clear()
    set_backend(None)


app.router.lifespan_context = lifespan


def main() -> None:
    """Start the chat server."""
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = int(os.environ.get("PORT", str(DEFAULT_PORT)))

    logger.info("Server listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
