"""
Chat streaming API server.

Serves chat turns as an SSE event stream together with chat retrieval,
turn abort and model listing endpoints.
"""

from .app import app
from .routes import register_routes
from .state import get_backend, set_backend

# Register all routes with the app
register_routes(app)

__all__ = ["app", "set_backend", "get_backend"]
