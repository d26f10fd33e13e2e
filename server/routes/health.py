"""
Health check endpoint.

Reports whether turns can be served and how busy the process is.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from ..state import get_backend, get_catalog, get_turn_registry


router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    backend_configured: bool
    active_turns: int
    models: int


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report backend wiring, in-flight turns and catalog size."""
    backend_configured = get_backend() is not None
    return HealthResponse(
        status="ok" if backend_configured else "degraded",
        backend_configured=backend_configured,
        active_turns=len(get_turn_registry()),
        models=len(get_catalog().list()),
    )
