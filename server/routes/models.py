"""
Models endpoint - return the models a user can chat with.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from config import get_config
from core import extract_context_tokens

from ..dependencies import require_user
from ..state import get_access_control, get_catalog


router = APIRouter()


class ModelSummary(BaseModel):
    """Model identity and metadata."""
    id: str
    name: str
    profile_image_url: str | None = None
    context_window: int | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class ModelsResponse(BaseModel):
    """Response for models endpoint."""
    models: list[ModelSummary]
    default_model: str


@router.get("/api/v1/models")
async def list_models(user_id: str = Depends(require_user)) -> ModelsResponse:
    """
    List catalog models readable by the user.

    Returns:
        ModelsResponse with the models and the fallback model name
    """
    access = get_access_control()
    models = [
        ModelSummary(
            id=record.id,
            name=record.name,
            profile_image_url=record.meta.get("profile_image_url"),
            context_window=extract_context_tokens(record.meta),
            meta=record.meta,
        )
        for record in get_catalog().list()
        if access.can_read_model(user_id, record.id)
    ]

    return ModelsResponse(models=models, default_model=get_config().default_model)
