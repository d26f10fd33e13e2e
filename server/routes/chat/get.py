"""
Get chat endpoint.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ...dependencies import require_user
from ...state import get_store


router = APIRouter()


@router.get("/api/v1/chat/{chat_id}")
async def get_chat_route(chat_id: str, user_id: str = Depends(require_user)) -> dict[str, Any]:
    """Return the persisted transcript of a chat owned by the user."""
    messages = await get_store().load(chat_id, user_id)
    if messages is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"id": chat_id, "messages": [m.to_wire() for m in messages]}
