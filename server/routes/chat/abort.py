"""
Abort chat turn endpoint.
"""

import logging

from fastapi import APIRouter, Depends

from ...dependencies import require_user
from ...state import get_turn_registry

logger = logging.getLogger(__name__)


router = APIRouter()


@router.post("/api/v1/chat/{chat_id}/abort")
async def abort_chat_route(chat_id: str, user_id: str = Depends(require_user)) -> bool:
    """Cancel the in-flight turn of a chat. Returns False when none was running."""
    aborted = get_turn_registry().abort(chat_id)
    if aborted:
        logger.info("Turn aborted for chat %s by %s", chat_id, user_id)
    return aborted
