"""
Request dependencies shared by routes.
"""

from fastapi import Header, HTTPException

USER_ID_HEADER = "X-User-Id"


async def require_user(x_user_id: str | None = Header(None, alias=USER_ID_HEADER)) -> str:
    """Return the authenticated user id or reject the request with 401."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id.strip()
