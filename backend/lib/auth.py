"""
Caller identity for lesson endpoints

The lesson API does not authenticate; an upstream gateway is expected to
pass the learner identity in request headers.
"""
from typing import Optional

from fastapi import Header, HTTPException


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
):
    """
    Read the learner identity from request headers

    Returns:
        dict: {"id": ..., "name": ...}

    Raises:
        HTTPException: 401 if X-User-Id is missing
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header required")

    return {"id": x_user_id.strip(), "name": x_user_name}
