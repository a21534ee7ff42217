"""Caller identity.

Sessions and sign-in live in front of this service; by the time a request
arrives here the session layer has resolved the user and forwards the id
in the X-User-Id header.
"""

from fastapi import Header, HTTPException


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id
