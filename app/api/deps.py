from typing import Optional

from fastapi import Header, HTTPException, status


async def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """
    Caller identity, set by the authenticating gateway in front of this service.
    Ownership of the target business is checked per route.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id.strip()
