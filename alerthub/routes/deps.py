"""
Shared route dependencies.

Authentication is out of scope: the acting user is identified by the
X-User-Id header set by the gateway in front of this API.
"""

from typing import Optional

from fastapi import Header, HTTPException, status


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required"
        )
    return x_user_id.strip()


async def get_optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Same identity as get_current_user_id, for endpoints that also serve anonymous clients."""
    if not x_user_id or not x_user_id.strip():
        return None
    return x_user_id.strip()
