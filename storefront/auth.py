"""
Caller identity. Authentication happens upstream; the gateway forwards the
authenticated user id and role as headers.
"""
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

ADMIN_ROLE = "admin"


class CurrentUser(BaseModel):
    id: str
    is_admin: bool = False


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> CurrentUser:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    role = (x_user_role or "").strip().lower()
    return CurrentUser(id=x_user_id, is_admin=role == ADMIN_ROLE)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
