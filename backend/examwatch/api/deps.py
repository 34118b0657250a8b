from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from ..realtime.registry import ConnectionRegistry


@dataclass
class CurrentUser:
    """Caller identity as forwarded by the authentication gateway"""
    id: str
    role: str = "student"

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return CurrentUser(id=x_user_id, role=(x_user_role or "student").lower())


def get_current_teacher(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    if not current_user.is_teacher:
        raise HTTPException(
            status_code=403, detail="The user doesn't have enough privileges"
        )
    return current_user


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry
