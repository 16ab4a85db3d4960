from __future__ import annotations

"""Role-based access control for dashboard routes."""
from enum import Enum
from typing import Callable, Set
from fastapi import Depends, HTTPException, status

from .auth import User, get_current_user


class Permission(str, Enum):
    WORKSPACE_READ = "workspace:read"
    WORKSPACE_WRITE = "workspace:write"
    AI_ASSIST = "ai:assist"
    RESERVATION_MANAGE = "reservation:manage"
    ADMIN = "admin:*"


_MEMBER = {Permission.WORKSPACE_READ, Permission.WORKSPACE_WRITE, Permission.AI_ASSIST}

ROLE_PERMISSIONS = {
    "viewer": {Permission.WORKSPACE_READ},
    "member": _MEMBER,
    "host": _MEMBER | {Permission.RESERVATION_MANAGE},
    "admin": {Permission.ADMIN},
}


def user_permissions(user: User) -> Set[Permission]:
    perms: Set[Permission] = set()
    for role in user.roles:
        perms |= ROLE_PERMISSIONS.get(role, set())
    return perms


def is_authorized(user: User, required: Permission) -> bool:
    perms = user_permissions(user)
    return Permission.ADMIN in perms or required in perms


def require_permission(required: Permission) -> Callable[[User], User]:
    """FastAPI dependency enforcing a single permission on a route."""

    def dependency(user: User = Depends(get_current_user)) -> User:
        if not is_authorized(user, required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return dependency
