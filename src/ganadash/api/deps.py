from __future__ import annotations

"""Small request helpers shared by the routers."""

from fastapi import HTTPException, Request, status

from ..infrastructure.mongo import is_valid_id


def require_object_id(value: str, label: str = "ID") -> str:
    if not is_valid_id(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label}")
    return value


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
