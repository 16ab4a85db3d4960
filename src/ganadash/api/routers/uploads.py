from __future__ import annotations

import base64
import os
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from ...security.auth import User
from ...security.rbac import Permission, require_permission

router = APIRouter(tags=["uploads"])

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
DEFAULT_MAX_BYTES = 5_000_000


def _max_bytes() -> int:
    try:
        return int(os.getenv("UPLOAD_MAX_BYTES", str(DEFAULT_MAX_BYTES)))
    except ValueError:
        return DEFAULT_MAX_BYTES


@router.post("/upload")
async def upload_image(
    image: Optional[UploadFile] = File(default=None),
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> dict:
    """Accept one image and hand it back as a ``data:`` URL for the site builder."""
    if image is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    content_type = (image.content_type or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only JPEG, PNG, and WebP are allowed.",
        )
    limit = _max_bytes()
    try:
        content = await image.read(limit + 1)
    finally:
        await image.close()
    if len(content) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {limit} bytes.",
        )
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")
    encoded = base64.b64encode(content).decode("ascii")
    return {"image_url": f"data:{content_type};base64,{encoded}", "success": True}
