from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ...security.auth import User
from ...security.rate_limit import enforce_rate_limit
from ...security.rbac import Permission, require_permission
from ...services.content_ai import ContentFormatError, generate_full_website, generate_section
from ...services.llm import LLMError
from ...services.model_router import NoProviderAvailable

logger = logging.getLogger("ganadash.api.content")

router = APIRouter(tags=["content"])


class ContentRequest(BaseModel):
    type: Optional[Literal["hero", "about", "products", "contact"]] = None
    description: str = ""
    business_type: Optional[str] = None
    tone: Optional[Literal["professional", "casual", "creative", "friendly"]] = None
    full: bool = Field(default=False, description="Generate all four sections")


@router.post("/generate-content")
def generate_content(
    body: ContentRequest,
    user: User = Depends(require_permission(Permission.AI_ASSIST)),
) -> dict:
    description = body.description.strip()
    if not description:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Description is required")
    if not body.full and not body.type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Type is required for single section generation")
    enforce_rate_limit(
        "generate_content",
        user.user_id,
        detail="Too many content requests. Please slow down.",
        limit_env="CONTENT_LIMIT",
        window_env="CONTENT_WINDOW_SEC",
        default_limit=10,
        default_window_seconds=60,
    )
    try:
        if body.full:
            content = generate_full_website(description, body.business_type, body.tone)
        else:
            content = generate_section(body.type, description, body.business_type, body.tone)
    except NoProviderAvailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="AI content generation is not configured")
    except ContentFormatError as exc:
        logger.warning("Unusable model output for %s: %s", body.type or "full site", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="AI returned content in an unexpected format")
    except LLMError:
        logger.exception("Content generation failed")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to generate content")
    return {"success": True, "content": content}
