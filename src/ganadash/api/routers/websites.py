from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...domain.website_models import WebsiteEnvelope, WebsiteList, WebsiteUpsert
from ...infrastructure.events import publish_event
from ...infrastructure.website_store import SlugTakenError, get_website_store, normalize_slug
from ...security.auth import User
from ...security.rbac import Permission, require_permission

router = APIRouter(prefix="/websites", tags=["websites"])

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@router.get("", response_model=WebsiteList)
def list_websites(user: User = Depends(require_permission(Permission.WORKSPACE_READ))) -> WebsiteList:
    return WebsiteList(websites=get_website_store().list_for_user(user.user_id))


@router.post("", response_model=WebsiteEnvelope)
def save_website(
    body: WebsiteUpsert,
    response: Response,
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> WebsiteEnvelope:
    slug = normalize_slug(body.slug)
    if not slug or not body.title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug and title are required")
    if not SLUG_RE.match(slug):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Slug may contain only lowercase letters, digits and single hyphens",
        )
    try:
        site, created = get_website_store().upsert(user.user_id, body)
    except SlugTakenError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already taken")
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    publish_event("website.saved", {"slug": site.slug, "user_id": user.user_id, "created": created})
    return WebsiteEnvelope(website=site)


@router.get("/{slug}", response_model=WebsiteEnvelope)
def get_website(slug: str) -> WebsiteEnvelope:
    """Public lookup used by the rendered site."""
    site = get_website_store().get_by_slug(slug)
    if not site:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Website not found")
    return WebsiteEnvelope(website=site)


@router.delete("/{slug}")
def delete_website(slug: str, user: User = Depends(require_permission(Permission.WORKSPACE_WRITE))) -> dict:
    if not get_website_store().delete(user.user_id, slug):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Website not found")
    return {"success": True, "message": "Website deleted"}
