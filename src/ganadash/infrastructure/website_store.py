from __future__ import annotations

from datetime import UTC, datetime
from threading import RLock
from typing import Dict, List, Optional, Protocol, Tuple

from ..domain.website_models import Website, WebsiteUpsert
from .mongo import get_database, mongo_enabled, new_id


class SlugTakenError(ValueError):
    """The slug is already owned by another user."""


class WebsiteStore(Protocol):
    def list_for_user(self, user_id: str) -> List[Website]: ...

    def get_by_slug(self, slug: str) -> Optional[Website]: ...

    def upsert(self, user_id: str, payload: WebsiteUpsert) -> Tuple[Website, bool]: ...

    def delete(self, user_id: str, slug: str) -> bool: ...


def normalize_slug(slug: str) -> str:
    return (slug or "").strip().lower()


class InMemoryWebsiteStore:
    def __init__(self) -> None:
        self._by_slug: Dict[str, Website] = {}
        self._lock = RLock()

    def list_for_user(self, user_id: str) -> List[Website]:
        with self._lock:
            out = [w.model_copy(deep=True) for w in self._by_slug.values() if w.user_id == user_id]
        return sorted(out, key=lambda w: w.updated_at, reverse=True)

    def get_by_slug(self, slug: str) -> Optional[Website]:
        with self._lock:
            site = self._by_slug.get(normalize_slug(slug))
            return site.model_copy(deep=True) if site else None

    def upsert(self, user_id: str, payload: WebsiteUpsert) -> Tuple[Website, bool]:
        slug = normalize_slug(payload.slug)
        now = datetime.now(UTC)
        with self._lock:
            existing = self._by_slug.get(slug)
            if existing and existing.user_id != user_id:
                raise SlugTakenError("Slug already taken")
            if existing:
                existing.title = payload.title.strip()
                existing.components = list(payload.components)
                if payload.custom_domain is not None:
                    existing.custom_domain = payload.custom_domain
                existing.updated_at = now
                return existing.model_copy(deep=True), False
            site = Website(
                id=new_id(),
                user_id=user_id,
                slug=slug,
                title=payload.title.strip(),
                components=list(payload.components),
                custom_domain=payload.custom_domain,
                created_at=now,
                updated_at=now,
            )
            self._by_slug[slug] = site
            return site.model_copy(deep=True), True

    def delete(self, user_id: str, slug: str) -> bool:
        slug = normalize_slug(slug)
        with self._lock:
            site = self._by_slug.get(slug)
            if not site or site.user_id != user_id:
                return False
            del self._by_slug[slug]
            return True


_store: WebsiteStore | None = None


def get_website_store() -> WebsiteStore:
    global _store
    if _store is not None:
        return _store
    if mongo_enabled():
        db = get_database()
        if db is not None:
            from .website_store_mongo import MongoWebsiteStore

            _store = MongoWebsiteStore(db)
            return _store
    _store = InMemoryWebsiteStore()
    return _store


def reset_website_store() -> None:
    global _store
    _store = None
