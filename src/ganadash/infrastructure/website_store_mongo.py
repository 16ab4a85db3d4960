from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..domain.website_models import Website, WebsiteUpsert
from .website_store import SlugTakenError, normalize_slug


class MongoWebsiteStore:
    def __init__(self, db: Database) -> None:
        self._websites = db["websites"]
        self._websites.create_index("slug", unique=True)
        self._websites.create_index("user_id")

    def list_for_user(self, user_id: str) -> List[Website]:
        cursor = self._websites.find({"user_id": user_id}).sort("updated_at", DESCENDING)
        return [self._to_website(doc) for doc in cursor]

    def get_by_slug(self, slug: str) -> Optional[Website]:
        doc = self._websites.find_one({"slug": normalize_slug(slug)})
        return self._to_website(doc) if doc else None

    def upsert(self, user_id: str, payload: WebsiteUpsert) -> Tuple[Website, bool]:
        slug = normalize_slug(payload.slug)
        existing = self._websites.find_one({"slug": slug}, {"user_id": 1})
        if existing and existing.get("user_id") != user_id:
            raise SlugTakenError("Slug already taken")
        now = datetime.now(UTC)
        fields: Dict[str, Any] = {
            "title": payload.title.strip(),
            "components": [c.model_dump() for c in payload.components],
            "updated_at": now,
        }
        if payload.custom_domain is not None:
            fields["custom_domain"] = payload.custom_domain
        try:
            doc = self._websites.find_one_and_update(
                {"user_id": user_id, "slug": slug},
                {
                    "$set": fields,
                    "$setOnInsert": {"created_at": now, "deployment_status": "pending"},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            # Another user claimed the slug between the lookup and the upsert.
            raise SlugTakenError("Slug already taken") from exc
        return self._to_website(doc), existing is None

    def delete(self, user_id: str, slug: str) -> bool:
        result = self._websites.delete_one({"user_id": user_id, "slug": normalize_slug(slug)})
        return result.deleted_count > 0

    def _to_website(self, doc: Dict[str, Any]) -> Website:
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return Website.model_validate(data)
