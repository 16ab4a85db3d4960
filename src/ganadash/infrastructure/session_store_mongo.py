from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from ..domain.session_models import ChatEntry, CollaborationSession, Participant
from .mongo import is_valid_id


class MongoSessionStore:
    def __init__(self, db: Database) -> None:
        self._sessions = db["collaboration_sessions"]
        self._sessions.create_index("created_by")
        self._sessions.create_index("participants.id")
        self._sessions.create_index([("updated_at", DESCENDING)])

    def create_session(
        self,
        name: str,
        created_by: str,
        language: str = "javascript",
        creator_name: str = "Creator",
        creator_email: str = "",
    ) -> CollaborationSession:
        now = self._now()
        doc: Dict[str, Any] = {
            "name": name,
            "created_by": created_by,
            "participants": [{"id": created_by, "name": creator_name, "email": creator_email, "joined_at": now}],
            "code": "",
            "language": language or "javascript",
            "files": [],
            "chat_history": [],
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        result = self._sessions.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._to_session(doc)

    def list_sessions_for_user(self, user_id: str) -> List[CollaborationSession]:
        cursor = self._sessions.find(
            {"$or": [{"created_by": user_id}, {"participants.id": user_id}], "is_active": True}
        ).sort("updated_at", DESCENDING)
        return [self._to_session(doc) for doc in cursor]

    def get_session(self, session_id: str) -> Optional[CollaborationSession]:
        if not is_valid_id(session_id):
            return None
        doc = self._sessions.find_one({"_id": ObjectId(session_id)})
        return self._to_session(doc) if doc else None

    def update_session(
        self,
        session_id: str,
        code: Optional[str] = None,
        language: Optional[str] = None,
        chat_entry: Optional[ChatEntry] = None,
    ) -> CollaborationSession:
        update: Dict[str, Any] = {"$set": {"updated_at": self._now()}}
        if code is not None:
            update["$set"]["code"] = code
        if language:
            update["$set"]["language"] = language
        if chat_entry is not None:
            update["$push"] = {"chat_history": chat_entry.model_dump()}
        return self._find_and_update(session_id, {}, update)

    def add_participant(self, session_id: str, participant: Participant) -> CollaborationSession:
        # The filter makes the push a no-op for users already listed.
        try:
            return self._find_and_update(
                session_id,
                {"participants.id": {"$ne": participant.id}},
                {"$push": {"participants": participant.model_dump()}, "$set": {"updated_at": self._now()}},
            )
        except KeyError:
            existing = self.get_session(session_id)
            if existing is None:
                raise
            return existing

    def append_chat(self, session_id: str, entry: ChatEntry) -> CollaborationSession:
        return self.update_session(session_id, chat_entry=entry)

    def end_session(self, session_id: str) -> CollaborationSession:
        return self._find_and_update(session_id, {}, {"$set": {"is_active": False, "updated_at": self._now()}})

    def count_sessions(self) -> int:
        return int(self._sessions.count_documents({}))

    def _find_and_update(self, session_id: str, extra_filter: Dict[str, Any], update: Dict[str, Any]) -> CollaborationSession:
        if not is_valid_id(session_id):
            raise KeyError("Session not found")
        query = {"_id": ObjectId(session_id), **extra_filter}
        doc = self._sessions.find_one_and_update(query, update, return_document=ReturnDocument.AFTER)
        if not doc:
            raise KeyError("Session not found")
        return self._to_session(doc)

    def _now(self) -> datetime:
        return datetime.now(UTC)

    def _to_session(self, doc: Dict[str, Any]) -> CollaborationSession:
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return CollaborationSession.model_validate(data)
