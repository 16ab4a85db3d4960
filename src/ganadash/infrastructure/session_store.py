from __future__ import annotations

from datetime import UTC, datetime
from threading import RLock
from typing import Dict, List, Optional, Protocol

from ..domain.session_models import ChatEntry, CollaborationSession, Participant
from .mongo import get_database, mongo_enabled, new_id


class SessionStore(Protocol):
    def create_session(
        self,
        name: str,
        created_by: str,
        language: str = "javascript",
        creator_name: str = "Creator",
        creator_email: str = "",
    ) -> CollaborationSession: ...

    def list_sessions_for_user(self, user_id: str) -> List[CollaborationSession]: ...

    def get_session(self, session_id: str) -> Optional[CollaborationSession]: ...

    def update_session(
        self,
        session_id: str,
        code: Optional[str] = None,
        language: Optional[str] = None,
        chat_entry: Optional[ChatEntry] = None,
    ) -> CollaborationSession: ...

    def add_participant(self, session_id: str, participant: Participant) -> CollaborationSession: ...

    def append_chat(self, session_id: str, entry: ChatEntry) -> CollaborationSession: ...

    def end_session(self, session_id: str) -> CollaborationSession: ...

    def count_sessions(self) -> int: ...


def _now() -> datetime:
    return datetime.now(UTC)


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, CollaborationSession] = {}
        self._lock = RLock()

    def _require(self, session_id: str) -> CollaborationSession:
        sess = self._sessions.get(session_id)
        if sess is None:
            raise KeyError("Session not found")
        return sess

    def create_session(
        self,
        name: str,
        created_by: str,
        language: str = "javascript",
        creator_name: str = "Creator",
        creator_email: str = "",
    ) -> CollaborationSession:
        with self._lock:
            now = _now()
            sess = CollaborationSession(
                id=new_id(),
                name=name,
                created_by=created_by,
                language=language or "javascript",
                participants=[Participant(id=created_by, name=creator_name, email=creator_email, joined_at=now)],
                created_at=now,
                updated_at=now,
            )
            self._sessions[sess.id] = sess
            return sess.model_copy(deep=True)

    def list_sessions_for_user(self, user_id: str) -> List[CollaborationSession]:
        with self._lock:
            out = [
                sess.model_copy(deep=True)
                for sess in self._sessions.values()
                if sess.is_active
                and (sess.created_by == user_id or any(p.id == user_id for p in sess.participants))
            ]
        # Newest first
        return sorted(out, key=lambda s: s.updated_at, reverse=True)

    def get_session(self, session_id: str) -> Optional[CollaborationSession]:
        with self._lock:
            sess = self._sessions.get(session_id)
            return sess.model_copy(deep=True) if sess else None

    def update_session(
        self,
        session_id: str,
        code: Optional[str] = None,
        language: Optional[str] = None,
        chat_entry: Optional[ChatEntry] = None,
    ) -> CollaborationSession:
        with self._lock:
            sess = self._require(session_id)
            if code is not None:
                sess.code = code
            if language:
                sess.language = language
            if chat_entry is not None:
                sess.chat_history.append(chat_entry)
            sess.updated_at = _now()
            return sess.model_copy(deep=True)

    def add_participant(self, session_id: str, participant: Participant) -> CollaborationSession:
        with self._lock:
            sess = self._require(session_id)
            if not any(p.id == participant.id for p in sess.participants):
                sess.participants.append(participant)
                sess.updated_at = _now()
            return sess.model_copy(deep=True)

    def append_chat(self, session_id: str, entry: ChatEntry) -> CollaborationSession:
        return self.update_session(session_id, chat_entry=entry)

    def end_session(self, session_id: str) -> CollaborationSession:
        with self._lock:
            sess = self._require(session_id)
            sess.is_active = False
            sess.updated_at = _now()
            return sess.model_copy(deep=True)

    def count_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)


_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    global _store
    if _store is not None:
        return _store
    if mongo_enabled():
        db = get_database()
        if db is not None:
            from .session_store_mongo import MongoSessionStore

            _store = MongoSessionStore(db)
            return _store
    _store = InMemorySessionStore()
    return _store


def reset_session_store() -> None:
    global _store
    _store = None
