from __future__ import annotations

from datetime import UTC, date, datetime
from threading import RLock
from typing import Dict, List, Optional, Protocol

from ..domain.log_models import Challenge, DailyLog, DailyLogCreate
from .mongo import get_database, mongo_enabled, new_id


class DuplicateLogError(ValueError):
    """A log already exists for this user and date."""


class DailyLogStore(Protocol):
    def list(self, user_id: Optional[str] = None, public_only: bool = False, limit: int = 10) -> List[DailyLog]: ...

    def create(self, user_id: str, payload: DailyLogCreate) -> DailyLog: ...

    def get(self, log_id: str) -> Optional[DailyLog]: ...

    def get_for_date(self, user_id: str, day: date) -> Optional[DailyLog]: ...

    def save(self, log: DailyLog) -> DailyLog: ...


def build_log(user_id: str, payload: DailyLogCreate) -> DailyLog:
    now = datetime.now(UTC)
    return DailyLog(
        id=new_id(),
        user_id=user_id,
        date=payload.date,
        challenges=[
            Challenge(id=f"challenge-{index}", text=text.strip())
            for index, text in enumerate(payload.challenges)
            if text and text.strip()
        ],
        is_public=payload.is_public,
        created_at=now,
        updated_at=now,
    )


class InMemoryDailyLogStore:
    def __init__(self) -> None:
        self._logs: Dict[str, DailyLog] = {}
        self._lock = RLock()

    def list(self, user_id: Optional[str] = None, public_only: bool = False, limit: int = 10) -> List[DailyLog]:
        with self._lock:
            out = [
                log.model_copy(deep=True)
                for log in self._logs.values()
                if (not public_only or log.is_public) and (user_id is None or log.user_id == user_id)
            ]
        out.sort(key=lambda log: log.date, reverse=True)
        return out[: max(0, limit)]

    def create(self, user_id: str, payload: DailyLogCreate) -> DailyLog:
        with self._lock:
            if any(log.user_id == user_id and log.date == payload.date for log in self._logs.values()):
                raise DuplicateLogError("Log already exists for this date")
            log = build_log(user_id, payload)
            self._logs[log.id] = log
            return log.model_copy(deep=True)

    def get(self, log_id: str) -> Optional[DailyLog]:
        with self._lock:
            log = self._logs.get(log_id)
            return log.model_copy(deep=True) if log else None

    def get_for_date(self, user_id: str, day: date) -> Optional[DailyLog]:
        with self._lock:
            for log in self._logs.values():
                if log.user_id == user_id and log.date == day:
                    return log.model_copy(deep=True)
        return None

    def save(self, log: DailyLog) -> DailyLog:
        with self._lock:
            if log.id not in self._logs:
                raise KeyError("Log not found")
            stored = log.model_copy(deep=True, update={"updated_at": datetime.now(UTC)})
            self._logs[log.id] = stored
            return stored.model_copy(deep=True)


_store: DailyLogStore | None = None


def get_log_store() -> DailyLogStore:
    global _store
    if _store is not None:
        return _store
    if mongo_enabled():
        db = get_database()
        if db is not None:
            from .log_store_mongo import MongoDailyLogStore

            _store = MongoDailyLogStore(db)
            return _store
    _store = InMemoryDailyLogStore()
    return _store


def reset_log_store() -> None:
    global _store
    _store = None
