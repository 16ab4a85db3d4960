from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..domain.log_models import DailyLog, DailyLogCreate
from .log_store import DuplicateLogError, build_log
from .mongo import is_valid_id


class MongoDailyLogStore:
    def __init__(self, db: Database) -> None:
        self._logs = db["daily_logs"]
        self._logs.create_index([("user_id", ASCENDING), ("date", DESCENDING)], unique=True)
        self._logs.create_index([("is_public", ASCENDING), ("date", DESCENDING)])

    def list(self, user_id: Optional[str] = None, public_only: bool = False, limit: int = 10) -> List[DailyLog]:
        query: Dict[str, Any] = {}
        if public_only:
            query["is_public"] = True
        if user_id is not None:
            query["user_id"] = user_id
        cursor = self._logs.find(query).sort("date", DESCENDING).limit(max(0, limit))
        return [self._to_log(doc) for doc in cursor]

    def create(self, user_id: str, payload: DailyLogCreate) -> DailyLog:
        log = build_log(user_id, payload)
        try:
            self._logs.insert_one(self._to_doc(log))
        except DuplicateKeyError as exc:
            raise DuplicateLogError("Log already exists for this date") from exc
        return log

    def get(self, log_id: str) -> Optional[DailyLog]:
        if not is_valid_id(log_id):
            return None
        doc = self._logs.find_one({"_id": ObjectId(log_id)})
        return self._to_log(doc) if doc else None

    def get_for_date(self, user_id: str, day: date) -> Optional[DailyLog]:
        doc = self._logs.find_one({"user_id": user_id, "date": day.isoformat()})
        return self._to_log(doc) if doc else None

    def save(self, log: DailyLog) -> DailyLog:
        stored = log.model_copy(deep=True, update={"updated_at": datetime.now(UTC)})
        result = self._logs.replace_one({"_id": ObjectId(log.id)}, self._to_doc(stored))
        if result.matched_count == 0:
            raise KeyError("Log not found")
        return stored

    def _to_doc(self, log: DailyLog) -> Dict[str, Any]:
        doc = log.model_dump(exclude={"id"})
        # BSON has no plain date type; ISO strings keep the sort order.
        doc["date"] = log.date.isoformat()
        doc["_id"] = ObjectId(log.id)
        return doc

    def _to_log(self, doc: Dict[str, Any]) -> DailyLog:
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return DailyLog.model_validate(data)
