from __future__ import annotations

import re
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from ..domain.job_models import JobApplication, JobApplicationCreate, JobFilters
from .job_store import build_job, sanitize_changes
from .mongo import is_valid_id


class MongoJobStore:
    def __init__(self, db: Database) -> None:
        self._jobs = db["job_applications"]
        self._jobs.create_index([("user_id", ASCENDING), ("status", ASCENDING)])
        self._jobs.create_index([("user_id", ASCENDING), ("application_date", DESCENDING)])
        self._jobs.create_index([("user_id", ASCENDING), ("company", ASCENDING)])

    def list(self, user_id: str, filters: JobFilters, limit: int = 50, offset: int = 0) -> Tuple[List[JobApplication], int]:
        query: Dict[str, Any] = {"user_id": user_id}
        if filters.status:
            query["status"] = filters.status.value
        if filters.priority:
            query["priority"] = filters.priority.value
        if filters.company:
            query["company"] = {"$regex": re.escape(filters.company), "$options": "i"}
        cursor = self._jobs.find(query).sort([("application_date", DESCENDING), ("_id", DESCENDING)]).skip(offset).limit(limit)
        jobs = [self._to_job(doc) for doc in cursor]
        return jobs, int(self._jobs.count_documents(query))

    def create(self, user_id: str, payload: JobApplicationCreate) -> JobApplication:
        job = build_job(user_id, payload)
        doc = job.model_dump(mode="python", exclude={"id"})
        doc["_id"] = ObjectId(job.id)
        self._jobs.insert_one(self._encode(doc))
        return job

    def get(self, user_id: str, job_id: str) -> Optional[JobApplication]:
        if not is_valid_id(job_id):
            return None
        doc = self._jobs.find_one({"_id": ObjectId(job_id), "user_id": user_id})
        return self._to_job(doc) if doc else None

    def update(self, user_id: str, job_id: str, changes: Dict[str, Any]) -> Optional[JobApplication]:
        if not is_valid_id(job_id):
            return None
        now = datetime.now(UTC)
        fields = self._encode(sanitize_changes(changes))
        fields.update({"last_updated": now, "updated_at": now})
        doc = self._jobs.find_one_and_update(
            {"_id": ObjectId(job_id), "user_id": user_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_job(doc) if doc else None

    def delete(self, user_id: str, job_id: str) -> bool:
        if not is_valid_id(job_id):
            return False
        result = self._jobs.delete_one({"_id": ObjectId(job_id), "user_id": user_id})
        return result.deleted_count > 0

    def list_applied_on(self, user_id: str, day: date) -> List[JobApplication]:
        start = datetime.combine(day, time.min, tzinfo=UTC)
        query = {"user_id": user_id, "application_date": {"$gte": start, "$lt": start + timedelta(days=1)}}
        return [self._to_job(doc) for doc in self._jobs.find(query).sort("application_date", ASCENDING)]

    @staticmethod
    def _encode(doc: Dict[str, Any]) -> Dict[str, Any]:
        # Enums are stored by value.
        return {k: (v.value if hasattr(v, "value") else v) for k, v in doc.items()}

    def _to_job(self, doc: Dict[str, Any]) -> JobApplication:
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return JobApplication.model_validate(data)
