from __future__ import annotations

from datetime import UTC, date, datetime
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..domain.job_models import JobApplication, JobApplicationCreate, JobFilters
from .mongo import get_database, mongo_enabled, new_id


# Fields a client may never overwrite through an update.
PROTECTED_FIELDS = frozenset({"id", "_id", "user_id", "created_at", "updated_at", "application_date"})


class JobStore(Protocol):
    def list(self, user_id: str, filters: JobFilters, limit: int = 50, offset: int = 0) -> Tuple[List[JobApplication], int]: ...

    def create(self, user_id: str, payload: JobApplicationCreate) -> JobApplication: ...

    def get(self, user_id: str, job_id: str) -> Optional[JobApplication]: ...

    def update(self, user_id: str, job_id: str, changes: Dict[str, Any]) -> Optional[JobApplication]: ...

    def delete(self, user_id: str, job_id: str) -> bool: ...

    def list_applied_on(self, user_id: str, day: date) -> List[JobApplication]: ...


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def build_job(user_id: str, payload: JobApplicationCreate) -> JobApplication:
    now = datetime.now(UTC)
    return JobApplication(
        id=new_id(),
        user_id=user_id,
        company=payload.company.strip(),
        position=payload.position.strip(),
        status=payload.status,
        priority=payload.priority,
        application_date=now,
        last_updated=now,
        job_url=_clean(payload.job_url),
        description=_clean(payload.description),
        salary=payload.salary,
        location=_clean(payload.location),
        contact_email=(_clean(payload.contact_email) or "").lower() or None,
        notes=_clean(payload.notes),
        created_at=now,
        updated_at=now,
    )


def sanitize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
    for key in ("company", "position", "job_url", "description", "location", "notes"):
        if isinstance(out.get(key), str):
            out[key] = out[key].strip()
    if isinstance(out.get("contact_email"), str):
        out["contact_email"] = out["contact_email"].strip().lower()
    return out


class InMemoryJobStore:
    def __init__(self) -> None:
        self._jobs: Dict[str, JobApplication] = {}
        self._lock = RLock()

    def _matches(self, job: JobApplication, user_id: str, filters: JobFilters) -> bool:
        if job.user_id != user_id:
            return False
        if filters.status and job.status != filters.status:
            return False
        if filters.priority and job.priority != filters.priority:
            return False
        if filters.company and filters.company.lower() not in job.company.lower():
            return False
        return True

    def list(self, user_id: str, filters: JobFilters, limit: int = 50, offset: int = 0) -> Tuple[List[JobApplication], int]:
        with self._lock:
            matches = [j for j in self._jobs.values() if self._matches(j, user_id, filters)]
        matches.sort(key=lambda j: (j.application_date, j.id), reverse=True)
        page = matches[offset : offset + limit]
        return [j.model_copy(deep=True) for j in page], len(matches)

    def create(self, user_id: str, payload: JobApplicationCreate) -> JobApplication:
        job = build_job(user_id, payload)
        with self._lock:
            self._jobs[job.id] = job
            return job.model_copy(deep=True)

    def get(self, user_id: str, job_id: str) -> Optional[JobApplication]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job or job.user_id != user_id:
                return None
            return job.model_copy(deep=True)

    def update(self, user_id: str, job_id: str, changes: Dict[str, Any]) -> Optional[JobApplication]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job or job.user_id != user_id:
                return None
            now = datetime.now(UTC)
            data = job.model_dump()
            data.update(sanitize_changes(changes))
            data["last_updated"] = now
            data["updated_at"] = now
            updated = JobApplication.model_validate(data)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, user_id: str, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job or job.user_id != user_id:
                return False
            del self._jobs[job_id]
            return True

    def list_applied_on(self, user_id: str, day: date) -> List[JobApplication]:
        with self._lock:
            matches = [
                j.model_copy(deep=True)
                for j in self._jobs.values()
                if j.user_id == user_id and j.application_date.astimezone(UTC).date() == day
            ]
        matches.sort(key=lambda j: (j.application_date, j.id))
        return matches


_store: JobStore | None = None


def get_job_store() -> JobStore:
    global _store
    if _store is not None:
        return _store
    if mongo_enabled():
        db = get_database()
        if db is not None:
            from .job_store_mongo import MongoJobStore

            _store = MongoJobStore(db)
            return _store
    _store = InMemoryJobStore()
    return _store


def reset_job_store() -> None:
    global _store
    _store = None
