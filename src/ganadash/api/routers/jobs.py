from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...domain.job_models import (
    JobApplication,
    JobApplicationCreate,
    JobApplicationUpdate,
    JobFilters,
    JobPage,
    JobPriority,
    JobStatus,
    Pagination,
    SuggestionRequest,
)
from ...infrastructure.job_store import get_job_store
from ...security.auth import User
from ...security.rbac import Permission, require_permission
from ...services.insights_ai import generate_job_insights, suggest_application_improvements
from ..deps import require_object_id

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _enum_or_none(enum_cls, value: Optional[str]):
    try:
        return enum_cls(value) if value else None
    except ValueError:
        return None


@router.get("", response_model=JobPage)
def list_jobs(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    priority: Optional[str] = None,
    company: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(require_permission(Permission.WORKSPACE_READ)),
) -> JobPage:
    filters = JobFilters(
        status=_enum_or_none(JobStatus, status_filter),
        priority=_enum_or_none(JobPriority, priority),
        company=(company or "").strip() or None,
    )
    jobs, total = get_job_store().list(user.user_id, filters, limit=limit, offset=offset)
    return JobPage(
        jobs=jobs,
        pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + limit < total),
    )


@router.post("", response_model=JobApplication, status_code=status.HTTP_201_CREATED)
def create_job(
    body: JobApplicationCreate,
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> JobApplication:
    if not body.company.strip() or not body.position.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Company and position are required")
    return get_job_store().create(user.user_id, body)


@router.get("/insights")
def job_insights(user: User = Depends(require_permission(Permission.WORKSPACE_READ))) -> dict:
    jobs, _ = get_job_store().list(user.user_id, JobFilters(), limit=50, offset=0)
    return {"insights": generate_job_insights(jobs)}


@router.post("/insights")
def job_suggestions(
    body: SuggestionRequest,
    user: User = Depends(require_permission(Permission.AI_ASSIST)),
) -> dict:
    company, position = body.company.strip(), body.position.strip()
    if not company or not position:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Company and position are required")
    return {"suggestions": suggest_application_improvements(company, position, body.notes)}


@router.get("/{job_id}", response_model=JobApplication)
def get_job(job_id: str, user: User = Depends(require_permission(Permission.WORKSPACE_READ))) -> JobApplication:
    require_object_id(job_id, "job ID")
    job = get_job_store().get(user.user_id, job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job application not found")
    return job


@router.put("/{job_id}", response_model=JobApplication)
def update_job(
    job_id: str,
    body: JobApplicationUpdate,
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> JobApplication:
    require_object_id(job_id, "job ID")
    changes = body.model_dump(exclude_unset=True)
    for key in ("company", "position"):
        if key in changes and not (changes[key] or "").strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key.capitalize()} cannot be empty")
    job = get_job_store().update(user.user_id, job_id, changes)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job application not found")
    return job


@router.delete("/{job_id}")
def delete_job(job_id: str, user: User = Depends(require_permission(Permission.WORKSPACE_WRITE))) -> dict:
    require_object_id(job_id, "job ID")
    if not get_job_store().delete(user.user_id, job_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job application not found")
    return {"message": "Job application deleted successfully"}
