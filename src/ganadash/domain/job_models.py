from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    APPLIED = "applied"
    SCREENING = "screening"
    INTERVIEW = "interview"
    OFFER = "offer"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class JobPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Salary(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    currency: str = "USD"


class Interview(BaseModel):
    date: datetime
    type: Literal["phone", "video", "onsite", "technical"]
    notes: Optional[str] = None


class JobDocument(BaseModel):
    name: str
    url: str
    type: Literal["resume", "cover_letter", "portfolio", "other"]


class JobApplicationCreate(BaseModel):
    company: str = ""
    position: str = ""
    status: JobStatus = JobStatus.APPLIED
    priority: JobPriority = JobPriority.MEDIUM
    job_url: Optional[str] = None
    description: Optional[str] = None
    salary: Optional[Salary] = None
    location: Optional[str] = None
    contact_email: Optional[str] = None
    notes: Optional[str] = None


class JobApplicationUpdate(BaseModel):
    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[JobStatus] = None
    priority: Optional[JobPriority] = None
    job_url: Optional[str] = None
    description: Optional[str] = None
    salary: Optional[Salary] = None
    location: Optional[str] = None
    contact_email: Optional[str] = None
    notes: Optional[str] = None
    interviews: Optional[List[Interview]] = None
    documents: Optional[List[JobDocument]] = None


class JobApplication(BaseModel):
    id: str
    user_id: str
    company: str
    position: str
    status: JobStatus = JobStatus.APPLIED
    priority: JobPriority = JobPriority.MEDIUM
    application_date: datetime
    last_updated: datetime
    job_url: Optional[str] = None
    description: Optional[str] = None
    salary: Optional[Salary] = None
    location: Optional[str] = None
    contact_email: Optional[str] = None
    notes: Optional[str] = None
    interviews: List[Interview] = Field(default_factory=list)
    documents: List[JobDocument] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class JobFilters(BaseModel):
    status: Optional[JobStatus] = None
    priority: Optional[JobPriority] = None
    company: Optional[str] = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class JobPage(BaseModel):
    jobs: List[JobApplication]
    pagination: Pagination


class SuggestionRequest(BaseModel):
    company: str = ""
    position: str = ""
    notes: Optional[str] = None
