from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from typing import Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError

from ...domain.log_models import (
    Comment,
    CommentData,
    DailyLog,
    DailyLogCreate,
    DailyLogPatch,
    EntryData,
    LogEntry,
    Reaction,
    ReactionData,
    ToggleChallengeData,
)
from ...infrastructure.job_store import get_job_store
from ...infrastructure.log_store import DuplicateLogError, get_log_store
from ...security.auth import User, bearer_scheme, get_current_user, get_optional_user
from ...security.rbac import Permission, is_authorized, require_permission
from ...services.insights_ai import generate_day_summary, job_challenges, suggest_challenges
from ..deps import require_object_id

router = APIRouter(prefix="/logs", tags=["daily-logs"])

# Actions any signed-in user may perform on someone else's public log.
SOCIAL_ACTIONS = {"add_reaction", "add_comment"}


def _now() -> datetime:
    return datetime.now(UTC)


def _parse(model, data: dict):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid action data: {exc.errors()[0]['msg']}")


def _toggle_challenge(log: DailyLog, user: User, data: dict) -> None:
    payload = _parse(ToggleChallengeData, data)
    for challenge in log.challenges:
        if challenge.id == payload.challenge_id:
            challenge.completed = not challenge.completed
            challenge.completed_at = _now() if challenge.completed else None
            return
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Challenge not found")


def _add_entry(log: DailyLog, user: User, data: dict) -> None:
    payload = _parse(EntryData, data)
    log.entries.append(
        LogEntry(
            id=uuid.uuid4().hex,
            type=payload.type,
            content=payload.content,
            media_url=payload.media_url,
            timestamp=_now(),
        )
    )


def _generate_summary(log: DailyLog, user: User, data: dict) -> None:
    log.summary = generate_day_summary(log)


def _add_reaction(log: DailyLog, user: User, data: dict) -> None:
    payload = _parse(ReactionData, data)
    # One reaction per user; a new one replaces the old.
    log.reactions = [r for r in log.reactions if r.user_id != user.user_id]
    log.reactions.append(Reaction(user_id=user.user_id, type=payload.type, timestamp=_now()))


def _add_comment(log: DailyLog, user: User, data: dict) -> None:
    payload = _parse(CommentData, data)
    log.comments.append(
        Comment(
            id=uuid.uuid4().hex,
            user_id=user.user_id,
            username=payload.username or user.name,
            content=payload.content.strip(),
            timestamp=_now(),
        )
    )


ACTIONS: Dict[str, Callable[[DailyLog, User, dict], None]] = {
    "toggle_challenge": _toggle_challenge,
    "add_entry": _add_entry,
    "generate_summary": _generate_summary,
    "add_reaction": _add_reaction,
    "add_comment": _add_comment,
}


@router.get("")
def list_logs(
    public: bool = False,
    user_id: Optional[str] = None,
    limit: int = Query(default=10, ge=1, le=100),
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Public feed (optionally one author) or the caller's own logs."""
    store = get_log_store()
    if public:
        return {"logs": store.list(user_id=user_id, public_only=True, limit=limit)}
    user = get_current_user(creds)
    return {"logs": store.list(user_id=user.user_id, limit=limit)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_log(body: DailyLogCreate, user: User = Depends(require_permission(Permission.WORKSPACE_WRITE))) -> dict:
    try:
        log = get_log_store().create(user.user_id, body)
    except DuplicateLogError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return {"log": log}


@router.get("/suggestions")
def challenge_suggestions(user: User = Depends(require_permission(Permission.WORKSPACE_READ))) -> dict:
    recent = get_log_store().list(user_id=user.user_id, limit=7)
    previous = [c.text for log in recent for c in log.challenges][:20]
    return {"suggestions": suggest_challenges(previous)}


@router.get("/jobs-integration")
def jobs_integration(
    day: Optional[str] = Query(default=None, alias="date"),
    user: User = Depends(require_permission(Permission.WORKSPACE_READ)),
) -> dict:
    """Job applications logged on ``date`` next to that day's log and job-based challenges."""
    if not day:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date parameter required")
    try:
        parsed = date.fromisoformat(day)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date must be YYYY-MM-DD")
    jobs = get_job_store().list_applied_on(user.user_id, parsed)
    return {
        "job_applications": jobs,
        "daily_log": get_log_store().get_for_date(user.user_id, parsed),
        "suggestions": job_challenges(jobs),
    }


@router.get("/{log_id}")
def get_log(log_id: str, viewer: Optional[User] = Depends(get_optional_user)) -> dict:
    require_object_id(log_id, "log ID")
    log = get_log_store().get(log_id)
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Log not found")
    if not log.is_public:
        if viewer is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
        if viewer.user_id != log.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This log is private")
    return {"log": log}


@router.patch("/{log_id}")
def patch_log(
    log_id: str,
    body: DailyLogPatch,
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> dict:
    require_object_id(log_id, "log ID")
    handler = ACTIONS.get(body.action)
    if handler is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")
    store = get_log_store()
    log = store.get(log_id)
    if not log:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Log not found")
    is_owner = log.user_id == user.user_id or is_authorized(user, Permission.ADMIN)
    if not is_owner and not (body.action in SOCIAL_ACTIONS and log.is_public):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to modify this log")
    handler(log, user, body.data)
    try:
        return {"log": store.save(log)}
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Log not found")
