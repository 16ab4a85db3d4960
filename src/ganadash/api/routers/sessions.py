from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ...domain.session_models import (
    AIAssistRequest,
    AIAssistResponse,
    ChatEntry,
    CollaborationSession,
    SessionCreate,
    SessionUpdate,
)
from ...infrastructure.events import publish_event
from ...infrastructure.session_store import get_session_store
from ...security.auth import User
from ...security.rate_limit import enforce_rate_limit
from ...security.rbac import Permission, require_permission
from ...services.ai_assist import run_ai_assist
from ...services.llm import LLMError
from ...services.model_router import NoProviderAvailable
from ..deps import require_object_id

logger = logging.getLogger("ganadash.api.sessions")

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _load(session_id: str) -> CollaborationSession:
    require_object_id(session_id, "session ID")
    sess = get_session_store().get_session(session_id)
    if not sess:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return sess


@router.get("", response_model=List[CollaborationSession])
def list_sessions(user: User = Depends(require_permission(Permission.WORKSPACE_READ))) -> List[CollaborationSession]:
    return get_session_store().list_sessions_for_user(user.user_id)


@router.post("", response_model=CollaborationSession, status_code=status.HTTP_201_CREATED)
def create_session(
    body: SessionCreate,
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> CollaborationSession:
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Session name is required")
    sess = get_session_store().create_session(
        name=name,
        created_by=user.user_id,
        language=body.language,
        creator_name=user.name or "Creator",
        creator_email=user.user_id,
    )
    publish_event("session.created", {"session_id": sess.id, "created_by": user.user_id})
    return sess


@router.get("/{session_id}", response_model=CollaborationSession)
def get_session(
    session_id: str,
    user: User = Depends(require_permission(Permission.WORKSPACE_READ)),
) -> CollaborationSession:
    return _load(session_id)


@router.put("/{session_id}", response_model=CollaborationSession)
def update_session(
    session_id: str,
    body: SessionUpdate,
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> CollaborationSession:
    require_object_id(session_id, "session ID")
    entry = None
    if body.chat_message is not None:
        entry = ChatEntry(
            user_id=user.user_id,
            user_name=body.chat_message.user_name or user.name,
            message=body.chat_message.message,
            type=body.chat_message.type,
            timestamp=datetime.now(UTC),
        )
    try:
        return get_session_store().update_session(
            session_id,
            code=body.code,
            language=body.language,
            chat_entry=entry,
        )
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")


@router.delete("/{session_id}", response_model=CollaborationSession)
def end_session(
    session_id: str,
    user: User = Depends(require_permission(Permission.WORKSPACE_WRITE)),
) -> CollaborationSession:
    sess = _load(session_id)
    if sess.created_by != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the session creator can end it")
    try:
        ended = get_session_store().end_session(session_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    publish_event("session.ended", {"session_id": session_id})
    return ended


@router.post("/{session_id}/ai-assist", response_model=AIAssistResponse)
def ai_assist(
    session_id: str,
    body: AIAssistRequest,
    user: User = Depends(require_permission(Permission.AI_ASSIST)),
):
    sess = _load(session_id)
    enforce_rate_limit(
        "ai_assist",
        user.user_id,
        detail="Too many AI requests. Please slow down.",
        limit_env="AI_ASSIST_LIMIT",
        window_env="AI_ASSIST_WINDOW_SEC",
        default_limit=20,
        default_window_seconds=60,
    )
    try:
        return run_ai_assist(get_session_store(), sess, body.action, body.selected_code, body.prompt)
    except NoProviderAvailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="AI assistance is not configured")
    except LLMError:
        logger.exception("AI assist failed for session %s", session_id)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Failed to get AI assistance"})
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
