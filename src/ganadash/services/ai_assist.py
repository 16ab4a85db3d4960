from __future__ import annotations

"""AI-assist bridge for collaboration sessions.

Turns a code selection plus an action tag into a prompt, asks the configured
model, and records the answer in the session chat history.
"""

import logging
from datetime import UTC, datetime
from typing import Dict, List, Optional

from ..domain.session_models import AIAssistResponse, ChatEntry, CollaborationSession
from ..infrastructure.session_store import SessionStore
from ..observability.metrics import AI_REQUESTS
from .llm import LLMError, complete
from .model_router import NoProviderAvailable


logger = logging.getLogger("ganadash.ai_assist")

AI_USER_ID = "ai"
AI_USER_NAME = "AI Assistant"

ACTION_TEMPLATES: Dict[str, str] = {
    "explain": "Explain this code in simple terms:\n\n{code}",
    "refactor": "Refactor this code to make it cleaner and more efficient:\n\n{code}",
    "debug": "Help debug this code and suggest fixes:\n\n{code}",
    "complete": "Complete this code snippet:\n\n{code}",
}


def build_assist_prompt(action: Optional[str], selected_code: str, prompt: str = "") -> str:
    template = ACTION_TEMPLATES.get((action or "").strip().lower())
    if template:
        return template.format(code=selected_code)
    return f"{prompt}\n\nCode context:\n{selected_code}"


def build_messages(session: CollaborationSession, ai_prompt: str) -> List[Dict[str, str]]:
    system = (
        "You are a pair-programming assistant inside a shared code editor. "
        f"The session language is {session.language}. "
        "Answer concisely, use fenced code blocks for code, and keep explanations practical."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": ai_prompt},
    ]


def run_ai_assist(
    store: SessionStore,
    session: CollaborationSession,
    action: Optional[str],
    selected_code: str,
    prompt: str = "",
) -> AIAssistResponse:
    """Ask the model and append its answer to the session chat.

    Raises ``NoProviderAvailable`` / ``LLMError`` from the model call and
    ``KeyError`` if the session disappeared before the append.
    """
    ai_prompt = build_assist_prompt(action, selected_code, prompt)
    try:
        reply = complete("code_assist", build_messages(session, ai_prompt))
    except NoProviderAvailable:
        AI_REQUESTS.labels(feature="code_assist", outcome="unconfigured").inc()
        raise
    except LLMError:
        AI_REQUESTS.labels(feature="code_assist", outcome="error").inc()
        raise
    AI_REQUESTS.labels(feature="code_assist", outcome="ok").inc()

    store.append_chat(
        session.id,
        ChatEntry(
            user_id=AI_USER_ID,
            user_name=AI_USER_NAME,
            message=reply["text"],
            type="ai",
            timestamp=datetime.now(UTC),
        ),
    )
    logger.info("AI assist action=%s session=%s provider=%s", action or "custom", session.id, reply["provider"])
    return AIAssistResponse(response=reply["text"], provider=reply["provider"], model=reply["model"])
