from __future__ import annotations

import os
from fastapi import APIRouter, Depends

from ...security.rbac import require_permission, Permission
from ...services.model_router import ModelRouter

router = APIRouter(prefix="/diag", tags=["diagnostics"])


@router.get("/llm")
def diag_llm(user=Depends(require_permission(Permission.WORKSPACE_READ))):
    """Which provider each AI feature would use right now."""
    model_router = ModelRouter()
    purposes = {}
    for purpose in model_router.ROUTING_POLICY:
        selection = model_router.maybe_select_provider(purpose)
        purposes[purpose] = {"provider": selection.name, "model": selection.model} if selection else None

    providers = {
        name: {
            "has_api_key": bool(os.getenv(cfg["api_key_env"])),
            "model": model_router.resolve_provider(name).model,
        }
        for name, cfg in model_router.PROVIDER_CONFIG.items()
    }
    selected = purposes.get("code_assist")
    return {
        "provider": selected["provider"] if selected else "none",
        "model": selected["model"] if selected else None,
        "providers": providers,
        "purposes": purposes,
        "ready": any(p is not None for p in purposes.values()),
    }
