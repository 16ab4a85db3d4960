"""Which hosted model answers which kind of request.

Each AI feature names a purpose (``code_assist``, ``content``, ``insight``);
the purpose maps to an ordered provider list and the first provider with an
API key wins. Clients are built in :mod:`ganadash.services.llm`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Set


@dataclass(frozen=True)
class ProviderSelection:
    """Provider, model and credential env var chosen for one call."""

    name: str
    model: str
    api_key_env: str
    base_url_env: Optional[str] = None
    default_base_url: Optional[str] = None


class NoProviderAvailable(RuntimeError):
    """No configured provider can serve the request."""


class ModelRouter:
    """Purpose -> provider policy, evaluated against an env mapping."""

    PROVIDER_CONFIG: Dict[str, Dict[str, str]] = {
        "gemini": {
            "api_key_env": "GEMINI_API_KEY",
            "base_url_env": "GEMINI_BASE_URL",
            "model_env": "GEMINI_MODEL",
            "default_model": "gemini-1.5-flash",
            "default_base_url": "https://generativelanguage.googleapis.com/v1beta",
        },
        "openai": {
            "api_key_env": "OPENAI_API_KEY",
            "base_url_env": "OPENAI_BASE_URL",
            "model_env": "OPENAI_MODEL",
            "default_model": "gpt-4o-mini",
            "default_base_url": "https://api.openai.com/v1",
        },
        "xai": {
            "api_key_env": "XAI_API_KEY",
            "base_url_env": "XAI_BASE_URL",
            "model_env": "XAI_MODEL",
            "default_model": "grok-2-latest",
            "default_base_url": "https://api.x.ai/v1",
        },
    }

    ROUTING_POLICY: Dict[str, tuple[str, ...]] = {
        # Pair-programming help wants the strongest code model first.
        "code_assist": ("gemini", "openai", "xai"),
        # Marketing copy and structured JSON output.
        "content": ("gemini", "openai", "xai"),
        # Job insights, daily summaries and other short prose.
        "insight": ("gemini", "openai", "xai"),
    }

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        allowed_providers: Optional[Iterable[str]] = None,
    ) -> None:
        self._env = env if env is not None else os.environ
        self._allowed: Optional[Set[str]] = set(allowed_providers) if allowed_providers else None
        preferred = (self._env.get("GANADASH_MODEL_PROVIDER") or "").strip().lower()
        self._preferred_provider = preferred if preferred in self.PROVIDER_CONFIG else None

    def provider_available(self, provider: str) -> bool:
        cfg = self.PROVIDER_CONFIG.get(provider)
        if not cfg:
            return False
        if self._allowed is not None and provider not in self._allowed:
            return False
        return bool(self._env.get(cfg["api_key_env"]))

    def resolve_provider(self, provider: str, model: Optional[str] = None) -> ProviderSelection:
        """Selection for an explicit provider name.

        Raises ``KeyError`` for unknown names; availability is not checked.
        """
        cfg = self.PROVIDER_CONFIG[provider]
        return ProviderSelection(
            name=provider,
            model=model or self._env.get(cfg["model_env"]) or cfg["default_model"],
            api_key_env=cfg["api_key_env"],
            base_url_env=cfg.get("base_url_env"),
            default_base_url=cfg.get("default_base_url"),
        )

    def select_provider(self, purpose: str) -> ProviderSelection:
        """Return the first available provider for ``purpose``.

        Raises
        ------
        NoProviderAvailable
            If none of the providers in the policy has credentials.
        """

        priority = list(self.ROUTING_POLICY.get(purpose, self.ROUTING_POLICY["insight"]))
        if self._preferred_provider:
            priority = [self._preferred_provider] + [p for p in priority if p != self._preferred_provider]
        for provider in priority:
            if self.provider_available(provider):
                return self.resolve_provider(provider)
        raise NoProviderAvailable("No active model provider available for this task.")

    def maybe_select_provider(self, purpose: str) -> Optional[ProviderSelection]:
        try:
            return self.select_provider(purpose)
        except NoProviderAvailable:
            return None
