from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Tuple, TypedDict

import requests
from requests.adapters import HTTPAdapter
from langchain_openai import ChatOpenAI
from urllib3.util.retry import Retry

from .model_router import ModelRouter, NoProviderAvailable, ProviderSelection


logger = logging.getLogger("ganadash.llm")

_TIMEOUT = (
    int(os.getenv("GANADASH_LLM_CONNECT_TIMEOUT", "3")),
    int(os.getenv("GANADASH_LLM_READ_TIMEOUT", "30")),
)
DEFAULT_TEMPERATURE = float(os.getenv("GANADASH_LLM_TEMPERATURE", "0.2"))


class LLMError(RuntimeError):
    """The provider was reachable in principle but the call failed."""


class LLMReply(TypedDict):
    text: str
    provider: str
    model: str


Message = Dict[str, str]


def _build_session() -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(["POST", "GET"]),
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class GeminiClient:
    """Minimal client for the Gemini ``generateContent`` REST endpoint."""

    def __init__(self, api_key: str, model: str, base_url: str) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._session = _build_session()

    def invoke(self, messages: List[Message]) -> str:
        system_parts: List[Dict[str, str]] = []
        contents: List[Dict[str, Any]] = []
        for msg in messages:
            role = msg.get("role") or "user"
            text = msg.get("content") or ""
            if role == "system":
                system_parts.append({"text": text})
                continue
            contents.append({"role": "model" if role == "assistant" else "user", "parts": [{"text": text}]})
        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"temperature": DEFAULT_TEMPERATURE},
        }
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}

        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            resp = self._session.post(
                url,
                json=body,
                headers={"x-goog-api-key": self.api_key},
                timeout=_TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise LLMError(f"Gemini request failed: {exc}") from exc
        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise LLMError(f"Gemini returned no candidates (block reason: {reason})")
        parts = ((candidates[0].get("content") or {}).get("parts")) or []
        text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))
        if not text.strip():
            raise LLMError("Gemini returned an empty response")
        return text


class OpenAICompatibleClient:
    """OpenAI-compatible providers (OpenAI, xAI) through langchain-openai."""

    def __init__(self, api_key: str, model: str, base_url: str) -> None:
        self.model = model
        try:
            self._chat = ChatOpenAI(api_key=api_key, base_url=base_url, model=model, temperature=DEFAULT_TEMPERATURE)
        except Exception as exc:
            raise LLMError(f"Could not create chat client for {model}: {exc}") from exc

    def invoke(self, messages: List[Message]) -> str:
        try:
            res = self._chat.invoke([(m.get("role") or "user", m.get("content") or "") for m in messages])
        except Exception as exc:
            raise LLMError(f"Chat completion failed: {exc}") from exc
        text = res.content if hasattr(res, "content") else str(res)
        if not isinstance(text, str) or not text.strip():
            raise LLMError("Chat completion returned an empty response")
        return text


def _client_for(selection: ProviderSelection):
    api_key = os.getenv(selection.api_key_env)
    if not api_key:
        raise NoProviderAvailable(f"{selection.name} is not configured ({selection.api_key_env} unset)")
    base_url = selection.default_base_url or ""
    if selection.base_url_env:
        base_url = os.getenv(selection.base_url_env, base_url)
    logger.info("Using LLM provider name=%s model=%s", selection.name, selection.model)
    if selection.name == "gemini":
        return GeminiClient(api_key=api_key, model=selection.model, base_url=base_url)
    return OpenAICompatibleClient(api_key=api_key, model=selection.model, base_url=base_url)


def get_llm(purpose: str, provider: Optional[str] = None, model: Optional[str] = None) -> Tuple[Any, str, str]:
    """Return ``(client, provider_name, model)`` for a purpose or an explicit provider override."""
    router = ModelRouter()
    if provider:
        try:
            selection = router.resolve_provider(provider, model)
        except KeyError:
            raise NoProviderAvailable(f"Unknown provider override: {provider}")
    else:
        selection = router.select_provider(purpose)
        if model:
            selection = router.resolve_provider(selection.name, model)
    return _client_for(selection), selection.name, selection.model


def ai_available(purpose: str = "insight") -> bool:
    return ModelRouter().maybe_select_provider(purpose) is not None


def complete(
    purpose: str,
    messages: List[Message],
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> LLMReply:
    """Run one chat completion.

    Raises ``NoProviderAvailable`` when nothing is configured and
    ``LLMError`` when the provider call fails.
    """
    client, provider_name, model_name = get_llm(purpose, provider=provider, model=model)
    text = client.invoke(messages)
    logger.debug("llm_reply provider=%s model=%s chars=%d", provider_name, model_name, len(text))
    return {"text": text, "provider": provider_name, "model": model_name}
