"""Unit tests for `ModelRouter` provider selection."""

from __future__ import annotations

import pytest

from src.ganadash.services.model_router import ModelRouter, NoProviderAvailable, ProviderSelection


def test_router_prefers_gemini_when_configured():
    router = ModelRouter(env={"GEMINI_API_KEY": "g", "OPENAI_API_KEY": "o"})
    selection = router.select_provider("code_assist")
    assert isinstance(selection, ProviderSelection)
    assert selection.name == "gemini"
    assert selection.model == "gemini-1.5-flash"
    assert selection.api_key_env == "GEMINI_API_KEY"


def test_router_falls_back_in_policy_order():
    assert ModelRouter(env={"XAI_API_KEY": "x"}).select_provider("content").name == "xai"
    assert ModelRouter(env={"OPENAI_API_KEY": "o", "XAI_API_KEY": "x"}).select_provider("insight").name == "openai"


def test_preferred_provider_goes_first():
    router = ModelRouter(env={"GEMINI_API_KEY": "g", "XAI_API_KEY": "x", "GANADASH_MODEL_PROVIDER": "XAI"})
    assert router.select_provider("code_assist").name == "xai"


def test_unknown_preference_is_ignored():
    router = ModelRouter(env={"OPENAI_API_KEY": "o", "GANADASH_MODEL_PROVIDER": "llamafarm"})
    assert router.select_provider("code_assist").name == "openai"


def test_model_override_from_env():
    router = ModelRouter(env={"OPENAI_API_KEY": "o", "OPENAI_MODEL": "gpt-4.1"})
    assert router.select_provider("insight").model == "gpt-4.1"


def test_allowed_providers_restrict_selection():
    router = ModelRouter(env={"GEMINI_API_KEY": "g", "OPENAI_API_KEY": "o"}, allowed_providers=["openai"])
    assert router.select_provider("content").name == "openai"
    assert not router.provider_available("gemini")


def test_router_requires_at_least_one_provider():
    router = ModelRouter(env={})
    with pytest.raises(NoProviderAvailable, match="No active model provider available"):
        router.select_provider("code_assist")
    assert router.maybe_select_provider("code_assist") is None


def test_resolve_provider_unknown_name():
    with pytest.raises(KeyError):
        ModelRouter(env={}).resolve_provider("nope")
