import pytest
from fastapi.testclient import TestClient

from src.ganadash.api.main import app
from src.ganadash.services import content_ai
from src.ganadash.services.content_ai import ContentFormatError, build_section_prompt, extract_json_object
from src.ganadash.services.llm import LLMError
from .utils import token_headers


client = TestClient(app)


def _fake_complete(calls, text='Sure! {"title": "Fresh Bread Daily", "subtitle": "Baked at dawn"} Enjoy.'):
    def fake(purpose, messages):
        calls.append((purpose, messages[-1]["content"]))
        return {"text": text, "provider": "fake", "model": "fake-1"}

    return fake


def test_single_section(monkeypatch):
    calls = []
    monkeypatch.setattr(content_ai, "complete", _fake_complete(calls))
    r = client.post(
        "/generate-content",
        json={"type": "hero", "description": "A neighbourhood bakery", "business_type": "bakery", "tone": "friendly"},
        headers=token_headers("maker@example.com"),
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "content": {"title": "Fresh Bread Daily", "subtitle": "Baked at dawn"}}
    purpose, prompt = calls[0]
    assert purpose == "content"
    assert "A neighbourhood bakery (bakery)" in prompt
    assert "Tone: friendly" in prompt


def test_full_site_generates_every_section(monkeypatch):
    calls = []
    monkeypatch.setattr(content_ai, "complete", _fake_complete(calls, text='{"title": "T", "text": "x"}'))
    r = client.post(
        "/api/generate-content",
        json={"description": "Freelance photographer", "full": True},
        headers=token_headers("maker@example.com"),
    )
    assert r.status_code == 200
    assert set(r.json()["content"]) == {"hero", "about", "products", "contact"}
    assert len(calls) == 4


def test_validation_errors():
    headers = token_headers("maker@example.com")
    assert client.post("/generate-content", json={"type": "hero", "description": "  "}, headers=headers).status_code == 400
    assert client.post("/generate-content", json={"description": "Bakery"}, headers=headers).status_code == 400
    assert client.post("/generate-content", json={"type": "footer", "description": "Bakery"}, headers=headers).status_code == 422


def test_unconfigured_provider_is_503():
    r = client.post(
        "/generate-content",
        json={"type": "about", "description": "Bakery"},
        headers=token_headers("maker@example.com"),
    )
    assert r.status_code == 503


def test_non_json_reply_is_502(monkeypatch):
    monkeypatch.setattr(content_ai, "complete", _fake_complete([], text="I cannot help with that."))
    r = client.post(
        "/generate-content",
        json={"type": "contact", "description": "Bakery"},
        headers=token_headers("maker@example.com"),
    )
    assert r.status_code == 502


def test_provider_error_is_502(monkeypatch):
    def boom(purpose, messages):
        raise LLMError("upstream down")

    monkeypatch.setattr(content_ai, "complete", boom)
    r = client.post(
        "/generate-content",
        json={"type": "products", "description": "Bakery"},
        headers=token_headers("maker@example.com"),
    )
    assert r.status_code == 502


def test_extract_json_object():
    assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    with pytest.raises(ContentFormatError):
        extract_json_object("no braces here")
    with pytest.raises(ContentFormatError):
        extract_json_object("{not json}")


def test_prompt_defaults_to_professional_tone():
    prompt = build_section_prompt("products", "Coffee roaster")
    assert "Business: Coffee roaster" in prompt
    assert "Tone: professional" in prompt
    assert '"price": 99' in prompt
