from datetime import UTC, datetime

import pytest

from src.ganadash.domain.job_models import JobApplicationCreate, JobFilters
from src.ganadash.domain.session_models import ChatEntry, Participant
from src.ganadash.domain.website_models import WebsiteUpsert
from src.ganadash.infrastructure import session_store as session_store_module
from src.ganadash.infrastructure.job_store import InMemoryJobStore, sanitize_changes
from src.ganadash.infrastructure.mongo import is_valid_id, mongo_enabled, new_id
from src.ganadash.infrastructure.session_store import InMemorySessionStore, get_session_store
from src.ganadash.infrastructure.website_store import InMemoryWebsiteStore, SlugTakenError


def _now():
    return datetime.now(UTC)


def test_ids_are_object_id_hex():
    value = new_id()
    assert len(value) == 24
    assert is_valid_id(value)
    assert not is_valid_id("")
    assert not is_valid_id("session-1")


def test_mongo_mode_switches(monkeypatch):
    assert mongo_enabled() is False
    monkeypatch.setenv("DB_MODE", "mongo")
    assert mongo_enabled() is True


def test_unreachable_mongo_falls_back_to_memory(monkeypatch):
    monkeypatch.setenv("DB_MODE", "mongo")
    monkeypatch.setattr(session_store_module, "get_database", lambda: None)
    assert isinstance(get_session_store(), InMemorySessionStore)


def test_session_participants_are_unique():
    store = InMemorySessionStore()
    sess = store.create_session("Pairing", created_by="ana@example.com", creator_name="Ana", creator_email="ana@example.com")
    assert [p.id for p in sess.participants] == ["ana@example.com"]

    joiner = Participant(id="ben@example.com", name="Ben", joined_at=_now())
    store.add_participant(sess.id, joiner)
    updated = store.add_participant(sess.id, joiner)
    assert [p.id for p in updated.participants] == ["ana@example.com", "ben@example.com"]
    assert [s.id for s in store.list_sessions_for_user("ben@example.com")] == [sess.id]


def test_session_updates_and_end():
    store = InMemorySessionStore()
    sess = store.create_session("Pairing", created_by="ana@example.com", language="")
    assert sess.language == "javascript"

    store.update_session(sess.id, code="print(1)", language="python")
    store.append_chat(sess.id, ChatEntry(user_id="ana@example.com", message="hi", timestamp=_now()))
    current = store.get_session(sess.id)
    assert (current.code, current.language) == ("print(1)", "python")
    assert [c.message for c in current.chat_history] == ["hi"]

    # Copies handed out never alias stored state
    current.chat_history.clear()
    assert len(store.get_session(sess.id).chat_history) == 1

    store.end_session(sess.id)
    assert store.list_sessions_for_user("ana@example.com") == []
    assert store.count_sessions() == 1
    with pytest.raises(KeyError):
        store.end_session(new_id())


def test_website_slug_ownership():
    store = InMemoryWebsiteStore()
    site, created = store.upsert("ana@example.com", WebsiteUpsert(slug=" My-Site ", title=" Hello "))
    assert created is True
    assert (site.slug, site.title) == ("my-site", "Hello")

    site2, created = store.upsert("ana@example.com", WebsiteUpsert(slug="my-site", title="Updated"))
    assert created is False
    assert site2.id == site.id

    with pytest.raises(SlugTakenError):
        store.upsert("ben@example.com", WebsiteUpsert(slug="my-site", title="Mine now"))
    assert store.delete("ben@example.com", "my-site") is False
    assert store.delete("ana@example.com", "MY-SITE") is True
    assert store.get_by_slug("my-site") is None


def test_job_store_scoping_and_filters():
    store = InMemoryJobStore()
    store.create("ana@example.com", JobApplicationCreate(company="Acme Corp", position="Engineer", status="interview"))
    store.create("ana@example.com", JobApplicationCreate(company="Globex", position="Analyst"))
    store.create("ben@example.com", JobApplicationCreate(company="Acme Corp", position="Designer"))

    jobs, total = store.list("ana@example.com", JobFilters(company="acme"))
    assert total == 1
    assert jobs[0].position == "Engineer"
    _, total = store.list("ana@example.com", JobFilters(status="applied"))
    assert total == 1
    page, total = store.list("ana@example.com", JobFilters(), limit=1, offset=1)
    assert (len(page), total) == (1, 2)


def test_job_updates_cannot_touch_protected_fields():
    changes = sanitize_changes({"id": "x", "user_id": "mallory", "company": " Initech ", "contact_email": " HR@Initech.COM "})
    assert changes == {"company": "Initech", "contact_email": "hr@initech.com"}

    store = InMemoryJobStore()
    job = store.create("ana@example.com", JobApplicationCreate(company="Acme", position="Engineer"))
    assert store.get("ben@example.com", job.id) is None
    assert store.update("ben@example.com", job.id, {"notes": "x"}) is None
    assert store.delete("ben@example.com", job.id) is False
    assert store.update("ana@example.com", job.id, {"user_id": "ben@example.com", "notes": "ping"}).user_id == "ana@example.com"


def test_reset_client_closes_shared_connection(monkeypatch):
    from src.ganadash.infrastructure import mongo

    class _Client:
        closed = False

        def close(self):
            self.closed = True

    client = _Client()
    monkeypatch.setattr(mongo, "_client", client)
    mongo.reset_client()
    assert client.closed is True
    assert mongo._client is None
