from datetime import UTC, datetime

from fastapi.testclient import TestClient

from src.ganadash.api.main import app
from src.ganadash.services import insights_ai
from src.ganadash.services.insights_ai import FALLBACK_CHALLENGES, parse_challenge_list
from .utils import admin_headers, token_headers


client = TestClient(app)

MISSING_ID = "64b7f0c2a1b2c3d4e5f60718"
ALICE = token_headers("alice@example.com", name="Alice")
BOB = token_headers("bob@example.com", name="Bob")


def _create(headers=ALICE, **overrides):
    body = {"date": "2025-03-14", "challenges": ["Run 5k", "  ", "Read a chapter"], "is_public": True}
    body.update(overrides)
    r = client.post("/logs", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["log"]


def _patch(log_id, action, data=None, headers=ALICE):
    return client.patch(f"/logs/{log_id}", json={"action": action, "data": data or {}}, headers=headers)


def test_create_skips_blank_challenges():
    log = _create()
    assert log["user_id"] == "alice@example.com"
    assert [c["id"] for c in log["challenges"]] == ["challenge-0", "challenge-2"]
    assert all(c["completed"] is False for c in log["challenges"])


def test_one_log_per_user_per_day():
    _create()
    r = client.post("/logs", json={"date": "2025-03-14"}, headers=ALICE)
    assert r.status_code == 400
    assert client.post("/logs", json={"date": "2025-03-14"}, headers=BOB).status_code == 201


def test_listing_own_and_public_feed():
    _create()
    _create(date="2025-03-15", is_public=False)
    _create(headers=BOB, date="2025-03-15")

    mine = client.get("/logs", headers=ALICE).json()["logs"]
    assert [log["date"] for log in mine] == ["2025-03-15", "2025-03-14"]

    feed = client.get("/logs", params={"public": "true"}).json()["logs"]
    assert {(log["user_id"], log["date"]) for log in feed} == {
        ("alice@example.com", "2025-03-14"),
        ("bob@example.com", "2025-03-15"),
    }
    only_bob = client.get("/logs", params={"public": "true", "user_id": "bob@example.com"}).json()["logs"]
    assert len(only_bob) == 1

    assert client.get("/logs").status_code == 401


def test_private_log_visibility():
    log = _create(is_public=False)
    assert client.get(f"/logs/{log['id']}").status_code == 401
    assert client.get(f"/logs/{log['id']}", headers=BOB).status_code == 403
    assert client.get(f"/logs/{log['id']}", headers=ALICE).status_code == 200
    assert client.get("/logs/not-an-id").status_code == 400
    assert client.get(f"/logs/{MISSING_ID}").status_code == 404


def test_owner_actions():
    log = _create()
    r = _patch(log["id"], "toggle_challenge", {"challenge_id": "challenge-0"})
    assert r.status_code == 200
    challenge = r.json()["log"]["challenges"][0]
    assert challenge["completed"] is True
    assert challenge["completed_at"]

    r = _patch(log["id"], "toggle_challenge", {"challenge_id": "challenge-0"})
    assert r.json()["log"]["challenges"][0]["completed"] is False
    assert r.json()["log"]["challenges"][0]["completed_at"] is None

    assert _patch(log["id"], "toggle_challenge", {"challenge_id": "challenge-9"}).status_code == 404

    r = _patch(log["id"], "add_entry", {"content": "Morning run done"})
    entries = r.json()["log"]["entries"]
    assert len(entries) == 1
    assert entries[0]["type"] == "note"
    assert _patch(log["id"], "add_entry", {"content": ""}).status_code == 400


def test_generate_summary_falls_back_without_provider():
    log = _create()
    _patch(log["id"], "toggle_challenge", {"challenge_id": "challenge-2"})
    r = _patch(log["id"], "generate_summary")
    assert r.status_code == 200
    summary = r.json()["log"]["summary"]
    assert summary.startswith("Reflecting on Fri Mar 14 2025")
    assert "completed 1 of them" in summary


def test_generate_summary_uses_model(monkeypatch):
    monkeypatch.setattr(
        insights_ai,
        "complete",
        lambda purpose, messages: {"text": "  What a day.  ", "provider": "fake", "model": "m"},
    )
    log = _create()
    assert _patch(log["id"], "generate_summary").json()["log"]["summary"] == "What a day."


def test_social_actions_from_other_users():
    log = _create()
    r = _patch(log["id"], "add_reaction", {"type": "fire"}, headers=BOB)
    assert r.status_code == 200
    r = _patch(log["id"], "add_reaction", {"type": "clap"}, headers=BOB)
    reactions = r.json()["log"]["reactions"]
    assert [(x["user_id"], x["type"]) for x in reactions] == [("bob@example.com", "clap")]

    r = _patch(log["id"], "add_comment", {"content": " Nice work! "}, headers=BOB)
    comment = r.json()["log"]["comments"][0]
    assert comment["username"] == "Bob"
    assert comment["content"] == "Nice work!"

    assert _patch(log["id"], "add_reaction", {"type": "meh"}, headers=BOB).status_code == 400
    assert _patch(log["id"], "add_entry", {"content": "hijack"}, headers=BOB).status_code == 403


def test_private_log_rejects_social_actions_but_admin_may_edit():
    log = _create(is_public=False)
    assert _patch(log["id"], "add_comment", {"content": "hi"}, headers=BOB).status_code == 403
    r = _patch(log["id"], "add_entry", {"content": "moderator note"}, headers=admin_headers(client))
    assert r.status_code == 200


def test_invalid_action_and_missing_log():
    log = _create()
    assert _patch(log["id"], "delete_everything").status_code == 400
    assert _patch(MISSING_ID, "add_entry", {"content": "x"}).status_code == 404


def test_suggestions_fallback_and_model(monkeypatch):
    r = client.get("/logs/suggestions", headers=ALICE)
    assert r.status_code == 200
    assert r.json()["suggestions"] == FALLBACK_CHALLENGES

    prompts = []

    def fake(purpose, messages):
        prompts.append(messages[-1]["content"])
        return {"text": '```json\n["A", "B", "C", "D", "E", "F"]\n```', "provider": "fake", "model": "m"}

    monkeypatch.setattr(insights_ai, "complete", fake)
    _create()
    r = client.get("/logs/suggestions", headers=ALICE)
    assert r.json()["suggestions"] == ["A", "B", "C", "D", "E"]
    assert "- Run 5k" in prompts[0]


def test_parse_challenge_list():
    assert parse_challenge_list('["a", " ", "b"]') == ["a", "b"]
    assert parse_challenge_list('{"a": 1}') == []
    assert parse_challenge_list("not json") == []


def test_jobs_integration_for_a_day():
    today = datetime.now(UTC).date().isoformat()
    client.post("/jobs", json={"company": "Acme", "position": "Engineer"}, headers=ALICE)
    client.post("/jobs", json={"company": "Globex", "position": "SRE", "status": "interview"}, headers=ALICE)
    client.post("/jobs", json={"company": "Initech", "position": "QA"}, headers=BOB)
    log = _create(date=today)

    r = client.get("/logs/jobs-integration", params={"date": today}, headers=ALICE)
    assert r.status_code == 200, r.text
    body = r.json()
    assert sorted(j["company"] for j in body["job_applications"]) == ["Acme", "Globex"]
    assert body["daily_log"]["id"] == log["id"]
    assert body["suggestions"] == [
        "Follow up on 2 job applications",
        "Prepare for 1 upcoming interview",
        "Research one new company to apply to",
        "Update resume or LinkedIn profile",
    ]


def test_jobs_integration_without_applications():
    r = client.get("/logs/jobs-integration", params={"date": "2020-01-01"}, headers=ALICE)
    assert r.status_code == 200
    body = r.json()
    assert body["job_applications"] == []
    assert body["daily_log"] is None
    assert body["suggestions"][0] == "Apply to 3 new job positions"


def test_jobs_integration_requires_date_and_auth():
    r = client.get("/logs/jobs-integration", headers=ALICE)
    assert r.status_code == 400
    assert r.json()["detail"] == "Date parameter required"
    assert client.get("/logs/jobs-integration", params={"date": "14/03/2025"}, headers=ALICE).status_code == 400
    assert client.get("/logs/jobs-integration", params={"date": "2025-03-14"}).status_code == 401
