from fastapi.testclient import TestClient

from src.ganadash.api.main import app
from .utils import token_headers


client = TestClient(app)

HERO = {"type": "hero", "title": "Fresh bread daily", "subtitle": "Since 1987"}


def test_create_then_update_same_slug():
    headers = token_headers("baker@example.com")
    r = client.post("/websites", json={"slug": " My-Bakery ", "title": "My Bakery", "components": [HERO]}, headers=headers)
    assert r.status_code == 201, r.text
    site = r.json()["website"]
    assert site["slug"] == "my-bakery"
    assert site["user_id"] == "baker@example.com"
    assert site["deployment_status"] == "pending"
    assert site["components"][0]["title"] == "Fresh bread daily"

    r = client.post("/websites", json={"slug": "my-bakery", "title": "Renamed", "components": []}, headers=headers)
    assert r.status_code == 200
    updated = r.json()["website"]
    assert updated["id"] == site["id"]
    assert updated["title"] == "Renamed"
    assert updated["components"] == []


def test_slug_owned_by_someone_else_conflicts():
    client.post("/websites", json={"slug": "shared", "title": "Mine"}, headers=token_headers("a@example.com"))
    r = client.post("/websites", json={"slug": "shared", "title": "Theirs"}, headers=token_headers("b@example.com"))
    assert r.status_code == 409


def test_slug_and_title_required_and_slug_shape_checked():
    headers = token_headers("a@example.com")
    assert client.post("/websites", json={"slug": "", "title": "x"}, headers=headers).status_code == 400
    assert client.post("/websites", json={"slug": "ok", "title": "  "}, headers=headers).status_code == 400
    assert client.post("/websites", json={"slug": "no spaces!", "title": "x"}, headers=headers).status_code == 400


def test_unknown_component_type_is_rejected():
    headers = token_headers("a@example.com")
    r = client.post("/websites", json={"slug": "x", "title": "x", "components": [{"type": "marquee"}]}, headers=headers)
    assert r.status_code == 422


def test_list_is_per_user():
    a = token_headers("a@example.com")
    b = token_headers("b@example.com")
    client.post("/websites", json={"slug": "site-a", "title": "A"}, headers=a)
    client.post("/websites", json={"slug": "site-b", "title": "B"}, headers=b)
    r = client.get("/api/websites", headers=a)
    assert [w["slug"] for w in r.json()["websites"]] == ["site-a"]


def test_public_lookup_needs_no_token():
    client.post("/websites", json={"slug": "open", "title": "Open", "components": [HERO]}, headers=token_headers("a@example.com"))
    r = client.get("/websites/OPEN")
    assert r.status_code == 200
    assert r.json()["website"]["title"] == "Open"
    assert client.get("/websites/missing").status_code == 404


def test_delete_only_by_owner():
    owner = token_headers("a@example.com")
    client.post("/websites", json={"slug": "gone", "title": "Gone"}, headers=owner)
    assert client.delete("/websites/gone", headers=token_headers("b@example.com")).status_code == 404
    assert client.delete("/websites/gone", headers=owner).status_code == 200
    assert client.get("/websites/gone").status_code == 404
