from __future__ import annotations

from typing import Optional, Tuple, Dict, Any

from fastapi.testclient import TestClient


def otp_login(
    client: TestClient,
    email: str,
    *,
    name: Optional[str] = None,
    code: Optional[str] = None,
) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """Request and verify an OTP, returning auth headers and token payload."""
    res = client.post("/auth/request-otp", json={"email": email})
    assert res.status_code == 200, res.text
    otp = code or _fetch_otp_from_store(email)
    assert otp, "OTP code missing from the in-memory OTP store"

    verify_body: Dict[str, Any] = {"email": email, "code": otp}
    if name:
        verify_body["name"] = name
    res = client.post("/auth/verify-otp", json=verify_body)
    assert res.status_code == 200, res.text
    data = res.json()
    return {"Authorization": f"Bearer {data['access_token']}"}, data


def _fetch_otp_from_store(email: str) -> Optional[str]:
    from src.ganadash.security import auth

    entry = auth.OTP_STORE.get(email.lower())
    if not entry:
        return None
    return entry.code


def token_headers(email: str, *, name: str = "Test User", roles: Optional[list[str]] = None) -> Dict[str, str]:
    """Mint a bearer token directly, skipping the OTP round trip."""
    from src.ganadash.security.auth import User, create_access_token

    user = User(email=email, name=name, roles=roles or ["member"])
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def member_headers(client: TestClient) -> Dict[str, str]:
    headers, _ = otp_login(client, "member@example.com")
    return headers


def host_headers(client: TestClient) -> Dict[str, str]:
    headers, _ = otp_login(client, "host@example.com")
    return headers


def admin_headers(client: TestClient) -> Dict[str, str]:
    headers, _ = otp_login(client, "owner@ganadash.dev")
    return headers
