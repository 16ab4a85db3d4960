from __future__ import annotations

"""Dashboard sign-in: one-time codes by e-mail, then a JWT bearer token.

The token subject is the account e-mail, lower-cased. Every website, job,
session and daily log is owned by that value, so it doubles as the tenant key.

Env vars:
- JWT_SECRET, JWT_EXPIRES_MIN
- OTP_EXPIRES_MIN, OTP_MAX_ATTEMPTS, OTP_RESEND_DELAY_SECONDS
- GANADASH_SMTP_HOST / _PORT / _USER / _PASSWORD / _SENDER / _USE_TLS
- GANADASH_INCLUDE_OTP_IN_RESPONSE (local development only)
- GANADASH_PUBLIC_MODE, GANADASH_ENV
"""

import logging
import os
import secrets
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import Dict, List, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr


logger = logging.getLogger("ganadash.auth")

bearer_scheme = HTTPBearer(auto_error=False)

GUEST_EMAIL = "guest@example.com"
_TRUTHY = ("1", "true", "yes", "on")


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


@dataclass
class JwtConfig:
    secret: str
    algorithm: str = "HS256"
    expires_min: int = 60

    @staticmethod
    def from_env() -> "JwtConfig":
        return JwtConfig(
            secret=os.getenv("JWT_SECRET", "ganadash-dev-secret"),
            expires_min=int(os.getenv("JWT_EXPIRES_MIN", "60")),
        )


@dataclass
class SmtpSettings:
    host: str
    port: int
    username: str
    password: str
    sender: str
    use_tls: bool = True

    @staticmethod
    def from_env() -> Optional["SmtpSettings"]:
        """``None`` unless host, user and password are all set."""
        host = os.getenv("GANADASH_SMTP_HOST")
        username = os.getenv("GANADASH_SMTP_USER")
        password = os.getenv("GANADASH_SMTP_PASSWORD")
        if not (host and username and password):
            return None
        return SmtpSettings(
            host=host,
            port=int(os.getenv("GANADASH_SMTP_PORT", "587")),
            username=username,
            password=password,
            sender=os.getenv("GANADASH_SMTP_SENDER") or username,
            use_tls=_flag("GANADASH_SMTP_USE_TLS", "1"),
        )


class User(BaseModel):
    email: EmailStr
    name: str
    roles: List[str]

    @property
    def user_id(self) -> str:
        return str(self.email).lower()


class OTPRequest(BaseModel):
    email: EmailStr


class OTPVerifyRequest(BaseModel):
    email: EmailStr
    code: str
    name: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: User


# Accounts known before anyone signs up; new e-mails register as members.
USERS: Dict[str, Dict[str, object]] = {
    "owner@ganadash.dev": {"name": "Dashboard Owner", "roles": ["admin"]},
    "host@example.com": {"name": "Front of House", "roles": ["host"]},
    "member@example.com": {"name": "Member User", "roles": ["member"]},
}


@dataclass
class OTPEntry:
    code: str
    expires_at: datetime
    attempts: int = 0
    sent_at: Optional[datetime] = None

    def expired(self, now: datetime) -> bool:
        return self.expires_at < now


OTP_STORE: Dict[str, OTPEntry] = {}
OTP_EXP_MINUTES = int(os.getenv("OTP_EXPIRES_MIN", "10"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
OTP_RESEND_DELAY_SECONDS = int(os.getenv("OTP_RESEND_DELAY_SECONDS", "180"))


def should_include_otp_in_response() -> bool:
    return _flag("GANADASH_INCLUDE_OTP_IN_RESPONSE")


def _mail_code(recipient: str, code: str) -> None:
    smtp = SmtpSettings.from_env()
    if smtp is None:
        logger.info("No SMTP settings; sign-in code for %s stays server-side", recipient)
        return
    message = EmailMessage()
    message["Subject"] = "Your GanaDash sign-in code"
    message["From"] = smtp.sender
    message["To"] = recipient
    message.set_content(
        f"Use {code} to sign in to GanaDash.\n\nThe code is valid for {OTP_EXP_MINUTES} minutes."
    )
    try:
        with smtplib.SMTP(smtp.host, smtp.port, timeout=10) as conn:
            if smtp.use_tls:
                conn.starttls(context=ssl.create_default_context())
            conn.login(smtp.username, smtp.password)
            conn.send_message(message)
    except (smtplib.SMTPException, OSError):
        logger.exception("Could not e-mail sign-in code to %s", recipient)
        return
    logger.info("Sign-in code e-mailed to %s", recipient)


def create_access_token(user: User, cfg: Optional[JwtConfig] = None) -> str:
    cfg = cfg or JwtConfig.from_env()
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": user.user_id,
        "name": user.name,
        "roles": list(user.roles),
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(minutes=cfg.expires_min)).timestamp()),
    }
    return jwt.encode(claims, cfg.secret, algorithm=cfg.algorithm)


def decode_token(token: str, cfg: Optional[JwtConfig] = None) -> User:
    cfg = cfg or JwtConfig.from_env()
    try:
        claims = jwt.decode(token, cfg.secret, algorithms=[cfg.algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return User(email=claims["sub"], name=claims.get("name", ""), roles=list(claims.get("roles") or []))


def register_user(email: str, name: str, roles: Optional[List[str]] = None) -> User:
    key = email.lower()
    if key in USERS:
        raise ValueError("User already exists")
    USERS[key] = {"name": name, "roles": list(roles or ["member"])}
    return _account(key)


def _account(email: str) -> User:
    record = USERS[email]
    return User(email=email, name=str(record.get("name") or email), roles=list(record.get("roles") or []))


def issue_otp(email: str) -> str:
    """Create (or re-send) the sign-in code for ``email``.

    A code younger than ``OTP_RESEND_DELAY_SECONDS`` is returned as-is
    without another e-mail; an older unexpired code is re-sent unchanged.
    """
    key = email.lower()
    now = datetime.now(timezone.utc)
    current = OTP_STORE.get(key)
    if current and not current.expired(now):
        if current.sent_at and now - current.sent_at < timedelta(seconds=OTP_RESEND_DELAY_SECONDS):
            logger.info("Sign-in code for %s sent recently; skipping e-mail", key)
            return current.code
        code, expires_at = current.code, current.expires_at
    else:
        code = f"{secrets.randbelow(10**6):06d}"
        expires_at = now + timedelta(minutes=OTP_EXP_MINUTES)
    OTP_STORE[key] = OTPEntry(code=code, expires_at=expires_at, sent_at=now)
    logger.info("Sign-in code issued for %s (expires %s)", key, expires_at.isoformat())
    _mail_code(key, code)
    return code


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def verify_otp(email: str, code: str, name: Optional[str] = None) -> User:
    """Consume a sign-in code and return the (possibly new) account."""
    key = email.lower()
    entry = OTP_STORE.get(key)
    if entry is None:
        raise _bad_request("OTP not requested")
    if entry.expired(datetime.now(timezone.utc)):
        del OTP_STORE[key]
        raise _bad_request("OTP expired")
    entry.attempts += 1
    if entry.attempts > OTP_MAX_ATTEMPTS:
        del OTP_STORE[key]
        raise _bad_request("Too many invalid attempts")
    if not secrets.compare_digest(entry.code, code):
        raise _bad_request("Invalid code")
    del OTP_STORE[key]

    if key not in USERS:
        if not name:
            raise _bad_request("Name required to create account")
        return register_user(key, name)
    if name:
        USERS[key]["name"] = name
    return _account(key)


def public_mode_enabled() -> bool:
    """Guest access without a token.

    ``GANADASH_PUBLIC_MODE`` decides when set; otherwise guests are allowed
    in development and refused under pytest, CI and production.
    """
    explicit = os.getenv("GANADASH_PUBLIC_MODE")
    if explicit is not None:
        return explicit.strip().lower() in _TRUTHY
    if os.getenv("PYTEST_CURRENT_TEST") or os.getenv("CI"):
        return False
    env_name = (os.getenv("GANADASH_ENV") or os.getenv("ENVIRONMENT") or "development").lower()
    return env_name not in ("prod", "production")


def _guest() -> User:
    return User(email=GUEST_EMAIL, name="Guest", roles=["member"])


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> User:
    guests_allowed = public_mode_enabled()
    if creds is None or (creds.scheme or "").lower() != "bearer":
        if guests_allowed:
            return _guest()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return decode_token(creds.credentials)
    except HTTPException:
        if guests_allowed:
            return _guest()
        raise


def get_optional_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Optional[User]:
    """The caller if a valid token was sent, else ``None``."""
    if creds is None or not creds.credentials:
        return None
    try:
        return decode_token(creds.credentials)
    except HTTPException:
        return None
