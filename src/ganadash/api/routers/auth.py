from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...security.auth import (
    OTP_EXP_MINUTES,
    JwtConfig,
    OTPRequest,
    OTPVerifyRequest,
    TokenResponse,
    User,
    create_access_token,
    get_current_user,
    issue_otp,
    should_include_otp_in_response,
    verify_otp,
)
from ...security.rate_limit import enforce_rate_limit
from ..deps import client_ip

router = APIRouter(prefix="/auth", tags=["auth"])

# (limit env, window env, default limit, default window seconds)
_OTP_LIMITS = {
    "otp_request": ("OTP_REQUEST_LIMIT", "OTP_REQUEST_WINDOW_SEC", 5, 900),
    "otp_verify": ("OTP_VERIFY_LIMIT", "OTP_VERIFY_WINDOW_SEC", 10, 900),
}


def _throttle(action: str, request: Request, email: str, detail: str) -> None:
    limit_env, window_env, limit, window = _OTP_LIMITS[action]
    enforce_rate_limit(
        action,
        f"{client_ip(request)}:{email.lower()}",
        detail=detail,
        limit_env=limit_env,
        window_env=window_env,
        default_limit=limit,
        default_window_seconds=window,
    )


@router.post("/request-otp")
def request_otp(body: OTPRequest, request: Request) -> dict:
    _throttle("otp_request", request, body.email, "Too many OTP requests. Please try again later.")
    code = issue_otp(body.email)
    result = {"status": "sent", "expires_in": OTP_EXP_MINUTES * 60}
    if should_include_otp_in_response():
        result["code"] = code
    return result


@router.post("/verify-otp", response_model=TokenResponse)
def verify(body: OTPVerifyRequest, request: Request) -> TokenResponse:
    _throttle("otp_verify", request, body.email, "Too many OTP verification attempts. Please try again later.")
    try:
        user = verify_otp(body.email, body.code, name=body.name)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    cfg = JwtConfig.from_env()
    return TokenResponse(access_token=create_access_token(user, cfg), expires_in=cfg.expires_min * 60, user=user)


@router.get("/me", response_model=User)
def me(user: User = Depends(get_current_user)) -> User:
    return user
