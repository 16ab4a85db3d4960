import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


_ENV_TO_CLEAR = (
    "DB_MODE",
    "GANADASH_STORE_IMPL",
    "GANADASH_PUBLIC_MODE",
    "GANADASH_MODEL_PROVIDER",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "XAI_API_KEY",
    "WEBHOOK_SECRET",
    "REDIS_URL",
    "UPLOAD_MAX_BYTES",
)


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    """Fresh in-memory stores, no AI credentials and no rate limits for every test."""
    from src.ganadash.infrastructure.events import reset_publisher
    from src.ganadash.infrastructure.job_store import reset_job_store
    from src.ganadash.infrastructure.log_store import reset_log_store
    from src.ganadash.infrastructure.reservation_store import reset_reservation_store
    from src.ganadash.infrastructure.session_store import reset_session_store
    from src.ganadash.infrastructure.website_store import reset_website_store
    from src.ganadash.security import auth
    from src.ganadash.security.rate_limit import reset_rate_limits
    from src.ganadash.services.relay import reset_relay

    for key in _ENV_TO_CLEAR:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("GANADASH_RATE_LIMIT_DISABLED", "1")
    monkeypatch.setattr(auth, "USERS", {k: dict(v) for k, v in auth.USERS.items()})
    auth.OTP_STORE.clear()

    for reset in (
        reset_session_store,
        reset_website_store,
        reset_job_store,
        reset_reservation_store,
        reset_log_store,
        reset_publisher,
        reset_rate_limits,
        reset_relay,
    ):
        reset()
    yield
    auth.OTP_STORE.clear()
