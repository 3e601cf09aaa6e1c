"""Runtime configuration read from the environment (overridable in tests)."""
import logging
import os
from typing import Mapping, NamedTuple, Optional

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "change-me-in-prod-please"
MIN_JWT_SECRET_LENGTH = 16


class Settings(NamedTuple):
    host: str
    port: int
    jwt_secret: str
    service_fee_bps: int
    database_url: str
    base_url: str
    allow_admin_signup: bool
    log_level: str
    app_env: str


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _as_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ

    jwt_secret = env.get("JWT_SECRET", DEFAULT_JWT_SECRET)
    if len(jwt_secret) < MIN_JWT_SECRET_LENGTH:
        raise ValueError(f"JWT_SECRET should be at least {MIN_JWT_SECRET_LENGTH} chars")

    app_env = env.get("APP_ENV", "development")
    if jwt_secret == DEFAULT_JWT_SECRET:
        if app_env == "production":
            raise ValueError("JWT_SECRET must be set explicitly when APP_ENV=production")
        logger.warning("JWT_SECRET is not set; using the insecure development default")

    fee_bps = _as_int("SERVICE_FEE_BPS", env.get("SERVICE_FEE_BPS", "250"))
    if not 0 <= fee_bps <= 10000:
        raise ValueError("SERVICE_FEE_BPS must be between 0 and 10000")

    return Settings(
        host=env.get("HOST", "0.0.0.0"),
        port=_as_int("PORT", env.get("PORT", "3000")),
        jwt_secret=jwt_secret,
        service_fee_bps=fee_bps,
        database_url=env.get("DATABASE_URL") or "sqlite:///./tipme.db",
        base_url=env.get("BASE_URL", "http://localhost:3000").rstrip("/"),
        allow_admin_signup=_as_bool(env.get("ALLOW_ADMIN_SIGNUP")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        app_env=app_env,
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def configure(**overrides) -> Settings:
    """Replace individual settings at runtime, e.g. ``configure(service_fee_bps=500)``."""
    global state
    state = state._replace(**overrides)
    return state
