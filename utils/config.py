import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from utils.error_codes import ChatError, ErrorCodes

HOUR = 60 * 60


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    report_threshold: int = 10
    ban_seconds: float = 24 * HOUR
    tally_ttl_seconds: float = 7 * 24 * HOUR
    sweep_interval: float = 60.0
    max_payload: int = 50 * 1024 * 1024  # 50MB frames for media data URLs
    rate_limit: int = 30
    rate_period: float = 1.0
    identity_scheme: str = "plain"
    identity_secret: Optional[str] = None
    trust_forwarded: bool = False
    log_level: str = "INFO"

    def override(self, **changes) -> "Settings":
        """Returns a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _int(env, name, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ChatError(ErrorCodes.ERR_CONFIG, f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ChatError(ErrorCodes.ERR_CONFIG, f"{name} must be positive")
    return value


def _float(env, name, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ChatError(ErrorCodes.ERR_CONFIG, f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ChatError(ErrorCodes.ERR_CONFIG, f"{name} must be positive")
    return value


def _bool(env, name, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Builds Settings from environment variables. PORT and HOST keep their
    conventional names, everything else is prefixed with CHAT_.
    """
    if env is None:
        env = os.environ
    defaults = Settings()

    scheme = env.get("CHAT_IDENTITY_SCHEME", defaults.identity_scheme).strip().lower()
    if scheme not in ("plain", "hashed"):
        raise ChatError(ErrorCodes.ERR_CONFIG, f"Unknown identity scheme {scheme!r}")

    return Settings(
        host=env.get("HOST", defaults.host),
        port=_int(env, "PORT", defaults.port),
        report_threshold=_int(env, "CHAT_REPORT_THRESHOLD", defaults.report_threshold),
        ban_seconds=_float(env, "CHAT_BAN_HOURS", defaults.ban_seconds / HOUR) * HOUR,
        tally_ttl_seconds=_float(env, "CHAT_TALLY_TTL_HOURS", defaults.tally_ttl_seconds / HOUR) * HOUR,
        sweep_interval=_float(env, "CHAT_SWEEP_INTERVAL", defaults.sweep_interval),
        max_payload=_int(env, "CHAT_MAX_PAYLOAD", defaults.max_payload),
        rate_limit=_int(env, "CHAT_RATE_LIMIT", defaults.rate_limit),
        rate_period=_float(env, "CHAT_RATE_PERIOD", defaults.rate_period),
        identity_scheme=scheme,
        identity_secret=env.get("CHAT_IDENTITY_SECRET") or None,
        trust_forwarded=_bool(env, "CHAT_TRUST_FORWARDED", defaults.trust_forwarded),
        log_level=env.get("CHAT_LOG_LEVEL", defaults.log_level).upper(),
    )
