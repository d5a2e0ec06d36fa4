from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


def _int(env: Mapping[str, str], name: str, default: int | None) -> int | None:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class BotConfig:
    """Process settings, read once at startup."""

    token: str
    client_id: int | None = None
    locale: str = "en"
    notice_delay: float = 3.0
    volume: float = 0.5
    metrics_port: int | None = None
    web_port: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> BotConfig:
        if env is None:
            env = os.environ
        token = env.get("DISCORD_TOKEN") or env.get("BOT_TOKEN")
        if not token:
            raise SystemExit("DISCORD_TOKEN not set in .env")
        return cls(
            token=token,
            client_id=_int(env, "CLIENT_ID", None),
            locale=env.get("LOCALE") or "en",
            notice_delay=_float(env, "NOTICE_DELAY", 3.0),
            volume=_float(env, "VOLUME", 0.5),
            metrics_port=_int(env, "METRICS_PORT", None),
            web_port=_int(env, "WEB_PORT", None),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
