from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


# -------------------------
# Helpers
# -------------------------

def _get_env(name: str, default: Optional[str] = None) -> str:
    val = os.getenv(name, default)
    if val is None or val.strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return val.strip()


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _get_env(name, str(default))
    try:
        val = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")
    if val < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}, got {val}")
    return val


def _parse_origins(raw: str) -> list[str]:
    raw = (raw or "").strip()
    if not raw:
        return ["*"]
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


# -------------------------
# Settings
# -------------------------

@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./quiz_service.db"
    log_level: str = "INFO"
    # name of a quiz_service.scoring.ShortAnswerMatch member
    short_answer_match: str = "EXACT"
    attempt_create_retries: int = 3
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    port: int = 8000


def get_settings() -> Settings:
    return Settings(
        database_url=_get_env("DATABASE_URL", Settings.database_url),
        log_level=_get_env("LOG_LEVEL", Settings.log_level).upper(),
        short_answer_match=_get_env("SHORT_ANSWER_MATCH", Settings.short_answer_match).upper(),
        attempt_create_retries=_get_int("ATTEMPT_CREATE_RETRIES", Settings.attempt_create_retries, minimum=1),
        cors_origins=_parse_origins(os.getenv("CORS_ORIGINS", "*")),
        port=_get_int("PORT", Settings.port, minimum=1),
    )
