"""Runtime settings loaded from the environment."""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache


@dataclasses.dataclass(frozen=True)
class Settings:
    """Configuration consumed by the message pipeline and HTTP layer."""

    database_url: str | None = None
    hotel_name: str = "Our Hotel"
    task_confidence_threshold: float = 0.6
    escalation_low_confidence: float = 0.5
    escalation_repeat_count: int = 2
    escalation_history_window: int = 10
    webhook_rate_limit: str = "60/minute"
    whatsapp_app_secret: str | None = None
    twilio_auth_token: str | None = None


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    value = float(raw)
    if not 0.0 <= value <= 1.0:
        raise RuntimeError(f"{name} must be between 0 and 1, got {raw}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the environment with development defaults."""

    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        hotel_name=os.getenv("BUTLER_HOTEL_NAME", "Our Hotel"),
        task_confidence_threshold=_float("BUTLER_TASK_CONFIDENCE_THRESHOLD", 0.6),
        escalation_low_confidence=_float("BUTLER_ESCALATION_LOW_CONFIDENCE", 0.5),
        escalation_repeat_count=int(os.getenv("BUTLER_ESCALATION_REPEAT_COUNT", "2")),
        escalation_history_window=int(
            os.getenv("BUTLER_ESCALATION_HISTORY_WINDOW", "10")
        ),
        webhook_rate_limit=os.getenv("WEBHOOK_RATE_LIMIT", "60/minute"),
        whatsapp_app_secret=os.getenv("WHATSAPP_APP_SECRET") or None,
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()
