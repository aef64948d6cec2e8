import dataclasses
import json
import logging
import os
import sys

from butler.config import get_settings

_SECRETS = ("database_url", "whatsapp_app_secret", "twilio_auth_token")


def get_log_config():
    log_dir = os.getenv("LOG_DIR", "logs")
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_json = os.getenv("LOG_JSON", "false").lower() == "true"
    retention_days = int(os.getenv("LOG_RETENTION_DAYS", "7"))
    rotate_utc = os.getenv("LOG_ROTATE_UTC", "false").lower() == "true"

    log_level = getattr(logging, log_level_str, logging.INFO)

    return {
        "log_dir": os.path.abspath(log_dir),
        "log_level": logging.getLevelName(log_level),
        "log_json": log_json,
        "retention_days": retention_days,
        "rotate_utc": rotate_utc,
    }


def get_runtime_config():
    """Effective settings with secrets reduced to whether they are set."""
    settings = dataclasses.asdict(get_settings())
    for key in _SECRETS:
        settings[key] = "***" if settings[key] else None
    return {"settings": settings, "logging": get_log_config()}


def main():
    sys.stdout.write(json.dumps(get_runtime_config(), indent=2) + "\n")


if __name__ == "__main__":
    main()
