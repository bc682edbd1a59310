"""Конфигурация приложения."""
import os
from functools import lru_cache


@lru_cache
def get_config():
    return type("Config", (), {
        "auth_secret": os.environ.get("AUTH_SECRET", ""),
        "token_ttl_seconds": int(os.environ.get("TOKEN_TTL_SECONDS", "3600")),
        "debug": os.environ.get("DEBUG", "0").lower() in ("1", "true", "yes"),
        "allowed_origins": os.environ.get("ALLOWED_ORIGINS", "*").split(","),
    })()
