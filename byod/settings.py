from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("BYOD_DB_PATH", "byod.db")
    log_debug: bool = _env_bool("BYOD_LOG_DEBUG", False)
    default_icon: str = os.getenv("BYOD_DEFAULT_ICON", "list")

    # Consul catalog
    consul_port: int = _env_int("BYOD_CONSUL_PORT", 8500)
    consul_token: str | None = os.getenv("BYOD_CONSUL_TOKEN")
    # The long-poll wait has to stay below the HTTP read timeout, otherwise an
    # idle catalog looks exactly like a lost connection.
    consul_wait_s: int = _env_int("BYOD_CONSUL_WAIT_S", 50)
    consul_timeout_s: int = _env_int("BYOD_CONSUL_TIMEOUT_S", 60)
    consul_timeout_margin_s: int = _env_int("BYOD_CONSUL_TIMEOUT_MARGIN_S", 5)

    # DNS services bound to the default gateway (optional)
    default_gateway: str | None = os.getenv("BYOD_DEFAULT_GATEWAY")

    # HTTP basic auth for mutating API routes
    admin_user: str = os.getenv("BYOD_ADMIN_USER", "admin")
    admin_password: str = os.getenv("BYOD_ADMIN_PASSWORD", "admin")


settings = Settings()
