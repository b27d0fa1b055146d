"""
Environment-backed settings.

Values are read from the environment on every call so a re-created process
(or a test using monkeypatch) always sees the current configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import quote

from .errors import ConfigurationError

DEFAULT_DB_HOST = "localhost"
DEFAULT_DB_PORT = 5432
DEFAULT_DB_NAME = "parcels"
DEFAULT_PORT = 5000
DEFAULT_STRIPE_API_BASE = "https://api.stripe.com"


def env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class StoreSettings:
    user: str
    password: str
    host: str = DEFAULT_DB_HOST
    port: int = DEFAULT_DB_PORT
    database: str = DEFAULT_DB_NAME
    ssl: str | None = None
    pool_max_size: int = 5
    command_timeout_s: float = 30.0
    connect_timeout_s: float = 10.0
    ping_timeout_s: float = 5.0

    def dsn(self) -> str:
        # Credentials may contain '@', ':' or '/', so both are percent-encoded.
        user = quote(self.user, safe="")
        password = quote(self.password, safe="")
        return f"postgresql://{user}:{password}@{self.host}:{self.port}/{self.database}"


def store_credentials_present() -> bool:
    return bool(env_str("DB_USER") and env_str("DB_PASSWORD"))


def load_store_settings() -> StoreSettings:
    """
    Build store settings from the environment.

    Raises ConfigurationError when DB_USER or DB_PASSWORD is missing.
    """
    user = env_str("DB_USER")
    password = env_str("DB_PASSWORD")
    if not user or not password:
        raise ConfigurationError("DB_USER and DB_PASSWORD environment variables are required")

    return StoreSettings(
        user=user,
        password=password,
        host=env_str("DB_HOST", DEFAULT_DB_HOST),
        port=env_int("DB_PORT", DEFAULT_DB_PORT),
        database=env_str("DB_NAME", DEFAULT_DB_NAME),
        ssl=env_str("DB_SSL") or None,
        pool_max_size=max(1, env_int("DB_POOL_MAX_SIZE", 5)),
        command_timeout_s=env_float("DB_COMMAND_TIMEOUT_S", 30.0),
        connect_timeout_s=env_float("DB_CONNECT_TIMEOUT_S", 10.0),
        ping_timeout_s=env_float("DB_PING_TIMEOUT_S", 5.0),
    )


@dataclass(frozen=True)
class PaymentSettings:
    secret_key: str
    webhook_secret: str
    api_base: str = DEFAULT_STRIPE_API_BASE


def load_payment_settings() -> PaymentSettings:
    return PaymentSettings(
        secret_key=env_str("STRIPE_SECRET_KEY"),
        webhook_secret=env_str("STRIPE_WEBHOOK_SECRET"),
        api_base=env_str("STRIPE_API_BASE", DEFAULT_STRIPE_API_BASE).rstrip("/"),
    )


def listen_port() -> int:
    return env_int("PORT", DEFAULT_PORT)


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()
