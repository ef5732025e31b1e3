from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable

from dotenv import load_dotenv

DEFAULT_PAGE_SIZE = 5
DEFAULT_DELETE_COLLECTION = "Projects"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ClientConfig:
    env_name: str
    api_base_url: str
    delete_collection: str = DEFAULT_DELETE_COLLECTION
    page_size: int = DEFAULT_PAGE_SIZE
    connect_timeout_seconds: float = 5.0
    timeout_seconds: float = 10.0
    max_connections: int = 20
    verify_ssl: bool = True

    @property
    def normalized_env(self) -> str:
        return self.env_name.lower().strip()

    def resource_url(self, table_name: str) -> str:
        return f"{self.api_base_url}/{table_name.strip('/')}"

    def delete_collection_url(self) -> str:
        return self.resource_url(self.delete_collection)


def _require(values: dict[str, str | None], required: Iterable[str]) -> None:
    missing = [key for key in required if not values.get(key)]
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}")


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> ClientConfig:
    """Load config from environment with optional .env override."""
    load_dotenv(env_file)

    env_name = (os.getenv("TABLESYNC_ENV") or "dev").strip()
    env_key = env_name.upper()

    api_base_url = (
        (os.getenv(f"TABLESYNC_API_BASE_URL_{env_key}") or "").strip()
        or (os.getenv("TABLESYNC_API_BASE_URL") or "").strip()
    )

    delete_collection = (
        (os.getenv("TABLESYNC_DELETE_COLLECTION") or "").strip().strip("/")
        or DEFAULT_DELETE_COLLECTION
    )

    page_size = _read_int("TABLESYNC_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))
    _validate(page_size >= 1, f"Invalid TABLESYNC_PAGE_SIZE: expected >= 1, got {page_size}")

    timeout_seconds = _read_float("TABLESYNC_TIMEOUT_SECONDS", "10")
    _validate(
        timeout_seconds > 0,
        f"Invalid TABLESYNC_TIMEOUT_SECONDS: expected > 0, got {timeout_seconds}",
    )

    connect_timeout_seconds = _read_float(
        "TABLESYNC_CONNECT_TIMEOUT_SECONDS", str(min(timeout_seconds, 5.0))
    )
    _validate(
        connect_timeout_seconds > 0,
        (
            "Invalid TABLESYNC_CONNECT_TIMEOUT_SECONDS: "
            f"expected > 0, got {connect_timeout_seconds}"
        ),
    )

    max_connections = _read_int("TABLESYNC_MAX_CONNECTIONS", "20")
    _validate(
        max_connections >= 1,
        f"Invalid TABLESYNC_MAX_CONNECTIONS: expected >= 1, got {max_connections}",
    )

    verify_ssl = _coerce_bool(os.getenv("TABLESYNC_VERIFY_SSL"), True)

    values = {"TABLESYNC_API_BASE_URL": api_base_url}
    _require(values, ["TABLESYNC_API_BASE_URL"])

    return ClientConfig(
        env_name=env_name,
        api_base_url=api_base_url.rstrip("/"),
        delete_collection=delete_collection,
        page_size=page_size,
        connect_timeout_seconds=connect_timeout_seconds,
        timeout_seconds=timeout_seconds,
        max_connections=max_connections,
        verify_ssl=verify_ssl,
    )
