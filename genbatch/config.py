"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from genbatch.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the orchestration service."""

  environment: str
  debug: bool
  redis_url: str | None
  pg_dsn: str | None
  pg_connect_timeout: int
  batch_ttl_seconds: int
  reply_ttl_seconds: int
  reply_timeout_seconds: float
  log_max_bytes: int
  log_backup_count: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("GENBATCH_ENV", "development").lower()
  debug = _parse_bool(os.getenv("GENBATCH_DEBUG"))

  # Batch state lives for a day; an unclaimed reply only needs to outlive one poll.
  batch_ttl_seconds = _positive_int("GENBATCH_BATCH_TTL_SECONDS", "86400")
  reply_ttl_seconds = _positive_int("GENBATCH_REPLY_TTL_SECONDS", "60")

  reply_timeout_seconds = float(os.getenv("GENBATCH_REPLY_TIMEOUT_SECONDS", "10"))
  if reply_timeout_seconds <= 0:
    raise ValueError("GENBATCH_REPLY_TIMEOUT_SECONDS must be positive.")

  log_max_bytes = _positive_int("GENBATCH_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("GENBATCH_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("GENBATCH_LOG_BACKUP_COUNT must be zero or a positive integer.")

  database = get_database_settings()

  return Settings(
    environment=environment,
    debug=debug,
    redis_url=_optional_str(os.getenv("GENBATCH_REDIS_URL")),
    pg_dsn=database.pg_dsn,
    pg_connect_timeout=database.pg_connect_timeout,
    batch_ttl_seconds=batch_ttl_seconds,
    reply_ttl_seconds=reply_ttl_seconds,
    reply_timeout_seconds=reply_timeout_seconds,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring the rest of the runtime configuration."""
  debug = _parse_bool(os.getenv("GENBATCH_DEBUG"))
  pg_connect_timeout = _positive_int("GENBATCH_PG_CONNECT_TIMEOUT", "5")

  # Support fallback to DATABASE_URL for platform-provided databases.
  pg_dsn = _optional_str(os.getenv("GENBATCH_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
