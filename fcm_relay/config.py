"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from fcm_relay.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_FCM_HOST = "fcm.googleapis.com"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the FCM relay."""

  credentials_path: str | None
  push_enabled: bool
  fcm_host: str
  request_timeout_seconds: float
  keepalive_seconds: float
  token_cache_enabled: bool
  log_level: str
  log_dir: str
  log_max_bytes: int
  log_backup_count: int


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or not raw.strip():
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  stripped = raw.strip()
  return stripped or None


def _parse_positive_float(name: str, raw: str | None, default: float) -> float:
  if raw is None or not raw.strip():
    return default
  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc

  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")

  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  credentials_path = _optional_str(os.getenv("GOOGLE_APPLICATION_CREDENTIALS"))
  push_enabled = _parse_bool(os.getenv("FCM_RELAY_PUSH_ENABLED"), default=True)

  # A push-enabled relay cannot mint tokens without a service-account key.
  if push_enabled and not credentials_path:
    raise ValueError("GOOGLE_APPLICATION_CREDENTIALS must be set when push notifications are enabled.")

  fcm_host = (os.getenv("FCM_RELAY_FCM_HOST") or DEFAULT_FCM_HOST).strip().rstrip("/")
  if "://" in fcm_host:
    raise ValueError("FCM_RELAY_FCM_HOST must be a bare host name without a scheme.")

  request_timeout_seconds = _parse_positive_float("FCM_RELAY_REQUEST_TIMEOUT_SECONDS", os.getenv("FCM_RELAY_REQUEST_TIMEOUT_SECONDS"), 60.0)
  keepalive_seconds = _parse_positive_float("FCM_RELAY_KEEPALIVE_SECONDS", os.getenv("FCM_RELAY_KEEPALIVE_SECONDS"), 15.0)
  token_cache_enabled = _parse_bool(os.getenv("FCM_RELAY_TOKEN_CACHE_ENABLED"))

  log_level = (os.getenv("FCM_RELAY_LOG_LEVEL") or "DEBUG").strip().upper()
  if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
    raise ValueError("FCM_RELAY_LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL.")

  log_dir = (os.getenv("FCM_RELAY_LOG_DIR") or "./logs").strip()

  log_max_bytes = int(os.getenv("FCM_RELAY_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("FCM_RELAY_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("FCM_RELAY_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("FCM_RELAY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  return Settings(
    credentials_path=credentials_path,
    push_enabled=push_enabled,
    fcm_host=fcm_host,
    request_timeout_seconds=request_timeout_seconds,
    keepalive_seconds=keepalive_seconds,
    token_cache_enabled=token_cache_enabled,
    log_level=log_level,
    log_dir=log_dir,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
  )
