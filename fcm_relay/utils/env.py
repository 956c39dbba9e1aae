"""Loads relay settings from a local .env file.

Only `GOOGLE_APPLICATION_CREDENTIALS` and `FCM_RELAY_*` keys are applied, so a shared .env
cannot leak unrelated variables into the process. A relative credential path is anchored to the
directory holding the .env file rather than the current working directory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

CREDENTIALS_KEY = "GOOGLE_APPLICATION_CREDENTIALS"
RELAY_KEY_PREFIX = "FCM_RELAY_"


def default_env_path() -> Path:
  """Return the .env path at the repo root."""
  return Path(__file__).resolve().parents[2] / ".env"


def is_relay_key(key: str) -> bool:
  return key == CREDENTIALS_KEY or key.startswith(RELAY_KEY_PREFIX)


def parse_env_line(raw_line: str) -> tuple[str, str] | None:
  """Split one `KEY=value` line, returning None for comments, blanks and malformed lines."""
  line = raw_line.strip()
  if not line or line.startswith("#"):
    return None
  line = line.removeprefix("export ").lstrip()
  key, separator, value = line.partition("=")
  key = key.strip()
  if not separator or not key:
    return None
  value = value.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    value = value[1:-1]
  return key, value


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Apply relay keys from `path` to the process environment and return the keys that were set."""
  if not path.is_file():
    return []

  applied: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    parsed = parse_env_line(raw_line)
    if parsed is None:
      continue
    key, value = parsed
    if not is_relay_key(key):
      logger.debug("Ignoring non-relay key %s in %s", key, path)
      continue
    if not override and key in os.environ:
      continue
    if key == CREDENTIALS_KEY and value and not Path(value).expanduser().is_absolute():
      value = str((path.parent / Path(value).expanduser()).resolve())
    os.environ[key] = value
    applied.append(key)

  return applied
