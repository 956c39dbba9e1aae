"""Service-account credential resolution for the FCM HTTP v1 API.

The key document is read from disk on every call so a rotated key is picked up without a restart.
Bearer tokens are minted through `google-auth`; `CachedTokenProvider` can sit in front of the
resolver when one token round trip per notification is too expensive.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import google.auth.transport.requests
from google.oauth2 import service_account

from fcm_relay.notifications.contracts import AccessToken, AuthFailureError, CredentialIOError, CredentialMissingFieldError, CredentialParseError

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
# Plain ids plus the legacy domain-scoped form `example.com:my-project`.
_PROJECT_ID_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9.:_-]*")


@dataclass(frozen=True)
class CredentialConfig:
  """Location of the service-account key document."""

  path: str


def strip_token_type(raw_token: str) -> str:
  """Return the bare token when the issuer prefixes it with a token type such as `Bearer`."""
  token = raw_token.strip()
  _, separator, remainder = token.partition(" ")
  if separator:
    return remainder.strip()
  return token


def _utcnow() -> datetime:
  # google-auth reports expiry as a naive UTC datetime.
  return datetime.now(timezone.utc).replace(tzinfo=None)


class ServiceAccountCredentialResolver:
  """Reads project metadata and mints bearer tokens from a service-account key file."""

  def __init__(self, config: CredentialConfig, *, request_factory: Callable[[], Any] | None = None) -> None:
    self._config = config
    self._request_factory = request_factory or google.auth.transport.requests.Request

  def load_document(self) -> dict[str, Any]:
    """Read and parse the key document, mapping each failure to its credential error kind."""
    try:
      raw = Path(self._config.path).read_bytes()
    except OSError as exc:
      raise CredentialIOError(f"Could not read service account file at {self._config.path}: {exc}") from exc

    try:
      document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
      raise CredentialParseError(f"Service account file is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
      raise CredentialParseError("Service account file must contain a JSON object.")

    return document

  def resolve_project_id(self) -> str:
    """Return the `project_id` of the configured service account."""
    document = self.load_document()
    project_id = document.get("project_id")
    if not isinstance(project_id, str) or not project_id.strip():
      raise CredentialMissingFieldError("could not get project_id")

    # The id becomes a URL path segment; anything outside the GCP id alphabet would reshape the request.
    if not _PROJECT_ID_RE.fullmatch(project_id):
      raise CredentialMissingFieldError(f"project_id in {self._config.path} is not a valid project identifier: {project_id!r}")

    return project_id

  def fetch_access_token(self, scope: str = FCM_SCOPE) -> AccessToken:
    """Run the OAuth2 service-account exchange and return the token with its expiry."""
    try:
      credentials = service_account.Credentials.from_service_account_file(self._config.path, scopes=[scope])
      credentials.refresh(self._request_factory())
    except Exception as exc:  # noqa: BLE001
      logger.error("Access token exchange failed scope=%s error=%s", scope, exc)
      raise AuthFailureError(f"could not get access token: {exc}") from exc

    token = strip_token_type(credentials.token or "")
    if not token:
      raise AuthFailureError("could not get access token: empty token returned")

    return AccessToken(token=token, expiry=getattr(credentials, "expiry", None))

  def resolve_access_token(self, scope: str = FCM_SCOPE) -> str:
    """Return a raw bearer token for `scope`, minted fresh on every call."""
    return self.fetch_access_token(scope).token


class CachedTokenProvider:
  """Reuses bearer tokens until they are close to expiry.

  Refreshes are serialized behind a lock so concurrent callers never trigger more than one
  token exchange for the same scope.
  """

  def __init__(self, resolver: ServiceAccountCredentialResolver, *, refresh_margin_seconds: float = 300.0, clock: Callable[[], datetime] = _utcnow) -> None:
    self._resolver = resolver
    self._refresh_margin = timedelta(seconds=refresh_margin_seconds)
    self._clock = clock
    self._lock = threading.Lock()
    self._tokens: dict[str, AccessToken] = {}

  def _is_fresh(self, cached: AccessToken | None) -> bool:
    if cached is None or cached.expiry is None:
      return False
    return self._clock() + self._refresh_margin < cached.expiry

  def resolve_access_token(self, scope: str = FCM_SCOPE) -> str:
    """Return a cached token for `scope`, refreshing it when missing or near expiry."""
    cached = self._tokens.get(scope)
    if self._is_fresh(cached):
      return cached.token

    with self._lock:
      # Another thread may have refreshed while this one waited.
      cached = self._tokens.get(scope)
      if self._is_fresh(cached):
        return cached.token

      fresh = self._resolver.fetch_access_token(scope)
      self._tokens[scope] = fresh
      logger.debug("Access token refreshed scope=%s expiry=%s", scope, fresh.expiry)
      return fresh.token

  def invalidate(self) -> None:
    """Drop all cached tokens so the next call performs a fresh exchange."""
    with self._lock:
      self._tokens.clear()
