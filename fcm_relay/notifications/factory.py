"""Factory helpers for push senders."""

from __future__ import annotations

from fcm_relay.config import Settings
from fcm_relay.notifications.contracts import PushSender
from fcm_relay.notifications.credentials import CachedTokenProvider, CredentialConfig, ServiceAccountCredentialResolver
from fcm_relay.notifications.fcm_sender import FcmSender, NullPushSender


def build_push_sender(settings: Settings) -> PushSender:
  """Construct a push sender based on environment configuration."""
  # Push can be disabled for local runs where no service account is available.
  if not settings.push_enabled or not settings.credentials_path:
    return NullPushSender()

  resolver = ServiceAccountCredentialResolver(CredentialConfig(path=settings.credentials_path))
  # Without the cache every notification mints a fresh token.
  token_source = CachedTokenProvider(resolver) if settings.token_cache_enabled else None
  return FcmSender(resolver=resolver, token_source=token_source, host=settings.fcm_host, timeout_seconds=settings.request_timeout_seconds, keepalive_seconds=settings.keepalive_seconds)
