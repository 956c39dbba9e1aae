"""Firebase Cloud Messaging HTTP v1 delivery implementations."""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Any, Protocol

import httpx

from fcm_relay.config import DEFAULT_FCM_HOST
from fcm_relay.notifications.contracts import DeliveryOutcome, DeliveryResult, NotificationPayload, PushSender
from fcm_relay.notifications.credentials import FCM_SCOPE, ServiceAccountCredentialResolver

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_KEEPALIVE_SECONDS = 15.0


class TokenSource(Protocol):
  def resolve_access_token(self, scope: str = FCM_SCOPE) -> str: ...


def build_envelope(payload: NotificationPayload, token: str) -> dict[str, Any]:
  """Map a payload and device token into the FCM v1 `messages:send` request body."""
  return {
    "message": {
      "token": token,
      "notification": {"title": payload.title, "body": payload.body, "image": payload.image_url},
      "android": {"notification": {"title": payload.title, "body": payload.body, "sound": "default", "click_action": payload.click_action, "image": payload.image_url}},
    }
  }


def serialize_envelope(envelope: dict[str, Any]) -> bytes:
  """Encode an envelope as compact UTF-8 JSON; equal envelopes yield identical bytes."""
  return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def build_send_url(project_id: str, *, host: str = DEFAULT_FCM_HOST) -> str:
  # https://firebase.google.com/docs/reference/fcm/rest/v1/projects.messages/send
  return f"https://{host}/v1/projects/{project_id}/messages:send"


def build_http_client(*, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS, keepalive_seconds: float = DEFAULT_KEEPALIVE_SECONDS) -> httpx.Client:
  """Build the shared transport client used for sequential sends."""
  return httpx.Client(timeout=httpx.Timeout(timeout_seconds), limits=httpx.Limits(keepalive_expiry=keepalive_seconds))


class FcmSender(PushSender):
  """`httpx` backed sender for a single device token per call.

  Credential failures propagate as `CredentialError`; delivery failures are logged and
  reported through the returned `DeliveryResult` instead of being raised.
  """

  def __init__(
    self,
    *,
    resolver: ServiceAccountCredentialResolver,
    token_source: TokenSource | None = None,
    client: httpx.Client | None = None,
    host: str = DEFAULT_FCM_HOST,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    keepalive_seconds: float = DEFAULT_KEEPALIVE_SECONDS,
  ) -> None:
    self._resolver = resolver
    self._token_source = token_source or resolver
    self._host = host
    self._timeout_seconds = timeout_seconds
    self._owns_client = client is None
    self._client = client or build_http_client(timeout_seconds=timeout_seconds, keepalive_seconds=keepalive_seconds)

  def push(self, payload: NotificationPayload, token: str) -> DeliveryResult:
    """Build the envelope for `token` and deliver it."""
    logger.debug("Sending to token_prefix=%s", (token or "")[:8])
    return self.send(build_envelope(payload, token))

  def send(self, envelope: dict[str, Any]) -> DeliveryResult:
    """POST an envelope to the send endpoint and classify the response."""
    # Both values must resolve before any request is issued.
    project_id = self._resolver.resolve_project_id()
    auth_token = self._token_source.resolve_access_token(FCM_SCOPE)

    url = build_send_url(project_id, host=self._host)
    body = serialize_envelope(envelope)
    headers = {"Content-Type": "application/json", "Content-Length": str(len(body)), "Authorization": f"Bearer {auth_token}"}

    try:
      response = self._client.post(url, content=body, headers=headers, timeout=self._timeout_seconds)
    except httpx.TimeoutException as exc:
      logger.error("FCM request timed out: %s", exc)
      return DeliveryResult(outcome=DeliveryOutcome.TRANSPORT_ERROR, reason=f"timeout: {exc}")
    except httpx.HTTPError as exc:
      logger.error("FCM request error: %r", exc)
      return DeliveryResult(outcome=DeliveryOutcome.TRANSPORT_ERROR, reason=str(exc) or type(exc).__name__)
    except httpx.InvalidURL as exc:
      logger.error("FCM request URL rejected url=%r: %s", url, exc)
      return DeliveryResult(outcome=DeliveryOutcome.TRANSPORT_ERROR, reason=f"invalid url: {exc}")

    if response.is_success:
      logger.debug("FCM Sent: %s", response.text)
      return DeliveryResult(outcome=DeliveryOutcome.DELIVERED, status_code=response.status_code, response_body=response.text)

    logger.error("FCM Error %s: %s", response.status_code, response.text)
    if response.status_code == HTTPStatus.UNAUTHORIZED:
      # A revoked or rotated key leaves a cached token unusable until it expires.
      invalidate = getattr(self._token_source, "invalidate", None)
      if callable(invalidate):
        invalidate()
        logger.warning("Cached access token dropped after HTTP 401")
    return DeliveryResult(outcome=DeliveryOutcome.REJECTED, status_code=response.status_code, response_body=response.text, reason=f"HTTP {response.status_code}")

  def close(self) -> None:
    """Close the transport client when this sender created it."""
    if self._owns_client:
      self._client.close()

  def __enter__(self) -> FcmSender:
    return self

  def __exit__(self, *exc_info: object) -> None:
    self.close()


class NullPushSender(PushSender):
  """No-op push sender used when push notifications are disabled or unconfigured."""

  def push(self, payload: NotificationPayload, token: str) -> DeliveryResult:
    """Drop the notification while recording a debug log."""
    logger.debug("Push notifications disabled; dropping push token_prefix=%s", (token or "")[:8])
    return DeliveryResult(outcome=DeliveryOutcome.DELIVERED, reason="push disabled")

  def close(self) -> None:
    return None
