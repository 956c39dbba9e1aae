"""Contracts for push notification delivery through Firebase Cloud Messaging."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class NotificationPayload:
  """Represents the user-visible content of a push notification."""

  title: str
  body: str
  image_url: str
  click_action: str


@dataclass(frozen=True)
class AccessToken:
  """A bearer token together with its expiry when the issuer reports one."""

  token: str
  expiry: datetime | None = None


class DeliveryOutcome(str, enum.Enum):
  """Final state of a single delivery attempt."""

  DELIVERED = "delivered"
  REJECTED = "rejected"
  TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class DeliveryResult:
  """Typed result of one send so callers can decide whether to retry or alert."""

  outcome: DeliveryOutcome
  status_code: int | None = None
  response_body: str = ""
  reason: str | None = None

  @property
  def ok(self) -> bool:
    return self.outcome is DeliveryOutcome.DELIVERED


class CredentialErrorKind(str, enum.Enum):
  """Failure categories raised while resolving service-account credentials."""

  IO_FAILURE = "io_failure"
  PARSE_FAILURE = "parse_failure"
  MISSING_FIELD = "missing_field"
  AUTH_FAILURE = "auth_failure"


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class CredentialError(NotificationError):
  """Raised when project id or bearer token resolution fails; aborts the send."""

  kind: CredentialErrorKind

  def __init__(self, message: str, *, kind: CredentialErrorKind) -> None:
    super().__init__(message)
    self.kind = kind


class CredentialIOError(CredentialError):
  """Exception raised when the credential file cannot be read."""

  def __init__(self, message: str) -> None:
    super().__init__(message, kind=CredentialErrorKind.IO_FAILURE)


class CredentialParseError(CredentialError):
  """Exception raised when the credential file is not a UTF-8 JSON object."""

  def __init__(self, message: str) -> None:
    super().__init__(message, kind=CredentialErrorKind.PARSE_FAILURE)


class CredentialMissingFieldError(CredentialError):
  """Exception raised when a required credential field is absent or not a string."""

  def __init__(self, message: str) -> None:
    super().__init__(message, kind=CredentialErrorKind.MISSING_FIELD)


class AuthFailureError(CredentialError):
  """Exception raised when the OAuth2 token exchange fails."""

  def __init__(self, message: str) -> None:
    super().__init__(message, kind=CredentialErrorKind.AUTH_FAILURE)


class PushSender(Protocol):
  """Delivery contract for sending a push notification to one device token."""

  def push(self, payload: NotificationPayload, token: str) -> DeliveryResult:
    """Send a push notification synchronously and report the delivery outcome."""

  def close(self) -> None:
    """Release any transport resources held by the sender."""
