"""Send one example notification through FCM and exit."""

from __future__ import annotations

import logging

from fcm_relay.config import get_settings
from fcm_relay.core.logging import initialize_logging
from fcm_relay.notifications.contracts import CredentialError, NotificationPayload
from fcm_relay.notifications.factory import build_push_sender

logger = logging.getLogger("fcm_relay")

EXAMPLE_PAYLOAD = NotificationPayload(title="Hello!", body="This is a test notification.", image_url="https://dummyimage.com/600x400/000/fff", click_action="OPEN_APP")
EXAMPLE_TOKEN = "token from client"


def main() -> int:
  settings = get_settings()
  initialize_logging(settings)
  logger.debug("Starting FCM notification handler...")

  sender = build_push_sender(settings)
  try:
    result = sender.push(EXAMPLE_PAYLOAD, EXAMPLE_TOKEN)
  except CredentialError as exc:
    logger.error("Failed to send notification: kind=%s error=%s", exc.kind.value, exc)
    return 0
  finally:
    sender.close()

  if result.ok:
    logger.debug("Notification sent successfully!")
  else:
    logger.debug("Notification not delivered: outcome=%s reason=%s", result.outcome.value, result.reason)
  return 0


if __name__ == "__main__":
  raise SystemExit(main())
