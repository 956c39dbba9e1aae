import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def build_uvicorn_args() -> list[str]:
  """Return the uvicorn command line for the relay HTTP surface."""
  host = os.getenv("FCM_RELAY_HOST", "0.0.0.0")
  port = os.getenv("FCM_RELAY_PORT", "8080")
  return ["uvicorn", "fcm_relay.main:app", "--host", host, "--port", port, "--no-server-header"]


def main() -> None:
  """Launch the relay HTTP service."""
  args = build_uvicorn_args()
  logger.info("Starting FCM relay on %s:%s", args[4], args[6])
  # Replace the current process so uvicorn receives SIGTERM directly.
  os.execvp("uvicorn", args)


if __name__ == "__main__":
  main()
