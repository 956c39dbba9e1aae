from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fcm_relay.api.routes import push
from fcm_relay.config import get_settings
from fcm_relay.core.exceptions import credential_exception_handler, global_exception_handler
from fcm_relay.core.logging import initialize_logging
from fcm_relay.notifications.contracts import CredentialError
from fcm_relay.notifications.factory import build_push_sender


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the shared push sender for the lifetime of the server."""
  settings = get_settings()
  logger = logging.getLogger("fcm_relay.main")
  initialize_logging(settings)

  app.state.push_sender = build_push_sender(settings)
  logger.info("Push sender ready: %s", type(app.state.push_sender).__name__)
  try:
    yield
  finally:
    app.state.push_sender.close()
    logger.info("Push sender closed.")


app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(CredentialError, credential_exception_handler)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok"}


app.include_router(push.router, prefix="/v1/push", tags=["push"])
