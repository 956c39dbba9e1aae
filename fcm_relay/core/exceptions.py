import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from fcm_relay.notifications.contracts import CredentialError

logger = logging.getLogger(__name__)


async def credential_exception_handler(request: Request, exc: CredentialError) -> JSONResponse:
  """Report credential failures as an upstream error without leaking key material."""
  logger.error("Credential resolution failed kind=%s path=%s: %s", exc.kind.value, request.url.path, exc)
  return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": "Push credentials could not be resolved", "kind": exc.kind.value})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal Server Error"})
