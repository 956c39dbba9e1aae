"""Routes that relay a single push notification to Firebase Cloud Messaging."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError
from starlette.concurrency import run_in_threadpool

from fcm_relay.notifications.contracts import NotificationPayload, PushSender

router = APIRouter()


class PushSendRequest(BaseModel):
  """One notification addressed to one device token."""

  token: str = Field(min_length=1, max_length=4096)
  title: str = Field(default="", max_length=1024)
  body: str = Field(default="", max_length=4096)
  image_url: str = Field(default="", max_length=2048)
  click_action: str = Field(default="", max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("token")
  @classmethod
  def validate_token(cls, value: str) -> str:
    """Reject blank device tokens before any credential work happens."""
    normalized = value.strip()
    if not normalized:
      raise PydanticCustomError("push_token_blank", "token must not be blank.")

    return normalized


class PushSendResponse(BaseModel):
  """Delivery outcome reported back to the caller."""

  outcome: str
  status_code: int | None = None
  response_body: str = ""


def get_push_sender(request: Request) -> PushSender:
  """Return the sender built at startup."""
  return request.app.state.push_sender


@router.post("/send", response_model=PushSendResponse)
async def send_push(payload: PushSendRequest, sender: PushSender = Depends(get_push_sender)) -> PushSendResponse:  # noqa: B008
  """Relay one notification; delivery failures are reported in `outcome`, not as HTTP errors."""
  notification = NotificationPayload(title=payload.title, body=payload.body, image_url=payload.image_url, click_action=payload.click_action)
  # The sender blocks on token exchange and the FCM round trip.
  result = await run_in_threadpool(sender.push, notification, payload.token)
  return PushSendResponse(outcome=result.outcome.value, status_code=result.status_code, response_body=result.response_body)
