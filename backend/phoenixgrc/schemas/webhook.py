from datetime import datetime

from pydantic import BaseModel, Field, HttpUrl

from phoenixgrc.models.webhook import WebhookEventType


class WebhookCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    url: HttpUrl
    event_types: list[WebhookEventType] = Field(..., min_length=1)
    is_active: bool = True


class WebhookOut(BaseModel):
    id: int
    organization_id: int
    name: str
    url: str
    event_types: list[WebhookEventType]
    is_active: bool
    created_at: datetime
    model_config = {"from_attributes": True}


class WebhookUpdate(BaseModel):
    """Full replacement of name, url and subscriptions; ``is_active`` kept when omitted."""
    name: str = Field(..., min_length=1, max_length=100)
    url: HttpUrl
    event_types: list[WebhookEventType] = Field(..., min_length=1)
    is_active: bool | None = None
