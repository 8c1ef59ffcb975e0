"""Organization webhooks: /api/v1/webhooks (admins only)"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext, require_roles
from phoenixgrc.database import get_session
from phoenixgrc.errors import NotFound
from phoenixgrc.models.user import UserRole
from phoenixgrc.models.webhook import WebhookConfiguration, WebhookEventType
from phoenixgrc.schemas.common import MessageOut
from phoenixgrc.schemas.webhook import WebhookCreate, WebhookOut, WebhookUpdate
from phoenixgrc.services.notifications import NotificationSink, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])

_admin = require_roles(UserRole.ADMIN)


def _event_values(event_types: list[WebhookEventType]) -> list[str]:
    return sorted({e.value for e in event_types})


async def _get_org_webhook(s: AsyncSession, webhook_id: int, caller: CallerContext) -> WebhookConfiguration:
    hook = await s.get(WebhookConfiguration, webhook_id)
    if not hook or hook.organization_id != caller.organization_id:
        raise NotFound("Webhook not found")
    return hook


@router.get("", response_model=list[WebhookOut], summary="List webhooks")
async def list_webhooks(
    caller: CallerContext = Depends(_admin),
    s: AsyncSession = Depends(get_session),
):
    q = (
        select(WebhookConfiguration)
        .where(WebhookConfiguration.organization_id == caller.organization_id)
        .order_by(WebhookConfiguration.id)
    )
    return (await s.execute(q)).scalars().all()


@router.get("/{webhook_id}", response_model=WebhookOut, summary="Get webhook")
async def get_webhook(
    webhook_id: int,
    caller: CallerContext = Depends(_admin),
    s: AsyncSession = Depends(get_session),
):
    return await _get_org_webhook(s, webhook_id, caller)


@router.post("", response_model=WebhookOut, status_code=201, summary="Create webhook")
async def create_webhook(
    body: WebhookCreate,
    caller: CallerContext = Depends(_admin),
    s: AsyncSession = Depends(get_session),
):
    hook = WebhookConfiguration(
        organization_id=caller.organization_id,
        name=body.name,
        url=str(body.url),
        event_types=_event_values(body.event_types),
        is_active=body.is_active,
    )
    s.add(hook)
    await s.commit()
    await s.refresh(hook)
    logger.info("Webhook %s created for org %s", hook.id, hook.organization_id)
    return hook


@router.put("/{webhook_id}", response_model=WebhookOut, summary="Update webhook")
async def update_webhook(
    webhook_id: int,
    body: WebhookUpdate,
    caller: CallerContext = Depends(_admin),
    s: AsyncSession = Depends(get_session),
):
    hook = await _get_org_webhook(s, webhook_id, caller)
    hook.name = body.name
    hook.url = str(body.url)
    hook.event_types = _event_values(body.event_types)
    if body.is_active is not None:
        hook.is_active = body.is_active
    await s.commit()
    await s.refresh(hook)
    logger.info("Webhook %s updated in org %s", hook.id, hook.organization_id)
    return hook


@router.delete("/{webhook_id}", status_code=204, summary="Delete webhook")
async def delete_webhook(
    webhook_id: int,
    caller: CallerContext = Depends(_admin),
    s: AsyncSession = Depends(get_session),
):
    hook = await _get_org_webhook(s, webhook_id, caller)
    await s.delete(hook)
    await s.commit()
    logger.info("Webhook %s deleted from org %s", webhook_id, caller.organization_id)


@router.post("/{webhook_id}/test", response_model=MessageOut, summary="Send a test event")
async def send_test_webhook(
    webhook_id: int,
    caller: CallerContext = Depends(_admin),
    s: AsyncSession = Depends(get_session),
    notifier: NotificationSink = Depends(get_notifier),
):
    hook = await _get_org_webhook(s, webhook_id, caller)
    notifier.notify_webhook(hook.url, f"This is a test event from Phoenix GRC for webhook '{hook.name}'.")
    return MessageOut(message="Test event queued")
