"""
Notification dispatch: email to users and webhook posts to organization hooks.

Callers hand messages to a ``NotificationSink`` and move on. The production
sink is ``NotificationDispatcher``: a bounded asyncio queue drained by a few
worker tasks that the application lifespan starts and stops. Submitting never
blocks and never raises; a full queue drops the job with a warning, and
delivery failures are only logged.
"""
import asyncio
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib
import httpx
from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from phoenixgrc.config import Settings
from phoenixgrc.models.user import User
from phoenixgrc.models.webhook import WebhookConfiguration, WebhookEventType

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify_user(self, user_id: int | None, subject: str, body: str) -> None:
        ...

    def notify_org_event(self, organization_id: int, event_type: WebhookEventType, text: str) -> None:
        ...

    def notify_webhook(self, url: str, text: str) -> None:
        ...


def get_notifier(request: Request) -> NotificationSink:
    return request.app.state.notifier


def risk_link(settings: Settings, risk_id: int) -> str:
    return f"{settings.FRONTEND_BASE_URL.rstrip('/')}/risks/{risk_id}"


# ═══════════════════ Transports ═══════════════════

class EmailSender:
    """SMTP delivery through aiosmtplib. Without SMTP_HOST messages are only logged."""

    def __init__(self, settings: Settings):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.smtp_use_tls = settings.SMTP_USE_TLS
        self.from_email = settings.EMAIL_FROM

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    async def send(self, to: str, subject: str, body: str) -> bool:
        if not self.configured:
            logger.info("Email not configured (missing SMTP_HOST); skipping '%s' to %s", subject, to)
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        msg.set_content(body)

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_username or None,
                password=self.smtp_password or None,
                start_tls=self.smtp_use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email '%s' to %s: %s", subject, to, exc)
            return False

        logger.info("Email sent to %s: %s", to, subject)
        return True


class WebhookSender:
    """POST a chat-style ``{"text": ...}`` payload with a fixed number of retries."""

    def __init__(self, client: httpx.AsyncClient, max_retries: int = 3, retry_delay: float = 5.0):
        self.client = client
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    async def deliver(self, url: str, payload: dict) -> bool:
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self.client.post(url, json=payload)
                response.raise_for_status()
                logger.info("Webhook delivered to %s (attempt %d)", url, attempt)
                return True
            except httpx.HTTPError as exc:
                logger.warning("Webhook attempt %d/%d to %s failed: %s", attempt, self.max_retries, url, exc)
            if attempt < self.max_retries and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)

        logger.error("Webhook to %s failed after %d attempts", url, self.max_retries)
        return False


# ═══════════════════ Dispatcher ═══════════════════

@dataclass
class _UserMessage:
    user_id: int
    subject: str
    body: str


@dataclass
class _OrgEvent:
    organization_id: int
    event_type: WebhookEventType
    text: str


@dataclass
class _WebhookPost:
    url: str
    text: str


class NotificationDispatcher:
    def __init__(
        self,
        settings: Settings,
        sessionmaker: async_sessionmaker[AsyncSession],
        *,
        email_sender: EmailSender | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.sessionmaker = sessionmaker
        self.email_sender = email_sender or EmailSender(settings)
        self._http_client = http_client
        self._owns_client = http_client is None
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=settings.NOTIFICATION_QUEUE_SIZE)
        self._workers: list[asyncio.Task] = []
        self.webhook_sender: WebhookSender | None = None

    # -- submission (sync, never raises) --

    def notify_user(self, user_id: int | None, subject: str, body: str) -> None:
        if user_id is None:
            return
        self._submit(_UserMessage(user_id, subject, body))

    def notify_org_event(self, organization_id: int, event_type: WebhookEventType, text: str) -> None:
        self._submit(_OrgEvent(organization_id, WebhookEventType(event_type), text))

    def notify_webhook(self, url: str, text: str) -> None:
        """Post to one hook regardless of its subscriptions."""
        self._submit(_WebhookPost(url, text))

    def _submit(self, job: _UserMessage | _OrgEvent | _WebhookPost) -> None:
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.warning("Notification queue full (%d); dropping %s", self._queue.maxsize, job)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # -- lifecycle --

    async def start(self) -> None:
        if self._workers:
            return
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.WEBHOOK_TIMEOUT_SECONDS)
        self.webhook_sender = WebhookSender(
            self._http_client,
            max_retries=self.settings.WEBHOOK_MAX_RETRIES,
            retry_delay=self.settings.WEBHOOK_RETRY_DELAY_SECONDS,
        )
        for i in range(max(1, self.settings.NOTIFICATION_WORKERS)):
            self._workers.append(asyncio.create_task(self._worker(), name=f"notifier-{i}"))
        logger.info("Notification dispatcher started with %d workers", len(self._workers))

    async def stop(self, drain_timeout: float = 10.0) -> None:
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("Notification queue not drained; %d jobs discarded", self._queue.qsize())
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Notification dispatcher stopped")

    # -- workers --

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if isinstance(job, _UserMessage):
                    await self._deliver_user_message(job)
                elif isinstance(job, _WebhookPost):
                    await self.webhook_sender.deliver(job.url, {"text": job.text})
                else:
                    await self._deliver_org_event(job)
            except Exception:
                logger.exception("Notification job %s failed", job)
            finally:
                self._queue.task_done()

    async def _deliver_user_message(self, job: _UserMessage) -> None:
        async with self.sessionmaker() as s:
            user = await s.get(User, job.user_id)
        if user is None or not user.is_active or not user.email:
            logger.info("Skipping email to user %s (missing, inactive or no address)", job.user_id)
            return
        await self.email_sender.send(user.email, job.subject, job.body)

    async def _deliver_org_event(self, job: _OrgEvent) -> None:
        async with self.sessionmaker() as s:
            q = select(WebhookConfiguration).where(
                WebhookConfiguration.organization_id == job.organization_id,
                WebhookConfiguration.is_active.is_(True),
            )
            hooks = (await s.execute(q)).scalars().all()

        targets = [h for h in hooks if job.event_type.value in (h.event_types or [])]
        if not targets:
            return
        payload = {"text": job.text}
        for hook in targets:
            await self.webhook_sender.deliver(hook.url, payload)
