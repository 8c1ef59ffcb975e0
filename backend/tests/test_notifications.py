"""Notification dispatcher: queueing, user resolution and webhook delivery."""
import json
import logging

import httpx
import pytest

from phoenixgrc.config import Settings
from phoenixgrc.models.webhook import WebhookConfiguration, WebhookEventType
from phoenixgrc.services.notifications import EmailSender, NotificationDispatcher, WebhookSender


class FakeEmailSender:
    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to, subject, body):
        self.sent.append((to, subject, body))
        return True


def _settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite+aiosqlite://",
        "NOTIFICATION_QUEUE_SIZE": 10,
        "NOTIFICATION_WORKERS": 1,
        "WEBHOOK_MAX_RETRIES": 3,
        "WEBHOOK_RETRY_DELAY_SECONDS": 0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_full_queue_drops_job_without_raising(app, caplog):
    dispatcher = NotificationDispatcher(_settings(NOTIFICATION_QUEUE_SIZE=1), app.state.sessionmaker)
    with caplog.at_level(logging.WARNING, logger="phoenixgrc.services.notifications"):
        dispatcher.notify_user(1, "first", "body")
        dispatcher.notify_user(2, "second", "body")
    assert dispatcher.pending == 1
    assert "dropping" in caplog.text


@pytest.mark.asyncio
async def test_notify_user_without_recipient_is_ignored(app):
    dispatcher = NotificationDispatcher(_settings(), app.state.sessionmaker)
    dispatcher.notify_user(None, "subject", "body")
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_emails_resolved_and_inactive_users_skipped(app, db, seed):
    seed.member.is_active = False
    db.add(seed.member)
    await db.commit()

    email = FakeEmailSender()
    dispatcher = NotificationDispatcher(_settings(), app.state.sessionmaker, email_sender=email)
    await dispatcher.start()
    dispatcher.notify_user(seed.owner.id, "Hello", "owner body")
    dispatcher.notify_user(seed.member.id, "Hello", "member body")
    dispatcher.notify_user(424242, "Hello", "ghost body")
    await dispatcher.stop()

    assert email.sent == [(seed.owner.email, "Hello", "owner body")]


@pytest.mark.asyncio
async def test_org_event_posted_to_subscribed_webhooks(app, db, seed):
    db.add_all([
        WebhookConfiguration(
            organization_id=seed.org.id, name="chat", url="https://hooks.test/chat",
            event_types=["risk_created", "risk_status_changed"],
        ),
        WebhookConfiguration(
            organization_id=seed.org.id, name="status only", url="https://hooks.test/status",
            event_types=["risk_status_changed"],
        ),
        WebhookConfiguration(
            organization_id=seed.org.id, name="disabled", url="https://hooks.test/off",
            event_types=["risk_created"], is_active=False,
        ),
    ])
    await db.commit()

    calls: list[tuple[str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((str(request.url), json.loads(request.content)))
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        dispatcher = NotificationDispatcher(_settings(), app.state.sessionmaker, http_client=http_client)
        await dispatcher.start()
        dispatcher.notify_org_event(seed.org.id, WebhookEventType.RISK_CREATED, "New Risk Created: 'X'")
        await dispatcher.stop()

    assert calls == [("https://hooks.test/chat", {"text": "New Risk Created: 'X'"})]


@pytest.mark.asyncio
async def test_direct_webhook_post_ignores_subscriptions(app):
    calls: list[tuple[str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((str(request.url), json.loads(request.content)))
        return httpx.Response(204)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        dispatcher = NotificationDispatcher(_settings(), app.state.sessionmaker, http_client=http_client)
        await dispatcher.start()
        dispatcher.notify_webhook("https://hooks.test/direct", "ping")
        await dispatcher.stop()

    assert calls == [("https://hooks.test/direct", {"text": "ping"})]


@pytest.mark.asyncio
async def test_webhook_sender_retries_until_success():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503 if len(attempts) < 3 else 200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        sender = WebhookSender(http_client, max_retries=3, retry_delay=0)
        assert await sender.deliver("https://hooks.test/flaky", {"text": "hi"}) is True
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_webhook_sender_gives_up_after_max_retries(caplog):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(500)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        sender = WebhookSender(http_client, max_retries=2, retry_delay=0)
        with caplog.at_level(logging.ERROR, logger="phoenixgrc.services.notifications"):
            assert await sender.deliver("https://hooks.test/down", {"text": "hi"}) is False
    assert len(attempts) == 2
    assert "failed after 2 attempts" in caplog.text


@pytest.mark.asyncio
async def test_email_sender_without_smtp_host_only_logs(caplog):
    sender = EmailSender(_settings(SMTP_HOST=""))
    with caplog.at_level(logging.INFO, logger="phoenixgrc.services.notifications"):
        assert await sender.send("a@b.test", "Subject", "Body") is False
    assert "Email not configured" in caplog.text


@pytest.mark.asyncio
async def test_lifespan_starts_and_stops_dispatcher(engine):
    from phoenixgrc.main import create_app

    app = create_app(engine=engine)
    dispatcher = app.state.notifier
    assert isinstance(dispatcher, NotificationDispatcher)
    async with app.router.lifespan_context(app):
        assert dispatcher._workers
    assert not dispatcher._workers
