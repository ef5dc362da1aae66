"""Tests for the built-in job handlers."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import create_async_engine

from jobqueue.config import WorkerSettings
from jobqueue.envelope import JOB_TYPE_AUDIT_CLEANUP, JOB_TYPE_EMAIL_SEND, Job
from jobqueue.exceptions import DecodingError, JobCancelledError
from jobqueue.handlers import (
    AuditCleanupHandler,
    EmailHandler,
    EmailPayload,
    LoggingEmailSender,
    SmtpEmailSender,
)
from jobqueue.handlers.audit_cleanup import audit_logs, metadata
from jobqueue.ports.handler import JobContext


def _ctx(cancelled: bool = False) -> JobContext:
    event = asyncio.Event()
    if cancelled:
        event.set()
    return JobContext(
        worker_id=0,
        deadline=asyncio.get_running_loop().time() + 60,
        cancel_event=event,
    )


# ── Email ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_email_handler_sends_decoded_payload() -> None:
    sender = AsyncMock()
    handler = EmailHandler(sender)
    job = Job.create(
        JOB_TYPE_EMAIL_SEND, {"to": "a@b.com", "subject": "hi", "body": "hello"}
    )

    await handler.handle(_ctx(), job)

    sender.send.assert_awaited_once_with(
        EmailPayload(to="a@b.com", subject="hi", body="hello")
    )
    assert handler.job_type == "email.send"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "match"),
    [
        ({"subject": "hi"}, "recipient"),
        ({"to": "a@b.com"}, "subject"),
    ],
)
async def test_email_handler_requires_recipient_and_subject(
    payload: dict[str, str], match: str
) -> None:
    sender = AsyncMock()
    handler = EmailHandler(sender)

    with pytest.raises(ValueError, match=match):
        await handler.handle(_ctx(), Job.create(JOB_TYPE_EMAIL_SEND, payload))
    sender.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_email_handler_bad_payload_raises_decoding_error() -> None:
    handler = EmailHandler(AsyncMock())
    with pytest.raises(DecodingError):
        await handler.handle(_ctx(), Job.create(JOB_TYPE_EMAIL_SEND, [1, 2]))


@pytest.mark.asyncio
async def test_email_handler_stops_when_worker_is_shutting_down() -> None:
    sender = AsyncMock()
    handler = EmailHandler(sender)
    job = Job.create(JOB_TYPE_EMAIL_SEND, {"to": "a@b.com", "subject": "hi"})

    with pytest.raises(JobCancelledError):
        await handler.handle(_ctx(cancelled=True), job)
    sender.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_logging_sender_is_default() -> None:
    handler = EmailHandler()
    job = Job.create(JOB_TYPE_EMAIL_SEND, {"to": "a@b.com", "subject": "hi"})
    await handler.handle(_ctx(), job)
    await LoggingEmailSender().send(EmailPayload(to="a@b.com", subject="hi"))


def test_smtp_sender_builds_plain_and_html_messages() -> None:
    sender = SmtpEmailSender("smtp.example.com", from_email="noreply@example.com")

    plain = sender.build_message(
        EmailPayload(to="a@b.com", subject="Hello", body="Hi there")
    )
    assert plain["To"] == "a@b.com"
    assert plain["From"] == "noreply@example.com"
    assert plain["Subject"] == "Hello"
    assert plain.get_content_type() == "text/plain"
    assert "Hi there" in plain.get_content()

    html = sender.build_message(
        EmailPayload(to="a@b.com", subject="Hello", body="<b>Hi</b>", html=True)
    )
    assert html.get_content_type() == "text/html"


def test_smtp_sender_requires_from_email() -> None:
    sender = SmtpEmailSender("smtp.example.com")
    with pytest.raises(ValueError, match="from_email"):
        sender.build_message(EmailPayload(to="a@b.com", subject="x"))


# ── Audit cleanup ────────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "kept"),
    [
        ({"retention_days": 30}, [3]),
        ({"retention_days": 0}, [2, 3]),
        ({}, [2, 3]),
    ],
)
async def test_audit_cleanup_deletes_rows_older_than_retention(
    tmp_path: Path, payload: dict[str, int], kept: list[int]
) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
    now = datetime.now(timezone.utc)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        await conn.execute(
            insert(audit_logs),
            [
                {"id": 1, "created_at": now - timedelta(days=200)},
                {"id": 2, "created_at": now - timedelta(days=45)},
                {"id": 3, "created_at": now - timedelta(days=1)},
            ],
        )

    handler = AuditCleanupHandler(engine)
    await handler.handle(_ctx(), Job.create(JOB_TYPE_AUDIT_CLEANUP, payload))

    async with engine.connect() as conn:
        result = await conn.execute(select(audit_logs.c.id).order_by(audit_logs.c.id))
        remaining = list(result.scalars().all())
    await engine.dispose()

    assert remaining == kept


def test_smtp_sender_from_settings() -> None:
    settings = WorkerSettings(
        _env_file=None,
        smtp_host="smtp.example.com",
        smtp_port=2525,
        smtp_from_email="noreply@example.com",
        smtp_use_tls=False,
    )
    sender = SmtpEmailSender.from_settings(settings)
    assert sender.host == "smtp.example.com"
    assert sender.port == 2525
    assert sender.use_tls is False
    assert sender.from_email == "noreply@example.com"

    with pytest.raises(ValueError, match="smtp_host"):
        SmtpEmailSender.from_settings(WorkerSettings(_env_file=None))
