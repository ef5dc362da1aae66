"""Email sending handler and sender adapters."""

from __future__ import annotations

import email.message
import email.policy
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel

from ..envelope import JOB_TYPE_EMAIL_SEND
from ..exceptions import EmailDeliveryError
from ..ports.handler import IJobHandler

if TYPE_CHECKING:
    from ..config import WorkerSettings
    from ..envelope import Job
    from ..ports.handler import JobContext

logger = logging.getLogger("jobqueue.handlers.email")


class EmailPayload(BaseModel):
    to: str = ""
    subject: str = ""
    body: str = ""
    html: bool = False


@runtime_checkable
class IEmailSender(Protocol):
    """Port for delivering one email."""

    async def send(self, message: EmailPayload) -> None:
        """Deliver *message*; raise on failure."""
        ...


class LoggingEmailSender(IEmailSender):
    """Sender that only logs; used when no SMTP server is configured."""

    async def send(self, message: EmailPayload) -> None:
        logger.info(
            "Email delivery skipped (no SMTP configured)",
            extra={"to": message.to, "subject": message.subject},
        )


class SmtpEmailSender(IEmailSender):
    """
    Async SMTP sender using aiosmtplib: one connection per message, STARTTLS
    when ``use_tls`` is set, login only when both credentials are present.
    """

    def __init__(
        self,
        host: str,
        *,
        port: int = 587,
        from_email: str | None = None,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.from_email = from_email
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: WorkerSettings) -> SmtpEmailSender:
        if not settings.smtp_host:
            raise ValueError("smtp_host is required for SmtpEmailSender")
        return cls(
            settings.smtp_host,
            port=settings.smtp_port,
            from_email=settings.smtp_from_email,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )

    def build_message(self, message: EmailPayload) -> email.message.EmailMessage:
        if not self.from_email:
            raise ValueError("Sender email (from_email) is required.")
        msg = email.message.EmailMessage(policy=email.policy.default)
        msg["To"] = message.to
        msg["From"] = self.from_email
        msg["Subject"] = message.subject
        msg.set_content(
            message.body, subtype="html" if message.html else "plain", charset="utf-8"
        )
        return msg

    async def send(self, message: EmailPayload) -> None:
        # Lazy import of aiosmtplib
        try:
            import aiosmtplib
        except ImportError as e:
            raise ImportError(
                "aiosmtplib is required for SmtpEmailSender. "
                "Install with: pip install 'jobqueue[smtp]'"
            ) from e

        msg = self.build_message(message)
        try:
            async with aiosmtplib.SMTP(
                hostname=self.host,
                port=self.port,
                timeout=self.timeout,
            ) as smtp:
                if self.use_tls:
                    await smtp.starttls()
                if self.username and self.password:
                    await smtp.login(self.username, self.password)
                await smtp.send_message(msg)
        except (aiosmtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(message.to, str(e)) from e
        logger.info("Email sent via SMTP", extra={"to": message.to})


class EmailHandler(IJobHandler):
    """Handles ``email.send`` jobs."""

    job_type = JOB_TYPE_EMAIL_SEND

    def __init__(self, sender: IEmailSender | None = None) -> None:
        self._sender = sender or LoggingEmailSender()

    async def handle(self, ctx: JobContext, job: Job) -> None:
        payload = job.unmarshal_payload(EmailPayload)
        if not payload.to:
            raise ValueError("email recipient is required")
        if not payload.subject:
            raise ValueError("email subject is required")

        logger.info(
            "Sending email",
            extra={"to": payload.to, "subject": payload.subject, "job_id": job.id},
        )
        ctx.raise_if_cancelled()
        await self._sender.send(payload)
        logger.info(
            "Email sent successfully",
            extra={"to": payload.to, "subject": payload.subject, "job_id": job.id},
        )
