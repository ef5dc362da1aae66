"""Concrete job handlers."""

from __future__ import annotations

from .audit_cleanup import AuditCleanupHandler, AuditCleanupPayload
from .email_send import (
    EmailHandler,
    EmailPayload,
    IEmailSender,
    LoggingEmailSender,
    SmtpEmailSender,
)

__all__ = [
    "AuditCleanupHandler",
    "AuditCleanupPayload",
    "EmailHandler",
    "EmailPayload",
    "IEmailSender",
    "LoggingEmailSender",
    "SmtpEmailSender",
]
