"""Audit log retention handler."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel
from sqlalchemy import Column, DateTime, Integer, MetaData, Table, delete

from ..envelope import JOB_TYPE_AUDIT_CLEANUP
from ..ports.handler import IJobHandler

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from ..envelope import Job
    from ..ports.handler import JobContext

logger = logging.getLogger("jobqueue.handlers.audit_cleanup")

DEFAULT_RETENTION_DAYS = 90

metadata = MetaData()

# Only the columns the cleanup needs; the table is owned by the API's migrations.
audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


class AuditCleanupPayload(BaseModel):
    retention_days: int = 0


class AuditCleanupHandler(IJobHandler):
    """Handles ``audit.cleanup`` jobs by deleting expired audit rows."""

    job_type = JOB_TYPE_AUDIT_CLEANUP

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def handle(self, ctx: JobContext, job: Job) -> None:  # noqa: ARG002
        payload = job.unmarshal_payload(AuditCleanupPayload)
        retention_days = payload.retention_days
        if retention_days <= 0:
            retention_days = DEFAULT_RETENTION_DAYS

        logger.info(
            "Starting audit log cleanup",
            extra={"retention_days": retention_days, "job_id": job.id},
        )
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)

        async with self._engine.begin() as conn:
            result = await conn.execute(
                delete(audit_logs).where(audit_logs.c.created_at < cutoff)
            )

        logger.info(
            "Audit log cleanup completed",
            extra={
                "rows_deleted": result.rowcount,
                "cutoff_date": cutoff.isoformat(),
                "job_id": job.id,
            },
        )
