"""Worker process entrypoint: ``python -m jobqueue``."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import create_async_engine

from .config import WorkerSettings
from .exceptions import ShutdownTimeoutError, TransportError
from .handlers import (
    AuditCleanupHandler,
    EmailHandler,
    IEmailSender,
    LoggingEmailSender,
    SmtpEmailSender,
)
from .observability import configure_logging
from .rabbitmq import RabbitMQConnectionManager, RabbitMQTransport
from .worker import Worker

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from .ports.transport import IQueueTransport

logger = logging.getLogger("jobqueue")


def build_worker(
    transport: IQueueTransport,
    settings: WorkerSettings,
    engine: AsyncEngine | None = None,
) -> Worker:
    """Create the worker and register the handlers the settings allow."""
    worker = Worker(transport, settings)

    sender: IEmailSender = (
        SmtpEmailSender.from_settings(settings)
        if settings.smtp_host
        else LoggingEmailSender()
    )
    worker.register_handler(EmailHandler(sender))

    if engine is not None:
        worker.register_handler(AuditCleanupHandler(engine))
    else:
        logger.warning("No database_url configured; audit cleanup jobs are unroutable")
    return worker


async def run(settings: WorkerSettings) -> None:
    """Run the worker until SIGINT/SIGTERM, then shut down gracefully."""
    connection = RabbitMQConnectionManager(settings.rabbitmq_url)
    transport = RabbitMQTransport(connection, prefetch_count=settings.prefetch_count)
    engine = create_async_engine(settings.database_url) if settings.database_url else None

    try:
        worker = build_worker(transport, settings, engine)
        await worker.start()
        logger.info(
            "Worker is running",
            extra={"queue": worker.queue_name, "concurrency": worker.concurrency},
        )

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        await stop.wait()
        logger.info("Received shutdown signal")

        try:
            await worker.shutdown(settings.shutdown_timeout)
        except ShutdownTimeoutError as e:
            logger.error("Worker shutdown error", extra={"error": str(e)})
    finally:
        await transport.close()
        if engine is not None:
            await engine.dispose()
    logger.info("Worker process stopped")


def main() -> int:
    settings = WorkerSettings()
    configure_logging(settings.log_level, json_format=settings.log_json)
    try:
        asyncio.run(run(settings))
    except TransportError as e:
        logger.error("Failed to start worker", extra={"error": str(e)})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
