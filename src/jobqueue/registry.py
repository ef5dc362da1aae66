"""Handler registry keyed by job type."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .ports.handler import IJobHandler

logger = logging.getLogger("jobqueue.registry")


class HandlerRegistry:
    """Maps a job type tag to the handler that processes it.

    Registration is meant to happen during bootstrapping, before the worker
    starts; lookups are then read-only. A second registration for the same
    type replaces the first.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, IJobHandler] = {}
        self._lock = threading.RLock()

    # ── Registration ─────────────────────────────────────────────

    def register(self, handler: IJobHandler) -> None:
        job_type = handler.job_type
        with self._lock:
            previous = self._handlers.get(job_type)
            self._handlers[job_type] = handler
        logger.info(
            "Registered job handler",
            extra={
                "job_type": job_type,
                "handler": type(handler).__name__,
                "replaced": previous is not None and previous is not handler,
            },
        )

    # ── Lookup ───────────────────────────────────────────────────

    def get(self, job_type: str) -> IJobHandler | None:
        """Return the handler for *job_type*, or None if unroutable."""
        with self._lock:
            return self._handlers.get(job_type)

    def __contains__(self, job_type: object) -> bool:
        with self._lock:
            return job_type in self._handlers

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def job_types(self) -> list[str]:
        """Return the registered job types, sorted."""
        with self._lock:
            return sorted(self._handlers)

    # ── Cleanup ──────────────────────────────────────────────────

    def clear(self) -> None:
        """Remove all handlers (testing utility)."""
        with self._lock:
            self._handlers.clear()


__all__ = ["HandlerRegistry"]
