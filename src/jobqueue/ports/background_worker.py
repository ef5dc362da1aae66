from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBackgroundWorker(Protocol):
    """
    Lifecycle of a long-running consumer hosted by a worker process.

    ``start`` returns once consumption is running; ``shutdown`` asks it to
    drain and waits up to *timeout* seconds. ``stop`` is ``shutdown`` with the
    implementation's configured deadline and never raises on timeout.
    """

    async def start(self) -> None:
        """Begin consuming. Raises if the broker cannot be reached."""
        ...

    async def shutdown(self, timeout: float | None = None) -> None:
        """Drain within *timeout* seconds; raise if work is still running."""
        ...

    async def stop(self) -> None:
        ...

    async def health_check(self) -> bool:
        """Return True if the worker can still reach its broker."""
        ...
