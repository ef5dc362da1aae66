"""Pytest fixtures for jobqueue tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the package is importable when running pytest from the repo root
# without ``pip install -e .``
_src = Path(__file__).resolve().parent.parent / "src"
if _src.is_dir() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from jobqueue.config import WorkerSettings  # noqa: E402
from jobqueue.memory import InMemoryQueueTransport  # noqa: E402


@pytest.fixture
def transport() -> InMemoryQueueTransport:
    return InMemoryQueueTransport()


@pytest.fixture
def settings() -> WorkerSettings:
    """Fast settings: tiny backoff and short deadlines."""
    return WorkerSettings(
        _env_file=None,
        queue_name="jobs",
        concurrency=1,
        handler_timeout=5.0,
        shutdown_timeout=2.0,
        retry_base_delay=0.01,
    )
