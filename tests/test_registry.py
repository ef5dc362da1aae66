"""Tests for HandlerRegistry."""

from __future__ import annotations

import logging

import pytest

from jobqueue.envelope import Job
from jobqueue.ports.handler import IJobHandler, JobContext
from jobqueue.registry import HandlerRegistry


class _Handler(IJobHandler):
    job_type = ""

    def __init__(self, job_type: str) -> None:
        self.job_type = job_type

    async def handle(self, ctx: JobContext, job: Job) -> None:
        return None


def test_get_unknown_type_returns_none() -> None:
    assert HandlerRegistry().get("missing") is None


def test_register_and_get() -> None:
    registry = HandlerRegistry()
    handler = _Handler("email.send")
    registry.register(handler)
    assert registry.get("email.send") is handler
    assert "email.send" in registry
    assert len(registry) == 1


def test_second_registration_replaces_first(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="jobqueue")
    registry = HandlerRegistry()
    first = _Handler("report")
    second = _Handler("report")

    registry.register(first)
    registry.register(second)

    assert registry.get("report") is second
    assert len(registry) == 1
    records = [r for r in caplog.records if r.getMessage() == "Registered job handler"]
    assert [r.replaced for r in records] == [False, True]


def test_job_types_sorted_and_clear() -> None:
    registry = HandlerRegistry()
    for t in ("b", "a", "c"):
        registry.register(_Handler(t))
    assert registry.job_types() == ["a", "b", "c"]
    registry.clear()
    assert len(registry) == 0
    assert registry.get("a") is None
