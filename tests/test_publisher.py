"""Tests for JobPublisher."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from jobqueue.envelope import DEFAULT_MAX_RETRY, Job
from jobqueue.exceptions import EncodingError, TransportError
from jobqueue.memory import InMemoryQueueTransport
from jobqueue.publisher import JobPublisher


@pytest.mark.asyncio
async def test_publish_creates_fresh_job(transport: InMemoryQueueTransport) -> None:
    publisher = JobPublisher(transport)
    job = await publisher.publish("email.send", {"to": "a@b.com"})

    assert job.attempts == 0
    assert job.max_retry == DEFAULT_MAX_RETRY
    [(exchange, routing_key, body)] = transport.get_published()
    assert exchange == ""
    assert routing_key == "jobs"
    assert json.loads(body)["id"] == job.id
    assert transport.pending("jobs") == 1


@pytest.mark.asyncio
async def test_publish_with_retry_sets_ceiling(
    transport: InMemoryQueueTransport,
) -> None:
    publisher = JobPublisher(transport, queue_name="reports")
    job = await publisher.publish_with_retry("report.build", {"id": 1}, 5)

    assert job.max_retry == 5
    [published] = transport.published_jobs()
    assert published.max_retry == 5
    assert transport.pending("reports") == 1


@pytest.mark.asyncio
async def test_publish_raw_keeps_envelope_unchanged(
    transport: InMemoryQueueTransport,
) -> None:
    publisher = JobPublisher(transport)
    job = Job.create("x", {"n": 1})
    job.increment_attempts()
    job.increment_attempts()

    await publisher.publish_raw(job)

    [published] = transport.published_jobs()
    assert published.model_dump() == job.model_dump()


def test_empty_queue_name_falls_back_to_default() -> None:
    publisher = JobPublisher(MagicMock(), queue_name="")
    assert publisher.queue_name == "jobs"


@pytest.mark.asyncio
async def test_publish_uses_exchange_and_queue_as_routing_key() -> None:
    transport = MagicMock()
    transport.publish = AsyncMock()
    publisher = JobPublisher(transport, queue_name="jobs", exchange="jobs.direct")

    await publisher.publish("x")

    args = transport.publish.call_args.args
    assert args[0] == "jobs.direct"
    assert args[1] == "jobs"


@pytest.mark.asyncio
async def test_encoding_error_publishes_nothing() -> None:
    transport = MagicMock()
    transport.publish = AsyncMock()
    publisher = JobPublisher(transport)

    with pytest.raises(EncodingError):
        await publisher.publish("x", {"bad": object()})
    transport.publish.assert_not_called()


@pytest.mark.asyncio
async def test_transport_error_propagates() -> None:
    transport = MagicMock()
    transport.publish = AsyncMock(side_effect=TransportError("broker down"))
    publisher = JobPublisher(transport)

    with pytest.raises(TransportError, match="broker down"):
        await publisher.publish("x", {})
