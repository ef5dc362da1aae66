"""JobSerializer — JSON wire format for job envelopes."""

from __future__ import annotations

import json
from typing import Any

from .envelope import Job, dump_json
from .exceptions import DecodingError, EncodingError


class JobSerializer:
    """Serialize/deserialize :class:`Job` to/from JSON bytes.

    The payload is embedded as a raw JSON value rather than a quoted string,
    so producers in other languages can read and write the same messages.
    """

    def serialize(self, job: Job) -> bytes:
        """Encode *job* to JSON bytes."""
        try:
            data: dict[str, Any] = {
                "id": job.id,
                "type": job.type,
                "payload": json.loads(job.payload),
                "attempts": job.attempts,
                "max_retry": job.max_retry,
                "created_at": job.created_at.isoformat(),
            }
            return dump_json(data)
        except (TypeError, ValueError, RecursionError) as e:
            raise EncodingError(f"Cannot encode job {job.id}: {e}") from e

    def deserialize(self, raw: bytes) -> Job:
        """Decode JSON bytes to a :class:`Job`."""
        try:
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                raise TypeError(f"expected a JSON object, got {type(data).__name__}")
            if "payload" not in data:
                raise ValueError("missing field 'payload'")
            data["payload"] = dump_json(data["payload"])
            return Job.model_validate(data)
        except (UnicodeDecodeError, TypeError, ValueError, RecursionError) as e:
            raise DecodingError(f"Malformed job message: {e}") from e


__all__ = ["JobSerializer"]
