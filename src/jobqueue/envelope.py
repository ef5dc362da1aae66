"""Job — the serializable unit of background work and its retry bookkeeping."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .exceptions import DecodingError, EncodingError

T = TypeVar("T")

DEFAULT_MAX_RETRY = 3

JOB_TYPE_EMAIL_SEND = "email.send"
JOB_TYPE_AUDIT_CLEANUP = "audit.cleanup"
JOB_TYPE_NOTIFICATION = "notification.send"


def _json_default(obj: Any) -> Any:
    """Serialize datetime and other non-JSON types."""
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dump_json(value: Any) -> bytes:
    """Canonical compact JSON used for payload bytes.

    Payloads always go through this function so that a payload parsed back
    from the wire re-encodes to identical bytes.
    """
    return json.dumps(
        value,
        default=_json_default,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def encode_payload(payload: Any) -> bytes:
    """Serialize a handler payload into its opaque byte form."""
    try:
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")
        return dump_json(payload)
    except (TypeError, ValueError, RecursionError) as e:
        raise EncodingError(f"Cannot encode job payload: {e}") from e


class Job(BaseModel):
    """A background job envelope.

    ``id``, ``type`` and ``created_at`` are fixed at creation. ``attempts``
    only ever moves forward, one step per delivery. A retry re-publishes the
    same envelope (same ``id``) as a new transport message.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), frozen=True)
    type: str = Field(..., min_length=1, frozen=True, description="Handler key")
    payload: bytes = Field(default=b"null", description="Type-specific JSON bytes")
    attempts: int = Field(default=0, ge=0)
    max_retry: int = Field(default=DEFAULT_MAX_RETRY, ge=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), frozen=True
    )

    @classmethod
    def create(
        cls,
        job_type: str,
        payload: Any = None,
        *,
        max_retry: int = DEFAULT_MAX_RETRY,
    ) -> Job:
        """Build a fresh job (``attempts == 0``) for *job_type*.

        Raises:
            EncodingError: if *payload* cannot be serialized.
        """
        return cls(type=job_type, payload=encode_payload(payload), max_retry=max_retry)

    def unmarshal_payload(self, target: type[T]) -> T:
        """Decode the payload into *target* (a pydantic model or any supported type).

        Raises:
            DecodingError: if the payload does not match the expected shape.
        """
        try:
            return TypeAdapter(target).validate_json(self.payload)
        except ValidationError as e:
            raise DecodingError(
                f"Payload of job {self.id} ({self.type}) does not match "
                f"{getattr(target, '__name__', target)!s}: {e}"
            ) from e

    def can_retry(self) -> bool:
        return self.attempts < self.max_retry

    def increment_attempts(self) -> None:
        self.attempts += 1

    def encode(self) -> bytes:
        """Serialize the full envelope for transport."""
        from .serialization import JobSerializer

        return JobSerializer().serialize(self)

    @classmethod
    def decode(cls, raw: bytes) -> Job:
        """Inverse of :meth:`encode`."""
        from .serialization import JobSerializer

        return JobSerializer().deserialize(raw)
