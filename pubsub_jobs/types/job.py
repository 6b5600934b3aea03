"""
Long-running job type definitions.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from pubsub_jobs.constants import JOB_TYPE_ATTRIBUTE
from pubsub_jobs.types.message import Message


@dataclass
class JobRegistration:
    """
    A registered long-running job.
    Owned by the deadline renewal scheduler; lives from the initial
    deadline extension until deregistration.
    """

    subscription: str
    ack_handle: str
    extend_by_ms: int
    period_ms: int
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    timer: asyncio.Task | None = None
    in_flight: asyncio.Task | None = None
    renewals: int = 0
    failures: int = 0

    @property
    def period_seconds(self) -> float:
        """Renewal period in seconds."""
        return self.period_ms / 1000

    @property
    def renewal_in_flight(self) -> bool:
        """Check if a renewal request is still running."""
        return self.in_flight is not None and not self.in_flight.done()


class JobResult(BaseModel):
    """
    Result of job execution.
    Returned by job handlers after processing.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    duration_ms: float | None = None


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    Contains the decoded message and where it came from.
    """

    subscription: str
    message: Message
    worker_id: str

    @property
    def job_type(self) -> str | None:
        """Handler key taken from the message attributes."""
        return self.message.attributes.get(JOB_TYPE_ATTRIBUTE)

    @property
    def ack_handle(self) -> str:
        return self.message.ack_handle

    @property
    def delivery_attempt(self) -> int:
        """Delivery attempt, 1 when the subscription has no dead-letter policy."""
        return self.message.delivery_attempt or 1
