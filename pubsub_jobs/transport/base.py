"""
Transport contract consumed by the job lifecycle core.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from pubsub_jobs.types.message import OutgoingMessage, PublishResult, PullResult


@runtime_checkable
class Transport(Protocol):
    """
    The four Pub/Sub operations the core depends on.

    Implementations raise ``AuthError`` when no access token can be
    obtained and ``TransportError`` for any network or HTTP failure.
    They never retry internally.
    """

    async def pull(
        self,
        subscription: str,
        return_immediately: bool = True,
        max_messages: int = 1,
    ) -> PullResult: ...

    async def modify_ack_deadline(
        self,
        subscription: str,
        ack_ids: Sequence[str],
        ack_deadline_ms: int,
    ) -> None: ...

    async def acknowledge(self, subscription: str, ack_ids: Sequence[str]) -> None: ...

    async def publish(
        self,
        topic: str,
        messages: Sequence[OutgoingMessage],
    ) -> PublishResult: ...
