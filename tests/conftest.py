"""
Pytest configuration and shared fixtures.
"""

import asyncio
from collections.abc import AsyncGenerator, Sequence

import httpx
import pytest
import pytest_asyncio

from pubsub_jobs.client import Client
from pubsub_jobs.codec import encode_payload
from pubsub_jobs.config import Settings
from pubsub_jobs.transport.auth import StaticTokenProvider
from pubsub_jobs.types.message import (
    OutgoingMessage,
    PublishResult,
    PubsubMessage,
    PullResult,
    ReceivedMessage,
)


class FakeClock:
    """
    Manually advanced clock for the renewal scheduler.

    ``sleep`` parks the caller until ``advance`` moves time past its
    wake-up point. Sleepers wake in time order, and the event loop is
    drained after each wake-up so follow-on work runs before the next.
    """

    def __init__(self):
        self.now = 0.0
        self._sleepers: list[tuple[float, int, asyncio.Future]] = []
        self._seq = 0

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._seq += 1
        self._sleepers.append((self.now + delay, self._seq, future))
        await future

    async def settle(self, rounds: int = 20) -> None:
        """Let every runnable task make progress."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await self.settle()
        while True:
            due = sorted(
                s for s in self._sleepers if not s[2].done() and s[0] <= target
            )
            if not due:
                break
            sleeper = due[0]
            self._sleepers.remove(sleeper)
            self.now = sleeper[0]
            sleeper[2].set_result(None)
            await self.settle()
        self.now = target
        self._sleepers = [s for s in self._sleepers if not s[2].done()]

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for s in self._sleepers if not s[2].done())


class FakeTransport:
    """
    In-memory transport that records every call.

    Pull responses are served from a queue; an empty queue behaves like
    an empty subscription.
    """

    def __init__(self):
        self.pull_responses: list[PullResult] = []
        self.pull_calls: list[dict] = []
        self.modify_calls: list[tuple[str, list[str], int]] = []
        self.ack_calls: list[tuple[str, list[str]]] = []
        self.publish_calls: list[tuple[str, list[OutgoingMessage]]] = []
        self.modify_error: Exception | None = None
        self.modify_gate: asyncio.Event | None = None
        self.ack_error: Exception | None = None

    def queue_message(
        self,
        ack_id: str,
        data: bytes | str = b"",
        attributes: dict[str, str] | None = None,
        raw_data: str | None = None,
    ) -> None:
        self.pull_responses.append(
            PullResult(
                received_messages=[
                    ReceivedMessage(
                        ack_id=ack_id,
                        message=PubsubMessage(
                            data=raw_data if raw_data is not None else encode_payload(data),
                            attributes=attributes or {},
                            message_id=f"msg-{ack_id}",
                        ),
                    )
                ]
            )
        )

    def extensions_for(self, ack_id: str) -> list[int]:
        """Deadlines requested for one ack id, in call order."""
        return [deadline for _, ids, deadline in self.modify_calls if ack_id in ids]

    async def pull(
        self,
        subscription: str,
        return_immediately: bool = True,
        max_messages: int = 1,
    ) -> PullResult:
        self.pull_calls.append(
            {
                "subscription": subscription,
                "return_immediately": return_immediately,
                "max_messages": max_messages,
            }
        )
        if not self.pull_responses:
            return PullResult()
        return self.pull_responses.pop(0)

    async def modify_ack_deadline(
        self,
        subscription: str,
        ack_ids: Sequence[str],
        ack_deadline_ms: int,
    ) -> None:
        self.modify_calls.append((subscription, list(ack_ids), ack_deadline_ms))
        if self.modify_gate is not None:
            await self.modify_gate.wait()
        if self.modify_error is not None:
            raise self.modify_error

    async def acknowledge(self, subscription: str, ack_ids: Sequence[str]) -> None:
        self.ack_calls.append((subscription, list(ack_ids)))
        if self.ack_error is not None:
            raise self.ack_error

    async def publish(
        self,
        topic: str,
        messages: Sequence[OutgoingMessage],
    ) -> PublishResult:
        self.publish_calls.append((topic, list(messages)))
        return PublishResult(message_ids=[str(i) for i in range(len(messages))])


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        project="test-project",
        base_url="https://pubsub.test/v1",
        static_access_token="test-token",
        log_level="DEBUG",
        log_format="console",
        worker_poll_interval_seconds=0.01,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def renewal_errors() -> list[tuple[str, Exception]]:
    """Collects (ack_handle, error) pairs reported by the scheduler."""
    return []


@pytest_asyncio.fixture
async def client(
    fake_transport: FakeTransport,
    fake_clock: FakeClock,
    test_settings: Settings,
    renewal_errors: list,
) -> AsyncGenerator[Client]:
    """Create a client over the fake transport and clock."""
    client = Client(
        transport=fake_transport,
        settings=test_settings,
        sleep=fake_clock.sleep,
        on_renewal_error=lambda reg, exc: renewal_errors.append((reg.ack_handle, exc)),
    )
    yield client
    await client.close()


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider("test-token")


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    return []
