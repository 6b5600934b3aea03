"""
Integration tests for worker job processing.
"""

import asyncio

import pytest

from pubsub_jobs.client import Client
from pubsub_jobs.config import Settings
from pubsub_jobs.errors import TransportError
from pubsub_jobs.worker.main import Worker


class TestWorkerIntegration:
    """Worker runs against a client over the fake transport."""

    @pytest.fixture
    def worker(self, client) -> Worker:
        return Worker(
            client,
            subscription="jobs",
            concurrency=1,
            poll_interval=0.01,
            worker_id="test-worker",
            extend_by=15000,
            period=10000,
        )

    async def test_empty_subscription(self, worker, fake_transport):
        assert await worker.poll_once() is False
        assert fake_transport.ack_calls == []

    async def test_successful_job_is_acknowledged(self, worker, client, fake_transport):
        fake_transport.queue_message("A1", "hello", attributes={"job_type": "echo"})

        assert await worker.poll_once() is True

        assert fake_transport.modify_calls == [("jobs", ["A1"], 15000)]
        assert fake_transport.ack_calls == [("jobs", ["A1"])]
        assert client.active_jobs == []

    async def test_failed_job_is_nacked(self, worker, client, fake_transport):
        fake_transport.queue_message("A1", "hello", attributes={"job_type": "failing_job"})

        await worker.poll_once()

        assert fake_transport.ack_calls == []
        assert fake_transport.modify_calls[-1] == ("jobs", ["A1"], 0)
        assert client.active_jobs == []

    async def test_ack_failure_does_not_crash(self, worker, client, fake_transport):
        fake_transport.queue_message("A1", "hello", attributes={"job_type": "echo"})
        fake_transport.ack_error = TransportError("acknowledge", "expired", 400)

        assert await worker.poll_once() is True
        assert client.active_jobs == []

    async def test_start_and_stop(self, worker, fake_transport):
        fake_transport.queue_message("A1", "one")
        fake_transport.queue_message("A2", "two")

        task = asyncio.create_task(worker.start())
        for _ in range(100):
            if len(fake_transport.ack_calls) == 2:
                break
            await asyncio.sleep(0.01)

        await worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert fake_transport.ack_calls == [("jobs", ["A1"]), ("jobs", ["A2"])]
        assert not worker.running

    async def test_defaults_come_from_client_settings(self, fake_transport):
        settings = Settings(
            _env_file=None,
            worker_subscription="reports",
            worker_concurrency=3,
            worker_poll_interval_seconds=0.5,
        )
        client = Client(transport=fake_transport, settings=settings)

        worker = Worker(client, worker_id="test-worker")

        assert worker.subscription == "reports"
        assert worker.concurrency == 3
        assert worker.poll_interval == 0.5
        await client.close()
