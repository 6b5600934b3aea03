"""
Worker process for executing long-running jobs.

The worker pulls one message at a time per slot, keeps its ack deadline
extended while the handler runs, then acknowledges on success or nacks
on failure so the broker redelivers it.
"""

import asyncio
import logging
import os
import signal
import time

from pubsub_jobs.client import Client
from pubsub_jobs.config import Settings, get_settings
from pubsub_jobs.constants import SPAN_EXECUTE_JOB
from pubsub_jobs.errors import PubSubJobsError
from pubsub_jobs.observability.logging import setup_logging
from pubsub_jobs.observability.metrics import get_metrics, setup_metrics
from pubsub_jobs.observability.tracing import get_tracer, setup_tracing
from pubsub_jobs.types.job import JobContext
from pubsub_jobs.types.message import Message
from pubsub_jobs.worker.handlers import execute_job

logger = logging.getLogger(__name__)


class Worker:
    """
    Long-running job worker.

    Features:
    - One message per pull, deadline extended while the handler runs
    - Configurable number of concurrent slots
    - Graceful shutdown on SIGTERM/SIGINT (running jobs finish first)
    """

    def __init__(
        self,
        client: Client,
        subscription: str | None = None,
        concurrency: int | None = None,
        poll_interval: float | None = None,
        worker_id: str | None = None,
        extend_by: int | None = None,
        period: int | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the worker.

        Args:
            client: Client used to pull, renew and acknowledge.
            subscription: Subscription to consume.
            concurrency: Number of jobs processed at the same time.
            poll_interval: Seconds between polls when the subscription is empty.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            extend_by: Deadline extension in milliseconds.
            period: Renewal period in milliseconds.
            settings: Settings override. Defaults to the client's settings.
        """
        settings = settings or client.settings

        self.client = client
        self.subscription = subscription or settings.worker_subscription
        self.concurrency = concurrency or settings.worker_concurrency
        self.poll_interval = poll_interval or settings.worker_poll_interval_seconds
        self.worker_id = worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.extend_by = extend_by
        self.period = period

        self._running = False
        self._metrics = get_metrics()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the worker and block until it is stopped."""
        logger.info(
            "Worker starting",
            extra={
                "worker_id": self.worker_id,
                "subscription": self.subscription,
                "concurrency": self.concurrency,
            }
        )

        self._running = True

        await asyncio.gather(*(self._poll_loop() for _ in range(self.concurrency)))

        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._running = False

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                processed = await self.poll_once()

                if not processed:
                    await asyncio.sleep(self.poll_interval)

            except Exception as e:
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={"worker_id": self.worker_id}
                )
                await asyncio.sleep(self.poll_interval)

    async def poll_once(self) -> bool:
        """
        Pull and process at most one job.

        Returns:
            True if a job was processed.
        """
        message = await self.client.start_long_running_job(
            self.subscription,
            extend_by=self.extend_by,
            period=self.period,
        )
        if message is None:
            return False

        await self._execute_job(message)
        return True

    async def _execute_job(self, message: Message) -> None:
        start_time = time.time()
        context = JobContext(
            subscription=self.subscription,
            message=message,
            worker_id=self.worker_id,
        )

        logger.info(
            "Executing job",
            extra={
                "ack_handle": message.ack_handle,
                "job_type": context.job_type,
                "attempt": context.delivery_attempt,
            }
        )

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("ack_handle", message.ack_handle)
            span.set_attribute("attempt", context.delivery_attempt)

            result = await execute_job(context)

        duration = time.time() - start_time
        status = "succeeded" if result.success else "failed"

        try:
            if result.success:
                await self.client.acknowledge_long_running_job(
                    self.subscription, message.ack_handle
                )
                logger.info(
                    "Job completed successfully",
                    extra={"ack_handle": message.ack_handle, "duration": f"{duration:.2f}s"}
                )
            else:
                await self.client.cancel_long_running_job(
                    self.subscription, message.ack_handle, nack=True
                )
                logger.warning(
                    "Job failed",
                    extra={
                        "ack_handle": message.ack_handle,
                        "error": result.error,
                        "attempt": context.delivery_attempt,
                    }
                )
        except PubSubJobsError:
            # Renewal has already stopped; the broker redelivers after the deadline
            status = "unsettled"
            logger.exception(
                "Failed to settle job",
                extra={"ack_handle": message.ack_handle}
            )

        self._metrics.record_job_completed(
            subscription=self.subscription,
            status=status,
            duration_seconds=duration,
        )


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()
    setup_logging()
    setup_metrics(settings.prometheus_port)
    setup_tracing()

    async with Client() as client:
        worker = Worker(client)

        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda: asyncio.create_task(worker.stop())
            )

        await worker.start()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
