"""
Deadline renewal scheduler for long-running jobs.

Keeps one periodic asyncio task per registered ack handle. Each tick
extends the handle's ack deadline so the broker does not redeliver the
message while the job is still being processed.

Tick policy: a renewal runs as its own task, so a slow request never
delays the timer. A tick that finds the previous renewal still in
flight is skipped rather than stacking a second request on top of it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pubsub_jobs.constants import RenewalOutcome
from pubsub_jobs.errors import DuplicateRegistrationError
from pubsub_jobs.observability.metrics import get_metrics
from pubsub_jobs.transport.base import Transport
from pubsub_jobs.types.job import JobRegistration

logger = logging.getLogger(__name__)

# Called with the registration and the exception of a failed renewal
RenewalErrorObserver = Callable[[JobRegistration, Exception], None]
SleepFunc = Callable[[float], Awaitable[None]]


class DeadlineRenewalScheduler:
    """
    Owns the registry of long-running jobs and their renewal timers.

    Registry invariants:
    - At most one registration per ack handle. Registering a handle that
      is already tracked raises DuplicateRegistrationError and leaves the
      existing timer running.
    - Deregistration is idempotent. Unknown handles are a no-op.

    Registry reads and writes never straddle a suspension point, so
    concurrent register/deregister calls cannot corrupt each other's
    entries.
    """

    def __init__(
        self,
        transport: Transport,
        on_renewal_error: RenewalErrorObserver | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the scheduler.

        Args:
            transport: Transport used to extend deadlines.
            on_renewal_error: Observer for failed background renewals.
            sleep: Coroutine used to wait between ticks.
        """
        self._transport = transport
        self._on_renewal_error = on_renewal_error
        self._sleep = sleep
        self._registry: dict[str, JobRegistration] = {}
        self._metrics = get_metrics()

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, ack_handle: object) -> bool:
        return ack_handle in self._registry

    @property
    def handles(self) -> list[str]:
        """Ack handles with an active renewal timer."""
        return list(self._registry)

    def is_registered(self, ack_handle: str) -> bool:
        return ack_handle in self._registry

    def get(self, ack_handle: str) -> JobRegistration | None:
        return self._registry.get(ack_handle)

    async def register(
        self,
        subscription: str,
        ack_handle: str,
        extend_by_ms: int,
        period_ms: int,
    ) -> JobRegistration:
        """
        Extend the deadline once, then keep extending it every period.

        The initial extension completes before this returns. If it
        fails, the error propagates and nothing is registered.

        Args:
            subscription: Subscription the message was pulled from.
            ack_handle: The message's ack id.
            extend_by_ms: Deadline to set on each extension, in milliseconds.
            period_ms: Interval between extensions, in milliseconds.

        Returns:
            JobRegistration: The new registration.

        Raises:
            DuplicateRegistrationError: If the handle is already registered.
            ValueError: If the period is not positive.
        """
        if period_ms <= 0:
            raise ValueError(f"Renewal period must be positive: {period_ms}")
        if ack_handle in self._registry:
            raise DuplicateRegistrationError(ack_handle)

        await self._transport.modify_ack_deadline(subscription, [ack_handle], extend_by_ms)

        # Another coroutine may have registered the handle while we waited
        if ack_handle in self._registry:
            raise DuplicateRegistrationError(ack_handle)

        registration = JobRegistration(
            subscription=subscription,
            ack_handle=ack_handle,
            extend_by_ms=extend_by_ms,
            period_ms=period_ms,
        )
        registration.timer = asyncio.create_task(
            self._renewal_loop(registration),
            name=f"deadline-renewal:{ack_handle}",
        )
        self._registry[ack_handle] = registration
        self._metrics.set_active_jobs(len(self._registry))

        logger.info(
            "Registered long-running job",
            extra={
                "subscription": subscription,
                "ack_handle": ack_handle,
                "extend_by_ms": extend_by_ms,
                "period_ms": period_ms,
            },
        )
        return registration

    async def deregister(self, ack_handle: str) -> bool:
        """
        Stop renewing a handle's deadline and forget it.

        The handle is forgotten before its tasks are awaited, so a caller
        cancelled while waiting still leaves it deregistered.

        Returns:
            True if the handle was registered, False otherwise.
        """
        registration = self._registry.pop(ack_handle, None)
        if registration is None:
            logger.debug("Deregister of untracked handle", extra={"ack_handle": ack_handle})
            return False

        self._metrics.set_active_jobs(len(self._registry))

        tasks = [t for t in (registration.timer, registration.in_flight) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                # The caller's own cancellation must propagate
                if asyncio.current_task().cancelling():
                    raise

        logger.info(
            "Deregistered long-running job",
            extra={
                "ack_handle": ack_handle,
                "renewals": registration.renewals,
                "failures": registration.failures,
            },
        )
        return True

    async def close(self) -> None:
        """Deregister every handle."""
        for ack_handle in list(self._registry):
            await self.deregister(ack_handle)

    async def _renewal_loop(self, registration: JobRegistration) -> None:
        while True:
            await self._sleep(registration.period_seconds)

            if registration.renewal_in_flight:
                logger.warning(
                    "Previous deadline renewal still in flight, skipping tick",
                    extra={"ack_handle": registration.ack_handle},
                )
                self._metrics.record_renewal(registration.subscription, RenewalOutcome.SKIPPED)
                continue

            registration.in_flight = asyncio.create_task(
                self._renew(registration),
                name=f"deadline-renewal-tick:{registration.ack_handle}",
            )

    async def _renew(self, registration: JobRegistration) -> None:
        try:
            await self._transport.modify_ack_deadline(
                registration.subscription,
                [registration.ack_handle],
                registration.extend_by_ms,
            )
        except Exception as e:
            registration.failures += 1
            self._metrics.record_renewal(registration.subscription, RenewalOutcome.FAILED)
            logger.warning(
                "Deadline renewal failed",
                extra={
                    "ack_handle": registration.ack_handle,
                    "failures": registration.failures,
                    "error": str(e),
                },
            )
            self._notify_error(registration, e)
            return

        registration.renewals += 1
        self._metrics.record_renewal(registration.subscription, RenewalOutcome.SUCCEEDED)
        logger.debug(
            "Extended deadline",
            extra={"ack_handle": registration.ack_handle, "renewals": registration.renewals},
        )

    def _notify_error(self, registration: JobRegistration, error: Exception) -> None:
        if self._on_renewal_error is None:
            return
        try:
            self._on_renewal_error(registration, error)
        except Exception:
            logger.exception("Renewal error observer raised")
