"""
Unit tests for the deadline renewal scheduler.
"""

import asyncio

import pytest
import pytest_asyncio

from pubsub_jobs.constants import RenewalOutcome
from pubsub_jobs.errors import DuplicateRegistrationError, TransportError
from pubsub_jobs.scheduler import DeadlineRenewalScheduler


class TestDeadlineRenewalScheduler:
    """Tests for DeadlineRenewalScheduler."""

    @pytest_asyncio.fixture
    async def scheduler(self, fake_transport, fake_clock, renewal_errors):
        """Create a scheduler driven by the fake clock."""
        scheduler = DeadlineRenewalScheduler(
            fake_transport,
            on_renewal_error=lambda reg, exc: renewal_errors.append((reg.ack_handle, exc)),
            sleep=fake_clock.sleep,
        )
        yield scheduler
        await scheduler.close()

    async def test_register_extends_immediately(self, scheduler, fake_transport):
        """The initial extension happens before register returns."""
        registration = await scheduler.register("jobs", "A1", 15000, 10000)

        assert fake_transport.modify_calls == [("jobs", ["A1"], 15000)]
        assert scheduler.is_registered("A1")
        assert scheduler.get("A1") is registration
        assert registration.timer is not None
        assert len(scheduler) == 1

    async def test_periodic_renewal(self, scheduler, fake_transport, fake_clock):
        """A renewal fires every period."""
        registration = await scheduler.register("jobs", "A1", 15000, 10000)

        await fake_clock.advance(9)
        assert len(fake_transport.modify_calls) == 1

        await fake_clock.advance(1)
        assert len(fake_transport.modify_calls) == 2

        await fake_clock.advance(20)
        assert fake_transport.extensions_for("A1") == [15000, 15000, 15000, 15000]
        assert registration.renewals == 3

    async def test_deregister_stops_renewals(self, scheduler, fake_transport, fake_clock):
        """No extension is sent after deregistration."""
        registration = await scheduler.register("jobs", "A1", 15000, 10000)
        await fake_clock.advance(10)

        assert await scheduler.deregister("A1") is True
        await fake_clock.advance(60)

        assert len(fake_transport.modify_calls) == 2
        assert not scheduler.is_registered("A1")
        assert registration.timer.cancelled()

    async def test_deregister_is_idempotent(self, scheduler):
        """Deregistering twice or an unknown handle is a no-op."""
        await scheduler.register("jobs", "A1", 15000, 10000)

        assert await scheduler.deregister("A1") is True
        assert await scheduler.deregister("A1") is False
        assert await scheduler.deregister("never-registered") is False

    async def test_duplicate_registration_rejected(
        self, scheduler, fake_transport, fake_clock
    ):
        """A second registration fails and leaves the first timer running."""
        first = await scheduler.register("jobs", "A1", 15000, 10000)

        with pytest.raises(DuplicateRegistrationError) as exc_info:
            await scheduler.register("jobs", "A1", 30000, 5000)

        assert exc_info.value.ack_handle == "A1"
        assert scheduler.get("A1") is first
        # The rejected registration sent no extension
        assert len(fake_transport.modify_calls) == 1

        await fake_clock.advance(10)
        assert fake_transport.extensions_for("A1") == [15000, 15000]

    async def test_independent_timers(self, scheduler, fake_transport, fake_clock):
        """Cancelling one handle does not affect another."""
        await scheduler.register("jobs", "A1", 15000, 10000)
        await scheduler.register("jobs", "B1", 20000, 5000)

        await fake_clock.advance(10)
        assert len(fake_transport.extensions_for("A1")) == 2
        assert len(fake_transport.extensions_for("B1")) == 3

        await scheduler.deregister("A1")
        await fake_clock.advance(10)

        assert len(fake_transport.extensions_for("A1")) == 2
        assert len(fake_transport.extensions_for("B1")) == 5
        assert scheduler.handles == ["B1"]

    async def test_initial_extension_failure_registers_nothing(
        self, scheduler, fake_transport
    ):
        """A failed initial extension propagates and leaves no timer."""
        fake_transport.modify_error = TransportError("modifyAckDeadline", "boom", 503)

        with pytest.raises(TransportError):
            await scheduler.register("jobs", "A1", 15000, 10000)

        assert len(scheduler) == 0

    async def test_renewal_failure_is_reported_and_loop_continues(
        self, scheduler, fake_transport, fake_clock, renewal_errors
    ):
        """Background failures reach the observer and do not stop the timer."""
        registration = await scheduler.register("jobs", "A1", 15000, 10000)
        fake_transport.modify_error = TransportError("modifyAckDeadline", "boom", 503)

        await fake_clock.advance(20)

        assert registration.failures == 2
        assert [handle for handle, _ in renewal_errors] == ["A1", "A1"]
        assert scheduler.is_registered("A1")

        fake_transport.modify_error = None
        await fake_clock.advance(10)

        assert registration.renewals == 1
        assert len(fake_transport.modify_calls) == 4

    async def test_observer_exception_is_contained(self, fake_transport, fake_clock):
        """A raising observer does not break the renewal loop."""
        def observer(registration, error):
            raise RuntimeError("observer bug")

        scheduler = DeadlineRenewalScheduler(
            fake_transport, on_renewal_error=observer, sleep=fake_clock.sleep
        )
        registration = await scheduler.register("jobs", "A1", 15000, 10000)
        fake_transport.modify_error = TransportError("modifyAckDeadline", "boom")

        await fake_clock.advance(20)

        assert registration.failures == 2
        assert not registration.timer.done()
        await scheduler.close()

    async def test_slow_renewal_skips_next_tick(
        self, scheduler, fake_transport, fake_clock
    ):
        """A tick is skipped while the previous renewal is still in flight."""
        registration = await scheduler.register("jobs", "A1", 15000, 10000)
        fake_transport.modify_gate = asyncio.Event()

        await fake_clock.advance(10)
        assert len(fake_transport.modify_calls) == 2
        assert registration.renewal_in_flight

        await fake_clock.advance(10)
        assert len(fake_transport.modify_calls) == 2

        fake_transport.modify_gate.set()
        await fake_clock.settle()
        assert registration.renewals == 1

        await fake_clock.advance(10)
        assert len(fake_transport.modify_calls) == 3

    async def test_deregister_cancels_in_flight_renewal(
        self, scheduler, fake_transport, fake_clock
    ):
        """A hung renewal is cancelled with its timer."""
        registration = await scheduler.register("jobs", "A1", 15000, 10000)
        fake_transport.modify_gate = asyncio.Event()
        await fake_clock.advance(10)
        in_flight = registration.in_flight

        await scheduler.deregister("A1")

        assert in_flight.cancelled()
        assert registration.renewals == 0

    async def test_close_deregisters_everything(self, scheduler, fake_clock):
        await scheduler.register("jobs", "A1", 15000, 10000)
        await scheduler.register("jobs", "B1", 15000, 10000)

        await scheduler.close()

        assert len(scheduler) == 0
        await fake_clock.advance(30)
        assert fake_clock.pending_sleepers == 0

    async def test_rejects_non_positive_period(self, scheduler, fake_transport):
        with pytest.raises(ValueError):
            await scheduler.register("jobs", "A1", 15000, 0)

        assert fake_transport.modify_calls == []

    def test_renewal_outcomes(self):
        assert {o.value for o in RenewalOutcome} == {"succeeded", "failed", "skipped"}

    async def test_concurrent_registration_of_same_handle(
        self, scheduler, fake_transport
    ):
        """Two registrations racing past the first check yield one timer."""
        fake_transport.modify_gate = asyncio.Event()

        first = asyncio.create_task(scheduler.register("jobs", "A1", 15000, 10000))
        second = asyncio.create_task(scheduler.register("jobs", "A1", 15000, 10000))
        await asyncio.sleep(0)
        # Both are waiting on their initial extension
        assert len(fake_transport.modify_calls) == 2

        fake_transport.modify_gate.set()
        results = await asyncio.gather(first, second, return_exceptions=True)
        fake_transport.modify_gate = None

        errors = [r for r in results if isinstance(r, DuplicateRegistrationError)]
        assert len(errors) == 1
        assert len(scheduler) == 1

    async def test_cancelled_deregister_propagates(self, scheduler, fake_clock):
        """Cancelling the caller of deregister raises, the handle stays gone."""
        registration = await scheduler.register("jobs", "A1", 15000, 10000)

        task = asyncio.create_task(scheduler.deregister("A1"))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert not scheduler.is_registered("A1")
        await fake_clock.settle()
        assert registration.timer.cancelled()
