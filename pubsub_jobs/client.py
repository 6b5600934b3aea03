"""
Pub/Sub client with support for long-running jobs.

Mirrors the REST API closely (pull, modifyAckDeadline, acknowledge,
publish) and adds two calls tailored to jobs that outlive a single ack
deadline: ``start_long_running_job`` pulls one message and keeps its
deadline extended in the background until ``acknowledge_long_running_job``
(or ``cancel_long_running_job``) is called for it.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pubsub_jobs.codec import decode_message
from pubsub_jobs.config import Settings, get_settings
from pubsub_jobs.constants import LONG_RUNNING_MAX_MESSAGES, JobState
from pubsub_jobs.scheduler import DeadlineRenewalScheduler, RenewalErrorObserver, SleepFunc
from pubsub_jobs.transport.auth import GoogleTokenProvider, StaticTokenProvider, TokenProvider
from pubsub_jobs.transport.base import Transport
from pubsub_jobs.transport.http import HttpTransport
from pubsub_jobs.types.message import Message, OutgoingMessage, PublishResult, PullResult

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _default_token_provider(settings: Settings) -> TokenProvider:
    if settings.static_access_token:
        return StaticTokenProvider(settings.static_access_token)
    return GoogleTokenProvider()


class Client:
    """
    Pub/Sub API client for long-running jobs.

    Each client owns one deadline renewal scheduler; registrations never
    outlive the client. Use it as an async context manager, or call
    ``close()`` to stop all renewals and release the HTTP client.

    Example:
        async with Client(project="my-project") as client:
            message = await client.start_long_running_job("jobs")
            if message is not None:
                await process(message.payload)
                await client.acknowledge_long_running_job("jobs", message.ack_handle)
    """

    def __init__(
        self,
        project: str | None = None,
        base_url: str | None = None,
        transport: Transport | None = None,
        token_provider: TokenProvider | None = None,
        settings: Settings | None = None,
        payload_encoding: str | None = _UNSET,
        on_renewal_error: RenewalErrorObserver | None = None,
        sleep: SleepFunc | None = None,
    ):
        """
        Initialize the client.

        Args:
            project: Project id. Defaults to settings.
            base_url: API root. Defaults to settings.
            transport: Transport override. An HttpTransport is built when
                not given.
            token_provider: Token source for the default transport.
            settings: Settings override.
            payload_encoding: Text encoding for decoded payloads, or None
                for raw bytes. Defaults to settings.
            on_renewal_error: Observer for failed background renewals.
            sleep: Coroutine used by the scheduler to wait between ticks.
        """
        self._settings = settings or get_settings()

        if transport is None:
            transport = HttpTransport(
                token_provider=token_provider or _default_token_provider(self._settings),
                project=project,
                base_url=base_url,
                settings=self._settings,
            )
        self._transport = transport

        self.payload_encoding = (
            self._settings.payload_encoding if payload_encoding is _UNSET else payload_encoding
        )

        scheduler_kwargs: dict[str, Any] = {"on_renewal_error": on_renewal_error}
        if sleep is not None:
            scheduler_kwargs["sleep"] = sleep
        self.scheduler = DeadlineRenewalScheduler(transport, **scheduler_kwargs)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def active_jobs(self) -> list[str]:
        """Ack handles of long-running jobs with running deadline renewal."""
        return self.scheduler.handles

    # Subscriber

    async def pull(
        self,
        subscription: str,
        return_immediately: bool = True,
        max_messages: int = 1,
    ) -> PullResult:
        """Pull messages. Payloads are returned in wire (base64) form."""
        return await self._transport.pull(
            subscription,
            return_immediately=return_immediately,
            max_messages=max_messages,
        )

    async def modify_ack_deadline(
        self,
        subscription: str,
        ack_ids: Sequence[str],
        ack_deadline_ms: int,
    ) -> None:
        """Set the ack deadline (milliseconds) of the given ack ids."""
        await self._transport.modify_ack_deadline(subscription, ack_ids, ack_deadline_ms)

    async def acknowledge(self, subscription: str, ack_ids: Sequence[str]) -> None:
        """Acknowledge the given ack ids."""
        await self._transport.acknowledge(subscription, ack_ids)

    # Long-running jobs

    async def start_long_running_job(
        self,
        subscription: str,
        extend_by: int | None = None,
        period: int | None = None,
    ) -> Message | None:
        """
        Pull one message and keep its ack deadline extended.

        Only one message is pulled per call. Before the message is
        returned its deadline has already been extended once; further
        extensions run every ``period`` until the job is acknowledged or
        cancelled.

        Args:
            subscription: Subscription to pull from.
            extend_by: Deadline to set on each extension, in milliseconds.
            period: Interval between extensions, in milliseconds.

        Returns:
            The decoded message, or None when the subscription is empty.

        Raises:
            AuthError: If no access token could be obtained.
            TransportError: If the pull or the initial extension failed.
            DuplicateRegistrationError: If the pulled handle is already tracked.
            PayloadDecodeError: If the payload could not be decoded.
        """
        extend_by = self._settings.default_extend_by_ms if extend_by is None else extend_by
        period = self._settings.default_period_ms if period is None else period

        self._log_state(JobState.PULLING, subscription)
        result = await self._transport.pull(
            subscription,
            return_immediately=True,
            max_messages=LONG_RUNNING_MAX_MESSAGES,
        )

        if result.is_empty:
            self._log_state(JobState.NO_MESSAGE, subscription)
            self._log_state(JobState.IDLE, subscription)
            return None

        message = Message.from_received(result.received_messages[0])

        await self.scheduler.register(subscription, message.ack_handle, extend_by, period)
        self._log_state(JobState.REGISTERED, subscription, message.ack_handle)

        try:
            decode_message(message, self.payload_encoding)
        except Exception:
            # Caller never receives the handle, so the timer must not outlive this call
            await self.scheduler.deregister(message.ack_handle)
            raise

        return message

    async def acknowledge_long_running_job(self, subscription: str, ack_handle: str) -> None:
        """
        Stop extending a job's deadline and acknowledge it.

        Renewal stops before the acknowledgement is sent. Calling this for
        a handle that is not tracked (acknowledged twice, or never
        started here) only sends the acknowledgement.

        Raises:
            AuthError: If no access token could be obtained.
            TransportError: If the acknowledgement failed.
        """
        self._log_state(JobState.ACKNOWLEDGING, subscription, ack_handle)
        await self.scheduler.deregister(ack_handle)
        await self._transport.acknowledge(subscription, [ack_handle])
        self._log_state(JobState.DONE, subscription, ack_handle)

    async def cancel_long_running_job(
        self,
        subscription: str,
        ack_handle: str,
        nack: bool = False,
    ) -> bool:
        """
        Stop extending a job's deadline without acknowledging it.

        Args:
            subscription: Subscription the message was pulled from.
            ack_handle: The job's ack handle.
            nack: Also set the deadline to zero so the broker redelivers
                the message right away instead of when it expires.

        Returns:
            True if the job was registered.
        """
        registered = await self.scheduler.deregister(ack_handle)
        if nack:
            await self._transport.modify_ack_deadline(subscription, [ack_handle], 0)
        self._log_state(JobState.CANCELLED, subscription, ack_handle)
        return registered

    # Publisher

    async def publish(
        self,
        topic: str,
        messages: Sequence[OutgoingMessage | bytes | str],
    ) -> PublishResult:
        """
        Publish messages to a topic.

        Args:
            topic: Topic to publish to.
            messages: Messages, or bare payloads without attributes.

        Returns:
            PublishResult: Server-assigned message ids.
        """
        outgoing = [
            m if isinstance(m, OutgoingMessage) else OutgoingMessage(data=m)
            for m in messages
        ]
        return await self._transport.publish(topic, outgoing)

    # Lifecycle

    async def close(self) -> None:
        """Stop all renewal timers and close the transport."""
        await self.scheduler.close()
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _log_state(
        self,
        state: JobState,
        subscription: str,
        ack_handle: str | None = None,
    ) -> None:
        logger.debug(
            "Long-running job state",
            extra={"state": state.value, "subscription": subscription, "ack_handle": ack_handle},
        )
