"""
HTTP transport for the Pub/Sub REST API.

Each operation is a single authenticated POST. Failures surface as
``TransportError``; nothing is retried here.
"""

import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx

from pubsub_jobs.codec import encode_outgoing
from pubsub_jobs.config import Settings, get_settings
from pubsub_jobs.constants import (
    SPAN_ACKNOWLEDGE,
    SPAN_MODIFY_ACK_DEADLINE,
    SPAN_PUBLISH,
    SPAN_PULL,
    SUBSCRIPTION_PATH,
    TOPIC_PATH,
)
from pubsub_jobs.errors import TransportError
from pubsub_jobs.observability.metrics import get_metrics
from pubsub_jobs.observability.tracing import get_tracer
from pubsub_jobs.transport.auth import TokenProvider
from pubsub_jobs.types.message import OutgoingMessage, PublishResult, PullResult

logger = logging.getLogger(__name__)


def deadline_ms_to_seconds(ack_deadline_ms: int) -> int:
    """
    Convert a deadline in milliseconds to the whole seconds the API expects.

    Fractions of a second are truncated.
    """
    if ack_deadline_ms < 0:
        raise ValueError(f"Ack deadline must not be negative: {ack_deadline_ms}")
    return int(ack_deadline_ms // 1000)


class HttpTransport:
    """
    Pub/Sub REST transport using httpx.

    Resource names may be short ("jobs") or fully qualified
    ("projects/p/subscriptions/jobs"); short names are expanded with the
    configured project.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        project: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the transport.

        Args:
            token_provider: Source of bearer tokens.
            project: Project id. Defaults to settings.
            base_url: API root. Defaults to settings.
            http_client: Client to send requests with. One is created
                (and owned) when not given.
            settings: Settings override.
        """
        settings = settings or get_settings()

        self.project = project or settings.project
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self._token_provider = token_provider
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self._metrics = get_metrics()

    def subscription_path(self, subscription: str) -> str:
        """Format a subscription resource name."""
        if subscription.startswith("projects/"):
            return subscription
        return SUBSCRIPTION_PATH.format(project=self.project, subscription=subscription)

    def topic_path(self, topic: str) -> str:
        """Format a topic resource name."""
        if topic.startswith("projects/"):
            return topic
        return TOPIC_PATH.format(project=self.project, topic=topic)

    async def pull(
        self,
        subscription: str,
        return_immediately: bool = True,
        max_messages: int = 1,
    ) -> PullResult:
        """
        Pull up to ``max_messages`` messages.

        Returns:
            PullResult: Possibly empty list of received messages.
        """
        data = await self._post(
            operation="pull",
            span_name=SPAN_PULL,
            resource=self.subscription_path(subscription),
            body={"returnImmediately": return_immediately, "maxMessages": max_messages},
        )
        result = PullResult.model_validate(data)
        if result.received_messages:
            self._metrics.record_pulled(subscription, len(result.received_messages))
        return result

    async def modify_ack_deadline(
        self,
        subscription: str,
        ack_ids: Sequence[str],
        ack_deadline_ms: int,
    ) -> None:
        """
        Set the ack deadline of the given ack ids, relative to now.

        Args:
            subscription: Subscription the messages were pulled from.
            ack_ids: Ack ids to modify.
            ack_deadline_ms: New deadline in milliseconds. Sent as whole
                seconds; 0 makes the messages available for redelivery.
        """
        await self._post(
            operation="modifyAckDeadline",
            span_name=SPAN_MODIFY_ACK_DEADLINE,
            resource=self.subscription_path(subscription),
            body={
                "ackIds": list(ack_ids),
                "ackDeadlineSeconds": deadline_ms_to_seconds(ack_deadline_ms),
            },
        )

    async def acknowledge(self, subscription: str, ack_ids: Sequence[str]) -> None:
        """Acknowledge the given ack ids."""
        await self._post(
            operation="acknowledge",
            span_name=SPAN_ACKNOWLEDGE,
            resource=self.subscription_path(subscription),
            body={"ackIds": list(ack_ids)},
        )
        self._metrics.record_acknowledged(subscription, len(ack_ids))

    async def publish(
        self,
        topic: str,
        messages: Sequence[OutgoingMessage],
    ) -> PublishResult:
        """
        Publish messages to a topic in one request.

        Returns:
            PublishResult: Server-assigned message ids.
        """
        data = await self._post(
            operation="publish",
            span_name=SPAN_PUBLISH,
            resource=self.topic_path(topic),
            body={"messages": encode_outgoing(messages)},
        )
        self._metrics.record_published(topic, len(messages))
        return PublishResult.model_validate(data)

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _post(
        self,
        operation: str,
        span_name: str,
        resource: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{resource}:{operation}"
        token = await self._token_provider.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}

        start_time = time.perf_counter()
        with get_tracer().start_as_current_span(span_name) as span:
            span.set_attribute("pubsub.resource", resource)

            try:
                response = await self._client.post(url, json=body, headers=headers)
            except httpx.HTTPError as e:
                self._metrics.record_transport_request(
                    operation, "error", time.perf_counter() - start_time
                )
                logger.warning(
                    "Pub/Sub request failed",
                    extra={"operation": operation, "resource": resource, "error": str(e)},
                )
                raise TransportError(operation, str(e) or type(e).__name__) from e

            span.set_attribute("http.status_code", response.status_code)
            self._metrics.record_transport_request(
                operation, response.status_code, time.perf_counter() - start_time
            )

        if response.is_error:
            detail = _error_detail(response)
            logger.warning(
                "Pub/Sub request rejected",
                extra={
                    "operation": operation,
                    "resource": resource,
                    "status_code": response.status_code,
                    "error": detail,
                },
            )
            raise TransportError(operation, detail, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(operation, f"Invalid JSON response: {e}") from e


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return response.text or f"HTTP {response.status_code}"
