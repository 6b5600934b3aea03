"""
Message type definitions.

Wire models mirror the Pub/Sub REST JSON (camelCase on the wire,
snake_case in Python). ``Message`` is the caller-visible form handed out
for long-running jobs.
"""

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for models that round-trip through the REST API."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialize using the API's camelCase field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class PubsubMessage(WireModel):
    """A message as delivered by the broker, payload still base64 encoded."""

    data: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)
    message_id: str | None = Field(default=None, alias="messageId")
    publish_time: datetime | None = Field(default=None, alias="publishTime")
    ordering_key: str | None = Field(default=None, alias="orderingKey")


class ReceivedMessage(WireModel):
    """One entry of a pull response."""

    ack_id: str = Field(..., alias="ackId")
    message: PubsubMessage = Field(default_factory=PubsubMessage)
    delivery_attempt: int | None = Field(default=None, alias="deliveryAttempt")


class PullResult(WireModel):
    """Response of a pull call. Empty when the subscription has no messages."""

    received_messages: list[ReceivedMessage] = Field(
        default_factory=list, alias="receivedMessages"
    )

    @property
    def is_empty(self) -> bool:
        return not self.received_messages


class PublishResult(WireModel):
    """Server-assigned message ids, in the order the messages were published."""

    message_ids: list[str] = Field(default_factory=list, alias="messageIds")


class OutgoingMessage(BaseModel):
    """A message to publish. ``data`` is raw bytes or text, encoded on send."""

    data: bytes | str = b""
    attributes: dict[str, str] = Field(default_factory=dict)
    ordering_key: str | None = None


@dataclass
class Message:
    """
    A pulled message handed to the caller.

    The payload holds the base64 wire text until it is decoded, after
    which it holds bytes or text. Decoding happens at most once.
    """

    ack_handle: str
    payload: bytes | str
    attributes: dict[str, str] = field(default_factory=dict)
    message_id: str | None = None
    publish_time: datetime | None = None
    delivery_attempt: int | None = None
    decoded: bool = False

    @classmethod
    def from_received(cls, received: ReceivedMessage) -> "Message":
        """Build an undecoded message from a pull response entry."""
        return cls(
            ack_handle=received.ack_id,
            payload=received.message.data,
            attributes=dict(received.message.attributes),
            message_id=received.message.message_id,
            publish_time=received.message.publish_time,
            delivery_attempt=received.delivery_attempt,
        )
