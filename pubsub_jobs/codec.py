"""
Payload codec.

Pub/Sub carries message data as base64 text inside JSON. Inbound payloads
are decoded once into bytes (or text in a configured encoding); outbound
payloads are encoded the same way before publishing.
"""

import base64
import binascii
from collections.abc import Iterable

from pubsub_jobs.errors import PayloadAlreadyDecodedError, PayloadDecodeError
from pubsub_jobs.types.message import Message, OutgoingMessage


def encode_payload(payload: bytes | str, encoding: str = "utf-8") -> str:
    """
    Encode a payload to base64 text.

    Args:
        payload: Raw bytes, or text which is first encoded with ``encoding``.
        encoding: Character encoding used for text payloads.

    Returns:
        The base64 text. An empty payload encodes to an empty string.
    """
    if isinstance(payload, str):
        payload = payload.encode(encoding)
    return base64.b64encode(payload).decode("ascii")


def decode_payload(data: str | None, encoding: str | None = None) -> bytes | str:
    """
    Decode base64 wire text.

    Args:
        data: The base64 text. None is treated as an empty payload.
        encoding: If given, the decoded bytes are returned as text.

    Returns:
        The decoded bytes, or text when an encoding is given.

    Raises:
        PayloadDecodeError: If the data is not valid base64 or not valid
            in the requested encoding.
    """
    try:
        raw = base64.b64decode(data or "", validate=True)
    except (binascii.Error, ValueError) as e:
        raise PayloadDecodeError(f"Invalid base64 payload: {e}") from e

    if encoding is None:
        return raw

    try:
        return raw.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise PayloadDecodeError(f"Payload is not valid {encoding}: {e}") from e


def decode_message(message: Message, encoding: str | None = None) -> Message:
    """
    Decode a message payload in place.

    Raises:
        PayloadAlreadyDecodedError: If the payload was decoded before.
    """
    if message.decoded:
        raise PayloadAlreadyDecodedError(
            f"Payload of {message.ack_handle} is already decoded"
        )
    message.payload = decode_payload(message.payload, encoding)
    message.decoded = True
    return message


def encode_outgoing(
    messages: Iterable[OutgoingMessage],
    encoding: str = "utf-8",
) -> list[dict]:
    """Build the ``messages`` list of a publish request body."""
    encoded = []
    for message in messages:
        body: dict = {"data": encode_payload(message.data, encoding)}
        if message.attributes:
            body["attributes"] = dict(message.attributes)
        if message.ordering_key:
            body["orderingKey"] = message.ordering_key
        encoded.append(body)
    return encoded
