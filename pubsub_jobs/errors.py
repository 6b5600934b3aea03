"""
Exception hierarchy for the Pub/Sub long-running job client.
"""


class PubSubJobsError(Exception):
    """Base class for all errors raised by this package."""


class AuthError(PubSubJobsError):
    """Access token acquisition failed."""


class TransportError(PubSubJobsError):
    """
    A Pub/Sub API call failed at the network or HTTP level.

    Attributes:
        operation: The API operation that failed (pull, acknowledge, ...).
        status_code: HTTP status code, or None for network failures.
        detail: Error message reported by the server or the HTTP client.
    """

    def __init__(
        self,
        operation: str,
        detail: str,
        status_code: int | None = None,
    ):
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"{operation} failed{status}: {detail}")


class DuplicateRegistrationError(PubSubJobsError):
    """A long-running job is already registered under this ack handle."""

    def __init__(self, ack_handle: str):
        self.ack_handle = ack_handle
        super().__init__(f"Ack handle already registered: {ack_handle}")


class CodecError(PubSubJobsError):
    """Payload encoding or decoding failed."""


class PayloadDecodeError(CodecError):
    """The wire payload is not valid base64 or not valid in the requested encoding."""


class PayloadAlreadyDecodedError(CodecError):
    """The message payload was already decoded."""
