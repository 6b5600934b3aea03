"""
Pub/Sub Long-Running Jobs

A Google Cloud Pub/Sub REST client for jobs that outlive a single ack
deadline: pull one message, keep its deadline extended in the background,
and stop renewing exactly once when the job is acknowledged.
"""

__version__ = "1.0.0"

from pubsub_jobs.client import Client
from pubsub_jobs.errors import (
    AuthError,
    CodecError,
    DuplicateRegistrationError,
    PayloadAlreadyDecodedError,
    PayloadDecodeError,
    PubSubJobsError,
    TransportError,
)
from pubsub_jobs.scheduler import DeadlineRenewalScheduler
from pubsub_jobs.types import Message, OutgoingMessage, PublishResult, PullResult

__all__ = [
    "Client",
    "DeadlineRenewalScheduler",
    "Message",
    "OutgoingMessage",
    "PullResult",
    "PublishResult",
    "PubSubJobsError",
    "AuthError",
    "TransportError",
    "DuplicateRegistrationError",
    "CodecError",
    "PayloadDecodeError",
    "PayloadAlreadyDecodedError",
]
