"""
Type definitions for the Pub/Sub job client.
Contains wire models and internal job types, grouped by module.
"""

from pubsub_jobs.types.job import (
    JobContext,
    JobRegistration,
    JobResult,
)
from pubsub_jobs.types.message import (
    Message,
    OutgoingMessage,
    PublishResult,
    PubsubMessage,
    PullResult,
    ReceivedMessage,
)

__all__ = [
    # Message types
    "Message",
    "OutgoingMessage",
    "PubsubMessage",
    "ReceivedMessage",
    "PullResult",
    "PublishResult",
    # Job types
    "JobRegistration",
    "JobContext",
    "JobResult",
]
