"""
Transport module.
Contains the transport contract, token providers, and the REST transport.
"""

from pubsub_jobs.transport.auth import (
    GoogleTokenProvider,
    StaticTokenProvider,
    TokenProvider,
)
from pubsub_jobs.transport.base import Transport
from pubsub_jobs.transport.http import HttpTransport, deadline_ms_to_seconds

__all__ = [
    "Transport",
    "HttpTransport",
    "TokenProvider",
    "GoogleTokenProvider",
    "StaticTokenProvider",
    "deadline_ms_to_seconds",
]
