"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobState(StrEnum):
    """
    Long-running job lifecycle states.

    State transitions:
    - IDLE -> PULLING (start requested)
    - PULLING -> NO_MESSAGE -> IDLE (subscription empty)
    - PULLING -> REGISTERED (message pulled, deadline renewal running)
    - REGISTERED -> ACKNOWLEDGING -> DONE (job finished)
    - REGISTERED -> CANCELLED (renewal stopped without acknowledgement)
    """

    IDLE = "idle"
    PULLING = "pulling"
    NO_MESSAGE = "no_message"
    REGISTERED = "registered"
    ACKNOWLEDGING = "acknowledging"
    DONE = "done"
    CANCELLED = "cancelled"


class RenewalOutcome(StrEnum):
    """Result of a single deadline renewal tick."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


# Default values
DEFAULT_EXTEND_BY_MS = 10000
DEFAULT_PERIOD_MS = 10000
LONG_RUNNING_MAX_MESSAGES = 1
JOB_TYPE_ATTRIBUTE = "job_type"

# Pub/Sub API constants
PUBSUB_SCOPE = "https://www.googleapis.com/auth/pubsub"
SUBSCRIPTION_PATH = "projects/{project}/subscriptions/{subscription}"
TOPIC_PATH = "projects/{project}/topics/{topic}"

# Metrics names
METRIC_MESSAGES_PULLED = "pubsub_messages_pulled_total"
METRIC_MESSAGES_PUBLISHED = "pubsub_messages_published_total"
METRIC_ACKS = "pubsub_acknowledgements_total"
METRIC_DEADLINE_RENEWALS = "pubsub_deadline_renewals_total"
METRIC_ACTIVE_JOBS = "pubsub_active_long_running_jobs"
METRIC_TRANSPORT_REQUESTS = "pubsub_transport_requests_total"
METRIC_TRANSPORT_LATENCY = "pubsub_transport_request_latency_seconds"
METRIC_JOBS_COMPLETED = "pubsub_jobs_completed_total"
METRIC_JOB_DURATION = "pubsub_job_duration_seconds"

# Trace span names
SPAN_PULL = "pubsub.pull"
SPAN_MODIFY_ACK_DEADLINE = "pubsub.modify_ack_deadline"
SPAN_ACKNOWLEDGE = "pubsub.acknowledge"
SPAN_PUBLISH = "pubsub.publish"
SPAN_EXECUTE_JOB = "execute_job"
