"""
Job handlers registry and implementations.

Job handlers must be idempotent - Pub/Sub delivers at least once, so a
message may be processed again after a crash, a failed acknowledgement,
or a deadline that lapsed while every renewal failed.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pubsub_jobs.types.job import JobContext, JobResult

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], Awaitable[JobResult]]

DEFAULT_JOB_TYPE = "echo"

# Handler registry
_handlers: dict[str, JobHandler] = {}


def register_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """
    Decorator to register a job handler.

    Args:
        job_type: Value of the message's ``job_type`` attribute this
            handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("transcode")
        async def handle_transcode(context: JobContext) -> JobResult:
            ...
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[job_type] = handler
        logger.info(f"Registered handler for job type: {job_type}")
        return handler
    return decorator


def get_handler(job_type: str) -> JobHandler | None:
    """Get the handler for a job type, or None if not found."""
    return _handlers.get(job_type)


def list_handlers() -> list[str]:
    """List all registered job types."""
    return list(_handlers.keys())


# ============================================================================
# Built-in job handlers
# ============================================================================


@register_handler("echo")
async def handle_echo(context: JobContext) -> JobResult:
    """
    Echo handler for testing.

    Returns the decoded payload as output.
    """
    logger.info(
        "Echo job executing",
        extra={"ack_handle": context.ack_handle, "attempt": context.delivery_attempt}
    )

    return JobResult(
        success=True,
        output={"echo": context.message.payload},
    )


@register_handler("sleep")
async def handle_sleep(context: JobContext) -> JobResult:
    """
    Sleep handler for exercising deadline renewal.

    Reads the ``duration_seconds`` message attribute (default 1).
    """
    duration = float(context.message.attributes.get("duration_seconds", "1"))

    logger.info(
        "Sleep job starting",
        extra={"ack_handle": context.ack_handle, "duration": duration}
    )

    await asyncio.sleep(duration)

    return JobResult(
        success=True,
        output={"slept_for": duration},
    )


@register_handler("failing_job")
async def handle_failing_job(context: JobContext) -> JobResult:
    """Handler that always fails - for testing redelivery."""
    return JobResult(
        success=False,
        error=f"Intentional failure on attempt {context.delivery_attempt}",
    )


async def execute_job(context: JobContext) -> JobResult:
    """
    Execute a job using the appropriate handler.

    Handler exceptions are converted into failed results.

    Args:
        context: The job context.

    Returns:
        JobResult from the handler.
    """
    job_type = context.job_type or DEFAULT_JOB_TYPE

    handler = get_handler(job_type)

    if handler is None:
        logger.error(
            f"No handler for job type: {job_type}",
            extra={"ack_handle": context.ack_handle}
        )
        return JobResult(
            success=False,
            error=f"No handler registered for job type: {job_type}",
        )

    try:
        return await handler(context)
    except Exception as e:
        logger.exception(
            "Handler raised exception",
            extra={"ack_handle": context.ack_handle, "error": str(e)}
        )
        return JobResult(
            success=False,
            error=f"Handler exception: {str(e)}",
        )
