"""
Worker module.
Contains the long-running job worker and its handler registry.
"""

from pubsub_jobs.worker.handlers import execute_job, register_handler
from pubsub_jobs.worker.main import Worker, run

__all__ = ["Worker", "run", "execute_job", "register_handler"]
