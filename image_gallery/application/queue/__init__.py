"""In-process job execution."""

from .sequential_job_queue import SequentialJobQueue

__all__ = ["SequentialJobQueue"]
