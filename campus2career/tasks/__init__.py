"""Background task execution for post-response fan-out."""

from .runner import InlineTaskRunner, TaskRunner, ThreadTaskRunner

__all__ = ["InlineTaskRunner", "TaskRunner", "ThreadTaskRunner"]
