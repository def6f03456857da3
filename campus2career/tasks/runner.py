"""In-process background task runners for best-effort work.

Notification fan-out runs after the primary response has been produced. A
runner gives that work a name, a logging context and a failure log instead
of leaving it as an unobserved fire-and-forget call.
"""

import contextvars
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Set

from campus2career.logging import get_logger
from campus2career.logging.context import log_context

logger = get_logger(__name__, component="tasks")


class TaskRunner:
    """Base runner. Subclasses decide where ``_execute`` happens."""

    def submit(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> Optional[Future]:
        raise NotImplementedError

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; optionally wait for queued tasks."""

    @staticmethod
    def _execute(name: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        with log_context(task_name=name):
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Background task {name} failed: {e}",
                    exc_info=True,
                    extra={"event": "task.failed", "error_type": type(e).__name__},
                )
                return None
            logger.debug(f"Background task {name} completed", extra={"event": "task.completed"})
            return result


class InlineTaskRunner(TaskRunner):
    """Runs tasks immediately in the caller's thread. Used by tests and one-shot CLI runs."""

    def submit(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> None:
        self._execute(name, fn, *args, **kwargs)
        return None


class ThreadTaskRunner(TaskRunner):
    """Runs tasks on a bounded thread pool.

    The submitting thread's context variables (including the logging
    context) are copied into the task.
    """

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "campus2career-task"):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> Optional[Future]:
        future = None
        with self._lock:
            if not self._closed:
                ctx = contextvars.copy_context()
                future = self._executor.submit(ctx.run, self._execute, name, fn, *args, **kwargs)
                self._pending.add(future)
        if future is None:
            logger.warning(
                f"Task runner is shut down; running {name} inline",
                extra={"event": "task.inline_after_shutdown", "task_name": name},
            )
            self._execute(name, fn, *args, **kwargs)
            return None
        # Registered outside the lock: an already-finished future runs the callback immediately
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for currently queued tasks. Returns True if all finished in time."""
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("Task runner stopped", extra={"event": "task.runner.stopped"})
