"""Fire-once background tasks for alarm/sleep timers and post-play effects.

- ``schedule_at`` runs an action at an epoch-millisecond deadline
- ``submit_after`` runs an action after a relative delay
- Past-due deadlines are logged and dropped, never executed late
- ``shutdown`` wakes every waiting task and cancels what has not fired yet
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from typing import Callable, Dict, Optional

_logger = logging.getLogger("scheduler")

Action = Callable[[], object]


def now_millis() -> int:
    return int(time.time() * 1000)


class BackgroundTasks:
    """Tracked set of detached, fire-once tasks sharing one shutdown event.

    There is no per-task cancellation; ``shutdown`` cancels everything that
    has not started yet.
    """

    def __init__(self, clock: Callable[[], int] = now_millis):
        self._clock = clock
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._threads: Dict[int, threading.Thread] = {}
        self._ids = itertools.count(1)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._threads)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def schedule_at(self, epoch_millis: int, action: Action, name: str = "scheduled") -> Optional[int]:
        """Run ``action`` once at ``epoch_millis``.

        Returns:
            The task id, or ``None`` when the deadline has already passed
        """
        delay_ms = int(epoch_millis) - self._clock()
        if delay_ms < 0:
            _logger.warning(
                "scheduler.task.past_due",
                extra={"task": name, "late_ms": -delay_ms},
            )
            return None
        _logger.info("scheduler.task.scheduled", extra={"task": name, "delay_ms": delay_ms})
        return self._spawn(delay_ms / 1000.0, action, name)

    def submit_after(self, delay_seconds: float, action: Action, name: str = "delayed") -> Optional[int]:
        """Run ``action`` once after ``delay_seconds``."""
        return self._spawn(max(0.0, float(delay_seconds)), action, name)

    def _spawn(self, delay_seconds: float, action: Action, name: str) -> Optional[int]:
        if self._stop_event.is_set():
            _logger.debug("scheduler.task.rejected", extra={"task": name, "reason": "shutdown"})
            return None

        task_id = next(self._ids)
        thread = threading.Thread(
            target=self._run,
            args=(task_id, delay_seconds, action, name),
            name=f"homehub-{name}-{task_id}",
            daemon=True,
        )
        with self._lock:
            self._threads[task_id] = thread
        thread.start()
        return task_id

    def _run(self, task_id: int, delay_seconds: float, action: Action, name: str) -> None:
        try:
            # Event.wait doubles as an interruptible sleep
            if self._stop_event.wait(delay_seconds):
                _logger.info("scheduler.task.cancelled", extra={"task": name, "task_id": task_id})
                return
            try:
                action()
            except Exception as exc:
                _logger.error(
                    "scheduler.task.failed",
                    extra={"task": name, "task_id": task_id, "error": str(exc)},
                    exc_info=True,
                )
            else:
                _logger.debug("scheduler.task.done", extra={"task": name, "task_id": task_id})
        finally:
            with self._lock:
                self._threads.pop(task_id, None)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Cancel pending tasks and join the running ones."""
        self._stop_event.set()
        with self._lock:
            threads = list(self._threads.values())
        deadline = time.monotonic() + timeout
        for thread in threads:
            if thread is threading.current_thread():
                continue
            thread.join(max(0.0, deadline - time.monotonic()))
        _logger.info("scheduler.shutdown", extra={"tasks": len(threads)})
