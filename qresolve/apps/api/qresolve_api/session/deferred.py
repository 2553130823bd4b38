"""Deferred work queue.

Auth-state callbacks must not make further backend calls while the auth
client is still notifying (the client would re-enter itself). Work that
needs the backend is deferred here and drained once the notification has
returned.
"""

import logging
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

Task = Callable[[], None]


class DeferredQueue:
    def __init__(self) -> None:
        self._tasks: deque[Task] = deque()
        self._draining = False

    def __len__(self) -> int:
        return len(self._tasks)

    def defer(self, task: Task) -> None:
        """Queue a task. Never runs it."""
        self._tasks.append(task)

    def drain(self) -> int:
        """Run queued tasks in FIFO order, including ones queued meanwhile.

        A failing task is logged and skipped. Re-entrant calls return 0 and
        leave the work to the outer drain.

        Returns:
            Number of tasks run
        """
        if self._draining:
            return 0
        self._draining = True
        ran = 0
        try:
            while self._tasks:
                task = self._tasks.popleft()
                ran += 1
                try:
                    task()
                except Exception as e:
                    logger.error(
                        "Deferred task failed",
                        extra={
                            "event": "session.deferred.failed",
                            "error": str(e),
                            "error_type": type(e).__name__,
                        },
                        exc_info=True,
                    )
        finally:
            self._draining = False
        return ran
