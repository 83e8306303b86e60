from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Iterable

logger = logging.getLogger("thumbgallery.tasks")

Task = Callable[[], Any]


class SerialScheduler:
    """Runs deferred tasks strictly one at a time, in enqueue order.

    A running task may ``defer`` follow-up tasks; those run before anything
    that was already waiting in the queue, which gives depth-first ordering
    for nested work without growing the call stack.
    """

    def __init__(self, tasks: Iterable[Task] = ()):
        self._queue: deque[Task] = deque(tasks)
        self.results: list[Any] = []

    def add(self, task: Task) -> None:
        self._queue.append(task)

    def defer(self, tasks: Iterable[Task]) -> None:
        self._queue.extendleft(reversed(list(tasks)))

    def __len__(self) -> int:
        return len(self._queue)

    def run(self) -> list[Any]:
        """Execute queued tasks until the queue is empty.

        The first exception stops the batch and propagates; tasks that
        already ran are not rolled back and later tasks never start.
        """
        while self._queue:
            task = self._queue.popleft()
            try:
                result = task()
            except Exception:
                logger.debug(
                    "Task failed; abandoning %d queued task(s)", len(self._queue)
                )
                raise
            self.results.append(result)
        return self.results


def run_serially(tasks: Iterable[Task]) -> list[Any]:
    """Run ``tasks`` one after another and return their results in order."""
    return SerialScheduler(tasks).run()
