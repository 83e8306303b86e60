"""Progress reporting shared by the pipeline stages."""

from __future__ import annotations

import logging
from typing import Callable

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, "float | None"], None]


def _ignore(label: str, percentage: float | None) -> None:
    return None


class ProgressContext:
    """Tracks completed units of work for one stage.

    Each completed unit is reported through a single callback as
    ``(label, percentage)``; the percentage is ``None`` while the stage total
    is unknown.
    """

    def __init__(
        self,
        stage: str,
        total: int | None = None,
        callback: ProgressCallback | None = None,
    ):
        self.stage = stage
        self.total = total
        self.complete = 0
        self.cached = 0
        self._callback = callback or _ignore

    @property
    def percentage(self) -> float | None:
        if self.total is None:
            return None
        if self.total <= 0:
            return 100.0
        return min(100.0, (self.complete / self.total) * 100)

    def advance(self, label: str, *, cached: bool = False) -> None:
        self.complete += 1
        if cached:
            self.cached += 1
        self._callback(label, self.percentage)


class ConsoleProgress:
    """Renders progress events as a single rich progress bar."""

    def __init__(self, console: Console | None = None, max_label: int = 60):
        self.console = console or Console(stderr=True)
        self.max_label = max_label
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console,
            transient=True,
        )
        self._task_id: TaskID | None = None

    def __enter__(self) -> ConsoleProgress:
        self._progress.start()
        self._task_id = self._progress.add_task("Starting", total=None)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._progress.stop()
        self._task_id = None

    def _shorten(self, label: str) -> str:
        if len(label) <= self.max_label:
            return label
        return "..." + label[-(self.max_label - 3) :]

    def __call__(self, label: str, percentage: float | None) -> None:
        logger.debug("Progress %s (%s)", label, percentage)
        if self._task_id is None:
            return
        if percentage is None:
            self._progress.update(self._task_id, description=self._shorten(label))
        else:
            self._progress.update(
                self._task_id,
                description=self._shorten(label),
                total=100,
                completed=percentage,
            )
