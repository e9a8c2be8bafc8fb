"""Run named cooperative tasks and shut them all down together."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from utils.logging_utils import get_tagged_logger

TaskFactory = Callable[[asyncio.Event], Awaitable[None]]


@dataclass
class TaskResult:
    """How a supervised task ended."""
    name: str
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class TaskSupervisor:
    """
    Structured shutdown for a handful of long-running tasks.

    Every task receives the same `stop` event. The first task to finish
    (cleanly or not), or a call to `shutdown()`, sets it. Tasks then get
    `shutdown_timeout` seconds to return on their own before they are
    cancelled. `run()` always waits for every task before returning.
    """

    def __init__(self, *, shutdown_timeout: float = 5.0, logger: Optional[logging.LoggerAdapter] = None) -> None:
        if shutdown_timeout <= 0:
            raise ValueError(f"shutdown_timeout must be positive, got {shutdown_timeout}")
        self.shutdown_timeout = shutdown_timeout
        self.stop = asyncio.Event()
        self._factories: Dict[str, TaskFactory] = {}
        self._logger = logger or get_tagged_logger(__name__, tag="supervisor")

    def add(self, name: str, factory: TaskFactory) -> None:
        if name in self._factories:
            raise ValueError(f"task '{name}' is already registered")
        self._factories[name] = factory

    def shutdown(self) -> None:
        """Request cooperative shutdown of every task."""
        if not self.stop.is_set():
            self._logger.info("Shutdown requested")
        self.stop.set()

    async def _drain(self, tasks: Dict[asyncio.Task, str]) -> None:
        self.stop.set()
        _, pending = await asyncio.wait(tasks, timeout=self.shutdown_timeout)
        for task in pending:
            self._logger.warning(
                "Task '%s' did not stop within %.1fs; cancelling", tasks[task], self.shutdown_timeout
            )
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def run(self) -> List[TaskResult]:
        """
        Start all tasks, wait for the first one to end, then stop the rest.

        Returns a result per task in completion order. If any task failed, the
        first failure is raised once every task has finished.
        """
        finished: List[str] = []
        tasks: Dict[asyncio.Task, str] = {}
        for name, factory in self._factories.items():
            task = asyncio.create_task(factory(self.stop), name=name)
            task.add_done_callback(lambda _t, n=name: finished.append(n))
            tasks[task] = name
            self._logger.info("Started task '%s'", name)

        stopper = asyncio.create_task(self.stop.wait())
        try:
            await asyncio.wait({*tasks, stopper}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await self._drain(tasks)
            raise
        finally:
            stopper.cancel()

        for task, name in tasks.items():
            if task.done():
                self._logger.info("Task '%s' finished first; stopping remaining tasks", name)
                break
        await self._drain(tasks)

        by_name = {name: task for task, name in tasks.items()}
        finished.extend(name for name in by_name if name not in finished)
        results: List[TaskResult] = []
        for name in finished:
            task = by_name[name]
            if task.cancelled():
                results.append(TaskResult(name=name, cancelled=True))
            else:
                results.append(TaskResult(name=name, error=task.exception()))

        for result in results:
            if result.error is not None:
                self._logger.error("Task '%s' failed: %s", result.name, result.error)
        for result in results:
            if result.error is not None:
                raise result.error
        return results
