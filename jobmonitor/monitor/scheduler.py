"""Periodic execution of monitor activities.

``Scheduler`` drives actions from an asyncio timer. ``ManualScheduler`` is
the test double: it only records schedule requests and lets tests trigger
the registered actions explicitly.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)

Action = Callable[[], object]


class ScheduledAction(Protocol):
    def cancel(self) -> None:  # pragma: no cover
        ...


@runtime_checkable
class SchedulerProtocol(Protocol):
    def schedule(self, interval: timedelta, action: Action) -> ScheduledAction:  # pragma: no cover
        """Invoke ``action`` once per ``interval``, starting after the first interval."""
        ...

    def cancel_all(self) -> None:  # pragma: no cover
        ...

    async def shutdown(self) -> None:  # pragma: no cover
        """Cancel all schedules and wait until they have stopped."""
        ...


def _action_name(action: Action) -> str:
    return getattr(action, "__qualname__", None) or repr(action)


class PeriodicTask:
    """Handle for an action scheduled on the asyncio loop."""

    def __init__(self, interval: timedelta, action: Action) -> None:
        self.interval = interval
        self.action = action
        self.runs = 0
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"periodic:{_action_name(self.action)}"
        )

    async def _run(self) -> None:
        delay = self.interval.total_seconds()
        while True:
            await asyncio.sleep(delay)
            try:
                # Actions perform blocking API calls; keep them off the loop.
                await asyncio.to_thread(self.action)
            except Exception:
                LOGGER.exception(f"Scheduled action {_action_name(self.action)} failed.")
            self.runs += 1

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_cancelled(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class Scheduler:
    """Run actions periodically on the running asyncio event loop.

    ``schedule`` must be called from within the loop.
    """

    def __init__(self) -> None:
        self._tasks: list[PeriodicTask] = []

    def schedule(self, interval: timedelta, action: Action) -> PeriodicTask:
        if interval.total_seconds() <= 0:
            raise ValueError(f"Schedule interval must be positive, got {interval}")
        task = PeriodicTask(interval, action)
        task.start()
        self._tasks.append(task)
        LOGGER.debug(f"Scheduled {_action_name(action)} every {interval}.")
        return task

    def cancel_all(self) -> None:
        for task in self._tasks:
            task.cancel()

    async def shutdown(self) -> None:
        self.cancel_all()
        for task in self._tasks:
            await task.wait_cancelled()
        self._tasks.clear()


@dataclass(kw_only=True)
class ManualSchedule:
    """A schedule request recorded by ``ManualScheduler``."""

    interval: timedelta
    action: Action
    cancelled: bool = False
    triggered: int = field(default=0)

    def trigger(self, times: int = 1) -> None:
        """Run the action synchronously, as if ``times`` intervals elapsed."""
        for _ in range(times):
            if self.cancelled:
                return
            self.action()
            self.triggered += 1

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler double that records requests instead of starting timers."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._schedules: list[ManualSchedule] = []

    @property
    def schedules(self) -> list[ManualSchedule]:
        with self._condition:
            return list(self._schedules)

    def schedule(self, interval: timedelta, action: Action) -> ManualSchedule:
        schedule = ManualSchedule(interval=interval, action=action)
        with self._condition:
            self._schedules.append(schedule)
            self._condition.notify_all()
        return schedule

    def expect_schedule(self, interval: timedelta, timeout: float = 3.0) -> ManualSchedule:
        """Wait until an action with the given interval has been scheduled.

        Raises:
            TimeoutError: If no matching request arrives within ``timeout`` seconds
        """
        deadline = time.monotonic() + timeout
        with self._condition:
            while True:
                for schedule in self._schedules:
                    if schedule.interval == interval:
                        return schedule
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"No action scheduled with interval {interval}")
                self._condition.wait(remaining)

    def cancel_all(self) -> None:
        with self._condition:
            for schedule in self._schedules:
                schedule.cancel()

    async def shutdown(self) -> None:
        self.cancel_all()


__all__ = [
    "Action",
    "ManualSchedule",
    "ManualScheduler",
    "PeriodicTask",
    "ScheduledAction",
    "Scheduler",
    "SchedulerProtocol",
]
