"""
app/scheduler/dispatcher.py

Work dispatch on top of APScheduler.

A dispatcher owns named queues ("lanes"). Each lane is an APScheduler
thread-pool executor plus a handler and a ``RetryPolicy``:

  * ``enqueue(task_key, payload, queue_name)`` schedules one task. A key that
    is already queued or running is suppressed, so at most one task per key
    is in flight.
  * Each attempt runs with a hard deadline (``timeout_seconds``). A timed-out
    attempt counts as a failed attempt.
  * A failed attempt with budget left is rescheduled after the policy's
    backoff delay; once ``max_attempts`` is spent the handler's ``failed``
    callback runs exactly once and the key is released.

``StagedDispatch`` collects enqueues made inside a database transaction and
releases them only after the caller has committed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent import futures
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from apscheduler.executors.pool import ThreadPoolExecutor

logger = logging.getLogger(__name__)


class UnknownQueueError(LookupError):
    """Raised when a task targets a queue that was never registered."""


class TaskTimeoutError(TimeoutError):
    """Raised when one attempt exceeds the lane's per-attempt timeout."""


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget, backoff schedule and per-attempt deadline for one lane.

    backoff_seconds[n - 1] is the delay after the n-th failed attempt; the
    last entry is reused when there are more retries than entries.
    """

    max_attempts: int = 3
    backoff_seconds: tuple[float, ...] = (10.0, 30.0, 60.0)
    timeout_seconds: float = 300.0

    def delay_for(self, attempt: int) -> float:
        if not self.backoff_seconds:
            return 0.0
        index = min(max(attempt, 1) - 1, len(self.backoff_seconds) - 1)
        return float(self.backoff_seconds[index])


class TaskHandler(Protocol):
    def handle(self, payload: dict[str, Any]) -> Any:
        ...

    def failed(self, payload: dict[str, Any], exc: BaseException, attempts: int) -> None:
        ...


class WorkDispatcher(Protocol):
    def enqueue(self, task_key: str, payload: dict[str, Any], queue_name: str) -> bool:
        ...

    def has_queue(self, queue_name: str) -> bool:
        ...


class JobScheduler(Protocol):
    """The slice of APScheduler's BaseScheduler the dispatcher relies on."""

    def add_executor(self, executor: Any, alias: str = ..., **executor_opts: Any) -> None:
        ...

    def add_job(self, func: Callable[..., Any], trigger: Any = ..., **kwargs: Any) -> Any:
        ...


@dataclass(frozen=True)
class QueuedTask:
    task_key: str
    queue_name: str
    payload: dict[str, Any]
    attempt: int = 1

    def next_attempt(self) -> "QueuedTask":
        return replace(self, attempt=self.attempt + 1)


@dataclass(frozen=True)
class _Lane:
    handler: TaskHandler
    policy: RetryPolicy


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerWorkDispatcher:
    """
    In-process dispatcher backed by an APScheduler scheduler.

    Tasks live in the scheduler's job store, so delivery is only as durable
    as that store; the default memory store loses queued tasks on shutdown.
    """

    def __init__(
        self,
        scheduler: JobScheduler,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._scheduler = scheduler
        self._clock = clock
        self._lanes: dict[str, _Lane] = {}
        self._inflight: set[str] = set()
        self._lock = threading.Lock()

    def register_queue(
        self,
        queue_name: str,
        *,
        handler: TaskHandler,
        policy: RetryPolicy | None = None,
        concurrency: int = 8,
    ) -> None:
        if queue_name in self._lanes:
            raise ValueError(f"Queue already registered: {queue_name}")
        self._scheduler.add_executor(ThreadPoolExecutor(max_workers=max(1, concurrency)), alias=queue_name)
        self._lanes[queue_name] = _Lane(handler=handler, policy=policy or RetryPolicy())
        logger.info("Dispatcher queue registered queue=%s concurrency=%s", queue_name, concurrency)

    def has_queue(self, queue_name: str) -> bool:
        return queue_name in self._lanes

    def is_inflight(self, task_key: str) -> bool:
        with self._lock:
            return task_key in self._inflight

    def enqueue(self, task_key: str, payload: dict[str, Any], queue_name: str) -> bool:
        """
        Schedule one task. Returns False when a task with the same key is
        already queued or running.
        """

        if queue_name not in self._lanes:
            raise UnknownQueueError(f"Unknown queue: {queue_name}")

        with self._lock:
            if task_key in self._inflight:
                logger.info("Duplicate task suppressed task_key=%s queue=%s", task_key, queue_name)
                return False
            self._inflight.add(task_key)

        task = QueuedTask(task_key=task_key, queue_name=queue_name, payload=dict(payload))
        try:
            self._schedule(task, delay_seconds=0.0)
        except Exception:
            self._release(task_key)
            raise
        return True

    def run_task(self, task: QueuedTask) -> None:
        """
        Execute one attempt. Scheduled as the APScheduler job function.
        """

        lane = self._lanes[task.queue_name]
        try:
            self._run_attempt(lane, task)
        except Exception as exc:
            if task.attempt >= lane.policy.max_attempts:
                self._release(task.task_key)
                logger.error(
                    "Task exhausted retries task_key=%s queue=%s attempts=%s error=%s",
                    task.task_key,
                    task.queue_name,
                    task.attempt,
                    exc,
                )
                self._notify_failed(lane, task, exc)
                return

            delay = lane.policy.delay_for(task.attempt)
            logger.warning(
                "Task attempt failed task_key=%s queue=%s attempt=%s/%s retry_in=%ss error=%s",
                task.task_key,
                task.queue_name,
                task.attempt,
                lane.policy.max_attempts,
                delay,
                exc,
            )
            try:
                self._schedule(task.next_attempt(), delay_seconds=delay)
            except Exception:
                self._release(task.task_key)
                logger.exception("Failed to schedule retry task_key=%s", task.task_key)
            return

        self._release(task.task_key)

    def _run_attempt(self, lane: _Lane, task: QueuedTask) -> Any:
        # Threads cannot be killed: a timed-out attempt is abandoned, not stopped.
        attempt_pool = futures.ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=f"{task.queue_name}-attempt",
        )
        try:
            future = attempt_pool.submit(lane.handler.handle, task.payload)
            try:
                return future.result(timeout=lane.policy.timeout_seconds)
            except futures.TimeoutError as exc:
                future.cancel()
                raise TaskTimeoutError(
                    f"Task {task.task_key} exceeded {lane.policy.timeout_seconds:g}s "
                    f"on attempt {task.attempt}"
                ) from exc
        finally:
            attempt_pool.shutdown(wait=False)

    def _notify_failed(self, lane: _Lane, task: QueuedTask, exc: Exception) -> None:
        try:
            lane.handler.failed(task.payload, exc, task.attempt)
        except Exception:
            logger.exception("Failure handler raised task_key=%s", task.task_key)

    def _schedule(self, task: QueuedTask, *, delay_seconds: float) -> None:
        self._scheduler.add_job(
            self.run_task,
            trigger="date",
            run_date=self._clock() + timedelta(seconds=delay_seconds),
            args=[task],
            id=f"{task.task_key}#{task.attempt}",
            name=f"{task.queue_name}:{task.task_key}",
            executor=task.queue_name,
            misfire_grace_time=None,
            replace_existing=True,
        )

    def _release(self, task_key: str) -> None:
        with self._lock:
            self._inflight.discard(task_key)


class StagedDispatch:
    """
    Buffers enqueues made inside a transaction.

    ``enqueue`` only checks that the queue exists; nothing reaches the
    dispatcher until ``release`` is called after commit. ``discard`` drops the
    buffer after a rollback.
    """

    def __init__(self, dispatcher: WorkDispatcher) -> None:
        self._dispatcher = dispatcher
        self._staged: list[QueuedTask] = []

    def __len__(self) -> int:
        return len(self._staged)

    def enqueue(self, task_key: str, payload: dict[str, Any], queue_name: str) -> None:
        if not self._dispatcher.has_queue(queue_name):
            raise UnknownQueueError(f"Unknown queue: {queue_name}")
        self._staged.append(QueuedTask(task_key=task_key, queue_name=queue_name, payload=dict(payload)))

    def release(self) -> int:
        """
        Hand staged tasks to the dispatcher; returns how many it accepted.

        Runs after commit, so a task the dispatcher rejects cannot be rolled
        back; it is logged and its record stays pending.
        """

        staged, self._staged = self._staged, []
        accepted = 0
        for task in staged:
            try:
                if self._dispatcher.enqueue(task.task_key, task.payload, task.queue_name):
                    accepted += 1
            except Exception:
                logger.exception(
                    "Failed to release staged task task_key=%s queue=%s",
                    task.task_key,
                    task.queue_name,
                )
        return accepted

    def discard(self) -> None:
        self._staged.clear()
