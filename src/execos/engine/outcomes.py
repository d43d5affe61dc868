"""Task outcome flows — complete, postpone, not confirmed.

Each flow writes the task change, appends an execution event, and feeds the
matching outcome to gamification. These are the entry points the message
queue (WhatsApp replies, block-boundary checks) calls into.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

import structlog

from execos.engine.gamification import GamificationService
from execos.errors import NotFoundError, StateConflictError
from execos.models import (
    ExecutionEvent,
    ExecutionEventType,
    FailureReason,
    GamificationOutcome,
    GamificationState,
    Task,
    TaskStatus,
)
from execos.storage import SqliteStore, new_id
from execos.timeutils import ensure_utc, utcnow

logger = structlog.get_logger()


def completion_outcome(task: Task, now: datetime) -> GamificationOutcome:
    """On time only when the task had a fixed end and we beat it."""
    if task.fixed_time_end is None:
        return GamificationOutcome.LATE
    if ensure_utc(now) <= ensure_utc(task.fixed_time_end):
        return GamificationOutcome.ON_TIME
    return GamificationOutcome.LATE


class TaskOutcomeService:
    def __init__(
        self,
        store: SqliteStore,
        gamification: GamificationService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.gamification = gamification
        self.clock = clock

    def complete(self, task_id: str) -> tuple[Task, GamificationState]:
        now = self.clock()
        with self.store.transaction():
            task = self._require_mutable(task_id)
            if task.status == TaskStatus.FEITO:
                raise StateConflictError(f"Task already completed: {task.title}")
            task.status = TaskStatus.FEITO
            task.completed_at = now
            task.updated_at = now
            self.store.save_task(task)
            self._append(task.id, ExecutionEventType.COMPLETED, None, now)
            outcome = completion_outcome(task, now)
            state = self.gamification.apply_result(outcome)

        logger.info("task_completed", task_id=task.id, outcome=outcome.value)
        return task, state

    def postpone(
        self,
        task_id: str,
        failure_reason: FailureReason | None = None,
    ) -> tuple[Task, GamificationState]:
        now = self.clock()
        with self.store.transaction():
            task = self._require_mutable(task_id)
            if task.status == TaskStatus.FEITO:
                raise StateConflictError(f"Cannot postpone a completed task: {task.title}")
            task.status = TaskStatus.BACKLOG
            task.updated_at = now
            self.store.save_task(task)
            self._append(task.id, ExecutionEventType.DELAYED, failure_reason, now)
            state = self.gamification.apply_result(GamificationOutcome.POSTPONED)

        logger.info("task_postponed", task_id=task.id, reason=failure_reason.value if failure_reason else None)
        return task, state

    def not_confirmed(
        self,
        task_id: str,
        failure_reason: FailureReason | None = None,
    ) -> GamificationState:
        now = self.clock()
        with self.store.transaction():
            task = self._require_mutable(task_id)
            self._append(task.id, ExecutionEventType.FAILED, failure_reason, now)
            state = self.gamification.apply_result(GamificationOutcome.NOT_CONFIRMED)

        logger.info("task_not_confirmed", task_id=task.id, reason=failure_reason.value if failure_reason else None)
        return state

    def _require_mutable(self, task_id: str) -> Task:
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        if task.status == TaskStatus.ARQUIVADO or task.archived_at is not None:
            raise StateConflictError(f"Task is archived: {task.title}")
        return task

    def _append(
        self,
        task_id: str,
        event_type: ExecutionEventType,
        failure_reason: FailureReason | None,
        at: datetime,
    ) -> None:
        self.store.add_execution_event(
            ExecutionEvent(
                id=new_id(),
                task_id=task_id,
                event_type=event_type,
                failure_reason=failure_reason,
                timestamp=at,
            )
        )
