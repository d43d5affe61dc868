"""Daily execution score: how well one day's plan was executed, 0-100.

Five weighted components, all from data the engine already records:

    task A completion     40   planned tasks A completed (any A when none planned)
    Deep Work adherence   20   session minutes over max(45, 45 per planned A)
    punctuality           15   completed plan blocks finished by the block end
    non-reschedule        15   1 - delayed / all confirmations (1 with none)
    project connection    10   completions tied to a project
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Iterable, Mapping

import structlog

from execos.engine.deep_work import session_minutes
from execos.models import (
    BlockType,
    DayPlanItem,
    DeepWorkSession,
    ExecutionEvent,
    ExecutionEventType,
    ExecutionScore,
    ExecutionScoreComponents,
    ScoreComponent,
    Task,
    TaskType,
)
from execos.storage import SqliteStore
from execos.timeutils import clamp_percent, end_of_day, ensure_utc, in_range, start_of_day, utcnow

logger = structlog.get_logger()

WEIGHTS = {
    "a_completion": 40,
    "deep_work": 20,
    "punctuality": 15,
    "non_reschedule": 15,
    "project_connection": 10,
}
DEEP_WORK_MINUTES_PER_A = 45


def _component(name: str, rate: float, hits: int, total: int) -> ScoreComponent:
    return ScoreComponent(weight=WEIGHTS[name], value=clamp_percent(rate * 100), hits=hits, total=total)


def compute_execution_score(
    day: date,
    items: Iterable[DayPlanItem],
    events: Iterable[ExecutionEvent],
    sessions: Iterable[DeepWorkSession],
    tasks_by_id: Mapping[str, Task],
    now: datetime,
    workspace_id: str | None = None,
) -> ExecutionScore:
    """Score one day. *events* and *sessions* must already be limited to the day."""
    day_start, day_end = start_of_day(day), end_of_day(day)

    planned: list[tuple[DayPlanItem, Task]] = []
    for item in items:
        task = tasks_by_id.get(item.task_id) if item.task_id else None
        if item.block_type != BlockType.TASK or task is None:
            continue
        if workspace_id is not None and task.workspace_id != workspace_id:
            continue
        planned.append((item, task))
    planned_a = {task.id for _, task in planned if task.task_type == TaskType.A}

    by_type: dict[ExecutionEventType, list[ExecutionEvent]] = {}
    for event in events:
        by_type.setdefault(event.event_type, []).append(event)
    completed = by_type.get(ExecutionEventType.COMPLETED, [])
    delayed = by_type.get(ExecutionEventType.DELAYED, [])
    failed = by_type.get(ExecutionEventType.FAILED, [])
    completed_tasks = [tasks_by_id[e.task_id] for e in completed if e.task_id in tasks_by_id]

    # Task A: planned ones when there is a plan, otherwise any A completed today.
    if planned_a:
        completed_a = sum(1 for task in completed_tasks if task.id in planned_a)
    else:
        completed_a = sum(1 for task in completed_tasks if task.task_type == TaskType.A)
    a_base = max(1, len(planned_a) or completed_a)

    dw_minutes = sum(session_minutes(s, now) for s in sessions)
    dw_target = max(DEEP_WORK_MINUTES_PER_A, len(planned_a) * DEEP_WORK_MINUTES_PER_A)

    done_blocks = [(item, task) for item, task in planned if in_range(task.completed_at, day_start, day_end)]
    on_time = sum(1 for item, task in done_blocks if ensure_utc(task.completed_at) <= ensure_utc(item.end_time))

    confirmations = len(completed) + len(delayed) + len(failed)
    connected = sum(1 for task in completed_tasks if task.project_id)

    rates = {
        "a_completion": completed_a / a_base,
        "deep_work": min(1.0, dw_minutes / dw_target),
        "punctuality": on_time / len(done_blocks) if done_blocks else 0.0,
        "non_reschedule": 1 - len(delayed) / confirmations if confirmations else 1.0,
        "project_connection": connected / len(completed) if completed else 0.0,
    }
    counts = {
        "a_completion": (completed_a, a_base),
        "deep_work": (dw_minutes, dw_target),
        "punctuality": (on_time, len(done_blocks)),
        "non_reschedule": (len(delayed), confirmations),
        "project_connection": (connected, len(completed)),
    }
    components = ExecutionScoreComponents(
        **{name: _component(name, rate, *counts[name]) for name, rate in rates.items()}
    )
    # Weight the unrounded rates so component rounding never shifts the total.
    score = clamp_percent(sum(rate * WEIGHTS[name] for name, rate in rates.items()))

    return ExecutionScore(date=day, workspace_id=workspace_id, score=score, components=components)


class ExecutionScoreService:
    def __init__(self, store: SqliteStore, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.clock = clock

    def get_score(self, day: date | None = None, workspace_id: str | None = None) -> ExecutionScore:
        now = self.clock()
        day = day or now.date()
        day_start, day_end = start_of_day(day), end_of_day(day)

        result = compute_execution_score(
            day,
            items=self.store.list_day_plan_items(day, day),
            events=self.store.list_execution_events(day_start, day_end, workspace_id),
            sessions=self.store.list_sessions(day_start, day_end, workspace_id),
            tasks_by_id={t.id: t for t in self.store.list_tasks(include_archived=True)},
            now=now,
            workspace_id=workspace_id,
        )
        logger.debug("execution_score_computed", day=day.isoformat(), workspace_id=workspace_id, score=result.score)
        return result
