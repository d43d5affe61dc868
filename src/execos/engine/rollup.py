"""Rollups — where the week's (or month's) planned time actually went.

Pure aggregation over plain lists: the strategy service fetches, these
functions count. Only ``task`` blocks that point at a task are measured.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Sequence

from execos.engine.deep_work import session_minutes
from execos.models import (
    AllocationRow,
    AllocationTotals,
    BlockType,
    Composition,
    DayPlanItem,
    DeepWorkSession,
    ExecutionKind,
    Task,
    WeeklyEnergyPlan,
    Workspace,
    WorkspaceMinutes,
    WorkspaceMinutesSnapshot,
)
from execos.timeutils import apportion_percents, minutes_between, percent_of, round_half_up, round_hours

FALLBACK_WORKSPACE_NAME = "Frente"


def collect_workspace_minutes(
    items: Iterable[DayPlanItem],
    tasks_by_id: Mapping[str, Task],
    workspaces_by_id: Mapping[str, Workspace],
    workspace_id: str | None = None,
) -> WorkspaceMinutesSnapshot:
    """Sum planned task-block minutes per front, plus the construction/operation split."""
    snapshot = WorkspaceMinutesSnapshot()
    for item in items:
        if item.block_type != BlockType.TASK or item.task_id is None:
            continue
        task = tasks_by_id.get(item.task_id)
        if task is None:
            continue
        if workspace_id is not None and task.workspace_id != workspace_id:
            continue

        duration = minutes_between(item.start_time, item.end_time)
        snapshot.total_task_minutes += duration
        if task.execution_kind == ExecutionKind.CONSTRUCAO:
            snapshot.construction_minutes += duration
        else:
            snapshot.operation_minutes += duration
        if task.project_id is None:
            snapshot.disconnected_minutes += duration

        entry = snapshot.workspace_minutes.get(task.workspace_id)
        if entry is None:
            workspace = workspaces_by_id.get(task.workspace_id)
            entry = WorkspaceMinutes(
                workspace_id=task.workspace_id,
                name=workspace.name if workspace else FALLBACK_WORKSPACE_NAME,
            )
            snapshot.workspace_minutes[task.workspace_id] = entry
        entry.minutes += duration
    return snapshot


def build_allocation_rows(
    workspaces: Sequence[Workspace],
    planned_by_workspace: Mapping[str, int],
    snapshot: WorkspaceMinutesSnapshot,
) -> list[AllocationRow]:
    total = snapshot.total_workspace_minutes
    minutes_by_row = [snapshot.minutes_for(workspace.id) for workspace in workspaces]
    actual_by_row = apportion_percents(minutes_by_row, total)
    rows = []
    for workspace, minutes, actual in zip(workspaces, minutes_by_row, actual_by_row):
        planned = planned_by_workspace.get(workspace.id, 0)
        rows.append(
            AllocationRow(
                workspace_id=workspace.id,
                workspace_name=workspace.name,
                workspace_color=workspace.color,
                workspace_mode=workspace.mode,
                planned_percent=planned,
                actual_percent=actual,
                delta_percent=actual - planned,
                actual_hours=round_hours(minutes),
            )
        )
    return rows


def allocation_totals(rows: Sequence[AllocationRow], snapshot: WorkspaceMinutesSnapshot) -> AllocationTotals:
    total = snapshot.total_workspace_minutes
    return AllocationTotals(
        planned_percent=sum(row.planned_percent for row in rows),
        actual_hours=round_hours(total),
        disconnected_percent=percent_of(snapshot.disconnected_minutes, total),
    )


def average_planned_percent(plans: Iterable[WeeklyEnergyPlan]) -> dict[str, int]:
    """Per-front average of weekly plans, rounded. Fronts with no plan are absent."""
    sums: dict[str, list[int]] = {}
    for plan in plans:
        sums.setdefault(plan.workspace_id, []).append(plan.planned_percent)
    return {ws: round_half_up(sum(values) / max(1, len(values))) for ws, values in sums.items()}


def composition(snapshot: WorkspaceMinutesSnapshot) -> Composition:
    construction, operation = apportion_percents([snapshot.construction_minutes, snapshot.operation_minutes])
    return Composition(
        construction_percent=construction,
        operation_percent=operation,
        disconnected_percent=percent_of(snapshot.disconnected_minutes, snapshot.total_workspace_minutes),
    )


def deep_work_minutes(sessions: Iterable[DeepWorkSession], now: datetime) -> int:
    return sum(session_minutes(s, now) for s in sessions)


def deep_work_minutes_by_workspace(sessions: Iterable[DeepWorkSession], now: datetime) -> dict[str, int]:
    totals: dict[str, int] = {}
    for session in sessions:
        totals[session.workspace_id] = totals.get(session.workspace_id, 0) + session_minutes(session, now)
    return totals


def dominant_workspace(rows: Sequence[AllocationRow]) -> AllocationRow | None:
    """Most actual hours; the earliest front wins a tie."""
    if not rows:
        return None
    return max(rows, key=lambda row: row.actual_hours)


def neglected_workspace(rows: Sequence[AllocationRow]) -> AllocationRow | None:
    """Lowest actual share among fronts that were given a plan."""
    planned = [row for row in rows if row.planned_percent > 0]
    if not planned:
        return None
    return min(planned, key=lambda row: row.actual_percent)
