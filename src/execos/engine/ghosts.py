"""Ghost detection — fronts and projects that look alive but aren't moving.

A ghost *front* is a workspace (not in standby) with no project traction and
no task-A signal in the window. This is computed on its own, not read off the
health classifier: the classifier also weighs how many projects are merely
active, so the two can disagree on stalled-but-populated fronts.

A ghost *project* is an active project with no task-A movement and no deep
work for two weeks. Those get flipped to ``fantasma`` (and back when they
move again) before every strategic read.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterable, Sequence

import structlog

from execos.models import (
    OPEN_TASK_STATUSES,
    GhostFront,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
    TaskType,
    Workspace,
    WorkspaceMode,
)
from execos.storage import SqliteStore
from execos.timeutils import ensure_utc, in_range

logger = structlog.get_logger()

TRACTION_DAYS = 14
GHOST_FRONT_REASON = "Sem projeto ativo com tração e sem tarefa A na semana."


def traction_threshold(window_end: datetime, traction_days: int = TRACTION_DAYS) -> datetime:
    return ensure_utc(window_end) - timedelta(days=traction_days)


def has_traction(project: Project, threshold: datetime) -> bool:
    return project.status == ProjectStatus.ATIVO and ensure_utc(project.last_strategic_at) >= threshold


def count_traction_by_workspace(
    projects: Iterable[Project],
    window_end: datetime,
    traction_days: int = TRACTION_DAYS,
) -> dict[str, int]:
    """Active projects touched in the lookback before *window_end*, per workspace."""
    threshold = traction_threshold(window_end, traction_days)
    counts: dict[str, int] = {}
    for project in projects:
        if project.archived_at is not None or not has_traction(project, threshold):
            continue
        counts[project.workspace_id] = counts.get(project.workspace_id, 0) + 1
    return counts


def is_task_a_signal(task: Task, start: datetime, end: datetime) -> bool:
    """An open task A, or a task A completed inside the window."""
    if task.task_type != TaskType.A or task.archived_at is not None:
        return False
    if task.status in OPEN_TASK_STATUSES:
        return True
    return task.status == TaskStatus.FEITO and in_range(task.completed_at, start, end)


def task_a_signal_workspaces(tasks: Iterable[Task], start: datetime, end: datetime) -> set[str]:
    return {task.workspace_id for task in tasks if is_task_a_signal(task, start, end)}


def detect_ghost_fronts(
    workspaces: Iterable[Workspace],
    traction_by_workspace: dict[str, int],
    task_a_signals: set[str],
) -> list[GhostFront]:
    ghosts = []
    for workspace in workspaces:
        if workspace.mode == WorkspaceMode.STANDBY:
            continue
        if traction_by_workspace.get(workspace.id, 0) == 0 and workspace.id not in task_a_signals:
            ghosts.append(
                GhostFront(
                    workspace_id=workspace.id,
                    workspace_name=workspace.name,
                    reason=GHOST_FRONT_REASON,
                )
            )
    return ghosts


def collect_ghost_fronts(
    store: SqliteStore,
    start: datetime,
    end: datetime,
    workspace_id: str | None = None,
    traction_days: int = TRACTION_DAYS,
) -> list[GhostFront]:
    """Ghost fronts for a window, pulled straight from the store."""
    workspaces = store.list_workspaces(workspace_id)
    projects = store.list_projects(workspace_id, statuses=[ProjectStatus.ATIVO])
    tasks = store.list_tasks(workspace_id)
    return detect_ghost_fronts(
        workspaces,
        count_traction_by_workspace(projects, end, traction_days),
        task_a_signal_workspaces(tasks, start, end),
    )


# ── Ghost projects ───────────────────────────────────────────


def ghost_project_transitions(
    projects: Sequence[Project],
    is_moving: Callable[[Project], bool],
) -> tuple[list[str], list[str]]:
    """(ids to mark fantasma, ids to bring back to ativo)."""
    to_ghost = [p.id for p in projects if p.status == ProjectStatus.ATIVO and not is_moving(p)]
    to_reactivate = [p.id for p in projects if p.status == ProjectStatus.FANTASMA and is_moving(p)]
    return to_ghost, to_reactivate


def refresh_ghost_projects(
    store: SqliteStore,
    now: datetime,
    workspace_id: str | None = None,
    lookback_days: int = TRACTION_DAYS,
) -> dict[str, int]:
    threshold = ensure_utc(now) - timedelta(days=lookback_days)
    projects = store.list_projects(workspace_id, statuses=[ProjectStatus.ATIVO, ProjectStatus.FANTASMA])

    def is_moving(project: Project) -> bool:
        return store.project_has_recent_a_task(project.id, threshold) or store.project_has_recent_session(
            project.id, threshold
        )

    to_ghost, to_reactivate = ghost_project_transitions(projects, is_moving)
    with store.transaction():
        ghosted = store.set_project_status(to_ghost, ProjectStatus.FANTASMA)
        reactivated = store.set_project_status(to_reactivate, ProjectStatus.ATIVO)

    if ghosted or reactivated:
        logger.info("ghost_projects_refreshed", ghosted=ghosted, reactivated=reactivated)
    return {"checked": len(projects), "ghosted": ghosted, "reactivated": reactivated}
