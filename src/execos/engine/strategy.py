"""Strategy service — weekly/monthly allocation, portfolio, reviews, and the journal.

Every read first refreshes ghost projects, so the statuses it reports are
current as of the service clock. Reviews are computed on demand; only the
journal (what the user decided) and the weekly energy plan are stored.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Callable, Mapping, Sequence

import structlog

from execos.engine.bottleneck import dominant_bottleneck, reason_breakdown
from execos.engine.decisions import record_decision_event, signal_from_impact
from execos.engine.draft import DraftInputs, build_auto_draft
from execos.engine.ghosts import (
    TRACTION_DAYS,
    collect_ghost_fronts,
    has_traction,
    refresh_ghost_projects,
    traction_threshold,
)
from execos.engine.health import classify_front_health
from execos.engine.rollup import (
    allocation_totals,
    average_planned_percent,
    build_allocation_rows,
    collect_workspace_minutes,
    composition,
    deep_work_minutes,
    deep_work_minutes_by_workspace,
    dominant_workspace,
    neglected_workspace,
)
from execos.errors import NotFoundError, ValidationError
from execos.models import (
    OPEN_TASK_STATUSES,
    AllocationRow,
    CommitmentLevel,
    DecisionSignal,
    ExecutionKind,
    FrontHealthStatus,
    GhostFrontAction,
    GhostFrontResolution,
    MonthlyReview,
    PortfolioRow,
    ProjectStatus,
    ReviewJournal,
    ReviewPeriodType,
    ReviewSummary,
    StrategicReview,
    Task,
    TaskStatus,
    TaskType,
    WeeklyAllocation,
    WeeklyEnergyPlan,
    WeeklyReview,
    WorkspaceMinutesSnapshot,
    WorkspaceMode,
    WorkspacePortfolio,
)
from execos.storage import ALL_WORKSPACES_SCOPE, SqliteStore, new_id
from execos.timeutils import (
    clamp_percent,
    in_range,
    month_range,
    normalize_period_start,
    parse_date,
    round_half_up,
    round_hours,
    start_of_month,
    start_of_week,
    utcnow,
    week_range,
)

logger = structlog.get_logger()

MAX_ACTION_ITEMS = 12
DEFAULT_HISTORY_LIMIT = 8
MAX_HISTORY_LIMIT = 24
STALLED_PROJECT_STATUSES = (ProjectStatus.LATENTE, ProjectStatus.PAUSADO)

COMMITMENT_IMPACT = {
    CommitmentLevel.ALTO: 2,
    CommitmentLevel.MEDIO: 1,
    CommitmentLevel.BAIXO: -1,
}

GHOST_FRONT_TITLES = {
    GhostFrontAction.REATIVAR: "Frente reativada: {name}",
    GhostFrontAction.STANDBY: "Frente movida para standby: {name}",
    GhostFrontAction.CRIAR_TAREFA_A: "Tarefa A criada para destravar frente: {name}",
}


def normalize_text(value: str | None) -> str | None:
    """Trim; blank becomes None."""
    if value is None:
        return None
    return value.strip() or None


def normalize_action_items(items: Sequence[str] | None) -> list[str]:
    if not items:
        return []
    return [item.strip() for item in items if item and item.strip()][:MAX_ACTION_ITEMS]


def workspace_scope(workspace_id: str | None) -> str:
    return workspace_id or ALL_WORKSPACES_SCOPE


def clamp_history_limit(limit: int | None) -> int:
    return max(1, min(limit if limit is not None else DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT))


class StrategyService:
    def __init__(
        self,
        store: SqliteStore,
        traction_days: int = TRACTION_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.traction_days = traction_days
        self.clock = clock

    # ── Shared fetches ────────────────────────────────────────

    def _refresh_ghosts(self, workspace_id: str | None = None) -> dict[str, int]:
        return refresh_ghost_projects(self.store, self.clock(), workspace_id, self.traction_days)

    def _ensure_workspace(self, workspace_id: str | None) -> None:
        if workspace_id is not None and self.store.get_workspace(workspace_id) is None:
            raise NotFoundError(f"Workspace not found: {workspace_id}")

    def _minutes_snapshot(self, start: date, end: date, workspace_id: str | None = None) -> WorkspaceMinutesSnapshot:
        items = self.store.list_day_plan_items(start, end)
        tasks_by_id = {t.id: t for t in self.store.list_tasks(include_archived=True)}
        workspaces_by_id = {w.id: w for w in self.store.list_workspaces(include_general=True)}
        return collect_workspace_minutes(items, tasks_by_id, workspaces_by_id, workspace_id)

    def _completed_a_count(self, start: datetime, end: datetime, workspace_id: str | None = None) -> int:
        return sum(
            1
            for task in self.store.list_tasks(workspace_id, include_archived=True)
            if task.task_type == TaskType.A
            and task.status == TaskStatus.FEITO
            and in_range(task.completed_at, start, end)
        )

    def _review_summary(
        self,
        rows: list[AllocationRow],
        start: datetime,
        end: datetime,
        workspace_id: str | None,
        actual_hours: float = 0.0,
    ) -> ReviewSummary:
        now = self.clock()
        dw_minutes = deep_work_minutes(self.store.list_sessions(start, end, workspace_id), now)
        ghost_fronts = collect_ghost_fronts(self.store, start, end, workspace_id, self.traction_days)
        events = self.store.list_execution_events(start, end, workspace_id)

        return ReviewSummary(
            completed_a=self._completed_a_count(start, end, workspace_id),
            deep_work_minutes=dw_minutes,
            deep_work_hours=round_hours(dw_minutes),
            dominant_workspace=dominant_workspace(rows),
            neglected_workspace=neglected_workspace(rows),
            ghost_fronts_count=len(ghost_fronts),
            ghost_fronts=ghost_fronts,
            dominant_bottleneck=dominant_bottleneck(events),
            bottleneck_breakdown=reason_breakdown(events),
            actual_hours=actual_hours,
        )

    # ── Weekly allocation ─────────────────────────────────────

    def get_weekly_allocation(
        self,
        week_start: str | date | None = None,
        workspace_id: str | None = None,
    ) -> WeeklyAllocation:
        self._refresh_ghosts(workspace_id)
        week = start_of_week(parse_date(week_start, self.clock().date()))
        week_end = week + timedelta(days=6)

        workspaces = self.store.list_workspaces(workspace_id)
        planned = {p.workspace_id: p.planned_percent for p in self.store.list_energy_plans(week, week, workspace_id)}
        snapshot = self._minutes_snapshot(week, week_end, workspace_id)

        rows = build_allocation_rows(workspaces, planned, snapshot)
        return WeeklyAllocation(
            week_start=week,
            week_end=week_end,
            rows=rows,
            totals=allocation_totals(rows, snapshot),
        )

    def set_weekly_allocation(
        self,
        week_start: str | date,
        allocations: Mapping[str, float],
    ) -> WeeklyAllocation:
        """Replace a week's energy plan. Percents are rounded and clamped to 0..100."""
        week = start_of_week(parse_date(week_start))
        normalized = {ws: max(0, min(100, round_half_up(pct))) for ws, pct in allocations.items()}

        total = sum(normalized.values())
        if total > 100:
            raise ValidationError(f"Planned percentages cannot exceed 100% in total (got {total}%).")

        valid = {w.id for w in self.store.list_workspaces()}
        invalid = [ws for ws in normalized if ws not in valid]
        if invalid:
            raise ValidationError(f"Invalid workspace in weekly allocation: {', '.join(invalid)}")

        self.store.replace_energy_plans(
            week,
            [WeeklyEnergyPlan(week_start=week, workspace_id=ws, planned_percent=pct) for ws, pct in normalized.items()],
        )
        logger.info("weekly_allocation_set", week_start=week.isoformat(), workspaces=len(normalized), total=total)
        return self.get_weekly_allocation(week)

    # ── Portfolio ─────────────────────────────────────────────

    def get_workspace_portfolio(self, week_start: str | date | None = None) -> WorkspacePortfolio:
        self._refresh_ghosts()
        now = self.clock()
        week = start_of_week(parse_date(week_start, now.date()))
        week_end = week + timedelta(days=6)
        start, end = week_range(week)

        workspaces = self.store.list_workspaces()
        projects = self.store.list_projects()
        tasks = self.store.list_tasks()
        dw_by_workspace = deep_work_minutes_by_workspace(self.store.list_sessions(start, end), now)
        events_by_workspace = self.store.execution_events_by_workspace(start, end)
        snapshot = self._minutes_snapshot(week, week_end)
        threshold = traction_threshold(end, self.traction_days)

        rows = []
        for workspace in workspaces:
            ws_projects = [p for p in projects if p.workspace_id == workspace.id]
            ws_tasks = [t for t in tasks if t.workspace_id == workspace.id and t.task_type == TaskType.A]

            completed_a = sum(
                1 for t in ws_tasks if t.status == TaskStatus.FEITO and in_range(t.completed_at, start, end)
            )
            open_a = sum(1 for t in ws_tasks if t.status in OPEN_TASK_STATUSES)
            active = sum(1 for p in ws_projects if p.status == ProjectStatus.ATIVO)
            with_traction = sum(1 for p in ws_projects if has_traction(p, threshold))

            health = classify_front_health(workspace.mode, active, with_traction, completed_a > 0 or open_a > 0)
            rows.append(
                PortfolioRow(
                    workspace_id=workspace.id,
                    workspace_name=workspace.name,
                    workspace_color=workspace.color,
                    workspace_mode=workspace.mode,
                    hours_invested=round_hours(snapshot.minutes_for(workspace.id)),
                    deep_work_hours=round_hours(dw_by_workspace.get(workspace.id, 0)),
                    completed_a=completed_a,
                    open_a=open_a,
                    active_projects=active,
                    active_projects_with_traction=with_traction,
                    project_traction_percent=clamp_percent(with_traction / active * 100) if active else 0,
                    ghost_projects=1 if health.status == FrontHealthStatus.NEGLIGENCIADA else 0,
                    stalled_projects=sum(1 for p in ws_projects if p.status in STALLED_PROJECT_STATUSES),
                    front_health=health,
                    dominant_bottleneck=dominant_bottleneck(events_by_workspace.get(workspace.id, [])),
                )
            )

        return WorkspacePortfolio(week_start=week, week_end=week_end, rows=rows)

    # ── Reviews ───────────────────────────────────────────────

    def get_weekly_review(
        self,
        week_start: str | date | None = None,
        workspace_id: str | None = None,
    ) -> WeeklyReview:
        allocation = self.get_weekly_allocation(week_start, workspace_id)
        start, end = week_range(allocation.week_start)
        summary = self._review_summary(
            allocation.rows, start, end, workspace_id, actual_hours=allocation.totals.actual_hours
        )

        draft = build_auto_draft(
            DraftInputs(
                completed_a=summary.completed_a,
                deep_work_hours=summary.deep_work_hours,
                dominant_workspace_name=summary.dominant_workspace.workspace_name
                if summary.dominant_workspace
                else None,
                neglected_workspace_name=summary.neglected_workspace.workspace_name
                if summary.neglected_workspace
                else None,
                ghost_fronts_count=summary.ghost_fronts_count,
                dominant_bottleneck=summary.dominant_bottleneck,
            ),
            generated_at=self.clock(),
        )
        return WeeklyReview(
            week_start=allocation.week_start,
            week_end=allocation.week_end,
            summary=summary,
            auto_draft=draft,
        )

    def get_monthly_review(
        self,
        month_start: str | date | None = None,
        workspace_id: str | None = None,
    ) -> MonthlyReview:
        self._refresh_ghosts(workspace_id)
        month = start_of_month(parse_date(month_start, self.clock().date()))
        start, end = month_range(month)
        month_end = end.date()

        workspaces = self.store.list_workspaces(workspace_id)
        planned = average_planned_percent(self.store.list_energy_plans(month, month_end, workspace_id))
        snapshot = self._minutes_snapshot(month, month_end, workspace_id)
        rows = build_allocation_rows(workspaces, planned, snapshot)

        summary = self._review_summary(
            rows, start, end, workspace_id, actual_hours=round_hours(snapshot.total_workspace_minutes)
        )
        journal = self.get_review_journal(ReviewPeriodType.MONTHLY, month, workspace_id)

        return MonthlyReview(
            month_start=month,
            month_end=month_end,
            rows=rows,
            composition=composition(snapshot),
            summary=summary,
            journal=journal.review,
        )

    # ── Journal ───────────────────────────────────────────────

    def get_review_journal(
        self,
        period_type: ReviewPeriodType | str,
        period_start: str | date | None = None,
        workspace_id: str | None = None,
    ) -> ReviewJournal:
        period_type = ReviewPeriodType(period_type)
        self._ensure_workspace(workspace_id)
        start = normalize_period_start(period_type, period_start or self.clock().date())
        scope = workspace_scope(workspace_id)
        return ReviewJournal(
            period_type=period_type,
            period_start=start,
            workspace_id=workspace_id,
            workspace_scope=scope,
            review=self.store.get_review(period_type, start, scope),
        )

    def save_review_journal(
        self,
        period_type: ReviewPeriodType | str,
        period_start: str | date,
        workspace_id: str | None = None,
        next_priority: str | None = None,
        strategic_decision: str | None = None,
        commitment_level: CommitmentLevel | str | None = None,
        action_items: Sequence[str] | None = None,
        reflection: str | None = None,
        review_snapshot: Any = None,
    ) -> ReviewJournal:
        """Upsert the journal entry for one period and scope. Last write wins."""
        period_type = ReviewPeriodType(period_type)
        commitment = CommitmentLevel(commitment_level) if commitment_level else None
        self._ensure_workspace(workspace_id)
        start = normalize_period_start(period_type, period_start)
        scope = workspace_scope(workspace_id)
        items = normalize_action_items(action_items)
        now = self.clock()

        with self.store.transaction():
            review = self.store.upsert_review(
                StrategicReview(
                    id=new_id(),
                    period_type=period_type,
                    period_start=start,
                    workspace_scope=scope,
                    workspace_id=workspace_id,
                    next_priority=normalize_text(next_priority),
                    strategic_decision=normalize_text(strategic_decision),
                    commitment_level=commitment,
                    action_items=items,
                    reflection=normalize_text(reflection),
                    review_snapshot=review_snapshot,
                    updated_at=now,
                )
            )

            if review.next_priority or review.strategic_decision or review.reflection or items:
                impact = COMMITMENT_IMPACT.get(commitment, 0) if commitment else 0
                record_decision_event(
                    self.store,
                    event_code="review_journal_updated",
                    signal=signal_from_impact(impact),
                    impact_score=impact,
                    title=f"Revisão {period_type.value} atualizada",
                    rationale=review.strategic_decision
                    or review.next_priority
                    or "Atualização de revisão estratégica.",
                    workspace_id=workspace_id,
                    source="strategy_service",
                    payload={
                        "review_id": review.id,
                        "period_type": period_type.value,
                        "period_start": start.isoformat(),
                        "workspace_scope": scope,
                        "commitment_level": commitment.value if commitment else None,
                        "action_items": items,
                    },
                    created_at=now,
                )

        logger.info(
            "review_journal_saved",
            period_type=period_type.value,
            period_start=start.isoformat(),
            scope=scope,
            action_items=len(items),
        )
        return ReviewJournal(
            period_type=period_type,
            period_start=start,
            workspace_id=workspace_id,
            workspace_scope=scope,
            review=review,
        )

    def get_review_history(
        self,
        period_type: ReviewPeriodType | str,
        workspace_id: str | None = None,
        limit: int | None = None,
    ) -> list[StrategicReview]:
        """Newest period first."""
        period_type = ReviewPeriodType(period_type)
        self._ensure_workspace(workspace_id)
        return self.store.list_reviews(period_type, workspace_scope(workspace_id), clamp_history_limit(limit))

    # ── Ghost fronts ──────────────────────────────────────────

    def resolve_ghost_front(self, workspace_id: str, action: GhostFrontAction | str) -> GhostFrontResolution:
        action = GhostFrontAction(action)
        now = self.clock()

        with self.store.transaction():
            workspace = self.store.get_workspace(workspace_id)
            if workspace is None:
                raise NotFoundError(f"Workspace not found: {workspace_id}")

            mode = workspace.mode
            created_task_id = None
            if action == GhostFrontAction.REATIVAR:
                mode = WorkspaceMode.EXPANSAO
                self.store.set_workspace_mode(workspace.id, mode)
            elif action == GhostFrontAction.STANDBY:
                mode = WorkspaceMode.STANDBY
                self.store.set_workspace_mode(workspace.id, mode)
            else:
                task = self.store.add_task(
                    Task(
                        id=new_id(),
                        title=f"Destravar frente {workspace.name}",
                        workspace_id=workspace.id,
                        task_type=TaskType.A,
                        status=TaskStatus.BACKLOG,
                        execution_kind=ExecutionKind.CONSTRUCAO,
                        priority=2,
                        estimated_minutes=45,
                        updated_at=now,
                    )
                )
                created_task_id = task.id

            standby = action == GhostFrontAction.STANDBY
            record_decision_event(
                self.store,
                event_code="ghost_front_resolved",
                signal=DecisionSignal.NEUTRA if standby else DecisionSignal.EXECUTIVA,
                impact_score=0 if standby else 3,
                title=GHOST_FRONT_TITLES[action].format(name=workspace.name),
                rationale="Frente removida do foco ativo para reduzir fragmentação."
                if standby
                else "Ação executiva para recuperar tração e sair do estado fantasma.",
                workspace_id=workspace.id,
                task_id=created_task_id,
                source="strategy_service",
                payload={"action": action.value, "workspace_id": workspace.id, "created_task_id": created_task_id},
                created_at=now,
            )

        logger.info("ghost_front_resolved", workspace_id=workspace.id, action=action.value, mode=mode.value)
        return GhostFrontResolution(
            workspace_id=workspace.id,
            workspace_name=workspace.name,
            mode=mode,
            action=action,
            created_task_id=created_task_id,
        )
