"""Gamification — turns task outcomes into score, streak, and execution debt.

The rules are deliberately blunt:

- every outcome moves both the running and the weekly score by a fixed delta,
- negative deltas pile up as execution debt (nothing pays it down here),
- a streak day is earned by the first non-negative outcome of a new day,
- ``not_confirmed`` wipes the streak, no matter how long it was.

Several outcomes on the same day never move the streak.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Mapping

import structlog

from execos.engine.deep_work import session_minutes
from execos.models import (
    CommitmentBreak,
    ExecutionEvent,
    ExecutionEventType,
    FailureReason,
    GamificationDetails,
    GamificationOutcome,
    GamificationOverview,
    GamificationState,
    TaskStatus,
    TaskType,
    TodayExecution,
    WeekScoreBucket,
)
from execos.storage import SqliteStore
from execos.timeutils import (
    end_of_day,
    ensure_utc,
    same_calendar_day,
    start_of_day,
    start_of_week,
    to_date_key,
    utcnow,
)

logger = structlog.get_logger()

DEFAULT_DELTAS: dict[GamificationOutcome, int] = {
    GamificationOutcome.ON_TIME: 10,
    GamificationOutcome.LATE: 5,
    GamificationOutcome.POSTPONED: -5,
    GamificationOutcome.NOT_CONFIRMED: -8,
}

# Weekly history weights per execution event.
HISTORY_POINTS = {
    ExecutionEventType.COMPLETED: 8,
    ExecutionEventType.DELAYED: -5,
    ExecutionEventType.FAILED: -8,
}

HISTORY_WEEKS = 6
LOOKBACK_DAYS = 120
DAILY_A_TARGET = 3
DAILY_DEEP_WORK_TARGET_MINUTES = 45
TOP3_COMMIT_EVENT_CODE = "top3_committed"

FAILURE_REASON_LABELS = {
    FailureReason.ENERGIA: "Energia",
    FailureReason.MEDO: "Medo",
    FailureReason.DISTRACAO: "Distração",
    FailureReason.DEPENDENCIA: "Dependência",
    FailureReason.FALTA_CLAREZA: "Falta de clareza",
    FailureReason.FALTA_HABILIDADE: "Falta de habilidade",
}


def next_state(
    state: GamificationState,
    outcome: GamificationOutcome,
    now: datetime,
    deltas: Mapping[GamificationOutcome, int] = DEFAULT_DELTAS,
) -> GamificationState:
    """Pure transition: the state after one outcome lands at *now*."""
    delta = deltas[outcome]

    if outcome == GamificationOutcome.NOT_CONFIRMED:
        streak = 0
    elif same_calendar_day(state.last_update, now):
        streak = state.streak_days
    else:
        streak = state.streak_days + (1 if delta >= 0 else 0)

    return GamificationState(
        current_score=state.current_score + delta,
        weekly_score=state.weekly_score + delta,
        execution_debt=state.execution_debt + (abs(delta) if delta < 0 else 0),
        streak_days=streak,
        last_update=now,
    )


def consecutive_streak(today: date, predicate: Callable[[str], bool], max_days: int = LOOKBACK_DAYS) -> int:
    """Days in a row, counting back from *today*, for which *predicate(date_key)* holds."""
    streak = 0
    for offset in range(max_days):
        if not predicate(to_date_key(today - timedelta(days=offset))):
            break
        streak += 1
    return streak


def _break_type(event: ExecutionEvent) -> str:
    if event.event_type == ExecutionEventType.DELAYED:
        return "delayed"
    return "failed" if event.failure_reason else "not_confirmed"


def _break_severity(break_type: str, after_top3_commit: bool) -> str:
    if after_top3_commit and break_type in ("failed", "not_confirmed"):
        return "alta"
    if break_type == "delayed":
        return "media"
    return "alta"


def _break_impact(break_type: str) -> int:
    return {"not_confirmed": -8, "failed": -6}.get(break_type, -4)


def _recovery_suggestion(break_type: str, after_top3_commit: bool) -> str:
    if break_type == "delayed":
        return "Replanejar em bloco curto (15-30 min) ainda hoje para quebrar evitação."
    if after_top3_commit:
        return "Registrar causa raiz e substituir por ação A de recuperação no próximo bloco."
    return "Reassumir compromisso com tarefa A equivalente e confirmar novo horário."


class GamificationService:
    """Applies outcomes to the single gamification state and reports on it."""

    def __init__(
        self,
        store: SqliteStore,
        deltas: Mapping[GamificationOutcome, int] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.deltas = dict(deltas or DEFAULT_DELTAS)
        self.clock = clock

    def apply_result(self, outcome: GamificationOutcome | str) -> GamificationState:
        outcome = GamificationOutcome(outcome)
        now = self.clock()
        with self.store.transaction():
            state = self.store.get_or_create_gamification_state(now)
            updated = next_state(state, outcome, now, self.deltas)
            self.store.save_gamification_state(updated)

        logger.info(
            "gamification_applied",
            outcome=outcome.value,
            delta=self.deltas[outcome],
            score=updated.current_score,
            streak=updated.streak_days,
            debt=updated.execution_debt,
        )
        return updated

    def get_overview(self) -> GamificationOverview:
        state = self.store.get_or_create_gamification_state(self.clock())
        return GamificationOverview(
            current_score=state.current_score,
            weekly_score=state.weekly_score,
            streak_days=state.streak_days,
            execution_debt=state.execution_debt,
            last_update=state.last_update,
        )

    def get_details(self) -> GamificationDetails:
        """Overview plus 6-week history, today's tally, streaks, and commitment breaks."""
        overview = self.get_overview()
        now = self.clock()
        today = ensure_utc(now).date()
        this_week = start_of_week(today)
        lookback_start = start_of_day(today - timedelta(days=LOOKBACK_DAYS))
        today_end = end_of_day(today)

        history = self._weekly_history(this_week, today_end)

        today_events = self.store.list_execution_events(start_of_day(today), today_end)
        today_summary = TodayExecution(
            completed=sum(1 for e in today_events if e.event_type == ExecutionEventType.COMPLETED),
            delayed=sum(1 for e in today_events if e.event_type == ExecutionEventType.DELAYED),
            failed=sum(1 for e in today_events if e.event_type == ExecutionEventType.FAILED),
            pending_confirmations=self.store.count_pending_confirmations(today),
        )

        a_by_day: dict[str, int] = {}
        for task in self.store.list_tasks(include_archived=True):
            if task.task_type != TaskType.A or task.completed_at is None:
                continue
            if task.status != TaskStatus.FEITO:
                continue
            if not lookback_start <= ensure_utc(task.completed_at) <= today_end:
                continue
            key = to_date_key(task.completed_at)
            a_by_day[key] = a_by_day.get(key, 0) + 1

        deep_work_by_day: dict[str, int] = {}
        for session in self.store.list_sessions(lookback_start, today_end):
            key = to_date_key(session.started_at)
            deep_work_by_day[key] = deep_work_by_day.get(key, 0) + session_minutes(session, now)

        return GamificationDetails(
            **overview.model_dump(),
            history=history,
            today=today_summary,
            streak_execucao_a=consecutive_streak(today, lambda k: a_by_day.get(k, 0) >= DAILY_A_TARGET),
            streak_deep_work=consecutive_streak(
                today, lambda k: deep_work_by_day.get(k, 0) >= DAILY_DEEP_WORK_TARGET_MINUTES
            ),
            commitment_breaks=self._commitment_breaks(lookback_start, today_end),
        )

    def _weekly_history(self, this_week: date, until: datetime) -> list[WeekScoreBucket]:
        first_week = this_week - timedelta(weeks=HISTORY_WEEKS - 1)
        buckets: dict[date, WeekScoreBucket] = {}
        for index in range(HISTORY_WEEKS):
            week = first_week + timedelta(weeks=index)
            buckets[week] = WeekScoreBucket(week_start=week, label=f"S-{HISTORY_WEEKS - 1 - index}")

        for event in self.store.list_execution_events(start_of_day(first_week), until):
            bucket = buckets.get(start_of_week(event.timestamp))
            if bucket is None:
                continue
            if event.event_type == ExecutionEventType.COMPLETED:
                bucket.completed += 1
            elif event.event_type == ExecutionEventType.DELAYED:
                bucket.delayed += 1
            elif event.event_type == ExecutionEventType.FAILED:
                bucket.failed += 1
            bucket.score += HISTORY_POINTS.get(event.event_type, 0)

        return list(buckets.values())

    def _commitment_breaks(self, start: datetime, end: datetime, limit: int = 24) -> list[CommitmentBreak]:
        events = self.store.list_execution_events(
            start,
            end,
            event_types=[ExecutionEventType.FAILED, ExecutionEventType.DELAYED],
        )
        events = list(reversed(events))[:limit]

        commits_by_day: dict[str, list[tuple[datetime, list[str]]]] = {}
        for commit in self.store.list_decision_events(TOP3_COMMIT_EVENT_CODE, start, end, limit=120):
            task_ids = commit.payload.get("task_ids", [])
            if not isinstance(task_ids, list):
                task_ids = []
            commits_by_day.setdefault(to_date_key(commit.created_at), []).append(
                (commit.created_at, [t for t in task_ids if isinstance(t, str)])
            )

        breaks: list[CommitmentBreak] = []
        for event in events:
            break_type = _break_type(event)
            if break_type == "delayed":
                reason = "Reagendada"
            elif event.failure_reason:
                reason = FAILURE_REASON_LABELS.get(event.failure_reason, event.failure_reason.value)
            else:
                reason = "Compromisso quebrado"

            matched = next(
                (
                    committed_at
                    for committed_at, task_ids in commits_by_day.get(to_date_key(event.timestamp), [])
                    if event.task_id and event.task_id in task_ids
                ),
                None,
            )
            after_commit = matched is not None

            task = self.store.get_task(event.task_id) if event.task_id else None
            workspace = self.store.get_workspace(task.workspace_id) if task else None

            breaks.append(
                CommitmentBreak(
                    event_id=event.id,
                    at=event.timestamp,
                    type=break_type,
                    reason=reason,
                    task_id=event.task_id,
                    task_title=task.title if task else "Tarefa removida",
                    workspace_name=workspace.name if workspace else "Sem frente",
                    after_top3_commit=after_commit,
                    committed_at=matched,
                    severity=_break_severity(break_type, after_commit),
                    impact_score=_break_impact(break_type),
                    recovery_suggestion=_recovery_suggestion(break_type, after_commit),
                )
            )
        return breaks
