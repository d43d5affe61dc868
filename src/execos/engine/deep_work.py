"""Deep Work sessions — one exclusive focus block at a time.

A session is a tiny state machine:

    active ──stop()──────────────────→ completed
    active ──stop(switched_task)─────→ broken

Interruptions and breaks are counted on an active session but never move it.
Focus is scarce: two sessions running at once would double-count minutes, so
the store refuses a second active row outright.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Callable

import structlog

from execos.engine.decisions import record_decision_event, signal_from_impact
from execos.errors import NotFoundError, StateConflictError, ValidationError
from execos.models import (
    DecisionSignal,
    DeepWorkSession,
    DeepWorkState,
    DeepWorkSummary,
    TaskStatus,
    TaskType,
)
from execos.storage import SqliteStore, new_id
from execos.timeutils import end_of_day, minutes_between, round_half_up, start_of_day, utcnow

logger = structlog.get_logger()

DEFAULT_MINIMUM_BLOCK_MINUTES = 45
MINIMUM_BLOCK_FLOOR = 15


def effective_minimum(minimum_block_minutes: int | None, default: int = DEFAULT_MINIMUM_BLOCK_MINUTES) -> int:
    """The block floor for a start request: the asked-for minimum, never below 15."""
    return max(MINIMUM_BLOCK_FLOOR, minimum_block_minutes if minimum_block_minutes is not None else default)


def session_minutes(session: DeepWorkSession, now: datetime) -> int:
    """Minutes a session counts for: live minutes while active, recorded ones after."""
    if session.state == DeepWorkState.ACTIVE:
        return minutes_between(session.started_at, now)
    return session.actual_minutes


class DeepWorkService:
    """Start, count, and stop deep-work sessions against the store."""

    def __init__(
        self,
        store: SqliteStore,
        minimum_block_minutes: int = DEFAULT_MINIMUM_BLOCK_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.default_minimum = minimum_block_minutes
        self.clock = clock

    # ── Queries ───────────────────────────────────────────────

    def get_active(self, workspace_id: str | None = None) -> DeepWorkSession | None:
        return self.store.get_active_session(workspace_id)

    def get_summary(self, day: date, workspace_id: str | None = None) -> DeepWorkSummary:
        """Totals for sessions started on *day* (UTC)."""
        now = self.clock()
        sessions = self.store.list_sessions(start_of_day(day), end_of_day(day), workspace_id)

        total_minutes = sum(session_minutes(s, now) for s in sessions)
        total_target = sum(s.target_minutes for s in sessions)

        return DeepWorkSummary(
            date=day,
            workspace_id=workspace_id,
            sessions=sessions,
            sessions_count=len(sessions),
            active_count=sum(1 for s in sessions if s.state == DeepWorkState.ACTIVE),
            completed_count=sum(1 for s in sessions if s.state == DeepWorkState.COMPLETED),
            broken_count=sum(1 for s in sessions if s.state == DeepWorkState.BROKEN),
            total_minutes=total_minutes,
            total_target_minutes=total_target,
            total_interruptions=sum(s.interruption_count for s in sessions),
            total_breaks=sum(s.break_count for s in sessions),
            adherence_percent=round_half_up(total_minutes / total_target * 100) if total_target else 0,
        )

    # ── Transitions ───────────────────────────────────────────

    def start(
        self,
        task_id: str,
        target_minutes: int | None = None,
        minimum_block_minutes: int | None = None,
    ) -> DeepWorkSession:
        """Open a session on a task A (or multi-block task)."""
        minimum = effective_minimum(minimum_block_minutes, self.default_minimum)
        target = target_minutes if target_minutes is not None else minimum
        if target < minimum:
            raise ValidationError(f"Deep Work requires a minimum block of {minimum} minutes.")

        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task not found for Deep Work: {task_id}")
        if task.status in (TaskStatus.FEITO, TaskStatus.ARQUIVADO):
            raise StateConflictError("Cannot start Deep Work on a completed or archived task.")
        if task.task_type != TaskType.A and not task.is_multi_block:
            raise ValidationError("Deep Work can only start on a task A or a multi-block task.")

        session = DeepWorkSession(
            id=new_id(),
            task_id=task.id,
            workspace_id=task.workspace_id,
            project_id=task.project_id,
            started_at=self.clock(),
            target_minutes=target,
        )

        with self.store.transaction():
            active = self.store.get_active_session()
            if active is not None:
                raise self._conflict(active)
            try:
                self.store.insert_session(session)
            except sqlite3.IntegrityError:
                # Lost a race with another writer; report whoever won.
                active = self.store.get_active_session()
                raise self._conflict(active) from None

            record_decision_event(
                self.store,
                workspace_id=task.workspace_id,
                project_id=task.project_id,
                task_id=task.id,
                source="deep_work_service",
                event_code="deep_work_started",
                signal=DecisionSignal.EXECUTIVA,
                impact_score=6,
                title=f"Deep Work iniciado: {task.title}",
                rationale="Início de bloco de foco profundo em tarefa A.",
                payload={"target_minutes": target, "minimum_block": minimum},
                created_at=session.started_at,
            )

        logger.info(
            "deep_work_started",
            session_id=session.id,
            task_id=task.id,
            target_minutes=target,
        )
        return session

    def register_interruption(self, session_id: str) -> DeepWorkSession:
        session = self._bump(session_id, "interruption_count")
        record_decision_event(
            self.store,
            workspace_id=session.workspace_id,
            project_id=session.project_id,
            task_id=session.task_id,
            source="deep_work_service",
            event_code="deep_work_interruption",
            signal=DecisionSignal.RISCO,
            impact_score=-2,
            title=f"Interrupção no Deep Work: {self._task_title(session)}",
            rationale="Interrupção registrada para análise de padrão de distração.",
            payload={"interruption_count": session.interruption_count},
            created_at=self.clock(),
        )
        return session

    def register_break(self, session_id: str) -> DeepWorkSession:
        return self._bump(session_id, "break_count")

    def stop(
        self,
        session_id: str,
        switched_task: bool = False,
        notes: str | None = None,
    ) -> DeepWorkSession:
        """Finalize a session. Stopping a finished session returns it untouched."""
        with self.store.transaction():
            session = self._require(session_id)
            if session.is_terminal:
                return session

            ended_at = self.clock()
            session.ended_at = ended_at
            session.actual_minutes = minutes_between(session.started_at, ended_at)
            session.notes = (notes or "").strip() or session.notes
            if switched_task:
                session.state = DeepWorkState.BROKEN
                session.break_count += 1
            else:
                session.state = DeepWorkState.COMPLETED

            if not self.store.finalize_session(session):
                # Someone else finalized it first; theirs is the record.
                return self._require(session_id)

            if session.project_id:
                self.store.touch_project(session.project_id, ended_at)

            if session.state == DeepWorkState.COMPLETED:
                impact = 7 if session.actual_minutes >= session.target_minutes else 4
            else:
                impact = -5
            broken = session.state == DeepWorkState.BROKEN
            record_decision_event(
                self.store,
                workspace_id=session.workspace_id,
                project_id=session.project_id,
                task_id=session.task_id,
                source="deep_work_service",
                event_code="deep_work_broken" if broken else "deep_work_completed",
                signal=signal_from_impact(impact),
                impact_score=impact,
                title=(
                    f"Deep Work quebrado: {self._task_title(session)}"
                    if broken
                    else f"Deep Work encerrado: {self._task_title(session)}"
                ),
                rationale=(
                    "Sessão interrompida por troca de tarefa."
                    if broken
                    else "Sessão concluída com minutos reais computados."
                ),
                payload={
                    "target_minutes": session.target_minutes,
                    "actual_minutes": session.actual_minutes,
                    "interruption_count": session.interruption_count,
                    "break_count": session.break_count,
                },
                created_at=ended_at,
            )

        logger.info(
            "deep_work_stopped",
            session_id=session.id,
            state=session.state.value,
            actual_minutes=session.actual_minutes,
        )
        return session

    # ── Helpers ───────────────────────────────────────────────

    def _require(self, session_id: str) -> DeepWorkSession:
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Deep Work session not found: {session_id}")
        return session

    def _bump(self, session_id: str, column: str) -> DeepWorkSession:
        with self.store.transaction():
            self._require(session_id)
            if not self.store.increment_session_counter(session_id, column):
                raise StateConflictError("Deep Work session already finished.")
            return self._require(session_id)

    def _task_title(self, session: DeepWorkSession) -> str:
        task = self.store.get_task(session.task_id)
        return task.title if task else session.task_id

    def _conflict(self, active: DeepWorkSession | None) -> StateConflictError:
        label = self._task_title(active) if active else "unknown"
        session_id = active.id if active else None
        return StateConflictError(
            f"Deep Work already active: {label} (session {session_id})"
        )
