"""Tests for gamification scoring, streaks, and details."""

from datetime import datetime, timedelta, timezone

import pytest

from execos.engine.gamification import GamificationService, consecutive_streak, next_state
from execos.models import (
    DecisionSignal,
    DeepWorkSession,
    DeepWorkState,
    ExecutionEvent,
    ExecutionEventType,
    FailureReason,
    GamificationOutcome,
    GamificationState,
    StrategicDecisionEvent,
    Task,
    TaskStatus,
    TaskType,
    Workspace,
)
from execos.storage import SqliteStore

UTC = timezone.utc
# A Wednesday
NOW = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _make_state(streak: int = 0, last_update: datetime = NOW - timedelta(days=1)) -> GamificationState:
    return GamificationState(streak_days=streak, last_update=last_update)


def _make_service(tmp_path) -> tuple[GamificationService, SqliteStore, _Clock]:
    store = SqliteStore(tmp_path / "execos.db")
    clock = _Clock(NOW)
    store.add_workspace(Workspace(id="w1", name="Alpha", created_at=NOW))
    return GamificationService(store, clock=clock), store, clock


# ── next_state ───────────────────────────────────────────────


def test_on_time_on_a_new_day_extends_streak():
    state = next_state(_make_state(streak=2), GamificationOutcome.ON_TIME, NOW)
    assert state.current_score == 10
    assert state.weekly_score == 10
    assert state.streak_days == 3
    assert state.execution_debt == 0
    assert state.last_update == NOW


def test_same_day_never_moves_streak():
    state = next_state(_make_state(streak=2, last_update=NOW.replace(hour=8)), GamificationOutcome.LATE, NOW)
    assert state.current_score == 5
    assert state.streak_days == 2


def test_postponed_adds_debt_and_holds_streak():
    state = next_state(_make_state(streak=4), GamificationOutcome.POSTPONED, NOW)
    assert state.current_score == -5
    assert state.execution_debt == 5
    assert state.streak_days == 4


def test_not_confirmed_resets_streak():
    state = next_state(_make_state(streak=9), GamificationOutcome.NOT_CONFIRMED, NOW)
    assert state.current_score == -8
    assert state.execution_debt == 8
    assert state.streak_days == 0


def test_custom_deltas():
    deltas = {
        GamificationOutcome.ON_TIME: 20,
        GamificationOutcome.LATE: 1,
        GamificationOutcome.POSTPONED: -1,
        GamificationOutcome.NOT_CONFIRMED: -2,
    }
    state = next_state(_make_state(), GamificationOutcome.ON_TIME, NOW, deltas)
    assert state.current_score == 20


def test_consecutive_streak_stops_at_first_gap():
    today = NOW.date()
    hits = {(today - timedelta(days=i)).isoformat() for i in (0, 1, 2, 4)}
    assert consecutive_streak(today, lambda key: key in hits) == 3
    assert consecutive_streak(today, lambda key: False) == 0


# ── Service ──────────────────────────────────────────────────


def test_first_outcome_on_creation_day_keeps_streak_at_zero(tmp_path):
    service, _, _ = _make_service(tmp_path)
    state = service.apply_result(GamificationOutcome.ON_TIME)
    assert state.current_score == 10
    assert state.streak_days == 0


def test_streak_across_days(tmp_path):
    service, _, clock = _make_service(tmp_path)
    service.apply_result("on_time")
    clock.advance(days=1)
    service.apply_result("late")
    clock.advance(hours=1)
    service.apply_result("on_time")
    clock.advance(days=1)
    state = service.apply_result(GamificationOutcome.ON_TIME)

    assert state.streak_days == 2
    assert state.current_score == 35
    assert service.get_overview().current_score == 35


def test_debt_only_grows(tmp_path):
    service, _, _ = _make_service(tmp_path)
    service.apply_result(GamificationOutcome.POSTPONED)
    service.apply_result(GamificationOutcome.ON_TIME)
    state = service.apply_result(GamificationOutcome.NOT_CONFIRMED)
    assert state.execution_debt == 13
    assert state.current_score == -3


def test_unknown_outcome_rejected(tmp_path):
    service, _, _ = _make_service(tmp_path)
    with pytest.raises(ValueError):
        service.apply_result("excellent")


def test_details_history_and_today(tmp_path):
    service, store, _ = _make_service(tmp_path)
    store.add_task(Task(id="t1", title="Pitch", workspace_id="w1", task_type=TaskType.A, updated_at=NOW))
    events = [
        ("e1", ExecutionEventType.COMPLETED, None, NOW - timedelta(hours=2)),
        ("e2", ExecutionEventType.DELAYED, None, NOW - timedelta(hours=1)),
        ("e3", ExecutionEventType.FAILED, FailureReason.ENERGIA, NOW - timedelta(days=7)),
    ]
    for ev_id, ev_type, reason, at in events:
        store.add_execution_event(
            ExecutionEvent(id=ev_id, task_id="t1", event_type=ev_type, failure_reason=reason, timestamp=at)
        )

    details = service.get_details()

    assert len(details.history) == 6
    assert details.history[-1].label == "S-0"
    assert details.history[0].label == "S-5"
    this_week = details.history[-1]
    assert (this_week.completed, this_week.delayed, this_week.score) == (1, 1, 3)
    last_week = details.history[-2]
    assert (last_week.failed, last_week.score) == (1, -8)

    assert details.today.completed == 1
    assert details.today.delayed == 1
    assert details.today.failed == 0


def test_details_streaks(tmp_path):
    service, store, _ = _make_service(tmp_path)
    for day in range(2):
        for i in range(3):
            store.add_task(
                Task(
                    id=f"a{day}{i}",
                    title="A",
                    workspace_id="w1",
                    task_type=TaskType.A,
                    status=TaskStatus.FEITO,
                    completed_at=NOW - timedelta(days=day, minutes=i),
                    updated_at=NOW,
                )
            )
    store.add_task(Task(id="a_open", title="A", workspace_id="w1", task_type=TaskType.A, updated_at=NOW))
    store.insert_session(
        DeepWorkSession(
            id="s1",
            task_id="a_open",
            workspace_id="w1",
            started_at=NOW - timedelta(hours=3),
            state=DeepWorkState.COMPLETED,
            actual_minutes=50,
        )
    )

    details = service.get_details()
    assert details.streak_execucao_a == 2
    assert details.streak_deep_work == 1


def test_commitment_breaks_after_top3(tmp_path):
    service, store, _ = _make_service(tmp_path)
    store.add_task(Task(id="t1", title="Pitch", workspace_id="w1", task_type=TaskType.A, updated_at=NOW))
    store.add_task(Task(id="t2", title="Call", workspace_id="w1", updated_at=NOW))
    store.add_decision_event(
        StrategicDecisionEvent(
            id="d1",
            event_code="top3_committed",
            signal=DecisionSignal.EXECUTIVA,
            title="Top 3",
            payload={"task_ids": ["t1"]},
            created_at=NOW.replace(hour=8),
        )
    )
    store.add_execution_event(
        ExecutionEvent(id="e1", task_id="t1", event_type=ExecutionEventType.FAILED, timestamp=NOW.replace(hour=11))
    )
    store.add_execution_event(
        ExecutionEvent(id="e2", task_id="t2", event_type=ExecutionEventType.DELAYED, timestamp=NOW.replace(hour=12))
    )

    breaks = service.get_details().commitment_breaks
    assert [b.event_id for b in breaks] == ["e2", "e1"]

    delayed, failed = breaks
    assert delayed.type == "delayed"
    assert delayed.reason == "Reagendada"
    assert delayed.severity == "media"
    assert delayed.after_top3_commit is False

    assert failed.type == "not_confirmed"
    assert failed.after_top3_commit is True
    assert failed.committed_at == NOW.replace(hour=8)
    assert failed.severity == "alta"
    assert failed.impact_score == -8
    assert failed.task_title == "Pitch"
    assert failed.workspace_name == "Alpha"
