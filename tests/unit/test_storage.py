"""Tests for the SQLite store."""

import sqlite3
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from execos.errors import StorageError
from execos.models import (
    DecisionSignal,
    DeepWorkSession,
    DeepWorkState,
    ExecutionEvent,
    ExecutionEventType,
    FailureReason,
    Project,
    ProjectStatus,
    ReviewPeriodType,
    StrategicDecisionEvent,
    StrategicReview,
    Task,
    TaskType,
    WeeklyEnergyPlan,
    Workspace,
    WorkspaceMode,
    WorkspaceType,
)
from execos.storage import ALL_WORKSPACES_SCOPE, SqliteStore

UTC = timezone.utc
NOW = datetime(2026, 3, 4, 10, 0, tzinfo=UTC)


def _make_store(tmp_path) -> SqliteStore:
    store = SqliteStore(tmp_path / "execos.db")
    store.add_workspace(Workspace(id="w1", name="Alpha", created_at=NOW))
    store.add_task(Task(id="t1", title="Ship it", workspace_id="w1", task_type=TaskType.A, updated_at=NOW))
    return store


def _make_session(session_id: str, state: DeepWorkState = DeepWorkState.ACTIVE) -> DeepWorkSession:
    return DeepWorkSession(id=session_id, task_id="t1", workspace_id="w1", started_at=NOW, state=state)


def _make_review(**kwargs) -> StrategicReview:
    base = dict(
        id="r1",
        period_type=ReviewPeriodType.WEEKLY,
        period_start=date(2026, 3, 2),
        workspace_scope=ALL_WORKSPACES_SCOPE,
        updated_at=NOW,
    )
    base.update(kwargs)
    return StrategicReview(**base)


def test_roundtrip_task(tmp_path):
    store = _make_store(tmp_path)
    task = store.get_task("t1")
    assert task.title == "Ship it"
    assert task.task_type == TaskType.A
    assert task.updated_at == NOW
    assert task.is_multi_block is False

    task.is_multi_block = True
    store.save_task(task)
    assert store.get_task("t1").is_multi_block is True


def test_workspaces_in_creation_order_without_general(tmp_path):
    store = _make_store(tmp_path)
    store.add_workspace(Workspace(id="w0", name="Inbox", type=WorkspaceType.GERAL, created_at=NOW))
    store.add_workspace(Workspace(id="w2", name="Beta", created_at=NOW + timedelta(minutes=1)))

    assert [w.id for w in store.list_workspaces()] == ["w1", "w2"]
    assert {w.id for w in store.list_workspaces(include_general=True)} == {"w0", "w1", "w2"}
    assert [w.id for w in store.list_workspaces("w2")] == ["w2"]

    store.set_workspace_mode("w2", WorkspaceMode.STANDBY)
    assert store.get_workspace("w2").mode == WorkspaceMode.STANDBY


def test_only_one_active_session(tmp_path):
    store = _make_store(tmp_path)
    store.insert_session(_make_session("s1"))
    with pytest.raises(sqlite3.IntegrityError):
        store.insert_session(_make_session("s2"))

    # Terminal sessions don't collide
    store.insert_session(_make_session("s3", DeepWorkState.COMPLETED))
    store.insert_session(_make_session("s4", DeepWorkState.BROKEN))
    assert store.get_active_session().id == "s1"


def test_finalize_only_once(tmp_path):
    store = _make_store(tmp_path)
    session = store.insert_session(_make_session("s1"))
    session.state = DeepWorkState.COMPLETED
    session.ended_at = NOW + timedelta(minutes=50)
    session.actual_minutes = 50

    assert store.finalize_session(session) is True
    assert store.finalize_session(session) is False
    assert store.get_active_session() is None
    assert store.increment_session_counter("s1", "interruption_count") is False


def test_increment_rejects_unknown_column(tmp_path):
    store = _make_store(tmp_path)
    store.insert_session(_make_session("s1"))
    with pytest.raises(ValueError):
        store.increment_session_counter("s1", "actual_minutes")


def test_transaction_rolls_back_on_error(tmp_path):
    store = _make_store(tmp_path)
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.add_workspace(Workspace(id="w9", name="Temp", created_at=NOW))
            raise RuntimeError("boom")
    assert store.get_workspace("w9") is None


def test_nested_transactions_join_outer(tmp_path):
    store = _make_store(tmp_path)
    with pytest.raises(RuntimeError):
        with store.transaction():
            with store.transaction():
                store.add_workspace(Workspace(id="w9", name="Temp", created_at=NOW))
            raise RuntimeError("boom")
    assert store.get_workspace("w9") is None


def test_gamification_state_is_a_singleton(tmp_path):
    store = _make_store(tmp_path)
    first = store.get_or_create_gamification_state(NOW)
    second = store.get_or_create_gamification_state(NOW + timedelta(days=1))
    assert first.last_update == NOW
    assert second.last_update == NOW

    first.current_score = 10
    store.save_gamification_state(first)
    assert store.get_or_create_gamification_state(NOW).current_score == 10
    count = store.conn.execute("SELECT COUNT(*) FROM gamification_state").fetchone()[0]
    assert count == 1


def test_execution_events_scoped_by_task_workspace(tmp_path):
    store = _make_store(tmp_path)
    store.add_workspace(Workspace(id="w2", name="Beta", created_at=NOW))
    store.add_task(Task(id="t2", title="Other", workspace_id="w2", updated_at=NOW))
    store.add_execution_event(
        ExecutionEvent(
            id="e1",
            task_id="t1",
            event_type=ExecutionEventType.FAILED,
            failure_reason=FailureReason.MEDO,
            timestamp=NOW,
        )
    )
    store.add_execution_event(
        ExecutionEvent(id="e2", task_id="t2", event_type=ExecutionEventType.DELAYED, timestamp=NOW)
    )

    window = (NOW - timedelta(hours=1), NOW + timedelta(hours=1))
    assert [e.id for e in store.list_execution_events(*window)] == ["e1", "e2"]
    assert [e.id for e in store.list_execution_events(*window, workspace_id="w2")] == ["e2"]
    assert [
        e.id for e in store.list_execution_events(*window, event_types=[ExecutionEventType.FAILED])
    ] == ["e1"]

    grouped = store.execution_events_by_workspace(*window)
    assert grouped["w1"][0].failure_reason == FailureReason.MEDO
    assert [e.id for e in grouped["w2"]] == ["e2"]


def test_replace_energy_plans(tmp_path):
    store = _make_store(tmp_path)
    store.add_workspace(Workspace(id="w2", name="Beta", created_at=NOW))
    week = date(2026, 3, 2)
    store.replace_energy_plans(week, [WeeklyEnergyPlan(week_start=week, workspace_id="w1", planned_percent=60)])
    store.replace_energy_plans(week, [WeeklyEnergyPlan(week_start=week, workspace_id="w2", planned_percent=30)])

    plans = store.list_energy_plans(week, week)
    assert [(p.workspace_id, p.planned_percent) for p in plans] == [("w2", 30)]


def test_review_upsert_keeps_snapshot(tmp_path):
    store = _make_store(tmp_path)
    store.upsert_review(_make_review(next_priority="A", review_snapshot={"score": 3}, action_items=["x"]))
    updated = store.upsert_review(_make_review(id="r2", next_priority="B"))

    assert updated.id == "r1"
    assert updated.next_priority == "B"
    assert updated.review_snapshot == {"score": 3}
    assert updated.action_items == []


def test_list_reviews_newest_first(tmp_path):
    store = _make_store(tmp_path)
    for i, start in enumerate([date(2026, 2, 16), date(2026, 3, 2), date(2026, 2, 23)]):
        store.upsert_review(_make_review(id=f"r{i}", period_start=start))

    reviews = store.list_reviews(ReviewPeriodType.WEEKLY, ALL_WORKSPACES_SCOPE, 2)
    assert [r.period_start for r in reviews] == [date(2026, 3, 2), date(2026, 2, 23)]


def test_project_signals(tmp_path):
    store = _make_store(tmp_path)
    store.add_project(Project(id="p1", workspace_id="w1", title="Launch", last_strategic_at=NOW))
    store.add_task(
        Task(
            id="t9",
            title="Project A",
            workspace_id="w1",
            project_id="p1",
            task_type=TaskType.A,
            updated_at=NOW - timedelta(days=20),
        )
    )

    assert not store.project_has_recent_a_task("p1", NOW - timedelta(days=14))
    assert store.project_has_recent_a_task("p1", NOW - timedelta(days=30))
    assert not store.project_has_recent_session("p1", NOW - timedelta(days=14))

    assert store.set_project_status(["p1"], ProjectStatus.FANTASMA) == 1
    assert store.set_project_status([], ProjectStatus.ATIVO) == 0
    assert store.list_projects(statuses=[ProjectStatus.ATIVO]) == []


def test_decision_event_payload_roundtrip(tmp_path):
    store = _make_store(tmp_path)
    store.add_decision_event(
        StrategicDecisionEvent(
            id="d1",
            event_code="top3_committed",
            signal=DecisionSignal.EXECUTIVA,
            title="Top 3",
            payload={"task_ids": ["t1"]},
            created_at=NOW,
        )
    )
    events = store.list_decision_events("top3_committed")
    assert events[0].payload == {"task_ids": ["t1"]}
    assert store.list_decision_events("other") == []


def test_missing_rows_after_write_raise_storage_error(tmp_path):
    store = _make_store(tmp_path)
    with patch.object(store, "_fetch_one", return_value=None):
        with pytest.raises(StorageError):
            store.get_or_create_gamification_state(NOW)
    with patch.object(store, "get_review", return_value=None):
        with pytest.raises(StorageError):
            store.upsert_review(_make_review())
