"""Tests for the daily execution score."""

from datetime import date, datetime, timedelta, timezone

from execos.engine.score import ExecutionScoreService, compute_execution_score
from execos.models import (
    DayPlanItem,
    DeepWorkSession,
    DeepWorkState,
    ExecutionEvent,
    ExecutionEventType,
    Project,
    Task,
    TaskStatus,
    TaskType,
    Workspace,
)
from execos.storage import SqliteStore

UTC = timezone.utc
DAY = date(2026, 3, 4)
NOW = datetime(2026, 3, 4, 18, 0, tzinfo=UTC)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 4, hour, minute, tzinfo=UTC)


def _clock() -> datetime:
    return NOW


def _make_task(
    task_id: str,
    task_type: TaskType = TaskType.A,
    project_id: str | None = "p1",
    completed_at: datetime | None = None,
    workspace_id: str = "w1",
) -> Task:
    return Task(
        id=task_id,
        title=task_id,
        workspace_id=workspace_id,
        project_id=project_id,
        task_type=task_type,
        status=TaskStatus.FEITO if completed_at else TaskStatus.HOJE,
        completed_at=completed_at,
        updated_at=NOW,
    )


def _make_item(item_id: str, task_id: str, start: datetime, end: datetime) -> DayPlanItem:
    return DayPlanItem(id=item_id, date=DAY, task_id=task_id, start_time=start, end_time=end)


def _make_event(event_id: str, task_id: str, event_type: ExecutionEventType, at: datetime) -> ExecutionEvent:
    return ExecutionEvent(id=event_id, task_id=task_id, event_type=event_type, timestamp=at)


def _make_day():
    tasks = [
        _make_task("a1", completed_at=_at(10, 30)),
        _make_task("a2", project_id=None),
        _make_task("b1", TaskType.B, completed_at=_at(16)),
    ]
    items = [
        _make_item("i1", "a1", _at(9), _at(11)),
        _make_item("i2", "a2", _at(11), _at(12)),
        _make_item("i3", "b1", _at(14), _at(15)),
    ]
    events = [
        _make_event("e1", "a1", ExecutionEventType.COMPLETED, _at(10, 30)),
        _make_event("e2", "a2", ExecutionEventType.DELAYED, _at(12, 30)),
        _make_event("e3", "b1", ExecutionEventType.COMPLETED, _at(16)),
    ]
    sessions = [
        DeepWorkSession(
            id="s1",
            task_id="a1",
            workspace_id="w1",
            project_id="p1",
            started_at=_at(9),
            ended_at=_at(10),
            state=DeepWorkState.COMPLETED,
            actual_minutes=60,
        )
    ]
    return tasks, items, events, sessions


def test_score_components_and_weighting():
    tasks, items, events, sessions = _make_day()
    result = compute_execution_score(DAY, items, events, sessions, {t.id: t for t in tasks}, NOW)
    c = result.components

    assert (c.a_completion.weight, c.a_completion.value, c.a_completion.hits, c.a_completion.total) == (40, 50, 1, 2)
    # Two planned tasks A set the target at 90 minutes
    assert (c.deep_work.value, c.deep_work.hits, c.deep_work.total) == (67, 60, 90)
    # b1 finished after its block ended
    assert (c.punctuality.value, c.punctuality.hits, c.punctuality.total) == (50, 1, 2)
    assert (c.non_reschedule.value, c.non_reschedule.hits, c.non_reschedule.total) == (67, 1, 3)
    assert (c.project_connection.value, c.project_connection.hits, c.project_connection.total) == (100, 2, 2)

    # 20 + 13.33 + 7.5 + 10 + 10
    assert result.score == 61
    assert sum(getattr(c, name).weight for name in c.model_fields) == 100


def test_empty_day_only_earns_non_reschedule():
    result = compute_execution_score(DAY, [], [], [], {}, NOW)
    assert result.score == 15
    assert result.components.a_completion.total == 1
    assert result.components.deep_work.total == 45
    assert result.components.non_reschedule.value == 100


def test_unplanned_task_a_counts_without_a_plan():
    task = _make_task("a9", completed_at=_at(11))
    events = [_make_event("e1", "a9", ExecutionEventType.COMPLETED, _at(11))]

    result = compute_execution_score(DAY, [], events, [], {"a9": task}, NOW)

    assert result.components.a_completion.value == 100
    assert (result.components.a_completion.hits, result.components.a_completion.total) == (1, 1)


def test_active_session_counts_until_now():
    session = DeepWorkSession(id="s1", task_id="a1", workspace_id="w1", started_at=NOW - timedelta(minutes=30))
    result = compute_execution_score(DAY, [], [], [session], {}, NOW)
    assert result.components.deep_work.hits == 30
    assert result.components.deep_work.value == 67


def test_plan_items_outside_workspace_are_ignored():
    tasks, items, events, sessions = _make_day()
    tasks.append(_make_task("x1", workspace_id="w2"))
    items.append(_make_item("i4", "x1", _at(15), _at(16)))

    result = compute_execution_score(
        DAY, items, events, sessions, {t.id: t for t in tasks}, NOW, workspace_id="w1"
    )
    assert result.workspace_id == "w1"
    assert result.components.a_completion.total == 2


def test_service_reads_the_day_from_the_store(tmp_path):
    store = SqliteStore(tmp_path / "execos.db")
    store.add_workspace(Workspace(id="w1", name="Alpha", created_at=NOW))
    store.add_project(Project(id="p1", workspace_id="w1", title="Launch", last_strategic_at=NOW))
    tasks, items, events, sessions = _make_day()
    for task in tasks:
        store.add_task(task)
    for item in items:
        store.add_day_plan_item(item)
    for event in events:
        store.add_execution_event(event)
    for session in sessions:
        store.insert_session(session)
    # Yesterday's activity is outside the window
    store.add_execution_event(_make_event("old", "a2", ExecutionEventType.DELAYED, _at(12) - timedelta(days=1)))

    result = ExecutionScoreService(store, clock=_clock).get_score()

    assert result.date == DAY
    assert result.score == 61
    assert result.components.non_reschedule.total == 3
