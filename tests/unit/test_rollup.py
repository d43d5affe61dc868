"""Tests for allocation rollups."""

from datetime import date, datetime, timedelta, timezone

from execos.engine.rollup import (
    allocation_totals,
    average_planned_percent,
    build_allocation_rows,
    collect_workspace_minutes,
    composition,
    deep_work_minutes,
    dominant_workspace,
    neglected_workspace,
)
from execos.models import (
    BlockType,
    DayPlanItem,
    DeepWorkSession,
    DeepWorkState,
    ExecutionKind,
    Task,
    WeeklyEnergyPlan,
    Workspace,
)

UTC = timezone.utc
DAY = date(2026, 3, 3)
NOW = datetime(2026, 3, 3, 12, 0, tzinfo=UTC)


def _make_workspace(ws_id: str, name: str) -> Workspace:
    return Workspace(id=ws_id, name=name, created_at=NOW)


def _make_task(
    task_id: str,
    workspace_id: str,
    project_id: str | None = "p1",
    kind: ExecutionKind = ExecutionKind.OPERACAO,
) -> Task:
    return Task(
        id=task_id,
        title=task_id,
        workspace_id=workspace_id,
        project_id=project_id,
        execution_kind=kind,
        updated_at=NOW,
    )


def _make_item(item_id: str, task_id: str | None, minutes: int, block_type: BlockType = BlockType.TASK) -> DayPlanItem:
    start = datetime(2026, 3, 3, 9, 0, tzinfo=UTC)
    return DayPlanItem(
        id=item_id,
        date=DAY,
        task_id=task_id,
        block_type=block_type,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
    )


def _fixture():
    workspaces = [_make_workspace("w1", "Alpha"), _make_workspace("w2", "Beta"), _make_workspace("w3", "Gamma")]
    tasks = {
        "t1": _make_task("t1", "w1", kind=ExecutionKind.CONSTRUCAO),
        "t2": _make_task("t2", "w2", project_id=None),
        "t3": _make_task("t3", "w1"),
    }
    items = [
        _make_item("i1", "t1", 120),
        _make_item("i2", "t2", 60),
        _make_item("i3", "t3", 60),
        _make_item("i4", None, 90),  # no task
        _make_item("i5", "t1", 45, BlockType.FIXED),  # not a task block
    ]
    return workspaces, tasks, items


def test_collect_only_counts_task_blocks():
    workspaces, tasks, items = _fixture()
    snapshot = collect_workspace_minutes(items, tasks, {w.id: w for w in workspaces})

    assert snapshot.total_task_minutes == 240
    assert snapshot.minutes_for("w1") == 180
    assert snapshot.minutes_for("w2") == 60
    assert snapshot.minutes_for("w3") == 0
    assert snapshot.construction_minutes == 120
    assert snapshot.operation_minutes == 120
    assert snapshot.disconnected_minutes == 60
    assert snapshot.workspace_minutes["w1"].name == "Alpha"


def test_collect_scoped_to_one_workspace():
    workspaces, tasks, items = _fixture()
    snapshot = collect_workspace_minutes(items, tasks, {w.id: w for w in workspaces}, workspace_id="w2")
    assert snapshot.total_task_minutes == 60
    assert list(snapshot.workspace_minutes) == ["w2"]


def test_allocation_rows_and_totals():
    workspaces, tasks, items = _fixture()
    snapshot = collect_workspace_minutes(items, tasks, {w.id: w for w in workspaces})
    rows = build_allocation_rows(workspaces, {"w1": 50, "w2": 40}, snapshot)

    alpha, beta, gamma = rows
    assert (alpha.planned_percent, alpha.actual_percent, alpha.delta_percent) == (50, 75, 25)
    assert (beta.planned_percent, beta.actual_percent, beta.delta_percent) == (40, 25, -15)
    assert (gamma.planned_percent, gamma.actual_percent) == (0, 0)
    assert alpha.actual_hours == 3.0

    totals = allocation_totals(rows, snapshot)
    assert totals.planned_percent == 90
    assert totals.actual_hours == 4.0
    assert totals.disconnected_percent == 25


def test_rows_with_no_minutes_are_zero():
    workspaces, tasks, _ = _fixture()
    snapshot = collect_workspace_minutes([], tasks, {w.id: w for w in workspaces})
    rows = build_allocation_rows(workspaces, {"w1": 30}, snapshot)
    assert all(row.actual_percent == 0 for row in rows)
    assert rows[0].delta_percent == -30
    assert allocation_totals(rows, snapshot).disconnected_percent == 0


def test_dominant_and_neglected():
    workspaces, tasks, items = _fixture()
    snapshot = collect_workspace_minutes(items, tasks, {w.id: w for w in workspaces})
    rows = build_allocation_rows(workspaces, {"w1": 50, "w2": 40}, snapshot)

    assert dominant_workspace(rows).workspace_id == "w1"
    # Gamma has the lowest actual share but no plan, so it is not "neglected"
    assert neglected_workspace(rows).workspace_id == "w2"
    assert neglected_workspace(build_allocation_rows(workspaces, {}, snapshot)) is None
    assert dominant_workspace([]) is None


def test_average_planned_percent_rounds():
    plans = [
        WeeklyEnergyPlan(week_start=date(2026, 3, 2), workspace_id="w1", planned_percent=40),
        WeeklyEnergyPlan(week_start=date(2026, 3, 9), workspace_id="w1", planned_percent=45),
        WeeklyEnergyPlan(week_start=date(2026, 3, 9), workspace_id="w2", planned_percent=20),
    ]
    assert average_planned_percent(plans) == {"w1": 43, "w2": 20}


def test_composition_bases():
    workspaces, tasks, items = _fixture()
    snapshot = collect_workspace_minutes(items, tasks, {w.id: w for w in workspaces})
    comp = composition(snapshot)
    assert comp.construction_percent == 50
    assert comp.operation_percent == 50
    assert comp.disconnected_percent == 25

    empty = composition(collect_workspace_minutes([], tasks, {}))
    assert (empty.construction_percent, empty.operation_percent, empty.disconnected_percent) == (0, 0, 0)


def test_deep_work_minutes_counts_active_sessions_live():
    sessions = [
        DeepWorkSession(
            id="s1",
            task_id="t1",
            workspace_id="w1",
            started_at=NOW - timedelta(hours=3),
            state=DeepWorkState.COMPLETED,
            actual_minutes=50,
        ),
        DeepWorkSession(id="s2", task_id="t1", workspace_id="w1", started_at=NOW - timedelta(minutes=20)),
    ]
    assert deep_work_minutes(sessions, NOW) == 70


def test_actual_percents_never_sum_past_100():
    workspaces = [_make_workspace("w1", "Alpha"), _make_workspace("w2", "Beta"), _make_workspace("w3", "Gamma")]
    tasks = {"t1": _make_task("t1", "w1"), "t2": _make_task("t2", "w2"), "t3": _make_task("t3", "w3")}
    items = [_make_item("i1", "t1", 15), _make_item("i2", "t2", 15), _make_item("i3", "t3", 90)]
    snapshot = collect_workspace_minutes(items, tasks, {w.id: w for w in workspaces})

    rows = build_allocation_rows(workspaces, {}, snapshot)

    # 12.5 / 12.5 / 75: the single leftover point goes to the first tied row
    assert [row.actual_percent for row in rows] == [13, 12, 75]
    assert sum(row.actual_percent for row in rows) == 100


def test_composition_split_sums_to_100():
    workspaces = [_make_workspace("w1", "Alpha")]
    tasks = {
        "t1": _make_task("t1", "w1", kind=ExecutionKind.CONSTRUCAO),
        "t2": _make_task("t2", "w1"),
    }
    snapshot = collect_workspace_minutes(
        [_make_item("i1", "t1", 101), _make_item("i2", "t2", 99)], tasks, {w.id: w for w in workspaces}
    )
    comp = composition(snapshot)
    assert comp.construction_percent + comp.operation_percent == 100
