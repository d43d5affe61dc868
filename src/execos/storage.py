"""SQLite-backed relational store for Execution OS.

The engine treats the store as an external collaborator: it reads rows, writes
rows, and trusts the store for durability. This adapter is the smallest thing
that honours that contract — plus the two invariants the engine cannot keep
on its own:

- at most one active deep-work session (partial unique index), and
- exactly one gamification state row (CHECK on a fixed key).

Every timestamp is stored as a fixed-width UTC ISO string, so SQL range
comparisons on TEXT columns order correctly.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Sequence, TypeVar

import structlog
from pydantic import BaseModel

from execos.errors import StorageError
from execos.models import (
    DayPlanItem,
    DeepWorkSession,
    ExecutionEvent,
    ExecutionEventType,
    GamificationState,
    Project,
    ProjectStatus,
    ReviewPeriodType,
    StrategicDecisionEvent,
    StrategicReview,
    Task,
    WeeklyEnergyPlan,
    Workspace,
    WorkspaceMode,
    WorkspaceType,
)
from execos.timeutils import ensure_utc

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

ALL_WORKSPACES_SCOPE = "__all__"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS workspaces (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    type        TEXT NOT NULL DEFAULT 'empresa',
    mode        TEXT NOT NULL DEFAULT 'expansao',
    color       TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS projects (
    id                  TEXT PRIMARY KEY,
    workspace_id        TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
    title               TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'ativo',
    last_strategic_at   TEXT NOT NULL,
    archived_at         TEXT
);

CREATE TABLE IF NOT EXISTS tasks (
    id                  TEXT PRIMARY KEY,
    title               TEXT NOT NULL,
    workspace_id        TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
    project_id          TEXT REFERENCES projects(id) ON DELETE SET NULL,
    task_type           TEXT NOT NULL DEFAULT 'b',
    status              TEXT NOT NULL DEFAULT 'backlog',
    execution_kind      TEXT NOT NULL DEFAULT 'operacao',
    is_multi_block      INTEGER NOT NULL DEFAULT 0,
    priority            INTEGER NOT NULL DEFAULT 3,
    waiting_on_person   TEXT,
    due_date            TEXT,
    fixed_time_end      TEXT,
    estimated_minutes   INTEGER,
    completed_at        TEXT,
    archived_at         TEXT,
    updated_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS day_plan_items (
    id                  TEXT PRIMARY KEY,
    date                TEXT NOT NULL,
    task_id             TEXT REFERENCES tasks(id) ON DELETE SET NULL,
    block_type          TEXT NOT NULL DEFAULT 'task',
    start_time          TEXT NOT NULL,
    end_time            TEXT NOT NULL,
    confirmation_state  TEXT NOT NULL DEFAULT 'pending'
);

CREATE TABLE IF NOT EXISTS deep_work_sessions (
    id                  TEXT PRIMARY KEY,
    task_id             TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
    workspace_id        TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
    project_id          TEXT REFERENCES projects(id) ON DELETE SET NULL,
    started_at          TEXT NOT NULL,
    ended_at            TEXT,
    state               TEXT NOT NULL DEFAULT 'active',
    target_minutes      INTEGER NOT NULL DEFAULT 45,
    actual_minutes      INTEGER NOT NULL DEFAULT 0,
    interruption_count  INTEGER NOT NULL DEFAULT 0,
    break_count         INTEGER NOT NULL DEFAULT 0,
    notes               TEXT
);

-- One active session system-wide.
CREATE UNIQUE INDEX IF NOT EXISTS deep_work_one_active
    ON deep_work_sessions(state) WHERE state = 'active';

CREATE TABLE IF NOT EXISTS execution_events (
    id              TEXT PRIMARY KEY,
    task_id         TEXT REFERENCES tasks(id) ON DELETE SET NULL,
    event_type      TEXT NOT NULL,
    failure_reason  TEXT,
    timestamp       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS gamification_state (
    id              INTEGER PRIMARY KEY CHECK (id = 1),
    current_score   INTEGER NOT NULL DEFAULT 0,
    weekly_score    INTEGER NOT NULL DEFAULT 0,
    execution_debt  INTEGER NOT NULL DEFAULT 0,
    streak_days     INTEGER NOT NULL DEFAULT 0,
    last_update     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS weekly_energy_plans (
    week_start      TEXT NOT NULL,
    workspace_id    TEXT NOT NULL REFERENCES workspaces(id) ON DELETE CASCADE,
    planned_percent INTEGER NOT NULL,
    PRIMARY KEY (week_start, workspace_id)
);

CREATE TABLE IF NOT EXISTS strategic_reviews (
    id                  TEXT PRIMARY KEY,
    period_type         TEXT NOT NULL,
    period_start        TEXT NOT NULL,
    workspace_scope     TEXT NOT NULL DEFAULT '__all__',
    workspace_id        TEXT REFERENCES workspaces(id) ON DELETE SET NULL,
    next_priority       TEXT,
    strategic_decision  TEXT,
    commitment_level    TEXT,
    action_items        TEXT,
    reflection          TEXT,
    review_snapshot     TEXT,
    updated_at          TEXT NOT NULL,
    UNIQUE (period_type, period_start, workspace_scope)
);

CREATE TABLE IF NOT EXISTS strategic_decision_events (
    id              TEXT PRIMARY KEY,
    workspace_id    TEXT,
    project_id      TEXT,
    task_id         TEXT,
    source          TEXT NOT NULL DEFAULT 'system',
    event_code      TEXT NOT NULL,
    signal          TEXT NOT NULL,
    title           TEXT NOT NULL,
    rationale       TEXT,
    impact_score    INTEGER NOT NULL DEFAULT 0,
    payload         TEXT,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tasks_workspace      ON tasks(workspace_id);
CREATE INDEX IF NOT EXISTS idx_projects_workspace   ON projects(workspace_id);
CREATE INDEX IF NOT EXISTS idx_day_plan_date        ON day_plan_items(date);
CREATE INDEX IF NOT EXISTS idx_sessions_started     ON deep_work_sessions(workspace_id, started_at);
CREATE INDEX IF NOT EXISTS idx_events_timestamp     ON execution_events(timestamp);
CREATE INDEX IF NOT EXISTS idx_decisions_code       ON strategic_decision_events(event_code, created_at);
"""


def new_id() -> str:
    return str(uuid.uuid4())


def _ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%f") + "+00:00"


def _day(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _encode(value: Any) -> Any:
    """Python value → SQLite column value."""
    if isinstance(value, datetime):
        return _ts(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Enum):
        return value.value
    return value


class SqliteStore:
    """Data-access layer over one SQLite database. All SQL lives here."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        self._depth = 0
        if self.db_path != ":memory:":
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None: we issue BEGIN/COMMIT ourselves.
        self.conn = sqlite3.connect(
            str(Path(self.db_path).expanduser()) if self.db_path != ":memory:" else ":memory:",
            check_same_thread=False,
            isolation_level=None,
        )
        self.conn.row_factory = sqlite3.Row
        if self.db_path != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(SCHEMA_SQL)
        logger.info("store_opened", path=self.db_path)

    def close(self) -> None:
        self.conn.close()

    # ── Transactions ──────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serializable write section. Nested calls join the outer transaction."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self.conn
                finally:
                    self._depth -= 1
                return

            self.conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            else:
                self.conn.execute("COMMIT")
            finally:
                self._depth = 0

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self.conn.execute(sql, [_encode(p) for p in params])

    def _insert(self, table: str, values: dict[str, Any]) -> None:
        columns = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        self._execute(f"INSERT INTO {table} ({columns}) VALUES ({marks})", list(values.values()))

    def _fetch(self, model: type[M], sql: str, params: Sequence[Any] = (), json_fields: tuple[str, ...] = ()) -> list[M]:
        rows = self._execute(sql, params).fetchall()
        return [self._to_model(model, r, json_fields) for r in rows]

    def _fetch_one(self, model: type[M], sql: str, params: Sequence[Any] = (), json_fields: tuple[str, ...] = ()) -> M | None:
        row = self._execute(sql, params).fetchone()
        return self._to_model(model, row, json_fields) if row else None

    @staticmethod
    def _to_model(model: type[M], row: sqlite3.Row, json_fields: tuple[str, ...]) -> M:
        data = dict(row)
        for name in json_fields:
            raw = data.get(name)
            data[name] = json.loads(raw) if raw else None
        return model.model_validate({k: v for k, v in data.items() if v is not None})

    # ── Workspaces ────────────────────────────────────────────

    def add_workspace(self, workspace: Workspace) -> Workspace:
        self._insert("workspaces", workspace.model_dump())
        return workspace

    def get_workspace(self, workspace_id: str) -> Workspace | None:
        return self._fetch_one(Workspace, "SELECT * FROM workspaces WHERE id = ?", (workspace_id,))

    def list_workspaces(
        self,
        workspace_id: str | None = None,
        include_general: bool = False,
    ) -> list[Workspace]:
        """Workspaces in creation order. The ``geral`` inbox front is skipped by default."""
        sql = "SELECT * FROM workspaces WHERE 1 = 1"
        params: list[Any] = []
        if not include_general:
            sql += " AND type != ?"
            params.append(WorkspaceType.GERAL)
        if workspace_id is not None:
            sql += " AND id = ?"
            params.append(workspace_id)
        sql += " ORDER BY created_at, id"
        return self._fetch(Workspace, sql, params)

    def set_workspace_mode(self, workspace_id: str, mode: WorkspaceMode) -> None:
        self._execute("UPDATE workspaces SET mode = ? WHERE id = ?", (mode, workspace_id))

    # ── Projects ──────────────────────────────────────────────

    def add_project(self, project: Project) -> Project:
        self._insert("projects", project.model_dump())
        return project

    def get_project(self, project_id: str) -> Project | None:
        return self._fetch_one(Project, "SELECT * FROM projects WHERE id = ?", (project_id,))

    def list_projects(
        self,
        workspace_id: str | None = None,
        statuses: Sequence[ProjectStatus] | None = None,
    ) -> list[Project]:
        """Non-archived projects, optionally filtered by front and status."""
        sql = "SELECT * FROM projects WHERE archived_at IS NULL"
        params: list[Any] = []
        if workspace_id is not None:
            sql += " AND workspace_id = ?"
            params.append(workspace_id)
        if statuses:
            sql += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(statuses)
        return self._fetch(Project, sql + " ORDER BY id", params)

    def touch_project(self, project_id: str, at: datetime) -> None:
        """Mark strategic activity on a project (feeds traction)."""
        self._execute("UPDATE projects SET last_strategic_at = ? WHERE id = ?", (at, project_id))

    def set_project_status(self, project_ids: Sequence[str], status: ProjectStatus) -> int:
        if not project_ids:
            return 0
        marks = ", ".join("?" for _ in project_ids)
        cur = self._execute(
            f"UPDATE projects SET status = ? WHERE id IN ({marks})",
            [status, *project_ids],
        )
        return cur.rowcount

    def project_has_recent_a_task(self, project_id: str, since: datetime) -> bool:
        row = self._execute(
            "SELECT 1 FROM tasks WHERE project_id = ? AND task_type = 'a' "
            "AND archived_at IS NULL AND updated_at >= ? LIMIT 1",
            (project_id, since),
        ).fetchone()
        return row is not None

    def project_has_recent_session(self, project_id: str, since: datetime) -> bool:
        row = self._execute(
            "SELECT 1 FROM deep_work_sessions WHERE project_id = ? AND started_at >= ? LIMIT 1",
            (project_id, since),
        ).fetchone()
        return row is not None

    # ── Tasks ─────────────────────────────────────────────────

    def add_task(self, task: Task) -> Task:
        self._insert("tasks", task.model_dump())
        return task

    def get_task(self, task_id: str) -> Task | None:
        return self._fetch_one(Task, "SELECT * FROM tasks WHERE id = ?", (task_id,))

    def save_task(self, task: Task) -> Task:
        data = task.model_dump()
        task_id = data.pop("id")
        assignments = ", ".join(f"{k} = ?" for k in data)
        self._execute(f"UPDATE tasks SET {assignments} WHERE id = ?", [*data.values(), task_id])
        return task

    def list_tasks(self, workspace_id: str | None = None, include_archived: bool = False) -> list[Task]:
        sql = "SELECT * FROM tasks WHERE 1 = 1"
        params: list[Any] = []
        if not include_archived:
            sql += " AND archived_at IS NULL"
        if workspace_id is not None:
            sql += " AND workspace_id = ?"
            params.append(workspace_id)
        return self._fetch(Task, sql + " ORDER BY id", params)

    # ── Day plans ─────────────────────────────────────────────

    def add_day_plan_item(self, item: DayPlanItem) -> DayPlanItem:
        self._insert("day_plan_items", item.model_dump())
        return item

    def list_day_plan_items(self, start: date, end: date) -> list[DayPlanItem]:
        return self._fetch(
            DayPlanItem,
            "SELECT * FROM day_plan_items WHERE date >= ? AND date <= ? ORDER BY date, start_time",
            (_day(start), _day(end)),
        )

    def count_pending_confirmations(self, day: date) -> int:
        row = self._execute(
            "SELECT COUNT(*) FROM day_plan_items WHERE date = ? AND confirmation_state = 'pending'",
            (_day(day),),
        ).fetchone()
        return int(row[0])

    # ── Deep work sessions ────────────────────────────────────

    def insert_session(self, session: DeepWorkSession) -> DeepWorkSession:
        """Raises sqlite3.IntegrityError if another session is already active."""
        self._insert("deep_work_sessions", session.model_dump())
        return session

    def get_session(self, session_id: str) -> DeepWorkSession | None:
        return self._fetch_one(DeepWorkSession, "SELECT * FROM deep_work_sessions WHERE id = ?", (session_id,))

    def get_active_session(self, workspace_id: str | None = None) -> DeepWorkSession | None:
        sql = "SELECT * FROM deep_work_sessions WHERE state = 'active'"
        params: list[Any] = []
        if workspace_id is not None:
            sql += " AND workspace_id = ?"
            params.append(workspace_id)
        return self._fetch_one(DeepWorkSession, sql + " ORDER BY started_at DESC LIMIT 1", params)

    def list_sessions(
        self,
        start: datetime,
        end: datetime,
        workspace_id: str | None = None,
    ) -> list[DeepWorkSession]:
        """Sessions started in [start, end], newest first."""
        sql = "SELECT * FROM deep_work_sessions WHERE started_at >= ? AND started_at <= ?"
        params: list[Any] = [start, end]
        if workspace_id is not None:
            sql += " AND workspace_id = ?"
            params.append(workspace_id)
        return self._fetch(DeepWorkSession, sql + " ORDER BY started_at DESC", params)

    def increment_session_counter(self, session_id: str, column: str) -> bool:
        """Bump a counter on an active session. False when the session is not active."""
        if column not in ("interruption_count", "break_count"):
            raise ValueError(f"Unknown session counter: {column}")
        cur = self._execute(
            f"UPDATE deep_work_sessions SET {column} = {column} + 1 WHERE id = ? AND state = 'active'",
            (session_id,),
        )
        return cur.rowcount == 1

    def finalize_session(self, session: DeepWorkSession) -> bool:
        """Write the terminal fields. Only succeeds once per session."""
        cur = self._execute(
            "UPDATE deep_work_sessions SET ended_at = ?, actual_minutes = ?, state = ?, "
            "break_count = ?, notes = ? WHERE id = ? AND state = 'active'",
            (
                session.ended_at,
                session.actual_minutes,
                session.state,
                session.break_count,
                session.notes,
                session.id,
            ),
        )
        return cur.rowcount == 1

    # ── Execution events ──────────────────────────────────────

    def add_execution_event(self, event: ExecutionEvent) -> ExecutionEvent:
        self._insert("execution_events", event.model_dump())
        return event

    def list_execution_events(
        self,
        start: datetime,
        end: datetime,
        workspace_id: str | None = None,
        event_types: Sequence[ExecutionEventType] | None = None,
    ) -> list[ExecutionEvent]:
        """Events in [start, end] oldest first, optionally scoped to a front via their task."""
        sql = (
            "SELECT e.* FROM execution_events e LEFT JOIN tasks t ON t.id = e.task_id "
            "WHERE e.timestamp >= ? AND e.timestamp <= ?"
        )
        params: list[Any] = [start, end]
        if workspace_id is not None:
            sql += " AND t.workspace_id = ?"
            params.append(workspace_id)
        if event_types:
            sql += f" AND e.event_type IN ({', '.join('?' for _ in event_types)})"
            params.extend(event_types)
        return self._fetch(ExecutionEvent, sql + " ORDER BY e.timestamp, e.id", params)

    def execution_events_by_workspace(self, start: datetime, end: datetime) -> dict[str, list[ExecutionEvent]]:
        rows = self._execute(
            "SELECT e.*, t.workspace_id AS _workspace_id FROM execution_events e "
            "JOIN tasks t ON t.id = e.task_id "
            "WHERE e.timestamp >= ? AND e.timestamp <= ? ORDER BY e.timestamp, e.id",
            (start, end),
        ).fetchall()
        grouped: dict[str, list[ExecutionEvent]] = {}
        for row in rows:
            data = dict(row)
            workspace_id = data.pop("_workspace_id")
            event = ExecutionEvent.model_validate({k: v for k, v in data.items() if v is not None})
            grouped.setdefault(workspace_id, []).append(event)
        return grouped

    # ── Gamification ──────────────────────────────────────────

    def get_or_create_gamification_state(self, now: datetime) -> GamificationState:
        """Idempotent: the CHECK (id = 1) key makes concurrent creates collapse to one row."""
        with self.transaction():
            self._execute(
                "INSERT OR IGNORE INTO gamification_state (id, last_update) VALUES (1, ?)",
                (now,),
            )
            state = self._fetch_one(GamificationState, "SELECT * FROM gamification_state WHERE id = 1")
        if state is None:
            raise StorageError("Gamification state row is missing after create")
        return state

    def save_gamification_state(self, state: GamificationState) -> GamificationState:
        self._execute(
            "UPDATE gamification_state SET current_score = ?, weekly_score = ?, "
            "execution_debt = ?, streak_days = ?, last_update = ? WHERE id = 1",
            (
                state.current_score,
                state.weekly_score,
                state.execution_debt,
                state.streak_days,
                state.last_update,
            ),
        )
        return state

    # ── Weekly energy plans ───────────────────────────────────

    def list_energy_plans(
        self,
        start: date,
        end: date,
        workspace_id: str | None = None,
    ) -> list[WeeklyEnergyPlan]:
        sql = "SELECT * FROM weekly_energy_plans WHERE week_start >= ? AND week_start <= ?"
        params: list[Any] = [_day(start), _day(end)]
        if workspace_id is not None:
            sql += " AND workspace_id = ?"
            params.append(workspace_id)
        return self._fetch(WeeklyEnergyPlan, sql + " ORDER BY week_start, workspace_id", params)

    def replace_energy_plans(self, week_start: date, plans: Sequence[WeeklyEnergyPlan]) -> None:
        """Swap the whole week's plan in one transaction."""
        with self.transaction():
            self._execute("DELETE FROM weekly_energy_plans WHERE week_start = ?", (_day(week_start),))
            for plan in plans:
                self._insert("weekly_energy_plans", plan.model_dump())

    # ── Strategic reviews ─────────────────────────────────────

    _REVIEW_JSON = ("action_items", "review_snapshot")
    _REVIEW_KEEP = ("review_snapshot", "commitment_level")

    def get_review(
        self,
        period_type: ReviewPeriodType,
        period_start: date,
        workspace_scope: str,
    ) -> StrategicReview | None:
        return self._fetch_one(
            StrategicReview,
            "SELECT * FROM strategic_reviews WHERE period_type = ? AND period_start = ? AND workspace_scope = ?",
            (period_type, _day(period_start), workspace_scope),
            json_fields=self._REVIEW_JSON,
        )

    def upsert_review(self, review: StrategicReview) -> StrategicReview:
        """Last writer wins on (period_type, period_start, workspace_scope)."""
        data = review.model_dump()
        data["action_items"] = json.dumps(data["action_items"])
        data["review_snapshot"] = (
            json.dumps(data["review_snapshot"], default=str) if data["review_snapshot"] is not None else None
        )
        columns = list(data)
        updates = [c for c in columns if c not in ("id", "period_type", "period_start", "workspace_scope")]
        # Keep the stored snapshot and commitment when the caller sends none.
        update_sql = ", ".join(
            f"{c} = COALESCE(excluded.{c}, strategic_reviews.{c})" if c in self._REVIEW_KEEP else f"{c} = excluded.{c}"
            for c in updates
        )
        self._execute(
            f"INSERT INTO strategic_reviews ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT(period_type, period_start, workspace_scope) DO UPDATE SET {update_sql}",
            list(data.values()),
        )
        stored = self.get_review(review.period_type, review.period_start, review.workspace_scope)
        if stored is None:
            raise StorageError(f"Review {review.period_type.value} {review.period_start} was not stored")
        return stored

    def list_reviews(
        self,
        period_type: ReviewPeriodType,
        workspace_scope: str,
        limit: int,
    ) -> list[StrategicReview]:
        return self._fetch(
            StrategicReview,
            "SELECT * FROM strategic_reviews WHERE period_type = ? AND workspace_scope = ? "
            "ORDER BY period_start DESC LIMIT ?",
            (period_type, workspace_scope, limit),
            json_fields=self._REVIEW_JSON,
        )

    # ── Strategic decision events ─────────────────────────────

    def add_decision_event(self, event: StrategicDecisionEvent) -> StrategicDecisionEvent:
        data = event.model_dump()
        data["payload"] = json.dumps(data["payload"], default=str)
        self._insert("strategic_decision_events", data)
        return event

    def list_decision_events(
        self,
        event_code: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 500,
    ) -> list[StrategicDecisionEvent]:
        """Newest first."""
        sql = "SELECT * FROM strategic_decision_events WHERE 1 = 1"
        params: list[Any] = []
        if event_code is not None:
            sql += " AND event_code = ?"
            params.append(event_code)
        if start is not None:
            sql += " AND created_at >= ?"
            params.append(start)
        if end is not None:
            sql += " AND created_at <= ?"
            params.append(end)
        sql += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        return self._fetch(StrategicDecisionEvent, sql, params, json_fields=("payload",))
