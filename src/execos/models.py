"""Core domain models for Execution OS."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ── Enums (values are the persisted strings) ─────────────────


class WorkspaceType(str, Enum):
    EMPRESA = "empresa"
    PESSOAL = "pessoal"
    VIDA = "vida"
    AUTORIDADE = "autoridade"
    GERAL = "geral"  # catch-all inbox front, never part of strategy rollups
    OUTRO = "outro"


class WorkspaceMode(str, Enum):
    EXPANSAO = "expansao"
    MANUTENCAO = "manutencao"
    STANDBY = "standby"


class ProjectStatus(str, Enum):
    ATIVO = "ativo"
    LATENTE = "latente"
    PAUSADO = "pausado"
    FANTASMA = "fantasma"
    CONCLUIDO = "concluido"
    ARQUIVADO = "arquivado"


class TaskType(str, Enum):
    """A = highest strategic impact. B and C are support work."""

    A = "a"
    B = "b"
    C = "c"


class TaskStatus(str, Enum):
    BACKLOG = "backlog"
    HOJE = "hoje"
    ANDAMENTO = "andamento"
    FEITO = "feito"
    ARQUIVADO = "arquivado"


OPEN_TASK_STATUSES = (TaskStatus.BACKLOG, TaskStatus.HOJE, TaskStatus.ANDAMENTO)


class ExecutionKind(str, Enum):
    CONSTRUCAO = "construcao"
    OPERACAO = "operacao"


class BlockType(str, Enum):
    TASK = "task"
    FIXED = "fixed"


class ConfirmationState(str, Enum):
    PENDING = "pending"
    CONFIRMED_DONE = "confirmed_done"
    CONFIRMED_NOT_DONE = "confirmed_not_done"


class DeepWorkState(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    BROKEN = "broken"


class ExecutionEventType(str, Enum):
    COMPLETED = "completed"
    DELAYED = "delayed"
    FAILED = "failed"
    CONFIRMED = "confirmed"


class FailureReason(str, Enum):
    """Human factors behind a delayed or failed task."""

    ENERGIA = "energia"
    MEDO = "medo"
    DISTRACAO = "distracao"
    DEPENDENCIA = "dependencia"
    FALTA_CLAREZA = "falta_clareza"
    FALTA_HABILIDADE = "falta_habilidade"


class GamificationOutcome(str, Enum):
    ON_TIME = "on_time"
    LATE = "late"
    POSTPONED = "postponed"
    NOT_CONFIRMED = "not_confirmed"


class ReviewPeriodType(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class CommitmentLevel(str, Enum):
    BAIXO = "baixo"
    MEDIO = "medio"
    ALTO = "alto"


class FrontHealthStatus(str, Enum):
    FORTE = "forte"
    ESTAVEL = "estavel"
    ATENCAO = "atencao"
    NEGLIGENCIADA = "negligenciada"
    STANDBY = "standby"


class DecisionSignal(str, Enum):
    EXECUTIVA = "executiva"
    RISCO = "risco"
    NEUTRA = "neutra"


class GhostFrontAction(str, Enum):
    REATIVAR = "reativar"
    STANDBY = "standby"
    CRIAR_TAREFA_A = "criar_tarefa_a"


# ── Stored entities ──────────────────────────────────────────


class Workspace(BaseModel):
    """A front: a company or life area that owns projects and tasks."""

    id: str
    name: str
    type: WorkspaceType = WorkspaceType.EMPRESA
    mode: WorkspaceMode = WorkspaceMode.EXPANSAO
    color: str = ""
    created_at: datetime


class Project(BaseModel):
    id: str
    workspace_id: str
    title: str
    status: ProjectStatus = ProjectStatus.ATIVO
    last_strategic_at: datetime
    archived_at: datetime | None = None


class Task(BaseModel):
    id: str
    title: str
    workspace_id: str
    project_id: str | None = None
    task_type: TaskType = TaskType.B
    status: TaskStatus = TaskStatus.BACKLOG
    execution_kind: ExecutionKind = ExecutionKind.OPERACAO
    is_multi_block: bool = False
    priority: int = 3
    waiting_on_person: str | None = None
    due_date: date | None = None
    fixed_time_end: datetime | None = None
    estimated_minutes: int | None = None
    completed_at: datetime | None = None
    archived_at: datetime | None = None
    updated_at: datetime


class DayPlanItem(BaseModel):
    """One scheduled block on a day plan."""

    id: str
    date: date
    task_id: str | None = None
    block_type: BlockType = BlockType.TASK
    start_time: datetime
    end_time: datetime
    confirmation_state: ConfirmationState = ConfirmationState.PENDING


class DeepWorkSession(BaseModel):
    """One exclusive focus block tied to one task."""

    id: str
    task_id: str
    workspace_id: str
    project_id: str | None = None
    started_at: datetime
    ended_at: datetime | None = None
    state: DeepWorkState = DeepWorkState.ACTIVE
    target_minutes: int = 45
    actual_minutes: int = 0
    interruption_count: int = 0
    break_count: int = 0
    notes: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state != DeepWorkState.ACTIVE


class ExecutionEvent(BaseModel):
    """Append-only record of what happened to a task."""

    id: str
    task_id: str | None = None
    event_type: ExecutionEventType
    failure_reason: FailureReason | None = None
    timestamp: datetime


class GamificationState(BaseModel):
    current_score: int = 0
    weekly_score: int = 0
    execution_debt: int = 0
    streak_days: int = 0
    last_update: datetime


class WeeklyEnergyPlan(BaseModel):
    week_start: date
    workspace_id: str
    planned_percent: int


class StrategicReview(BaseModel):
    """A saved weekly/monthly review journal entry."""

    id: str
    period_type: ReviewPeriodType
    period_start: date
    workspace_scope: str
    workspace_id: str | None = None
    next_priority: str | None = None
    strategic_decision: str | None = None
    commitment_level: CommitmentLevel | None = None
    action_items: list[str] = Field(default_factory=list)
    reflection: str | None = None
    review_snapshot: Any = None
    updated_at: datetime


class StrategicDecisionEvent(BaseModel):
    id: str
    workspace_id: str | None = None
    project_id: str | None = None
    task_id: str | None = None
    source: str = "system"
    event_code: str
    signal: DecisionSignal
    title: str
    rationale: str | None = None
    impact_score: int = 0
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


# ── Derived, never stored ────────────────────────────────────


class WorkspaceMinutes(BaseModel):
    workspace_id: str
    name: str
    minutes: int = 0


class WorkspaceMinutesSnapshot(BaseModel):
    """Task-block minutes in a date range, split by front and by nature."""

    workspace_minutes: dict[str, WorkspaceMinutes] = Field(default_factory=dict)
    total_task_minutes: int = 0
    disconnected_minutes: int = 0  # tasks without a project
    construction_minutes: int = 0
    operation_minutes: int = 0

    def minutes_for(self, workspace_id: str) -> int:
        entry = self.workspace_minutes.get(workspace_id)
        return entry.minutes if entry else 0

    @property
    def total_workspace_minutes(self) -> int:
        return sum(entry.minutes for entry in self.workspace_minutes.values())


class FrontHealth(BaseModel):
    status: FrontHealthStatus
    label: str
    reason: str


class ReasonBucket(BaseModel):
    key: str
    label: str
    count: int
    percent: int


class Bottleneck(BaseModel):
    key: str
    label: str
    percent: int  # 0-100


class GhostFront(BaseModel):
    workspace_id: str
    workspace_name: str
    reason: str


class AllocationRow(BaseModel):
    workspace_id: str
    workspace_name: str
    workspace_color: str = ""
    workspace_mode: WorkspaceMode
    planned_percent: int = 0
    actual_percent: int = 0
    delta_percent: int = 0
    actual_hours: float = 0.0


class AllocationTotals(BaseModel):
    planned_percent: int = 0
    actual_hours: float = 0.0
    disconnected_percent: int = 0


class WeeklyAllocation(BaseModel):
    week_start: date
    week_end: date
    rows: list[AllocationRow] = Field(default_factory=list)
    totals: AllocationTotals = Field(default_factory=AllocationTotals)


class PortfolioRow(BaseModel):
    workspace_id: str
    workspace_name: str
    workspace_color: str = ""
    workspace_mode: WorkspaceMode
    hours_invested: float = 0.0
    deep_work_hours: float = 0.0
    completed_a: int = 0
    open_a: int = 0
    active_projects: int = 0
    active_projects_with_traction: int = 0
    project_traction_percent: int = 0
    ghost_projects: int = 0
    stalled_projects: int = 0
    front_health: FrontHealth
    dominant_bottleneck: Bottleneck | None = None


class WorkspacePortfolio(BaseModel):
    week_start: date
    week_end: date
    rows: list[PortfolioRow] = Field(default_factory=list)


class AutoDraft(BaseModel):
    """Rule-engine suggestion for a review journal entry. Never persisted."""

    generated_at: datetime
    confidence: str
    source: str = "rule_engine"
    next_priority: str
    strategic_decision: str
    commitment_level: CommitmentLevel
    action_items: list[str] = Field(default_factory=list)
    reflection: str
    data_used: list[str] = Field(default_factory=list)


class ReviewSummary(BaseModel):
    completed_a: int = 0
    deep_work_minutes: int = 0
    deep_work_hours: float = 0.0
    dominant_workspace: AllocationRow | None = None
    neglected_workspace: AllocationRow | None = None
    ghost_fronts_count: int = 0
    ghost_fronts: list[GhostFront] = Field(default_factory=list)
    dominant_bottleneck: Bottleneck | None = None
    bottleneck_breakdown: list[ReasonBucket] = Field(default_factory=list)
    actual_hours: float = 0.0


class WeeklyReview(BaseModel):
    week_start: date
    week_end: date
    summary: ReviewSummary
    question: str = "O que será prioridade na próxima semana?"
    auto_draft: AutoDraft


class Composition(BaseModel):
    construction_percent: int = 0
    operation_percent: int = 0
    disconnected_percent: int = 0


class MonthlyReview(BaseModel):
    month_start: date
    month_end: date
    rows: list[AllocationRow] = Field(default_factory=list)
    composition: Composition = Field(default_factory=Composition)
    summary: ReviewSummary
    journal: StrategicReview | None = None
    question: str = "Qual realocação de energia vai proteger seu próximo mês estratégico?"


class ReviewJournal(BaseModel):
    period_type: ReviewPeriodType
    period_start: date
    workspace_id: str | None = None
    workspace_scope: str
    review: StrategicReview | None = None


class GhostFrontResolution(BaseModel):
    workspace_id: str
    workspace_name: str
    mode: WorkspaceMode
    action: GhostFrontAction
    created_task_id: str | None = None


class DeepWorkSummary(BaseModel):
    date: date
    workspace_id: str | None = None
    sessions: list[DeepWorkSession] = Field(default_factory=list)
    sessions_count: int = 0
    active_count: int = 0
    completed_count: int = 0
    broken_count: int = 0
    total_minutes: int = 0
    total_target_minutes: int = 0
    total_interruptions: int = 0
    total_breaks: int = 0
    adherence_percent: int = 0


class GamificationOverview(BaseModel):
    current_score: int
    weekly_score: int
    streak_days: int
    execution_debt: int
    last_update: datetime


class WeekScoreBucket(BaseModel):
    week_start: date
    label: str
    completed: int = 0
    delayed: int = 0
    failed: int = 0
    score: int = 0


class TodayExecution(BaseModel):
    completed: int = 0
    delayed: int = 0
    failed: int = 0
    pending_confirmations: int = 0


class CommitmentBreak(BaseModel):
    event_id: str
    at: datetime
    type: str  # "delayed", "failed", "not_confirmed"
    reason: str
    task_id: str | None = None
    task_title: str
    workspace_name: str
    after_top3_commit: bool = False
    committed_at: datetime | None = None
    severity: str
    impact_score: int
    recovery_suggestion: str


class GamificationDetails(GamificationOverview):
    history: list[WeekScoreBucket] = Field(default_factory=list)
    today: TodayExecution = Field(default_factory=TodayExecution)
    streak_execucao_a: int = 0
    streak_deep_work: int = 0
    commitment_breaks: list[CommitmentBreak] = Field(default_factory=list)


class ScoreComponent(BaseModel):
    """One weighted part of the daily execution score.

    ``hits`` over ``total`` is what ``value`` measures: tasks A done over
    planned, Deep Work minutes over target, on-time over completed blocks,
    delayed over confirmations, or project-linked over completed.
    """

    weight: int
    value: int = 0  # 0-100
    hits: int = 0
    total: int = 0


class ExecutionScoreComponents(BaseModel):
    a_completion: ScoreComponent
    deep_work: ScoreComponent
    punctuality: ScoreComponent
    non_reschedule: ScoreComponent
    project_connection: ScoreComponent


class ExecutionScore(BaseModel):
    date: date
    workspace_id: str | None = None
    score: int = 0
    components: ExecutionScoreComponents
