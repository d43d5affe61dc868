"""Front health — one status per workspace, from four signals.

First match wins:

1. standby mode          → standby (watched, not pushed)
2. traction + task A     → forte
3. traction only         → estavel ("tração parcial")
4. task A only           → estavel ("tração por execução")
5. active projects only  → atencao
6. nothing               → negligenciada

Project traction and task-A execution are each enough for a non-negative
read on their own.
"""

from __future__ import annotations

from execos.models import FrontHealth, FrontHealthStatus, WorkspaceMode

STANDBY = FrontHealth(
    status=FrontHealthStatus.STANDBY,
    label="Standby",
    reason="Frente em standby: monitorada, sem cobrança de execução.",
)
STRONG = FrontHealth(
    status=FrontHealthStatus.FORTE,
    label="Tração forte",
    reason="Projeto ativo com tração recente e tarefa A ativa na semana.",
)
PARTIAL_TRACTION = FrontHealth(
    status=FrontHealthStatus.ESTAVEL,
    label="Tração parcial",
    reason="Projeto ativo com tração recente, mas sem sinal de tarefa A na semana.",
)
EXECUTION_TRACTION = FrontHealth(
    status=FrontHealthStatus.ESTAVEL,
    label="Tração por execução",
    reason="Sem projeto ativo com tração, porém com tarefa A ativa na semana.",
)
ATTENTION = FrontHealth(
    status=FrontHealthStatus.ATENCAO,
    label="Atenção",
    reason="Projetos ativos sem tração nos últimos 14 dias.",
)
NEGLECTED = FrontHealth(
    status=FrontHealthStatus.NEGLIGENCIADA,
    label="Negligenciada",
    reason="Sem projeto ativo com tração e sem tarefa A em execução nesta semana.",
)


def classify_front_health(
    workspace_mode: WorkspaceMode,
    active_projects: int,
    active_projects_with_traction: int,
    has_task_a_signal: bool,
) -> FrontHealth:
    if workspace_mode == WorkspaceMode.STANDBY:
        result = STANDBY
    elif active_projects_with_traction > 0 and has_task_a_signal:
        result = STRONG
    elif active_projects_with_traction > 0:
        result = PARTIAL_TRACTION
    elif has_task_a_signal:
        result = EXECUTION_TRACTION
    elif active_projects > 0:
        result = ATTENTION
    else:
        result = NEGLECTED
    return result.model_copy()
