"""Weekly auto-draft — a suggested review, built from a fixed rule table.

Each action rule is ``(applies, action, data_used)``. Rules are evaluated in
order; every rule that applies contributes one action item and one line of
evidence. The draft is a suggestion only and is never stored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, NamedTuple

from pydantic import BaseModel

from execos.models import AutoDraft, Bottleneck, CommitmentLevel

MAX_ACTIONS = 6
A_TARGET = 3
DEEP_WORK_TARGET_HOURS = 4
DRAFT_SOURCE = "rule_engine"


class DraftInputs(BaseModel):
    completed_a: int = 0
    deep_work_hours: float = 0.0
    dominant_workspace_name: str | None = None
    neglected_workspace_name: str | None = None
    ghost_fronts_count: int = 0
    dominant_bottleneck: Bottleneck | None = None


class ActionRule(NamedTuple):
    applies: Callable[[DraftInputs], bool]
    action: Callable[[DraftInputs], str]
    data_used: Callable[[DraftInputs], str]


def _hours(value: float) -> str:
    # 2.0 → "2", 2.5 → "2.5"
    return f"{value:g}"


ACTION_RULES: list[ActionRule] = [
    ActionRule(
        lambda d: d.completed_a < A_TARGET,
        lambda d: "Garantir 3 tarefas A concluídas até sexta.",
        lambda d: f"Tarefas A concluídas {d.completed_a}",
    ),
    ActionRule(
        lambda d: d.completed_a >= A_TARGET,
        lambda d: "Manter cadência de tarefas A sem reagendar.",
        lambda d: f"Tarefas A concluídas {d.completed_a}",
    ),
    ActionRule(
        lambda d: d.deep_work_hours < DEEP_WORK_TARGET_HOURS,
        lambda d: "Reservar no mínimo 4 blocos de Deep Work de 45 min.",
        lambda d: f"Deep Work {_hours(d.deep_work_hours)}h",
    ),
    ActionRule(
        lambda d: d.deep_work_hours >= DEEP_WORK_TARGET_HOURS,
        lambda d: "Proteger blocos de Deep Work já performando.",
        lambda d: f"Deep Work {_hours(d.deep_work_hours)}h",
    ),
    ActionRule(
        lambda d: d.neglected_workspace_name is not None,
        lambda d: f"Reequilibrar energia para a frente {d.neglected_workspace_name}.",
        lambda d: f"Frente negligenciada {d.neglected_workspace_name}",
    ),
    ActionRule(
        lambda d: d.ghost_fronts_count > 0,
        lambda d: f"Resolver {d.ghost_fronts_count} frente(s) fantasma com decisão explícita.",
        lambda d: f"Frentes fantasma {d.ghost_fronts_count}",
    ),
    ActionRule(
        lambda d: d.dominant_bottleneck is not None,
        lambda d: f"Mitigar gargalo dominante {d.dominant_bottleneck.label} ({d.dominant_bottleneck.percent}%).",
        lambda d: f"Gargalo {d.dominant_bottleneck.label} {d.dominant_bottleneck.percent}%",
    ),
]

# First match wins.
DECISION_RULES: list[tuple[Callable[[DraftInputs], bool], Callable[[DraftInputs], str]]] = [
    (
        lambda d: d.ghost_fronts_count > 0,
        lambda d: "Reduzir dispersão: resolver frentes fantasma antes de abrir novas iniciativas.",
    ),
    (
        lambda d: d.neglected_workspace_name is not None,
        lambda d: f"Rebalancear portfólio: subir energia na frente {d.neglected_workspace_name} nesta semana.",
    ),
    (
        lambda d: True,
        lambda d: "Proteger execução com foco no Top 3 e cadência de Deep Work.",
    ),
]


def commitment_level(completed_a: int, deep_work_hours: float) -> CommitmentLevel:
    if completed_a >= A_TARGET and deep_work_hours >= DEEP_WORK_TARGET_HOURS:
        return CommitmentLevel.ALTO
    if completed_a >= 1 or deep_work_hours >= 2:
        return CommitmentLevel.MEDIO
    return CommitmentLevel.BAIXO


def strategic_decision(inputs: DraftInputs) -> str:
    return next(text(inputs) for applies, text in DECISION_RULES if applies(inputs))


def reflection(bottleneck: Bottleneck | None) -> str:
    if bottleneck is None:
        return "Semana sem gargalo dominante: manter disciplina de execução e priorização."
    return f"O padrão desta semana aponta {bottleneck.label.lower()}. Corrigir isso antes de expandir escopo."


def build_auto_draft(inputs: DraftInputs, generated_at: datetime) -> AutoDraft:
    actions: list[str] = []
    data_used: list[str] = []
    for rule in ACTION_RULES:
        if rule.applies(inputs):
            actions.append(rule.action(inputs))
            data_used.append(rule.data_used(inputs))

    focus = inputs.neglected_workspace_name or inputs.dominant_workspace_name or "frente principal"

    return AutoDraft(
        generated_at=generated_at,
        confidence="alta" if len(actions) >= 4 else "media",
        source=DRAFT_SOURCE,
        next_priority=f"Fechar alavanca crítica em {focus}.",
        strategic_decision=strategic_decision(inputs),
        commitment_level=commitment_level(inputs.completed_a, inputs.deep_work_hours),
        action_items=actions[:MAX_ACTIONS],
        reflection=reflection(inputs.dominant_bottleneck),
        data_used=data_used,
    )
