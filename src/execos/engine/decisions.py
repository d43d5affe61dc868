"""Strategic decision memory — an append-only trail of what the engine decided.

Writing here must never break the action that triggered it: a failed audit
write is logged and dropped.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

import structlog

from execos.models import DecisionSignal, StrategicDecisionEvent
from execos.storage import SqliteStore, new_id
from execos.timeutils import utcnow

logger = structlog.get_logger()


def signal_from_impact(impact_score: int) -> DecisionSignal:
    if impact_score >= 4:
        return DecisionSignal.EXECUTIVA
    if impact_score <= -2:
        return DecisionSignal.RISCO
    return DecisionSignal.NEUTRA


def _clamp_impact(value: float) -> int:
    return max(-100, min(100, int(round(value))))


def record_decision_event(
    store: SqliteStore,
    *,
    event_code: str,
    signal: DecisionSignal,
    title: str,
    impact_score: int = 0,
    workspace_id: str | None = None,
    project_id: str | None = None,
    task_id: str | None = None,
    source: str = "system",
    rationale: str | None = None,
    payload: dict[str, Any] | None = None,
    created_at: datetime | None = None,
) -> StrategicDecisionEvent | None:
    event = StrategicDecisionEvent(
        id=new_id(),
        workspace_id=workspace_id,
        project_id=project_id,
        task_id=task_id,
        source=source,
        event_code=event_code,
        signal=signal,
        title=title.strip(),
        rationale=(rationale or "").strip() or None,
        impact_score=_clamp_impact(impact_score),
        payload=payload or {},
        created_at=created_at or utcnow(),
    )
    try:
        store.add_decision_event(event)
    except sqlite3.Error as e:
        logger.warning("decision_event_write_failed", event_code=event_code, error=str(e))
        return None
    logger.debug("decision_event_recorded", event_code=event_code, signal=signal.value)
    return event
