"""Bottleneck detection — why things slipped, and which reason dominates.

Only delayed and failed events count. An event without a stated reason still
counts under a synthetic bucket, so "no reason given" can be the bottleneck.
"""

from __future__ import annotations

from typing import Iterable

from execos.models import Bottleneck, ExecutionEvent, ExecutionEventType, ReasonBucket
from execos.timeutils import apportion_percents

RESCHEDULE_KEY = "reagendamento"
EXECUTION_FAILURE_KEY = "falha_execucao"

REASON_LABELS = {
    "energia": "Energia",
    "medo": "Medo",
    "distracao": "Distração",
    "dependencia": "Dependência",
    "falta_clareza": "Falta de clareza",
    "falta_habilidade": "Falta de habilidade",
    RESCHEDULE_KEY: "Reagendamento",
    EXECUTION_FAILURE_KEY: "Falha de execução",
}

_BOTTLENECK_TYPES = (ExecutionEventType.DELAYED, ExecutionEventType.FAILED)


def reason_label(key: str) -> str:
    return REASON_LABELS.get(key, key)


def _bucket_key(event: ExecutionEvent) -> str:
    if event.failure_reason:
        return event.failure_reason.value
    if event.event_type == ExecutionEventType.DELAYED:
        return RESCHEDULE_KEY
    return EXECUTION_FAILURE_KEY


def count_reasons(events: Iterable[ExecutionEvent]) -> dict[str, int]:
    """Bucket counts in first-seen order."""
    counts: dict[str, int] = {}
    for event in events:
        if event.event_type not in _BOTTLENECK_TYPES:
            continue
        key = _bucket_key(event)
        counts[key] = counts.get(key, 0) + 1
    return counts


def reason_breakdown(events: Iterable[ExecutionEvent]) -> list[ReasonBucket]:
    """Every bucket in first-seen order. Percents are apportioned, so they sum to 100."""
    counts = count_reasons(events)
    percents = apportion_percents(list(counts.values()))
    return [
        ReasonBucket(key=key, label=reason_label(key), count=count, percent=percent)
        for (key, count), percent in zip(counts.items(), percents)
    ]


def dominant_bottleneck(events: Iterable[ExecutionEvent]) -> Bottleneck | None:
    """Highest-count bucket; ties go to whichever reason showed up first."""
    buckets = reason_breakdown(events)
    if not buckets:
        return None

    # max() keeps the first of equal keys, and buckets keep first-seen order.
    top = max(buckets, key=lambda bucket: bucket.count)
    return Bottleneck(key=top.key, label=top.label, percent=top.percent)
