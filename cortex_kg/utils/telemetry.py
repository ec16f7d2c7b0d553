"""
Request-scoped call telemetry.

Telemetry is enabled by attaching a UsageCollector via contextvars. Providers
read the active collector and stage label and emit one record per external
call, so a caller can see where the time of a query went.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from pydantic import BaseModel, Field

_COLLECTOR: ContextVar[UsageCollector | None] = ContextVar(
    "cortex_usage_collector",
    default=None,
)
_STAGE: ContextVar[str] = ContextVar("cortex_usage_stage", default="unknown")


class UsageRecord(BaseModel):
    """One external call."""

    provider: str
    model: str
    operation: str
    stage: str = "unknown"
    input_tokens: int | None = None
    output_tokens: int | None = None
    latency_ms: int = 0
    ok: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class StageUsage(BaseModel):
    """Aggregate of the calls made under one stage label."""

    stage: str
    calls: int = 0
    failures: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_latency_ms: int = 0


class UsageCollector:
    """Accumulates usage records for one request."""

    def __init__(self) -> None:
        self._records: list[UsageRecord] = []

    @property
    def records(self) -> list[UsageRecord]:
        return list(self._records)

    def add(self, record: UsageRecord) -> None:
        """Add one usage record."""
        self._records.append(record)

    def by_stage(self) -> list[StageUsage]:
        """Aggregate records per stage, slowest stage first."""
        stages: dict[str, StageUsage] = {}
        for record in self._records:
            stage = stages.setdefault(record.stage, StageUsage(stage=record.stage))
            stage.calls += 1
            stage.failures += 0 if record.ok else 1
            stage.input_tokens += record.input_tokens or 0
            stage.output_tokens += record.output_tokens or 0
            stage.total_latency_ms += record.latency_ms
        return sorted(stages.values(), key=lambda s: s.total_latency_ms, reverse=True)


@contextmanager
def telemetry_collector(collector: UsageCollector | None):
    """Set active request collector for provider instrumentation."""
    token = _COLLECTOR.set(collector)
    try:
        yield
    finally:
        _COLLECTOR.reset(token)


@contextmanager
def telemetry_stage(stage: str):
    """Set pipeline stage label for provider instrumentation."""
    token = _STAGE.set(stage)
    try:
        yield
    finally:
        _STAGE.reset(token)


def current_stage() -> str:
    """Return currently active telemetry stage label."""
    return _STAGE.get()


def record_usage(record: UsageRecord) -> None:
    """Add record to active collector if telemetry is enabled."""
    collector = _COLLECTOR.get()
    if collector is not None:
        collector.add(record)
