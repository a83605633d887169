"""Token usage accounting and request traces."""

from __future__ import annotations

import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone

from catalog_chatbot.types import TokenUsage, ToolTrace


@dataclass(slots=True)
class UsageRecord:
    trace_id: str
    timestamp_utc: str
    query: str
    response: str
    model: str
    usage: TokenUsage
    estimated_cost_usd: float
    latency_ms: float
    tool_traces: list[ToolTrace] = field(default_factory=list)


@dataclass(slots=True)
class CostModel:
    """Simple token pricing model (USD per 1K tokens)."""

    input_per_1k: float = 0.0005
    output_per_1k: float = 0.0015

    def estimate_cost(self, usage: TokenUsage) -> float:
        return (usage.prompt_tokens / 1000.0) * self.input_per_1k + (
            usage.completion_tokens / 1000.0
        ) * self.output_per_1k


class UsageStore:
    """In-memory usage storage for API-level observability.

    Holds at most `max_records` entries; the oldest are evicted first.
    """

    def __init__(
        self,
        *,
        cost_model: CostModel | None = None,
        max_records: int = 1000,
    ) -> None:
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        self.max_records = max_records
        self._records: OrderedDict[str, UsageRecord] = OrderedDict()
        self._cost_model = cost_model or CostModel()

    def create_record(
        self,
        *,
        query: str,
        response: str,
        model: str,
        usage: TokenUsage,
        latency_ms: float,
        tool_traces: list[ToolTrace] | None = None,
    ) -> UsageRecord:
        trace_id = str(uuid.uuid4())
        record = UsageRecord(
            trace_id=trace_id,
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            query=query,
            response=response,
            model=model,
            usage=usage,
            estimated_cost_usd=self._cost_model.estimate_cost(usage),
            latency_ms=latency_ms,
            tool_traces=list(tool_traces or []),
        )
        self._records[trace_id] = record
        while len(self._records) > self.max_records:
            self._records.popitem(last=False)
        return record

    def __len__(self) -> int:
        return len(self._records)

    def get(self, trace_id: str) -> UsageRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[UsageRecord]:
        if limit < 1:
            return []
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate token and latency totals for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_requests": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "total_prompt_tokens": 0,
                "total_completion_tokens": 0,
                "total_tokens": 0,
                "total_estimated_cost_usd": 0.0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))

        return {
            "total_requests": total,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "total_prompt_tokens": sum(r.usage.prompt_tokens for r in records),
            "total_completion_tokens": sum(r.usage.completion_tokens for r in records),
            "total_tokens": sum(r.usage.total_tokens for r in records),
            "total_estimated_cost_usd": sum(r.estimated_cost_usd for r in records),
        }


class Timer:
    """Simple context timer used by the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
