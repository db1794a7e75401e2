"""
Usage tracking utilities for Polish It.

Captures token usage and estimated cost for each improved selection so the
activity log and the final run report can show per-selection figures and
totals. Reporting only: nothing in the pipeline depends on these numbers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pricing import calculate_cost, get_context_window_size


@dataclass(frozen=True)
class UsageInfo:
    """Token counts and derived cost for one completion."""

    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    context_window_size: int = 0

    def __post_init__(self):
        for name in ("prompt_tokens", "completion_tokens", "total_tokens", "estimated_cost", "context_window_size"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @classmethod
    def from_token_counts(
        cls,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        total_tokens: Optional[int] = None,
    ) -> "UsageInfo":
        """Build usage from raw counts, deriving cost and context window from the model."""
        prompt_tokens = int(prompt_tokens or 0)
        completion_tokens = int(completion_tokens or 0)
        return cls(
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=int(total_tokens)
            if total_tokens is not None
            else prompt_tokens + completion_tokens,
            estimated_cost=calculate_cost(model, prompt_tokens, completion_tokens),
            context_window_size=get_context_window_size(model),
        )

    @property
    def context_usage_percent(self) -> float:
        if not self.context_window_size:
            return 0.0
        return self.total_tokens / self.context_window_size * 100

    def as_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "cost": round(self.estimated_cost, 6),
            "context_window_size": self.context_window_size,
            "context_usage_percent": round(self.context_usage_percent, 2),
        }


@dataclass
class UsageRecord:
    """Usage of one selection within a run."""

    selection_index: int
    usage: UsageInfo
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def as_dict(self) -> Dict[str, Any]:
        payload = {"selection": self.selection_index, "timestamp": self.timestamp}
        payload.update(self.usage.as_dict())
        return payload


class UsageTracker:
    """
    Collects per-selection usage for one improve run.

    There is no invariant across selections; the summary is a plain sum
    offered for the final report.
    """

    def __init__(self):
        self._records: List[UsageRecord] = []

    def record(self, selection_index: int, usage: Optional[UsageInfo]) -> None:
        if usage is None:
            return
        self._records.append(UsageRecord(selection_index=selection_index, usage=usage))

    def has_records(self) -> bool:
        return bool(self._records)

    @property
    def records(self) -> List[UsageRecord]:
        return list(self._records)

    def build_summary(self) -> Optional[Dict[str, Any]]:
        """Return totals plus the per-selection breakdown, or None when nothing was recorded."""
        if not self._records:
            return None

        totals = {
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,
            "cost": 0.0,
        }
        for rec in self._records:
            totals["prompt_tokens"] += rec.usage.prompt_tokens
            totals["completion_tokens"] += rec.usage.completion_tokens
            totals["total_tokens"] += rec.usage.total_tokens
            totals["cost"] += rec.usage.estimated_cost
        totals["cost"] = round(totals["cost"], 6)

        return {
            "currency": "USD",
            "grand_totals": totals,
            "selections": [rec.as_dict() for rec in self._records],
        }
