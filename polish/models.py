"""
Polish Models - Data structures shared by the improve pipeline.

Core Types:
- SelectionTarget: One user selection captured when the command starts
- EditorContext: Everything the command reads from the editor up front
- StreamState: Lifecycle of one streamed completion
- RunState: Lifecycle of one multi-selection run
- SelectionOutcome / ImproveResult: What happened, per selection and overall

Errors:
- PolishError and its subclasses
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .document import Range, TextDocument, TextEditor
from .text_structure import TextStructure

if TYPE_CHECKING:
    from usage_tracking import UsageInfo


class PolishError(Exception):
    """Base class for improve pipeline errors."""


class NoContentError(PolishError):
    """Raised when every selection is empty or whitespace-only."""


class StreamStateError(PolishError):
    """Raised when an accumulator is driven out of order."""


class StreamState(str, Enum):
    """Lifecycle of one accumulator: ACCUMULATING -> FINALIZING -> APPLIED | DISCARDED."""

    ACCUMULATING = "accumulating"
    FINALIZING = "finalizing"
    APPLIED = "applied"
    DISCARDED = "discarded"


class RunState(str, Enum):
    """Lifecycle of one run: IDLE -> RUNNING -> CANCELLED | FAILED | DONE."""

    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    FAILED = "failed"
    DONE = "done"


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    DISCARDED = "discarded"  # Stream ended without a usable payload
    SKIPPED = "skipped"  # Whitespace-only or vanished selection


@dataclass
class SelectionTarget:
    """A selection captured at command start, with its structure precomputed."""

    range: Range
    original_text: str
    structure: TextStructure
    selection_id: int = 0

    @property
    def has_content(self) -> bool:
        return bool(self.original_text.strip())


@dataclass
class EditorContext:
    editor: TextEditor
    document: TextDocument
    targets: List[SelectionTarget]
    has_selection: bool
    full_file_content: str


@dataclass
class SelectionOutcome:
    """Result of processing one selection."""

    index: int
    status: OutcomeStatus
    range: Optional[Range] = None
    final_text: str = ""
    usage: Optional["UsageInfo"] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "status": self.status.value,
            "range": self.range.describe() if self.range else None,
            "final_text": self.final_text,
            "usage": self.usage.as_dict() if self.usage else None,
        }


@dataclass
class ImproveResult:
    """Overall result of an improve run."""

    state: RunState = RunState.IDLE
    outcomes: List[SelectionOutcome] = field(default_factory=list)
    error: Optional[str] = None
    warning: Optional[str] = None
    usage_summary: Optional[Dict[str, Any]] = None

    @property
    def applied_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is OutcomeStatus.APPLIED)

    @property
    def succeeded(self) -> bool:
        return self.state in {RunState.DONE, RunState.CANCELLED} and self.error is None
