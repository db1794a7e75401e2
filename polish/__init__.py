"""
Polish Module - Improve selected text in place, keeping its formatting.

The pipeline has three parts:

1. **Structure codec**: ``extract_text_structure`` / ``restore_text_structure``
   separate a fragment's surrounding blank lines and shared indentation from
   its content, so the completion service only ever sees bare content.
2. **StreamingEditor**: buffers one streamed completion and, once it is
   complete and well-formed, applies it as a single undoable replace.
3. **SelectionOrchestrator**: walks every selection top to bottom, one
   request in flight at a time, with shared cancellation and fail-fast
   error handling.

Usage:
    from ai_service import AIService
    from polish import InMemoryDocument, InMemoryEditor, Position, improve_command

    editor = InMemoryEditor(InMemoryDocument(text))
    editor.add_selection(Position(2, 0), Position(4, 0))
    result = await improve_command(editor, AIService)
"""

from .cancellation import CancellationToken
from .completion import CompletionClient, StreamCallbacks
from .document import (
    InMemoryDocument,
    InMemoryEditor,
    Position,
    Range,
    Selection,
    TextDocument,
    TextEditor,
    TextLine,
)
from .models import (
    EditorContext,
    ImproveResult,
    NoContentError,
    OutcomeStatus,
    PolishError,
    RunState,
    SelectionOutcome,
    SelectionTarget,
    StreamState,
    StreamStateError,
)
from .orchestrator import (
    SelectionOrchestrator,
    get_editor_context,
    improve_command,
    progress_title,
    resolve_selection_range,
)
from .prompts import build_system_prompt, build_user_prompt
from .streaming_editor import StreamingEditor, parse_improved_payload
from .text_structure import TextStructure, extract_text_structure, restore_text_structure

__all__ = [
    # Structure codec
    "TextStructure",
    "extract_text_structure",
    "restore_text_structure",
    # Accumulator
    "StreamingEditor",
    "parse_improved_payload",
    # Orchestration
    "SelectionOrchestrator",
    "get_editor_context",
    "improve_command",
    "progress_title",
    "resolve_selection_range",
    "CancellationToken",
    "CompletionClient",
    "StreamCallbacks",
    # Prompts
    "build_system_prompt",
    "build_user_prompt",
    # Document abstraction
    "InMemoryDocument",
    "InMemoryEditor",
    "Position",
    "Range",
    "Selection",
    "TextDocument",
    "TextEditor",
    "TextLine",
    # Models and errors
    "EditorContext",
    "ImproveResult",
    "OutcomeStatus",
    "RunState",
    "SelectionOutcome",
    "SelectionTarget",
    "StreamState",
    "PolishError",
    "NoContentError",
    "StreamStateError",
]

__version__ = "1.0.0"
