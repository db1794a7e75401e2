"""
Streaming Editor - Buffer one streamed completion and apply it in one edit.

A ``StreamingEditor`` owns exactly one in-flight completion for one selection.
Chunks are buffered untouched; nothing is parsed until the stream reports
completion. Only then is the buffer parsed as a JSON object with a string
field ``improved``, restored into the selection's formatting envelope and
written to the document as a single undoable replace.

A stream that ends without a well-formed payload leaves the document
untouched. That case is logged and reported through the return value of
``finalize()``, never raised: the stream has already ended, so there is
nothing left to retry against.
"""

from __future__ import annotations

import logging
from typing import List, Optional, TYPE_CHECKING

# Use optimized JSON (orjson)
import json_utils as json

from .document import Range, TextEditor
from .models import StreamState, StreamStateError
from .text_structure import TextStructure, restore_text_structure

if TYPE_CHECKING:
    from logging_utils import ActivityLog

logger = logging.getLogger(__name__)

IMPROVED_FIELD = "improved"


def parse_improved_payload(payload: str) -> Optional[str]:
    """
    Extract the ``improved`` string from a complete response payload.

    Returns None when the payload is not valid JSON, is not an object, or
    lacks a string ``improved`` field. Additional fields are ignored.
    """
    try:
        parsed = json.loads(payload)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None

    if not isinstance(parsed, dict):
        return None

    improved = parsed.get(IMPROVED_FIELD)
    if not isinstance(improved, str):
        return None
    return improved


class StreamingEditor:
    """
    Accumulates one completion stream and applies the result to a range.

    Example:
        streaming_editor = StreamingEditor(editor, target_range, structure)
        await streaming_editor.on_chunk('{"improved": ')
        await streaming_editor.on_chunk('"Better text"}')
        applied = await streaming_editor.finalize()
    """

    def __init__(
        self,
        editor: TextEditor,
        target_range: Range,
        structure: TextStructure,
        activity_log: Optional["ActivityLog"] = None,
    ):
        self._editor = editor
        self._target_range = target_range
        self._structure = structure
        self._activity_log = activity_log
        self._chunks: List[str] = []
        self._state = StreamState.ACCUMULATING

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def target_range(self) -> Range:
        return self._target_range

    @property
    def buffer(self) -> str:
        """Raw text received so far."""
        return "".join(self._chunks)

    async def on_chunk(self, chunk: str) -> None:
        if self._state is not StreamState.ACCUMULATING:
            raise StreamStateError(f"Chunk received after the stream was finalized ({self._state.value})")
        self._chunks.append(chunk)

    async def finalize(self) -> bool:
        """
        Parse the buffered payload and apply it to the target range.

        Returns:
            True when the document was edited, False when the payload was
            unusable and the range was left untouched.

        Raises:
            StreamStateError: If called more than once
            Exception: Whatever the host editor raises while replacing
        """
        if self._state is not StreamState.ACCUMULATING:
            raise StreamStateError(f"finalize() called twice ({self._state.value})")
        self._state = StreamState.FINALIZING

        buffer = self.buffer
        improved = parse_improved_payload(buffer)
        if improved is None:
            self._state = StreamState.DISCARDED
            self._warn(
                f"Discarding response for {self._target_range.describe()}: "
                f"no well-formed '{IMPROVED_FIELD}' payload ({len(buffer)} chars received)"
            )
            return False

        final_text = restore_text_structure(improved, self._structure)

        try:
            applied = await self._editor.replace(
                self._target_range,
                final_text,
                undo_stop_before=True,
                undo_stop_after=True,
            )
        except Exception:
            self._state = StreamState.DISCARDED
            raise

        if applied is False:
            self._state = StreamState.DISCARDED
            self._warn(f"Editor rejected the replacement for {self._target_range.describe()}")
            return False

        self._state = StreamState.APPLIED
        return True

    def accumulated_text(self) -> str:
        """Parsed ``improved`` text before restoring structure, or "" when unparseable."""
        improved = parse_improved_payload(self.buffer)
        return improved if improved is not None else ""

    def final_text(self) -> str:
        """Restored replacement text, or "" when the payload is unparseable."""
        improved = parse_improved_payload(self.buffer)
        if improved is None:
            return ""
        return restore_text_structure(improved, self._structure)

    def _warn(self, message: str) -> None:
        if self._activity_log is not None:
            self._activity_log.warning(message)
        else:
            logger.warning(message)
