"""
Document Abstraction - Positions, ranges, selections and an in-memory editor.

The improve pipeline only needs a narrow view of the host editor:

- ``TextDocument``: read text by range and resolve a line's range
- ``TextEditor``: the live selections plus an awaitable range replace that
  can be grouped as a single undo step

``InMemoryDocument`` and ``InMemoryEditor`` implement that view for the
command line and the tests. The editor keeps every selection adjusted across
edits, the way a desktop editor moves cursors after text changes, and hands
out stable selection ids so callers can find the same selection again after
the document has been mutated.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace as dataclass_replace
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based line/character position."""

    line: int
    character: int

    def compare_to(self, other: "Position") -> int:
        if self < other:
            return -1
        if self > other:
            return 1
        return 0


@dataclass(frozen=True, order=True)
class Range:
    """Span between two positions, ordered by start position."""

    start: Position
    end: Position

    def __post_init__(self):
        if self.end < self.start:
            start, end = self.end, self.start
            object.__setattr__(self, "start", start)
            object.__setattr__(self, "end", end)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "Range") -> bool:
        """True for equal ranges or ranges sharing at least one character."""
        if self == other:
            return True
        return self.start < other.end and other.start < self.end

    def describe(self) -> str:
        return (
            f"({self.start.line}:{self.start.character}) - "
            f"({self.end.line}:{self.end.character})"
        )


@dataclass(frozen=True)
class Selection:
    """
    A selection or cursor in an editor.

    ``anchor`` is where the selection started and ``active`` where the cursor
    is; either may come first. ``id`` is assigned by the editor and survives
    edits, so it identifies the same selection before and after a mutation.
    """

    anchor: Position
    active: Position
    id: int = 0

    @property
    def start(self) -> Position:
        return min(self.anchor, self.active)

    @property
    def end(self) -> Position:
        return max(self.anchor, self.active)

    @property
    def is_empty(self) -> bool:
        return self.anchor == self.active

    @property
    def range(self) -> Range:
        return Range(self.start, self.end)


@dataclass(frozen=True)
class TextLine:
    line_number: int
    text: str
    range: Range


class TextDocument(Protocol):
    """Read access the pipeline needs from a host document."""

    @property
    def line_count(self) -> int:
        ...

    def get_text(self, range: Optional[Range] = None) -> str:
        ...

    def line_at(self, line: int) -> TextLine:
        ...


class TextEditor(Protocol):
    """Editor surface: live selections and grouped, awaitable replaces."""

    @property
    def document(self) -> TextDocument:
        ...

    @property
    def selections(self) -> Sequence[Selection]:
        ...

    async def replace(
        self,
        range: Range,
        text: str,
        *,
        undo_stop_before: bool = True,
        undo_stop_after: bool = True,
    ) -> bool:
        ...


class InMemoryDocument:
    """Plain string document with ``\\n`` line structure."""

    def __init__(self, text: str = ""):
        self._text = text
        self._line_starts = self._compute_line_starts(text)
        self.version = 0

    @staticmethod
    def _compute_line_starts(text: str) -> List[int]:
        starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                starts.append(index + 1)
        return starts

    @property
    def text(self) -> str:
        return self._text

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def _line_length(self, line: int) -> int:
        start = self._line_starts[line]
        if line + 1 < len(self._line_starts):
            return self._line_starts[line + 1] - 1 - start
        return len(self._text) - start

    def validate_position(self, position: Position) -> Position:
        """Clamp ``position`` into the document."""
        if position.line < 0:
            return Position(0, 0)
        if position.line >= self.line_count:
            last = self.line_count - 1
            return Position(last, self._line_length(last))
        character = min(max(position.character, 0), self._line_length(position.line))
        return Position(position.line, character)

    def offset_at(self, position: Position) -> int:
        position = self.validate_position(position)
        return self._line_starts[position.line] + position.character

    def position_at(self, offset: int) -> Position:
        offset = min(max(offset, 0), len(self._text))
        line = 0
        for index, start in enumerate(self._line_starts):
            if start > offset:
                break
            line = index
        return Position(line, offset - self._line_starts[line])

    def get_text(self, range: Optional[Range] = None) -> str:
        if range is None:
            return self._text
        return self._text[self.offset_at(range.start): self.offset_at(range.end)]

    def line_at(self, line: int) -> TextLine:
        if line < 0 or line >= self.line_count:
            raise IndexError(f"Line {line} is outside the document (0..{self.line_count - 1})")
        length = self._line_length(line)
        start = self._line_starts[line]
        return TextLine(
            line_number=line,
            text=self._text[start: start + length],
            range=Range(Position(line, 0), Position(line, length)),
        )

    def apply_edit(self, start_offset: int, end_offset: int, text: str) -> str:
        """Replace ``[start_offset, end_offset)`` with ``text`` and return the removed text."""
        removed = self._text[start_offset:end_offset]
        self._text = self._text[:start_offset] + text + self._text[end_offset:]
        self._line_starts = self._compute_line_starts(self._text)
        self.version += 1
        return removed


@dataclass
class _UndoEntry:
    start_offset: int
    inserted_length: int
    removed_text: str


@dataclass
class _UndoGroup:
    entries: List[_UndoEntry] = field(default_factory=list)
    closed: bool = False


def _map_offset(offset: int, start: int, end: int, inserted_length: int) -> int:
    """Move an offset across the replacement of ``[start, end)``."""
    if offset <= start:
        return offset
    if offset >= end:
        return offset + inserted_length - (end - start)
    return min(offset, start + inserted_length)


class InMemoryEditor:
    """
    Editor over an ``InMemoryDocument`` with tracked selections and undo groups.

    Example:
        editor = InMemoryEditor(InMemoryDocument("one\\ntwo"))
        editor.add_selection(Position(1, 0), Position(1, 3))
        await editor.replace(editor.selections[0].range, "TWO")
        editor.undo()
    """

    def __init__(self, document: InMemoryDocument, selections: Iterable[Tuple[Position, Position]] = ()):
        self._document = document
        self._selections: List[Selection] = []
        self._ids = itertools.count(1)
        self._undo_groups: List[_UndoGroup] = []
        for anchor, active in selections:
            self.add_selection(anchor, active)

    @property
    def document(self) -> InMemoryDocument:
        return self._document

    @property
    def selections(self) -> Tuple[Selection, ...]:
        return tuple(self._selections)

    def add_selection(self, anchor: Position, active: Optional[Position] = None) -> Selection:
        """
        Add a selection (or a cursor when ``active`` is omitted).

        Like a desktop editor, a selection that equals or overlaps existing
        ones is merged with them into a single selection spanning all of
        them, which keeps the oldest id. The resulting selection is returned.
        """
        anchor = self._document.validate_position(anchor)
        active = anchor if active is None else self._document.validate_position(active)
        selection = Selection(anchor=anchor, active=active, id=next(self._ids))

        # Merging can grow the selection into neighbours it missed before
        overlapping = self._find_overlapping(selection)
        while overlapping is not None:
            self._selections.remove(overlapping)
            selection = Selection(
                anchor=min(overlapping.start, selection.start),
                active=max(overlapping.end, selection.end),
                id=min(overlapping.id, selection.id),
            )
            overlapping = self._find_overlapping(selection)

        self._selections.append(selection)
        return selection

    def _find_overlapping(self, selection: Selection) -> Optional[Selection]:
        for existing in self._selections:
            if existing.range.overlaps(selection.range):
                return existing
        return None

    def get_selection(self, selection_id: int) -> Optional[Selection]:
        for selection in self._selections:
            if selection.id == selection_id:
                return selection
        return None

    @property
    def undo_depth(self) -> int:
        return len(self._undo_groups)

    async def replace(
        self,
        range: Range,
        text: str,
        *,
        undo_stop_before: bool = True,
        undo_stop_after: bool = True,
    ) -> bool:
        """Replace ``range`` with ``text``; returns True once the edit is applied."""
        start = self._document.offset_at(range.start)
        end = self._document.offset_at(range.end)

        removed = self._edit(start, end, text)

        if undo_stop_before or not self._undo_groups or self._undo_groups[-1].closed:
            self._undo_groups.append(_UndoGroup())
        group = self._undo_groups[-1]
        group.entries.append(_UndoEntry(start, len(text), removed))
        if undo_stop_after:
            group.closed = True
        return True

    def undo(self) -> bool:
        """Revert the most recent undo group; False when there is nothing to undo."""
        if not self._undo_groups:
            return False
        group = self._undo_groups.pop()
        for entry in reversed(group.entries):
            self._edit(
                entry.start_offset,
                entry.start_offset + entry.inserted_length,
                entry.removed_text,
            )
        return True

    def _edit(self, start: int, end: int, text: str) -> str:
        # Selection offsets must be taken before the document changes
        offsets = [
            (self._document.offset_at(selection.anchor), self._document.offset_at(selection.active))
            for selection in self._selections
        ]
        removed = self._document.apply_edit(start, end, text)
        self._selections = [
            dataclass_replace(
                selection,
                anchor=self._document.position_at(_map_offset(anchor, start, end, len(text))),
                active=self._document.position_at(_map_offset(active, start, end, len(text))),
            )
            for selection, (anchor, active) in zip(self._selections, offsets)
        ]
        return removed
