"""
Tests for polish/document.py - positions, the in-memory document and editor.
"""

import pytest

from polish.document import InMemoryDocument, InMemoryEditor, Position, Range, Selection


class TestRangeAndSelection:

    def test_range_orders_its_ends(self):
        """
        Given: A range built end-first
        When: It is constructed
        Then: start is the earlier position
        """
        rng = Range(Position(3, 1), Position(1, 4))

        assert rng.start == Position(1, 4)
        assert rng.end == Position(3, 1)

    def test_describe(self):
        assert Range(Position(0, 2), Position(1, 5)).describe() == "(0:2) - (1:5)"

    def test_overlaps(self):
        base = Range(Position(0, 0), Position(0, 5))

        assert base.overlaps(Range(Position(0, 4), Position(1, 0)))
        assert base.overlaps(Range(Position(0, 0), Position(0, 5)))
        assert not base.overlaps(Range(Position(0, 5), Position(0, 8)))
        assert Range(Position(2, 1), Position(2, 1)).overlaps(Range(Position(2, 1), Position(2, 1)))

    def test_position_compare_to(self):
        assert Position(1, 0).compare_to(Position(0, 9)) == 1
        assert Position(0, 3).compare_to(Position(0, 9)) == -1
        assert Position(2, 2).compare_to(Position(2, 2)) == 0

    def test_backwards_selection(self):
        """
        Given: A selection dragged from bottom to top
        When: start/end are read
        Then: They are ordered regardless of anchor and active
        """
        selection = Selection(anchor=Position(4, 0), active=Position(2, 3))

        assert selection.start == Position(2, 3)
        assert selection.end == Position(4, 0)
        assert not selection.is_empty

    def test_cursor_is_empty(self):
        assert Selection(Position(1, 1), Position(1, 1)).is_empty


class TestInMemoryDocument:

    def test_line_count_and_line_at(self):
        document = InMemoryDocument("alpha\nbeta\n")

        assert document.line_count == 3
        line = document.line_at(1)
        assert line.text == "beta"
        assert line.range == Range(Position(1, 0), Position(1, 4))
        assert document.line_at(2).text == ""

    def test_line_at_out_of_range(self):
        with pytest.raises(IndexError):
            InMemoryDocument("one line").line_at(1)

    def test_get_text_by_range(self):
        document = InMemoryDocument("alpha\nbeta\ngamma")

        assert document.get_text(Range(Position(0, 2), Position(2, 3))) == "pha\nbeta\ngam"
        assert document.get_text() == "alpha\nbeta\ngamma"

    def test_positions_are_clamped(self):
        """
        Given: Positions past the end of a line and of the document
        When: They are validated
        Then: They are clamped to the nearest valid position
        """
        document = InMemoryDocument("ab\ncdef")

        assert document.validate_position(Position(0, 99)) == Position(0, 2)
        assert document.validate_position(Position(7, 0)) == Position(1, 4)
        assert document.validate_position(Position(-1, 5)) == Position(0, 0)

    def test_offset_and_position_agree(self):
        document = InMemoryDocument("ab\ncdef\n\nxyz")

        for offset in range(len(document.text) + 1):
            assert document.offset_at(document.position_at(offset)) == offset

    def test_apply_edit_bumps_version(self):
        document = InMemoryDocument("hello world")

        removed = document.apply_edit(0, 5, "goodbye")

        assert removed == "hello"
        assert document.text == "goodbye world"
        assert document.version == 1


class TestInMemoryEditor:

    @pytest.mark.asyncio
    async def test_replace_shifts_later_selections(self):
        """
        Given: Two selections, the first on line 0 and the second on line 2
        When: The first is replaced with three lines
        Then: The second selection moves down and still covers its text
        """
        editor = InMemoryEditor(InMemoryDocument("one\ntwo\nthree"))
        first = editor.add_selection(Position(0, 0), Position(0, 3))
        second = editor.add_selection(Position(2, 0), Position(2, 5))

        await editor.replace(first.range, "uno\ndos\ntres")

        moved = editor.get_selection(second.id)
        assert moved.range == Range(Position(4, 0), Position(4, 5))
        assert editor.document.get_text(moved.range) == "three"

    @pytest.mark.asyncio
    async def test_replaced_selection_covers_new_text(self):
        """
        Given: A selection spanning exactly the replaced range
        When: The range is replaced with longer text
        Then: The selection grows to cover the replacement
        """
        editor = InMemoryEditor(InMemoryDocument("keep\nold\nkeep"))
        selection = editor.add_selection(Position(1, 0), Position(1, 3))

        await editor.replace(selection.range, "brand new")

        grown = editor.get_selection(selection.id)
        assert editor.document.get_text(grown.range) == "brand new"

    @pytest.mark.asyncio
    async def test_earlier_selection_unaffected(self):
        editor = InMemoryEditor(InMemoryDocument("one\ntwo"))
        first = editor.add_selection(Position(0, 0), Position(0, 3))
        second = editor.add_selection(Position(1, 0), Position(1, 3))

        await editor.replace(second.range, "TWO, expanded")

        assert editor.get_selection(first.id).range == first.range

    @pytest.mark.asyncio
    async def test_undo_groups(self):
        """
        Given: Two replaces where the first keeps its undo group open
        When: undo() is called once
        Then: Both replaces are reverted together
        """
        editor = InMemoryEditor(InMemoryDocument("a b c"))

        await editor.replace(Range(Position(0, 0), Position(0, 1)), "A", undo_stop_after=False)
        await editor.replace(Range(Position(0, 4), Position(0, 5)), "C", undo_stop_before=False)
        assert editor.document.text == "A b C"
        assert editor.undo_depth == 1

        assert editor.undo() is True
        assert editor.document.text == "a b c"
        assert editor.undo() is False

    @pytest.mark.asyncio
    async def test_separate_undo_steps(self):
        editor = InMemoryEditor(InMemoryDocument("a b"))

        await editor.replace(Range(Position(0, 0), Position(0, 1)), "A")
        await editor.replace(Range(Position(0, 2), Position(0, 3)), "B")

        assert editor.undo_depth == 2
        editor.undo()
        assert editor.document.text == "A b"

    def test_selection_ids_are_unique(self):
        editor = InMemoryEditor(InMemoryDocument("x\ny"), [(Position(0, 0), Position(0, 1))])
        cursor = editor.add_selection(Position(1, 0))

        ids = [selection.id for selection in editor.selections]
        assert len(set(ids)) == 2
        assert cursor.is_empty
        assert editor.get_selection(999) is None

    def test_duplicate_cursor_is_merged(self):
        editor = InMemoryEditor(InMemoryDocument("x\ny"))
        first = editor.add_selection(Position(1, 0))

        merged = editor.add_selection(Position(1, 0))

        assert editor.selections == (first,)
        assert merged == first

    def test_overlapping_selections_merge_into_union(self):
        """
        Given: A selection over columns 0-9
        When: A selection over columns 4-13 is added
        Then: One selection over columns 0-13 remains, keeping the first id
        """
        editor = InMemoryEditor(InMemoryDocument("one two three four"))
        first = editor.add_selection(Position(0, 0), Position(0, 9))

        editor.add_selection(Position(0, 4), Position(0, 13))

        assert len(editor.selections) == 1
        assert editor.selections[0].id == first.id
        assert editor.selections[0].range == Range(Position(0, 0), Position(0, 13))

    def test_bridging_selection_merges_both_neighbours(self):
        editor = InMemoryEditor(InMemoryDocument("aaaa bbbb cccc"))
        editor.add_selection(Position(0, 0), Position(0, 4))
        editor.add_selection(Position(0, 10), Position(0, 14))

        editor.add_selection(Position(0, 2), Position(0, 12))

        assert [selection.range for selection in editor.selections] == [
            Range(Position(0, 0), Position(0, 14))
        ]

    def test_touching_selections_stay_separate(self):
        editor = InMemoryEditor(InMemoryDocument("abcdef"))
        editor.add_selection(Position(0, 0), Position(0, 3))
        editor.add_selection(Position(0, 3), Position(0, 6))

        assert len(editor.selections) == 2

    def test_cursor_inside_selection_is_absorbed(self):
        editor = InMemoryEditor(InMemoryDocument("abcdef"))
        span = editor.add_selection(Position(0, 1), Position(0, 5))

        editor.add_selection(Position(0, 3))

        assert editor.selections == (span,)
