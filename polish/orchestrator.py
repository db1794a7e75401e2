"""
Selection Orchestrator - Improve every selection of a document, one at a time.

The orchestrator captures the editor's selections when the command starts,
then walks them top to bottom. For each one it re-resolves the live range
(earlier edits may have moved it), streams one completion into a fresh
``StreamingEditor`` and waits for that edit to settle before moving on.
Selections are never processed concurrently: every replace mutates the
document, and later ranges are only meaningful once earlier edits are done.

Failure policy:
- Malformed payload: that selection is left untouched, the run continues
- Cancellation: the run stops quietly, applied edits stay applied
- Transport or host error: the run stops (fail-fast), applied edits stay
- Whitespace-only selection: skipped without a request
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

# Use optimized JSON (orjson)
import json_utils as json
from logging_utils import ActivityLog, Phase
from usage_tracking import UsageInfo, UsageTracker

from .cancellation import CancellationToken
from .completion import CompletionClient, StreamCallbacks
from .document import Range, Selection, TextEditor
from .models import (
    EditorContext,
    ImproveResult,
    NoContentError,
    OutcomeStatus,
    RunState,
    SelectionOutcome,
    SelectionTarget,
)
from .prompts import build_system_prompt, build_user_prompt
from .streaming_editor import StreamingEditor
from .text_structure import extract_text_structure

NO_ACTIVE_EDITOR_MESSAGE = "No active editor found."
NO_CONTENT_MESSAGE = "No content to improve."


def resolve_selection_range(editor: TextEditor, selection: Selection) -> Range:
    """A span selection targets itself; a cursor targets its whole line."""
    if not selection.is_empty:
        return Range(selection.start, selection.end)
    return editor.document.line_at(selection.active.line).range


def get_editor_context(editor: Optional[TextEditor]) -> Optional[EditorContext]:
    """
    Capture the selections of ``editor`` as targets sorted top to bottom.

    A target whose range overlaps the one before it (two cursors on the same
    line, or a cursor on a line a selection already covers) is dropped, so no
    text is requested twice. Returns None when there is no editor.
    """
    if editor is None:
        return None

    document = editor.document
    selections = list(editor.selections)
    has_selection = any(not selection.is_empty for selection in selections)

    targets = []
    for selection in selections:
        target_range = resolve_selection_range(editor, selection)
        original_text = document.get_text(target_range)
        targets.append(
            SelectionTarget(
                range=target_range,
                original_text=original_text,
                structure=extract_text_structure(original_text),
                selection_id=selection.id,
            )
        )
    targets.sort(key=lambda target: target.range.start)

    # Cursors expand to whole lines, so distinct selections can still collide
    distinct: List[SelectionTarget] = []
    for target in targets:
        if distinct and distinct[-1].range.overlaps(target.range):
            continue
        distinct.append(target)

    return EditorContext(
        editor=editor,
        document=document,
        targets=distinct,
        has_selection=has_selection,
        full_file_content=document.get_text(),
    )


def progress_title(context: EditorContext) -> str:
    count = len(context.targets)
    if context.has_selection:
        return f"Improving {count} selection(s)..."
    return f"Improving {count} line(s)..."


class SelectionOrchestrator:
    """
    Drives one ``StreamingEditor`` per selection, strictly in order.

    Run states: IDLE -> RUNNING -> CANCELLED | FAILED | DONE. The index only
    moves forward; a state is never revisited.
    """

    def __init__(
        self,
        client: CompletionClient,
        activity_log: Optional[ActivityLog] = None,
        usage_tracker: Optional[UsageTracker] = None,
    ):
        self._client = client
        self._log = activity_log or ActivityLog()
        self._usage_tracker = usage_tracker or UsageTracker()
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def usage_tracker(self) -> UsageTracker:
        return self._usage_tracker

    async def run(
        self,
        context: EditorContext,
        cancel_token: Optional[CancellationToken] = None,
        system_prompt: Optional[str] = None,
    ) -> ImproveResult:
        """
        Improve every target of ``context`` in order.

        Raises:
            NoContentError: When no target has non-whitespace content
            RuntimeError: When the orchestrator has already run
        """
        if self._state is not RunState.IDLE:
            raise RuntimeError(f"Orchestrator already used (state: {self._state.value})")

        targets = context.targets
        if not any(target.has_content for target in targets):
            raise NoContentError(NO_CONTENT_MESSAGE)

        token = cancel_token or CancellationToken()
        system_prompt = system_prompt or build_system_prompt(context.full_file_content)
        result = ImproveResult(state=RunState.RUNNING)
        self._state = RunState.RUNNING

        self._log.log_prompt(self._client.model, system_prompt)
        self._log.info(f"=== Processing {len(targets)} selection(s) ===")

        with self._log.phase(Phase.RUN, sub_label=progress_title(context)):
            for index, target in enumerate(targets):
                if token.is_cancelled:
                    self._state = RunState.CANCELLED
                    break

                live_range = self._resolve_live_range(context, target)
                if live_range is None or not context.document.get_text(live_range).strip():
                    result.outcomes.append(
                        SelectionOutcome(index=index, status=OutcomeStatus.SKIPPED, range=live_range)
                    )
                    continue

                try:
                    outcome = await self._process_target(
                        context, index, target, live_range, system_prompt, token
                    )
                except Exception as exc:
                    if token.is_cancelled:
                        self._log.info("Operation cancelled by user")
                        self._state = RunState.CANCELLED
                        break
                    self._log.error(str(exc))
                    result.error = str(exc) or exc.__class__.__name__
                    self._state = RunState.FAILED
                    break

                if outcome is None:
                    self._log.info("Operation cancelled by user")
                    self._state = RunState.CANCELLED
                    break

                result.outcomes.append(outcome)

        if self._state is RunState.RUNNING:
            self._state = RunState.DONE

        result.state = self._state
        result.usage_summary = self._usage_tracker.build_summary()
        self._log.log_summary(result.usage_summary)
        return result

    def _resolve_live_range(self, context: EditorContext, target: SelectionTarget) -> Optional[Range]:
        """Find the target's selection again after earlier edits; None if it is gone."""
        selection = next(
            (sel for sel in context.editor.selections if sel.id == target.selection_id),
            None,
        )
        if selection is None:
            return None
        return resolve_selection_range(context.editor, selection)

    async def _process_target(
        self,
        context: EditorContext,
        index: int,
        target: SelectionTarget,
        live_range: Range,
        system_prompt: str,
        token: CancellationToken,
    ) -> Optional[SelectionOutcome]:
        """
        Stream and apply one selection.

        Returns None when the request was cancelled before its terminal event.
        """
        total = len(context.targets)
        streaming_editor = StreamingEditor(context.editor, live_range, target.structure, self._log)
        user_prompt = build_user_prompt(target.structure.content)

        loop = asyncio.get_running_loop()
        settled: asyncio.Future = loop.create_future()

        async def on_complete(usage: Optional[UsageInfo]) -> None:
            applied = await streaming_editor.finalize()
            self._log.log_response("OUTPUT (raw from LLM)", streaming_editor.accumulated_text())
            self._log.log_response("OUTPUT (with structure restored)", json.quote(streaming_editor.final_text()))
            if usage is not None:
                self._log.log_usage(usage)
                self._usage_tracker.record(index, usage)
            if not settled.done():
                settled.set_result(
                    SelectionOutcome(
                        index=index,
                        status=OutcomeStatus.APPLIED if applied else OutcomeStatus.DISCARDED,
                        range=live_range,
                        final_text=streaming_editor.final_text() if applied else "",
                        usage=usage,
                    )
                )

        def on_error(error: Exception) -> None:
            if not settled.done():
                settled.set_exception(error)

        with self._log.phase(Phase.SELECTION, sub_label=f"{index + 1}/{total}"):
            self._log.info(f"Target range: {live_range.describe()}")
            self._log.info(f"Content: {json.quote(target.structure.content)}")
            self._log.log_prompt(self._client.model, None, user_prompt)

            await self._client.improve_text(
                system_prompt,
                user_prompt,
                StreamCallbacks(
                    on_chunk=streaming_editor.on_chunk,
                    on_complete=on_complete,
                    on_error=on_error,
                ),
                token,
            )

            if not settled.done():
                return None
            return await settled


async def improve_command(
    editor: Optional[TextEditor],
    client_factory: Callable[[], CompletionClient],
    *,
    activity_log: Optional[ActivityLog] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ImproveResult:
    """
    Run the improve command against ``editor``.

    User-facing problems are reported on the result rather than raised:
    ``warning`` for nothing to do, ``error`` for a failed run (the message is
    prefixed with "Failed to improve content:").
    """
    log = activity_log or ActivityLog()

    context = get_editor_context(editor)
    if context is None:
        log.error(NO_ACTIVE_EDITOR_MESSAGE)
        return ImproveResult(state=RunState.IDLE, error=NO_ACTIVE_EDITOR_MESSAGE)

    if not any(target.has_content for target in context.targets):
        log.warning(NO_CONTENT_MESSAGE)
        return ImproveResult(state=RunState.IDLE, warning=NO_CONTENT_MESSAGE)

    try:
        client = client_factory()
    except Exception as exc:
        log.error(str(exc))
        return ImproveResult(state=RunState.FAILED, error=f"Failed to improve content: {exc}")

    orchestrator = SelectionOrchestrator(client, activity_log=log)
    result = await orchestrator.run(context, cancel_token=cancel_token)
    if result.error is not None:
        result.error = f"Failed to improve content: {result.error}"
    return result
