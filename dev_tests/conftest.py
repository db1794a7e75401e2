"""Shared pytest fixtures for Polish It tests."""

import inspect
import os
import sys
from dataclasses import dataclass, field
from typing import Any, List, Optional
from unittest.mock import patch

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json_utils as json  # noqa: E402
from polish.document import InMemoryDocument, InMemoryEditor, Position  # noqa: E402
from usage_tracking import UsageInfo  # noqa: E402


# ============================================================================
# Environment Fixtures
# ============================================================================

POLISH_ENV_KEYS = [
    "OPENAI_API_KEY",
    "POLISH_IT_OPENAI_API_KEY",
    "POLISH_IT_MODEL",
    "POLISH_IT_BASE_URL",
    "POLISH_IT_LOG_CHANNEL",
    "POLISH_IT_LOG_FILE",
    "POLISH_IT_REQUEST_TIMEOUT",
    "POLISH_IT_MAX_RETRIES",
    "POLISH_IT_RETRY_DELAY",
    "POLISH_IT_MAX_RESPONSE_CHARS",
    "POLISH_IT_TEMPERATURE",
    "POLISH_IT_MAX_OUTPUT_TOKENS",
    "POLISH_IT_VERBOSE",
    "POLISH_IT_EXTRA_VERBOSE",
]


@pytest.fixture
def clean_env():
    """Provide an environment without any Polish It settings or API keys."""
    with patch.dict(os.environ, {}, clear=False):
        for key in POLISH_ENV_KEYS:
            os.environ.pop(key, None)
        yield


# ============================================================================
# Fake Completion Client
# ============================================================================

@dataclass
class FakeResponse:
    """
    Scripted behaviour for one completion request.

    chunks are delivered in order; then the request ends with ``error``
    (on_error), with a cancellation of the token (no terminal callback) when
    ``cancel`` is set, or with ``on_complete(usage)``.
    """

    chunks: List[str] = field(default_factory=list)
    usage: Optional[UsageInfo] = None
    error: Optional[Exception] = None
    cancel: bool = False


def reply(text: str, usage: Optional[UsageInfo] = None, pieces: int = 3) -> FakeResponse:
    """A well-formed ``{"improved": text}`` payload split into a few chunks."""
    payload = json.dumps({"improved": text})
    size = max(1, len(payload) // pieces + 1)
    chunks = [payload[i: i + size] for i in range(0, len(payload), size)]
    return FakeResponse(chunks=chunks, usage=usage)


@dataclass
class FakeCall:
    system_prompt: str
    user_prompt: str
    cancel_token: Any


async def _call(callback, *args):
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class FakeCompletionClient:
    """In-process stand-in for ``AIService`` that replays scripted responses."""

    def __init__(self, responses: Optional[List[FakeResponse]] = None, model: str = "gpt-4o-mini"):
        self.model = model
        self.responses = list(responses or [])
        self.calls: List[FakeCall] = []

    async def improve_text(self, system_prompt, user_prompt, callbacks, cancel_token=None):
        self.calls.append(FakeCall(system_prompt, user_prompt, cancel_token))
        if cancel_token is not None and cancel_token.is_cancelled:
            return

        response = self.responses.pop(0) if self.responses else FakeResponse()
        for chunk in response.chunks:
            await _call(callbacks.on_chunk, chunk)

        if response.cancel:
            cancel_token.cancel()
            return
        if response.error is not None:
            await _call(callbacks.on_error, response.error)
            return
        await _call(callbacks.on_complete, response.usage)


@pytest.fixture
def fake_client():
    """Factory for FakeCompletionClient with scripted responses."""
    def _make(*responses: FakeResponse, model: str = "gpt-4o-mini") -> FakeCompletionClient:
        return FakeCompletionClient(list(responses), model=model)
    return _make


# ============================================================================
# Editor Fixtures
# ============================================================================

class RejectingEditor(InMemoryEditor):
    """Editor whose replace reports failure without touching the document."""

    async def replace(self, range, text, *, undo_stop_before=True, undo_stop_after=True):
        return False


class ExplodingEditor(InMemoryEditor):
    """Editor whose replace raises, like a closed or read-only host document."""

    async def replace(self, range, text, *, undo_stop_before=True, undo_stop_after=True):
        raise RuntimeError("Document is read-only")


@pytest.fixture
def make_editor():
    """
    Build an in-memory editor.

    Each selection is ``((line, char), (line, char))`` for a span or
    ``(line, char)`` for a cursor, all zero-based.
    """
    def _make(text: str, *selections, editor_class=InMemoryEditor) -> InMemoryEditor:
        editor = editor_class(InMemoryDocument(text))
        for selection in selections:
            if isinstance(selection[0], tuple):
                anchor, active = selection
                editor.add_selection(Position(*anchor), Position(*active))
            else:
                editor.add_selection(Position(*selection))
        return editor
    return _make


@pytest.fixture
def sample_usage():
    return UsageInfo.from_token_counts("gpt-4o-mini", 120, 30)
