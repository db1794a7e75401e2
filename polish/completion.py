"""Contract between the improve pipeline and a streaming completion client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol

from .cancellation import CancellationToken

if TYPE_CHECKING:
    from usage_tracking import UsageInfo


@dataclass
class StreamCallbacks:
    """Callbacks for one streamed completion; each may be sync or async."""

    on_chunk: Callable[[str], Any]
    on_complete: Callable[[Optional["UsageInfo"]], Any]
    on_error: Callable[[Exception], Any]


class CompletionClient(Protocol):
    """
    Anything that can stream one improvement request.

    Implementations call ``on_chunk`` for every piece of text in order, then
    exactly one of ``on_complete`` / ``on_error``, unless ``cancel_token``
    fires, in which case they return without a terminal callback.
    """

    model: str

    async def improve_text(
        self,
        system_prompt: str,
        user_prompt: str,
        callbacks: StreamCallbacks,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        ...
