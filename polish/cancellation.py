"""Cooperative cancellation shared by every selection of one improve run."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot cancellation flag with callbacks.

    The orchestrator checks ``is_cancelled`` between selections; transports
    register a callback to abort the request that is currently in flight.
    Cancelling twice is harmless and callbacks run at most once.
    """

    def __init__(self):
        self._cancelled = False
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], Any]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def register(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Run ``callback`` on cancellation and return a function that unregisters it.

        When the token is already cancelled the callback runs immediately.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def _unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unregister

    async def wait(self) -> None:
        await self._event.wait()
