"""Cancellation token shared by the render loop and the signal handler."""
from __future__ import annotations

import threading

from spa_prerender.errors import RenderInterrupted


class CancellationToken:
    """One-shot flag set when the session must stop."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.signum: int | None = None

    def cancel(self, signum: int | None = None) -> None:
        if not self._event.is_set():
            self.signum = signum
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RenderInterrupted(self.signum)
