"""Cooperative cancellation shared by the routing client and the fan-out."""

from __future__ import annotations

import threading

from .delivery.errors import EvaluationCancelled


class CancelToken:
    """Thread-safe cancellation flag.

    A child token reports cancelled when either it or its parent is cancelled,
    which lets a coordinator stop its own workers without touching the caller's token.
    """

    def __init__(self, parent: "CancelToken | None" = None) -> None:
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    def sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``; returns True if cancelled meanwhile."""
        if seconds <= 0:
            return self.cancelled
        # the parent flag is not an Event we can wait on together, so poll in slices
        remaining = seconds
        step = 0.05
        while remaining > 0:
            if self._event.wait(min(step, remaining)) or self.cancelled:
                return True
            remaining -= step
        return self.cancelled

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise EvaluationCancelled("Delivery evaluation was cancelled")
