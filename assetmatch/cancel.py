"""Cooperative cancellation shared by catalog fetches and enrichment runs."""

import threading


class RunCancelled(Exception):
    """The caller stopped the run; distinct from a failure."""

    def __init__(self, message: str = "Run cancelled", completed: int = 0, total: int = 0):
        super().__init__(message)
        self.completed = completed
        self.total = total


class CancelToken:
    """One token per run. Safe to cancel from any thread (or a signal handler)."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, completed: int = 0, total: int = 0) -> None:
        if self._event.is_set():
            raise RunCancelled(completed=completed, total=total)

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; True once cancelled."""
        return self._event.wait(timeout)
