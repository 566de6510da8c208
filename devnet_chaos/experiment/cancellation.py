"""
Cancellation - cooperative cancellation shared by the lifecycle manager and the sequencer
"""
import threading
from typing import Callable, Optional
from ..errors import ExperimentCancelled


class CancellationToken:
    """Set once by the CLI on interrupt; checked at every suspension point"""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, during: str = "") -> None:
        if self._event.is_set():
            suffix = f" while {during}" if during else ""
            raise ExperimentCancelled(f"Experiment {self.reason or 'cancelled'}{suffix}")

    def wait(self, seconds: float) -> None:
        """Sleep up to `seconds`, raising ExperimentCancelled if cancelled meanwhile"""
        self.raise_if_cancelled()
        if seconds > 0 and self._event.wait(timeout=seconds):
            self.raise_if_cancelled()


def cancellable_sleep(token: CancellationToken, sleep: Optional[Callable[[float], None]] = None) -> Callable[[float], None]:
    """
    Build a sleep function that honours the token.

    With no `sleep` the token's own wait is used; an injected sleep (tests) is
    wrapped with cancellation checks before and after it runs.
    """
    if sleep is None:
        return token.wait

    def _sleep(seconds: float) -> None:
        token.raise_if_cancelled()
        sleep(seconds)
        token.raise_if_cancelled()

    return _sleep
