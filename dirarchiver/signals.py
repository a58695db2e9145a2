"""
Cooperative cancellation shared by the scan and write phases.
"""
import threading
from typing import Optional

from .errors import AbortedError


class CancelToken:
    """A one-shot cancellation signal, safe to fire from a signal handler or another thread."""
    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AbortedError(self._reason or "The operation was aborted")


def raise_if_cancelled(token: Optional[CancelToken]) -> None:
    """No-op when no token was supplied."""
    if token is not None:
        token.raise_if_cancelled()
