"""
Cancellation token for batch work whose cost grows with corpus size
(clustering passes, batch embedding regeneration).
"""

import threading
import time
from typing import Optional

from ..errors import OperationCancelled


class CancellationToken:
    """Cooperative cancellation with an optional monotonic deadline."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that never expires on its own."""
        return cls()

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelled(f"{operation} cancelled")
        if self.expired:
            raise OperationCancelled(f"{operation} exceeded its deadline")
