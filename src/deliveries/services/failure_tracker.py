"""Consecutive-failure tracking for optional collaborators."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class FailureTracker:
    """Stops attempts against a collaborator after ``threshold`` consecutive
    failures, until ``cooldown`` seconds have passed since the last one.

    Owned by the component that decides whether to fall back; never a module-level singleton.
    """

    def __init__(
        self,
        threshold: int = 3,
        cooldown: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.cooldown = cooldown
        self.failure_count = 0
        self.last_failure_at: Optional[float] = None
        self._clock = clock
        self._lock = threading.Lock()

    def should_attempt(self) -> bool:
        with self._lock:
            if self.failure_count < self.threshold or self.last_failure_at is None:
                return True
            return self._clock() - self.last_failure_at >= self.cooldown

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            self.last_failure_at = self._clock()

    def reset(self) -> None:
        with self._lock:
            self.failure_count = 0
            self.last_failure_at = None
