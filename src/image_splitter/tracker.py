from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

T = TypeVar("T")


class RunTracker:
    """Counts in-flight runs so shutdown can wait for them to drain."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._active = 0

    @property
    def active(self) -> int:
        with self._condition:
            return self._active

    @contextmanager
    def track(self) -> Iterator[None]:
        with self._condition:
            self._active += 1
        try:
            yield
        finally:
            with self._condition:
                self._active -= 1
                if self._active == 0:
                    self._condition.notify_all()

    def run(self, func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        with self.track():
            return func(*args, **kwargs)

    def wait_idle(self, timeout_s: float | None = None) -> bool:
        """Block until no run is in flight; False if *timeout_s* elapsed first."""

        deadline = None if timeout_s is None else time.monotonic() + timeout_s
        with self._condition:
            while self._active > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._condition.wait(remaining)
            return True


__all__ = ["RunTracker"]
