"""Bounded undo/redo history of funnel graph snapshots."""

from __future__ import annotations

from collections import deque
from typing import Any, Deque

DEFAULT_HISTORY_CAP = 50


class MutationHistory:
    """Two fixed-capacity stacks of retained graph values.

    Graphs are never mutated after they are committed, so a snapshot is just
    a kept reference. Once ``past`` is full the oldest entry is dropped.
    """

    def __init__(self, cap: int = DEFAULT_HISTORY_CAP) -> None:
        if not isinstance(cap, int) or isinstance(cap, bool) or cap < 1:
            raise ValueError("history cap must be a positive integer")
        self._cap = cap
        self._past: Deque[Any] = deque(maxlen=cap)
        self._future: Deque[Any] = deque(maxlen=cap)

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def depth(self) -> dict:
        return {"past": len(self._past), "future": len(self._future), "cap": self._cap}

    def record(self, previous: Any) -> None:
        self._past.append(previous)
        self._future.clear()

    def undo(self, current: Any) -> Any | None:
        if not self._past:
            return None
        previous = self._past.pop()
        self._future.appendleft(current)
        return previous

    def redo(self, current: Any) -> Any | None:
        if not self._future:
            return None
        following = self._future.popleft()
        self._past.append(current)
        return following

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
