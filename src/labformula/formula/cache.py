"""Caller-owned cache of parsed formulas."""

import threading
from collections import OrderedDict

from labformula.formula.parser import Condition


class ParseCache:
    """Bounded map of raw formula text to its parsed conditions.

    The engine never creates one on its own: callers that re-evaluate the
    same formulas after every edit own an instance and pass it in, and
    clear it when they see fit. Least recently used entries are evicted
    once maxsize is reached. A lock guards every operation so one instance
    can be shared between threads.
    """

    def __init__(self, maxsize: int = 512) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self._entries: OrderedDict[str, tuple[Condition, ...]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, formula: str) -> tuple[Condition, ...] | None:
        """Return cached conditions for formula text, or None."""
        with self._lock:
            conditions = self._entries.get(formula)
            if conditions is None:
                self.misses += 1
                return None
            self._entries.move_to_end(formula)
            self.hits += 1
            return conditions

    def put(self, formula: str, conditions: tuple[Condition, ...]) -> None:
        """Store parsed conditions for formula text."""
        with self._lock:
            self._entries[formula] = tuple(conditions)
            self._entries.move_to_end(formula)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop every entry and reset the statistics."""
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, formula: object) -> bool:
        with self._lock:
            return formula in self._entries
