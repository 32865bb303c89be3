from threading import RLock
from typing import Any, Callable, Dict, TypeVar

T = TypeVar("T")


class StageMemo:
    """
    Memo table for one pipeline session: stage name -> computed result.

    Each stage is computed at most once. The lock is re-entrant because
    a stage producer usually reads earlier stages through the same table.
    """

    def __init__(self):
        self._results: Dict[str, Any] = {}
        self._lock = RLock()

    def get(self, stage: str, producer: Callable[[], T]) -> T:
        with self._lock:
            if stage not in self._results:
                self._results[stage] = producer()
            return self._results[stage]

    def completed(self) -> list:
        with self._lock:
            return list(self._results.keys())
