"""
Delayed re-reconciliation of objects.

kopf timers would put a finalizer of their own on every Source and Secret, and
event handlers are never retried, so requeues are kept here and drained by a
background thread.
"""

import threading
import time
from typing import Dict, List, Tuple

Key = Tuple[str, str, str]


class RequeueQueue:
    """
    Due times keyed by ``(kind, namespace, name)``.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._due: Dict[Key, float] = {}

    def schedule(self, kind: str, namespace: str, name: str, delay: float):
        """Scheduling an object twice keeps the earlier due time."""
        key = (kind, namespace, name)
        due = self._clock() + delay
        with self._lock:
            if key not in self._due or due < self._due[key]:
                self._due[key] = due

    def discard(self, kind: str, namespace: str, name: str):
        with self._lock:
            self._due.pop((kind, namespace, name), None)

    def pop_due(self) -> List[Key]:
        now = self._clock()
        with self._lock:
            due = [key for key, at in self._due.items() if at <= now]
            for key in due:
                del self._due[key]
        return due

    def __contains__(self, key):
        with self._lock:
            return key in self._due

    def __len__(self):
        with self._lock:
            return len(self._due)
