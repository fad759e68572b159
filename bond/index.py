"""
In-memory table from source secrets to the secrets they are copied to.

The Source handlers fill it in, the Secret handlers read it. kopf runs sync
handlers in a thread pool, so every access goes through a reader/writer lock.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Optional, Tuple

import attr


@attr.s(frozen=True)
class SecretRef:
    """
    An immutable reference to a namespaced secret.
    """

    namespace: str = attr.ib()
    name: str = attr.ib()

    def __str__(self):
        return f"{self.namespace}/{self.name}"


class ReadWriteLock:
    """
    Any number of readers, or a single writer.

    Waiting writers block new readers so a steady stream of reads cannot
    starve registration. Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class DesiredMappingIndex:
    """
    Maps a source secret to the ordered destinations it replicates to.

    Entries are only ever added. The index also carries a readiness flag which
    is set once the existing Sources have been listed and registered.
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._entries: Dict[SecretRef, Tuple[SecretRef, ...]] = {}
        self._ready = threading.Event()

    def register(self, source: SecretRef, destinations: Iterable[SecretRef]) -> bool:
        """
        Insert ``source`` unless it is already known. Returns True on insert.
        """
        destinations = tuple(destinations)
        with self._lock.write():
            if source in self._entries:
                return False
            self._entries[source] = destinations
            return True

    def __contains__(self, source):
        with self._lock.read():
            return source in self._entries

    def get(self, source: SecretRef) -> Optional[Tuple[SecretRef, ...]]:
        with self._lock.read():
            return self._entries.get(source)

    def __len__(self):
        with self._lock.read():
            return len(self._entries)

    def snapshot(self) -> Dict[SecretRef, Tuple[SecretRef, ...]]:
        with self._lock.read():
            return dict(self._entries)

    def mark_ready(self):
        self._ready.set()

    def is_ready(self) -> bool:
        return self._ready.is_set()
