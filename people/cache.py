"""Per-instance, in-memory mirror of person records seen on the change channel."""

from __future__ import annotations

import threading
import uuid
from typing import Dict, Optional, Set

from .models import Person


class LocalCache:
    """Thread-safe identifier map and nickname set.

    Entries are only ever added through :meth:`apply`, which the change
    subscription calls for every committed record it receives. Nothing is
    evicted for the lifetime of the process.

    :meth:`contains_nick` is a latency optimisation for rejecting obvious
    duplicates. A ``False`` answer does not mean the nickname is free: it may
    have been committed by another instance whose notification has not been
    applied here yet. The store's unique constraint is the only authority.
    """

    def __init__(self) -> None:
        self._records: Dict[uuid.UUID, Person] = {}
        self._nicks: Set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def lookup(self, person_id: uuid.UUID) -> Optional[Person]:
        with self._lock:
            return self._records.get(person_id)

    def contains_nick(self, nick: str) -> bool:
        with self._lock:
            return nick in self._nicks

    def apply(self, person: Person) -> None:
        with self._lock:
            self._records[person.id] = person
            self._nicks.add(person.nick)


__all__ = ["LocalCache"]
