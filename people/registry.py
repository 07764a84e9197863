"""Read and write orchestration between the local cache and the record store."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import List

from .cache import LocalCache
from .database import SEARCH_LIMIT, Database
from .errors import NicknameConflict, PersonNotFound, translate_store_error
from .models import NewPerson, Person, new_person_id

logger = logging.getLogger("people.registry")


class PeopleRegistry:
    """Stateless facade over the store and this instance's cache.

    Reads try the cache first and fall back to the store. Writes go to the
    store only; the cache is filled exclusively by the change subscription,
    so a record created here becomes a cache hit only after this instance
    receives its own notification.

    Nickname uniqueness is checked twice. :meth:`LocalCache.contains_nick`
    rejects nicknames this instance has already seen without a round trip,
    but it can miss nicknames committed elsewhere; the store's unique
    constraint is what actually guarantees uniqueness.
    """

    def __init__(self, database: Database, cache: LocalCache) -> None:
        self._database = database
        self._cache = cache

    @property
    def cache(self) -> LocalCache:
        return self._cache

    def find(self, person_id: uuid.UUID) -> Person:
        cached = self._cache.lookup(person_id)
        if cached is not None:
            return cached

        try:
            person = self._database.get_person(person_id)
        except sqlite3.Error as exc:
            raise translate_store_error(exc) from exc
        if person is None:
            raise PersonNotFound(person_id)
        return person

    def search(self, text: str) -> List[Person]:
        try:
            return self._database.search_people(text, limit=SEARCH_LIMIT)
        except sqlite3.Error as exc:
            raise translate_store_error(exc) from exc

    def count(self) -> int:
        try:
            return self._database.count_people()
        except sqlite3.Error as exc:
            raise translate_store_error(exc) from exc

    def create(self, new_person: NewPerson) -> uuid.UUID:
        """Persist ``new_person`` and return its identifier.

        Raises :class:`NicknameConflict` when the nickname is taken and
        :class:`StoreError` on any other store failure. Nothing is retried.
        """

        if self._cache.contains_nick(new_person.nick):
            logger.debug("Rejected duplicate nickname %s from cache", new_person.nick)
            raise NicknameConflict(new_person.nick)

        person = Person.from_new(new_person_id(), new_person)
        try:
            self._database.insert_person(person)
        except sqlite3.Error as exc:
            raise translate_store_error(exc, nick=person.nick) from exc

        logger.info("Created person %s (nick=%s)", person.id, person.nick)
        return person.id


__all__ = ["PeopleRegistry"]
