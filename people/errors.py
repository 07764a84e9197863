"""Error taxonomy shared by the registry, the store and the HTTP layer."""

from __future__ import annotations

import sqlite3


class PeopleError(Exception):
    """Base class for errors raised by the people registry."""


class InvalidPerson(PeopleError, ValueError):
    """Raised when a creation payload fails field validation."""


class NicknameConflict(PeopleError):
    """Raised when a nickname is already taken."""

    def __init__(self, nick: str) -> None:
        super().__init__(f"Nickname '{nick}' is already taken")
        self.nick = nick


class PersonNotFound(PeopleError, KeyError):
    """Raised when no person exists for the requested identifier."""

    def __init__(self, person_id: object) -> None:
        super().__init__(f"Person '{person_id}' not found")
        self.person_id = person_id

    def __str__(self) -> str:
        return str(self.args[0])


class StoreError(PeopleError):
    """Raised when the record store cannot be reached or queried."""


def _is_nick_violation(exc: sqlite3.IntegrityError) -> bool:
    message = str(exc).lower()
    return "unique" in message and "nick" in message


def translate_store_error(exc: sqlite3.Error, *, nick: str | None = None) -> PeopleError:
    """Map a ``sqlite3`` failure onto the registry's error taxonomy."""

    if nick is not None and isinstance(exc, sqlite3.IntegrityError) and _is_nick_violation(exc):
        return NicknameConflict(nick)
    return StoreError(f"Record store failure: {exc}")


__all__ = [
    "InvalidPerson",
    "NicknameConflict",
    "PeopleError",
    "PersonNotFound",
    "StoreError",
    "translate_store_error",
]
