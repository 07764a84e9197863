"""Domain models for person records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

import uuid6

MAX_NAME_LENGTH = 100
MAX_NICK_LENGTH = 32
MAX_TECH_LENGTH = 32


@dataclass(frozen=True)
class NewPerson:
    """A validated creation request that has not been assigned an identifier yet."""

    name: str
    nick: str
    birth_date: date
    stack: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class Person:
    """Represents a person record committed to the store."""

    id: uuid.UUID
    name: str
    nick: str
    birth_date: date
    stack: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_new(cls, person_id: uuid.UUID, new_person: NewPerson) -> "Person":
        return cls(
            id=person_id,
            name=new_person.name,
            nick=new_person.nick,
            birth_date=new_person.birth_date,
            stack=new_person.stack,
        )


def new_person_id() -> uuid.UUID:
    """Return a version 7 UUID.

    The millisecond timestamp prefix and the per-millisecond counter keep
    identifiers generated in sequence sorted in creation order.
    """

    return uuid6.uuid7()


__all__ = [
    "MAX_NAME_LENGTH",
    "MAX_NICK_LENGTH",
    "MAX_TECH_LENGTH",
    "NewPerson",
    "Person",
    "new_person_id",
]
