"""Person records with a change-driven, per-instance read cache."""

from __future__ import annotations

from typing import Any

from .cache import LocalCache
from .database import Database
from .errors import InvalidPerson, NicknameConflict, PeopleError, PersonNotFound, StoreError
from .models import NewPerson, Person
from .registry import PeopleRegistry


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Database",
    "InvalidPerson",
    "LocalCache",
    "NewPerson",
    "NicknameConflict",
    "PeopleError",
    "PeopleRegistry",
    "Person",
    "PersonNotFound",
    "StoreError",
    "create_app",
]
