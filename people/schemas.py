"""Wire schemas shared by HTTP responses and change notifications."""

from __future__ import annotations

import re
import uuid
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from .errors import InvalidPerson
from .models import MAX_NAME_LENGTH, MAX_NICK_LENGTH, MAX_TECH_LENGTH, NewPerson, Person

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _require_iso_date(value: object) -> object:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        raise ValueError("Birth date must be formatted as YYYY-MM-DD")
    return value


class PersonCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: StrictStr = Field(..., alias="nome", max_length=MAX_NAME_LENGTH)
    nick: StrictStr = Field(..., alias="apelido", max_length=MAX_NICK_LENGTH)
    birth_date: date = Field(..., alias="nascimento")
    stack: Optional[List[StrictStr]] = None

    @field_validator("birth_date", mode="before")
    @classmethod
    def _validate_birth_date(cls, value: object) -> object:
        return _require_iso_date(value)

    @field_validator("stack")
    @classmethod
    def _validate_stack(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        for tech in value:
            if len(tech) > MAX_TECH_LENGTH:
                raise ValueError(f"Stack entries must be {MAX_TECH_LENGTH} characters or fewer")
        return value


class PersonView(PersonCreateRequest):
    """Serialised person as exposed over HTTP and published on the change channel."""

    id: uuid.UUID


def new_person_from_request(request: PersonCreateRequest) -> NewPerson:
    return NewPerson(
        name=request.name,
        nick=request.nick,
        birth_date=request.birth_date,
        stack=tuple(request.stack) if request.stack is not None else None,
    )


def parse_new_person(payload: object) -> NewPerson:
    """Validate a decoded JSON body and build the creation request from it."""

    try:
        request = PersonCreateRequest.model_validate(payload)
    except ValidationError as exc:
        raise InvalidPerson(str(exc)) from exc
    return new_person_from_request(request)


def person_to_view(person: Person) -> PersonView:
    return PersonView(
        id=person.id,
        name=person.name,
        nick=person.nick,
        birth_date=person.birth_date,
        stack=list(person.stack) if person.stack is not None else None,
    )


def view_to_person(view: PersonView) -> Person:
    return Person(
        id=view.id,
        name=view.name,
        nick=view.nick,
        birth_date=view.birth_date,
        stack=tuple(view.stack) if view.stack is not None else None,
    )


def dump_person(person: Person) -> dict:
    return person_to_view(person).model_dump(mode="json", by_alias=True)


def encode_person(person: Person) -> str:
    return person_to_view(person).model_dump_json(by_alias=True)


def decode_person(payload: str | bytes) -> Person:
    """Decode a channel payload; raises :class:`pydantic.ValidationError` when malformed."""

    return view_to_person(PersonView.model_validate_json(payload))


__all__ = [
    "PersonCreateRequest",
    "PersonView",
    "decode_person",
    "dump_person",
    "encode_person",
    "new_person_from_request",
    "parse_new_person",
    "person_to_view",
    "view_to_person",
]
