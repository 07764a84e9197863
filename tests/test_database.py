from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from people.database import SEARCH_LIMIT, Database
from people.models import Person, new_person_id
from people.schemas import decode_person


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "people.sqlite3", pool_size=4)
    db.initialize()
    return db


def _person(nick: str, name: str = "Ana Silva", stack: tuple[str, ...] | None = ("Go", "Rust")) -> Person:
    return Person(id=new_person_id(), name=name, nick=nick, birth_date=date(1990, 1, 1), stack=stack)


def test_insert_and_get_person_round_trip(database: Database) -> None:
    person = _person("ana")

    assert database.insert_person(person) == person.id
    assert database.get_person(person.id) == person
    assert database.count_people() == 1


def test_missing_and_empty_stack_survive_storage(database: Database) -> None:
    without_stack = _person("a", stack=None)
    empty_stack = _person("b", stack=())
    database.insert_person(without_stack)
    database.insert_person(empty_stack)

    assert database.get_person(without_stack.id).stack is None
    assert database.get_person(empty_stack.id).stack == ()


def test_duplicate_nick_violates_unique_constraint(database: Database) -> None:
    database.insert_person(_person("ana"))

    with pytest.raises(sqlite3.IntegrityError):
        database.insert_person(_person("ana", name="Another Ana"))

    assert database.count_people() == 1


def test_rejected_insert_publishes_nothing(database: Database) -> None:
    listener = database.listen(database.channel)
    database.insert_person(_person("ana"))
    with pytest.raises(sqlite3.IntegrityError):
        database.insert_person(_person("ana"))

    messages = listener.receive()
    listener.close()

    assert len(messages) == 1


def test_search_matches_name_nick_and_stack(database: Database) -> None:
    ana = _person("ana", name="Ana Silva", stack=("Python",))
    bob = _person("bob", name="Roberto", stack=("Elixir", "Node"))
    database.insert_person(ana)
    database.insert_person(bob)

    assert database.search_people("silva") == [ana]
    assert database.search_people("BOB") == [bob]
    assert database.search_people("node") == [bob]
    assert database.search_people("nothing") == []


def test_search_treats_wildcards_literally(database: Database) -> None:
    database.insert_person(_person("ana"))

    assert database.search_people("%") == []
    assert database.search_people("_") == []


def test_search_ignores_case_of_accented_letters(database: Database) -> None:
    erica = _person("erica", name="ÉRICA Souza", stack=("Ÿjs",))
    database.insert_person(erica)

    assert [person.id for person in database.search_people("érica")] == [erica.id]
    assert [person.id for person in database.search_people("ÿJS")] == [erica.id]
    assert database.search_people("Erica") == []


def test_search_is_capped(database: Database) -> None:
    for index in range(SEARCH_LIMIT + 10):
        database.insert_person(_person(f"dev{index}", name="Common Name", stack=None))

    assert len(database.search_people("Common")) == SEARCH_LIMIT
    assert database.count_people() == SEARCH_LIMIT + 10


def test_listener_receives_commits_in_order(database: Database) -> None:
    listener = database.listen(database.channel)
    people = [_person(f"nick{index}") for index in range(5)]
    for person in people:
        database.insert_person(person)

    messages = listener.receive()

    assert [decode_person(message.payload) for message in messages] == people
    assert listener.receive() == []
    listener.close()


def test_listener_skips_history_unless_requested(database: Database) -> None:
    earlier = _person("earlier")
    database.insert_person(earlier)

    live = database.listen(database.channel)
    replay = database.listen(database.channel, from_start=True)

    assert live.receive() == []
    assert [decode_person(message.payload) for message in replay.receive()] == [earlier]
    live.close()
    replay.close()


def test_listener_only_sees_its_channel(database: Database) -> None:
    listener = database.listen("other_channel")
    database.insert_person(_person("ana"))
    database.publish("other_channel", "hello")

    messages = listener.receive()
    listener.close()

    assert [message.payload for message in messages] == ["hello"]
