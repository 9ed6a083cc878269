"""Tests for PersonRepository against an in-memory MongoDB."""

import asyncio
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from peoplebase.models import DEFAULT_AGE, Person
from peoplebase.repository import (
    Contains,
    GreaterThan,
    InvalidArgument,
    NotFound,
    PersonRepository,
    StoreUnavailable,
    ValidationError,
)


def test_create_then_find_by_id_returns_stored_person(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            created = await repository.create({"name": "John Doe", "favoriteFoods": ["pizza", "pasta"]})

            assert created.id is not None
            assert created.age == DEFAULT_AGE
            assert created.created_at is not None

            fetched = await repository.find_by_id(str(created.id))
            assert fetched is not None
            assert fetched.id == created.id
            assert fetched.name == "John Doe"
            assert fetched.age == 18
            assert fetched.favorite_foods == ["pizza", "pasta"]
            assert fetched.created_at == created.created_at

    asyncio.run(run())


def test_create_keeps_explicit_age_and_accepts_storage_names(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "Ann", "age": 30, "favorite_foods": ["tea"]})
            assert person.age == 30
            assert person.favorite_foods == ["tea"]

    asyncio.run(run())


@pytest.mark.parametrize(
    "fields",
    [
        {"age": 30},
        {"name": "   "},
        {"name": "Ann", "age": -1},
        {"name": "Ann", "email": "ann@example.com"},
        {"name": "Ann", "favoriteFoods": "pizza"},
    ],
)
def test_create_rejects_invalid_fields_without_writing(connection, repository, fields) -> None:
    async def run() -> None:
        async with connection:
            with pytest.raises(ValidationError) as exc_info:
                await repository.create(fields)
            assert exc_info.value.operation == "create"
            assert exc_info.value.errors
            assert await repository.count() == 0

    asyncio.run(run())


def test_create_many_assigns_ids_to_every_person(connection, repository, seed_people) -> None:
    async def run() -> None:
        async with connection:
            people = await repository.create_many(seed_people)

            assert [p.name for p in people] == ["Mary", "Steve", "Mary"]
            assert len({p.id for p in people}) == 3
            assert all(p.age == DEFAULT_AGE for p in people)
            assert await repository.count() == 3

            for person in people:
                fetched = await repository.find_by_id(person.id)
                assert fetched is not None
                assert fetched.favorite_foods == person.favorite_foods

    asyncio.run(run())


def test_create_many_is_all_or_nothing(connection, repository, seed_people) -> None:
    async def run() -> None:
        async with connection:
            batch = [seed_people[0], {"favoriteFoods": ["soup"]}, seed_people[1]]

            with pytest.raises(ValidationError) as exc_info:
                await repository.create_many(batch)

            assert "index 1" in str(exc_info.value)
            assert {error["loc"][0] for error in exc_info.value.errors} == {1}
            assert await repository.count() == 0

    asyncio.run(run())


def test_create_many_empty_batch(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            assert await repository.create_many([]) == []

    asyncio.run(run())


def test_find_by_filter_is_lazy_and_empty_filter_matches_all(connection, repository, seed_people) -> None:
    async def run() -> None:
        async with connection:
            await repository.create_many(seed_people)

            iterator = repository.find_by_filter({"name": "Mary"})
            marys = [person async for person in iterator]
            assert len(marys) == 2
            assert all(person.name == "Mary" for person in marys)

            everyone = await repository.find_all({})
            assert len(everyone) == 3

            burrito_fans = await repository.find_all({"favoriteFoods": Contains("burritos")})
            assert sorted(p.name for p in burrito_fans) == ["Mary", "Steve"]

    asyncio.run(run())


def test_find_by_filter_validates_criteria_before_iteration(repository) -> None:
    # No connection is open: validation happens eagerly, I/O only on iteration
    with pytest.raises(InvalidArgument):
        repository.find_by_filter({"nickname": "Mo"})


def test_find_one_returns_match_or_none(connection, repository, seed_people) -> None:
    async def run() -> None:
        async with connection:
            await repository.create_many(seed_people)

            steve = await repository.find_one({"favoriteFoods": "steak"})
            assert steve is not None
            assert steve.name == "Steve"

            assert await repository.find_one({"name": "Nobody"}) is None

    asyncio.run(run())


def test_find_by_id_malformed_vs_missing(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            with pytest.raises(InvalidArgument):
                await repository.find_by_id("not-an-object-id")
            assert await repository.find_by_id(str(ObjectId())) is None

    asyncio.run(run())


def test_load_mutate_save_appends_food(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "John Doe", "favoriteFoods": ["pizza"]})

            saved = await repository.load_mutate_save(
                person.id,
                lambda p: p.favorite_foods.append("hamburger"),
            )
            assert saved.favorite_foods == ["pizza", "hamburger"]

            fetched = await repository.find_by_id(person.id)
            assert fetched.favorite_foods == ["pizza", "hamburger"]
            assert fetched.created_at == person.created_at

    asyncio.run(run())


def test_load_mutate_save_accepts_async_mutator(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "Ann"})

            async def birthday(p: Person) -> None:
                p.age += 1

            saved = await repository.load_mutate_save(person.id, birthday)
            assert saved.age == DEFAULT_AGE + 1
            assert (await repository.find_by_id(person.id)).age == DEFAULT_AGE + 1

    asyncio.run(run())


def test_load_mutate_save_missing_person(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            with pytest.raises(NotFound):
                await repository.load_mutate_save(ObjectId(), lambda p: None)

    asyncio.run(run())


def test_load_mutate_save_rejects_invalid_result(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "Ann"})

            def clear_name(p: Person) -> None:
                p.name = ""

            with pytest.raises(ValidationError):
                await repository.load_mutate_save(person.id, clear_name)

            assert (await repository.find_by_id(person.id)).name == "Ann"

    asyncio.run(run())


def test_load_mutate_save_stores_coerced_values(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "Ann"})

            def loosen(p: Person) -> None:
                p.age = "21"
                p.name = "  Bob  "

            saved = await repository.load_mutate_save(person.id, loosen)
            assert saved.age == 21
            assert saved.name == "Bob"

            raw = await connection.database["people"].find_one({"_id": person.id})
            assert raw["age"] == 21
            assert raw["name"] == "Bob"
            assert await repository.count({"age": GreaterThan(20)}) == 1

    asyncio.run(run())


def test_load_mutate_save_rejects_id_change(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "Ann"})

            def reassign_id(p: Person) -> None:
                p.id = ObjectId()
                p.age = 99

            with pytest.raises(ValidationError):
                await repository.load_mutate_save(person.id, reassign_id)

            assert await repository.count() == 1
            stored = await repository.find_by_id(person.id)
            assert stored.age == DEFAULT_AGE

    asyncio.run(run())


def test_load_mutate_save_rejects_created_at_change(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "Ann"})

            def backdate(p: Person) -> None:
                p.created_at = datetime(2000, 1, 1, tzinfo=timezone.utc)
                p.age = 99

            with pytest.raises(ValidationError):
                await repository.load_mutate_save(person.id, backdate)

            stored = await repository.find_by_id(person.id)
            assert stored.created_at == person.created_at
            assert stored.age == DEFAULT_AGE

    asyncio.run(run())


def test_find_one_and_update_changes_only_named_fields(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            await repository.create_many(
                [{"name": "Steve", "age": 40, "favoriteFoods": ["steak", "burritos"]}]
            )

            updated = await repository.find_one_and_update({"name": "Steve"}, {"age": 20})
            assert updated is not None
            assert updated.age == 20
            assert updated.favorite_foods == ["steak", "burritos"]

            fetched = await repository.find_by_id(updated.id)
            assert fetched.age == 20
            assert fetched.created_at == updated.created_at

    asyncio.run(run())


def test_find_one_and_update_without_match_writes_nothing(connection, repository, seed_people) -> None:
    async def run() -> None:
        async with connection:
            await repository.create_many(seed_people)
            before = [(p.id, p.name, p.age) for p in await repository.find_all()]

            result = await repository.find_one_and_update({"name": "Nobody"}, {"age": 99})

            assert result is None
            assert await repository.count() == 3
            after = [(p.id, p.name, p.age) for p in await repository.find_all()]
            assert after == before

    asyncio.run(run())


@pytest.mark.parametrize(
    "patch",
    [
        {},
        {"age": None},
        {"name": ""},
        {"createdAt": "2020-01-01T00:00:00Z"},
        {"id": "abc"},
    ],
)
def test_find_one_and_update_rejects_bad_patch(connection, repository, patch) -> None:
    async def run() -> None:
        async with connection:
            await repository.create({"name": "Steve", "age": 40})

            with pytest.raises(ValidationError):
                await repository.find_one_and_update({"name": "Steve"}, patch)

            assert (await repository.find_one({"name": "Steve"})).age == 40

    asyncio.run(run())


def test_delete_by_id_then_find_returns_none(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            person = await repository.create({"name": "John Doe"})

            removed = await repository.delete_by_id(str(person.id))
            assert removed is not None
            assert removed.id == person.id

            assert await repository.find_by_id(person.id) is None
            assert await repository.delete_by_id(person.id) is None

    asyncio.run(run())


def test_delete_many_returns_counts(connection, repository, seed_people) -> None:
    async def run() -> None:
        async with connection:
            await repository.create_many(seed_people)

            assert await repository.delete_many({"name": "Nobody"}) == 0
            assert await repository.delete_many({"name": "Mary"}) == 2
            assert await repository.count() == 1

            await repository.create_many(seed_people)
            assert await repository.delete_many({}) == 4
            assert await repository.count() == 0

    asyncio.run(run())


def test_count_with_comparison_predicate(connection, repository) -> None:
    async def run() -> None:
        async with connection:
            await repository.create_many(
                [{"name": "A", "age": 10}, {"name": "B", "age": 30}, {"name": "C", "age": 50}]
            )
            assert await repository.count({"age": GreaterThan(20)}) == 2

    asyncio.run(run())


def test_operations_require_open_connection(connection, repository) -> None:
    async def run() -> None:
        with pytest.raises(StoreUnavailable):
            await repository.create({"name": "Early"})

        async with connection:
            person = await repository.create({"name": "Ann"})

        with pytest.raises(StoreUnavailable):
            await repository.find_by_id(person.id)
        with pytest.raises(StoreUnavailable):
            await repository.delete_many({})
        with pytest.raises(StoreUnavailable):
            await repository.find_all()

    asyncio.run(run())


def test_driver_connection_errors_become_store_unavailable(connection, repository, monkeypatch) -> None:
    async def lost_connection(*args, **kwargs):
        raise AutoReconnect("connection reset")

    async def run() -> None:
        async with connection:
            monkeypatch.setattr(Person, "get", lost_connection)

            with pytest.raises(StoreUnavailable) as exc_info:
                await repository.find_by_id(ObjectId())

            assert exc_info.value.operation == "find_by_id"
            assert isinstance(exc_info.value.__cause__, AutoReconnect)

    asyncio.run(run())


def test_repository_shares_connection(connection) -> None:
    repository = PersonRepository(connection)
    assert repository.connection is connection
