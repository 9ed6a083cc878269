"""
PersonRepository

Typed façade over the 'people' collection.

Methods:
- create(fields) -> Person
- create_many(list of fields) -> list[Person]: all-or-nothing validation, one batch insert
- find_by_filter(criteria) -> async iterator of Person
- find_all(criteria) -> list[Person]
- find_one(criteria) -> Person | None
- find_by_id(id) -> Person | None
- load_mutate_save(id, mutator) -> Person: read-modify-write, no concurrency check
- find_one_and_update(criteria, patch) -> Person | None: atomic
- delete_by_id(id) -> Person | None
- delete_many(criteria) -> int
- count(criteria) -> int
- query(criteria) -> PersonQuery

Every operation fails with StoreUnavailable when the connection is closed or
the server cannot be reached.
"""

import inspect
import logging
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from beanie import PydanticObjectId, UpdateResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from peoplebase.models import Person, PersonCreate, PersonPatch

from .criteria import Criteria, compile_criteria, parse_object_id
from .exceptions import NotFound, ValidationError, translate_store_errors
from .query import PersonQuery

if TYPE_CHECKING:
    from peoplebase.database import MongoConnection

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

Mutator = Callable[[Person], Any]


def _validate(model: type[ModelT], data: Any, operation: str) -> ModelT:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model.__name__}: {e}",
            operation=operation,
            errors=e.errors(include_url=False, include_context=False),
        ) from e


class PersonRepository:
    """Document repository for Person entities."""

    def __init__(self, connection: "MongoConnection"):
        self.connection = connection

    async def create(self, fields: Mapping[str, Any] | PersonCreate) -> Person:
        """Validate, default and insert one person."""
        self.connection.require_open("create")
        person = _validate(PersonCreate, fields, "create").to_document()

        with translate_store_errors("create"):
            await person.insert()

        logger.info(f"Created person {person.id} ({person.name})")
        return person

    async def create_many(
        self, people: Sequence[Mapping[str, Any] | PersonCreate]
    ) -> list[Person]:
        """
        Insert a batch of people.

        Every element is validated before anything is written; one invalid
        element fails the whole batch with ValidationError.
        """
        self.connection.require_open("create_many")
        if isinstance(people, (str, bytes, Mapping)) or not isinstance(people, Sequence):
            raise ValidationError(
                f"create_many expects a list of people, got {type(people).__name__}",
                operation="create_many",
            )

        documents: list[Person] = []
        errors: list[dict[str, Any]] = []
        for index, fields in enumerate(people):
            try:
                documents.append(PersonCreate.model_validate(fields).to_document())
            except PydanticValidationError as e:
                for error in e.errors(include_url=False, include_context=False):
                    errors.append({**error, "loc": (index, *error["loc"])})

        if errors:
            bad = sorted({error["loc"][0] for error in errors})
            logger.warning(f"Rejected batch of {len(people)} people, invalid indexes: {bad}")
            raise ValidationError(
                f"Invalid people at index {', '.join(str(i) for i in bad)}; nothing was written",
                operation="create_many",
                errors=errors,
            )

        if not documents:
            return []

        for document in documents:
            document.id = PydanticObjectId()

        with translate_store_errors("create_many"):
            await Person.insert_many(documents)

        logger.info(f"Created {len(documents)} people")
        return documents

    def find_by_filter(self, criteria: Criteria | None = None) -> AsyncIterator[Person]:
        """
        Lazily iterate people matching criteria.

        Criteria are validated immediately; the database is only queried once
        iteration starts.

        Usage:
            async for person in repository.find_by_filter({"name": "Mary"}):
                ...
        """
        query = compile_criteria(criteria)
        return self._iterate(query)

    async def _iterate(self, query: dict[str, Any]) -> AsyncIterator[Person]:
        self.connection.require_open("find_by_filter")
        with translate_store_errors("find_by_filter"):
            async for person in Person.find(query):
                yield person

    async def find_all(self, criteria: Criteria | None = None) -> list[Person]:
        return [person async for person in self.find_by_filter(criteria)]

    async def find_one(self, criteria: Criteria | None = None) -> Person | None:
        """First match, or None."""
        query = compile_criteria(criteria)
        self.connection.require_open("find_one")

        with translate_store_errors("find_one"):
            return await Person.find_one(query)

    async def find_by_id(self, person_id: Any) -> Person | None:
        """Lookup by identifier. Malformed identifiers raise InvalidArgument."""
        object_id = parse_object_id(person_id)
        self.connection.require_open("find_by_id")

        with translate_store_errors("find_by_id"):
            return await Person.get(object_id)

    async def load_mutate_save(self, person_id: Any, mutator: Mutator) -> Person:
        """
        Load a person, apply mutator to it, and save the whole document.

        The mutator may be a plain function or a coroutine function. There is
        no optimistic-concurrency check: concurrent callers may overwrite each
        other's changes.

        Raises:
            NotFound: No person with this id.
            ValidationError: The mutated person is no longer valid.
        """
        person = await self.find_by_id(person_id)
        if person is None:
            logger.warning(f"Person {person_id} not found for update")
            raise NotFound(f"Person {person_id} not found", operation="load_mutate_save")

        original_id = person.id
        original_created_at = person.created_at

        try:
            result = mutator(person)
            if inspect.isawaitable(result):
                await result
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid Person: {e}",
                operation="load_mutate_save",
                errors=e.errors(include_url=False, include_context=False),
            ) from e

        if person.id != original_id or person.created_at != original_created_at:
            raise ValidationError(
                "id and createdAt cannot be changed",
                operation="load_mutate_save",
            )
        # Document assignment is unvalidated; store the coerced values
        validated = _validate(
            PersonCreate,
            {
                "name": person.name,
                "age": person.age,
                "favorite_foods": person.favorite_foods,
            },
            "load_mutate_save",
        )
        person.name = validated.name
        person.age = validated.age
        person.favorite_foods = list(validated.favorite_foods)

        with translate_store_errors("load_mutate_save"):
            await person.save()

        logger.info(f"Saved person {person.id}")
        return person

    async def find_one_and_update(
        self,
        criteria: Criteria | None,
        patch: Mapping[str, Any] | PersonPatch,
    ) -> Person | None:
        """
        Atomically apply a partial update to the first match.

        Only the fields named in patch change. Returns the updated person, or
        None without writing anything when nothing matches.
        """
        query = compile_criteria(criteria)
        update = _validate(PersonPatch, patch, "find_one_and_update").to_update()
        if not update:
            raise ValidationError(
                "Patch must name at least one field",
                operation="find_one_and_update",
            )
        self.connection.require_open("find_one_and_update")

        with translate_store_errors("find_one_and_update"):
            person = await Person.find_one(query).update(
                {"$set": update},
                response_type=UpdateResponse.NEW_DOCUMENT,
            )

        if person is None:
            logger.info(f"No person matched {query}; nothing updated")
        else:
            logger.info(f"Updated person {person.id}: {sorted(update)}")
        return person

    async def delete_by_id(self, person_id: Any) -> Person | None:
        """Remove one person and return it, or None when absent."""
        object_id = parse_object_id(person_id)
        self.connection.require_open("delete_by_id")

        with translate_store_errors("delete_by_id"):
            person = await Person.get(object_id)
            if person is None:
                return None
            await person.delete()

        logger.info(f"Removed person {object_id}")
        return person

    async def delete_many(self, criteria: Criteria | None = None) -> int:
        """Remove every match. Returns the number removed."""
        query = compile_criteria(criteria)
        self.connection.require_open("delete_many")

        with translate_store_errors("delete_many"):
            result = await Person.find(query).delete()

        deleted = result.deleted_count if result is not None else 0
        logger.info(f"Deleted {deleted} people matching {query}")
        return deleted

    async def count(self, criteria: Criteria | None = None) -> int:
        query = compile_criteria(criteria)
        self.connection.require_open("count")

        with translate_store_errors("count"):
            return await Person.find(query).count()

    def query(self, criteria: Criteria | None = None) -> PersonQuery:
        """Start a chained query. No I/O until execute()."""
        return PersonQuery(self.connection, criteria)
