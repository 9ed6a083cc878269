"""Chainable query builder: filter -> sort -> limit -> field exclusion.

Every stage returns a new builder; nothing touches the database until
execute(). The builder compiles to an aggregation pipeline so that sorting,
limiting and projection run server-side in one round trip.
"""

import logging
from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

import pymongo

from peoplebase.models import Person, PersonProjection

from .criteria import Criteria, compile_criteria, resolve_field
from .exceptions import InvalidArgument, translate_store_errors

if TYPE_CHECKING:
    from peoplebase.database import MongoConnection

logger = logging.getLogger(__name__)


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    @property
    def mongo(self) -> int:
        return pymongo.ASCENDING if self is SortDirection.ASCENDING else pymongo.DESCENDING


class PersonQuery:
    """Lazily configured query over the people collection."""

    def __init__(self, connection: "MongoConnection", criteria: Criteria | None = None):
        self._connection = connection
        self._filter = compile_criteria(criteria)
        self._sort: list[tuple[str, int]] = []
        self._limit: int | None = None
        self._excluded: tuple[str, ...] = ()

    def _copy(self) -> "PersonQuery":
        clone = PersonQuery.__new__(PersonQuery)
        clone._connection = self._connection
        clone._filter = dict(self._filter)
        clone._sort = list(self._sort)
        clone._limit = self._limit
        clone._excluded = self._excluded
        return clone

    def sort_by(
        self,
        field: str,
        direction: SortDirection | str = SortDirection.ASCENDING,
    ) -> "PersonQuery":
        """Add a sort key. Keys apply in the order they are added."""
        storage_field = resolve_field(field)
        try:
            direction = SortDirection(direction)
        except ValueError:
            raise InvalidArgument(f"Unknown sort direction: {direction!r}") from None

        clone = self._copy()
        clone._sort = [(f, d) for f, d in clone._sort if f != storage_field]
        clone._sort.append((storage_field, direction.mongo))
        return clone

    def limit(self, n: int) -> "PersonQuery":
        if isinstance(n, bool) or not isinstance(n, int) or n < 1:
            raise InvalidArgument(f"limit must be a positive integer, got {n!r}")

        clone = self._copy()
        clone._limit = n
        return clone

    def exclude_fields(self, fields: Iterable[str]) -> "PersonQuery":
        if isinstance(fields, str):
            fields = [fields]
        excluded = list(self._excluded)
        for name in fields:
            storage_field = resolve_field(name)
            if storage_field not in excluded:
                excluded.append(storage_field)

        clone = self._copy()
        clone._excluded = tuple(excluded)
        return clone

    def pipeline(self) -> list[dict[str, Any]]:
        """Aggregation pipeline this query runs."""
        stages: list[dict[str, Any]] = [{"$match": self._filter}]
        if self._sort:
            sort = dict(self._sort)
            # Deterministic order between equal keys
            sort.setdefault("_id", pymongo.ASCENDING)
            stages.append({"$sort": sort})
        if self._limit is not None:
            stages.append({"$limit": self._limit})
        if self._excluded:
            stages.append({"$project": {field: 0 for field in self._excluded}})
        return stages

    async def execute(self) -> list[PersonProjection]:
        """Run the query. Excluded fields are absent (unset) on each result."""
        self._connection.require_open("query")
        pipeline = self.pipeline()

        with translate_store_errors("query"):
            documents = await Person.aggregate(pipeline).to_list()

        logger.debug(f"Query returned {len(documents)} documents for pipeline {pipeline}")
        return [PersonProjection.model_validate(document) for document in documents]
