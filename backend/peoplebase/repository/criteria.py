"""Criteria compilation: field/value mappings to MongoDB filter documents.

A criteria mapping names fields by their wire name (favoriteFoods), storage
name (favorite_foods) or 'id'. Each value is either a plain value (equality)
or one of the predicates below.

    {"favoriteFoods": Contains("burritos"), "age": GreaterThan(20)}
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from .exceptions import InvalidArgument

Criteria = Mapping[str, Any]

# Wire and storage spellings -> storage field
FIELD_ALIASES: dict[str, str] = {
    "id": "_id",
    "_id": "_id",
    "name": "name",
    "age": "age",
    "favoriteFoods": "favorite_foods",
    "favorite_foods": "favorite_foods",
    "createdAt": "created_at",
    "created_at": "created_at",
}

LIST_FIELDS = frozenset({"favorite_foods"})

_SCALARS = (str, int, float, bool, datetime, ObjectId, type(None))


@dataclass(frozen=True)
class Predicate:
    """Base class for non-equality criteria values."""

    def to_query(self, field: str) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class Contains(Predicate):
    """List field holds the value."""

    value: Any

    def to_query(self, field: str) -> dict[str, Any]:
        if field not in LIST_FIELDS:
            raise InvalidArgument(f"Contains only applies to list fields, not '{field}'")
        return {"$all": [_coerce(field, self.value)]}


@dataclass(frozen=True)
class AnyOf(Predicate):
    """Field equals one of the values."""

    values: tuple[Any, ...]

    def __init__(self, *values: Any):
        if len(values) == 1 and isinstance(values[0], (list, tuple, set, frozenset)):
            values = tuple(values[0])
        object.__setattr__(self, "values", tuple(values))

    def to_query(self, field: str) -> dict[str, Any]:
        return {"$in": [_coerce(field, v) for v in self.values]}


@dataclass(frozen=True)
class _Comparison(Predicate):
    value: Any
    operator = ""

    def to_query(self, field: str) -> dict[str, Any]:
        return {self.operator: _coerce(field, self.value)}


@dataclass(frozen=True)
class NotEqual(_Comparison):
    operator = "$ne"


@dataclass(frozen=True)
class GreaterThan(_Comparison):
    operator = "$gt"


@dataclass(frozen=True)
class GreaterThanOrEqual(_Comparison):
    operator = "$gte"


@dataclass(frozen=True)
class LessThan(_Comparison):
    operator = "$lt"


@dataclass(frozen=True)
class LessThanOrEqual(_Comparison):
    operator = "$lte"


def resolve_field(name: str) -> str:
    """Map a wire/storage field name to its storage name."""
    if not isinstance(name, str):
        raise InvalidArgument(f"Field names must be strings, got {type(name).__name__}")
    if name.startswith("$"):
        raise InvalidArgument(f"Operator keys are not accepted in criteria: '{name}'")
    try:
        return FIELD_ALIASES[name]
    except KeyError:
        raise InvalidArgument(f"Unknown field: '{name}'") from None


def parse_object_id(value: Any) -> ObjectId:
    """Convert an identifier to ObjectId, rejecting malformed values."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as e:
        raise InvalidArgument(f"Malformed identifier: {value!r}") from e


def _coerce(field: str, value: Any) -> Any:
    if field == "_id":
        return parse_object_id(value)
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, (list, tuple)) and all(isinstance(v, _SCALARS) for v in value):
        return list(value)
    raise InvalidArgument(f"Unsupported value for '{field}': {value!r}")


def compile_criteria(criteria: Criteria | None) -> dict[str, Any]:
    """Build a MongoDB filter from a criteria mapping. Empty criteria matches all."""
    if criteria is None:
        return {}
    if not isinstance(criteria, Mapping):
        raise InvalidArgument(f"Criteria must be a mapping, got {type(criteria).__name__}")

    query: dict[str, Any] = {}
    for name, value in criteria.items():
        field = resolve_field(name)
        if field in query:
            raise InvalidArgument(f"Field '{name}' appears more than once in criteria")
        if isinstance(value, Predicate):
            query[field] = value.to_query(field)
        else:
            query[field] = _coerce(field, value)
    return query
