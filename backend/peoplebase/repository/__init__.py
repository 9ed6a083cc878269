"""
Repository Pattern for MongoDB

Typed façade over the people collection:
- PersonRepository: create, find, update and delete operations
- PersonQuery: chainable filter -> sort -> limit -> exclusion builder
- Criteria predicates: Contains, AnyOf, NotEqual and comparisons
- Error taxonomy: ValidationError, NotFound, InvalidArgument, StoreUnavailable
"""

from .criteria import (
    AnyOf,
    Contains,
    Criteria,
    GreaterThan,
    GreaterThanOrEqual,
    LessThan,
    LessThanOrEqual,
    NotEqual,
    compile_criteria,
)
from .exceptions import (
    InvalidArgument,
    NotFound,
    RepositoryError,
    StoreUnavailable,
    ValidationError,
)
from .people import PersonRepository
from .query import PersonQuery, SortDirection

__all__ = [
    "PersonRepository",
    "PersonQuery",
    "SortDirection",
    "Criteria",
    "compile_criteria",
    "AnyOf",
    "Contains",
    "GreaterThan",
    "GreaterThanOrEqual",
    "LessThan",
    "LessThanOrEqual",
    "NotEqual",
    "RepositoryError",
    "ValidationError",
    "NotFound",
    "InvalidArgument",
    "StoreUnavailable",
]
