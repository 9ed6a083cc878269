"""
MongoDB ODM Models Package

Collections:
- people: Person documents
"""

from beanie import Document

from .person import (
    DEFAULT_AGE,
    Person,
    PersonCreate,
    PersonOut,
    PersonPatch,
    PersonProjection,
    to_wire,
    utc_now,
)


def get_document_models() -> list[type[Document]]:
    """Document models registered with Beanie on connect."""
    return [Person]


__all__ = [
    "DEFAULT_AGE",
    "Person",
    "PersonCreate",
    "PersonOut",
    "PersonPatch",
    "PersonProjection",
    "get_document_models",
    "to_wire",
    "utc_now",
]
