"""Typed errors raised by the document repository."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from beanie.exceptions import CollectionWasNotInitialized
from pymongo.errors import ConnectionFailure, ExecutionTimeout

logger = logging.getLogger(__name__)

# Driver errors that mean the store itself is unreachable or too slow
STORE_ERRORS = (ConnectionFailure, ExecutionTimeout, CollectionWasNotInitialized)


class RepositoryError(Exception):
    """Base exception for repository operations."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class ValidationError(RepositoryError):
    """Missing or malformed entity field."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message, operation)
        self.errors = errors or []


class NotFound(RepositoryError):
    """Lookup yielded nothing where the caller asked for an explicit failure."""

    pass


class InvalidArgument(RepositoryError):
    """Malformed identifier, field name or filter."""

    pass


class StoreUnavailable(RepositoryError):
    """The database could not be reached or the connection is closed."""

    pass


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver connectivity failures as StoreUnavailable."""
    try:
        yield
    except STORE_ERRORS as e:
        logger.error(f"{operation} failed, store unavailable: {e}")
        raise StoreUnavailable(f"{operation} failed: {e}", operation=operation) from e
