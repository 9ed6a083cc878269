"""
MongoDB connection handle and Beanie ODM initialization.

This module provides:
- MongoConnection: explicit client lifecycle (connect / close) via Motor
- Beanie ODM initialization for the registered document models
- Health check and credential-safe connection info
"""

import logging
from typing import Any, Callable

from beanie import Document, init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from peoplebase.config import ConfigurationError, Settings
from peoplebase.repository.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]


class MongoConnection:
    """
    Explicit MongoDB connection handle.

    Created at startup, passed into repositories, closed at shutdown.
    Operations issued before connect() or after close() fail with
    StoreUnavailable.

    Usage:
        async with MongoConnection.from_settings(settings) as connection:
            repository = PersonRepository(connection)
    """

    def __init__(
        self,
        uri: str,
        database_name: str,
        document_models: list[type[Document]] | None = None,
        client_factory: ClientFactory | None = None,
        timeout_ms: int = 5000,
    ):
        self.uri = uri
        self.database_name = database_name
        self.timeout_ms = timeout_ms
        self._document_models = document_models
        self._client_factory = client_factory or AsyncIOMotorClient
        self._client: Any | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "MongoConnection":
        return cls(
            uri=settings.mongodb_uri,
            database_name=settings.database_name,
            timeout_ms=settings.mongodb_timeout_ms,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def sanitized_url(self) -> str:
        return sanitize_mongodb_url(self.uri)

    async def connect(self) -> "MongoConnection":
        """
        Create the client, verify the server answers, and bind Beanie models.

        Raises:
            ConfigurationError: The client rejected the URI.
            StoreUnavailable: The server could not be reached.
        """
        if self._client is not None:
            return self

        if self._document_models is None:
            from peoplebase.models import get_document_models

            self._document_models = get_document_models()

        logger.info(f"Connecting to MongoDB at {self.sanitized_url} (database '{self.database_name}')")
        try:
            client = self._client_factory(
                self.uri,
                serverSelectionTimeoutMS=self.timeout_ms,
                tz_aware=True,
            )
        except (PyMongoError, ValueError) as e:
            # Malformed URI, bad option or unresolvable SRV record
            logger.error(f"MongoDB client rejected {self.sanitized_url}: {e}")
            raise ConfigurationError(
                f"Invalid MongoDB URI {self.sanitized_url}: {e}"
            ) from e

        try:
            await client.admin.command("ping")
            await init_beanie(
                database=client[self.database_name],
                document_models=self._document_models,
            )
        except PyMongoError as e:
            client.close()
            logger.error(f"MongoDB connection error: {e}")
            raise StoreUnavailable(
                f"Could not connect to MongoDB at {self.sanitized_url}: {e}",
                operation="connect",
            ) from e

        self._client = client
        logger.info("MongoDB connected")
        return self

    async def close(self) -> None:
        """Close the client. Safe to call more than once."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")

    async def __aenter__(self) -> "MongoConnection":
        return await self.connect()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def require_open(self, operation: str | None = None) -> None:
        if self._client is None:
            raise StoreUnavailable(
                "MongoDB connection is not open. Call connect() first.",
                operation=operation,
            )

    @property
    def client(self) -> Any:
        self.require_open()
        return self._client

    @property
    def database(self) -> AsyncIOMotorDatabase:
        return self.client[self.database_name]

    async def ping(self) -> bool:
        """Check if the MongoDB connection is healthy."""
        if self._client is None:
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    def info(self) -> dict[str, str]:
        """Connection information safe for logs and health endpoints."""
        return {
            "status": "connected" if self._client is not None else "disconnected",
            "url": self.sanitized_url,
            "database": self.database_name,
        }


def sanitize_mongodb_url(url: str) -> str:
    """
    Hide password in MongoDB URL for safe logging.
    """
    if "@" not in url or "://" not in url:
        return url

    protocol, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    if ":" in credentials:
        username = credentials.split(":", 1)[0]
        return f"{protocol}://{username}:***@{host}"
    return url
