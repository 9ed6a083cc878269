"""
FastAPI application for peoplebase.

- Lifespan opens the MongoDB connection at startup (startup fails if the
  store is unreachable) and closes it at shutdown
- Repository errors map to HTTP status codes
- Optional Logfire instrumentation
"""

import logging
from contextlib import asynccontextmanager

import logfire
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from peoplebase import __version__
from peoplebase.config import Settings, get_settings
from peoplebase.database import MongoConnection
from peoplebase.repository import (
    InvalidArgument,
    NotFound,
    PersonRepository,
    RepositoryError,
    StoreUnavailable,
    ValidationError,
)

from .routes import router

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[RepositoryError], int] = {
    ValidationError: 422,
    InvalidArgument: 400,
    NotFound: 404,
    StoreUnavailable: 503,
}


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {exc}")

    content: dict = {"detail": str(exc), "operation": exc.operation}
    if isinstance(exc, ValidationError):
        content["errors"] = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in exc.errors
        ]
    return JSONResponse(status_code=status_code, content=content)


def create_app(
    settings: Settings | None = None,
    connection: MongoConnection | None = None,
    instrument: bool = False,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Used to build the connection when none is given
        connection: Pre-built (unopened) connection handle
        instrument: Attach Logfire FastAPI instrumentation
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        conn = connection or MongoConnection.from_settings(settings or get_settings())

        logger.info("Starting peoplebase API server")
        await conn.connect()
        app.state.connection = conn
        app.state.repository = PersonRepository(conn)
        logger.info("peoplebase API server startup complete")

        yield

        logger.info("Shutting down peoplebase API server")
        await conn.close()

    app = FastAPI(
        title="peoplebase API",
        description="CRUD API over the people collection",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_exception_handler(RepositoryError, repository_error_handler)
    app.include_router(router)

    if instrument:
        logfire.instrument_fastapi(app)

    return app
