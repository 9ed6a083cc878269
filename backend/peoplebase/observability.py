"""Logfire observability initialization and instrumentation."""

import logging

import logfire

from peoplebase import __version__
from peoplebase.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire when a token is configured.

    Must be called once at startup, before the first MongoDB connection is
    opened, so PyMongo command monitoring picks up the new client.

    Instruments:
    - PyMongo (every command sent by Motor)
    - Python logging (bridges to Logfire)

    Returns:
        True if Logfire is active.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="peoplebase",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_pymongo()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire tracking initialized")
        return True

    except Exception as e:
        # Observability is optional; keep running without it
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
