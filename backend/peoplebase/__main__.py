"""peoplebase CLI entry point."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from peoplebase import __version__
from peoplebase.config import ConfigurationError, Settings, get_settings
from peoplebase.database import MongoConnection
from peoplebase.demo import run_demo
from peoplebase.repository import PersonRepository, StoreUnavailable

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


def _init_logfire(settings: Settings) -> bool:
    """Initialize Logfire if available, without failing commands."""
    try:
        from peoplebase.observability import initialize_logfire

        return initialize_logfire(settings)
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False


def _load_settings() -> Settings | None:
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        print(f"\n❌ Configuration error: {e}\n")
        return None

    logging.getLogger().setLevel(settings.log_level.upper())
    return settings


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    settings = _load_settings()
    if settings is None:
        return 1

    connection = MongoConnection.from_settings(settings)

    print("\n=== peoplebase Configuration ===\n")
    print(f"Environment: {settings.environment}")
    print(f"Data Directory: {settings.data_dir}\n")

    print("MongoDB:")
    print(f"  URI: {connection.sanitized_url}")
    print(f"  Database: {settings.database_name}")
    print(f"  Server Selection Timeout: {settings.mongodb_timeout_ms} ms\n")

    print("Server:")
    print(f"  Listen: {settings.host}:{settings.port}")
    print(f"  Log Level: {settings.log_level}\n")

    print("Demo:")
    print(f"  Seed People: {len(settings.demo.seed_people)}")
    print(f"  Query: favoriteFoods contains '{settings.demo.query_food}', limit {settings.demo.query_limit}\n")

    print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
    return 0


async def _ping(settings: Settings) -> int:
    async with MongoConnection.from_settings(settings) as connection:
        repository = PersonRepository(connection)
        return await repository.count()


def cmd_ping(args: argparse.Namespace) -> int:
    """Connect to MongoDB and report the size of the people collection."""
    settings = _load_settings()
    if settings is None:
        return 1

    try:
        total = asyncio.run(_ping(settings))
    except ConfigurationError as e:
        print(f"\n❌ Configuration error: {e}\n")
        return 1
    except StoreUnavailable as e:
        print(f"\n❌ MongoDB unreachable: {e}\n")
        return 1

    print(f"\n✓ MongoDB reachable, {total} people stored\n")
    return 0


async def _demo(settings: Settings, clean: bool) -> list:
    async with MongoConnection.from_settings(settings) as connection:
        repository = PersonRepository(connection)
        if clean:
            removed = await repository.delete_many({})
            logger.info(f"Cleared {removed} people before demo")
        return await run_demo(repository, settings.demo)


def cmd_demo(args: argparse.Namespace) -> int:
    """Run every repository operation in order against the configured store."""
    settings = _load_settings()
    if settings is None:
        return 1
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    _init_logfire(settings)

    print("\n=== peoplebase Demo ===\n")

    try:
        results = asyncio.run(_demo(settings, args.clean))
    except ConfigurationError as e:
        print(f"\n❌ Configuration error: {e}\n")
        return 1
    except StoreUnavailable as e:
        print(f"\n❌ Demo aborted, MongoDB unreachable: {e}\n")
        return 1

    for result in results:
        if result.skipped:
            print(f"- {result.name}: skipped")
        elif result.ok:
            print(f"✓ {result.name}:")
            print(json.dumps(result.detail, indent=2, default=str))
        else:
            print(f"✗ {result.name}: {result.error}")

    failed = [result for result in results if not result.ok]
    print(f"\n{len(results) - len(failed)}/{len(results)} steps succeeded\n")
    return 1 if failed else 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API."""
    import uvicorn

    from peoplebase.api import create_app

    settings = _load_settings()
    if settings is None:
        return 1

    instrument = _init_logfire(settings)
    app = create_app(settings, instrument=instrument)

    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="peoplebase: document repository over MongoDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"peoplebase {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_ping = subparsers.add_parser(
        "ping",
        help="Check the MongoDB connection",
    )
    parser_ping.set_defaults(func=cmd_ping)

    parser_demo = subparsers.add_parser(
        "demo",
        help="Run every repository operation in order",
    )
    parser_demo.add_argument(
        "--clean",
        action="store_true",
        help="Delete all people before running",
    )
    parser_demo.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_demo.set_defaults(func=cmd_demo)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Start the HTTP API",
    )
    parser_serve.add_argument("--host", help="Bind address (default from settings)")
    parser_serve.add_argument("--port", type=int, help="Port (default from settings)")
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
