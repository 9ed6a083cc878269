"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo import uri_parser
from pymongo.errors import ConfigurationError as PyMongoConfigurationError
from pymongo.errors import InvalidURI

logger = logging.getLogger(__name__)

MONGODB_SCHEMES = ("mongodb", "mongodb+srv")
DEFAULT_DATABASE = "peoplebase"


class ConfigurationError(Exception):
    """Fatal configuration problem detected at startup."""

    pass


def _default_first_person() -> dict[str, Any]:
    return {"name": "John Doe", "age": 30, "favoriteFoods": ["pizza", "pasta"]}


def _default_seed_people() -> list[dict[str, Any]]:
    return [
        {"name": "Mary", "age": 25, "favoriteFoods": ["salad", "tofu"]},
        {"name": "Steve", "age": 40, "favoriteFoods": ["steak", "burritos"]},
        {"name": "Mary", "age": 22, "favoriteFoods": ["pizza", "burritos"]},
    ]


class DemoConfig(BaseModel):
    """Inputs for the ordered demo run."""

    first_person: dict[str, Any] = Field(default_factory=_default_first_person)
    seed_people: list[dict[str, Any]] = Field(default_factory=_default_seed_people)
    search_name: str = "Mary"
    search_food: str = "burritos"
    added_food: str = "hamburger"
    update_name: str = "Steve"
    update_age: int = 20
    remove_name: str = "Mary"
    query_food: str = "burritos"
    query_limit: int = 2


class Settings(BaseSettings):
    """
    Main configuration class.

    Values come from environment variables and `.env` / `config/.env`.
    The demo inputs can be overridden by a `demo:` section in
    `<DATA_DIR>/config.yaml` (default `data/config.yaml`); see
    `data/config.example.yaml`.
    """

    # Paths
    data_dir: Path = Path("data")

    # MongoDB
    mongodb_uri: str
    mongodb_database: str = ""
    mongodb_timeout_ms: int = 5000

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    environment: str = "development"
    log_level: str = "INFO"

    # Observability
    logfire_token: str = ""

    demo: DemoConfig = Field(default_factory=DemoConfig)

    model_config = SettingsConfigDict(
        env_file=(".env", "config/.env"),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("mongodb_uri", mode="after")
    @classmethod
    def validate_mongodb_uri(cls, v: str) -> str:
        """Reject empty URIs and anything that is not a MongoDB connection string."""
        v = v.strip()
        if not v:
            raise ValueError("MONGODB_URI is empty")

        parts = urlsplit(v)
        if parts.scheme not in MONGODB_SCHEMES:
            raise ValueError(
                f"MONGODB_URI must start with mongodb:// or mongodb+srv://, got '{parts.scheme}://'"
            )
        if not parts.netloc or not parts.netloc.rsplit("@", 1)[-1]:
            raise ValueError("MONGODB_URI has no host")

        # SRV records are resolved when the client starts; check the syntax only
        if parts.scheme == "mongodb+srv":
            if ":" in parts.netloc.rsplit("@", 1)[-1] or "," in parts.netloc:
                raise ValueError("mongodb+srv:// URIs take a single host name without a port")
            syntax_uri = "mongodb://" + v[len("mongodb+srv://"):]
        else:
            syntax_uri = v

        try:
            uri_parser.parse_uri(syntax_uri)
        except (InvalidURI, PyMongoConfigurationError, ValueError) as e:
            raise ValueError(f"MONGODB_URI is malformed: {e}") from e
        return v

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def database_name(self) -> str:
        """Explicit database setting, else the URI path, else the default name."""
        if self.mongodb_database:
            return self.mongodb_database

        path = urlsplit(self.mongodb_uri).path.lstrip("/")
        return path or DEFAULT_DATABASE

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.debug(f"Config file not found: {config_path}. Using defaults.")
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in ["demo"]:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name]

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        except ValidationError as e:
            logger.error(f"Invalid values in {config_path}: {e}")
            raise ConfigurationError(f"Invalid values in {config_path}: {e}") from e


def load_settings(**overrides: Any) -> Settings:
    """Build Settings, converting validation failures into ConfigurationError."""
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e

    settings.load_yaml_config()
    return settings


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    return load_settings()
