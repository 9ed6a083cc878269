"""
Person document schema.

Stored in the 'people' collection. Field names are snake_case in MongoDB and
camelCase on the wire.

Schema Fields:
- _id: ObjectId (assigned on insert)
- name: required, non-empty
- age: integer >= 0, defaults to 18 on creation only
- favorite_foods: ordered list of strings
- created_at: UTC timestamp set once at creation

Boundary models:
- PersonCreate: validated input for new documents
- PersonPatch: partial update, only named fields change
- PersonProjection: possibly partial document returned by chained queries
- PersonOut: wire shape
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_AGE = 18

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Age = Annotated[int, Field(ge=0)]


def utc_now() -> datetime:
    """Current UTC time truncated to BSON millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _assume_utc(value: datetime | None) -> datetime | None:
    # The driver hands back naive datetimes unless the client is tz_aware
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Person(Document):
    """A stored person."""

    name: Name
    age: Age = DEFAULT_AGE
    favorite_foods: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", mode="after")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return _assume_utc(v)

    class Settings:
        name = "people"


class PersonCreate(BaseModel):
    """Fields accepted when creating a person."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Name
    age: Age = DEFAULT_AGE
    favorite_foods: list[str] = Field(default_factory=list)

    def to_document(self) -> Person:
        return Person(
            name=self.name,
            age=self.age,
            favorite_foods=list(self.favorite_foods),
        )


class PersonPatch(BaseModel):
    """Partial update. Unset fields are left untouched; null is never accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Name | None = None
    age: Age | None = None
    favorite_foods: list[str] | None = None

    @field_validator("name", "age", "favorite_foods", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("field may not be null")
        return v

    def to_update(self) -> dict[str, Any]:
        """Storage-named fields to $set."""
        return self.model_dump(exclude_unset=True)


class PersonProjection(BaseModel):
    """A person as returned by a chained query. Excluded fields are unset."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: PydanticObjectId | None = Field(default=None, alias="_id")
    name: str | None = None
    age: int | None = None
    favorite_foods: list[str] | None = None
    created_at: datetime | None = None

    @field_validator("created_at", mode="after")
    @classmethod
    def created_at_utc(cls, v: datetime | None) -> datetime | None:
        return _assume_utc(v)

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True, mode="json")
        return {to_camel(key): value for key, value in data.items()}


class PersonOut(BaseModel):
    """Wire shape of a person."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    age: int
    favorite_foods: list[str]
    created_at: datetime

    @classmethod
    def from_document(cls, person: Person) -> "PersonOut":
        return cls(
            id=str(person.id),
            name=person.name,
            age=person.age,
            favorite_foods=list(person.favorite_foods),
            created_at=person.created_at,
        )


def to_wire(person: Person) -> dict[str, Any]:
    """Serialize a stored person to its camelCase JSON shape."""
    return PersonOut.from_document(person).model_dump(by_alias=True, mode="json")
