"""HTTP routes over PersonRepository."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from peoplebase import __version__
from peoplebase.models import PersonOut
from peoplebase.repository import PersonRepository

logger = logging.getLogger(__name__)

router = APIRouter()


class FavoriteFoodIn(BaseModel):
    food: str = Field(min_length=1)


def get_repository(request: Request) -> PersonRepository:
    return request.app.state.repository


def _not_found(person_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Person {person_id} not found")


@router.get("/health", tags=["Health"])
async def health_check(request: Request) -> dict[str, str]:
    """Health check endpoint for load balancers and monitoring."""
    connection = request.app.state.connection
    db_connected = await connection.ping()

    return {
        "status": "healthy" if db_connected else "degraded",
        "service": "peoplebase-api",
        "version": __version__,
        "database": "connected" if db_connected else "disconnected",
    }


@router.post("/people", response_model=PersonOut, status_code=status.HTTP_201_CREATED, tags=["People"])
async def create_person(
    fields: dict[str, Any] = Body(...),
    repository: PersonRepository = Depends(get_repository),
) -> PersonOut:
    person = await repository.create(fields)
    return PersonOut.from_document(person)


@router.post(
    "/people/batch",
    response_model=list[PersonOut],
    status_code=status.HTTP_201_CREATED,
    tags=["People"],
)
async def create_people(
    people: list[dict[str, Any]] = Body(...),
    repository: PersonRepository = Depends(get_repository),
) -> list[PersonOut]:
    created = await repository.create_many(people)
    return [PersonOut.from_document(person) for person in created]


@router.get("/people", response_model=list[PersonOut], tags=["People"])
async def list_people(
    name: str | None = Query(default=None),
    food: str | None = Query(default=None),
    repository: PersonRepository = Depends(get_repository),
) -> list[PersonOut]:
    criteria: dict[str, Any] = {}
    if name is not None:
        criteria["name"] = name
    if food is not None:
        criteria["favoriteFoods"] = food

    people = await repository.find_all(criteria)
    return [PersonOut.from_document(person) for person in people]


@router.get("/people/{person_id}", response_model=PersonOut, tags=["People"])
async def get_person(
    person_id: str,
    repository: PersonRepository = Depends(get_repository),
) -> PersonOut:
    person = await repository.find_by_id(person_id)
    if person is None:
        raise _not_found(person_id)
    return PersonOut.from_document(person)


@router.patch("/people/{person_id}", response_model=PersonOut, tags=["People"])
async def update_person(
    person_id: str,
    patch: dict[str, Any] = Body(...),
    repository: PersonRepository = Depends(get_repository),
) -> PersonOut:
    person = await repository.find_one_and_update({"id": person_id}, patch)
    if person is None:
        raise _not_found(person_id)
    return PersonOut.from_document(person)


@router.post("/people/{person_id}/favorite-foods", response_model=PersonOut, tags=["People"])
async def add_favorite_food(
    person_id: str,
    body: FavoriteFoodIn,
    repository: PersonRepository = Depends(get_repository),
) -> PersonOut:
    person = await repository.load_mutate_save(
        person_id,
        lambda p: p.favorite_foods.append(body.food),
    )
    return PersonOut.from_document(person)


@router.delete("/people/{person_id}", response_model=PersonOut, tags=["People"])
async def delete_person(
    person_id: str,
    repository: PersonRepository = Depends(get_repository),
) -> PersonOut:
    person = await repository.delete_by_id(person_id)
    if person is None:
        raise _not_found(person_id)
    return PersonOut.from_document(person)


@router.delete("/people", tags=["People"])
async def delete_people(
    name: str = Query(...),
    repository: PersonRepository = Depends(get_repository),
) -> dict[str, int]:
    deleted = await repository.delete_many({"name": name})
    return {"deleted": deleted}
