"""Tutorial walkthrough of every repository operation, run in a fixed order.

DEMO_STEPS is the explicit sequence. Each step receives the shared DemoContext
and returns a JSON-friendly detail for its StepResult. Repository errors fail
only their own step; StoreUnavailable aborts the run.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from peoplebase.config import DemoConfig
from peoplebase.models import Person, to_wire
from peoplebase.repository import (
    Contains,
    PersonRepository,
    RepositoryError,
    SortDirection,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)


class StepResult(BaseModel):
    """Outcome of one demo step."""

    name: str
    ok: bool
    skipped: bool = False
    detail: Any = None
    error: str | None = None


@dataclass
class DemoContext:
    repository: PersonRepository
    config: DemoConfig
    person_id: str | None = None


@dataclass(frozen=True)
class DemoStep:
    name: str
    run: Callable[[DemoContext], Awaitable[Any]]
    needs_person: bool = False


def _wire(person: Person | None) -> dict[str, Any] | None:
    return to_wire(person) if person is not None else None


async def create_and_save(ctx: DemoContext) -> Any:
    return to_wire(await ctx.repository.create(ctx.config.first_person))


async def create_many_people(ctx: DemoContext) -> Any:
    people = await ctx.repository.create_many(ctx.config.seed_people)
    return [to_wire(person) for person in people]


async def find_people_by_name(ctx: DemoContext) -> Any:
    people = await ctx.repository.find_all({"name": ctx.config.search_name})
    return [to_wire(person) for person in people]


async def find_one_by_food(ctx: DemoContext) -> Any:
    return _wire(await ctx.repository.find_one({"favoriteFoods": ctx.config.search_food}))


async def pick_person(ctx: DemoContext) -> Any:
    person = await ctx.repository.find_one()
    ctx.person_id = str(person.id) if person is not None else None
    return _wire(person)


async def find_person_by_id(ctx: DemoContext) -> Any:
    return _wire(await ctx.repository.find_by_id(ctx.person_id))


async def find_edit_then_save(ctx: DemoContext) -> Any:
    food = ctx.config.added_food
    person = await ctx.repository.load_mutate_save(
        ctx.person_id,
        lambda p: p.favorite_foods.append(food),
    )
    return to_wire(person)


async def remove_by_id(ctx: DemoContext) -> Any:
    return _wire(await ctx.repository.delete_by_id(ctx.person_id))


async def find_and_update(ctx: DemoContext) -> Any:
    person = await ctx.repository.find_one_and_update(
        {"name": ctx.config.update_name},
        {"age": ctx.config.update_age},
    )
    return _wire(person)


async def remove_many_people(ctx: DemoContext) -> Any:
    return {"deleted": await ctx.repository.delete_many({"name": ctx.config.remove_name})}


async def query_chain(ctx: DemoContext) -> Any:
    results = await (
        ctx.repository.query({"favoriteFoods": Contains(ctx.config.query_food)})
        .sort_by("name", SortDirection.ASCENDING)
        .limit(ctx.config.query_limit)
        .exclude_fields(["age"])
        .execute()
    )
    return [result.to_wire() for result in results]


DEMO_STEPS: list[DemoStep] = [
    DemoStep("create_and_save", create_and_save),
    DemoStep("create_many_people", create_many_people),
    DemoStep("find_people_by_name", find_people_by_name),
    DemoStep("find_one_by_food", find_one_by_food),
    DemoStep("pick_person", pick_person),
    DemoStep("find_person_by_id", find_person_by_id, needs_person=True),
    DemoStep("find_edit_then_save", find_edit_then_save, needs_person=True),
    DemoStep("remove_by_id", remove_by_id, needs_person=True),
    DemoStep("find_and_update", find_and_update),
    DemoStep("remove_many_people", remove_many_people),
    DemoStep("query_chain", query_chain),
]


async def run_demo(
    repository: PersonRepository,
    config: DemoConfig | None = None,
    steps: list[DemoStep] | None = None,
) -> list[StepResult]:
    """
    Run the demo steps in order.

    Raises:
        StoreUnavailable: The database became unreachable; remaining steps are not run.
    """
    context = DemoContext(repository=repository, config=config or DemoConfig())
    results: list[StepResult] = []

    for step in steps if steps is not None else DEMO_STEPS:
        if step.needs_person and context.person_id is None:
            logger.info(f"Skipping {step.name}: no person to work with")
            results.append(StepResult(name=step.name, ok=True, skipped=True))
            continue

        try:
            detail = await step.run(context)
        except StoreUnavailable as e:
            logger.error(f"{step.name} aborted the demo: {e}")
            raise
        except RepositoryError as e:
            logger.error(f"✗ {step.name} failed: {e}")
            results.append(StepResult(name=step.name, ok=False, error=str(e)))
            continue

        logger.info(f"✓ {step.name}: {detail}")
        results.append(StepResult(name=step.name, ok=True, detail=detail))

    return results
