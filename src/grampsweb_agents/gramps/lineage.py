"""Lineage traversal over a Gramps Web family graph.

Provides:
- Ancestor traversal (parents, grandparents, etc.)
- Descendant traversal (children, grandchildren, etc.)

Person and family records are fetched lazily, one at a time, through the
client. The graph is externally maintained and may contain cycles (a person
recorded as their own ancestor); the visited set and the generation bound
together guarantee termination.
"""
from __future__ import annotations

import time
from collections import deque

from pydantic import BaseModel, Field, ValidationError

from grampsweb_agents.gramps.client import GrampsWebClient
from grampsweb_agents.gramps.errors import GrampsAPIError
from grampsweb_agents.gramps.formatting import format_person_name
from grampsweb_agents.gramps.models import Family, Person
from grampsweb_agents.gramps.relationships import Direction, ParentRole, relationship_label
from grampsweb_agents.logging import get_logger

logger = get_logger(__name__)

# Hard ceiling on generations; each generation can double the frontier
MAX_GENERATIONS = 10
DEFAULT_GENERATIONS = 3


class LineageQuery(BaseModel):
    """Validated lineage request from a tool caller."""
    handle: str = Field(min_length=1)
    generations: int = Field(default=DEFAULT_GENERATIONS, ge=1, le=MAX_GENERATIONS)


class LineageEntry(BaseModel):
    """One relative discovered by a traversal."""
    handle: str
    gramps_id: str = ""
    name: str = "Unknown"
    generation: int
    relationship: str


class LineageResult(BaseModel):
    """Relatives grouped by generation distance from the root person."""
    root_handle: str
    direction: Direction
    generations_retrieved: int
    generations: dict[int, list[LineageEntry]] = Field(default_factory=dict)
    query_time_ms: float = 0.0

    @property
    def total_count(self) -> int:
        return sum(len(entries) for entries in self.generations.values())

    @property
    def is_empty(self) -> bool:
        return not self.generations

    def entries(self) -> list[LineageEntry]:
        """All entries, generation by generation, in discovery order."""
        return [e for gen in sorted(self.generations) for e in self.generations[gen]]


def clamp_generations(value: int) -> int:
    return max(0, min(int(value), MAX_GENERATIONS))


class LineageTraversal:
    """Breadth-first, generation-bounded lineage walks.

    Example:
        >>> traversal = LineageTraversal(client)
        >>> result = await traversal.ancestors_of("a1b2c3", max_generations=4)
        >>> for entry in result.generations.get(1, []):
        ...     print(entry.relationship, entry.name)
    """

    def __init__(self, client: GrampsWebClient) -> None:
        self.client = client

    async def ancestors_of(self, handle: str, max_generations: int = DEFAULT_GENERATIONS) -> LineageResult:
        """Walk parent families upward from ``handle``."""
        return await self._walk(handle, max_generations, Direction.ANCESTORS)

    async def descendants_of(self, handle: str, max_generations: int = DEFAULT_GENERATIONS) -> LineageResult:
        """Walk child-bearing families downward from ``handle``."""
        return await self._walk(handle, max_generations, Direction.DESCENDANTS)

    async def _walk(self, handle: str, max_generations: int, direction: Direction) -> LineageResult:
        start_time = time.time()
        bound = clamp_generations(max_generations)
        logger.debug("lineage_started", handle=handle, direction=direction.value, generations=bound)

        entries: list[LineageEntry] = []
        visited: set[str] = set()
        queue: deque[tuple[str, int, str]] = deque([(handle, 0, "Self")])

        while queue:
            current, generation, label = queue.popleft()

            if current in visited or generation > bound:
                continue
            visited.add(current)

            person = await self._fetch_person(current)
            if person is None:
                continue

            entries.append(LineageEntry(
                handle=person.handle or current,
                gramps_id=person.gramps_id,
                name=format_person_name(person.primary_name),
                generation=generation,
                relationship=label,
            ))

            if generation >= bound:
                continue

            family_handles = (
                person.parent_family_list
                if direction == Direction.ANCESTORS
                else person.family_list
            )
            for family_handle in family_handles:
                family = await self._fetch_family(family_handle)
                if family is None:
                    continue
                for relative, role in self._relatives(family, direction):
                    if relative not in visited:
                        queue.append((
                            relative,
                            generation + 1,
                            relationship_label(direction, generation + 1, role),
                        ))

        grouped: dict[int, list[LineageEntry]] = {}
        for entry in entries:
            grouped.setdefault(entry.generation, []).append(entry)

        result = LineageResult(
            root_handle=handle,
            direction=direction,
            generations_retrieved=bound,
            generations={g: grouped[g] for g in range(bound + 1) if g in grouped},
            query_time_ms=(time.time() - start_time) * 1000,
        )
        logger.info(
            "lineage_finished",
            handle=handle,
            direction=direction.value,
            total=result.total_count,
        )
        return result

    @staticmethod
    def _relatives(family: Family, direction: Direction) -> list[tuple[str, ParentRole | None]]:
        if direction == Direction.ANCESTORS:
            parents: list[tuple[str, ParentRole | None]] = []
            if family.father_handle:
                parents.append((family.father_handle, ParentRole.FATHER))
            if family.mother_handle:
                parents.append((family.mother_handle, ParentRole.MOTHER))
            return parents
        return [(child, None) for child in family.child_handles]

    async def _fetch_person(self, handle: str) -> Person | None:
        try:
            return await self.client.get_person(handle)
        except (GrampsAPIError, ValidationError) as e:
            logger.warning("lineage_branch_pruned", kind="person", handle=handle, error=str(e))
            return None

    async def _fetch_family(self, handle: str) -> Family | None:
        try:
            return await self.client.get_family(handle)
        except (GrampsAPIError, ValidationError) as e:
            logger.warning("lineage_branch_pruned", kind="family", handle=handle, error=str(e))
            return None
