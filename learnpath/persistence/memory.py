"""In-memory repository adapter.

Used by tests and local runs. Rows are stored as deep copies so callers
can never mutate stored state by accident. A single asyncio.Lock makes
create_if_absent and compare-and-set updates atomic within the process.
"""

from __future__ import annotations

import asyncio
import copy
import dataclasses
from collections.abc import Iterable, Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

import structlog

from learnpath.core.exceptions import ConcurrentUpdateError, ConflictError
from learnpath.persistence.port import (
    Filter,
    Sort,
    apply_filters,
    normalize,
    paginate,
    sort_rows,
    unique_key,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class InMemoryRepository(Generic[T]):
    """Dictionary-backed implementation of EntityRepository."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._rows: dict[UUID, T] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    async def get_by_id(self, entity_id: UUID) -> T | None:
        row = self._rows.get(entity_id)
        return copy.deepcopy(row) if row is not None else None

    async def get_many(self, ids: Iterable[UUID]) -> list[T]:
        result = []
        for entity_id in dict.fromkeys(ids):
            row = self._rows.get(entity_id)
            if row is not None:
                result.append(copy.deepcopy(row))
        return result

    async def list(
        self,
        filters: Sequence[Filter] | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> tuple[list[T], int]:
        rows = apply_filters(self._rows.values(), filters)
        rows = sort_rows(rows, sort)
        total = len(rows)
        return [copy.deepcopy(r) for r in paginate(rows, page, page_size)], total

    async def create(self, entity: T) -> T:
        async with self._lock:
            entity_id = entity.id  # type: ignore[attr-defined]
            if entity_id in self._rows:
                msg = f"{self.name} {entity_id} already exists"
                raise ConflictError(msg)
            self._rows[entity_id] = copy.deepcopy(entity)
        return copy.deepcopy(entity)

    async def create_if_absent(
        self, entity: T, unique_on: Sequence[str]
    ) -> tuple[T, bool]:
        key = unique_key(entity, unique_on)
        async with self._lock:
            for row in self._rows.values():
                if unique_key(row, unique_on) == key:
                    return copy.deepcopy(row), False
            self._rows[entity.id] = copy.deepcopy(entity)  # type: ignore[attr-defined]
        return copy.deepcopy(entity), True

    async def update(
        self,
        entity_id: UUID,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> T | None:
        async with self._lock:
            row = self._rows.get(entity_id)
            if row is None:
                return None
            for name, value in (expected or {}).items():
                if normalize(getattr(row, name)) != normalize(value):
                    logger.debug(
                        "compare_and_set_failed",
                        repository=self.name,
                        entity_id=str(entity_id),
                        field=name,
                    )
                    raise ConcurrentUpdateError
            updated = dataclasses.replace(row, **fields)  # type: ignore[type-var]
            self._rows[entity_id] = copy.deepcopy(updated)
        return copy.deepcopy(updated)

    async def delete(self, entity_id: UUID) -> bool:
        async with self._lock:
            return self._rows.pop(entity_id, None) is not None

    async def count(self, filters: Sequence[Filter] | None = None) -> int:
        return len(apply_filters(self._rows.values(), filters))
