"""Persistence port: the per-entity repository every component is given.

The port has no join operator. Components compose entities themselves
(see ``learnpath.persistence.batch``).

Entities are dataclasses with an ``id: UUID`` field, a ``from_row``
classmethod and a ``to_dict`` method.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar
from uuid import UUID


T = TypeVar("T")


class FilterOp(str, Enum):
    """Supported filter operators."""

    EQ = "eq"
    IN = "in"
    GTE = "gte"
    LTE = "lte"


def normalize(value: Any) -> Any:
    """Compare enums by their stored value."""
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class Filter:
    """Single field predicate."""

    field: str
    op: FilterOp
    value: Any

    def matches(self, entity: Any) -> bool:
        current = normalize(getattr(entity, self.field, None))
        if self.op == FilterOp.EQ:
            return current == normalize(self.value)
        if self.op == FilterOp.IN:
            return current in {normalize(v) for v in self.value}
        if current is None or self.value is None:
            return False
        if self.op == FilterOp.GTE:
            return current >= normalize(self.value)
        return current <= normalize(self.value)


def eq(field: str, value: Any) -> Filter:
    return Filter(field, FilterOp.EQ, value)


def in_(field: str, values: Iterable[Any]) -> Filter:
    return Filter(field, FilterOp.IN, tuple(values))


def gte(field: str, value: Any) -> Filter:
    return Filter(field, FilterOp.GTE, value)


def lte(field: str, value: Any) -> Filter:
    return Filter(field, FilterOp.LTE, value)


@dataclass(frozen=True)
class Sort:
    """Sort order for list queries."""

    field: str
    descending: bool = False


# ==============================================================================
# Query helpers shared by adapters
# ==============================================================================


def apply_filters(rows: Iterable[T], filters: Sequence[Filter] | None) -> list[T]:
    """Keep rows matching every filter."""
    if not filters:
        return list(rows)
    return [row for row in rows if all(f.matches(row) for f in filters)]


def sort_rows(rows: list[T], sort: Sort | None) -> list[T]:
    """Sort rows; missing values go last in ascending order."""
    if sort is None:
        return rows

    def key(row: T) -> tuple[bool, Any]:
        value = normalize(getattr(row, sort.field, None))
        return (value is None, value if value is not None else 0)

    if sort.descending:
        present = [r for r in rows if getattr(r, sort.field, None) is not None]
        missing = [r for r in rows if getattr(r, sort.field, None) is None]
        return sorted(present, key=key, reverse=True) + missing
    return sorted(rows, key=key)


def paginate(rows: list[T], page: int = 1, page_size: int | None = None) -> list[T]:
    """Slice a 1-based page out of rows; ``page_size=None`` returns all."""
    if page_size is None:
        return rows
    if page < 1 or page_size < 1:
        msg = "page and page_size must be positive"
        raise ValueError(msg)
    start = (page - 1) * page_size
    return rows[start : start + page_size]


def unique_key(entity: Any, unique_on: Sequence[str]) -> str:
    """Stable textual key for the uniqueness columns of an entity."""
    return "|".join(str(normalize(getattr(entity, name))) for name in unique_on)


# ==============================================================================
# Port
# ==============================================================================


class EntityRepository(Protocol[T]):
    """Generic per-entity store.

    Absent rows are reported as ``None``/``False``. Timeouts and
    unavailability raise ``TransientStorageError``.
    """

    name: str

    async def get_by_id(self, entity_id: UUID) -> T | None: ...

    async def get_many(self, ids: Iterable[UUID]) -> list[T]: ...

    async def list(
        self,
        filters: Sequence[Filter] | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> tuple[list[T], int]: ...

    async def create(self, entity: T) -> T: ...

    async def create_if_absent(
        self, entity: T, unique_on: Sequence[str]
    ) -> tuple[T, bool]: ...

    async def update(
        self,
        entity_id: UUID,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> T | None: ...

    async def delete(self, entity_id: UUID) -> bool: ...

    async def count(self, filters: Sequence[Filter] | None = None) -> int: ...


@dataclass
class Page(Generic[T]):
    """One page of results plus the total matching count."""

    items: list[T]
    total: int
