"""Batch-stitch helper.

Aggregates never join. They fetch primary rows, collect the foreign keys,
fetch the related rows with one ``get_many`` call and merge them through
an id-keyed map. A related fetch that keeps failing degrades to an empty
map so callers render placeholders instead of failing the response.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar
from uuid import UUID

import structlog

from learnpath.core.exceptions import TransientStorageError
from learnpath.persistence.port import EntityRepository
from learnpath.persistence.retry import ReadPolicy


logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class Batch(Generic[T]):
    """Related rows keyed by id."""

    rows: dict[UUID, T] = field(default_factory=dict)
    degraded: bool = False

    def get(self, key: UUID | None) -> T | None:
        if key is None:
            return None
        return self.rows.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.rows

    def __len__(self) -> int:
        return len(self.rows)


class BatchLoader(Generic[T]):
    """Fetch related rows of one entity type by id set."""

    def __init__(
        self,
        repository: EntityRepository[T],
        policy: ReadPolicy | None = None,
    ) -> None:
        self.repository = repository
        self.policy = policy or ReadPolicy()

    async def load(self, ids: Iterable[UUID | None]) -> Batch[T]:
        """Load every distinct non-null id with a single batched call."""
        unique_ids = list(dict.fromkeys(i for i in ids if i is not None))
        if not unique_ids:
            return Batch()

        try:
            rows = await self.policy.run(self.repository.get_many, unique_ids)
        except (TransientStorageError, TimeoutError) as e:
            logger.warning(
                "batch_load_degraded",
                repository=self.repository.name,
                requested=len(unique_ids),
                error_type=type(e).__name__,
            )
            return Batch(degraded=True)

        return Batch(rows={row.id: row for row in rows})  # type: ignore[attr-defined]
