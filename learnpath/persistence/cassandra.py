"""Cassandra repository adapter.

One table per entity, keyed by ``id``. Uniqueness constraints live in a
``{table}_unique`` lookup table written with a lightweight transaction
(``INSERT ... IF NOT EXISTS``), and compare-and-set updates use
``UPDATE ... IF``. Equality filters are pushed down with ALLOW FILTERING
(backed by secondary indexes declared next to each table); membership and
range filters, sorting and paging are applied in memory. A claim whose row
insert fails is released, and a claim left without a row is cleared by the
next writer for that key.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Iterable, Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

import structlog
from cassandra import OperationTimedOut, ReadTimeout, Unavailable, WriteTimeout
from cassandra.cluster import NoHostAvailable

from learnpath.core.exceptions import (
    ConcurrentUpdateError,
    ConflictError,
    TransientStorageError,
)
from learnpath.persistence.port import (
    Filter,
    FilterOp,
    Sort,
    apply_filters,
    normalize,
    paginate,
    sort_rows,
    unique_key,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")

TRANSIENT_DRIVER_ERRORS = (
    OperationTimedOut,
    ReadTimeout,
    WriteTimeout,
    Unavailable,
    NoHostAvailable,
)

# Number of reads of the winning row after losing a uniqueness race
UNIQUE_READ_ATTEMPTS = 3
UNIQUE_READ_WAIT_SECONDS = 0.05
# Claims per call; the second runs after a stale claim is cleared
UNIQUE_CLAIM_ATTEMPTS = 2

UNIQUE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.{table}_unique (
    unique_key TEXT PRIMARY KEY,
    id UUID
)
"""


def unique_table_cql(table: str) -> str:
    """Uniqueness table template for ``table``; keyspace is formatted later."""
    return UNIQUE_TABLE_CQL.replace("{table}", table)


class CassandraRepository(Generic[T]):
    """EntityRepository over a single Cassandra table.

    Args:
        session: Session with ``aexecute()`` (cassandra-asyncio-driver)
        keyspace: Keyspace name
        table: Table name
        entity_cls: Dataclass with ``from_row``; its fields are the columns
        unique_on: Columns guarded by the uniqueness table, if any
    """

    def __init__(
        self,
        session: Any,
        keyspace: str,
        table: str,
        entity_cls: type[T],
        unique_on: Sequence[str] | None = None,
    ) -> None:
        self.session = session
        self.keyspace = keyspace
        self.table = table
        self.name = table
        self.entity_cls = entity_cls
        self.unique_on = tuple(unique_on or ())
        self.columns = [f.name for f in dataclasses.fields(entity_cls)]  # type: ignore[arg-type]
        self._statements: dict[tuple, Any] = {}
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare fixed CQL statements."""
        source = f"{self.keyspace}.{self.table}"
        placeholders = ", ".join("?" for _ in self.columns)

        self._get_by_id = self.session.prepare(f"SELECT * FROM {source} WHERE id = ?")
        self._get_many = self.session.prepare(f"SELECT * FROM {source} WHERE id IN ?")
        self._insert = self.session.prepare(
            f"INSERT INTO {source} ({', '.join(self.columns)}) VALUES ({placeholders})"
        )
        self._insert_if_not_exists = self.session.prepare(
            f"INSERT INTO {source} ({', '.join(self.columns)}) "
            f"VALUES ({placeholders}) IF NOT EXISTS"
        )
        self._delete = self.session.prepare(f"DELETE FROM {source} WHERE id = ?")

        if self.unique_on:
            unique_source = f"{self.keyspace}.{self.table}_unique"
            self._claim_unique = self.session.prepare(
                f"INSERT INTO {unique_source} (unique_key, id) VALUES (?, ?) "
                "IF NOT EXISTS"
            )
            self._release_unique = self.session.prepare(
                f"DELETE FROM {unique_source} WHERE unique_key = ?"
            )
            self._release_unique_if = self.session.prepare(
                f"DELETE FROM {unique_source} WHERE unique_key = ? IF id = ?"
            )

    def _prepared(self, key: tuple, cql: str) -> Any:
        """Prepare dynamic statements once per shape."""
        statement = self._statements.get(key)
        if statement is None:
            statement = self.session.prepare(cql)
            self._statements[key] = statement
        return statement

    async def _execute(self, statement: Any, params: Sequence[Any] = ()) -> Any:
        try:
            return await self.session.aexecute(statement, list(params))
        except TRANSIENT_DRIVER_ERRORS as e:
            logger.warning(
                "cassandra_query_failed",
                table=self.table,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise TransientStorageError from e

    def _values(self, entity: T) -> list[Any]:
        return [normalize(getattr(entity, column)) for column in self.columns]

    def _from_row(self, row: Any) -> T:
        return self.entity_cls.from_row(row)  # type: ignore[attr-defined]

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_by_id(self, entity_id: UUID) -> T | None:
        result = await self._execute(self._get_by_id, [entity_id])
        row = result.one()
        return self._from_row(row) if row else None

    async def get_many(self, ids: Iterable[UUID]) -> list[T]:
        unique_ids = list(dict.fromkeys(i for i in ids if i is not None))
        if not unique_ids:
            return []
        result = await self._execute(self._get_many, [unique_ids])
        return [self._from_row(row) for row in result]

    async def list(
        self,
        filters: Sequence[Filter] | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> tuple[list[T], int]:
        rows = await self._select(filters or [])
        rows = sort_rows(rows, sort)
        return paginate(rows, page, page_size), len(rows)

    async def count(self, filters: Sequence[Filter] | None = None) -> int:
        filters = list(filters or [])
        if all(f.op == FilterOp.EQ for f in filters):
            statement, params = self._select_statement("SELECT COUNT(*)", filters)
            result = await self._execute(statement, params)
            row = result.one()
            return row[0] if row else 0
        return len(await self._select(filters))

    async def _select(self, filters: Sequence[Filter]) -> list[T]:
        pushed = [f for f in filters if f.op == FilterOp.EQ]
        remaining = [f for f in filters if f.op != FilterOp.EQ]
        statement, params = self._select_statement("SELECT *", pushed)
        result = await self._execute(statement, params)
        return apply_filters((self._from_row(row) for row in result), remaining)

    def _select_statement(
        self, projection: str, filters: Sequence[Filter]
    ) -> tuple[Any, list[Any]]:
        names = tuple(f.field for f in filters)
        cql = f"{projection} FROM {self.keyspace}.{self.table}"
        if names:
            where = " AND ".join(f"{name} = ?" for name in names)
            cql = f"{cql} WHERE {where} ALLOW FILTERING"
        statement = self._prepared(("select", projection, names), cql)
        return statement, [normalize(f.value) for f in filters]

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def create(self, entity: T) -> T:
        result = await self._execute(self._insert_if_not_exists, self._values(entity))
        if not result.was_applied:
            msg = f"{self.table} {entity.id} already exists"  # type: ignore[attr-defined]
            raise ConflictError(msg)
        return entity

    async def create_if_absent(
        self, entity: T, unique_on: Sequence[str]
    ) -> tuple[T, bool]:
        if tuple(unique_on) != self.unique_on:
            msg = f"{self.table} is not declared unique on {tuple(unique_on)}"
            raise ValueError(msg)

        key = unique_key(entity, unique_on)
        for _ in range(UNIQUE_CLAIM_ATTEMPTS):
            result = await self._execute(
                self._claim_unique,
                [key, entity.id],  # type: ignore[attr-defined]
            )
            if result.was_applied:
                await self._insert_claimed(entity, key)
                return entity, True

            winner_id = result.one().id
            existing = await self._read_winner(winner_id)
            if existing is not None:
                return existing, False

            # The claim outlived a failed insert; free it only if still the winner's
            logger.warning(
                "unique_claim_stale",
                table=self.table,
                unique_key=key,
                winner_id=str(winner_id),
            )
            await self._execute(self._release_unique_if, [key, winner_id])

        raise TransientStorageError

    async def _insert_claimed(self, entity: T, key: str) -> None:
        """Insert the row behind a fresh claim, releasing the claim on failure."""
        entity_id = entity.id  # type: ignore[attr-defined]
        try:
            await self._execute(self._insert, self._values(entity))
        except TransientStorageError:
            # A timed-out write may still have landed
            try:
                written = await self.get_by_id(entity_id) is not None
            except TransientStorageError:
                logger.warning("unique_claim_kept", table=self.table, unique_key=key)
                raise
            if written:
                return
            await self._execute(self._release_unique_if, [key, entity_id])
            logger.info("unique_claim_released", table=self.table, unique_key=key)
            raise

    async def _read_winner(self, winner_id: UUID) -> T | None:
        for attempt in range(UNIQUE_READ_ATTEMPTS):
            existing = await self.get_by_id(winner_id)
            if existing is not None:
                return existing
            # Winner claimed the key but has not written its row yet
            if attempt + 1 < UNIQUE_READ_ATTEMPTS:
                await asyncio.sleep(UNIQUE_READ_WAIT_SECONDS)
        return None

    async def update(
        self,
        entity_id: UUID,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> T | None:
        if not fields:
            return await self.get_by_id(entity_id)

        expected = expected or {}
        set_names = tuple(fields)
        if_names = tuple(expected)
        assignments = ", ".join(f"{name} = ?" for name in set_names)
        if if_names:
            condition = "IF " + " AND ".join(f"{name} = ?" for name in if_names)
        else:
            condition = "IF EXISTS"
        cql = (
            f"UPDATE {self.keyspace}.{self.table} SET {assignments} "
            f"WHERE id = ? {condition}"
        )
        statement = self._prepared(("update", set_names, if_names), cql)
        params = [normalize(fields[name]) for name in set_names]
        params.append(entity_id)
        params.extend(normalize(expected[name]) for name in if_names)

        result = await self._execute(statement, params)
        if not result.was_applied:
            current = await self.get_by_id(entity_id)
            if current is None:
                return None
            raise ConcurrentUpdateError
        return await self.get_by_id(entity_id)

    async def delete(self, entity_id: UUID) -> bool:
        existing = await self.get_by_id(entity_id)
        if existing is None:
            return False
        await self._execute(self._delete, [entity_id])
        if self.unique_on:
            await self._execute(
                self._release_unique, [unique_key(existing, self.unique_on)]
            )
        return True
