from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional

import psycopg
from psycopg_pool import AsyncConnectionPool

from activations.domain.entities import Activation, ActivationKind
from activations.domain.errors import AmbiguousActivation, PersistenceError
from activations.domain.ports.activation_store import ActivationStorePort
from activations.domain.services import code_digest, generate_code

_COLUMNS = "id, owner, code_hash, completed, completed_at, created_at"
_MAX_CODE_ATTEMPTS = 3


class PgActivationStore(ActivationStorePort):
    """
    Postgres implementation of ActivationStorePort.

    NOTE:
    - Each call borrows a pooled connection and runs in its own transaction.
    - Completion is a conditional UPDATE on `completed = FALSE`, so the row
      lock decides the single winner among concurrent completions.
    - Only the SHA-256 digest of a code is stored and matched.
    """

    def __init__(self, pool: AsyncConnectionPool, kind: ActivationKind) -> None:
        self._pool = pool
        self.kind = kind

    @asynccontextmanager
    async def _cursor(self) -> AsyncIterator[psycopg.AsyncCursor]:
        try:
            async with self._pool.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        yield cur
        except psycopg.Error as e:
            raise PersistenceError(f"activation store failed: {e}") from e

    def _to_entity(self, row: tuple[Any, ...]) -> Activation:
        id_, owner, code_hash, completed, completed_at, created_at = row
        return Activation(
            id=str(id_),
            kind=self.kind,
            owner=str(owner),
            code_hash=str(code_hash),
            completed=bool(completed),
            completed_at=completed_at,
            created_at=created_at,
        )

    async def create(self, owner: str, *, created_at: datetime) -> Activation:
        sql = f"""
        INSERT INTO activations (kind, owner, code_hash, completed, created_at)
        VALUES (%s, %s, %s, FALSE, %s)
        ON CONFLICT (kind, code_hash) DO NOTHING
        RETURNING {_COLUMNS}
        """
        async with self._cursor() as cur:
            for _ in range(_MAX_CODE_ATTEMPTS):
                code = generate_code()
                await cur.execute(
                    sql, (self.kind.value, owner, code_digest(code), created_at)
                )
                row = await cur.fetchone()
                if row:
                    activation = self._to_entity(row)
                    activation.code = code
                    return activation

        raise PersistenceError("could not generate a unique activation code")

    async def find_valid(
        self, owner: str, code: Optional[str] = None, *, not_before: datetime
    ) -> Optional[Activation]:
        sql = f"""
        SELECT {_COLUMNS}
        FROM activations
        WHERE kind = %s AND owner = %s
          AND completed = FALSE
          AND created_at > %s
        """
        params: list[Any] = [self.kind.value, owner, not_before]
        if code is not None:
            sql += " AND code_hash = %s"
            params.append(code_digest(code))
        # two rows are enough to detect a tie on the newest timestamp
        sql += " ORDER BY created_at DESC, id DESC LIMIT 2"

        async with self._cursor() as cur:
            await cur.execute(sql, params)
            rows = await cur.fetchall()

        if not rows:
            return None
        if len(rows) > 1 and rows[0][5] == rows[1][5]:
            raise AmbiguousActivation(
                f"{len(rows)} {self.kind.value} records for {owner!r} share created_at"
            )
        return self._to_entity(rows[0])

    async def find_completed(self, owner: str) -> Optional[Activation]:
        sql = f"""
        SELECT {_COLUMNS}
        FROM activations
        WHERE kind = %s AND owner = %s AND completed = TRUE
        ORDER BY completed_at DESC, id DESC
        LIMIT 1
        """
        async with self._cursor() as cur:
            await cur.execute(sql, (self.kind.value, owner))
            row = await cur.fetchone()
        return self._to_entity(row) if row else None

    async def has_any(self, owner: str) -> bool:
        sql = """
        SELECT EXISTS (
            SELECT 1 FROM activations WHERE kind = %s AND owner = %s
        )
        """
        async with self._cursor() as cur:
            await cur.execute(sql, (self.kind.value, owner))
            row = await cur.fetchone()
        return bool(row and row[0])

    async def save(self, activation: Activation) -> bool:
        if not activation.completed or activation.completed_at is None:
            raise ValueError("only completed activations can be saved")
        sql = """
        UPDATE activations
        SET completed = TRUE, completed_at = %s
        WHERE id = %s AND kind = %s AND completed = FALSE
        RETURNING id
        """
        async with self._cursor() as cur:
            await cur.execute(
                sql, (activation.completed_at, int(activation.id), self.kind.value)
            )
            row = await cur.fetchone()
        return row is not None

    async def delete(self, activation: Activation) -> bool:
        sql = "DELETE FROM activations WHERE id = %s AND kind = %s RETURNING id"
        async with self._cursor() as cur:
            await cur.execute(sql, (int(activation.id), self.kind.value))
            row = await cur.fetchone()
        return row is not None

    async def delete_expired(self, not_before: datetime) -> int:
        sql = """
        DELETE FROM activations
        WHERE kind = %s AND completed = FALSE AND created_at <= %s
        """
        async with self._cursor() as cur:
            await cur.execute(sql, (self.kind.value, not_before))
            return cur.rowcount
