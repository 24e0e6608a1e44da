"""Document-store collaborator backed by a JSONB table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence, Tuple

import psycopg
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from ..errors import QueryError, WriteError

Predicate = Tuple[str, Any]


@dataclass(slots=True)
class Document:
    """A stored document and the timestamp the store assigned on first write."""

    collection: str
    doc_id: str
    fields: dict[str, Any]
    created_at: datetime | None = None


class DocumentStore(Protocol):
    def read_document(self, collection: str, doc_id: str) -> Document | None: ...

    def write_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Document: ...

    def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None: ...

    def scoped_query(self, collection: str, predicates: Sequence[Predicate]) -> list[Document]: ...


class PostgresDocumentStore:
    """Collections of schemaless documents stored in the ``documents`` table."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def read_document(self, collection: str, doc_id: str) -> Document | None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT collection, doc_id, fields, created_at
                        FROM documents
                        WHERE collection = %s AND doc_id = %s
                        """,
                        (collection, doc_id),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise QueryError(f"failed to read {collection}/{doc_id}") from exc
        if row is None:
            return None
        return self._map_row(row)

    def write_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Document:
        """Create or replace a document; ``created_at`` is kept from the first write."""
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        INSERT INTO documents (collection, doc_id, fields, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s)
                        ON CONFLICT (collection, doc_id)
                        DO UPDATE SET fields = EXCLUDED.fields, updated_at = EXCLUDED.updated_at
                        RETURNING collection, doc_id, fields, created_at
                        """,
                        (collection, doc_id, Json(fields), now, now),
                    )
                    row = cur.fetchone()
                    conn.commit()
        except psycopg.Error as exc:
            raise WriteError(f"failed to write {collection}/{doc_id}") from exc
        return self._map_row(row)

    def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        UPDATE documents
                        SET fields = fields || %s::jsonb, updated_at = NOW()
                        WHERE collection = %s AND doc_id = %s
                        RETURNING doc_id
                        """,
                        (Json(fields), collection, doc_id),
                    )
                    row = cur.fetchone()
                    conn.commit()
        except psycopg.Error as exc:
            raise WriteError(f"failed to update {collection}/{doc_id}") from exc
        if row is None:
            raise WriteError(f"{collection}/{doc_id} not found", not_found=True)

    def scoped_query(self, collection: str, predicates: Sequence[Predicate]) -> list[Document]:
        """Return documents whose fields equal every predicate value."""
        clauses = ["collection = %s"]
        params: list[Any] = [collection]
        for key, value in predicates:
            clauses.append("fields -> %s = %s::jsonb")
            params.extend((key, Json(value)))

        where_sql = " AND ".join(clauses)
        query = f"""
            SELECT collection, doc_id, fields, created_at
            FROM documents
            WHERE {where_sql}
        """
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
        except psycopg.Error as exc:
            raise QueryError(f"scoped query on {collection} failed") from exc
        return [self._map_row(row) for row in rows]

    def _map_row(self, row: tuple) -> Document:
        return Document(collection=row[0], doc_id=row[1], fields=row[2] or {}, created_at=row[3])
