"""SQLite-backed document, chunk and search-log store.

Persists everything the pipeline needs in a single SQLite database at
``data/rfpsearch.db`` using ``aiosqlite`` for async I/O:

    documents    -- one row per uploaded file, soft-deletable
    chunks       -- chunk text, offsets, metadata and the embedding (float32 BLOB)
    chunks_fts   -- FTS5 keyword index over chunk text, kept in sync by triggers
    search_logs  -- one row per hybrid search, for analytics

Keyword search ranks with FTS5 ``bm25()`` and maps the (negated) rank
``s`` into [0, 1) as ``s / (1 + s)``.  Vector search is an exact cosine
scan with numpy over completed chunks -- fine for tens of thousands of
chunks; a dedicated ANN index would replace it beyond that.
"""

from __future__ import annotations

import asyncio
import json
import re
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Iterable

import aiosqlite
import numpy as np
import structlog

from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.models.chunk import (
    ChunkMetadata,
    ChunkStats,
    EmbeddingStatus,
    EmbeddingUpdate,
    StoredChunk,
    TextChunk,
)
from rfpsearch.models.document import Document, DocumentStatus, NewDocument
from rfpsearch.models.search import (
    PopularQuery,
    SearchHit,
    SearchLogEntry,
    SearchTypeAnalytics,
)
from rfpsearch.utils.errors import DuplicateDocumentError, InvalidInputError, StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/rfpsearch.db")
_PROVIDER = "sqlite"

# Chunk ids per ``IN (...)`` clause; stays under SQLite's variable limit.
_IN_CLAUSE_LIMIT = 500

_CLAIM_STALE_AFTER = timedelta(minutes=10)

_WORD = re.compile(r"\w+")

_CREATE_SCHEMA_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id           TEXT    PRIMARY KEY,
    filename     TEXT    NOT NULL,
    path         TEXT    NOT NULL,
    uploader_id  TEXT,
    client_name  TEXT    NOT NULL,
    file_size    INTEGER NOT NULL DEFAULT 0,
    mime_type    TEXT    NOT NULL,
    status       TEXT    NOT NULL DEFAULT 'uploaded',
    uploaded_at  TEXT    NOT NULL,
    deleted_at   TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id                      TEXT    PRIMARY KEY,
    document_id             TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    text                    TEXT    NOT NULL,
    token_count             INTEGER NOT NULL,
    char_start              INTEGER NOT NULL,
    char_end                INTEGER NOT NULL,
    chunk_index             INTEGER NOT NULL,
    section_title           TEXT,
    metadata                TEXT    NOT NULL DEFAULT '{}',
    embedding               BLOB,
    embedding_status        TEXT    NOT NULL DEFAULT 'pending'
                            CHECK (embedding_status IN ('pending', 'completed', 'failed')),
    embed_model             TEXT,
    embed_version           TEXT,
    embedding_batch_id      TEXT,
    embedding_error         TEXT,
    embedding_generated_at  TEXT,
    claimed_by              TEXT,
    claimed_at              TEXT,
    created_at              TEXT    NOT NULL
);
""",
    """\
CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
    chunk_id UNINDEXED,
    text,
    tokenize = 'porter unicode61'
);
""",
    """\
CREATE TRIGGER IF NOT EXISTS chunks_fts_insert AFTER INSERT ON chunks BEGIN
    INSERT INTO chunks_fts (chunk_id, text) VALUES (new.id, new.text);
END;
""",
    """\
CREATE TRIGGER IF NOT EXISTS chunks_fts_delete AFTER DELETE ON chunks BEGIN
    DELETE FROM chunks_fts WHERE chunk_id = old.id;
END;
""",
    """\
CREATE TABLE IF NOT EXISTS search_logs (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id           TEXT,
    query_text        TEXT    NOT NULL,
    search_type       TEXT    NOT NULL,
    filters           TEXT    NOT NULL DEFAULT '{}',
    results_count     INTEGER NOT NULL DEFAULT 0,
    response_time_ms  INTEGER NOT NULL DEFAULT 0,
    ip_address        TEXT,
    created_at        TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_client_filename ON documents(client_name, filename);",
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_documents_live_client_filename "
    "ON documents(client_name, filename) WHERE deleted_at IS NULL;",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_status ON chunks(embedding_status);",
    "CREATE INDEX IF NOT EXISTS idx_search_logs_created ON search_logs(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_search_logs_query ON search_logs(query_text);",
]

_INSERT_CHUNK_SQL = """\
INSERT INTO chunks (
    id, document_id, text, token_count, char_start, char_end,
    chunk_index, section_title, metadata, embedding_status, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?);
"""

_UPDATE_SUCCESS_SQL = """\
UPDATE chunks
SET embedding = ?,
    embedding_status = 'completed',
    embed_model = ?,
    embed_version = ?,
    embedding_generated_at = ?,
    embedding_batch_id = ?,
    embedding_error = NULL,
    claimed_by = NULL,
    claimed_at = NULL
WHERE id = ?
  AND embedding_status = 'pending'
  AND (claimed_by IS NULL OR claimed_by = ?);
"""

_UPDATE_FAILURE_SQL = """\
UPDATE chunks
SET embedding = NULL,
    embedding_status = 'failed',
    embedding_error = ?,
    embedding_batch_id = ?,
    claimed_by = NULL,
    claimed_at = NULL
WHERE id = ?
  AND embedding_status = 'pending'
  AND (claimed_by IS NULL OR claimed_by = ?);
"""

_HIT_COLUMNS = """\
c.id AS chunk_id, c.document_id, c.text, c.chunk_index, c.section_title,
d.filename, d.client_name, d.uploaded_at"""

_KEYWORD_SEARCH_SQL = f"""\
SELECT {_HIT_COLUMNS}, bm25(chunks_fts) AS rank
FROM chunks_fts
JOIN chunks c ON c.id = chunks_fts.chunk_id
JOIN documents d ON d.id = c.document_id
WHERE chunks_fts MATCH ?
  AND c.embedding_status = 'completed'
  AND d.deleted_at IS NULL
ORDER BY rank
LIMIT ?;
"""

_VECTOR_CANDIDATES_SQL = f"""\
SELECT {_HIT_COLUMNS}, c.embedding
FROM chunks c
JOIN documents d ON d.id = c.document_id
WHERE c.embedding IS NOT NULL
  AND c.embedding_status = 'completed'
  AND d.deleted_at IS NULL;
"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _batched(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def build_fts_query(query: str) -> str:
    """Turn free text into an FTS5 query requiring every word.

    Each word is quoted, so FTS5 operators and punctuation in user input
    are matched literally rather than interpreted.
    """
    return " ".join(f'"{token}"' for token in _WORD.findall(query))


def normalize_bm25(rank: float) -> float:
    """Map an FTS5 ``bm25()`` rank (lower is better, usually negative) into [0, 1)."""
    score = max(-float(rank), 0.0)
    return score / (1.0 + score)


def encode_embedding(vector: list[float]) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def decode_embedding(blob: bytes | None) -> list[float] | None:
    if blob is None:
        return None
    return np.frombuffer(blob, dtype=np.float32).astype(np.float64).tolist()


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against each row of *matrix*; zero vectors score 0."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed persistence for documents, chunks and search logs."""

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        claim_stale_after: timedelta = _CLAIM_STALE_AFTER,
    ) -> None:
        self._db_path = Path(db_path)
        self._claim_stale_after = claim_stale_after

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with foreign keys on; wrap driver errors in StorageError."""
        try:
            async with aiosqlite.connect(str(self._db_path), timeout=30.0) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.Error as exc:
            raise StorageError(message=str(exc), provider_name=_PROVIDER) from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create tables, FTS index, triggers and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode = WAL")
            for sql in _CREATE_SCHEMA_SQL:
                await db.execute(sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_store_initialized", path=str(self._db_path))

    async def ping(self) -> bool:
        try:
            async with self._connect() as db:
                cursor = await db.execute("SELECT 1")
                await cursor.fetchone()
            return True
        except StorageError as exc:
            logger.warning("document_store_ping_failed", error=str(exc))
            return False

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def insert_document(self, document: NewDocument) -> Document:
        stored = Document(
            id=str(uuid.uuid4()),
            uploaded_at=_now(),
            **document.model_dump(),
        )
        async with self._connect() as db:
            try:
                await db.execute(
                    "INSERT INTO documents "
                    "(id, filename, path, uploader_id, client_name, file_size, mime_type, status, uploaded_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        stored.id,
                        stored.filename,
                        stored.path,
                        stored.uploader_id,
                        stored.client_name,
                        stored.file_size,
                        stored.mime_type,
                        stored.status.value,
                        _iso(stored.uploaded_at),
                    ),
                )
            except aiosqlite.IntegrityError as exc:
                # uq_documents_live_client_filename: a concurrent upload won
                raise DuplicateDocumentError(
                    message=(
                        f"Document '{stored.filename}' already exists "
                        f"for client '{stored.client_name}'"
                    )
                ) from exc
            await db.commit()
        logger.info(
            "document_inserted",
            document_id=stored.id,
            filename=stored.filename,
            client_name=stored.client_name,
        )
        return stored

    async def get_document(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        return Document.model_validate(dict(row)) if row else None

    async def document_exists(self, filename: str, client_name: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT 1 FROM documents "
                "WHERE filename = ? AND client_name = ? AND deleted_at IS NULL LIMIT 1",
                (filename, client_name),
            )
            row = await cursor.fetchone()
        return row is not None

    async def update_document_status(self, document_id: str, status: DocumentStatus) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE documents SET status = ? WHERE id = ?",
                (status.value, document_id),
            )
            await db.commit()
        logger.debug("document_status_updated", document_id=document_id, status=status.value)

    async def soft_delete_document(self, document_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE documents SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (_iso(_now()), document_id),
            )
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("document_soft_deleted", document_id=document_id)
        return deleted

    async def delete_document(self, document_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("document_deleted", document_id=document_id)
        return deleted

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def insert_chunks(self, document_id: str, chunks: list[TextChunk]) -> list[str]:
        created_at = _iso(_now())
        ids = [str(uuid.uuid4()) for _ in chunks]
        rows = [
            (
                chunk_id,
                document_id,
                chunk.text,
                chunk.token_count,
                chunk.char_start,
                chunk.char_end,
                index,
                chunk.metadata.section,
                chunk.metadata.model_dump_json(),
                created_at,
            )
            for index, (chunk_id, chunk) in enumerate(zip(ids, chunks))
        ]

        async with self._connect() as db:
            try:
                # chunks from an earlier attempt at this document are replaced
                cursor = await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
                replaced = cursor.rowcount
                if rows:
                    await db.executemany(_INSERT_CHUNK_SQL, rows)
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise

        logger.info(
            "chunks_inserted",
            document_id=document_id,
            count=len(ids),
            replaced=max(replaced, 0),
        )
        return ids

    async def get_chunks_for_document(self, document_id: str) -> list[StoredChunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    async def claim_pending_chunks(
        self,
        batch_id: str,
        *,
        chunk_ids: list[str] | None = None,
        document_id: str | None = None,
    ) -> list[StoredChunk]:
        if (chunk_ids is None) == (document_id is None):
            raise InvalidInputError(message="pass exactly one of chunk_ids or document_id")

        now = _now()
        claimable = (
            "embedding_status = 'pending' "
            "AND (claimed_by IS NULL OR claimed_by = ? OR claimed_at < ?)"
        )
        claim_args: tuple[Any, ...] = (batch_id, _iso(now), batch_id, _iso(now - self._claim_stale_after))

        async with self._connect() as db:
            try:
                # IMMEDIATE takes the write lock up front so the UPDATE and
                # SELECT see no interleaved claim from another connection.
                await db.execute("BEGIN IMMEDIATE")
                rows: list[aiosqlite.Row] = []
                if chunk_ids is not None:
                    for group in _batched(list(dict.fromkeys(chunk_ids)), _IN_CLAUSE_LIMIT):
                        marks = ", ".join("?" for _ in group)
                        await db.execute(
                            f"UPDATE chunks SET claimed_by = ?, claimed_at = ? "
                            f"WHERE id IN ({marks}) AND {claimable}",
                            (*claim_args[:2], *group, *claim_args[2:]),
                        )
                        cursor = await db.execute(
                            f"SELECT * FROM chunks WHERE id IN ({marks}) "
                            f"AND claimed_by = ? AND embedding_status = 'pending'",
                            (*group, batch_id),
                        )
                        rows.extend(await cursor.fetchall())
                else:
                    await db.execute(
                        f"UPDATE chunks SET claimed_by = ?, claimed_at = ? "
                        f"WHERE document_id = ? AND {claimable}",
                        (*claim_args[:2], document_id, *claim_args[2:]),
                    )
                    cursor = await db.execute(
                        "SELECT * FROM chunks WHERE document_id = ? "
                        "AND claimed_by = ? AND embedding_status = 'pending'",
                        (document_id, batch_id),
                    )
                    rows.extend(await cursor.fetchall())
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise

        claimed = sorted(
            (self._row_to_chunk(r) for r in rows),
            key=lambda c: (c.document_id, c.chunk_index),
        )
        logger.debug(
            "chunks_claimed",
            batch_id=batch_id,
            requested=len(chunk_ids) if chunk_ids is not None else None,
            document_id=document_id,
            claimed=len(claimed),
        )
        return claimed

    async def reset_failed_chunks(self, document_id: str | None = None) -> int:
        sql = (
            "UPDATE chunks SET embedding_status = 'pending', embedding_error = NULL, "
            "claimed_by = NULL, claimed_at = NULL WHERE embedding_status = 'failed'"
        )
        params: tuple[Any, ...] = ()
        if document_id is not None:
            sql += " AND document_id = ?"
            params = (document_id,)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            await db.commit()
            count = cursor.rowcount
        logger.info("failed_chunks_reset", document_id=document_id, count=count)
        return count

    async def list_pending_chunk_ids(self) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id FROM chunks WHERE embedding_status = 'pending' "
                "ORDER BY created_at ASC, rowid ASC"
            )
            rows = await cursor.fetchall()
        return [r["id"] for r in rows]

    async def apply_embedding_updates(self, updates: list[EmbeddingUpdate]) -> int:
        if not updates:
            return 0

        generated_at = _iso(_now())
        successes = [
            (
                encode_embedding(u.embedding or []),
                u.embed_model,
                u.embed_version,
                generated_at,
                u.batch_id,
                u.chunk_id,
                u.batch_id,
            )
            for u in updates
            if u.success and u.embedding is not None
        ]
        failures = [
            (u.error or "unknown embedding error", u.batch_id, u.chunk_id, u.batch_id)
            for u in updates
            if not (u.success and u.embedding is not None)
        ]

        updated = 0
        async with self._connect() as db:
            try:
                if successes:
                    cursor = await db.executemany(_UPDATE_SUCCESS_SQL, successes)
                    updated += cursor.rowcount
                if failures:
                    cursor = await db.executemany(_UPDATE_FAILURE_SQL, failures)
                    updated += cursor.rowcount
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise

        logger.info(
            "embedding_updates_applied",
            succeeded=len(successes),
            failed=len(failures),
            rows=updated,
        )
        return updated

    async def get_chunk_stats(self) -> ChunkStats:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS total, "
                "SUM(CASE WHEN embedding_status = 'pending' THEN 1 ELSE 0 END) AS pending, "
                "SUM(CASE WHEN embedding_status = 'completed' THEN 1 ELSE 0 END) AS completed, "
                "SUM(CASE WHEN embedding_status = 'failed' THEN 1 ELSE 0 END) AS failed "
                "FROM chunks"
            )
            row = await cursor.fetchone()
        return ChunkStats(
            total=row["total"] or 0,
            pending=row["pending"] or 0,
            completed=row["completed"] or 0,
            failed=row["failed"] or 0,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def keyword_search(self, query: str, limit: int) -> list[SearchHit]:
        fts_query = build_fts_query(query)
        if not fts_query or limit <= 0:
            return []

        async with self._connect() as db:
            cursor = await db.execute(_KEYWORD_SEARCH_SQL, (fts_query, limit))
            rows = await cursor.fetchall()

        return [self._row_to_hit(r, normalize_bm25(r["rank"])) for r in rows]

    async def vector_search(self, embedding: list[float], limit: int) -> list[SearchHit]:
        if limit <= 0:
            return []

        async with self._connect() as db:
            cursor = await db.execute(_VECTOR_CANDIDATES_SQL)
            rows = await cursor.fetchall()

        query = np.asarray(embedding, dtype=np.float32)
        candidates = [r for r in rows if len(r["embedding"]) == query.nbytes]
        if len(candidates) != len(rows):
            logger.warning(
                "vector_search_dimension_skipped",
                skipped=len(rows) - len(candidates),
                dimension=query.size,
            )
        if not candidates:
            return []

        def _rank() -> list[tuple[int, float]]:
            matrix = np.vstack([np.frombuffer(r["embedding"], dtype=np.float32) for r in candidates])
            sims = cosine_similarities(query, matrix)
            order = np.argsort(-sims, kind="stable")[:limit]
            return [(int(i), float(sims[i])) for i in order]

        ranked = await asyncio.to_thread(_rank)
        # score = 1 - cosine_distance, clamped to [0, 1]
        return [
            self._row_to_hit(candidates[i], min(max(sim, 0.0), 1.0))
            for i, sim in ranked
        ]

    # ------------------------------------------------------------------
    # Search logs
    # ------------------------------------------------------------------

    async def insert_search_log(self, entry: SearchLogEntry) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO search_logs "
                "(user_id, query_text, search_type, filters, results_count, "
                "response_time_ms, ip_address, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.user_id,
                    entry.query_text,
                    entry.search_type.value,
                    json.dumps(entry.filters),
                    entry.results_count,
                    entry.response_time_ms,
                    entry.ip_address,
                    _iso(_now()),
                ),
            )
            await db.commit()

    async def get_search_analytics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[SearchTypeAnalytics]:
        conditions: list[str] = []
        params: list[Any] = []
        if start is not None:
            conditions.append("created_at >= ?")
            params.append(_iso(start))
        if end is not None:
            conditions.append("created_at <= ?")
            params.append(_iso(end))
        where = f"WHERE {' AND '.join(conditions)} " if conditions else ""

        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT search_type, "
                "COUNT(*) AS total_searches, "
                "COUNT(DISTINCT user_id) AS unique_users, "
                "AVG(results_count) AS avg_results, "
                "AVG(response_time_ms) AS avg_response_time_ms "
                f"FROM search_logs {where}"
                "GROUP BY search_type ORDER BY total_searches DESC",
                params,
            )
            rows = await cursor.fetchall()
        return [SearchTypeAnalytics.model_validate(dict(r)) for r in rows]

    async def get_popular_queries(self, limit: int = 10) -> list[PopularQuery]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT query_text, COUNT(*) AS search_count, "
                "AVG(results_count) AS avg_results, MAX(created_at) AS last_searched "
                "FROM search_logs GROUP BY query_text "
                "ORDER BY search_count DESC, last_searched DESC LIMIT ?",
                (limit,),
            )
            rows = await cursor.fetchall()
        return [PopularQuery.model_validate(dict(r)) for r in rows]

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> StoredChunk:
        return StoredChunk(
            id=row["id"],
            document_id=row["document_id"],
            text=row["text"],
            token_count=row["token_count"],
            char_start=row["char_start"],
            char_end=row["char_end"],
            chunk_index=row["chunk_index"],
            section_title=row["section_title"],
            metadata=ChunkMetadata.model_validate_json(row["metadata"] or "{}"),
            embedding=decode_embedding(row["embedding"]),
            embedding_status=EmbeddingStatus(row["embedding_status"]),
            embed_model=row["embed_model"],
            embed_version=row["embed_version"],
            embedding_batch_id=row["embedding_batch_id"],
            embedding_error=row["embedding_error"],
            embedding_generated_at=row["embedding_generated_at"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_hit(row: aiosqlite.Row, score: float) -> SearchHit:
        return SearchHit(
            chunk_id=row["chunk_id"],
            document_id=row["document_id"],
            text=row["text"],
            chunk_index=row["chunk_index"],
            section_title=row["section_title"],
            filename=row["filename"],
            client_name=row["client_name"],
            uploaded_at=row["uploaded_at"],
            score=score,
        )
