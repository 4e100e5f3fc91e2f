# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""LanceDB-backed semantic index of structural entities.

One row per embedded structural entity:

    path | cache_key | content | title | vector[D] | kind

The table lives in a fixed per-installation directory and is a cache: it is
safe to delete and rebuild from source at any time. The schema is never
migrated; when an existing table does not match (different columns or vector
dimension) it is dropped and recreated empty.

Every store operation is best-effort. Failures are logged and turned into an
empty or no-op result so indexing problems never block interactive features.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pyarrow as pa
from pydantic import BaseModel, Field

try:
    import lancedb

    LANCEDB_AVAILABLE = True
except ImportError:
    LANCEDB_AVAILABLE = False

from perl_assist.errors import IndexStoreError

logger = logging.getLogger(__name__)

PLACEHOLDER_FILTER = "path != ''"

_DISTANCE_TYPES = {"l2": "l2", "euclidean": "l2", "cosine": "cosine", "dot": "dot"}


class IndexRecord(BaseModel):
    """A stored, embedded structural entity."""

    path: str = Field(description="Source path the entity was extracted from")
    cache_key: str = Field(description="Content-derived key of the source file generation")
    content: str = Field(description="Exact source text of the entity")
    title: str = Field(description="Qualified entity name")
    vector: List[float] = Field(description="Embedding of the content")
    kind: str = Field(description="Entity kind: file, package or subroutine")


class SearchHit(BaseModel):
    """A record returned by nearest-neighbor search."""

    record: IndexRecord
    distance: float = Field(description="Vector distance to the query (lower is closer)")


def quote_literal(value: str) -> str:
    """Quote a string for use in a store predicate."""
    return "'" + value.replace("'", "''") + "'"


def build_schema(dimension: int) -> pa.Schema:
    return pa.schema(
        [
            pa.field("path", pa.string()),
            pa.field("cache_key", pa.string()),
            pa.field("content", pa.string()),
            pa.field("title", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), dimension)),
            pa.field("kind", pa.string()),
        ]
    )


class SemanticIndexStore:
    """Persistent vector store keyed by source path.

    Updates for a path are always "delete every row for the path, then insert
    the new rows"; rows are never mutated in place.
    """

    def __init__(
        self,
        persist_directory: str,
        dimension: int,
        table_name: str = "perl_code_embeddings",
        distance_metric: str = "l2",
    ):
        if not LANCEDB_AVAILABLE:
            raise ImportError("LanceDB not available. Install with: pip install lancedb")

        self.persist_directory = Path(persist_directory).expanduser()
        self.dimension = dimension
        self.table_name = table_name
        self.distance_type = _DISTANCE_TYPES.get(distance_metric, "l2")
        self.schema = build_schema(dimension)
        self.db = None
        self.table = None

    @property
    def is_open(self) -> bool:
        return self.table is not None

    def open(self) -> None:
        """Connect to the database and open (or create) the table.

        Raises:
            IndexStoreError: If the directory or table cannot be opened
        """
        if self.table is not None:
            return

        try:
            self.persist_directory.mkdir(parents=True, exist_ok=True)
            self.db = lancedb.connect(str(self.persist_directory))

            existing_tables = self.db.list_tables().tables
            if self.table_name in existing_tables:
                table = self.db.open_table(self.table_name)
                if self._schema_matches(table.schema):
                    self.table = table
                    logger.info(f"Opened semantic index table: {self.table_name}")
                    return
                logger.warning(
                    f"Semantic index table {self.table_name} has an incompatible schema, recreating"
                )
                self.db.drop_table(self.table_name)

            self.table = self.db.create_table(self.table_name, schema=self.schema)
            logger.info(f"Created semantic index table: {self.table_name}")
        except Exception as e:
            self.table = None
            raise IndexStoreError(
                f"Cannot open semantic index at {self.persist_directory}: {e}"
            ) from e

    def _schema_matches(self, schema: pa.Schema) -> bool:
        if set(schema.names) != set(self.schema.names):
            return False
        vector_type = schema.field("vector").type
        if not isinstance(vector_type, pa.FixedSizeListType):
            return False
        return vector_type.list_size == self.dimension

    async def insert(self, records: Sequence[IndexRecord]) -> int:
        """Insert records. Returns the number of rows written (0 on failure)."""
        if not records or self.table is None:
            return 0

        rows = []
        for record in records:
            if len(record.vector) != self.dimension:
                logger.warning(
                    f"Skipping {record.title} from {record.path}: vector has "
                    f"{len(record.vector)} dimensions, expected {self.dimension}"
                )
                continue
            rows.append(record.model_dump())

        if not rows:
            return 0

        try:
            self.table.add(rows)
        except Exception as e:
            logger.warning(f"Failed to insert {len(rows)} records: {e}")
            return 0
        return len(rows)

    async def delete_by_path(self, path: str) -> Optional[int]:
        """Delete every record for an exact path.

        Returns:
            Number of records deleted, or None when the delete failed and the
            path's records may still be present
        """
        if self.table is None:
            return 0

        try:
            count_before = self.table.count_rows()
            self.table.delete(f"path = {quote_literal(path)}")
            return count_before - self.table.count_rows()
        except Exception as e:
            logger.warning(f"Failed to delete records for {path}: {e}")
            return None

    async def search(
        self,
        query_vector: Sequence[float],
        limit: int = 5,
        predicate: Optional[str] = PLACEHOLDER_FILTER,
    ) -> List[SearchHit]:
        """Nearest-neighbor search, closest first.

        Args:
            query_vector: Query embedding
            limit: Maximum number of hits
            predicate: Filter applied before the vector scan

        Returns:
            Hits ordered by ascending distance; ties keep the store's scan order
        """
        if self.table is None or limit <= 0:
            return []

        try:
            query = self.table.search(list(query_vector)).distance_type(self.distance_type)
            if predicate:
                query = query.where(predicate, prefilter=True)
            rows = query.limit(limit).to_list()
        except Exception as e:
            logger.warning(f"Semantic search failed: {e}")
            return []

        hits = [
            SearchHit(record=self._to_record(row), distance=float(row.get("_distance", 0.0)))
            for row in rows
        ]
        hits.sort(key=lambda hit: hit.distance)
        return hits

    async def find(self, predicate: str, limit: int = 10) -> List[IndexRecord]:
        """Exact lookup of records matching a predicate (no vector scan)."""
        if self.table is None:
            return []

        try:
            rows = self.table.search().where(predicate).limit(limit).to_list()
        except Exception as e:
            logger.warning(f"Index lookup failed for {predicate!r}: {e}")
            return []
        return [self._to_record(row) for row in rows]

    async def find_by_title(self, title: str, kind: str, limit: int = 1) -> List[IndexRecord]:
        return await self.find(
            f"kind = {quote_literal(kind)} AND title = {quote_literal(title)}", limit=limit
        )

    async def count_rows(self, predicate: Optional[str] = None) -> int:
        if self.table is None:
            return 0

        try:
            if predicate:
                return self.table.count_rows(predicate)
            return self.table.count_rows()
        except Exception as e:
            logger.warning(f"Failed to count index rows: {e}")
            return 0

    async def get_all_records(self) -> List[IndexRecord]:
        """Every stored record, for diagnostics."""
        if self.table is None:
            return []

        try:
            rows = self.table.to_arrow().to_pylist()
        except Exception as e:
            logger.warning(f"Failed to read index records: {e}")
            return []
        return [self._to_record(row) for row in rows]

    async def get_stats(self) -> Dict[str, Any]:
        """Row counts in total, per path and per kind."""
        records = await self.get_all_records()
        return {
            "provider": "lancedb",
            "total_records": len(records),
            "by_path": dict(Counter(r.path for r in records)),
            "by_kind": dict(Counter(r.kind for r in records)),
            "dimension": self.dimension,
            "distance_metric": self.distance_type,
            "table_name": self.table_name,
            "persist_directory": str(self.persist_directory),
        }

    async def clear(self) -> None:
        """Drop and recreate the table."""
        if self.db is None:
            return

        try:
            if self.table_name in self.db.list_tables().tables:
                self.db.drop_table(self.table_name)
            self.table = self.db.create_table(self.table_name, schema=self.schema)
            logger.info("Cleared semantic index")
        except Exception as e:
            logger.warning(f"Failed to clear semantic index: {e}")

    def close(self) -> None:
        # LanceDB connections are lightweight, no explicit cleanup needed
        self.db = None
        self.table = None

    @staticmethod
    def _to_record(row: Dict[str, Any]) -> IndexRecord:
        return IndexRecord(
            path=row.get("path") or "",
            cache_key=row.get("cache_key") or "",
            content=row.get("content") or "",
            title=row.get("title") or "",
            vector=[float(v) for v in row.get("vector") or []],
            kind=row.get("kind") or "",
        )
