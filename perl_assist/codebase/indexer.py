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

"""Incremental indexing of a Perl workspace into the semantic index.

The indexer discovers eligible files, extracts their structures, embeds each
structure and writes the embedded records into ``SemanticIndexStore``. Updates
for one path are serialized and always delete the path's rows before inserting
the new generation, so re-indexing unchanged content is idempotent.

Change notifications come from a watchdog observer. The handler debounces
events on a timer thread and hands them to the event loop that owns the
indexer.
"""

import asyncio
import hashlib
import logging
import threading
import time
from concurrent.futures import Future
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional, Set, Union

from pydantic import BaseModel, Field
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from perl_assist.codebase.embeddings.models import BaseEmbeddingModel
from perl_assist.codebase.embeddings.store import (
    PLACEHOLDER_FILTER,
    IndexRecord,
    SemanticIndexStore,
)
from perl_assist.codebase.extractors import BaseStructureExtractor, create_structure_extractor
from perl_assist.codebase.ignore_patterns import (
    DEFAULT_EXTENSIONS,
    is_source_file,
    should_ignore_path,
)
from perl_assist.codebase.structure import StructuralEntity
from perl_assist.codebase.structure_index import CodeStructureIndex

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def make_cache_key(path: str, content: str) -> str:
    """Key identifying one generation of a file's content."""
    content_hash = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
    return f"{path}:{content_hash}"


class CancelToken:
    """Cooperative cancellation flag for ``index_all``.

    Safe to set from another thread; the indexer checks it between files.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class IndexReport(BaseModel):
    """Outcome of a full indexing run."""

    total_files: int = 0
    indexed_files: int = 0
    failed_files: List[str] = Field(default_factory=list)
    records: int = 0
    cancelled: bool = False
    elapsed_seconds: float = 0.0


class RelevantCode(BaseModel):
    """A ranked match from ``find_relevant_code``."""

    title: str
    content: str
    path: str
    kind: str
    score: float = Field(description="Similarity score in (0, 1], higher is closer")
    distance: float = Field(description="Raw vector distance (lower is closer)")


class CodebaseFileHandler(FileSystemEventHandler):
    """File system event handler for tracking workspace changes.

    Events are collected per path (latest event wins) and delivered after a
    quiet period, so an editor's burst of writes triggers one re-index.
    """

    def __init__(
        self,
        on_change: Callable[[str, bool], None],
        should_process: Callable[[str], bool],
        debounce_delay: float = 0.5,
    ):
        """Initialize file handler.

        Args:
            on_change: Callback receiving (file path, deleted)
            should_process: Predicate selecting eligible paths
            debounce_delay: Quiet period in seconds before callbacks fire
        """
        super().__init__()
        self.on_change = on_change
        self.should_process = should_process
        self._debounce_lock = threading.Lock()
        self._pending_changes: Dict[str, bool] = {}
        self._debounce_timer: Optional[threading.Timer] = None
        self._debounce_delay = debounce_delay

    def _debounced_notify(self) -> None:
        """Notify of changes after debounce period."""
        with self._debounce_lock:
            changes = list(self._pending_changes.items())
            self._pending_changes.clear()
            self._debounce_timer = None

        for path, deleted in changes:
            try:
                self.on_change(path, deleted)
            except Exception as e:
                logger.warning(f"Error in file change callback: {e}")

    def _schedule_notification(self, path: str, deleted: bool) -> None:
        """Schedule a debounced notification."""
        with self._debounce_lock:
            self._pending_changes[path] = deleted

            if self._debounce_timer:
                self._debounce_timer.cancel()

            self._debounce_timer = threading.Timer(self._debounce_delay, self._debounced_notify)
            self._debounce_timer.daemon = True
            self._debounce_timer.start()

    def flush(self) -> None:
        """Deliver pending notifications immediately."""
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
        self._debounced_notify()

    def on_modified(self, event) -> None:
        if not event.is_directory and self.should_process(event.src_path):
            self._schedule_notification(event.src_path, False)

    def on_created(self, event) -> None:
        if not event.is_directory and self.should_process(event.src_path):
            self._schedule_notification(event.src_path, False)

    def on_deleted(self, event) -> None:
        if not event.is_directory and self.should_process(event.src_path):
            self._schedule_notification(event.src_path, True)

    def on_moved(self, event) -> None:
        if event.is_directory:
            return
        if self.should_process(event.src_path):
            self._schedule_notification(event.src_path, True)
        if self.should_process(event.dest_path):
            self._schedule_notification(event.dest_path, False)


class CodebaseIndexer:
    """Keeps the semantic index consistent with the files of one workspace.

    Example:
        indexer = CodebaseIndexer("/src/app", store, model)
        report = await indexer.index_all(on_progress=print)
        matches = await indexer.find_relevant_code("parse config file", limit=5)
    """

    def __init__(
        self,
        root_path: PathLike,
        store: SemanticIndexStore,
        embedding_model: BaseEmbeddingModel,
        extractor: Optional[BaseStructureExtractor] = None,
        file_extensions: Optional[Iterable[str]] = None,
        extra_skip_dirs: Optional[Iterable[str]] = None,
        debounce_seconds: float = 0.5,
    ):
        self.root = Path(root_path).expanduser().resolve()
        self.store = store
        self.embedding_model = embedding_model
        self.structure_index = CodeStructureIndex(extractor or create_structure_extractor())
        self.file_extensions: Set[str] = (
            set(file_extensions) if file_extensions is not None else set(DEFAULT_EXTENSIONS)
        )
        self.extra_skip_dirs: Set[str] = set(extra_skip_dirs or ())
        self.debounce_seconds = debounce_seconds

        self._path_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._observer: Optional[Observer] = None
        self._handler: Optional[CodebaseFileHandler] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------
    # Paths

    def relative_path(self, path: PathLike) -> str:
        """Index key for a path: POSIX path relative to the root when inside it."""
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.resolve().as_posix()

    def _absolute(self, path: PathLike) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    def is_eligible(self, path: PathLike) -> bool:
        """Check whether a path is a Perl source file outside skipped directories."""
        path = Path(path)
        if not is_source_file(path, self.file_extensions):
            return False
        try:
            rel_path = self._absolute(path).relative_to(self.root)
        except ValueError:
            rel_path = path
        return not should_ignore_path(rel_path, extra_skip_dirs=self.extra_skip_dirs)

    def discover_files(self) -> List[Path]:
        """Enumerate eligible source files under the root, sorted by path."""
        files = [
            file_path
            for file_path in self.root.rglob("*")
            if file_path.is_file() and self.is_eligible(file_path)
        ]
        return sorted(files)

    @asynccontextmanager
    async def _path_guard(self, key: str) -> AsyncIterator[None]:
        """Serialize updates of one path; the lock is dropped once nobody holds or awaits it."""
        lock = self._path_locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._path_locks[key]

    # ------------------------------------------------------------------
    # Indexing

    async def index_all(
        self,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> IndexReport:
        """Index every discovered file.

        Args:
            on_progress: Receives processed/total after every file
            cancel_token: Checked before each file; files already indexed stay indexed

        Returns:
            IndexReport, with ``cancelled`` set when the run stopped early
        """
        start = time.time()
        files = self.discover_files()
        report = IndexReport(total_files=len(files))
        logger.info(f"Indexing {len(files)} Perl files under {self.root}")

        for processed, file_path in enumerate(files, start=1):
            if cancel_token is not None and cancel_token.is_cancelled:
                report.cancelled = True
                logger.info(f"Indexing cancelled after {processed - 1}/{len(files)} files")
                break

            written = await self.index_one(file_path)
            if written is None:
                report.failed_files.append(self.relative_path(file_path))
            else:
                report.indexed_files += 1
                report.records += written

            if on_progress is not None:
                try:
                    on_progress(processed / len(files))
                except Exception as e:
                    logger.debug(f"Progress callback failed: {e}")

        report.elapsed_seconds = time.time() - start
        logger.info(
            f"Indexed {report.indexed_files}/{report.total_files} files "
            f"({report.records} records) in {report.elapsed_seconds:.2f}s"
        )
        return report

    async def index_one(self, path: PathLike) -> Optional[int]:
        """(Re)index a single file.

        The path's old records are deleted before the new ones are inserted,
        under the path's lock. The in-memory structures change only after the
        store accepted the delete.

        Returns:
            Number of records written, or None when the file could not be read
            or embedded or its old records could not be deleted (the previous
            generation is then left untouched)
        """
        file_path = self._absolute(path)
        key = self.relative_path(file_path)

        if not self.is_eligible(file_path):
            logger.debug(f"Skipping ineligible file: {key}")
            return 0

        async with self._path_guard(key):
            try:
                content = await asyncio.to_thread(
                    file_path.read_text, encoding="utf-8", errors="replace"
                )
            except OSError as e:
                logger.warning(f"Failed to read {key}: {e}")
                return None

            structures = self.structure_index.extract(key, content)
            entities = [e for e in structures if e.content.strip()]

            try:
                vectors = (
                    await self.embedding_model.embed_batch([e.content for e in entities])
                    if entities
                    else []
                )
            except Exception as e:
                logger.warning(f"Failed to embed {key}: {e}")
                return None

            records = self._build_records(key, content, entities, vectors)
            if await self.store.delete_by_path(key) is None:
                logger.warning(f"Keeping previous records for {key}: delete failed")
                return None

            written = await self.store.insert(records)
            self.structure_index.replace(key, structures)
            logger.debug(f"Indexed {key}: {written} records")
            return written

    @staticmethod
    def _build_records(
        key: str,
        content: str,
        entities: List[StructuralEntity],
        vectors: List[List[float]],
    ) -> List[IndexRecord]:
        cache_key = make_cache_key(key, content)
        return [
            IndexRecord(
                path=key,
                cache_key=cache_key,
                content=entity.content,
                title=entity.name,
                vector=vector,
                kind=entity.kind.value,
            )
            for entity, vector in zip(entities, vectors)
        ]

    async def remove_from_index(self, path: PathLike) -> Optional[int]:
        """Drop every record and structure for a path.

        Returns:
            Rows deleted, or None when the store delete failed (the
            structures are then kept so the path can be retried)
        """
        key = self.relative_path(path)
        async with self._path_guard(key):
            deleted = await self.store.delete_by_path(key)
            if deleted is None:
                return None
            self.structure_index.delete(key)
        logger.debug(f"Removed {key} from index ({deleted} records)")
        return deleted

    async def find_relevant_code(self, query: str, limit: int = 5) -> List[RelevantCode]:
        """Rank indexed structures by similarity to a query, closest first."""
        if not query.strip():
            return []

        try:
            query_vector = await self.embedding_model.embed_text(query)
        except Exception as e:
            logger.warning(f"Failed to embed query: {e}")
            return []

        hits = await self.store.search(query_vector, limit=limit, predicate=PLACEHOLDER_FILTER)
        return [
            RelevantCode(
                title=hit.record.title,
                content=hit.record.content,
                path=hit.record.path,
                kind=hit.record.kind,
                score=1.0 / (1.0 + hit.distance),
                distance=hit.distance,
            )
            for hit in hits
            if hit.record.path
        ]

    # ------------------------------------------------------------------
    # File watching

    def _dispatch_change(self, path: str, deleted: bool) -> None:
        """Schedule an index update on the owning event loop (called from the timer thread)."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        if deleted or not Path(path).exists():
            coro = self.remove_from_index(path)
        else:
            coro = self.index_one(path)
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        future.add_done_callback(lambda done, path=path: self._report_dispatch(path, done))

    @staticmethod
    def _report_dispatch(path: str, future: "Future[Optional[int]]") -> None:
        if future.cancelled():
            logger.debug(f"Index update for {path} was cancelled")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Index update for {path} failed: {error}")
        elif future.result() is None:
            logger.warning(f"Index update for {path} did not complete; previous records kept")

    def start_watching(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Start the watchdog observer; updates run on ``loop`` (default: running loop)."""
        if self._observer is not None:
            return

        self._loop = loop or asyncio.get_running_loop()
        self._handler = CodebaseFileHandler(
            on_change=self._dispatch_change,
            should_process=self.is_eligible,
            debounce_delay=self.debounce_seconds,
        )
        self._observer = Observer()
        self._observer.schedule(self._handler, str(self.root), recursive=True)
        self._observer.daemon = True
        self._observer.start()
        logger.info(f"Watching {self.root} for changes")

    def stop_watching(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        self._handler = None
        logger.info("Stopped watching for changes")

    @property
    def is_watching(self) -> bool:
        return self._observer is not None
