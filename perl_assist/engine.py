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

"""Engine object owning every per-workspace component.

One ``PerlAssistEngine`` is constructed per workspace and passed to whatever
shell drives it; nothing is kept in module globals.

Example:
    settings = load_settings(workspace_root="/src/app")
    async with PerlAssistEngine(settings, backend=my_backend) as engine:
        await engine.index_all(on_progress=print)
        context = await engine.build_context(TextDocument.from_file(path), Position(10, 4))
"""

import logging
from typing import Callable, List, Optional

from perl_assist.codebase.embeddings.models import BaseEmbeddingModel, create_embedding_model
from perl_assist.codebase.embeddings.store import SemanticIndexStore
from perl_assist.codebase.extractors import create_structure_extractor
from perl_assist.codebase.indexer import CancelToken, CodebaseIndexer, IndexReport, RelevantCode
from perl_assist.codebase.repo_map import RepositoryMapProvider
from perl_assist.codebase.tree_sitter_manager import format_tree, parse_text, try_get_parser
from perl_assist.completion.manager import CompletionManager
from perl_assist.completion.protocol import AIBackend
from perl_assist.config import EngineSettings
from perl_assist.context.assembler import ContextAssembler
from perl_assist.context.document import Position, TextDocument
from perl_assist.context.imports import ImportResolver
from perl_assist.context.models import AssembledContext
from perl_assist.errors import IndexStoreError

logger = logging.getLogger(__name__)


class PerlAssistEngine:
    """Codebase intelligence for one Perl workspace."""

    def __init__(
        self,
        settings: EngineSettings,
        embedding_model: Optional[BaseEmbeddingModel] = None,
        backend: Optional[AIBackend] = None,
    ):
        self.settings = settings
        self.root = settings.root_path

        self.parser = try_get_parser("perl") if settings.use_tree_sitter else None
        self.extractor = create_structure_extractor(
            self.parser,
            use_tree_sitter=settings.use_tree_sitter,
            whole_file_threshold=settings.whole_file_threshold,
        )

        self.embedding_model = embedding_model or create_embedding_model(
            settings.embedding_model_config()
        )
        self.store = SemanticIndexStore(
            persist_directory=settings.persist_directory,
            dimension=self.embedding_model.get_dimension(),
            table_name=settings.table_name,
            distance_metric=settings.distance_metric,
        )
        self.indexer = CodebaseIndexer(
            self.root,
            self.store,
            self.embedding_model,
            extractor=self.extractor,
            file_extensions=settings.file_extensions,
            extra_skip_dirs=settings.extra_skip_dirs,
            debounce_seconds=settings.watcher_debounce_seconds,
        )
        self.import_resolver = ImportResolver(
            self.root, store=self.store, extra_skip_dirs=settings.extra_skip_dirs
        )
        self.repo_map = RepositoryMapProvider(
            file_extensions=settings.file_extensions, extra_skip_dirs=settings.extra_skip_dirs
        )
        self.assembler = ContextAssembler(
            parser=self.parser,
            import_resolver=self.import_resolver,
            indexer=self.indexer,
            repo_map=self.repo_map,
            workspace_roots=[str(self.root)],
            lines_before=settings.context_lines_before,
            lines_after=settings.context_lines_after,
            relevant_code_count=settings.relevant_code_count,
        )
        self.completion = CompletionManager(backend, self.assembler) if backend else None
        self._initialized = False

    async def initialize(self) -> None:
        """Load the embedding model and open the semantic index.

        Either failing leaves the engine usable: semantic features then
        return empty results while context assembly keeps working.
        """
        if self._initialized:
            return

        try:
            await self.embedding_model.initialize()
        except Exception as e:
            logger.warning(f"Embedding model unavailable, semantic search disabled: {e}")

        dimension = self.embedding_model.get_dimension()
        if dimension != self.store.dimension:
            logger.info(f"Embedding dimension is {dimension}, reopening index with it")
            self.store = SemanticIndexStore(
                persist_directory=self.settings.persist_directory,
                dimension=dimension,
                table_name=self.settings.table_name,
                distance_metric=self.settings.distance_metric,
            )
            self.indexer.store = self.store
            self.import_resolver.store = self.store

        try:
            self.store.open()
        except IndexStoreError as e:
            logger.error(f"{e}; semantic index disabled")

        self._initialized = True

    async def start(
        self,
        index: bool = True,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Optional[IndexReport]:
        """Initialize, optionally run a full index, then start watching."""
        await self.initialize()
        report = await self.index_all(on_progress, cancel_token) if index else None
        if self.settings.enable_watcher:
            self.indexer.start_watching()
        return report

    async def index_all(
        self,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> IndexReport:
        await self.initialize()
        return await self.indexer.index_all(on_progress=on_progress, cancel_token=cancel_token)

    async def find_relevant_code(self, query: str, limit: Optional[int] = None) -> List[RelevantCode]:
        await self.initialize()
        return await self.indexer.find_relevant_code(
            query, limit=limit or self.settings.relevant_code_count
        )

    async def build_context(
        self, document: TextDocument, position: Position, advanced: bool = True
    ) -> AssembledContext:
        await self.initialize()
        return await self.assembler.build_context(document, position, advanced=advanced)

    def generate_tree_map(self) -> str:
        return self.repo_map.generate_tree_map([str(self.root)])

    def dump_syntax_tree(self, document: TextDocument) -> Optional[str]:
        """Indented node dump of a document, or None without a parser."""
        if self.parser is None:
            return None
        return format_tree(parse_text(self.parser, document.text))

    async def close(self) -> None:
        self.indexer.stop_watching()
        await self.embedding_model.close()
        self.store.close()
        self._initialized = False

    async def __aenter__(self) -> "PerlAssistEngine":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
