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

"""Cursor context assembly.

``ContextAssembler`` turns a document snapshot and a cursor position into the
payload sent to the AI backend. Basic context comes from the document alone
(text window, enclosing block, imports, used symbols, variable definitions);
advanced context adds the project map, import definitions and related code
from the semantic index.

Any failure while building advanced context is logged and the request falls
back to basic context. A failure in basic context fails the request with
``ContextAssemblyError``.
"""

import logging
import re
from typing import TYPE_CHECKING, Any, List, Optional

from perl_assist.codebase.grammar import COMMENT_NODE_TYPES, ENCLOSING_BLOCK_PRIORITY, FILE_SCOPE
from perl_assist.context.document import Position, TextDocument
from perl_assist.context.imports import ImportResolver
from perl_assist.context.models import (
    AdvancedContext,
    AssembledContext,
    BasicContext,
    CodeWindow,
)
from perl_assist.errors import ContextAssemblyError

if TYPE_CHECKING:
    from perl_assist.codebase.indexer import CodebaseIndexer
    from perl_assist.codebase.repo_map import RepositoryMapProvider

logger = logging.getLogger(__name__)

VARIABLE_DEFINITION_PATTERN = re.compile(r"(?:\$|\@|\%)\w+\s*=\s*[^;]+;")


def find_node_at_offset(node: Any, offset: int) -> Optional[Any]:
    """Deepest node whose range contains offset (end inclusive); first child wins."""
    if offset < node.start_byte or offset > node.end_byte:
        return None
    for child in node.children:
        found = find_node_at_offset(child, offset)
        if found is not None:
            return found
    return node


def enclosing_node(root: Any, offset: int) -> Optional[Any]:
    """Highest-priority ancestor block containing offset, or None for file scope.

    The priority order is fixed: an ancestor of a higher-priority type wins
    over any lower-priority one, however close the latter is to the cursor.
    """
    node = find_node_at_offset(root, offset)
    if node is None:
        return None

    if node.type in COMMENT_NODE_TYPES and node.parent is not None:
        node = node.parent

    ancestors = []
    current = node
    while current is not None:
        if current.start_byte <= offset < current.end_byte:
            ancestors.append(current)
        current = current.parent

    for block_type in ENCLOSING_BLOCK_PRIORITY:
        for ancestor in ancestors:
            if ancestor.type == block_type:
                return ancestor
    return None


class ContextAssembler:
    """Builds cursor context for one workspace.

    Args:
        parser: tree-sitter Parser for Perl, or None when unavailable
        import_resolver: Resolves imports for advanced context
        indexer: Source of related code (optional)
        repo_map: Project structure provider (optional)
        workspace_roots: Roots rendered into the project structure map
    """

    def __init__(
        self,
        parser: Optional[Any] = None,
        import_resolver: Optional[ImportResolver] = None,
        indexer: Optional["CodebaseIndexer"] = None,
        repo_map: Optional["RepositoryMapProvider"] = None,
        workspace_roots: Optional[List[str]] = None,
        lines_before: int = 15,
        lines_after: int = 15,
        relevant_code_count: int = 5,
    ):
        self.parser = parser
        self.import_resolver = import_resolver
        self.indexer = indexer
        self.repo_map = repo_map
        self.workspace_roots = list(workspace_roots or [])
        self.lines_before = lines_before
        self.lines_after = lines_after
        self.relevant_code_count = relevant_code_count

    @staticmethod
    def window_around(
        document: TextDocument, position: Position, lines_before: int = 15, lines_after: int = 15
    ) -> CodeWindow:
        """Text from ``lines_before`` lines above the cursor to ``lines_after`` lines below.

        Positions outside the document are clamped; this never raises.
        """
        position = document.clamp(position)
        start_line = max(0, position.line - max(lines_before, 0))
        end_line = min(document.line_count - 1, position.line + max(lines_after, 0))

        prefix = document.get_text(Position(start_line, 0), position)
        suffix = document.get_text(position, document.line_end(end_line))
        return CodeWindow(prefix_text=prefix, suffix_text=suffix)

    def enclosing_block(self, document: TextDocument, position: Position) -> Optional[str]:
        """Source text of the enclosing block, ``"file_scope"``, or None without a parser."""
        if self.parser is None:
            return None

        source = document.text.encode("utf-8")
        tree = self.parser.parse(source)
        offset = document.byte_offset_at(position)

        node = enclosing_node(tree.root_node, offset)
        if node is None:
            return FILE_SCOPE
        return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    @staticmethod
    def find_variable_definitions(text: str) -> List[str]:
        """Every ``$x = ...;``, ``@x = ...;`` and ``%x = ...;`` span in text."""
        return VARIABLE_DEFINITION_PATTERN.findall(text)

    def build_basic_context(self, document: TextDocument, position: Position) -> BasicContext:
        """Context from the document alone.

        Raises:
            ContextAssemblyError: If any part cannot be computed
        """
        try:
            window = self.window_around(document, position, self.lines_before, self.lines_after)
            current_block = self.enclosing_block(document, position)
            imports = ImportResolver.extract_imports(document.text)
            used = ImportResolver.find_used_symbols(window.text_around_cursor, imports)
            variables = self.find_variable_definitions(document.text)
        except Exception as e:
            raise ContextAssemblyError(document.file_name or document.path, str(e)) from e

        return BasicContext(
            window=window,
            current_block=current_block,
            imports=imports,
            used_modules=used,
            variable_definitions=variables,
            file_name=document.path,
        )

    async def build_advanced_context(
        self, document: TextDocument, basic: BasicContext, query: Optional[str] = None
    ) -> AdvancedContext:
        advanced = AdvancedContext()

        if self.repo_map is not None and self.workspace_roots:
            advanced.project_structure = self.repo_map.generate_tree_map(self.workspace_roots)

        if self.import_resolver is not None:
            advanced.import_definitions = await self.import_resolver.resolve_imports(
                basic.imports, current_file=document.path or None
            )

        if self.indexer is not None:
            search_text = query or basic.window.text_around_cursor
            matches = await self.indexer.find_relevant_code(
                search_text, limit=self.relevant_code_count
            )
            advanced.related_code_structures = [m.model_dump() for m in matches]

        return advanced

    async def build_context(
        self,
        document: TextDocument,
        position: Position,
        advanced: bool = True,
        query: Optional[str] = None,
    ) -> AssembledContext:
        """Assemble the request context for a cursor position.

        Args:
            document: Document snapshot
            position: Cursor position
            advanced: Also gather workspace-level context
            query: Text used to search related code (defaults to the window text)

        Raises:
            ContextAssemblyError: If basic context fails
        """
        basic = self.build_basic_context(document, position)
        if not advanced:
            return AssembledContext(basic=basic)

        try:
            extra = await self.build_advanced_context(document, basic, query)
        except Exception as e:
            logger.warning(f"Advanced context failed for {document.path}, using basic context: {e}")
            return AssembledContext(basic=basic)

        return AssembledContext(basic=basic, advanced=extra)
