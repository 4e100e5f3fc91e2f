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

"""Structure extraction strategies.

Two interchangeable strategies turn Perl source into ``StructuralEntity``
records:

- ``TreeSitterStructureExtractor`` walks a concrete syntax tree
- ``RegexStructureExtractor`` scans text with line patterns and
  comment-aware brace counting, used when no parser is available

``create_structure_extractor`` picks one at construction time. Both are
deterministic for a given (path, content) and never raise: on internal failure
the entities found so far are returned together with a whole-file entity.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import PurePath
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from perl_assist.codebase.grammar import (
    ANONYMOUS_ROUTINE_NODE_TYPES,
    ASSIGNMENT_NODE_TYPES,
    NAMED_ROUTINE_NODE_TYPES,
    PACKAGE_NODE_TYPES,
)
from perl_assist.codebase.scanning import byte_offset, find_block_end, line_number_at
from perl_assist.codebase.structure import StructuralEntity, StructureKind, qualify

if TYPE_CHECKING:
    from tree_sitter import Node, Parser

logger = logging.getLogger(__name__)

DEFAULT_WHOLE_FILE_THRESHOLD = 10000


class BaseStructureExtractor(ABC):
    """Common contract for structure extraction strategies."""

    strategy: str = "base"

    def __init__(self, whole_file_threshold: int = DEFAULT_WHOLE_FILE_THRESHOLD):
        self.whole_file_threshold = whole_file_threshold

    def extract(self, path: str, content: str) -> List[StructuralEntity]:
        """Extract structural entities from a file.

        Args:
            path: Source path (used for the whole-file entity name and logging)
            content: Full file text

        Returns:
            Packages and routines in source order, followed by a whole-file
            entity when the file is short (or when extraction failed)
        """
        entities: List[StructuralEntity] = []
        try:
            self._extract(content, entities)
        except Exception as e:
            logger.warning(f"{self.strategy} extraction failed for {path}: {e}")
            entities.append(self._file_entity(path, content))
            return entities

        logger.debug(f"{self.strategy} extracted {len(entities)} structures from {path}")

        if len(content) < self.whole_file_threshold:
            entities.append(self._file_entity(path, content))
        return entities

    @abstractmethod
    def _extract(self, content: str, entities: List[StructuralEntity]) -> None:
        """Append package and routine entities to ``entities`` in source order."""

    @staticmethod
    def _file_entity(path: str, content: str) -> StructuralEntity:
        return StructuralEntity(
            name=PurePath(path).name,
            kind=StructureKind.FILE,
            content=content,
            start_byte=0,
            end_byte=len(content.encode("utf-8")),
            line=0,
        )


def _package_for(packages: List[Tuple[str, int, int]], offset: int) -> str:
    """Name of the package whose span contains offset, or '' for top level."""
    for name, start, end in packages:
        if start <= offset < end:
            return name
    return ""


def _close_package_spans(
    declarations: List[Tuple[str, int, int]], total: int
) -> List[Tuple[str, int, int]]:
    """Turn (name, start, line) declarations into non-overlapping (name, start, end) spans.

    Each package ends where the next declaration starts; the last one runs to
    the end of the file.
    """
    spans = []
    for i, (name, start, _line) in enumerate(declarations):
        end = declarations[i + 1][1] if i + 1 < len(declarations) else total
        spans.append((name, start, end))
    return spans


class TreeSitterStructureExtractor(BaseStructureExtractor):
    """Extract structures by depth-first traversal of a tree-sitter parse tree."""

    strategy = "tree-sitter"

    def __init__(
        self, parser: "Parser", whole_file_threshold: int = DEFAULT_WHOLE_FILE_THRESHOLD
    ):
        super().__init__(whole_file_threshold)
        self.parser = parser

    def _extract(self, content: str, entities: List[StructuralEntity]) -> None:
        source = content.encode("utf-8")
        tree = self.parser.parse(source)

        declarations: List[Tuple[str, int, int]] = []
        routines: List[Tuple[str, "Node"]] = []

        stack: List["Node"] = [tree.root_node]
        while stack:
            node = stack.pop()
            if node.type in PACKAGE_NODE_TYPES:
                name = self._package_name(node, source)
                if name:
                    declarations.append((name, node.start_byte, node.start_point[0]))
            elif node.type in NAMED_ROUTINE_NODE_TYPES or node.type in ANONYMOUS_ROUTINE_NODE_TYPES:
                name = self._routine_name(node, source)
                if name:
                    routines.append((name, node))
            stack.extend(reversed(node.children))

        spans = _close_package_spans(declarations, len(source))
        found: List[StructuralEntity] = []

        for (name, start, end), (_, _, line) in zip(spans, declarations):
            found.append(
                StructuralEntity(
                    name=name,
                    kind=StructureKind.PACKAGE,
                    content=_text(source, start, end),
                    start_byte=start,
                    end_byte=end,
                    line=line,
                )
            )

        for name, node in routines:
            package = _package_for(spans, node.start_byte)
            found.append(
                StructuralEntity(
                    name=qualify(package, name),
                    kind=StructureKind.ROUTINE,
                    content=_text(source, node.start_byte, node.end_byte),
                    start_byte=node.start_byte,
                    end_byte=node.end_byte,
                    line=node.start_point[0],
                )
            )

        # sorted() is stable, so a package and a routine starting together keep
        # package-first order
        entities.extend(sorted(found, key=lambda e: e.start_byte))

    @staticmethod
    def _package_name(node: "Node", source: bytes) -> Optional[str]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            for child in node.children:
                if child.type in ("package_name", "package", "bareword", "identifier"):
                    name_node = child
                    break
        if name_node is None and len(node.children) > 1:
            name_node = node.children[1]
        if name_node is None:
            return None
        name = _text(source, name_node.start_byte, name_node.end_byte).strip()
        return name or None

    @staticmethod
    def _routine_name(node: "Node", source: bytes) -> Optional[str]:
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            name = _text(source, name_node.start_byte, name_node.end_byte).strip()
            return name or None
        if node.type in ANONYMOUS_ROUTINE_NODE_TYPES:
            return _assigned_name(node, source)
        return None


def _assigned_name(node: "Node", source: bytes) -> Optional[str]:
    """Name given to an anonymous routine by assignment (``*foo = sub {...}``)."""
    parent = node.parent
    if parent is None or parent.type not in ASSIGNMENT_NODE_TYPES:
        return None

    left = parent.child_by_field_name("left")
    if left is None:
        children = parent.children
        if not children or children[0].start_byte == node.start_byte:
            return None
        left = children[0]

    return _clean_assigned_name(_text(source, left.start_byte, left.end_byte))


_DECLARATOR_RE = re.compile(r"^\s*(?:my|our|local|state)\s+")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:::[A-Za-z_][A-Za-z0-9_]*)*")


def _clean_assigned_name(text: str) -> Optional[str]:
    text = _DECLARATOR_RE.sub("", text).strip().lstrip("*$&").strip()
    match = _IDENTIFIER_RE.fullmatch(text)
    return match.group(0) if match else None


def _text(source: bytes, start: int, end: int) -> str:
    return source[start:end].decode("utf-8", errors="replace")


class RegexStructureExtractor(BaseStructureExtractor):
    """Extract structures with line patterns when no parser is available.

    Package boundaries follow the same rule as the tree strategy. A routine
    ends at the brace balancing its first '{', found by ``find_block_end``.
    """

    strategy = "regex"

    PACKAGE_PATTERN = re.compile(
        r"^[ \t]*package[ \t]+([A-Za-z_][A-Za-z0-9_]*(?:::[A-Za-z0-9_]+)*)[ \t]*(?:v?[0-9][^;{\n]*)?[;{]",
        re.MULTILINE,
    )
    ROUTINE_PATTERNS: Tuple["re.Pattern[str]", ...] = (
        # sub name {  /  sub name($x) {  /  sub name :lvalue {
        re.compile(
            r"^[ \t]*sub[ \t]+([A-Za-z_][A-Za-z0-9_]*(?:::[A-Za-z_][A-Za-z0-9_]*)*)(?=[ \t]*(?:\{|\(|:|$))",
            re.MULTILINE,
        ),
        # *name = sub {
        re.compile(
            r"^[ \t]*\*(?:[A-Za-z_][A-Za-z0-9_:]*::)?([A-Za-z_][A-Za-z0-9_]*)[ \t]*=[ \t]*sub\b",
            re.MULTILINE,
        ),
        # my $name = sub {
        re.compile(
            r"^[ \t]*(?:(?:my|our|local|state)[ \t]+)?\$([A-Za-z_][A-Za-z0-9_]*)[ \t]*=[ \t]*sub\b",
            re.MULTILINE,
        ),
    )

    def _extract(self, content: str, entities: List[StructuralEntity]) -> None:
        declarations: List[Tuple[str, int, int]] = []
        for match in self.PACKAGE_PATTERN.finditer(content):
            start = _first_non_blank(content, match.start())
            declarations.append((match.group(1), start, line_number_at(content, start)))

        spans = _close_package_spans(declarations, len(content))
        found: List[Tuple[int, int, StructuralEntity]] = []

        for order, ((name, start, end), (_, _, line)) in enumerate(zip(spans, declarations)):
            found.append((start, order, self._entity(content, name, StructureKind.PACKAGE, start, end, line)))

        seen_starts = set()
        for pattern in self.ROUTINE_PATTERNS:
            for match in pattern.finditer(content):
                start = _first_non_blank(content, match.start())
                if start in seen_starts:
                    continue
                seen_starts.add(start)
                end = find_block_end(content, start)
                name = qualify(_package_for(spans, start), match.group(1))
                entity = self._entity(
                    content, name, StructureKind.ROUTINE, start, end, line_number_at(content, start)
                )
                found.append((start, len(declarations) + len(found), entity))

        found.sort(key=lambda item: (item[0], item[1]))
        entities.extend(entity for _, _, entity in found)

    @staticmethod
    def _entity(
        content: str, name: str, kind: StructureKind, start: int, end: int, line: int
    ) -> StructuralEntity:
        return StructuralEntity(
            name=name,
            kind=kind,
            content=content[start:end],
            start_byte=byte_offset(content, start),
            end_byte=byte_offset(content, end),
            line=line,
        )


def _first_non_blank(text: str, index: int) -> int:
    while index < len(text) and text[index] in " \t":
        index += 1
    return index


def create_structure_extractor(
    parser: Optional[Any] = None,
    use_tree_sitter: bool = True,
    whole_file_threshold: int = DEFAULT_WHOLE_FILE_THRESHOLD,
) -> BaseStructureExtractor:
    """Choose the extraction strategy once, based on parser availability.

    Args:
        parser: Pre-built parser; when None and use_tree_sitter is set, the
            installed Perl grammar is tried
        use_tree_sitter: Set False to force the pattern-based strategy
        whole_file_threshold: Size below which a whole-file entity is added

    Returns:
        A tree-sitter extractor when a parser is available, else a regex one
    """
    if use_tree_sitter and parser is None:
        from perl_assist.codebase.tree_sitter_manager import try_get_parser

        parser = try_get_parser("perl")

    if use_tree_sitter and parser is not None:
        logger.info("Using tree-sitter structure extraction")
        return TreeSitterStructureExtractor(parser, whole_file_threshold)

    logger.info("Using pattern-based structure extraction")
    return RegexStructureExtractor(whole_file_threshold)
