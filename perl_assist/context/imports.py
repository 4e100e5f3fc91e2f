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

"""Perl import extraction and definition lookup.

Imports are read with patterns only:

    use Foo::Bar qw(alpha beta);    # module, symbols [alpha, beta]
    use POSIX 'floor';              # module, symbols [floor]
    use List::Util 1.45;            # module, bareword tail [1.45]
    require "lib/helpers.pl";       # file
    do 'config.pl';                 # file

Resolution maps a module name to ``Foo/Bar.pm`` and searches the workspace;
a file import is searched next to the current file, then at the root, then
anywhere in the workspace. A symbol is located by the first line that
declares it (named sub, glob alias, or anonymous sub assignment).

A miss is not an error: it is recorded as an empty definition list so callers
can tell "looked and found nothing" from "did not look".
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from perl_assist.codebase.embeddings.store import SemanticIndexStore
from perl_assist.codebase.ignore_patterns import should_ignore_path
from perl_assist.codebase.scanning import find_block_end, line_number_at
from perl_assist.codebase.structure import StructureKind
from perl_assist.context.models import Import, ImportKind, ResolvedDefinition

logger = logging.getLogger(__name__)

MODULE_IMPORT_PATTERN = re.compile(
    r"^[ \t]*(?:use|require)[ \t]+([A-Za-z0-9:]+)"
    r"(?:[ \t]+qw\(\s*([^)]+?)\s*\)|[ \t]*['\"]([^'\"]+)['\"]|[ \t]+(.+?)(?:;|$))?",
    re.MULTILINE,
)
FILE_IMPORT_PATTERN = re.compile(r"^[ \t]*(?:require|do)[ \t]*\(?[ \t]*['\"]([^'\"]+)['\"]", re.MULTILINE)
SYMBOL_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_VERSION_PATTERN = re.compile(r"^v?[0-9]")


def is_valid_symbol(symbol: str) -> bool:
    """Bare identifiers only; sigils, paths and tags are rejected."""
    return bool(SYMBOL_NAME_PATTERN.match(symbol))


def _declaration_patterns(symbol: str) -> List["re.Pattern[str]"]:
    name = re.escape(symbol)
    return [
        # sub name
        re.compile(rf"^\s*sub\s+(?:[A-Za-z_][\w:]*::)?{name}\b"),
        # *name = \&impl;  /  *Pkg::name = sub {
        re.compile(rf"^\s*\*(?:[A-Za-z_][\w:]*::)?{name}\s*="),
        # my $name = sub {
        re.compile(rf"^\s*(?:(?:my|our|local|state)\s+)?\${name}\s*=\s*sub\b"),
    ]


class ImportResolver:
    """Extracts imports and resolves them against the workspace.

    Args:
        root_path: Workspace root searched for modules and files
        store: Optional semantic index used as a fallback lookup
        extra_skip_dirs: Directory names excluded from recursive search
    """

    def __init__(
        self,
        root_path: Union[str, Path],
        store: Optional[SemanticIndexStore] = None,
        extra_skip_dirs: Optional[Iterable[str]] = None,
    ):
        self.root = Path(root_path).expanduser().resolve()
        self.store = store
        self.extra_skip_dirs = set(extra_skip_dirs or ())

    # ------------------------------------------------------------------
    # Extraction

    @staticmethod
    def extract_imports(text: str) -> List[Import]:
        """Extract module and file imports in order of first appearance.

        Repeated imports of the same module merge their symbol lists.
        """
        found: Dict[str, Import] = {}

        for match in MODULE_IMPORT_PATTERN.finditer(text):
            module = match.group(1)
            if _VERSION_PATTERN.match(module):
                continue

            if match.group(2):
                symbols = match.group(2).split()
            elif match.group(3):
                symbols = [match.group(3)]
            elif match.group(4) and match.group(4).strip():
                symbols = [match.group(4).strip()]
            else:
                symbols = []

            existing = found.get(module)
            if existing is None:
                found[module] = Import(module_or_file=module, symbols=symbols, kind=ImportKind.MODULE)
            else:
                for symbol in symbols:
                    if symbol not in existing.symbols:
                        existing.symbols.append(symbol)

        for match in FILE_IMPORT_PATTERN.finditer(text):
            target = match.group(1)
            if target not in found:
                found[target] = Import(module_or_file=target, kind=ImportKind.FILE)

        return list(found.values())

    @staticmethod
    def find_used_symbols(text: str, imports: Iterable[Import]) -> List[str]:
        """Modules and ``Module::symbol`` names that appear as words in ``text``."""
        used: List[str] = []
        for imp in imports:
            if imp.kind != ImportKind.MODULE:
                continue
            module = imp.module_or_file
            if re.search(rf"\b{re.escape(module)}\b", text) and module not in used:
                used.append(module)
            for symbol in imp.symbols:
                if not is_valid_symbol(symbol):
                    continue
                qualified = f"{module}::{symbol}"
                if re.search(rf"\b{re.escape(symbol)}\b", text) and qualified not in used:
                    used.append(qualified)
        return used

    # ------------------------------------------------------------------
    # Filesystem resolution

    def _is_searchable(self, path: Path) -> bool:
        try:
            rel_path = path.relative_to(self.root)
        except ValueError:
            return True
        return not should_ignore_path(rel_path, extra_skip_dirs=self.extra_skip_dirs)

    def _search_recursive(self, relative: Path) -> Optional[Path]:
        suffix = relative.as_posix()
        candidates = sorted(
            p
            for p in self.root.rglob(relative.name)
            if p.is_file() and p.as_posix().endswith("/" + suffix) and self._is_searchable(p)
        )
        return candidates[0] if candidates else None

    def locate_module(self, module: str) -> Optional[Path]:
        """Find the file defining ``Foo::Bar`` (``lib/Foo/Bar.pm``, ``Foo/Bar.pm``, then anywhere)."""
        relative = Path(*module.split("::")).with_suffix(".pm")
        for base in (self.root / "lib", self.root):
            candidate = base / relative
            if candidate.is_file():
                return candidate
        return self._search_recursive(relative)

    def locate_file(self, target: str, current_file: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """Find a ``require``/``do`` target: current dir, then root, then anywhere."""
        relative = Path(target)
        if relative.is_absolute():
            return relative if relative.is_file() else None

        if current_file:
            candidate = Path(current_file).parent / relative
            if candidate.is_file():
                return candidate

        candidate = self.root / relative
        if candidate.is_file():
            return candidate

        return self._search_recursive(relative)

    async def resolve(
        self, import_entry: Import, current_file: Optional[Union[str, Path]] = None
    ) -> Optional[ResolvedDefinition]:
        """Resolve an import to the full text of its defining file, or None."""
        if import_entry.kind == ImportKind.MODULE:
            path = await asyncio.to_thread(self.locate_module, import_entry.module_or_file)
            kind = StructureKind.PACKAGE.value
        else:
            path = await asyncio.to_thread(
                self.locate_file, import_entry.module_or_file, current_file
            )
            kind = StructureKind.FILE.value

        if path is None:
            logger.debug(f"Could not locate import {import_entry.module_or_file}")
            return None

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

        return ResolvedDefinition(filepath=str(path), content=content, line=0, kind=kind)

    @staticmethod
    def resolve_symbol(
        resolved_file: ResolvedDefinition, symbol: str
    ) -> Optional[ResolvedDefinition]:
        """Locate the first declaration of ``symbol`` in a resolved file.

        Each line is tested against the declaration patterns in a fixed order
        and the first matching line wins, so a redefined routine resolves to
        its first occurrence.
        """
        if not is_valid_symbol(symbol):
            logger.debug(f"Rejected symbol name: {symbol!r}")
            return None

        content = resolved_file.content
        patterns = _declaration_patterns(symbol)
        offset = 0
        for line in content.splitlines(keepends=True):
            if any(pattern.match(line) for pattern in patterns):
                start = offset + (len(line) - len(line.lstrip()))
                end = find_block_end(content, start)
                return ResolvedDefinition(
                    filepath=resolved_file.filepath,
                    content=content[start:end],
                    line=line_number_at(content, start),
                    kind=StructureKind.ROUTINE.value,
                )
            offset += len(line)
        return None

    async def resolve_imports(
        self,
        imports: Iterable[Import],
        current_file: Optional[Union[str, Path]] = None,
        use_index: bool = True,
    ) -> Dict[str, List[ResolvedDefinition]]:
        """Resolve every import and each of its symbols.

        Returns:
            Map of module/file -> definitions and ``Module::symbol`` ->
            definitions; misses map to an empty list. Symbols that are not
            bare identifiers are skipped.
        """
        imports = list(imports)
        results: Dict[str, List[ResolvedDefinition]] = {}

        for imp in imports:
            resolved = await self.resolve(imp, current_file)
            results[imp.module_or_file] = [resolved] if resolved else []

            if imp.kind != ImportKind.MODULE:
                continue

            for symbol in imp.symbols:
                if not is_valid_symbol(symbol):
                    logger.debug(f"Skipping invalid symbol: {symbol}")
                    continue
                definition = self.resolve_symbol(resolved, symbol) if resolved else None
                results[f"{imp.module_or_file}::{symbol}"] = [definition] if definition else []

        if use_index and self.store is not None:
            missing = [
                imp for imp in imports if imp.kind == ImportKind.MODULE and self._has_miss(imp, results)
            ]
            if missing:
                from_index = await self.resolve_from_index(missing)
                for name, definitions in from_index.items():
                    if definitions and not results.get(name):
                        results[name] = definitions

        return results

    @staticmethod
    def _has_miss(imp: Import, results: Dict[str, List[ResolvedDefinition]]) -> bool:
        if not results.get(imp.module_or_file):
            return True
        return any(
            not results.get(f"{imp.module_or_file}::{symbol}")
            for symbol in imp.symbols
            if is_valid_symbol(symbol)
        )

    # ------------------------------------------------------------------
    # Index resolution

    async def resolve_from_index(self, imports: Iterable[Import]) -> Dict[str, List[ResolvedDefinition]]:
        """Look up packages and subroutines by exact title in the semantic index."""
        results: Dict[str, List[ResolvedDefinition]] = {}
        if self.store is None:
            return results

        for imp in imports:
            if imp.kind != ImportKind.MODULE:
                continue

            module = imp.module_or_file
            matches = await self.store.find_by_title(module, StructureKind.PACKAGE.value)
            results[module] = [
                ResolvedDefinition(filepath=m.path, content=m.content, kind=m.kind) for m in matches
            ]

            for symbol in imp.symbols:
                if not is_valid_symbol(symbol):
                    logger.debug(f"Skipping invalid symbol: {symbol}")
                    continue
                qualified = f"{module}::{symbol}"
                matches = await self.store.find_by_title(qualified, StructureKind.ROUTINE.value)
                results[qualified] = [
                    ResolvedDefinition(filepath=m.path, content=m.content, kind=m.kind)
                    for m in matches
                ]

        return results
