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

"""Plain-text map of the Perl files in a workspace.

The map is an indented folder tree listing only Perl source files; folders
without any Perl file below them are left out. It is sent to the AI backend as
``projectStructure``.

Example output:

    app/
      lib/
        App/
          Main.pm
      script/
        run.pl
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from perl_assist.codebase.ignore_patterns import (
    DEFAULT_EXTENSIONS,
    is_hidden_path,
    get_effective_skip_dirs,
    is_source_file,
)

logger = logging.getLogger(__name__)

INDENT = "  "


@dataclass
class TreeNode:
    name: str
    children: Optional[List["TreeNode"]] = field(default_factory=list)

    @property
    def is_file(self) -> bool:
        return self.children is None


class RepositoryMapProvider:
    """Builds the project structure map for one or more workspace roots."""

    def __init__(
        self,
        file_extensions: Optional[Iterable[str]] = None,
        extra_skip_dirs: Optional[Iterable[str]] = None,
    ):
        self.file_extensions = (
            set(file_extensions) if file_extensions is not None else set(DEFAULT_EXTENSIONS)
        )
        self.skip_dirs = get_effective_skip_dirs(extra_skip_dirs=extra_skip_dirs)

    def generate_tree_map(self, roots: Sequence[Union[str, Path]]) -> str:
        """Render the Perl file tree of every root.

        Raises:
            ValueError: If no roots are given
        """
        if not roots:
            raise ValueError("No workspace folders found")

        result = ""
        for root in roots:
            tree = self.build_tree(Path(root))
            if tree.children:
                result += self.render_tree(tree) + "\n"
        return result

    def _should_exclude(self, name: str) -> bool:
        return name in self.skip_dirs or is_hidden_path(Path(name))

    def build_tree(self, directory: Path) -> TreeNode:
        """Tree of Perl files below ``directory``; unreadable folders are empty."""
        node = TreeNode(name=directory.name + "/")
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.debug(f"Cannot list {directory}: {e}")
            return node

        for entry in entries:
            if self._should_exclude(entry.name):
                continue
            if entry.is_dir():
                child = self.build_tree(entry)
                if child.children:
                    node.children.append(child)
            elif is_source_file(entry, self.file_extensions):
                node.children.append(TreeNode(name=entry.name, children=None))
        return node

    def render_tree(self, node: TreeNode, indent: str = "") -> str:
        out = indent + node.name + "\n"
        if not node.is_file:
            for child in node.children:
                out += self.render_tree(child, indent + INDENT)
        return out
