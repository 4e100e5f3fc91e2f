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

"""Tree-sitter parser management for Perl sources.

Grammars come from pre-compiled language packages (tree-sitter 0.25+ API);
install the Perl grammar with ``pip install tree-sitter-perl``. When the grammar
is missing, callers fall back to pattern-based extraction.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from tree_sitter import Tree

logger = logging.getLogger(__name__)


# Format: "language_name": ("module_name", "function_name")
# function_name returns the Language object (usually "language")
LANGUAGE_MODULES: Dict[str, tuple] = {
    "perl": ("tree_sitter_perl", "language"),
}

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}


def get_language(language: str = "perl") -> Language:
    """Load a tree-sitter Language object from its pre-compiled package."""
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ValueError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info

    try:
        language_module = __import__(module_name)
        lang_func = getattr(language_module, func_name)
        lang_obj = lang_func()
        # Older grammars expose a PyCapsule; wrap via Language
        lang = Language(lang_obj) if not isinstance(lang_obj, Language) else lang_obj

        _language_cache[language] = lang
        return lang

    except ImportError:
        raise ImportError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        )
    except AttributeError:
        raise AttributeError(
            f"Language module '{module_name}' does not have function '{func_name}'. "
            f"Check the tree-sitter package version and update LANGUAGE_MODULES."
        )


def get_parser(language: str = "perl") -> Parser:
    """Return a cached tree-sitter Parser initialized with the given language."""
    if language in _parser_cache:
        return _parser_cache[language]

    parser = Parser(get_language(language))
    _parser_cache[language] = parser
    return parser


def try_get_parser(language: str = "perl") -> Optional[Parser]:
    """Return a parser, or None when the grammar cannot be loaded."""
    try:
        return get_parser(language)
    except (ImportError, AttributeError, ValueError) as e:
        logger.info(f"Tree-sitter parser for {language} unavailable: {e}")
        return None


def parse_text(parser: Parser, text: str) -> "Tree":
    """Parse text as UTF-8; node byte offsets refer to the encoded text."""
    return parser.parse(text.encode("utf-8"))


def format_tree(tree: "Tree") -> str:
    """Render a syntax tree as indented ``type: [row,col] - [row,col]`` lines.

    Used to inspect which node types the installed grammar produces.
    """
    lines: List[str] = []
    cursor = tree.walk()
    depth = 0
    visited_children = False

    def log_node() -> None:
        node = cursor.node
        start_row, start_col = node.start_point
        end_row, end_col = node.end_point
        lines.append(
            f"{'  ' * depth}{node.type}: [{start_row},{start_col}] - [{end_row},{end_col}]"
        )

    log_node()
    while True:
        if not visited_children and cursor.goto_first_child():
            depth += 1
            log_node()
            continue
        if cursor.goto_next_sibling():
            visited_children = False
            log_node()
            continue
        if cursor.goto_parent():
            depth -= 1
            visited_children = True
            continue
        break

    return "\n".join(lines)
