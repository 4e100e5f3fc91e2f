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

"""Tests for tree-sitter parser management."""

import pytest

from perl_assist.codebase import tree_sitter_manager
from perl_assist.codebase.tree_sitter_manager import get_language, try_get_parser


class TestParserLoading:
    def test_unsupported_language(self):
        with pytest.raises(ValueError, match="Unsupported language"):
            get_language("cobol")

    def test_missing_grammar_gives_none(self, monkeypatch):
        monkeypatch.setitem(
            tree_sitter_manager.LANGUAGE_MODULES, "perl6", ("no_such_grammar_pkg", "language")
        )
        assert try_get_parser("perl6") is None


class TestFormatTree:
    def test_dump_lists_nested_nodes(self):
        pytest.importorskip("tree_sitter_perl")
        parser = try_get_parser("perl")

        dump = tree_sitter_manager.format_tree(
            tree_sitter_manager.parse_text(parser, "sub foo { 1 }\n")
        )

        lines = dump.splitlines()
        assert lines[0].startswith("source_file: [0,0]")
        assert any(line.startswith("  ") for line in lines[1:])
