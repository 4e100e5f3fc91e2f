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

"""Perl syntax-tree node types.

Node type names cover both widely used Perl grammars: the one shipped as
``tree-sitter-perl`` on PyPI and the older ganezdragon grammar, so extraction
and block detection work with either installed.
"""

from typing import FrozenSet, Tuple

PACKAGE_NODE_TYPES: FrozenSet[str] = frozenset({"package_statement"})

NAMED_ROUTINE_NODE_TYPES: FrozenSet[str] = frozenset(
    {
        "function_definition",
        "subroutine_declaration_statement",
        "method_declaration_statement",
    }
)

ANONYMOUS_ROUTINE_NODE_TYPES: FrozenSet[str] = frozenset(
    {
        "anonymous_function",
        "anonymous_subroutine_expression",
        "anonymous_method_expression",
    }
)

COMMENT_NODE_TYPES: FrozenSet[str] = frozenset({"comment", "pod"})

# Node types whose "name" is on the left of an assignment to an anonymous sub
ASSIGNMENT_NODE_TYPES: FrozenSet[str] = frozenset(
    {"assignment_expression", "binary_expression", "variable_declaration"}
)

# Priority order for the enclosing block of a cursor. The first entry with a
# containing ancestor wins, however far that ancestor is from the cursor.
ENCLOSING_BLOCK_PRIORITY: Tuple[str, ...] = (
    # routine definitions
    "function_definition",
    "subroutine_declaration_statement",
    "method_declaration_statement",
    # anonymous routines
    "anonymous_function",
    "anonymous_subroutine_expression",
    "anonymous_method_expression",
    # loops
    "while_statement",
    "until_statement",
    "for_statement_1",
    "for_statement_2",
    "loop_statement",
    "cstyle_for_statement",
    "for_statement",
    # conditionals
    "if_statement",
    "elsif_clause",
    "else_clause",
    "unless_statement",
    "conditional_statement",
    "elsif",
    "else",
    # generic blocks
    "block",
    "standalone_block",
    "block_statement",
    "special_block",
    "phaser_statement",
    "continue",
    # package declaration
    "package_statement",
    # expressions
    "binary_expression",
    "variable_declaration",
)

FILE_SCOPE = "file_scope"
