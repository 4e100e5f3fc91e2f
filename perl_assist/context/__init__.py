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

"""Cursor context assembly and import resolution."""

from perl_assist.context.assembler import ContextAssembler, enclosing_node, find_node_at_offset
from perl_assist.context.document import Position, TextDocument
from perl_assist.context.imports import ImportResolver
from perl_assist.context.models import (
    AdvancedContext,
    AssembledContext,
    BasicContext,
    CodeWindow,
    Import,
    ImportKind,
    ResolvedDefinition,
)

__all__ = [
    "ContextAssembler",
    "enclosing_node",
    "find_node_at_offset",
    "Position",
    "TextDocument",
    "ImportResolver",
    "AdvancedContext",
    "AssembledContext",
    "BasicContext",
    "CodeWindow",
    "Import",
    "ImportKind",
    "ResolvedDefinition",
]
