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

"""Codebase indexing: parsing, structure extraction, embeddings and watching."""

from perl_assist.codebase.extractors import (
    BaseStructureExtractor,
    RegexStructureExtractor,
    TreeSitterStructureExtractor,
    create_structure_extractor,
)
from perl_assist.codebase.indexer import (
    CancelToken,
    CodebaseFileHandler,
    CodebaseIndexer,
    IndexReport,
    RelevantCode,
)
from perl_assist.codebase.repo_map import RepositoryMapProvider
from perl_assist.codebase.structure import StructuralEntity, StructureKind
from perl_assist.codebase.structure_index import CodeStructureIndex

__all__ = [
    "BaseStructureExtractor",
    "RegexStructureExtractor",
    "TreeSitterStructureExtractor",
    "create_structure_extractor",
    "CancelToken",
    "CodebaseFileHandler",
    "CodebaseIndexer",
    "IndexReport",
    "RelevantCode",
    "RepositoryMapProvider",
    "StructuralEntity",
    "StructureKind",
    "CodeStructureIndex",
]
