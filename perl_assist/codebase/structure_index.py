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

"""In-memory map of source path -> structural entities."""

import logging
from typing import Dict, List

from perl_assist.codebase.extractors import BaseStructureExtractor
from perl_assist.codebase.structure import StructuralEntity

logger = logging.getLogger(__name__)


class CodeStructureIndex:
    """Latest extracted structures for every indexed path.

    Entries are replaced wholesale on each update; the lists handed out are
    copies, so callers cannot mutate the map.
    """

    def __init__(self, extractor: BaseStructureExtractor):
        self.extractor = extractor
        self._structures: Dict[str, List[StructuralEntity]] = {}

    def extract(self, path: str, content: str) -> List[StructuralEntity]:
        """Extract a file's structures without touching the map."""
        return self.extractor.extract(path, content)

    def replace(self, path: str, entities: List[StructuralEntity]) -> None:
        """Make ``entities`` the current structures of ``path``."""
        self._structures[path] = list(entities)
        logger.debug(f"Updated structures for {path}: {len(entities)} entities")

    def update(self, path: str, content: str) -> List[StructuralEntity]:
        """Re-extract a file and replace its entry."""
        entities = self.extract(path, content)
        self.replace(path, entities)
        return list(entities)

    def delete(self, path: str) -> bool:
        return self._structures.pop(path, None) is not None

    def get_structures(self, path: str) -> List[StructuralEntity]:
        return list(self._structures.get(path, []))

    def get_all_structures(self) -> Dict[str, List[StructuralEntity]]:
        return {path: list(entities) for path, entities in self._structures.items()}

    def __contains__(self, path: str) -> bool:
        return path in self._structures

    def __len__(self) -> int:
        return len(self._structures)
