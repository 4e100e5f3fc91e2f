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

"""Structural entities extracted from Perl source."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


class StructureKind(str, Enum):
    """Kinds of structural entity; values are stored in the index ``kind`` column."""

    FILE = "file"
    PACKAGE = "package"
    ROUTINE = "subroutine"


@dataclass(frozen=True)
class StructuralEntity:
    """A named, range-bounded unit of source.

    Entities are rebuilt wholesale every time a file is extracted; they are
    never mutated in place.

    Attributes:
        name: Fully qualified name (``Package::routine`` when inside a package)
        kind: File, package or routine
        content: Exact source text of the entity
        start_byte: UTF-8 byte offset where the entity starts
        end_byte: UTF-8 byte offset just past the entity
        line: 0-based line where the entity starts
    """

    name: str
    kind: StructureKind
    content: str
    start_byte: int
    end_byte: int
    line: int

    @property
    def range(self) -> Tuple[int, int]:
        return (self.start_byte, self.end_byte)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.kind.value,
            "content": self.content,
            "range": {"start": self.start_byte, "end": self.end_byte},
            "line": self.line,
        }


def qualify(package: str, name: str) -> str:
    """Qualify a routine name with its package; already-qualified names pass through."""
    if not package or "::" in name:
        return name
    return f"{package}::{name}"
