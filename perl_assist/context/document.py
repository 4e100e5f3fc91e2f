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

"""Immutable snapshot of an editor document."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union


@dataclass(frozen=True, order=True)
class Position:
    """Cursor position: 0-based line and character (code point) column."""

    line: int
    character: int


@dataclass(frozen=True)
class TextDocument:
    """Full text of a document plus line/offset conversions.

    Character offsets count code points; byte offsets count bytes of the UTF-8
    encoding, which is what syntax-tree node ranges use.
    """

    text: str
    path: str = ""
    _line_starts: List[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        starts = [0]
        for index, char in enumerate(self.text):
            if char == "\n":
                starts.append(index + 1)
        object.__setattr__(self, "_line_starts", starts)

    @classmethod
    def from_file(cls, path: Union[str, Path], encoding: str = "utf-8") -> "TextDocument":
        path = Path(path)
        return cls(text=path.read_text(encoding=encoding, errors="replace"), path=str(path))

    @property
    def file_name(self) -> str:
        return Path(self.path).name if self.path else ""

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def line_at(self, line: int) -> str:
        """Text of a line without its line break."""
        start = self._line_starts[line]
        end = self._line_starts[line + 1] - 1 if line + 1 < self.line_count else len(self.text)
        return self.text[start:end].rstrip("\r")

    def clamp(self, position: Position) -> Position:
        line = min(max(position.line, 0), self.line_count - 1)
        character = min(max(position.character, 0), len(self.line_at(line)))
        return Position(line, character)

    def offset_at(self, position: Position) -> int:
        position = self.clamp(position)
        return self._line_starts[position.line] + position.character

    def position_at(self, offset: int) -> Position:
        offset = min(max(offset, 0), len(self.text))
        line = 0
        low, high = 0, self.line_count - 1
        while low <= high:
            mid = (low + high) // 2
            if self._line_starts[mid] <= offset:
                line = mid
                low = mid + 1
            else:
                high = mid - 1
        return Position(line, offset - self._line_starts[line])

    def byte_offset_at(self, position: Position) -> int:
        return len(self.text[: self.offset_at(position)].encode("utf-8"))

    def get_text(self, start: Optional[Position] = None, end: Optional[Position] = None) -> str:
        start_offset = self.offset_at(start) if start is not None else 0
        end_offset = self.offset_at(end) if end is not None else len(self.text)
        return self.text[start_offset:end_offset]

    def line_end(self, line: int) -> Position:
        return Position(line, len(self.line_at(line)))
