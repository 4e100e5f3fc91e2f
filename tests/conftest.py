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

"""Shared fixtures: deterministic embeddings, fake syntax trees, sample workspace."""

import hashlib
import math
import re
from typing import Dict, List, Optional

import pytest

from perl_assist.codebase.embeddings.models import BaseEmbeddingModel, EmbeddingModelConfig

DIMENSION = 8


class FakeEmbeddingModel(BaseEmbeddingModel):
    """Bag-of-words hashing embedder: same text, same vector; shared words, closer vectors."""

    def __init__(self, dimension: int = DIMENSION, fail_on: Optional[str] = None):
        super().__init__(EmbeddingModelConfig(model_type="fake", dimension=dimension))
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls = 0

    async def initialize(self) -> None:
        self._initialized = True

    async def embed_text(self, text: str) -> List[float]:
        self.calls += 1
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("embedding backend unavailable")
        vector = [0.0] * self.dimension
        for token in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.sha256(token.encode()).hexdigest()[:8], 16) % self.dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]

    def get_dimension(self) -> int:
        return self.dimension


class FakeNode:
    """Minimal stand-in for a tree-sitter node."""

    def __init__(
        self,
        type: str,
        start_byte: int,
        end_byte: int,
        children: Optional[List["FakeNode"]] = None,
        fields: Optional[Dict[str, "FakeNode"]] = None,
    ):
        self.type = type
        self.start_byte = start_byte
        self.end_byte = end_byte
        self.children = children or []
        self.fields = fields or {}
        self.parent: Optional["FakeNode"] = None
        self.start_point = (0, 0)
        for child in self.children:
            child.parent = self

    def child_by_field_name(self, name: str) -> Optional["FakeNode"]:
        return self.fields.get(name)

    def set_points(self, source: bytes) -> "FakeNode":
        row = source[: self.start_byte].count(b"\n")
        column = self.start_byte - (source.rfind(b"\n", 0, self.start_byte) + 1)
        self.start_point = (row, column)
        for child in self.children:
            child.set_points(source)
        return self


class FakeTree:
    def __init__(self, root_node: FakeNode):
        self.root_node = root_node


class FakeParser:
    """Returns a prebuilt tree whatever it is asked to parse."""

    def __init__(self, root: FakeNode):
        self.root = root
        self.parsed: List[bytes] = []

    def parse(self, source: bytes) -> FakeTree:
        self.parsed.append(source)
        return FakeTree(self.root.set_points(source))


@pytest.fixture
def embedding_model():
    return FakeEmbeddingModel()


@pytest.fixture
def perl_workspace(tmp_path):
    """Workspace with three Perl files, one non-Perl file and a skipped build dir."""
    root = tmp_path / "workspace"
    (root / "lib" / "App").mkdir(parents=True)
    (root / "script").mkdir()
    (root / "t").mkdir()
    (root / "blib" / "lib").mkdir(parents=True)

    (root / "lib" / "App" / "Util.pm").write_text(
        "package App::Util;\n"
        "use strict;\n"
        "use Exporter qw(import);\n"
        "our @EXPORT_OK = qw(add_numbers greet);\n"
        "\n"
        "sub add_numbers {\n"
        "    my ($x, $y) = @_;\n"
        "    return $x + $y;\n"
        "}\n"
        "\n"
        "sub greet {\n"
        "    my ($name) = @_;\n"
        "    return \"Hello, $name\";\n"
        "}\n"
        "\n"
        "1;\n"
    )
    (root / "script" / "run.pl").write_text(
        "#!/usr/bin/perl\n"
        "use strict;\n"
        "use App::Util qw(add_numbers);\n"
        "\n"
        "my $total = add_numbers(1, 2);\n"
        "print \"$total\\n\";\n"
    )
    (root / "t" / "util.t").write_text(
        "use Test::More;\n"
        "use App::Util qw(greet);\n"
        "is(greet('perl'), 'Hello, perl', 'greets by name');\n"
        "done_testing();\n"
    )
    (root / "README.md").write_text("# App\n\nsub not_perl { }\n")
    (root / "blib" / "lib" / "Copy.pm").write_text("package Copy;\nsub copied { 1 }\n1;\n")
    return root
