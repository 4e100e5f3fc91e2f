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

"""End-to-end tests for the workspace engine."""

import pytest

from perl_assist.config import load_settings
from perl_assist.context.document import Position, TextDocument
from perl_assist.engine import PerlAssistEngine

from tests.conftest import FakeEmbeddingModel


class EchoBackend:
    async def generate(self, payload):
        return {"message": f"# {payload['message']}\n1;"}

    async def suggest_alternatives(self, payload):
        return {"alternatives": [payload["code"]]}

    async def check_errors(self, payload):
        return {"errors": []}


@pytest.fixture
def settings(perl_workspace, tmp_path):
    return load_settings(
        workspace_root=str(perl_workspace),
        persist_directory=str(tmp_path / "index"),
        use_tree_sitter=False,
        enable_watcher=False,
    )


class TestPerlAssistEngine:
    """Tests wiring indexing, search and context assembly together."""

    @pytest.mark.asyncio
    async def test_index_and_search(self, settings):
        async with PerlAssistEngine(settings, embedding_model=FakeEmbeddingModel()) as engine:
            report = await engine.index_all()
            matches = await engine.find_relevant_code("greet name hello", limit=3)

        assert report.indexed_files == 3
        assert report.records > 0
        assert 0 < len(matches) <= 3
        assert all(0 < m.score <= 1 for m in matches)
        assert [m.distance for m in matches] == sorted(m.distance for m in matches)

    @pytest.mark.asyncio
    async def test_start_without_watcher(self, settings):
        engine = PerlAssistEngine(settings, embedding_model=FakeEmbeddingModel())

        report = await engine.start()

        assert report.total_files == 3
        assert not engine.indexer.is_watching
        await engine.close()

    @pytest.mark.asyncio
    async def test_build_context_uses_index(self, settings, perl_workspace):
        """Test advanced context includes import definitions and related code."""
        async with PerlAssistEngine(settings, embedding_model=FakeEmbeddingModel()) as engine:
            await engine.index_all()
            document = TextDocument.from_file(perl_workspace / "script" / "run.pl")

            context = await engine.build_context(document, Position(4, 0))

        assert not context.is_degraded
        definitions = context.advanced.import_definitions["App::Util::add_numbers"]
        assert definitions[0].content.startswith("sub add_numbers")
        assert context.advanced.related_code_structures
        assert "run.pl" in context.advanced.project_structure

    @pytest.mark.asyncio
    async def test_completion_with_backend(self, settings, perl_workspace):
        document = TextDocument("# double it\n", path=str(perl_workspace / "script" / "new.pl"))
        async with PerlAssistEngine(
            settings, embedding_model=FakeEmbeddingModel(), backend=EchoBackend()
        ) as engine:
            result = await engine.completion.generate_for_comment(document, Position(0, 0))

        assert result.code == "# double it\n1;"

    def test_no_backend_means_no_completion(self, settings):
        engine = PerlAssistEngine(settings, embedding_model=FakeEmbeddingModel())
        assert engine.completion is None

    def test_tree_map_and_syntax_dump(self, settings):
        engine = PerlAssistEngine(settings, embedding_model=FakeEmbeddingModel())

        assert "Util.pm" in engine.generate_tree_map()
        assert engine.dump_syntax_tree(TextDocument("1;\n")) is None

    @pytest.mark.asyncio
    async def test_model_failure_leaves_engine_usable(self, settings, perl_workspace):
        """Test context assembly still works when the embedding model cannot load."""

        class BrokenModel(FakeEmbeddingModel):
            async def initialize(self):
                raise RuntimeError("model download failed")

        async with PerlAssistEngine(settings, embedding_model=BrokenModel()) as engine:
            document = TextDocument.from_file(perl_workspace / "script" / "run.pl")
            context = await engine.build_context(document, Position(4, 0), advanced=False)

        assert context.basic.imports
