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

"""Tests for embedding model configuration and providers."""

import httpx
import pytest

from perl_assist.codebase.embeddings.models import (
    EMPTY_INPUT,
    EmbeddingModelConfig,
    OllamaEmbeddingModel,
    OpenAIEmbeddingModel,
    SentenceTransformerModel,
    create_embedding_model,
    register_embedding_model,
)

from tests.conftest import FakeEmbeddingModel


class TestFactory:
    def test_default_is_sentence_transformers(self):
        """Test the default config builds a local model without loading it."""
        model = create_embedding_model(EmbeddingModelConfig())
        assert isinstance(model, SentenceTransformerModel)
        assert model.get_dimension() == 384

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown embedding model type"):
            create_embedding_model(EmbeddingModelConfig(model_type="word2vec"))

    def test_register_custom_model(self):
        class ConfiguredFake(FakeEmbeddingModel):
            def __init__(self, config):
                super().__init__(dimension=config.dimension)

        register_embedding_model("fake", ConfiguredFake)
        model = create_embedding_model(EmbeddingModelConfig(model_type="fake", dimension=4))
        assert isinstance(model, ConfiguredFake)
        assert model.get_dimension() == 4


class TestPrepare:
    def test_truncates_long_entities(self):
        model = FakeEmbeddingModel()
        model.config.max_input_chars = 10
        assert model.prepare("sub very_long_name { 1 }") == "sub very_l"

    def test_whitespace_only_text(self):
        assert FakeEmbeddingModel().prepare("  \n\t") == EMPTY_INPUT

    def test_trailing_whitespace_dropped(self):
        assert FakeEmbeddingModel().prepare("1;\n\n") == "1;"


class TestDimensions:
    def test_openai_known_and_unknown_models(self):
        known = OpenAIEmbeddingModel(EmbeddingModelConfig(model_type="openai", model_name="text-embedding-3-large"))
        unknown = OpenAIEmbeddingModel(
            EmbeddingModelConfig(model_type="openai", model_name="custom", dimension=256)
        )
        assert known.get_dimension() == 3072
        assert unknown.get_dimension() == 256

    def test_ollama_tags_share_base_dimension(self):
        model = OllamaEmbeddingModel(
            EmbeddingModelConfig(model_type="ollama", model_name="nomic-embed-text:v1.5")
        )
        assert model.get_dimension() == 768


class TestOllamaModel:
    """Tests for the Ollama HTTP model against a mock transport."""

    @pytest.mark.asyncio
    async def test_embed_batch_posts_each_prompt(self):
        prompts = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = request.content.decode()
            prompts.append(body)
            return httpx.Response(200, json={"embedding": [float(len(prompts)), 0.0]})

        model = OllamaEmbeddingModel(EmbeddingModelConfig(model_type="ollama", model_name="all-minilm"))
        model.client = httpx.AsyncClient(
            base_url="http://ollama.test", transport=httpx.MockTransport(handler)
        )
        model._initialized = True

        vectors = await model.embed_batch(["sub a { 1 }", "sub b { 2 }"])

        assert len(vectors) == 2
        assert all(len(v) == 2 for v in vectors)
        assert any("sub a" in p for p in prompts) and any("sub b" in p for p in prompts)
        await model.close()
        assert model.client is None

    @pytest.mark.asyncio
    async def test_missing_model_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "model not found"})

        model = OllamaEmbeddingModel(EmbeddingModelConfig(model_type="ollama", model_name="absent"))
        model.client = httpx.AsyncClient(
            base_url="http://ollama.test", transport=httpx.MockTransport(handler)
        )
        model._initialized = True

        with pytest.raises(httpx.HTTPStatusError):
            await model.embed_text("1;")
        await model.close()
