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

"""Embedding models for Perl structures.

A model turns the source text of a package, subroutine or file into a
fixed-size vector; ``SemanticIndexStore`` stores and searches those vectors.
Every model is async: local inference runs in a worker thread and remote
providers are awaited, so indexing never blocks the event loop.

Long entities (whole packages, short files) are cut to ``max_input_chars``
before embedding. The head of a Perl package or sub (name, signature, first
statements) carries most of its meaning, and local models truncate to a few
hundred tokens anyway.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Sent for entities whose text is only whitespace; some providers reject ""
EMPTY_INPUT = " "


class EmbeddingModelConfig(BaseModel):
    """Which embedding model to load and how to feed it."""

    model_type: str = Field(
        default="sentence-transformers",
        description="Model type (sentence-transformers, ollama, openai)",
    )
    model_name: str = Field(default="all-MiniLM-L6-v2", description="Model name for the provider")
    dimension: int = Field(
        default=384, description="Vector size, used when the provider cannot report it"
    )
    api_key: Optional[str] = Field(
        default=None, description="API key (OpenAI) or server base URL (Ollama)"
    )
    batch_size: int = Field(default=32, description="Texts per provider call")
    max_input_chars: int = Field(
        default=8000, description="Characters of an entity sent to the model"
    )


class BaseEmbeddingModel(ABC):
    """Converts Perl source text into vectors of one fixed dimension."""

    def __init__(self, config: EmbeddingModelConfig):
        self.config = config
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Load weights or open the client; called lazily on first use."""

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Embed one text."""

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts, returning vectors in input order."""
        return [await self.embed_text(text) for text in texts]

    @abstractmethod
    def get_dimension(self) -> int:
        """Size of the vectors this model produces."""

    def prepare(self, text: str) -> str:
        """Trim an entity's text to what is sent to the model."""
        text = text.rstrip()
        if not text.strip():
            return EMPTY_INPUT
        return text[: self.config.max_input_chars]

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def close(self) -> None:
        self._initialized = False


class SentenceTransformerModel(BaseEmbeddingModel):
    """Local sentence-transformers model (default ``all-MiniLM-L6-v2``).

    Vectors are mean-pooled and L2-normalized, 384 values for the default
    model. Weights are downloaded on first use and then cached by the library.
    """

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self._model = None

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise ImportError(
                "sentence-transformers not installed. "
                "Install with: pip install 'perl-assist[embeddings]'"
            )

        logger.info(f"Loading sentence-transformer model: {self.config.model_name}")
        self._model = await asyncio.to_thread(SentenceTransformer, self.config.model_name)
        self._initialized = True
        logger.info(f"Model loaded. Dimension: {self.get_dimension()}")

    async def embed_text(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        await self._ensure_initialized()

        vectors = await asyncio.to_thread(
            self._model.encode,
            [self.prepare(text) for text in texts],
            batch_size=self.config.batch_size,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return [vector.tolist() for vector in vectors]

    def get_dimension(self) -> int:
        if self._model is not None:
            return self._model.get_sentence_embedding_dimension()
        return self.config.dimension

    async def close(self) -> None:
        self._model = None
        await super().close()


class OpenAIEmbeddingModel(BaseEmbeddingModel):
    """OpenAI embeddings API. Sends workspace code to OpenAI."""

    DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.client = None

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise ImportError("openai not installed. Install with: pip install 'perl-assist[openai]'")

        if not self.config.api_key:
            raise ValueError("OpenAI embeddings need embedding_api_key to be set")

        self.client = AsyncOpenAI(api_key=self.config.api_key)
        self._initialized = True
        logger.info(f"OpenAI embedding model initialized: {self.config.model_name}")

    async def embed_text(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        await self._ensure_initialized()

        vectors: List[List[float]] = []
        size = max(1, self.config.batch_size)
        for i in range(0, len(texts), size):
            chunk = [self.prepare(text) for text in texts[i : i + size]]
            response = await self.client.embeddings.create(model=self.config.model_name, input=chunk)
            vectors.extend(item.embedding for item in sorted(response.data, key=lambda d: d.index))
        return vectors

    def get_dimension(self) -> int:
        return self.DIMENSIONS.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
        await super().close()


class OllamaEmbeddingModel(BaseEmbeddingModel):
    """Embeddings from a local Ollama server.

    ``api_key`` holds the server base URL (default ``http://localhost:11434``).
    Ollama embeds one prompt per request, so batches are sent concurrently.
    """

    DIMENSIONS = {
        "nomic-embed-text": 768,
        "mxbai-embed-large": 1024,
        "bge-m3": 1024,
        "all-minilm": 384,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.base_url = config.api_key or "http://localhost:11434"
        self.client = None

    async def initialize(self) -> None:
        """Open the HTTP client and check the model answers."""
        if self._initialized:
            return

        import httpx

        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=120.0)
        logger.info(f"Connecting to Ollama model {self.config.model_name} at {self.base_url}")

        try:
            await self._request("sub probe { 1 }")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise RuntimeError(
                    f"Ollama model '{self.config.model_name}' not found. "
                    f"Pull it with: ollama pull {self.config.model_name}"
                ) from e
            raise RuntimeError(f"Ollama API error: {e}") from e
        except httpx.ConnectError as e:
            raise RuntimeError(
                f"Cannot connect to Ollama at {self.base_url}. Make sure Ollama is running."
            ) from e

        self._initialized = True

    async def _request(self, prompt: str) -> List[float]:
        response = await self.client.post(
            "/api/embeddings", json={"model": self.config.model_name, "prompt": prompt}
        )
        response.raise_for_status()
        return response.json()["embedding"]

    async def embed_text(self, text: str) -> List[float]:
        await self._ensure_initialized()
        return await self._request(self.prepare(text))

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        await self._ensure_initialized()
        return list(await asyncio.gather(*(self.embed_text(text) for text in texts)))

    def get_dimension(self) -> int:
        # Tags such as "nomic-embed-text:v1.5" share the base model's size
        base_name = self.config.model_name.split(":", 1)[0]
        return self.DIMENSIONS.get(base_name, self.config.dimension)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        await super().close()


_embedding_models: Dict[str, Type[BaseEmbeddingModel]] = {
    "sentence-transformers": SentenceTransformerModel,
    "openai": OpenAIEmbeddingModel,
    "ollama": OllamaEmbeddingModel,
}


def register_embedding_model(model_type: str, model_class: Type[BaseEmbeddingModel]) -> None:
    """Make an additional model type available to ``create_embedding_model``."""
    _embedding_models[model_type] = model_class


def create_embedding_model(config: EmbeddingModelConfig) -> BaseEmbeddingModel:
    """Instantiate the model named by ``config.model_type``.

    Raises:
        ValueError: If the model type is not registered
    """
    model_class = _embedding_models.get(config.model_type)
    if not model_class:
        available = ", ".join(sorted(_embedding_models))
        raise ValueError(f"Unknown embedding model type: {config.model_type}. Available: {available}")
    return model_class(config)
