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

"""Embedding models and the semantic index store."""

from perl_assist.codebase.embeddings.models import (
    BaseEmbeddingModel,
    EmbeddingModelConfig,
    OllamaEmbeddingModel,
    OpenAIEmbeddingModel,
    SentenceTransformerModel,
    create_embedding_model,
    register_embedding_model,
)
from perl_assist.codebase.embeddings.store import (
    PLACEHOLDER_FILTER,
    IndexRecord,
    SearchHit,
    SemanticIndexStore,
)

__all__ = [
    "BaseEmbeddingModel",
    "EmbeddingModelConfig",
    "OllamaEmbeddingModel",
    "OpenAIEmbeddingModel",
    "SentenceTransformerModel",
    "create_embedding_model",
    "register_embedding_model",
    # Store
    "PLACEHOLDER_FILTER",
    "IndexRecord",
    "SearchHit",
    "SemanticIndexStore",
]
