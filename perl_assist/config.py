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

"""Engine configuration.

Settings are resolved in three layers, later layers winning:

1. an optional YAML file (``perl_assist.yaml`` style mapping of field -> value)
2. ``PERL_ASSIST_<FIELD>`` environment variables
3. keyword overrides passed to :func:`load_settings`

Example:
    settings = load_settings("perl_assist.yaml", workspace_root="/src/app")
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from perl_assist.codebase.embeddings.models import EmbeddingModelConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "PERL_ASSIST_"

DEFAULT_PERSIST_DIRECTORY = str(Path.home() / ".perl_assist" / "lancedb")


class EngineSettings(BaseModel):
    """Configuration for one engine instance (one workspace)."""

    # Workspace
    workspace_root: str = Field(default=".", description="Root directory of the Perl workspace")
    file_extensions: List[str] = Field(
        default_factory=lambda: [".pl", ".pm", ".t"],
        description="Extensions of files that are discovered and indexed",
    )
    extra_skip_dirs: List[str] = Field(
        default_factory=list,
        description="Directory names skipped in addition to the built-in build/VCS/vendor dirs",
    )

    # Vector store
    persist_directory: str = Field(
        default=DEFAULT_PERSIST_DIRECTORY,
        description="Directory holding the LanceDB semantic index (safe to delete)",
    )
    table_name: str = Field(default="perl_code_embeddings", description="LanceDB table name")
    distance_metric: str = Field(default="l2", description="Distance metric (l2, cosine, dot)")

    # Embedding model
    embedding_model_type: str = Field(
        default="sentence-transformers",
        description="Embedding model type (sentence-transformers, ollama, openai)",
    )
    embedding_model_name: str = Field(
        default="all-MiniLM-L6-v2",
        description="Embedding model name (all-MiniLM-L6-v2 = 384-dim)",
    )
    embedding_dimension: int = Field(default=384, description="Embedding dimension")
    embedding_api_key: Optional[str] = Field(
        default=None, description="API key for cloud embedding providers (or Ollama base URL)"
    )
    embedding_batch_size: int = Field(default=32, description="Batch size for embeddings")
    embedding_max_input_chars: int = Field(
        default=8000, description="Characters of each entity sent to the embedding model"
    )

    # Extraction
    use_tree_sitter: bool = Field(
        default=True, description="Use the tree-sitter Perl grammar when it is installed"
    )
    whole_file_threshold: int = Field(
        default=10000,
        description="Files shorter than this (characters) also get a whole-file entity",
    )

    # Context assembly
    context_lines_before: int = Field(default=15, description="Lines of prefix context")
    context_lines_after: int = Field(default=15, description="Lines of suffix context")
    relevant_code_count: int = Field(
        default=5, description="Number of related code structures added to advanced context"
    )

    # File watching
    enable_watcher: bool = Field(default=True, description="Watch the workspace for changes")
    watcher_debounce_seconds: float = Field(
        default=0.5, description="Debounce window for filesystem notifications"
    )

    def embedding_model_config(self) -> EmbeddingModelConfig:
        """Build the embedding model configuration from these settings."""
        return EmbeddingModelConfig(
            model_type=self.embedding_model_type,
            model_name=self.embedding_model_name,
            dimension=self.embedding_dimension,
            api_key=self.embedding_api_key,
            batch_size=self.embedding_batch_size,
            max_input_chars=self.embedding_max_input_chars,
        )

    @property
    def root_path(self) -> Path:
        return Path(self.workspace_root).expanduser().resolve()


_LIST_FIELDS = {"file_extensions", "extra_skip_dirs"}


def _read_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name in EngineSettings.model_fields:
        raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        if name in _LIST_FIELDS:
            values[name] = [item.strip() for item in raw.split(",") if item.strip()]
        else:
            values[name] = raw
    return values


def load_settings(
    config_path: Optional[Union[str, Path]] = None, **overrides: Any
) -> EngineSettings:
    """Load engine settings from YAML, environment and keyword overrides.

    Args:
        config_path: Optional YAML file with a mapping of setting names to values
        **overrides: Explicit values that win over file and environment

    Returns:
        Validated EngineSettings

    Raises:
        pydantic.ValidationError: If the merged values are invalid
    """
    data: Dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path).expanduser()
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load settings from {path}: {e}")
            loaded = {}
        if isinstance(loaded, dict):
            data.update(loaded)
        else:
            logger.warning(f"Ignoring settings file {path}: expected a mapping")

    data.update(_read_env())
    data.update({k: v for k, v in overrides.items() if v is not None})
    return EngineSettings.model_validate(data)
