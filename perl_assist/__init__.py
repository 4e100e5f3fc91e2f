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

"""Perl codebase intelligence engine.

Answers two questions for an editor, fast and incrementally: what structural
context surrounds the cursor, and what existing code in the workspace is
relevant to the current request.

Package Structure:
    config.py        - EngineSettings and load_settings (YAML / env / overrides)
    engine.py        - PerlAssistEngine, one per workspace
    errors.py        - Exception types
    codebase/        - Structure extraction, embeddings, semantic index, indexer
    context/         - Cursor context assembly and import resolution
    completion/      - Request coordination and AI backend contract

Usage:
    from perl_assist import PerlAssistEngine, load_settings

    engine = PerlAssistEngine(load_settings(workspace_root="."))
    await engine.start()
"""

from perl_assist.config import EngineSettings, load_settings
from perl_assist.context.document import Position, TextDocument
from perl_assist.engine import PerlAssistEngine
from perl_assist.errors import (
    ContextAssemblyError,
    IndexStoreError,
    MalformedResponseError,
    PerlAssistError,
)

__version__ = "0.1.0"

__all__ = [
    "EngineSettings",
    "load_settings",
    "PerlAssistEngine",
    "Position",
    "TextDocument",
    "ContextAssemblyError",
    "IndexStoreError",
    "MalformedResponseError",
    "PerlAssistError",
]
