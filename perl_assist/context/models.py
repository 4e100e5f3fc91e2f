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

"""Data types produced by context assembly and import resolution."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportKind(str, Enum):
    MODULE = "module"
    FILE = "file"


class Import(BaseModel):
    """An import directive: ``use``/``require`` of a module, or ``require``/``do`` of a file."""

    module_or_file: str
    symbols: List[str] = Field(default_factory=list)
    kind: ImportKind = ImportKind.MODULE


class ResolvedDefinition(BaseModel):
    """Defining text found for an import or an imported symbol."""

    filepath: str
    content: str
    line: int = Field(default=0, description="0-based line where the definition starts")
    kind: str = Field(default="file", description="file, package or subroutine")


class CodeWindow(BaseModel):
    """Bounded text around the cursor."""

    prefix_text: str = ""
    suffix_text: str = ""

    @property
    def text_around_cursor(self) -> str:
        return self.prefix_text + self.suffix_text


class BasicContext(BaseModel):
    """Context computed from the current document alone."""

    window: CodeWindow
    current_block: Optional[str] = Field(
        default=None,
        description="Enclosing block text, 'file_scope', or None when no parser is available",
    )
    imports: List[Import] = Field(default_factory=list)
    used_modules: List[str] = Field(default_factory=list)
    variable_definitions: List[str] = Field(default_factory=list)
    file_name: str = ""


class AdvancedContext(BaseModel):
    """Workspace-level context.

    Built all-or-nothing: if any part fails, the request falls back to the
    basic context alone.
    """

    project_structure: Optional[str] = None
    import_definitions: Optional[Dict[str, List[ResolvedDefinition]]] = None
    related_code_structures: Optional[List[Dict[str, Any]]] = None


class AssembledContext(BaseModel):
    """Request payload for the AI backend.

    ``advanced`` is None when only basic context could be assembled.
    """

    basic: BasicContext
    advanced: Optional[AdvancedContext] = None

    @property
    def is_degraded(self) -> bool:
        return self.advanced is None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the backend's camelCase payload; missing optional parts are omitted."""
        payload = ContextPayload(
            code_prefix=self.basic.window.prefix_text,
            code_suffix=self.basic.window.suffix_text,
            current_block=self.basic.current_block,
            imports={imp.module_or_file: list(imp.symbols) for imp in self.basic.imports},
            used_modules=self.basic.used_modules,
            variable_definitions=self.basic.variable_definitions,
            file_name=self.basic.file_name,
        )
        if self.advanced is not None:
            payload.project_structure = self.advanced.project_structure
            if self.advanced.import_definitions is not None:
                payload.import_definitions = {
                    name: [d.model_dump() for d in defs]
                    for name, defs in self.advanced.import_definitions.items()
                }
            payload.related_code_structures = self.advanced.related_code_structures
        return payload.model_dump(by_alias=True, exclude_none=True)


class ContextPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    code_prefix: str = Field(alias="codePrefix")
    code_suffix: str = Field(alias="codeSuffix")
    current_block: Optional[str] = Field(default=None, alias="currentBlock")
    imports: Dict[str, List[str]] = Field(default_factory=dict)
    used_modules: List[str] = Field(default_factory=list, alias="usedModules")
    variable_definitions: List[str] = Field(default_factory=list, alias="variableDefinitions")
    file_name: str = Field(default="", alias="fileName")
    project_structure: Optional[str] = Field(default=None, alias="projectStructure")
    import_definitions: Optional[Dict[str, List[Dict[str, Any]]]] = Field(
        default=None, alias="importDefinitions"
    )
    related_code_structures: Optional[List[Dict[str, Any]]] = Field(
        default=None, alias="relatedCodeStructures"
    )
