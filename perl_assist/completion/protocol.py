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

"""Contract with the AI backend and interpretation of its responses.

The backend is an opaque collaborator: it receives a JSON-like payload and
returns a decoded response. Only the response shapes are checked here:

- generation: ``{"message": "<code>"}`` (or a bare string)
- alternatives: ``{"alternatives": ["<code>", ...]}`` (or a bare list)
- error check: ``{"errors": [{"line": 3, "message": "..."},
  {"code_chunk": "...", "message": "..."}]}``

A response of any other shape raises ``MalformedResponseError`` inside this
module and reaches callers as an explicit FAILED result.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from perl_assist.errors import MalformedResponseError


@runtime_checkable
class AIBackend(Protocol):
    """Transport-agnostic AI backend."""

    async def generate(self, payload: Dict[str, Any]) -> Any:
        """Generate code for ``{"message": ..., "context": ...}``."""
        ...

    async def suggest_alternatives(self, payload: Dict[str, Any]) -> Any:
        """Suggest alternative code for ``{"code": ..., "context": ...}``."""
        ...

    async def check_errors(self, payload: Dict[str, Any]) -> Any:
        """Find problems in ``{"code": ...}``."""
        ...


class GenerationStatus(str, Enum):
    CODE = "code"
    ALTERNATIVES = "alternatives"
    ERRORS = "errors"
    FAILED = "failed"


class CodeError(BaseModel):
    """A problem reported by the backend, located by line or by code chunk."""

    message: str
    line: Optional[int] = None
    code_chunk: Optional[str] = None


class GenerationResult(BaseModel):
    status: GenerationStatus
    code: Optional[str] = None
    alternatives: List[str] = Field(default_factory=list)
    errors: List[CodeError] = Field(default_factory=list)
    error_message: Optional[str] = None

    @classmethod
    def failed(cls, message: str) -> "GenerationResult":
        return cls(status=GenerationStatus.FAILED, error_message=message)

    @property
    def ok(self) -> bool:
        return self.status != GenerationStatus.FAILED


class ErrorCheckResult(BaseModel):
    """Parsed error-check response for one piece of code."""

    code: str
    errors: List[CodeError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def _unwrap(response: Any, key: str) -> Any:
    if isinstance(response, dict):
        if key not in response:
            raise MalformedResponseError(f"Response has no '{key}' field", response)
        return response[key]
    return response


def parse_generation_response(response: Any) -> str:
    """Extract generated code.

    Raises:
        MalformedResponseError: If the response carries no code string
    """
    code = _unwrap(response, "message")
    if not isinstance(code, str):
        raise MalformedResponseError("Generated code is not a string", response)
    return code


def parse_alternatives_response(response: Any) -> List[str]:
    """Extract a list of alternative code strings.

    Raises:
        MalformedResponseError: If the response is not a list of strings
    """
    if isinstance(response, dict) and "alternatives" not in response and "message" in response:
        alternatives = response["message"]
    else:
        alternatives = _unwrap(response, "alternatives")

    if not isinstance(alternatives, list) or not all(isinstance(a, str) for a in alternatives):
        raise MalformedResponseError("Alternatives are not a list of strings", response)
    return alternatives


def parse_error_response(response: Any) -> List[CodeError]:
    """Extract reported errors.

    Raises:
        MalformedResponseError: If ``errors`` is missing or an entry has
            neither a line nor a code chunk
    """
    entries = _unwrap(response, "errors")
    if not isinstance(entries, list):
        raise MalformedResponseError("'errors' is not a list", response)

    errors = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("message"), str):
            raise MalformedResponseError(f"Invalid error entry: {entry!r}", response)

        line = entry.get("line")
        chunk = entry.get("code_chunk")
        if line is None and chunk is None:
            raise MalformedResponseError(f"Error entry has no location: {entry!r}", response)
        if line is not None and (isinstance(line, bool) or not isinstance(line, int)):
            raise MalformedResponseError(f"Error line is not an integer: {entry!r}", response)
        if chunk is not None and not isinstance(chunk, str):
            raise MalformedResponseError(f"Error code_chunk is not a string: {entry!r}", response)

        errors.append(CodeError(message=entry["message"], line=line, code_chunk=chunk))
    return errors
