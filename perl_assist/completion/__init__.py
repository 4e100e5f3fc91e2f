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

"""AI request coordination and response handling."""

from perl_assist.completion.coordination import (
    CancellationCoordinator,
    CancellationEpoch,
    CheckOutcome,
    CheckStatus,
    RequestCoordinator,
    derive_request_key,
)
from perl_assist.completion.manager import (
    CompletionManager,
    CompletionMetrics,
    extract_comment_text,
)
from perl_assist.completion.protocol import (
    AIBackend,
    CodeError,
    ErrorCheckResult,
    GenerationResult,
    GenerationStatus,
    parse_alternatives_response,
    parse_error_response,
    parse_generation_response,
)

__all__ = [
    # Coordination
    "CancellationCoordinator",
    "CancellationEpoch",
    "CheckOutcome",
    "CheckStatus",
    "RequestCoordinator",
    "derive_request_key",
    # Manager
    "CompletionManager",
    "CompletionMetrics",
    "extract_comment_text",
    # Protocol
    "AIBackend",
    "CodeError",
    "ErrorCheckResult",
    "GenerationResult",
    "GenerationStatus",
    "parse_alternatives_response",
    "parse_error_response",
    "parse_generation_response",
]
