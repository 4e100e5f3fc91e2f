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

"""Completion manager for comment-driven code generation.

Provides a high-level API for editor integration following the Facade
pattern: it assembles context, deduplicates identical in-flight requests,
talks to the AI backend and turns every response into an explicit result.
"""

import hashlib
import logging
import re
import time
from typing import Callable, Optional

from pydantic import BaseModel

from perl_assist.completion.coordination import (
    CancellationCoordinator,
    CheckOutcome,
    CheckStatus,
    RequestCoordinator,
    derive_request_key,
)
from perl_assist.completion.protocol import (
    AIBackend,
    ErrorCheckResult,
    GenerationResult,
    GenerationStatus,
    parse_alternatives_response,
    parse_error_response,
    parse_generation_response,
)
from perl_assist.context.assembler import ContextAssembler
from perl_assist.context.document import Position, TextDocument
from perl_assist.errors import ContextAssemblyError, MalformedResponseError

logger = logging.getLogger(__name__)

COMMENT_LINE_PATTERN = re.compile(r"^\s*#\s?")


class CompletionMetrics(BaseModel):
    """Counters for completion requests."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    deduplicated_requests: int = 0
    discarded_checks: int = 0
    total_latency_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        completed = self.successful_requests + self.failed_requests
        return self.total_latency_ms / completed if completed else 0.0


def extract_comment_text(line_text: str) -> str:
    """Text of a ``#`` comment line without the marker, or '' for other lines."""
    if not line_text.strip().startswith("#"):
        return ""
    return COMMENT_LINE_PATTERN.sub("", line_text, count=1).strip()


def _document_fingerprint(document: TextDocument) -> str:
    return hashlib.sha256(document.text.encode("utf-8")).hexdigest()[:16]


class CompletionManager:
    """High-level manager for AI-backed code operations.

    Handles:
    - Context assembly (degrading to basic context)
    - Single-flight deduplication of identical requests
    - Suppression of superseded error checks
    - Metrics collection
    """

    def __init__(
        self,
        backend: AIBackend,
        assembler: ContextAssembler,
        requests: Optional[RequestCoordinator] = None,
        checks: Optional[CancellationCoordinator] = None,
    ):
        self.backend = backend
        self.assembler = assembler
        self.requests = requests or RequestCoordinator()
        self.checks = checks or CancellationCoordinator()
        self._metrics = CompletionMetrics()

    @property
    def metrics(self) -> CompletionMetrics:
        return self._metrics

    def reset_metrics(self) -> None:
        self._metrics = CompletionMetrics()

    async def _run_shared(self, key: str, factory) -> GenerationResult:
        self._metrics.total_requests += 1
        if self.requests.is_pending(key):
            self._metrics.deduplicated_requests += 1
            return await self.requests.submit(key, factory)

        start_time = time.time()
        result = await self.requests.submit(key, factory)
        self._metrics.total_latency_ms += (time.time() - start_time) * 1000
        if result.ok:
            self._metrics.successful_requests += 1
        else:
            self._metrics.failed_requests += 1
        return result

    async def generate_for_comment(
        self, document: TextDocument, position: Position
    ) -> Optional[GenerationResult]:
        """Generate code for the comment on the cursor line.

        Returns:
            None when the cursor line is not a non-empty ``#`` comment,
            otherwise a CODE or FAILED result
        """
        position = document.clamp(position)
        comment = extract_comment_text(document.line_at(position.line))
        if not comment:
            return None

        key = derive_request_key(
            "generate",
            document.path,
            _document_fingerprint(document),
            position.line,
            position.character,
            comment,
        )

        async def factory() -> GenerationResult:
            try:
                context = await self.assembler.build_context(document, position, query=comment)
            except ContextAssemblyError as e:
                return GenerationResult.failed(str(e))

            try:
                response = await self.backend.generate(
                    {"message": comment, "context": context.to_payload()}
                )
                code = parse_generation_response(response)
            except MalformedResponseError as e:
                logger.warning(f"Malformed generation response: {e}")
                return GenerationResult.failed(str(e))
            except Exception as e:
                logger.error(f"Code generation failed: {e}")
                return GenerationResult.failed(f"Backend error: {e}")

            return GenerationResult(status=GenerationStatus.CODE, code=code)

        return await self._run_shared(key, factory)

    async def suggest_alternatives(
        self, document: TextDocument, position: Position, code: Optional[str] = None
    ) -> GenerationResult:
        """Ask for alternative implementations of ``code`` (default: the enclosing block)."""
        key = derive_request_key(
            "alternatives",
            document.path,
            _document_fingerprint(document),
            position.line,
            position.character,
            code,
        )

        async def factory() -> GenerationResult:
            try:
                context = await self.assembler.build_context(document, position)
            except ContextAssemblyError as e:
                return GenerationResult.failed(str(e))

            target = code
            if target is None:
                block = context.basic.current_block
                target = block if block else context.basic.window.text_around_cursor

            try:
                response = await self.backend.suggest_alternatives(
                    {"code": target, "context": context.to_payload()}
                )
                alternatives = parse_alternatives_response(response)
            except MalformedResponseError as e:
                logger.warning(f"Malformed alternatives response: {e}")
                return GenerationResult.failed(str(e))
            except Exception as e:
                logger.error(f"Alternative suggestions failed: {e}")
                return GenerationResult.failed(f"Backend error: {e}")

            return GenerationResult(status=GenerationStatus.ALTERNATIVES, alternatives=alternatives)

        return await self._run_shared(key, factory)

    async def check_errors(
        self,
        code: str,
        publish: Optional[Callable[[ErrorCheckResult], None]] = None,
    ) -> CheckOutcome[ErrorCheckResult]:
        """Run an error check; a newer check started meanwhile suppresses this one.

        Args:
            code: Code to analyse
            publish: Receives the result only if this is still the latest check

        Returns:
            PUBLISHED with the result, DISCARDED when superseded, or FAILED
        """
        self._metrics.total_requests += 1
        start_time = time.time()

        async def factory(epoch) -> ErrorCheckResult:
            response = await self.backend.check_errors({"code": code})
            return ErrorCheckResult(code=code, errors=parse_error_response(response))

        outcome = await self.checks.run(factory, publish)
        self._metrics.total_latency_ms += (time.time() - start_time) * 1000

        if outcome.status == CheckStatus.PUBLISHED:
            self._metrics.successful_requests += 1
        elif outcome.status == CheckStatus.DISCARDED:
            self._metrics.discarded_checks += 1
        else:
            self._metrics.failed_requests += 1
        return outcome
