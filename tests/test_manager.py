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

"""Tests for the completion manager."""

import asyncio

import pytest

from perl_assist.completion.coordination import CheckStatus
from perl_assist.completion.manager import CompletionManager, extract_comment_text
from perl_assist.completion.protocol import GenerationStatus
from perl_assist.context.assembler import ContextAssembler
from perl_assist.context.document import Position, TextDocument

SOURCE = "use strict;\n\n# add two numbers\nsub add {\n    return $_[0] + $_[1];\n}\n"


class FakeBackend:
    """Scriptable backend recording every payload it receives."""

    def __init__(self, generate=None, alternatives=None, errors=None):
        self.generate_response = generate if generate is not None else {"message": "1;"}
        self.alternatives_response = alternatives if alternatives is not None else {"alternatives": []}
        self.errors_response = errors if errors is not None else {"errors": []}
        self.payloads = []
        self.release = None

    async def generate(self, payload):
        self.payloads.append(("generate", payload))
        if self.release is not None:
            await self.release.wait()
        if isinstance(self.generate_response, Exception):
            raise self.generate_response
        return self.generate_response

    async def suggest_alternatives(self, payload):
        self.payloads.append(("alternatives", payload))
        return self.alternatives_response

    async def check_errors(self, payload):
        self.payloads.append(("errors", payload))
        return self.errors_response


@pytest.fixture
def document():
    return TextDocument(SOURCE, path="lib/Add.pm")


def make_manager(backend):
    return CompletionManager(backend, ContextAssembler())


class TestExtractCommentText:
    def test_comment_line(self):
        assert extract_comment_text("    # sort the list  ") == "sort the list"

    def test_code_line(self):
        assert extract_comment_text("my $x = 1; # trailing") == ""

    def test_empty_comment(self):
        assert extract_comment_text("#") == ""


class TestGenerateForComment:
    """Tests for comment-driven generation."""

    @pytest.mark.asyncio
    async def test_non_comment_line_returns_none(self, document):
        backend = FakeBackend()
        manager = make_manager(backend)

        assert await manager.generate_for_comment(document, Position(0, 0)) is None
        assert backend.payloads == []

    @pytest.mark.asyncio
    async def test_generates_code(self, document):
        """Test the comment and assembled context are sent to the backend."""
        backend = FakeBackend(generate={"message": "sub add { $_[0] + $_[1] }"})
        manager = make_manager(backend)

        result = await manager.generate_for_comment(document, Position(2, 3))

        assert result.status == GenerationStatus.CODE
        assert result.code == "sub add { $_[0] + $_[1] }"
        kind, payload = backend.payloads[0]
        assert kind == "generate"
        assert payload["message"] == "add two numbers"
        assert payload["context"]["fileName"] == "Add.pm"
        assert manager.metrics.successful_requests == 1

    @pytest.mark.asyncio
    async def test_malformed_response_is_failed_result(self, document):
        manager = make_manager(FakeBackend(generate={"unexpected": True}))

        result = await manager.generate_for_comment(document, Position(2, 0))

        assert result.status == GenerationStatus.FAILED
        assert "message" in result.error_message
        assert manager.metrics.failed_requests == 1

    @pytest.mark.asyncio
    async def test_backend_exception_is_failed_result(self, document):
        manager = make_manager(FakeBackend(generate=ConnectionError("refused")))

        result = await manager.generate_for_comment(document, Position(2, 0))

        assert not result.ok
        assert "refused" in result.error_message

    @pytest.mark.asyncio
    async def test_identical_requests_share_one_backend_call(self, document):
        """Test concurrent identical requests reach the backend once."""
        backend = FakeBackend(generate={"message": "shared"})
        backend.release = asyncio.Event()
        manager = make_manager(backend)

        first = asyncio.ensure_future(manager.generate_for_comment(document, Position(2, 4)))
        await asyncio.sleep(0.05)
        second = asyncio.ensure_future(manager.generate_for_comment(document, Position(2, 4)))
        await asyncio.sleep(0)
        backend.release.set()

        results = await asyncio.gather(first, second)

        assert [r.code for r in results] == ["shared", "shared"]
        assert len(backend.payloads) == 1
        assert manager.metrics.deduplicated_requests == 1

    @pytest.mark.asyncio
    async def test_different_positions_are_separate_requests(self, document):
        backend = FakeBackend()
        manager = make_manager(backend)

        await manager.generate_for_comment(document, Position(2, 0))
        await manager.generate_for_comment(document, Position(2, 5))

        assert len(backend.payloads) == 2


class TestSuggestAlternatives:
    @pytest.mark.asyncio
    async def test_explicit_code(self, document):
        backend = FakeBackend(alternatives={"alternatives": ["a", "b"]})
        manager = make_manager(backend)

        result = await manager.suggest_alternatives(document, Position(4, 0), code="my $x;")

        assert result.status == GenerationStatus.ALTERNATIVES
        assert result.alternatives == ["a", "b"]
        assert backend.payloads[0][1]["code"] == "my $x;"

    @pytest.mark.asyncio
    async def test_defaults_to_text_around_cursor(self, document):
        """Test the cursor window is used when no parser supplies a block."""
        backend = FakeBackend(alternatives=["x"])
        manager = make_manager(backend)

        await manager.suggest_alternatives(document, Position(4, 0))

        assert backend.payloads[0][1]["code"] == SOURCE


class TestCheckErrors:
    """Tests for coordinated error checks."""

    @pytest.mark.asyncio
    async def test_published(self):
        backend = FakeBackend(errors={"errors": [{"line": 1, "message": "bad"}]})
        manager = make_manager(backend)
        published = []

        outcome = await manager.check_errors("my $x = ;", published.append)

        assert outcome.status == CheckStatus.PUBLISHED
        assert published[0].errors[0].line == 1
        assert published[0].has_errors

    @pytest.mark.asyncio
    async def test_superseded_check_is_discarded(self):
        """Test only the newest check publishes when checks overlap."""
        release = asyncio.Event()

        class SlowFirstBackend(FakeBackend):
            async def check_errors(self, payload):
                if payload["code"] == "old":
                    await release.wait()
                return {"errors": []}

        manager = make_manager(SlowFirstBackend())
        published = []

        old = asyncio.ensure_future(manager.check_errors("old", published.append))
        await asyncio.sleep(0)
        new_outcome = await manager.check_errors("new", published.append)
        release.set()
        old_outcome = await old

        assert new_outcome.status == CheckStatus.PUBLISHED
        assert old_outcome.status == CheckStatus.DISCARDED
        assert [r.code for r in published] == ["new"]
        assert manager.metrics.discarded_checks == 1

    @pytest.mark.asyncio
    async def test_malformed_check_fails(self):
        manager = make_manager(FakeBackend(errors={"errors": "nope"}))

        outcome = await manager.check_errors("1;")

        assert outcome.status == CheckStatus.FAILED


class TestMetrics:
    @pytest.mark.asyncio
    async def test_reset(self, document):
        manager = make_manager(FakeBackend())
        await manager.generate_for_comment(document, Position(2, 0))
        assert manager.metrics.total_requests == 1

        manager.reset_metrics()

        assert manager.metrics.total_requests == 0
        assert manager.metrics.avg_latency_ms == 0.0
