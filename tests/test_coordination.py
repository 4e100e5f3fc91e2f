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

"""Tests for request deduplication and stale-check suppression."""

import asyncio

import pytest

from perl_assist.completion.coordination import (
    CancellationCoordinator,
    CheckStatus,
    RequestCoordinator,
    derive_request_key,
)


class TestDeriveRequestKey:
    def test_same_inputs_same_key(self):
        assert derive_request_key("a.pl", 3, 4) == derive_request_key("a.pl", 3, 4)

    def test_any_input_changes_key(self):
        base = derive_request_key("a.pl", 3, 4)
        assert derive_request_key("a.pl", 3, 5) != base
        assert derive_request_key("b.pl", 3, 4) != base

    def test_part_boundaries_matter(self):
        """Test ('ab', 'c') and ('a', 'bc') do not collide."""
        assert derive_request_key("ab", "c") != derive_request_key("a", "bc")


class TestRequestCoordinator:
    """Tests for single-flight behaviour."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_task(self):
        """Test a second submit while in flight joins the first task."""
        coordinator = RequestCoordinator()
        release = asyncio.Event()
        calls = []

        async def work():
            calls.append(1)
            await release.wait()
            return "done"

        first = coordinator.submit("k", work)
        second = coordinator.submit("k", work)
        assert first is second
        assert coordinator.is_pending("k")

        release.set()
        results = await asyncio.gather(first, second)

        assert results == ["done", "done"]
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_key_forgotten_after_settlement(self):
        """Test a submit after the task settles starts fresh work."""
        coordinator = RequestCoordinator()
        calls = []

        async def work():
            calls.append(1)
            return len(calls)

        assert await coordinator.submit("k", work) == 1
        await asyncio.sleep(0)
        assert not coordinator.is_pending("k")

        assert await coordinator.submit("k", work) == 2
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_failure_shared_and_cleared(self):
        """Test joined callers see the same exception and the key is cleared."""
        coordinator = RequestCoordinator()
        release = asyncio.Event()

        async def work():
            await release.wait()
            raise ValueError("backend down")

        first = coordinator.submit("k", work)
        second = coordinator.submit("k", work)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        await asyncio.sleep(0)

        assert all(isinstance(r, ValueError) for r in results)
        assert coordinator.pending_count == 0

    @pytest.mark.asyncio
    async def test_distinct_keys_do_not_share(self):
        coordinator = RequestCoordinator()

        async def work():
            return object()

        a = coordinator.submit("a", work)
        b = coordinator.submit("b", work)
        assert a is not b
        assert await a is not await b


class TestCancellationCoordinator:
    """Tests for epoch-based stale result suppression."""

    def test_begin_supersedes_previous_epoch(self):
        coordinator = CancellationCoordinator()
        first = coordinator.begin()
        assert first.is_current

        second = coordinator.begin()
        assert not first.is_current
        assert second.is_current
        assert second.generation > first.generation

    def test_invalidate(self):
        coordinator = CancellationCoordinator()
        epoch = coordinator.begin()
        coordinator.invalidate()
        assert not epoch.is_current

    @pytest.mark.asyncio
    async def test_only_latest_check_publishes(self):
        """Test a slow stale check is discarded even if it finishes last."""
        coordinator = CancellationCoordinator()
        published = []
        slow_release = asyncio.Event()

        async def slow_check(epoch):
            await slow_release.wait()
            return "stale"

        async def fast_check(epoch):
            return "fresh"

        slow = asyncio.ensure_future(coordinator.run(slow_check, published.append))
        await asyncio.sleep(0)
        fresh_outcome = await coordinator.run(fast_check, published.append)
        slow_release.set()
        stale_outcome = await slow

        assert fresh_outcome.status == CheckStatus.PUBLISHED
        assert fresh_outcome.value == "fresh"
        assert stale_outcome.status == CheckStatus.DISCARDED
        assert published == ["fresh"]

    @pytest.mark.asyncio
    async def test_stale_failure_discarded(self):
        """Test an exception from a superseded check is not reported."""
        coordinator = CancellationCoordinator()
        release = asyncio.Event()

        async def failing(epoch):
            await release.wait()
            raise RuntimeError("late failure")

        pending = asyncio.ensure_future(coordinator.run(failing))
        await asyncio.sleep(0)
        coordinator.begin()
        release.set()

        outcome = await pending
        assert outcome.status == CheckStatus.DISCARDED
        assert outcome.error is None

    @pytest.mark.asyncio
    async def test_current_failure_reported(self):
        coordinator = CancellationCoordinator()

        async def failing(epoch):
            raise RuntimeError("boom")

        outcome = await coordinator.run(failing)

        assert outcome.status == CheckStatus.FAILED
        assert isinstance(outcome.error, RuntimeError)
        assert not outcome.published
