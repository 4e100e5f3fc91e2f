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

"""Request deduplication and stale-result suppression.

``RequestCoordinator`` gives single-flight semantics: concurrent callers with
the same key share one task, and the key is forgotten as soon as that task
settles. ``CancellationCoordinator`` keeps exactly one live epoch for a class
of background checks; a check whose epoch was superseded discards its result
instead of publishing it.

Both assume a single event loop, so the in-flight map needs no lock.
"""

import asyncio
import hashlib
import itertools
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def derive_request_key(*parts: Any) -> str:
    """Hash every input that affects a request's result into a key.

    Example:
        key = derive_request_key(document.path, position.line, position.character, comment)
    """
    digest = hashlib.sha256()
    for part in parts:
        digest.update(repr(part).encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


class RequestCoordinator:
    """Single-flight request deduplication keyed by caller-derived keys."""

    def __init__(self) -> None:
        self._pending: Dict[str, "asyncio.Task[Any]"] = {}

    def submit(self, key: str, factory: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        """Return the in-flight task for ``key``, starting one if none is pending.

        The returned task is shared: awaiting it from several callers yields
        the same result (or raises the same exception) for all of them.
        """
        task = self._pending.get(key)
        if task is not None and not task.done():
            logger.debug(f"Joining in-flight request {key[:12]}")
            return task

        task = asyncio.ensure_future(factory())
        self._pending[key] = task
        task.add_done_callback(lambda done, key=key: self._settle(key, done))
        return task

    def _settle(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)


class CancellationEpoch:
    """Token for one background check; stale once a newer check begins."""

    def __init__(self, coordinator: "CancellationCoordinator", generation: int):
        self._coordinator = coordinator
        self.generation = generation

    @property
    def is_current(self) -> bool:
        return self._coordinator.is_current(self)

    def __repr__(self) -> str:
        return f"CancellationEpoch(generation={self.generation}, current={self.is_current})"


class CheckStatus(str, Enum):
    PUBLISHED = "published"
    DISCARDED = "discarded"
    FAILED = "failed"


class CheckOutcome(Generic[T]):
    """Result of a coordinated check: published value, discarded, or failure."""

    def __init__(
        self,
        status: CheckStatus,
        value: Optional[T] = None,
        error: Optional[BaseException] = None,
    ):
        self.status = status
        self.value = value
        self.error = error

    @property
    def published(self) -> bool:
        return self.status == CheckStatus.PUBLISHED

    def __repr__(self) -> str:
        return f"CheckOutcome(status={self.status.value})"


class CancellationCoordinator:
    """Lets only the most recently started check publish its result."""

    def __init__(self) -> None:
        self._generations = itertools.count(1)
        self._current: Optional[CancellationEpoch] = None

    def begin(self) -> CancellationEpoch:
        """Start a new check; every earlier epoch becomes stale."""
        self._current = CancellationEpoch(self, next(self._generations))
        return self._current

    def is_current(self, epoch: CancellationEpoch) -> bool:
        return self._current is epoch

    def invalidate(self) -> None:
        """Make every outstanding epoch stale without starting a new check."""
        self._current = None

    async def run(
        self,
        factory: Callable[[CancellationEpoch], Awaitable[T]],
        publish: Optional[Callable[[T], None]] = None,
    ) -> CheckOutcome[T]:
        """Run a check under a fresh epoch.

        ``publish`` is called only if the epoch is still current when the
        check finishes. Exceptions from a stale check are discarded too.
        """
        epoch = self.begin()
        try:
            value = await factory(epoch)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not epoch.is_current:
                logger.debug(f"Discarding failure of stale check {epoch.generation}: {e}")
                return CheckOutcome(CheckStatus.DISCARDED)
            logger.warning(f"Check {epoch.generation} failed: {e}")
            return CheckOutcome(CheckStatus.FAILED, error=e)

        if not epoch.is_current:
            logger.debug(f"Discarding result of stale check {epoch.generation}")
            return CheckOutcome(CheckStatus.DISCARDED)

        if publish is not None:
            publish(value)
        return CheckOutcome(CheckStatus.PUBLISHED, value=value)
