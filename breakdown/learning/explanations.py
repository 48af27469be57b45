"""Per-chunk explanation cache with in-flight de-duplication and prefetch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from breakdown.config import settings
from breakdown.errors import AuthError, GenerationError
from breakdown.learning.models import Chunk, ExplanationRequest

logger = logging.getLogger(__name__)

ExplanationGenerator = Callable[[ExplanationRequest], Awaitable[str]]

GENERATION_FAILED_MESSAGE = "Failed to generate explanation"
GENERATION_KEY_MESSAGE = "API key issue - check settings"


class ExplanationCache:
    """Memoizes generated explanations by chunk id for one transcript session.

    - At most one generation per chunk id is in flight; concurrent callers
      await the same task.
    - Successes are kept until :meth:`clear`. Failures are not kept, so the
      next call for that id generates again.
    - Entries are never evicted by size or age; :meth:`clear` on session
      change is the only invalidation.
    """

    def __init__(
        self,
        generate: ExplanationGenerator,
        *,
        prefetch_window: int | None = None,
        prefetch_stagger: float | None = None,
    ) -> None:
        self._generate = generate
        self.prefetch_window = settings.prefetch_window if prefetch_window is None else prefetch_window
        self.prefetch_stagger = (
            settings.prefetch_stagger if prefetch_stagger is None else prefetch_stagger
        )
        self._resolved: dict[str, str] = {}
        self._pending: dict[str, asyncio.Task[str]] = {}
        self._prefetch_tasks: set[asyncio.Task[None]] = set()
        self._epoch = 0

    def __len__(self) -> int:
        return len(self._resolved)

    def __contains__(self, chunk_id: object) -> bool:
        return chunk_id in self._resolved

    def is_pending(self, chunk_id: str) -> bool:
        return chunk_id in self._pending

    async def get_explanation(self, chunk_id: str, request: ExplanationRequest) -> str:
        """Return the explanation for *chunk_id*, generating it at most once.

        Raises:
            GenerationError: The generation this call waited on failed.
        """
        cached = self._resolved.get(chunk_id)
        if cached is not None:
            return cached

        task = self._pending.get(chunk_id)
        if task is None:
            # No await between the lookup and the insert
            task = asyncio.create_task(self._run(chunk_id, request, self._epoch))
            task.add_done_callback(_retrieve_exception)
            self._pending[chunk_id] = task

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise GenerationError(chunk_id, str(exc) or type(exc).__name__) from exc

    async def _run(self, chunk_id: str, request: ExplanationRequest, epoch: int) -> str:
        try:
            explanation = await self._generate(request)
        finally:
            if epoch == self._epoch and self._pending.get(chunk_id) is asyncio.current_task():
                del self._pending[chunk_id]

        if epoch == self._epoch:
            self._resolved[chunk_id] = explanation
        else:
            logger.debug("Discarding explanation for %s from a previous session", chunk_id)
        return explanation

    async def explain(self, chunk: Chunk, request: ExplanationRequest) -> str | None:
        """Explain *chunk* and record the outcome on it.

        Returns the explanation, or ``None`` after recording a displayable
        error on the chunk.
        """
        try:
            explanation = await self.get_explanation(chunk.id, request)
        except GenerationError as exc:
            logger.error("Failed to generate explanation for %s: %s", chunk.id, exc.__cause__)
            if isinstance(exc.__cause__, AuthError):
                chunk.record_error(GENERATION_KEY_MESSAGE)
            else:
                chunk.record_error(GENERATION_FAILED_MESSAGE)
            return None

        chunk.record_explanation(explanation)
        return explanation

    def schedule_prefetch(
        self, items: Sequence[tuple[Chunk, ExplanationRequest]]
    ) -> list[asyncio.Task[None]]:
        """Warm the cache for upcoming chunks, staggered by position.

        The k-th item (1-based) starts after ``k * prefetch_stagger`` seconds.
        Waiters from the previous schedule are cancelled; generations they
        already started keep running.
        """
        self.cancel_prefetch()

        scheduled: list[asyncio.Task[None]] = []
        for position, (chunk, request) in enumerate(items[: self.prefetch_window], start=1):
            if chunk.id in self._resolved or chunk.id in self._pending:
                continue
            task = asyncio.create_task(
                self._prefetch(chunk, request, delay=position * self.prefetch_stagger)
            )
            self._prefetch_tasks.add(task)
            task.add_done_callback(self._prefetch_tasks.discard)
            scheduled.append(task)
        return scheduled

    async def _prefetch(self, chunk: Chunk, request: ExplanationRequest, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            explanation = await self.get_explanation(chunk.id, request)
        except GenerationError as exc:
            logger.warning("Failed to pre-generate explanation for %s: %s", chunk.id, exc)
            return
        chunk.record_explanation(explanation)

    def cancel_prefetch(self) -> None:
        for task in list(self._prefetch_tasks):
            task.cancel()
        self._prefetch_tasks.clear()

    def clear(self) -> None:
        """Forget everything from the current session.

        Generations still in flight are left to finish as orphans; their
        results are discarded.
        """
        self.cancel_prefetch()
        self._resolved.clear()
        self._pending.clear()
        self._epoch += 1


def _retrieve_exception(task: asyncio.Task[str]) -> None:
    # Marks failures as retrieved when every waiter has gone away
    if not task.cancelled():
        task.exception()
