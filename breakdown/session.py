"""Playback session: ties acquisition, chunking, playback sync and explanations
to one host media element, and owns every background task they need.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from breakdown.acquisition.models import AcquisitionResult
from breakdown.acquisition.pipeline import TranscriptAcquisition
from breakdown.config import settings
from breakdown.credentials import (
    ANTHROPIC_KEY,
    GENERATION_KEY,
    JOB_SERVICE_KEY,
    CredentialSource,
    SettingsCredentialSource,
)
from breakdown.learning.chunking import chunk_transcript
from breakdown.learning.explanations import ExplanationCache
from breakdown.learning.generation import generate_explanation
from breakdown.learning.models import Chunk, ExplanationRequest
from breakdown.learning.playback import PlaybackSync
from breakdown.media import MediaElement, current_time_ms, seek_ms

logger = logging.getLogger(__name__)

KeyedGenerator = Callable[[ExplanationRequest, str | None], Awaitable[str]]


class PlaybackSession:
    """One overlay attached to one media element.

    A session lives for one video id. Loading a different video cancels the
    previous session's sampler and prefetches and clears the explanation
    cache before anything new is fetched.
    """

    def __init__(
        self,
        media: MediaElement,
        credentials: CredentialSource | None = None,
        *,
        acquisition: TranscriptAcquisition | None = None,
        generate: KeyedGenerator | None = None,
        cache: ExplanationCache | None = None,
        chunk_duration_ms: int | None = None,
        sample_interval: float | None = None,
    ) -> None:
        self.media = media
        self.credentials = credentials or SettingsCredentialSource()
        # Pause/resume around loading is owned here, not by the acquisition.
        self.acquisition = acquisition or TranscriptAcquisition()
        self._generate_with_key = generate or generate_explanation
        self.cache = cache if cache is not None else ExplanationCache(self._generate)
        self.chunk_duration_ms = chunk_duration_ms or settings.chunk_duration_ms
        self.sample_interval = (
            settings.playback_poll_interval if sample_interval is None else sample_interval
        )
        self.sync = PlaybackSync()

        self.video_id: str | None = None
        self.title: str | None = None
        self.result: AcquisitionResult | None = None

        self._sampler: asyncio.Task[None] | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._foreground: set[asyncio.Task[str | None]] = set()
        self._loading: asyncio.Task[AcquisitionResult] | None = None
        self._paused_for_load = False

    @property
    def chunks(self) -> list[Chunk]:
        return self.sync.chunks

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def load_video(self, video_id: str, title: str | None = None) -> AcquisitionResult:
        """Acquire and chunk *video_id*, replacing any previous session.

        A repeat call for the video already loading awaits the same load
        instead of starting another. The host media stays paused from the
        first load until the load that wins has finished.
        """
        if video_id == self.video_id:
            if self.result is not None:
                return self.result
            if self._loading is not None and not self._loading.done():
                return await asyncio.shield(self._loading)

        self._end_session()
        self.video_id = video_id
        self.title = title
        self._pause_media()
        self._loading = asyncio.create_task(self._load(video_id))
        return await asyncio.shield(self._loading)

    async def _load(self, video_id: str) -> AcquisitionResult:
        try:
            credential = await self.credentials.get(JOB_SERVICE_KEY)
            result = await self.acquisition.acquire(video_id, credential)
            if asyncio.current_task() is not self._loading:
                logger.info(
                    "Video %s was superseded while loading; dropping its transcript", video_id
                )
                return result

            self.result = result
            chunks = chunk_transcript(result.transcript, self.chunk_duration_ms)
            self.sync.set_chunks(chunks)
            logger.info(
                "Loaded %s from %s: %d chunks", video_id, result.source.value, len(chunks)
            )

            if chunks:
                if self._sampler is not None:
                    self._sampler.cancel()
                self._sampler = asyncio.create_task(self._sample_playback())
                self.on_time_update()
            return result
        finally:
            if asyncio.current_task() is self._loading:
                self._resume_media()

    def watch(
        self, get_video_id: Callable[[], str | None], interval: float | None = None
    ) -> asyncio.Task[None]:
        """Poll the host for the current video id and load it when it changes."""
        if self._watcher is not None:
            self._watcher.cancel()
        self._watcher = asyncio.create_task(
            self._watch(get_video_id, settings.video_poll_interval if interval is None else interval)
        )
        return self._watcher

    async def _watch(self, get_video_id: Callable[[], str | None], interval: float) -> None:
        while True:
            video_id = get_video_id()
            if video_id and video_id != self.video_id:
                try:
                    await self.load_video(video_id)
                except Exception:
                    logger.exception("Loading video %s failed", video_id)
            await asyncio.sleep(interval)

    def close(self) -> None:
        """Cancel every task this session owns."""
        if self._watcher is not None:
            self._watcher.cancel()
            self._watcher = None
        if self._loading is not None:
            self._loading.cancel()
            self._loading = None
        self._end_session()
        self._resume_media()
        self.video_id = None

    def _pause_media(self) -> None:
        if not self._paused_for_load and not self.media.paused:
            self.media.pause()
            self._paused_for_load = True

    def _resume_media(self) -> None:
        if self._paused_for_load:
            self._paused_for_load = False
            self.media.play()

    def _end_session(self) -> None:
        if self._sampler is not None:
            self._sampler.cancel()
            self._sampler = None
        for task in list(self._foreground):
            task.cancel()
        self._foreground.clear()
        self.cache.clear()
        self.sync.set_chunks([])
        self.result = None

    # ------------------------------------------------------------------
    # Playback tracking
    # ------------------------------------------------------------------

    async def _sample_playback(self) -> None:
        while True:
            await asyncio.sleep(self.sample_interval)
            self.on_time_update()

    def on_time_update(self) -> Chunk | None:
        """Re-evaluate the active chunk from the media's current time."""
        previous = self.sync.viewing
        active = self.sync.update(current_time_ms(self.media))
        self._viewing_changed(previous)
        return active

    on_seek = on_time_update

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate(self, chunk_id: str) -> Chunk:
        previous = self.sync.viewing
        chunk = self.sync.navigate(chunk_id)
        self._viewing_changed(previous)
        return chunk

    def next_chunk(self) -> Chunk | None:
        previous = self.sync.viewing
        chunk = self.sync.next()
        self._viewing_changed(previous)
        return chunk

    def previous_chunk(self) -> Chunk | None:
        previous = self.sync.viewing
        chunk = self.sync.previous()
        self._viewing_changed(previous)
        return chunk

    def jump_to_active(self) -> Chunk | None:
        previous = self.sync.viewing
        chunk = self.sync.jump_to_active()
        self._viewing_changed(previous)
        return chunk

    def seek_to_chunk(self, chunk_id: str) -> Chunk:
        """Move the media to the start of *chunk_id* and follow it."""
        chunk = self.sync.get(chunk_id)
        previous = self.sync.viewing
        seek_ms(self.media, chunk.start_ms)
        self.sync.jump_to_active()
        self.sync.update(current_time_ms(self.media))
        self._viewing_changed(previous)
        return chunk

    # ------------------------------------------------------------------
    # Explanations
    # ------------------------------------------------------------------

    async def explain(self, chunk_id: str) -> str | None:
        """Explain *chunk_id* now; also the retry path after a failure."""
        chunk = self.sync.get(chunk_id)
        return await self.cache.explain(chunk, self.request_for(chunk))

    def request_for(self, chunk: Chunk) -> ExplanationRequest:
        previous, _ = self.sync.neighbors(chunk)
        return ExplanationRequest(
            text=chunk.text,
            title=self.title,
            previous_context=previous.text if previous else None,
        )

    async def _generate(self, request: ExplanationRequest) -> str:
        key_name = ANTHROPIC_KEY if settings.llm_provider == "anthropic" else GENERATION_KEY
        api_key = await self.credentials.get(key_name)
        return await self._generate_with_key(request, api_key)

    def _viewing_changed(self, previous: Chunk | None) -> None:
        chunk = self.sync.viewing
        if chunk is None or chunk is previous:
            return

        logger.debug("Viewing chunk changed to %s", chunk.id)
        if chunk.explanation is None and not self.cache.is_pending(chunk.id):
            task = asyncio.create_task(self.cache.explain(chunk, self.request_for(chunk)))
            self._foreground.add(task)
            task.add_done_callback(self._foreground.discard)

        upcoming = self.sync.lookahead(chunk, self.cache.prefetch_window)
        self.cache.schedule_prefetch([(c, self.request_for(c)) for c in upcoming])
