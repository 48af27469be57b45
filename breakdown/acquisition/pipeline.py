"""Transcript acquisition: job service -> native-caption fallback -> tagged result."""

from __future__ import annotations

import asyncio
import logging

from breakdown.acquisition.fallback import WATCH_URL, TranscriptFallback
from breakdown.acquisition.job_client import JobClient
from breakdown.acquisition.models import (
    AcquisitionResult,
    RawTranscript,
    TranscriptSource,
    VideoMetadata,
)
from breakdown.config import settings
from breakdown.errors import AuthError, BreakdownError, CaptionsNotFoundError, JobTimeoutError
from breakdown.media import MediaElement

logger = logging.getLogger(__name__)

NO_CAPTIONS_MESSAGE = "No captions available"
TIMEOUT_MESSAGE = "Loading timed out - please try again"
API_KEY_MESSAGE = "API key issue - check settings"
GENERIC_MESSAGE = "Unable to load captions"


def classify_error(error: BaseException) -> str:
    """Map a primary-path failure onto a user-facing message bucket."""
    if isinstance(error, CaptionsNotFoundError):
        return NO_CAPTIONS_MESSAGE
    if isinstance(error, JobTimeoutError):
        return TIMEOUT_MESSAGE
    if isinstance(error, AuthError):
        return API_KEY_MESSAGE
    return GENERIC_MESSAGE


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, BreakdownError) and error.transient


class TranscriptAcquisition:
    """Fetch a transcript for a video, never raising.

    If *media* is given it is paused while fetching (if it was playing) and
    resumed on every exit path.
    """

    def __init__(
        self,
        job_client: JobClient | None = None,
        fallback: TranscriptFallback | None = None,
        media: MediaElement | None = None,
        *,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
    ) -> None:
        self.job_client = job_client or JobClient()
        self.fallback = fallback or TranscriptFallback()
        self.media = media
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_backoff = settings.retry_backoff if retry_backoff is None else retry_backoff

    async def acquire(self, video_id: str, credential: str | None) -> AcquisitionResult:
        """Acquire a transcript for *video_id*.

        Returns:
            An :class:`AcquisitionResult` with ``source`` ``primary``,
            ``fallback`` or ``error``. On ``error`` the transcript is ``None``
            and ``metadata.title`` holds a user-facing message.
        """
        media = self.media
        was_playing = media is not None and not media.paused
        if was_playing:
            media.pause()

        try:
            return await self._acquire(video_id, credential)
        finally:
            if was_playing:
                media.play()

    async def _acquire(self, video_id: str, credential: str | None) -> AcquisitionResult:
        try:
            transcript = await self._fetch_primary(WATCH_URL.format(video_id=video_id), credential)
        except Exception as exc:
            primary_error = exc
            logger.error("Primary transcript fetch failed for %s: %s", video_id, exc)
        else:
            logger.info("Fetched transcript for %s from the job service", video_id)
            return AcquisitionResult(
                metadata=VideoMetadata(),
                transcript=transcript,
                source=TranscriptSource.PRIMARY,
            )

        fallback_failure: Exception | None = None
        try:
            logger.info("Attempting native caption fallback for %s", video_id)
            transcript = await self.fallback.fetch_best_effort(video_id)
        except Exception as fallback_error:
            fallback_failure = fallback_error
            logger.error("Caption fallback also failed for %s: %s", video_id, fallback_error)
        else:
            return AcquisitionResult(
                metadata=VideoMetadata(
                    title="Transcript loaded (fallback)",
                    author="Using YouTube's native captions",
                ),
                transcript=transcript,
                source=TranscriptSource.FALLBACK,
            )

        message = classify_error(primary_error)
        # A generic primary failure is refined by a fallback that found no captions.
        if message == GENERIC_MESSAGE and isinstance(fallback_failure, CaptionsNotFoundError):
            message = NO_CAPTIONS_MESSAGE
        return AcquisitionResult(
            metadata=VideoMetadata(
                title=message,
                author="This video may not have captions or there was a loading error",
            ),
            transcript=None,
            source=TranscriptSource.ERROR,
        )

    async def _fetch_primary(self, source_url: str, credential: str | None) -> RawTranscript:
        """Run submit+poll, retrying the whole sequence on transient errors."""
        attempts = self.max_retries + 1
        attempt = 1
        while True:
            try:
                return await self.job_client.submit_and_await(source_url, credential)
            except Exception as exc:
                if attempt >= attempts or not _is_transient(exc):
                    raise
                logger.warning(
                    "Transcript job attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt,
                    attempts,
                    exc,
                    self.retry_backoff,
                )
            await asyncio.sleep(self.retry_backoff)
            attempt += 1
