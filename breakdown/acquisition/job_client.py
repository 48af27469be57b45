"""Client for the remote subtitle-extraction job service (Sieve)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from breakdown.acquisition.models import JobStatus, RawTranscript, TranscriptionJob
from breakdown.acquisition.parsers import normalize_job_outputs, parse_json3, select_subtitle_url
from breakdown.config import settings
from breakdown.errors import (
    AuthError,
    JobCancelledError,
    JobFailedError,
    JobTimeoutError,
    PollError,
    SubmissionError,
    SubtitleDownloadError,
    TranscriptFormatError,
)

logger = logging.getLogger(__name__)

_AUTH_STATUS_CODES = {401, 403}


class JobClient:
    """Submits a subtitle job and polls it to a terminal state.

    One call to :meth:`submit_and_await` owns one :class:`TranscriptionJob`;
    nothing is kept between calls. Retrying a failed call is the caller's
    decision.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        push_url: str | None = None,
        jobs_url: str | None = None,
        function: str | None = None,
        subtitle_languages: list[str] | None = None,
        poll_interval: float | None = None,
        max_poll_attempts: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self._http_client = http_client
        self.push_url = push_url or settings.sieve_push_url
        self.jobs_url = (jobs_url or settings.sieve_jobs_url).rstrip("/")
        self.function = function or settings.sieve_function
        self.subtitle_languages = subtitle_languages or list(settings.subtitle_languages)
        self.poll_interval = settings.poll_interval if poll_interval is None else poll_interval
        self.max_poll_attempts = max_poll_attempts or settings.max_poll_attempts
        self.timeout = timeout or settings.http_timeout

    async def submit_and_await(self, source_url: str, credential: str | None) -> RawTranscript:
        """Push a subtitle job for *source_url*, wait for it, and return the transcript.

        Raises:
            AuthError: The credential is missing or was rejected.
            SubmissionError: The push failed.
            PollError: A status check failed.
            JobFailedError: The job ended in ``error`` or ``cancelled``.
            JobTimeoutError: No terminal state within the polling budget.
            CaptionsNotFoundError: The finished job carried no subtitle track.
            SubtitleDownloadError: The subtitle payload could not be fetched.
            TranscriptFormatError: The subtitle payload was not json3.
        """
        if not credential or not credential.strip():
            raise AuthError("Sieve API key not configured")

        if self._http_client is not None:
            return await self._run(self._http_client, source_url, credential)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._run(client, source_url, credential)

    async def _run(self, client: httpx.AsyncClient, source_url: str, credential: str) -> RawTranscript:
        job = await self._submit(client, source_url, credential)
        outputs = await self._wait_for_completion(client, job, credential)

        tracks = normalize_job_outputs(outputs)
        subtitle_url = select_subtitle_url(tracks, self.subtitle_languages)
        job.result = await self._download_subtitles(client, subtitle_url)
        logger.info("Job %s produced %d caption events", job.id, len(job.result.events))
        return job.result

    def _build_payload(self, source_url: str) -> dict[str, Any]:
        return {
            "function": self.function,
            "inputs": {
                "url": source_url,
                "download_type": "subtitles",
                "include_metadata": False,
                "include_subtitles": True,
                "subtitle_languages": self.subtitle_languages,
                "subtitle_format": "json3",  # json3 carries per-segment offsets
            },
        }

    async def _submit(self, client: httpx.AsyncClient, source_url: str, credential: str) -> TranscriptionJob:
        try:
            response = await client.post(
                self.push_url,
                json=self._build_payload(source_url),
                headers={"X-API-Key": credential},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Failed to push job to Sieve: {exc}") from exc

        if response.status_code in _AUTH_STATUS_CODES:
            raise AuthError(f"Sieve rejected the API key ({response.status_code})")
        if not response.is_success:
            raise SubmissionError(
                f"Failed to push job to Sieve: {response.status_code} - {response.text}"
            )

        try:
            job_id = response.json().get("id")
        except ValueError as exc:
            raise SubmissionError("Sieve push response was not JSON") from exc
        if not job_id:
            raise SubmissionError("Sieve push response did not include a job id")

        logger.info("Sieve job created: %s", job_id)
        return TranscriptionJob(id=str(job_id))

    async def _wait_for_completion(
        self, client: httpx.AsyncClient, job: TranscriptionJob, credential: str
    ) -> Any:
        """Poll until the job is terminal; return its raw ``outputs``."""
        for attempt in range(1, self.max_poll_attempts + 1):
            body = await self._check_status(client, job, credential)

            try:
                status = JobStatus(body.get("status"))
            except ValueError:
                logger.warning("Job %s reported unknown status %r", job.id, body.get("status"))
                status = job.status

            if status is not job.status:
                logger.debug("Job %s: %s -> %s (poll %d)", job.id, job.status, status, attempt)
                job.status = status

            if status.is_terminal:
                if status is JobStatus.FINISHED:
                    logger.info("Job %s finished after %d polls", job.id, attempt)
                    outputs = body.get("outputs")
                    return outputs if outputs is not None else body
                if status is JobStatus.CANCELLED:
                    raise JobCancelledError(job.id, status.value)
                raise JobFailedError(job.id, status.value)

            if attempt < self.max_poll_attempts:
                await asyncio.sleep(self.poll_interval)

        raise JobTimeoutError(
            f"Job {job.id} timed out after {self.max_poll_attempts} polls"
        )

    async def _check_status(
        self, client: httpx.AsyncClient, job: TranscriptionJob, credential: str
    ) -> dict[str, Any]:
        try:
            response = await client.get(
                f"{self.jobs_url}/{job.id}",
                headers={"X-API-Key": credential},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise PollError(f"Failed to check job status: {exc}") from exc

        if not response.is_success:
            raise PollError(f"Failed to check job status: {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise PollError("Job status response was not JSON") from exc
        if not isinstance(body, dict):
            raise PollError("Job status response was not an object")
        return body

    async def _download_subtitles(self, client: httpx.AsyncClient, url: str) -> RawTranscript:
        logger.debug("Fetching subtitle payload from %s", url)
        try:
            response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise SubtitleDownloadError(f"Failed to fetch subtitle: {exc}") from exc

        if not response.is_success:
            raise SubtitleDownloadError(f"Failed to fetch subtitle: {response.status_code}")

        try:
            return parse_json3(response.text)
        except TranscriptFormatError:
            logger.error("Subtitle payload was not json3: %s", response.text[:500])
            raise
