"""Error taxonomy for transcript acquisition and explanation generation.

Every error carries an explicit ``transient`` tag. Retry decisions are made
on that tag, never on message text.
"""

from __future__ import annotations


class BreakdownError(Exception):
    """Base class for all pipeline errors."""

    transient: bool = False


class AuthError(BreakdownError):
    """A required API key is missing or was rejected by the remote service."""


class SubmissionError(BreakdownError):
    """The job service rejected or never received the job push."""

    transient = True


class PollError(BreakdownError):
    """The job status endpoint was unreachable or returned a non-success code."""

    transient = True


class JobFailedError(BreakdownError):
    """The remote job reached a terminal failure state."""

    def __init__(self, job_id: str, status: str) -> None:
        super().__init__(f"Job {job_id} failed with status: {status}")
        self.job_id = job_id
        self.status = status


class JobCancelledError(JobFailedError):
    """The remote job was cancelled."""


class JobTimeoutError(BreakdownError, TimeoutError):
    """No terminal job state was reached within the polling budget."""

    transient = True


class SubtitleDownloadError(BreakdownError):
    """A subtitle or caption payload could not be downloaded."""

    transient = True


class CaptionsNotFoundError(BreakdownError):
    """No captions exist for the requested content."""


class TranscriptFormatError(BreakdownError):
    """A subtitle payload could not be parsed."""


class GenerationError(BreakdownError):
    """Explanation generation failed. Not cached, so the next access retries."""

    transient = True

    def __init__(self, chunk_id: str, message: str) -> None:
        super().__init__(f"Explanation for {chunk_id} failed: {message}")
        self.chunk_id = chunk_id
