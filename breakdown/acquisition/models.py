"""Data models for transcript acquisition."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


@dataclass
class Segment:
    """A piece of caption text positioned relative to its event."""

    text: str
    offset_ms: int = 0


@dataclass
class TranscriptEvent:
    """A caption event: a start time, an optional duration and its segments."""

    start_ms: int
    duration_ms: int | None = None
    segments: list[Segment] = field(default_factory=list)


@dataclass
class RawTranscript:
    """Ordered caption events, non-overlapping and non-decreasing in start time."""

    events: list[TranscriptEvent] = field(default_factory=list)


class JobStatus(StrEnum):
    """Remote transcription job states."""

    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.FINISHED, JobStatus.ERROR, JobStatus.CANCELLED)


@dataclass
class TranscriptionJob:
    """A job tracked by the poll loop that created it."""

    id: str
    status: JobStatus = JobStatus.QUEUED
    result: RawTranscript | None = None


class TranscriptSource(StrEnum):
    """Where an acquired transcript came from."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    ERROR = "error"


@dataclass
class VideoMetadata:
    """Display metadata attached to an acquisition result."""

    title: str = "Unknown Title"
    duration: str = "0"
    author: str = "Unknown Author"
    views: str = "0"


@dataclass
class AcquisitionResult:
    """Outcome of :meth:`TranscriptAcquisition.acquire`, tagged by source."""

    metadata: VideoMetadata
    transcript: RawTranscript | None
    source: TranscriptSource
