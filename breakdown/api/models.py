"""Pydantic request/response schemas for the Breakdown API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from breakdown.acquisition.models import TranscriptSource
from breakdown.config import settings


class TranscriptRequest(BaseModel):
    """Request body for the /api/transcripts endpoint."""

    video_id: str = Field(min_length=1)
    chunk_duration_ms: int = Field(default=settings.chunk_duration_ms, gt=0)


class VideoMetadataOut(BaseModel):
    title: str
    duration: str
    author: str
    views: str


class ChunkOut(BaseModel):
    """A learning chunk with its time span."""

    id: str
    text: str
    start_ms: int
    end_ms: int
    time_label: str


class TranscriptLineOut(BaseModel):
    text: str
    start_ms: int
    end_ms: int


class TranscriptResponse(BaseModel):
    """Response body for the /api/transcripts endpoint."""

    video_id: str
    source: TranscriptSource
    metadata: VideoMetadataOut
    chunks: list[ChunkOut]
    lines: list[TranscriptLineOut]


class ExplanationIn(BaseModel):
    """Request body for the /api/explanations endpoint."""

    video_id: str = Field(min_length=1)
    chunk_id: str = Field(min_length=1)
    text: str
    title: str | None = None
    previous_context: str | None = None


class ExplanationOut(BaseModel):
    chunk_id: str
    explanation: str
