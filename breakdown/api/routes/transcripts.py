"""Transcript endpoint: acquire captions for a video and chunk them."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter

from breakdown.acquisition.pipeline import TranscriptAcquisition
from breakdown.api.models import (
    ChunkOut,
    TranscriptLineOut,
    TranscriptRequest,
    TranscriptResponse,
    VideoMetadataOut,
)
from breakdown.credentials import JOB_SERVICE_KEY, SettingsCredentialSource
from breakdown.formatting import transcript_lines
from breakdown.learning.chunking import chunk_transcript, format_chunk_time

router = APIRouter()


@router.post("/api/transcripts", response_model=TranscriptResponse)
async def create_transcript(request: TranscriptRequest) -> TranscriptResponse:
    """Fetch the transcript for a video and return its learning chunks.

    Acquisition never fails the request: when no transcript can be loaded the
    response carries ``source="error"``, no chunks, and a user-facing message
    in ``metadata.title``.
    """
    credential = await SettingsCredentialSource().get(JOB_SERVICE_KEY)
    result = await TranscriptAcquisition().acquire(request.video_id, credential)

    chunks = chunk_transcript(result.transcript, request.chunk_duration_ms)
    return TranscriptResponse(
        video_id=request.video_id,
        source=result.source,
        metadata=VideoMetadataOut(**asdict(result.metadata)),
        chunks=[
            ChunkOut(
                id=c.id,
                text=c.text,
                start_ms=c.start_ms,
                end_ms=c.end_ms,
                time_label=format_chunk_time(c),
            )
            for c in chunks
        ],
        lines=[
            TranscriptLineOut(text=line.text, start_ms=line.start_ms, end_ms=line.end_ms)
            for line in transcript_lines(result.transcript)
        ],
    )
