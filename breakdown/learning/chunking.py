"""Fixed-duration chunking of caption events into explainable units."""

from __future__ import annotations

from breakdown.acquisition.models import RawTranscript
from breakdown.learning.models import Chunk

DEFAULT_CHUNK_DURATION_MS = 45000
DEFAULT_EVENT_DURATION_MS = 1000


def chunk_transcript(
    transcript: RawTranscript | None,
    target_duration_ms: int = DEFAULT_CHUNK_DURATION_MS,
) -> list[Chunk]:
    """Partition caption events into consecutive time-bounded chunks.

    A segment starting ``target_duration_ms`` or more after the open chunk's
    first segment closes that chunk (its end becomes the segment's start) and
    opens the next one. Each accumulated segment extends the open chunk's end
    to ``segment start + event duration`` (1000 ms when the event has none).
    Whitespace-only segments are dropped.

    Args:
        transcript: Parsed caption events, or ``None``.
        target_duration_ms: Minimum span of a chunk before a new one may start.

    Returns:
        Chunks in strictly increasing time order with ids ``chunk-0``,
        ``chunk-1``, ... An empty transcript yields an empty list.
    """
    if transcript is None or not transcript.events:
        return []

    chunks: list[Chunk] = []
    texts: list[str] = []
    start_ms = 0
    end_ms = 0

    for event in transcript.events:
        event_duration = event.duration_ms or DEFAULT_EVENT_DURATION_MS
        for seg in event.segments:
            text = seg.text.strip()
            if not text:
                continue

            seg_start = event.start_ms + seg.offset_ms

            if texts and seg_start - start_ms >= target_duration_ms:
                chunks.append(
                    Chunk(
                        id=f"chunk-{len(chunks)}",
                        text=" ".join(texts),
                        start_ms=start_ms,
                        end_ms=seg_start,
                    )
                )
                texts = []

            if not texts:
                start_ms = end_ms = seg_start

            texts.append(text)
            end_ms = max(end_ms, seg_start + event_duration)

    if texts:
        chunks.append(
            Chunk(
                id=f"chunk-{len(chunks)}",
                text=" ".join(texts),
                start_ms=start_ms,
                end_ms=end_ms,
            )
        )

    return chunks


def _mmss(ms: int) -> str:
    seconds = ms // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_chunk_time(chunk: Chunk) -> str:
    """Render a chunk's span as ``m:ss - m:ss``."""
    return f"{_mmss(chunk.start_ms)} - {_mmss(chunk.end_ms)}"
