"""Fetch a video's transcript, chunk it, and optionally explain the chunks."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from breakdown.acquisition.pipeline import TranscriptAcquisition
from breakdown.credentials import JOB_SERVICE_KEY, SettingsCredentialSource
from breakdown.formatting import transcript_text
from breakdown.learning.chunking import chunk_transcript, format_chunk_time
from breakdown.learning.explanations import ExplanationCache
from breakdown.learning.generation import generate_explanation
from breakdown.learning.models import ExplanationRequest


async def fetch_transcript(
    video_id: str,
    chunk_duration_ms: int = 45000,
    explain: int = 0,
    show_text: bool = False,
) -> None:
    """Acquire the transcript for *video_id* and print its chunks."""
    credential = await SettingsCredentialSource().get(JOB_SERVICE_KEY)
    result = await TranscriptAcquisition().acquire(video_id, credential)

    print(f"Source: {result.source.value} -- {result.metadata.title}")
    if result.transcript is None:
        print(result.metadata.author)
        return

    if show_text:
        print(transcript_text(result.transcript))
        print()

    chunks = chunk_transcript(result.transcript, chunk_duration_ms)
    print(f"{len(chunks)} chunks of ~{chunk_duration_ms / 1000:.0f}s")

    cache = ExplanationCache(generate_explanation)
    previous = None
    for i, chunk in enumerate(chunks):
        print(f"\n[{chunk.id}] {format_chunk_time(chunk)}")
        print(f"  {chunk.text[:200]}{'...' if len(chunk.text) > 200 else ''}")
        if i < explain:
            request = ExplanationRequest(
                text=chunk.text,
                previous_context=previous.text if previous else None,
            )
            explanation = await cache.explain(chunk, request)
            print(explanation if explanation is not None else f"  ERROR {chunk.error}")
        previous = chunk


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("video_id")
    parser.add_argument("--chunk-ms", type=int, default=45000)
    parser.add_argument("--explain", type=int, default=0, help="explain the first N chunks")
    parser.add_argument("--text", action="store_true", help="print timestamped transcript text")
    args = parser.parse_args()
    asyncio.run(fetch_transcript(args.video_id, args.chunk_ms, args.explain, args.text))
