"""Transcript views: grouped lines for the live transcript and timestamped text."""

from __future__ import annotations

from dataclasses import dataclass

from breakdown.acquisition.models import RawTranscript

# Gap after which timestamped text starts a new line
LINE_BREAK_GAP_MS = 1000


@dataclass
class TranscriptLine:
    """A run of caption text shown as one entry in the transcript list."""

    text: str
    start_ms: int
    end_ms: int


def format_timestamp(ms: int) -> str:
    """Format milliseconds as ``HH:MM:SS.mmm``."""
    seconds, millis = divmod(max(0, int(ms)), 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def transcript_lines(transcript: RawTranscript | None, max_chars: int = 300) -> list[TranscriptLine]:
    """Group caption segments into lines of roughly *max_chars* characters.

    A line ends when appending the next segment would push it past
    *max_chars*; that segment's start time is the boundary between lines.
    """
    if transcript is None or not transcript.events:
        return []

    lines: list[TranscriptLine] = []
    current = ""
    start_ms = end_ms = transcript.events[0].start_ms

    for event in transcript.events:
        for seg in event.segments:
            text = seg.text.replace("\n", " ")
            end_ms = event.start_ms + seg.offset_ms
            if len(current + text) > max_chars:
                if current.strip():
                    lines.append(TranscriptLine(text=current.strip(), start_ms=start_ms, end_ms=end_ms))
                current = text
                start_ms = end_ms
            else:
                current += text

    if current.strip():
        lines.append(TranscriptLine(text=current.strip(), start_ms=start_ms, end_ms=end_ms))

    return lines


def transcript_text(transcript: RawTranscript | None) -> str:
    """Render the transcript as ``HH:MM:SS.mmm: text`` lines.

    A new line starts after a gap of more than a second or at an explicit
    newline segment.
    """
    if transcript is None:
        return ""

    out: list[str] = []
    pending = ""
    last_ms = 0

    for event in transcript.events:
        for seg in event.segments:
            seg_start = event.start_ms + seg.offset_ms
            if pending and (seg_start - last_ms > LINE_BREAK_GAP_MS or seg.text == "\n"):
                if pending.strip():
                    out.append(f"{format_timestamp(last_ms)}: {pending.strip()}")
                pending = ""
            last_ms = seg_start
            pending += seg.text

    if pending.strip():
        out.append(f"{format_timestamp(last_ms)}: {pending.strip()}")

    return "\n".join(out)
