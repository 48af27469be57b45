"""Parsers for subtitle payloads and transcription job outputs."""

from __future__ import annotations

import html
import json
import xml.etree.ElementTree as ET
from enum import StrEnum
from typing import Any

from breakdown.acquisition.models import RawTranscript, Segment, TranscriptEvent
from breakdown.errors import CaptionsNotFoundError, TranscriptFormatError

# Keys under which the job service has been observed to nest its outputs
_NESTING_KEYS = ("output", "outputs", "subtitles")
_MAX_NESTING = 4


def _to_int(value: Any, default: int | None = 0) -> int | None:
    if value is None:
        return default
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# json3 subtitle events
# ---------------------------------------------------------------------------


def parse_json3(payload: str | dict[str, Any]) -> RawTranscript:
    """Parse a json3 subtitle payload into a :class:`RawTranscript`.

    json3 events look like ``{"tStartMs", "dDurationMs", "segs": [{"utf8",
    "tOffsetMs"}]}``. Events without ``segs`` (window/style events) are kept
    with no segments so event ordering is preserved.

    Raises:
        TranscriptFormatError: If the payload is not a JSON object.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise TranscriptFormatError("Subtitle format not supported - expected JSON3") from exc

    if not isinstance(payload, dict):
        raise TranscriptFormatError("Subtitle format not supported - expected JSON3")

    raw_events = payload.get("events") or []
    if not isinstance(raw_events, list):
        raise TranscriptFormatError("json3 'events' must be a list")

    events: list[TranscriptEvent] = []
    for raw in raw_events:
        if not isinstance(raw, dict):
            continue

        segments: list[Segment] = []
        for seg in raw.get("segs") or []:
            if not isinstance(seg, dict):
                continue
            segments.append(
                Segment(
                    text=str(seg.get("utf8", "")),
                    offset_ms=_to_int(seg.get("tOffsetMs")) or 0,
                )
            )

        events.append(
            TranscriptEvent(
                start_ms=_to_int(raw.get("tStartMs")) or 0,
                duration_ms=_to_int(raw.get("dDurationMs"), default=None),
                segments=segments,
            )
        )

    return RawTranscript(events=events)


# ---------------------------------------------------------------------------
# timedtext XML (native captions)
# ---------------------------------------------------------------------------


def _seconds_to_ms(value: str | None) -> int:
    try:
        return int(round(float(value or "0") * 1000))
    except ValueError:
        return 0


def parse_timedtext_xml(content: str) -> RawTranscript:
    """Parse a ``<transcript><text start dur>...</text></transcript>`` document.

    Times are in seconds. Caption text is HTML-escaped a second time inside
    the XML, so entities are unescaped after XML parsing.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise TranscriptFormatError(f"Could not parse caption XML: {exc}") from exc

    events: list[TranscriptEvent] = []
    for element in root.iter("text"):
        text = html.unescape("".join(element.itertext()))
        events.append(
            TranscriptEvent(
                start_ms=_seconds_to_ms(element.get("start")),
                duration_ms=_seconds_to_ms(element.get("dur")),
                segments=[Segment(text=text)],
            )
        )
    return RawTranscript(events=events)


# ---------------------------------------------------------------------------
# Job output normalization
# ---------------------------------------------------------------------------


class OutputShape(StrEnum):
    """Observed shapes of a finished job's ``outputs`` field."""

    EMPTY = "empty"
    LANGUAGE_MAP = "language_map"  # {"en": {"url": ...}}
    ARRAY_WRAPPED = "array_wrapped"  # [{"type": "dict", "data": {...}}]
    NESTED = "nested"  # {"output": {...}}


def _is_track(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("url"), str) and bool(value["url"])


def classify_outputs(outputs: Any) -> OutputShape:
    """Tag a raw ``outputs`` value with the shape it arrived in."""
    if not outputs:
        return OutputShape.EMPTY
    if isinstance(outputs, list):
        return OutputShape.ARRAY_WRAPPED
    if isinstance(outputs, dict):
        if any(_is_track(v) for v in outputs.values()):
            return OutputShape.LANGUAGE_MAP
        if any(isinstance(outputs.get(k), (dict, list)) for k in _NESTING_KEYS):
            return OutputShape.NESTED
        return OutputShape.LANGUAGE_MAP
    raise TranscriptFormatError(f"Unrecognized job output type: {type(outputs).__name__}")


def normalize_job_outputs(outputs: Any, _depth: int = 0) -> dict[str, str]:
    """Reduce any known ``outputs`` shape to a ``{language: subtitle_url}`` mapping."""
    if _depth > _MAX_NESTING:
        return {}

    shape = classify_outputs(outputs)

    if shape is OutputShape.EMPTY:
        return {}

    if shape is OutputShape.ARRAY_WRAPPED:
        tracks: dict[str, str] = {}
        for item in outputs:
            if not isinstance(item, dict):
                continue
            data = item.get("data") if item.get("type") == "dict" else item
            for lang, url in normalize_job_outputs(data, _depth + 1).items():
                tracks.setdefault(lang, url)
        return tracks

    if shape is OutputShape.NESTED:
        tracks = {}
        for key in _NESTING_KEYS:
            if key in outputs:
                for lang, url in normalize_job_outputs(outputs[key], _depth + 1).items():
                    tracks.setdefault(lang, url)
        return tracks

    return {lang: track["url"] for lang, track in outputs.items() if _is_track(track)}


def select_subtitle_url(tracks: dict[str, str], languages: list[str]) -> str:
    """Pick the first preferred language present, else any available track."""
    for lang in languages:
        if lang in tracks:
            return tracks[lang]
    if tracks:
        return next(iter(tracks.values()))
    raise CaptionsNotFoundError("No captions available in the job output")
