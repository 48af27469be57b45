"""Shared fixtures: a fake host media element and small transcript builders."""

from __future__ import annotations

import pytest

from breakdown.acquisition.models import RawTranscript, Segment, TranscriptEvent


class FakeMedia:
    """Stand-in for the host page's video element."""

    def __init__(self, current_time: float = 0.0, paused: bool = False) -> None:
        self.current_time = current_time
        self.paused = paused
        self.pause_calls = 0
        self.play_calls = 0

    def pause(self) -> None:
        self.paused = True
        self.pause_calls += 1

    def play(self) -> None:
        self.paused = False
        self.play_calls += 1


def make_transcript(*events: tuple[int, int | None, str]) -> RawTranscript:
    """Build a transcript from ``(start_ms, duration_ms, text)`` triples."""
    return RawTranscript(
        events=[
            TranscriptEvent(start_ms=start, duration_ms=duration, segments=[Segment(text=text)])
            for start, duration, text in events
        ]
    )


@pytest.fixture
def transcript_factory():
    return make_transcript


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def paused_media() -> FakeMedia:
    return FakeMedia(paused=True)


@pytest.fixture
def four_chunk_transcript() -> RawTranscript:
    """Four events 45s apart: chunks [0,45s), [45s,90s), [90s,135s), [135s,136s]."""
    return make_transcript(
        (0, 1000, "Intro to the topic."),
        (45000, 1000, "First key idea."),
        (90000, 1000, "Second key idea."),
        (135000, 1000, "Wrap up."),
    )
