"""Interface to the host page's media element."""

from __future__ import annotations

from typing import Protocol


class MediaElement(Protocol):
    """The host video element. Owned by the page; the pipeline only reads and writes it."""

    current_time: float  # seconds
    paused: bool

    def pause(self) -> None: ...

    def play(self) -> None: ...


def current_time_ms(media: MediaElement) -> int:
    return int(media.current_time * 1000)


def seek_ms(media: MediaElement, time_ms: int) -> None:
    media.current_time = time_ms / 1000
