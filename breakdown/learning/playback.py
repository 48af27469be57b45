"""Mapping playback time onto chunks, and tracking what the user is viewing."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from breakdown.learning.models import Chunk

logger = logging.getLogger(__name__)


def find_active_chunk(chunks: Sequence[Chunk], time_ms: float) -> Chunk | None:
    """Return the chunk whose span contains *time_ms*, or ``None`` in a gap.

    Spans are half-open ``[start, end)`` so a boundary instant belongs to the
    chunk that starts there; the last chunk also includes its end.
    """
    last_index = len(chunks) - 1
    for index, chunk in enumerate(chunks):
        if chunk.start_ms <= time_ms < chunk.end_ms:
            return chunk
        if index == last_index and time_ms == chunk.end_ms:
            return chunk
    return None


class PlaybackSync:
    """Tracks the *active* chunk (media position) and the *viewing* chunk (UI).

    While following, the viewing chunk tracks the active one. Manual
    navigation to any other chunk stops following until the user navigates
    back to the active chunk or calls :meth:`jump_to_active`.
    """

    def __init__(self, chunks: Sequence[Chunk] = ()) -> None:
        self.chunks: list[Chunk] = []
        self.active: Chunk | None = None
        self.viewing: Chunk | None = None
        self.following = True
        self.set_chunks(chunks)

    def set_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Replace the chunk list and reset all navigation state."""
        self.chunks = list(chunks)
        self._index = {chunk.id: i for i, chunk in enumerate(self.chunks)}
        self.active = None
        self.viewing = None
        self.following = True

    def update(self, time_ms: float) -> Chunk | None:
        """Re-evaluate the active chunk for the current playback time."""
        self.active = find_active_chunk(self.chunks, time_ms)
        if self.following and self.active is not None:
            self.viewing = self.active
        return self.active

    def navigate(self, chunk_id: str) -> Chunk:
        """Show *chunk_id*; stops following unless it is the active chunk."""
        chunk = self.get(chunk_id)
        self.viewing = chunk
        self.following = self.active is not None and chunk.id == self.active.id
        if not self.following:
            logger.debug("Viewing %s; auto-follow paused", chunk.id)
        return chunk

    def next(self) -> Chunk | None:
        following = self.neighbors(self.viewing)[1] if self.viewing else None
        return self.navigate(following.id) if following else None

    def previous(self) -> Chunk | None:
        preceding = self.neighbors(self.viewing)[0] if self.viewing else None
        return self.navigate(preceding.id) if preceding else None

    def jump_to_active(self) -> Chunk | None:
        """Resume auto-following the active chunk."""
        self.following = True
        if self.active is not None:
            self.viewing = self.active
        return self.viewing

    def get(self, chunk_id: str) -> Chunk:
        try:
            return self.chunks[self._index[chunk_id]]
        except KeyError:
            raise KeyError(f"Unknown chunk: {chunk_id}") from None

    def neighbors(self, chunk: Chunk) -> tuple[Chunk | None, Chunk | None]:
        """Return ``(previous, next)`` around *chunk*."""
        i = self._index[chunk.id]
        previous = self.chunks[i - 1] if i > 0 else None
        following = self.chunks[i + 1] if i + 1 < len(self.chunks) else None
        return previous, following

    def lookahead(self, chunk: Chunk, count: int) -> list[Chunk]:
        """Return up to *count* chunks after *chunk*."""
        i = self._index[chunk.id]
        return self.chunks[i + 1 : i + 1 + count]
