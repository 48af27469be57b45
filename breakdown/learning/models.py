"""Data models for the learning pipeline."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Chunk:
    """A fixed-duration span of transcript text explained as one unit.

    ``explanation`` and ``error`` are the only fields written after creation.
    """

    id: str
    text: str
    start_ms: int
    end_ms: int
    explanation: str | None = None
    error: str | None = None

    def record_explanation(self, explanation: str) -> None:
        self.explanation = explanation
        self.error = None

    def record_error(self, message: str) -> None:
        if self.explanation is None:
            self.error = message


@dataclass(frozen=True)
class ExplanationRequest:
    """Input to the explanation-generation capability."""

    text: str
    title: str | None = None
    previous_context: str | None = None
