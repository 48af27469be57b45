"""Explanation endpoint: cached per-chunk explanations for the current video."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from breakdown.api.models import ExplanationIn, ExplanationOut
from breakdown.errors import AuthError, GenerationError
from breakdown.learning.explanations import ExplanationCache
from breakdown.learning.generation import generate_explanation
from breakdown.learning.models import ExplanationRequest

logger = logging.getLogger(__name__)

router = APIRouter()


async def _generate(request: ExplanationRequest) -> str:
    return await generate_explanation(request)


class ExplanationService:
    """Holds the explanation cache for the video currently being watched.

    Chunk ids are only unique within one video, so a request for a different
    video clears the cache first.
    """

    def __init__(self) -> None:
        self.video_id: str | None = None
        self.cache = ExplanationCache(_generate)

    def for_video(self, video_id: str) -> ExplanationCache:
        if video_id != self.video_id:
            logger.info("Switching explanation cache to video %s", video_id)
            self.cache.clear()
            self.video_id = video_id
        return self.cache


service = ExplanationService()


@router.post("/api/explanations", response_model=ExplanationOut)
async def create_explanation(body: ExplanationIn) -> ExplanationOut:
    """Return the explanation for one chunk, generating it at most once."""
    cache = service.for_video(body.video_id)
    try:
        explanation = await cache.get_explanation(
            body.chunk_id,
            ExplanationRequest(
                text=body.text,
                title=body.title,
                previous_context=body.previous_context,
            ),
        )
    except GenerationError as exc:
        if isinstance(exc.__cause__, AuthError):
            raise HTTPException(status_code=401, detail=str(exc.__cause__)) from exc
        # Upstream LLM failure; the next request for this chunk retries.
        raise HTTPException(status_code=502, detail=f"LLM unavailable: {exc}") from exc

    return ExplanationOut(chunk_id=body.chunk_id, explanation=explanation)
