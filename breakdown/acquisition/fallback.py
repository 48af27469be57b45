"""Best-effort transcript extraction from a video's native captions."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from breakdown.acquisition.models import RawTranscript
from breakdown.acquisition.parsers import parse_timedtext_xml
from breakdown.config import settings
from breakdown.errors import CaptionsNotFoundError, SubtitleDownloadError

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# Player data is embedded in the watch page as a JS assignment
_EMBEDDED_JSON_RES = (
    re.compile(r"var ytInitialPlayerResponse\s*=\s*({.+?});\s*(?:var|</script>)", re.DOTALL),
    re.compile(r"var ytInitialData\s*=\s*({.+?});\s*(?:var|</script>)", re.DOTALL),
)


def extract_caption_tracks(page_html: str) -> list[dict[str, Any]]:
    """Return the ``captionTracks`` list embedded in a watch page, or ``[]``."""
    for pattern in _EMBEDDED_JSON_RES:
        match = pattern.search(page_html)
        if not match:
            continue
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
        tracks = (
            data.get("captions", {})
            .get("playerCaptionsTracklistRenderer", {})
            .get("captionTracks")
        )
        if isinstance(tracks, list) and tracks:
            return [t for t in tracks if isinstance(t, dict) and t.get("baseUrl")]
    return []


def pick_caption_track(tracks: list[dict[str, Any]], language: str = "en") -> dict[str, Any]:
    """Prefer a track in *language*, otherwise the first available one."""
    for track in tracks:
        if track.get("languageCode") == language:
            return track
    return tracks[0]


class TranscriptFallback:
    """Single-shot caption scrape used after the job service has given up.

    No retry and no polling: one page fetch, one caption fetch.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        language: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._http_client = http_client
        self.language = language or (settings.subtitle_languages or ["en"])[0]
        self.timeout = timeout or settings.http_timeout

    async def fetch_best_effort(self, video_id: str) -> RawTranscript:
        """Fetch native captions for *video_id*.

        Raises:
            CaptionsNotFoundError: The video exposes no caption tracks.
            SubtitleDownloadError: The page or caption request failed.
            TranscriptFormatError: The caption document could not be parsed.
        """
        if self._http_client is not None:
            return await self._fetch(self._http_client, video_id)

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._fetch(client, video_id)

    async def _fetch(self, client: httpx.AsyncClient, video_id: str) -> RawTranscript:
        page = await self._get_text(client, WATCH_URL.format(video_id=video_id))

        tracks = extract_caption_tracks(page)
        if not tracks:
            raise CaptionsNotFoundError(f"No captions found for video {video_id}")

        track = pick_caption_track(tracks, self.language)
        logger.info(
            "Using native caption track %r for video %s",
            track.get("languageCode", "?"),
            video_id,
        )
        transcript = parse_timedtext_xml(await self._get_text(client, track["baseUrl"]))
        if not transcript.events:
            raise CaptionsNotFoundError(f"Caption track for video {video_id} is empty")
        return transcript

    async def _get_text(self, client: httpx.AsyncClient, url: str) -> str:
        try:
            response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise SubtitleDownloadError(f"Request to {url} failed: {exc}") from exc
        if not response.is_success:
            raise SubtitleDownloadError(f"Request to {url} returned {response.status_code}")
        return response.text
