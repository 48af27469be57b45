"""Tests for PlaybackSession: loading, following playback, navigation and explanations."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from breakdown.acquisition.models import AcquisitionResult, TranscriptSource, VideoMetadata
from breakdown.credentials import GENERATION_KEY, JOB_SERVICE_KEY
from breakdown.learning.explanations import GENERATION_FAILED_MESSAGE
from breakdown.session import PlaybackSession

_real_sleep = asyncio.sleep


async def settle(rounds: int = 30) -> None:
    for _ in range(rounds):
        await _real_sleep(0)


def _result(transcript) -> AcquisitionResult:
    return AcquisitionResult(
        metadata=VideoMetadata(), transcript=transcript, source=TranscriptSource.PRIMARY
    )


def _credentials() -> MagicMock:
    credentials = MagicMock()
    credentials.get = AsyncMock(return_value="sk-key")
    return credentials


def _acquisition(*results: AcquisitionResult) -> MagicMock:
    acquisition = MagicMock()
    acquisition.acquire = AsyncMock(side_effect=list(results) if len(results) > 1 else None)
    if len(results) == 1:
        acquisition.acquire.return_value = results[0]
    return acquisition


def _generator() -> AsyncMock:
    return AsyncMock(side_effect=lambda request, api_key: f"about {request.text}")


@pytest_asyncio.fixture
async def make_session(media):
    sessions: list[PlaybackSession] = []

    def factory(acquisition, generate=None, *, sample_interval: float = 3600.0) -> PlaybackSession:
        session = PlaybackSession(
            media,
            _credentials(),
            acquisition=acquisition,
            generate=generate or _generator(),
            sample_interval=sample_interval,
        )
        session.cache.prefetch_stagger = 0
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()
    await settle()


class TestLoadVideo:
    @pytest.mark.asyncio
    async def test_explains_viewing_chunk_and_prefetches_next(
        self, make_session, four_chunk_transcript
    ) -> None:
        generate = _generator()
        session = make_session(_acquisition(_result(four_chunk_transcript)), generate)

        result = await session.load_video("vid-1", title="Linear Algebra")
        await settle()

        assert result.source is TranscriptSource.PRIMARY
        assert [c.id for c in session.chunks] == ["chunk-0", "chunk-1", "chunk-2", "chunk-3"]
        assert session.sync.viewing.id == "chunk-0"
        assert generate.await_count == 4
        assert session.chunks[0].explanation == "about Intro to the topic."
        assert session.chunks[3].explanation == "about Wrap up."

        requests = {call.args[0].text: call.args[0] for call in generate.await_args_list}
        second = requests["First key idea."]
        assert second.title == "Linear Algebra"
        assert second.previous_context == "Intro to the topic."
        assert requests["Intro to the topic."].previous_context is None

        session.credentials.get.assert_any_await(JOB_SERVICE_KEY)
        session.credentials.get.assert_any_await(GENERATION_KEY)

    @pytest.mark.asyncio
    async def test_same_video_is_not_refetched(self, make_session, four_chunk_transcript) -> None:
        acquisition = _acquisition(_result(four_chunk_transcript))
        session = make_session(acquisition)

        first = await session.load_video("vid-1")
        second = await session.load_video("vid-1")

        assert first is second
        acquisition.acquire.assert_awaited_once_with("vid-1", "sk-key")

    @pytest.mark.asyncio
    async def test_new_video_replaces_session(
        self, make_session, four_chunk_transcript, transcript_factory
    ) -> None:
        other = transcript_factory((0, 1000, "Different video."))
        session = make_session(_acquisition(_result(four_chunk_transcript), _result(other)))

        await session.load_video("vid-1")
        await settle()
        old_sampler = session._sampler
        assert len(session.cache) == 4

        await session.load_video("vid-2")
        await settle()

        assert old_sampler.cancelled()
        assert session.video_id == "vid-2"
        assert [c.text for c in session.chunks] == ["Different video."]
        assert len(session.cache) == 1
        assert session.chunks[0].explanation == "about Different video."

    @pytest.mark.asyncio
    async def test_superseded_load_is_dropped(
        self, make_session, four_chunk_transcript, transcript_factory
    ) -> None:
        gate = asyncio.Event()
        latest = transcript_factory((0, 1000, "Latest video."))

        async def acquire(video_id: str, credential: str | None) -> AcquisitionResult:
            if video_id == "slow":
                await gate.wait()
                return _result(four_chunk_transcript)
            return _result(latest)

        acquisition = MagicMock()
        acquisition.acquire = acquire
        session = make_session(acquisition)

        slow = asyncio.create_task(session.load_video("slow"))
        await settle()
        await session.load_video("fast")
        gate.set()
        await slow

        assert session.video_id == "fast"
        assert [c.text for c in session.chunks] == ["Latest video."]

    @pytest.mark.asyncio
    async def test_concurrent_loads_of_same_video_share_one_acquire(
        self, make_session, four_chunk_transcript
    ) -> None:
        gate = asyncio.Event()
        calls = 0

        async def acquire(video_id: str, credential: str | None) -> AcquisitionResult:
            nonlocal calls
            calls += 1
            await gate.wait()
            return _result(four_chunk_transcript)

        acquisition = MagicMock()
        acquisition.acquire = acquire
        session = make_session(acquisition)

        first = asyncio.create_task(session.load_video("vid-1"))
        second = asyncio.create_task(session.load_video("vid-1"))
        await settle()
        gate.set()
        a, b = await asyncio.gather(first, second)

        assert calls == 1
        assert a is b
        sampler = session._sampler

        session.close()
        await settle()

        assert sampler.cancelled()
        samplers = [
            task
            for task in asyncio.all_tasks()
            if task.get_coro().__qualname__ == "PlaybackSession._sample_playback"
        ]
        assert samplers == []

    @pytest.mark.asyncio
    async def test_superseded_load_does_not_resume_media(
        self, make_session, media, four_chunk_transcript
    ) -> None:
        gates = {"a": asyncio.Event(), "b": asyncio.Event()}

        async def acquire(video_id: str, credential: str | None) -> AcquisitionResult:
            await gates[video_id].wait()
            return _result(four_chunk_transcript)

        acquisition = MagicMock()
        acquisition.acquire = acquire
        session = make_session(acquisition)

        first = asyncio.create_task(session.load_video("a"))
        await settle()
        assert media.paused is True

        second = asyncio.create_task(session.load_video("b"))
        await settle()
        gates["a"].set()
        await first

        assert media.paused is True
        assert media.play_calls == 0

        gates["b"].set()
        await second

        assert media.paused is False
        assert media.pause_calls == 1
        assert media.play_calls == 1

    @pytest.mark.asyncio
    async def test_media_paused_by_user_stays_paused(
        self, make_session, media, four_chunk_transcript
    ) -> None:
        media.paused = True
        session = make_session(_acquisition(_result(four_chunk_transcript)))

        await session.load_video("vid-1")

        assert media.pause_calls == 0
        assert media.play_calls == 0
        assert media.paused is True

    @pytest.mark.asyncio
    async def test_close_during_load_resumes_media(self, make_session, media) -> None:
        gate = asyncio.Event()

        async def acquire(video_id: str, credential: str | None) -> AcquisitionResult:
            await gate.wait()
            raise AssertionError("load should have been cancelled")

        acquisition = MagicMock()
        acquisition.acquire = acquire
        session = make_session(acquisition)

        loading = asyncio.create_task(session.load_video("vid-1"))
        await settle()
        session.close()
        await settle()

        assert loading.cancelled()
        assert media.paused is False
        assert media.play_calls == 1

    @pytest.mark.asyncio
    async def test_error_result_has_no_chunks(self, make_session) -> None:
        error = AcquisitionResult(
            metadata=VideoMetadata(title="No captions available"),
            transcript=None,
            source=TranscriptSource.ERROR,
        )
        generate = _generator()
        session = make_session(_acquisition(error), generate)

        result = await session.load_video("vid-1")
        await settle()

        assert result.source is TranscriptSource.ERROR
        assert session.chunks == []
        assert session._sampler is None
        generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_cancels_everything(self, make_session, four_chunk_transcript) -> None:
        session = make_session(_acquisition(_result(four_chunk_transcript)))
        await session.load_video("vid-1")
        sampler = session._sampler

        session.close()
        await settle()

        assert sampler.cancelled()
        assert session.video_id is None
        assert session.chunks == []
        assert len(session.cache) == 0


class TestPlaybackFollowing:
    @pytest.mark.asyncio
    async def test_sampler_tracks_media_time(self, make_session, media, four_chunk_transcript) -> None:
        session = make_session(_acquisition(_result(four_chunk_transcript)), sample_interval=0)
        await session.load_video("vid-1")

        media.current_time = 95.0
        await settle()

        assert session.sync.active.id == "chunk-2"
        assert session.sync.viewing.id == "chunk-2"

    @pytest.mark.asyncio
    async def test_manual_navigation_and_jump_back(
        self, make_session, media, four_chunk_transcript
    ) -> None:
        session = make_session(_acquisition(_result(four_chunk_transcript)))
        await session.load_video("vid-1")

        session.navigate("chunk-2")
        media.current_time = 50.0
        session.on_time_update()

        assert session.sync.active.id == "chunk-1"
        assert session.sync.viewing.id == "chunk-2"
        assert session.sync.following is False

        assert session.jump_to_active().id == "chunk-1"
        assert session.sync.following is True

    @pytest.mark.asyncio
    async def test_next_and_previous_chunk(self, make_session, four_chunk_transcript) -> None:
        session = make_session(_acquisition(_result(four_chunk_transcript)))
        await session.load_video("vid-1")

        assert session.next_chunk().id == "chunk-1"
        assert session.previous_chunk().id == "chunk-0"
        assert session.previous_chunk() is None

    @pytest.mark.asyncio
    async def test_seek_to_chunk(self, make_session, media, four_chunk_transcript) -> None:
        session = make_session(_acquisition(_result(four_chunk_transcript)))
        await session.load_video("vid-1")
        session.navigate("chunk-1")

        chunk = session.seek_to_chunk("chunk-3")

        assert media.current_time == 135.0
        assert chunk.id == "chunk-3"
        assert session.sync.active is chunk
        assert session.sync.viewing is chunk
        assert session.sync.following is True


class TestSessionExplanations:
    @pytest.mark.asyncio
    async def test_failure_then_manual_retry(self, make_session, four_chunk_transcript) -> None:
        generate = AsyncMock(side_effect=[RuntimeError("provider down"), "recovered"])
        session = make_session(_acquisition(_result(four_chunk_transcript)), generate)
        session.cache.prefetch_window = 0

        await session.load_video("vid-1")
        await settle()

        first = session.chunks[0]
        assert first.error == GENERATION_FAILED_MESSAGE
        assert first.explanation is None

        assert await session.explain("chunk-0") == "recovered"
        assert first.error is None
        assert first.explanation == "recovered"

    @pytest.mark.asyncio
    async def test_revisiting_explained_chunk_does_not_regenerate(
        self, make_session, four_chunk_transcript
    ) -> None:
        generate = _generator()
        session = make_session(_acquisition(_result(four_chunk_transcript)), generate)
        await session.load_video("vid-1")
        await settle()
        calls = generate.await_count

        session.navigate("chunk-2")
        session.navigate("chunk-0")
        await settle()

        assert generate.await_count == calls


class TestWatch:
    @pytest.mark.asyncio
    async def test_loads_when_video_id_changes(self, make_session, four_chunk_transcript) -> None:
        acquisition = _acquisition(_result(four_chunk_transcript))
        session = make_session(acquisition)
        current = {"id": None}

        session.watch(lambda: current["id"], interval=0)
        await settle()
        acquisition.acquire.assert_not_awaited()

        current["id"] = "vid-1"
        await settle()
        current["id"] = "vid-2"
        await settle()

        assert [c.args[0] for c in acquisition.acquire.await_args_list] == ["vid-1", "vid-2"]
        assert session.video_id == "vid-2"

    @pytest.mark.asyncio
    async def test_watch_survives_load_failure(self, make_session, four_chunk_transcript) -> None:
        acquisition = MagicMock()
        acquisition.acquire = AsyncMock(
            side_effect=[RuntimeError("host gone"), _result(four_chunk_transcript)]
        )
        session = make_session(acquisition)
        current = {"id": "vid-1"}

        watcher = session.watch(lambda: current["id"], interval=0)
        await settle()
        assert not watcher.done()
        assert session.chunks == []

        current["id"] = "vid-2"
        await settle()

        assert not watcher.done()
        assert session.video_id == "vid-2"
        assert len(session.chunks) == 4
