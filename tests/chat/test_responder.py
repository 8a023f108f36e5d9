"""Unit tests for the retrieval-augmented chat responder."""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.chat.responder import (
    CONTEXT_SYSTEM_PROMPT,
    GENERIC_SYSTEM_PROMPT,
    ChatResponder,
    build_messages,
)
from src.video_rag.config import VideoRAGConfig
from src.video_rag.errors import IndexQueryError, UpstreamUnavailableError
from src.video_rag.schemas import IndexMatch


def delta_frame(content: str | None = None, finish_reason: str | None = None) -> bytes:
    choice: dict[str, Any] = {"delta": {} if content is None else {"content": content}}
    if finish_reason:
        choice["finish_reason"] = finish_reason
    return f"data: {json.dumps({'choices': [choice]})}\n\n".encode()


class FakeCompletionClient:
    """Replays canned upstream reads and records what the responder did."""

    def __init__(self, reads: list[bytes], fail: Exception | None = None):
        self.reads = reads
        self.fail = fail
        self.reads_served = 0
        self.closed = False
        self.messages: list[dict[str, str]] | None = None
        self.complete = AsyncMock(return_value="Full answer")

    async def _iterate(self) -> AsyncIterator[bytes]:
        for data in self.reads:
            self.reads_served += 1
            yield data

    @asynccontextmanager
    async def stream(self, messages: list[dict[str, str]]):
        self.messages = messages
        if self.fail:
            raise self.fail
        try:
            yield self._iterate()
        finally:
            self.closed = True


async def collect(events: AsyncIterator[dict[str, Any]]) -> list[dict[str, Any]]:
    return [event async for event in events]


@pytest.mark.unit
class TestBuildMessages:
    """Test suite for build_messages."""

    def test_with_context(self) -> None:
        """Test retrieved context is placed in the system prompt."""
        messages = build_messages("What is it about?", "chunk one\n\nchunk two")

        assert messages[0]["role"] == "system"
        assert messages[0]["content"] == CONTEXT_SYSTEM_PROMPT.format(
            context="chunk one\n\nchunk two"
        )
        assert messages[1] == {"role": "user", "content": "What is it about?"}

    def test_without_context(self) -> None:
        """Test the generic prompt is used when nothing was retrieved."""
        messages = build_messages("Hi", "")

        assert messages[0] == {"role": "system", "content": GENERIC_SYSTEM_PROMPT}
        assert len(messages) == 2


@pytest.mark.unit
class TestChatResponder:
    """Test suite for ChatResponder class."""

    @pytest.fixture
    def config(self) -> VideoRAGConfig:
        """Create test configuration."""
        return VideoRAGConfig(retrieval_top_k=3)

    @pytest.fixture
    def embedding_service(self) -> MagicMock:
        """Create mock embedding service."""
        service = MagicMock()
        service.embed_text = AsyncMock(return_value=[0.1] * 384)
        return service

    @pytest.fixture
    def storage_service(self) -> MagicMock:
        """Create mock storage service returning two matches."""
        service = MagicMock()
        service.query = AsyncMock(
            return_value=[
                IndexMatch(id="abc123_chunk_0", score=0.9, metadata={"text": "first"}),
                IndexMatch(id="abc123_chunk_4", score=0.5, metadata={"text": "second"}),
            ]
        )
        return service

    def _responder(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
        completion: FakeCompletionClient,
    ) -> ChatResponder:
        return ChatResponder(
            config,
            embedding_service=embedding_service,
            storage_service=storage_service,
            completion_client=completion,  # type: ignore[arg-type]
        )

    @pytest.mark.asyncio
    async def test_retrieve_context(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test context joins matched texts filtered to the video."""
        responder = self._responder(
            config, embedding_service, storage_service, FakeCompletionClient([])
        )

        context = await responder.retrieve_context("question", "abc123")

        assert context == "first\n\nsecond"
        embedding_service.embed_text.assert_called_once_with("question")
        storage_service.query.assert_called_once_with(
            [0.1] * 384, top_k=3, video_id="abc123"
        )

    @pytest.mark.asyncio
    async def test_no_video_skips_retrieval(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test a question without a video id is answered without context."""
        completion = FakeCompletionClient([delta_frame("Hi"), b"data: [DONE]\n\n"])
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Hello"))

        assert events == [{"content": "Hi"}, {"done": True}]
        embedding_service.embed_text.assert_not_called()
        storage_service.query.assert_not_called()
        assert completion.messages is not None
        assert completion.messages[0]["content"] == GENERIC_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_retrieval_failure_degrades_to_empty_context(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test an index failure still produces an answer."""
        storage_service.query = AsyncMock(side_effect=IndexQueryError("down"))
        completion = FakeCompletionClient([delta_frame("Hi"), delta_frame(finish_reason="stop")])
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Hello", "abc123"))

        assert events == [{"content": "Hi"}, {"done": True}]
        assert completion.messages is not None
        assert completion.messages[0]["content"] == GENERIC_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_empty_index_still_streams(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test a video with no entries yields content and one done."""
        storage_service.query = AsyncMock(return_value=[])
        completion = FakeCompletionClient([delta_frame("Sorry"), b"data: [DONE]\n\n"])
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Hello", "missing"))

        assert events == [{"content": "Sorry"}, {"done": True}]

    @pytest.mark.asyncio
    async def test_relays_deltas_in_order(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test every delta is relayed and the prompt carries the context."""
        completion = FakeCompletionClient(
            [
                delta_frame("The video "),
                delta_frame("covers "),
                delta_frame("Python."),
                delta_frame(finish_reason="stop"),
                b"data: [DONE]\n\n",
            ]
        )
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("What is it about?", "abc123"))

        assert events == [
            {"content": "The video "},
            {"content": "covers "},
            {"content": "Python."},
            {"done": True},
        ]
        assert completion.messages is not None
        assert "first\n\nsecond" in completion.messages[0]["content"]
        assert completion.closed

    @pytest.mark.asyncio
    async def test_content_with_finish_reason_in_same_frame(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test the last fragment is relayed before done."""
        completion = FakeCompletionClient([delta_frame("End.", finish_reason="stop")])
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Q", "abc123"))

        assert events == [{"content": "End."}, {"done": True}]

    @pytest.mark.asyncio
    async def test_frames_split_across_reads(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test a frame split over reads is relayed once."""
        frame = delta_frame("Hello")
        completion = FakeCompletionClient([frame[:7], frame[7:20], frame[20:], b"data: [DONE]\n\n"])
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Q", "abc123"))

        assert events == [{"content": "Hello"}, {"done": True}]

    @pytest.mark.asyncio
    async def test_done_when_upstream_ends_without_signal(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test done is emitted when the upstream simply closes."""
        completion = FakeCompletionClient([delta_frame("partial")])
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Q", "abc123"))

        assert events == [{"content": "partial"}, {"done": True}]

    @pytest.mark.asyncio
    async def test_trailing_frame_without_newline(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test a last frame missing its newline is still relayed."""
        frame = delta_frame("tail").rstrip(b"\n")
        completion = FakeCompletionClient([frame])
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Q", "abc123"))

        assert events == [{"content": "tail"}, {"done": True}]

    @pytest.mark.asyncio
    async def test_malformed_frames_are_skipped(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test bad JSON and empty choices do not abort the stream."""
        completion = FakeCompletionClient(
            [
                b"data: {not json\n\n",
                b'data: {"choices": []}\n\n',
                b'data: {"choices": ["oops"]}\n\n',
                b": keep-alive\n\n",
                delta_frame("ok"),
                delta_frame(None),
                b"data: [DONE]\n\n",
            ]
        )
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Q", "abc123"))

        assert events == [{"content": "ok"}, {"done": True}]

    @pytest.mark.asyncio
    async def test_exactly_one_done(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test nothing is relayed after the first finish signal."""
        completion = FakeCompletionClient(
            [
                delta_frame("a", finish_reason="stop"),
                b"data: [DONE]\n\n",
                delta_frame("late"),
                b"data: [DONE]\n\n",
            ]
        )
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = await collect(responder.answer("Q", "abc123"))

        assert events == [{"content": "a"}, {"done": True}]
        assert completion.reads_served == 1

    @pytest.mark.asyncio
    async def test_upstream_failure_raises_without_done(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test an unavailable completion endpoint raises."""
        completion = FakeCompletionClient([], fail=UpstreamUnavailableError("HTTP 503"))
        responder = self._responder(config, embedding_service, storage_service, completion)

        with pytest.raises(UpstreamUnavailableError):
            await collect(responder.answer("Q", "abc123"))

    @pytest.mark.asyncio
    async def test_closing_early_releases_upstream(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test a disconnected consumer stops upstream reads."""
        completion = FakeCompletionClient(
            [delta_frame("one"), delta_frame("two"), delta_frame("three")]
        )
        responder = self._responder(config, embedding_service, storage_service, completion)

        events = responder.answer("Q", "abc123")
        first = await anext(events)
        await events.aclose()

        assert first == {"content": "one"}
        assert completion.reads_served == 1
        assert completion.closed

    @pytest.mark.asyncio
    async def test_answer_sse_encodes_frames(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test SSE output is one data frame per event."""
        completion = FakeCompletionClient([delta_frame("Hi"), b"data: [DONE]\n\n"])
        responder = self._responder(config, embedding_service, storage_service, completion)

        frames = [frame async for frame in responder.answer_sse("Q", "abc123")]

        assert frames == ['data: {"content": "Hi"}\n\n', 'data: {"done": true}\n\n']

    @pytest.mark.asyncio
    async def test_answer_once(
        self,
        config: VideoRAGConfig,
        embedding_service: MagicMock,
        storage_service: MagicMock,
    ) -> None:
        """Test the non-streamed answer uses the same grounded prompt."""
        completion = FakeCompletionClient([])
        responder = self._responder(config, embedding_service, storage_service, completion)

        answer = await responder.answer_once("Q", "abc123")

        assert answer == "Full answer"
        messages = completion.complete.call_args[0][0]
        assert "first\n\nsecond" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "Q"}
