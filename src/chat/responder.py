"""Retrieval-augmented chat responder.

Retrieves transcript chunks for a video, builds a grounded prompt, and
relays the completion stream as ``{"content": ...}`` events followed by
exactly one ``{"done": True}`` event.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

from src.utils.logging import get_logger
from src.video_rag.config import VideoRAGConfig
from src.video_rag.embedding_service import EmbeddingService
from src.video_rag.storage_service import StorageService

from .completion_client import CompletionClient
from .sse import SSEFrameDecoder, format_sse_event

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"

CONTEXT_SYSTEM_PROMPT = """You are a helpful AI assistant that answers questions about a YouTube video using excerpts from its transcript.

Use the context below to give accurate and relevant answers. If the context does not contain enough information to answer the question, say so instead of guessing.

Context:
{context}"""

GENERIC_SYSTEM_PROMPT = "You are a helpful AI assistant. Answer the user's question clearly and concisely."


def build_messages(question: str, context: str) -> list[dict[str, str]]:
    """Build the system and user messages for one question.

    Args:
        question: User's question.
        context: Retrieved transcript passages, possibly empty.

    Returns:
        Two-message exchange of system prompt and user question.
    """
    system_prompt = (
        CONTEXT_SYSTEM_PROMPT.format(context=context) if context else GENERIC_SYSTEM_PROMPT
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": question},
    ]


class ChatResponder:
    """Answers questions about a video from its indexed transcript."""

    def __init__(
        self,
        config: VideoRAGConfig,
        embedding_service: EmbeddingService,
        storage_service: StorageService,
        completion_client: CompletionClient,
    ):
        self.config = config
        self.embedding_service = embedding_service
        self.storage_service = storage_service
        self.completion_client = completion_client

    async def retrieve_context(self, question: str, video_id: str | None) -> str:
        """Fetch the most relevant transcript passages for a question.

        Retrieval is best-effort: any failure is logged and yields an empty
        context so the question is still answered.

        Args:
            question: User's question.
            video_id: Video to search; no retrieval happens without one.

        Returns:
            Matched chunk texts in similarity order, separated by blank lines.
        """
        if not video_id:
            return ""

        try:
            vector = await self.embedding_service.embed_text(question)
            matches = await self.storage_service.query(
                vector, top_k=self.config.retrieval_top_k, video_id=video_id
            )
        except Exception as e:
            logger.exception(
                "context_retrieval_failed",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            return ""

        texts = [str(match.metadata.get("text", "")) for match in matches]
        context = "\n\n".join(text for text in texts if text)

        logger.info(
            "context_retrieved",
            video_id=video_id,
            matches=len(matches),
            context_length=len(context),
        )
        return context

    async def answer(
        self, question: str, video_id: str | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream an answer as incremental events.

        Yields ``{"content": fragment}`` for every upstream delta as it is
        decoded and then exactly one ``{"done": True}``, even if the upstream
        ends without a finish signal. Malformed upstream frames are skipped.
        A transport failure raises ``UpstreamUnavailableError`` and no
        ``done`` is emitted.

        Closing the generator early exits the upstream stream context, which
        stops reading and releases the connection.

        Args:
            question: User's question.
            video_id: Optional video to ground the answer in.

        Yields:
            Event payload dicts.
        """
        context = await self.retrieve_context(question, video_id)
        messages = build_messages(question, context)

        logger.info(
            "chat_stream_started",
            video_id=video_id,
            question_length=len(question),
            has_context=bool(context),
        )

        decoder = SSEFrameDecoder()
        fragments = 0

        async with self.completion_client.stream(messages) as upstream:
            async for data in upstream:
                for payload in decoder.feed(data):
                    event, finished = self._parse_frame(payload)
                    if event is not None:
                        fragments += 1
                        yield event
                    if finished:
                        logger.info("chat_stream_completed", fragments=fragments)
                        yield {"done": True}
                        return

            for payload in decoder.flush():
                event, finished = self._parse_frame(payload)
                if event is not None:
                    fragments += 1
                    yield event
                if finished:
                    break

        logger.info("chat_stream_completed", fragments=fragments, finish_signal=False)
        yield {"done": True}

    async def answer_sse(
        self, question: str, video_id: str | None = None
    ) -> AsyncIterator[str]:
        """Stream ``answer`` events encoded as SSE frames."""
        async for event in self.answer(question, video_id):
            yield format_sse_event(event)

    async def answer_once(self, question: str, video_id: str | None = None) -> str:
        """Answer a question with a single non-streamed completion."""
        context = await self.retrieve_context(question, video_id)
        return await self.completion_client.complete(build_messages(question, context))

    @staticmethod
    def _parse_frame(payload: str) -> tuple[dict[str, Any] | None, bool]:
        """Map one upstream ``data:`` payload to an outgoing event.

        Returns:
            Tuple of (content event or None, whether the stream finished).
        """
        if payload.strip() == DONE_SENTINEL:
            return None, True

        try:
            data = json.loads(payload)
            choice = data["choices"][0]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(
                "stream_frame_skipped",
                error_type=type(e).__name__,
                payload_preview=payload[:200],
            )
            return None, False

        if not isinstance(choice, dict):
            logger.warning("stream_frame_skipped", payload_preview=payload[:200])
            return None, False

        delta = choice.get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        event = {"content": content} if content else None
        return event, bool(choice.get("finish_reason"))
