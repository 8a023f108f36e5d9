"""Client for an OpenAI-compatible chat completion endpoint over httpx."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from src.utils.logging import get_logger
from src.video_rag.config import VideoRAGConfig
from src.video_rag.errors import UpstreamUnavailableError

logger = get_logger(__name__)


class CompletionClient:
    """Calls ``{llm_base_url}/chat/completions`` in streaming or single-shot mode.

    No retries are performed; the shared ``httpx.AsyncClient`` owns timeouts.
    """

    def __init__(self, config: VideoRAGConfig, http_client: httpx.AsyncClient):
        """Initialize completion client.

        Args:
            config: Configuration with LLM endpoint, key, model and sampling settings.
            http_client: Shared async HTTP client.
        """
        self.config = config
        self.http_client = http_client
        self.url = f"{config.llm_base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.llm_api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: list[dict[str, str]], stream: bool) -> dict[str, Any]:
        return {
            "model": self.config.llm_model,
            "messages": messages,
            "max_tokens": self.config.llm_max_tokens,
            "temperature": self.config.llm_temperature,
            "stream": stream,
        }

    @asynccontextmanager
    async def stream(
        self, messages: list[dict[str, str]]
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streaming completion and yield its raw byte iterator.

        Leaving the context closes the upstream response and releases the
        connection, whether or not the body was fully read.

        Args:
            messages: Chat messages to send.

        Yields:
            Async iterator over raw response bytes.

        Raises:
            UpstreamUnavailableError: If the request fails or returns non-2xx.
        """
        try:
            async with self.http_client.stream(
                "POST",
                self.url,
                headers=self._headers(),
                json=self._payload(messages, stream=True),
            ) as response:
                if response.status_code >= 400:
                    logger.error(
                        "completion_stream_rejected",
                        status_code=response.status_code,
                        model=self.config.llm_model,
                    )
                    raise UpstreamUnavailableError(
                        f"Completion endpoint returned HTTP {response.status_code}"
                    )

                logger.info("completion_stream_opened", model=self.config.llm_model)
                yield response.aiter_bytes()
        except httpx.HTTPError as e:
            logger.exception(
                "completion_stream_failed",
                model=self.config.llm_model,
                error_type=type(e).__name__,
            )
            raise UpstreamUnavailableError("Completion stream failed") from e

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Request a single, non-streamed completion.

        Args:
            messages: Chat messages to send.

        Returns:
            Content of the first choice.

        Raises:
            UpstreamUnavailableError: If the request fails, returns non-2xx,
                or the body has no message content.
        """
        try:
            response = await self.http_client.post(
                self.url,
                headers=self._headers(),
                json=self._payload(messages, stream=False),
            )
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.exception(
                "completion_failed",
                model=self.config.llm_model,
                error_type=type(e).__name__,
            )
            raise UpstreamUnavailableError("Completion request failed") from e

        logger.info("completion_received", model=self.config.llm_model, length=len(content))
        return content
