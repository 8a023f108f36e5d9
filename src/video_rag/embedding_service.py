"""Embedding service for generating text embeddings via OpenAI-compatible APIs."""

import asyncio
import math

from openai import AsyncOpenAI

from src.utils.logging import get_logger

from .config import VideoRAGConfig

logger = get_logger(__name__)

EMBEDDING_DIMENSION = 384


def _word_hash(word: str) -> int:
    """Signed 32-bit ``h * 31 + unit`` rolling hash over UTF-16 code units."""
    value = 0
    encoded = word.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return value


def fallback_embedding(text: str, dimension: int = EMBEDDING_DIMENSION) -> list[float]:
    """Build a deterministic bag-of-hashed-words vector.

    Each lowercased word increments one bucket chosen by its hash, then the
    vector is L2-normalized. Cosine similarity between two such vectors
    approximates lexical overlap, not meaning.

    Args:
        text: Text to embed.
        dimension: Vector length.

    Returns:
        Unit-length vector, or all zeros when the text has no words.
    """
    vector = [0.0] * dimension
    for word in text.lower().split():
        vector[abs(_word_hash(word)) % dimension] += 1.0

    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return vector
    return [value / norm for value in vector]


class EmbeddingService:
    """Service for generating text embeddings.

    The primary path calls an OpenAI-compatible embeddings endpoint (OpenAI,
    Ollama, OpenRouter). Any failure there, including a payload with the
    wrong dimension, switches to ``fallback_embedding`` so ingestion and
    retrieval keep working while the provider is down.
    """

    def __init__(self, config: VideoRAGConfig, client: AsyncOpenAI | None = None):
        """Initialize embedding service with configuration.

        Args:
            config: Configuration object with embedding provider settings.
            client: Optional pre-built client, shared by the composition root.
        """
        self.config = config
        self.dimension = config.embedding_dimension
        self.client = client or self._get_client()
        logger.info(
            "embedding_service_initialized",
            provider=config.embedding_provider,
            model=config.embedding_model,
            base_url=config.embedding_base_url,
            dimension=self.dimension,
        )

    def _get_client(self) -> AsyncOpenAI:
        """Initialize OpenAI-compatible client based on provider.

        Returns:
            Configured AsyncOpenAI client instance.
        """
        if self.config.embedding_provider == "ollama":
            # Ollama doesn't require a real API key
            return AsyncOpenAI(
                base_url=self.config.embedding_base_url,
                api_key="ollama",
            )
        # OpenAI, OpenRouter, or other compatible providers
        return AsyncOpenAI(
            base_url=self.config.embedding_base_url,
            api_key=self.config.embedding_api_key,
        )

    async def _embed_remote(self, text: str) -> list[float]:
        kwargs = {}
        if self.config.embedding_provider == "openai":
            kwargs["dimensions"] = self.dimension

        response = await self.client.embeddings.create(
            input=text,
            model=self.config.embedding_model,
            **kwargs,
        )
        if not response.data:
            raise ValueError("Embedding response contained no data")

        embedding = list(response.data[0].embedding)
        if len(embedding) != self.dimension:
            raise ValueError(
                f"Expected embedding of dimension {self.dimension}, got {len(embedding)}"
            )
        return embedding

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text content to embed.

        Returns:
            Embedding vector of the configured dimension. Never raises.
        """
        try:
            embedding = await self._embed_remote(text)
        except Exception as e:
            logger.warning(
                "embedding_fallback_used",
                text_length=len(text),
                error_type=type(e).__name__,
                error=str(e),
            )
            return fallback_embedding(text, self.dimension)

        logger.debug(
            "embedding_generated",
            text_length=len(text),
            embedding_dim=len(embedding),
        )
        return embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts concurrently.

        Args:
            texts: List of text strings to embed.

        Returns:
            List of embedding vectors in the same order as input texts.
        """
        logger.info("batch_embedding_started", count=len(texts))

        embeddings = list(await asyncio.gather(*[self.embed_text(text) for text in texts]))

        logger.info("batch_embedding_completed", total_embeddings=len(embeddings))
        return embeddings
