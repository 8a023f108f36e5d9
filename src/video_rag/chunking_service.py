"""Chunking service for fixed-size overlapping transcript windows."""

from typing import Any

from src.utils.logging import get_logger

from .config import VideoRAGConfig
from .errors import InvalidChunkConfigError
from .schemas import Chunk

logger = get_logger(__name__)


def validate_chunk_config(chunk_size: int, overlap: int) -> None:
    """Check that a chunk configuration advances the cursor.

    Raises:
        InvalidChunkConfigError: If ``chunk_size`` is not positive or
            ``overlap`` is negative or not smaller than ``chunk_size``.
    """
    if chunk_size <= 0:
        raise InvalidChunkConfigError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise InvalidChunkConfigError(
            f"overlap must be in [0, chunk_size), got overlap={overlap} chunk_size={chunk_size}"
        )


def split_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split text into windows of ``chunk_size`` characters.

    Each window after the first starts ``chunk_size - overlap`` characters
    after the previous one, so consecutive windows share exactly ``overlap``
    characters. The last window may be shorter.

    Args:
        text: Flattened transcript.
        chunk_size: Window length in characters.
        overlap: Characters shared by consecutive windows.

    Returns:
        Ordered windows; ``[]`` for empty text, ``[text]`` for short text.

    Raises:
        InvalidChunkConfigError: If the configuration cannot make progress.

    Examples:
        >>> split_text("abcdefghij", chunk_size=4, overlap=1)
        ['abcd', 'defg', 'ghij']
    """
    validate_chunk_config(chunk_size, overlap)

    chunks: list[str] = []
    step = chunk_size - overlap
    cursor = 0
    length = len(text)

    while cursor < length:
        end = min(cursor + chunk_size, length)
        chunks.append(text[cursor:end])
        if end >= length:
            break
        cursor += step

    return chunks


class ChunkingService:
    """Service for chunking flattened transcripts into indexable windows."""

    def __init__(self, config: VideoRAGConfig):
        """Initialize chunking service with configuration.

        Args:
            config: Configuration object with chunk size and overlap.

        Raises:
            InvalidChunkConfigError: If the configured size and overlap are invalid.
        """
        validate_chunk_config(config.chunk_size, config.chunk_overlap)
        self.config = config
        logger.info(
            "chunking_service_initialized",
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
        )

    def chunk_transcript(
        self,
        video_id: str,
        text: str,
        source_metadata: dict[str, Any] | None = None,
    ) -> list[Chunk]:
        """Chunk a flattened transcript for one video.

        Args:
            video_id: Video the transcript belongs to.
            text: Flattened transcript text.
            source_metadata: Metadata attached to every chunk.

        Returns:
            Chunks numbered from 0 in transcript order.
        """
        windows = split_text(text, self.config.chunk_size, self.config.chunk_overlap)

        chunks = [
            Chunk(
                video_id=video_id,
                chunk_index=index,
                text=window,
                source_metadata=dict(source_metadata or {}),
            )
            for index, window in enumerate(windows)
        ]

        logger.info(
            "chunking_completed",
            video_id=video_id,
            text_length=len(text),
            chunks_created=len(chunks),
        )
        return chunks
