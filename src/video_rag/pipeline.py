"""Ingestion orchestrator that turns a YouTube video into indexed chunks."""

import asyncio
from datetime import UTC, datetime

from src.utils.logging import get_logger

from .chunking_service import ChunkingService
from .config import VideoRAGConfig, get_config
from .embedding_service import EmbeddingService
from .errors import TranscriptUnavailableError
from .schemas import IndexEntry, ProcessResult
from .storage_service import StorageService
from .youtube_service import YouTubeService, flatten_transcript, resolve_video_id

logger = get_logger(__name__)


class VideoIngestionPipeline:
    """Orchestrates processing of a single video into the vector index.

    This class coordinates the services to resolve a video, fetch its
    transcript and metadata, chunk and embed the transcript, and upsert the
    resulting entries. Services can be injected so the composition root
    shares one storage and embedding client across requests.
    """

    def __init__(
        self,
        config: VideoRAGConfig | None = None,
        youtube_service: YouTubeService | None = None,
        chunking_service: ChunkingService | None = None,
        embedding_service: EmbeddingService | None = None,
        storage_service: StorageService | None = None,
    ):
        """Initialize pipeline with all required services.

        Args:
            config: Configuration object. If None, loads from environment.
            youtube_service: Transcript and metadata source.
            chunking_service: Transcript chunker.
            embedding_service: Embedding provider.
            storage_service: Vector index client.
        """
        self.config = config or get_config()
        self.youtube_service = youtube_service or YouTubeService(self.config)
        self.chunking_service = chunking_service or ChunkingService(self.config)
        self.embedding_service = embedding_service or EmbeddingService(self.config)
        self.storage_service = storage_service or StorageService(self.config)

        logger.info(
            "pipeline_initialized",
            namespace=self.config.index_name,
            chunk_size=self.config.chunk_size,
            chunk_overlap=self.config.chunk_overlap,
        )

    async def process_video(self, url_or_id: str) -> ProcessResult:
        """Process one video through the complete pipeline.

        This method:
        1. Resolves the video id and fetches metadata and transcript concurrently
        2. Flattens the transcript
        3. Chunks it into overlapping windows
        4. Embeds every chunk concurrently
        5. Upserts all entries in one batch

        The call is not transactional: entries from an earlier failed run are
        not rolled back, and re-running overwrites entries by chunk index.

        Args:
            url_or_id: YouTube URL or bare video id.

        Returns:
            ProcessResult with the video id, metadata and chunk count.

        Raises:
            InvalidReferenceError: If the URL cannot be resolved.
            TranscriptUnavailableError: If there is no usable transcript.
            IndexWriteError: If the upsert fails.
        """
        video_id = resolve_video_id(url_or_id)
        logger.info("processing_video", video_id=video_id)

        metadata, fragments = await asyncio.gather(
            self.youtube_service.fetch_metadata(video_id),
            self.youtube_service.fetch_transcript(video_id),
        )

        text = flatten_transcript(fragments)
        if not text:
            logger.warning("transcript_empty", video_id=video_id, fragments=len(fragments))
            raise TranscriptUnavailableError(f"Transcript for video {video_id} is empty")

        chunks = self.chunking_service.chunk_transcript(
            video_id, text, source_metadata=metadata.index_fields()
        )

        embeddings = await self.embedding_service.embed_batch([chunk.text for chunk in chunks])

        processed_at = datetime.now(UTC).isoformat()
        entries = [
            IndexEntry(
                id=IndexEntry.make_id(video_id, chunk.chunk_index),
                vector=embedding,
                metadata={
                    **chunk.source_metadata,
                    "video_id": video_id,
                    "chunk_index": chunk.chunk_index,
                    "text": chunk.text,
                    "processed_at": processed_at,
                },
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]

        await self.storage_service.upsert(entries)

        logger.info("video_processed", video_id=video_id, chunks=len(entries))
        return ProcessResult(video_id=video_id, metadata=metadata, chunk_count=len(entries))
