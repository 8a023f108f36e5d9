"""Storage service for the namespaced Supabase vector index of video chunks."""

from typing import Any

from supabase import Client

from src.utils.clients import create_supabase_client
from src.utils.logging import get_logger

from .config import VideoRAGConfig
from .errors import IndexQueryError, IndexWriteError
from .schemas import IndexEntry, IndexMatch

logger = get_logger(__name__)

CHUNKS_TABLE = "video_chunks"
INDEXES_TABLE = "video_indexes"
MATCH_FUNCTION = "match_video_chunks"
CREATE_INDEX_FUNCTION = "create_video_index"


class StorageService:
    """Service for storing and searching transcript chunk vectors in Supabase.

    Entries are scoped to a namespace (``config.index_name``) registered in
    the ``video_indexes`` table. The namespace must be provisioned with
    ``create_index`` before use; ``upsert`` and ``query`` never create it.

    The Supabase client is created on first use and reused for the life of
    the service, so build one service at the composition root and share it.
    """

    def __init__(self, config: VideoRAGConfig, client: Client | None = None):
        """Initialize storage service with configuration.

        Args:
            config: Configuration object with Supabase credentials and index name.
            client: Optional pre-built Supabase client.
        """
        self.config = config
        self.namespace = config.index_name
        self._client = client
        logger.info(
            "storage_service_initialized",
            supabase_url=config.supabase_url,
            namespace=self.namespace,
        )

    @property
    def client(self) -> Client:
        """Supabase client, created once on first access.

        Raises:
            ConfigurationError: If Supabase credentials are missing.
        """
        if self._client is None:
            self._client = create_supabase_client(self.config)
        return self._client

    async def create_index(
        self, dimension: int | None = None, metric: str = "cosine"
    ) -> None:
        """Provision the namespace in the vector index.

        Args:
            dimension: Vector dimension (default: configured embedding dimension).
            metric: Similarity metric (default: cosine).

        Raises:
            IndexWriteError: If provisioning fails.
        """
        dimension = dimension or self.config.embedding_dimension
        client = self.client
        try:
            client.rpc(
                CREATE_INDEX_FUNCTION,
                {
                    "index_name": self.namespace,
                    "index_dimension": dimension,
                    "index_metric": metric,
                },
            ).execute()
        except Exception as e:
            logger.exception(
                "index_create_failed",
                namespace=self.namespace,
                error_type=type(e).__name__,
            )
            raise IndexWriteError(f"Failed to create index {self.namespace}") from e

        logger.info(
            "index_created",
            namespace=self.namespace,
            dimension=dimension,
            metric=metric,
        )

    async def index_exists(self) -> bool:
        """Check whether the namespace has been provisioned.

        Raises:
            IndexQueryError: If the lookup fails.
        """
        client = self.client
        try:
            response = (
                client.table(INDEXES_TABLE)
                .select("name")
                .eq("name", self.namespace)
                .execute()
            )
        except Exception as e:
            logger.exception(
                "index_lookup_failed",
                namespace=self.namespace,
                error_type=type(e).__name__,
            )
            raise IndexQueryError(f"Failed to look up index {self.namespace}") from e

        return bool(response.data)

    async def upsert(self, entries: list[IndexEntry]) -> None:
        """Insert or replace entries by id in one batch.

        Writing an existing id replaces its vector and metadata. A failed
        batch fails as a whole; nothing is retried.

        Args:
            entries: Index entries to write.

        Raises:
            IndexWriteError: If the write fails.
        """
        if not entries:
            return

        rows = [
            {
                "namespace": self.namespace,
                "id": entry.id,
                "video_id": entry.metadata.get("video_id"),
                "embedding": entry.vector,
                "metadata": entry.metadata,
            }
            for entry in entries
        ]

        client = self.client
        try:
            client.table(CHUNKS_TABLE).upsert(rows, on_conflict="namespace,id").execute()
        except Exception as e:
            logger.exception(
                "chunks_upsert_failed",
                count=len(entries),
                namespace=self.namespace,
                error_type=type(e).__name__,
            )
            raise IndexWriteError(f"Failed to upsert {len(entries)} entries") from e

        logger.info(
            "chunks_upserted",
            count=len(entries),
            namespace=self.namespace,
            video_id=rows[0]["video_id"],
        )

    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        video_id: str | None = None,
    ) -> list[IndexMatch]:
        """Search for the most similar entries.

        Args:
            vector: Query embedding.
            top_k: Maximum number of matches (default: 5).
            video_id: Restrict matches to this video when given.

        Returns:
            Matches ordered by descending similarity.

        Raises:
            IndexQueryError: If the search fails.
        """
        params: dict[str, Any] = {
            "query_embedding": vector,
            "match_count": top_k,
            "filter_namespace": self.namespace,
            "filter_video_id": video_id,
        }

        client = self.client
        try:
            response = client.rpc(MATCH_FUNCTION, params).execute()
        except Exception as e:
            logger.exception(
                "vector_search_failed",
                namespace=self.namespace,
                video_id=video_id,
                error_type=type(e).__name__,
            )
            raise IndexQueryError("Vector search failed") from e

        matches = [
            IndexMatch(
                id=row["id"],
                score=float(row.get("similarity", 0.0)),
                metadata=row.get("metadata") or {},
            )
            for row in response.data or []
        ]
        matches.sort(key=lambda match: match.score, reverse=True)

        logger.info(
            "vector_search_completed",
            results=len(matches),
            top_k=top_k,
            video_id=video_id,
        )
        return matches

    async def delete_video(self, video_id: str) -> int:
        """Delete every entry of one video from the namespace.

        Re-processing a video only overwrites entries by id, so chunks beyond
        a shorter new transcript stay behind until removed with this.

        Args:
            video_id: Video whose entries should be removed.

        Returns:
            Number of entries deleted.

        Raises:
            IndexWriteError: If the delete fails.
        """
        client = self.client
        try:
            response = (
                client.table(CHUNKS_TABLE)
                .delete()
                .eq("namespace", self.namespace)
                .eq("video_id", video_id)
                .execute()
            )
        except Exception as e:
            logger.exception(
                "video_delete_failed",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            raise IndexWriteError(f"Failed to delete entries for {video_id}") from e

        deleted = len(response.data or [])
        logger.info("video_deleted", video_id=video_id, deleted=deleted)
        return deleted
