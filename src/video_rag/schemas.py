"""Pydantic schemas for the video RAG pipeline."""

from typing import Any

from pydantic import BaseModel, Field

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_CHANNEL = "Unknown Channel"


def default_thumbnail_url(video_id: str) -> str:
    """Build the public thumbnail URL YouTube serves for every video."""
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"


class TranscriptFragment(BaseModel):
    """Single timed piece of caption text.

    Fragments are produced in order of ``start_seconds`` and never mutated.
    """

    text: str
    start_seconds: float = 0.0
    duration_seconds: float = 0.0


class VideoMetadata(BaseModel):
    """Best-effort YouTube video metadata.

    Each field is independently present or defaulted. Fields that fell back
    to their default are listed in ``degraded_fields`` so callers can tell a
    real value from a placeholder.
    """

    video_id: str
    title: str = UNKNOWN_TITLE
    description: str = ""
    channel_title: str = UNKNOWN_CHANNEL
    thumbnail_url: str = ""
    duration_seconds: int | None = None
    degraded_fields: list[str] = Field(default_factory=list)

    def index_fields(self) -> dict[str, Any]:
        """Return the fields copied onto every index entry of this video."""
        return {
            "title": self.title,
            "description": self.description,
            "channel_title": self.channel_title,
            "thumbnail_url": self.thumbnail_url,
            "duration_seconds": self.duration_seconds,
        }


class Chunk(BaseModel):
    """Overlapping window of a flattened transcript."""

    video_id: str
    chunk_index: int = Field(ge=0)
    text: str
    source_metadata: dict[str, Any] = Field(default_factory=dict)


class IndexEntry(BaseModel):
    """Vector plus metadata stored in the vector index.

    ``id`` is globally unique and used as the upsert key, so re-processing a
    video overwrites entries with the same chunk index.
    """

    id: str
    vector: list[float]
    metadata: dict[str, Any]

    @staticmethod
    def make_id(video_id: str, chunk_index: int) -> str:
        return f"{video_id}_chunk_{chunk_index}"


class IndexMatch(BaseModel):
    """Single similarity query result."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProcessResult(BaseModel):
    """Result of processing one video into the index."""

    video_id: str
    metadata: VideoMetadata
    chunk_count: int
