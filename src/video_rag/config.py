"""Configuration module for the YouTube video RAG pipeline."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


class VideoRAGConfig(BaseModel):
    """Configuration for the video RAG pipeline and chat responder.

    This configuration class manages all settings for transcript fetching,
    chunking, embedding, vector index storage, and chat completion. All
    settings can be overridden via environment variables.
    """

    # Supadata API settings
    supadata_api_key: str = Field(
        default_factory=lambda: os.getenv("SUPADATA_API_KEY", "")
    )

    # Chunking settings (character-based)
    chunk_size: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_SIZE", "1000"))
    )
    chunk_overlap: int = Field(
        default_factory=lambda: int(os.getenv("CHUNK_OVERLAP", "200"))
    )

    # Embedding settings
    embedding_provider: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_PROVIDER", "openai")
    )
    embedding_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_BASE_URL", "https://api.openai.com/v1"
        )
    )
    embedding_api_key: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_API_KEY", "")
    )
    embedding_model: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_MODEL_CHOICE", "text-embedding-3-small"
        )
    )
    embedding_dimension: int = Field(
        default_factory=lambda: int(os.getenv("EMBEDDING_DIMENSION", "384"))
    )

    # Vector index settings (Supabase pgvector)
    supabase_url: str = Field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_KEY", "")
    )
    index_name: str = Field(
        default_factory=lambda: os.getenv("VECTOR_INDEX_NAME", "youtube-videos")
    )
    retrieval_top_k: int = Field(
        default_factory=lambda: int(os.getenv("RETRIEVAL_TOP_K", "3"))
    )

    # Chat completion settings (OpenAI-compatible endpoint)
    llm_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "LLM_BASE_URL", "https://api.cerebras.ai/v1"
        )
    )
    llm_api_key: str = Field(default_factory=lambda: os.getenv("LLM_API_KEY", ""))
    llm_model: str = Field(
        default_factory=lambda: os.getenv("LLM_CHOICE", "llama-3.1-8b-instruct")
    )
    llm_temperature: float = Field(
        default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.7"))
    )
    llm_max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "1000"))
    )
    llm_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
    )


def get_config() -> VideoRAGConfig:
    """Get validated configuration instance.

    Returns:
        VideoRAGConfig: Validated configuration object with all settings.

    Raises:
        ValidationError: If environment variables hold values of the wrong type.
    """
    return VideoRAGConfig()
