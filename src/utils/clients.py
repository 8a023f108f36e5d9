"""Client initialization utilities.

Provides functions for initializing external service clients (Supabase,
httpx) shared by the ingestion pipeline and the chat responder.
"""

import httpx
from supabase import Client, create_client

from src.video_rag.config import VideoRAGConfig
from src.video_rag.errors import ConfigurationError


def create_supabase_client(config: VideoRAGConfig) -> Client:
    """Create the Supabase client backing the vector index.

    Args:
        config: Configuration with ``supabase_url`` and ``supabase_key``.

    Returns:
        Supabase client instance.

    Raises:
        ConfigurationError: If the URL or service key is missing.
    """
    if not config.supabase_url or not config.supabase_key:
        raise ConfigurationError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables are required"
        )

    return create_client(config.supabase_url, config.supabase_key)


def create_http_client(config: VideoRAGConfig) -> httpx.AsyncClient:
    """Create the shared async HTTP client used for chat completions.

    The client holds the only timeout applied to upstream completion calls.

    Args:
        config: Configuration with ``llm_timeout_seconds``.

    Returns:
        httpx.AsyncClient that the caller must close.
    """
    timeout = httpx.Timeout(config.llm_timeout_seconds, connect=10.0)
    return httpx.AsyncClient(timeout=timeout)
