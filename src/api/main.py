"""FastAPI application for YouTube video chat.

Exposes the two operations the web UI and browser extension call: process a
video into the vector index, and ask a question about a video with the
answer streamed as server-sent events.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from src.chat.completion_client import CompletionClient
from src.chat.responder import ChatResponder
from src.chat.sse import format_sse_event
from src.utils.clients import create_http_client
from src.utils.logging import get_logger
from src.video_rag.config import get_config
from src.video_rag.embedding_service import EmbeddingService
from src.video_rag.errors import InvalidInputError, VideoRAGError
from src.video_rag.pipeline import VideoIngestionPipeline
from src.video_rag.storage_service import StorageService

logger = get_logger(__name__)

# Global services initialized in lifespan
pipeline: VideoIngestionPipeline | None = None
responder: ChatResponder | None = None
http_client = None

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


# ==============================================================================
# Lifespan Management
# ==============================================================================


async def lifespan(app: FastAPI):  # type: ignore[misc]
    """Lifecycle manager for the FastAPI application.

    Builds every shared client once and wires them into the pipeline and the
    chat responder.
    """
    global pipeline, responder, http_client

    logger.info("application_startup_started")

    try:
        config = get_config()
        http_client = create_http_client(config)
        embedding_service = EmbeddingService(config)
        storage_service = StorageService(config)

        pipeline = VideoIngestionPipeline(
            config,
            embedding_service=embedding_service,
            storage_service=storage_service,
        )
        responder = ChatResponder(
            config,
            embedding_service=embedding_service,
            storage_service=storage_service,
            completion_client=CompletionClient(config, http_client),
        )

        logger.info(
            "application_startup_completed",
            services=["pipeline", "responder", "http"],
        )

    except Exception:
        logger.exception("application_startup_failed")
        raise

    yield  # Application runs here

    logger.info("application_shutdown_started")

    if http_client:
        await http_client.aclose()
    await embedding_service.client.close()

    logger.info("application_shutdown_completed")


# ==============================================================================
# FastAPI Application Setup
# ==============================================================================

app = FastAPI(
    title="YouTube Video Chat API",
    description="Process YouTube videos and chat about them with streaming answers",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==============================================================================
# Request Models
# ==============================================================================


class ProcessVideoRequest(BaseModel):
    """Request model for the process video endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    video_url: str | None = Field(default=None, alias="videoUrl")


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    video_id: str | None = Field(default=None, alias="videoId")


# ==============================================================================
# Helper Functions
# ==============================================================================


def error_response(error: VideoRAGError) -> JSONResponse:
    """Map a pipeline error to a client or server error response.

    Only the error's ``user_message`` is returned; details stay in the logs.
    """
    status_code = 400 if isinstance(error, InvalidInputError) else 500
    return JSONResponse({"error": error.user_message}, status_code=status_code)


async def relay_events(
    first_event: dict, events: AsyncIterator[dict]
) -> AsyncIterator[str]:
    """Encode an already-started event stream as SSE frames.

    The stream is closed on exit, including client disconnects, so the
    upstream completion connection is released.
    """
    try:
        yield format_sse_event(first_event)
        async for event in events:
            yield format_sse_event(event)
    except VideoRAGError:
        logger.exception("chat_stream_aborted")
        raise
    finally:
        await events.aclose()


# ==============================================================================
# API Endpoints
# ==============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        Health status and timestamp.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": {
            "pipeline": pipeline is not None,
            "responder": responder is not None,
            "http_client": http_client is not None,
        },
    }


@app.post("/api/video/process")
async def process_video_endpoint(request: ProcessVideoRequest):
    """Fetch, chunk, embed and index a video's transcript.

    Args:
        request: Request carrying a YouTube URL or video id.

    Returns:
        Video summary and chunk count, or an error object.
    """
    if not request.video_url or not request.video_url.strip():
        return JSONResponse({"error": "Video URL is required"}, status_code=400)

    if pipeline is None:
        logger.error("process_video_rejected", reason="pipeline_not_initialized")
        return JSONResponse({"error": "Service is not ready"}, status_code=500)

    logger.info("process_video_request_started", video_url=request.video_url)

    try:
        result = await pipeline.process_video(request.video_url)
    except VideoRAGError as e:
        logger.exception(
            "process_video_request_failed",
            video_url=request.video_url,
            error_type=type(e).__name__,
        )
        return error_response(e)
    except Exception:
        logger.exception("process_video_request_failed", video_url=request.video_url)
        return JSONResponse({"error": "Failed to process video"}, status_code=500)

    metadata = result.metadata
    return {
        "success": True,
        "videoId": result.video_id,
        "title": metadata.title,
        "channelTitle": metadata.channel_title,
        "thumbnail": metadata.thumbnail_url,
        "chunkCount": result.chunk_count,
        "message": "Video processed successfully",
    }


@app.post("/api/chat")
async def chat_endpoint(request: ChatRequest):
    """Answer a question about a video as a server-sent event stream.

    The upstream completion is opened before the response starts so an
    unavailable provider returns a JSON error instead of an empty stream.

    Args:
        request: Request carrying the message and optional video id.

    Returns:
        StreamingResponse of ``data: {...}`` frames, or an error object.
    """
    if not request.message or not request.message.strip():
        return JSONResponse({"error": "Message is required"}, status_code=400)

    if responder is None:
        logger.error("chat_request_rejected", reason="responder_not_initialized")
        return JSONResponse({"error": "Service is not ready"}, status_code=500)

    logger.info(
        "chat_request_started",
        video_id=request.video_id,
        message_length=len(request.message),
    )

    events = responder.answer(request.message, request.video_id)
    try:
        first_event = await anext(events)
    except VideoRAGError as e:
        logger.exception("chat_request_failed", error_type=type(e).__name__)
        await events.aclose()
        return error_response(e)
    except Exception:
        logger.exception("chat_request_failed")
        await events.aclose()
        return JSONResponse({"error": "Failed to process chat message"}, status_code=500)

    return StreamingResponse(
        relay_events(first_event, events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
