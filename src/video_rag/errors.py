"""Error taxonomy for the video RAG pipeline and chat responder.

Every error carries a short ``user_message`` that is safe to return to API
callers. The original exception detail is logged where it is caught, never
forwarded.
"""


class VideoRAGError(Exception):
    """Base class for all pipeline errors."""

    user_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)


class ConfigurationError(VideoRAGError):
    """Required credentials or settings are missing. Not retried."""

    user_message = "Service is not configured"


class InvalidInputError(VideoRAGError):
    """A request field is missing or malformed."""

    user_message = "Invalid request"


class InvalidReferenceError(InvalidInputError):
    """A video URL could not be resolved to a video id."""

    user_message = "Invalid YouTube URL"


class UpstreamUnavailableError(VideoRAGError):
    """An external service (transcripts, embeddings, completions, index) failed."""

    user_message = "Failed to process request"


class IndexWriteError(UpstreamUnavailableError):
    """Upserting a batch of entries into the vector index failed."""

    user_message = "Failed to process video"


class IndexQueryError(UpstreamUnavailableError):
    """Similarity query against the vector index failed."""

    user_message = "Failed to search video content"


class StreamFrameError(UpstreamUnavailableError):
    """The upstream event stream sent a frame larger than the decoder allows."""

    user_message = "Failed to process chat message"


class TranscriptUnavailableError(VideoRAGError):
    """The video has no captions or the transcript source failed."""

    user_message = "Transcript is not available for this video"


class InvalidChunkConfigError(VideoRAGError, ValueError):
    """Chunk size and overlap would not make progress."""

    user_message = "Invalid chunk configuration"
