"""YouTube service for resolving videos and fetching transcripts via Supadata API."""

import asyncio
import re
from typing import Any

from supadata import Supadata

from src.utils.logging import get_logger

from .config import VideoRAGConfig
from .errors import InvalidReferenceError, TranscriptUnavailableError
from .schemas import (
    UNKNOWN_CHANNEL,
    UNKNOWN_TITLE,
    TranscriptFragment,
    VideoMetadata,
    default_thumbnail_url,
)

logger = get_logger(__name__)

# Tried in order, first match wins
_VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#/]+)"),
    re.compile(r"youtube\.com/(?:v|shorts)/([^&\n?#/]+)"),
    re.compile(r"youtube\.com/watch\?.*?\bv=([^&\n?#]+)"),
]

_WHITESPACE = re.compile(r"\s+")


def resolve_video_id(url_or_id: str) -> str:
    """Extract the YouTube video id from a URL, or accept a bare id.

    Input that mentions neither ``youtube.com`` nor ``youtu.be`` is treated
    as an id already and returned unchanged. This is a loose heuristic, not
    validation.

    Args:
        url_or_id: Watch, short, embed URL or bare video id.

    Returns:
        The video id.

    Raises:
        InvalidReferenceError: If the input is empty, or is a YouTube URL
            that none of the known shapes match.

    Examples:
        >>> resolve_video_id("https://www.youtube.com/watch?v=abc123&t=30s")
        'abc123'
        >>> resolve_video_id("https://youtu.be/abc123")
        'abc123'
    """
    candidate = (url_or_id or "").strip()
    if not candidate:
        raise InvalidReferenceError("Video URL or id is empty")

    if "youtube.com" not in candidate and "youtu.be" not in candidate:
        return candidate

    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return match.group(1)

    raise InvalidReferenceError(f"Could not extract a video id from {candidate!r}")


def flatten_transcript(fragments: list[TranscriptFragment]) -> str:
    """Join fragment texts into single-spaced text.

    Args:
        fragments: Transcript fragments in playback order.

    Returns:
        Whitespace-normalized transcript, ``""`` for no fragments.
    """
    joined = " ".join(fragment.text for fragment in fragments)
    return _WHITESPACE.sub(" ", joined).strip()


def _field(source: Any, name: str) -> Any:
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


class YouTubeService:
    """Service for fetching YouTube transcripts and metadata via Supadata API.

    Supadata's SDK is synchronous, so calls run in worker threads to let the
    pipeline fetch metadata and transcript concurrently.
    """

    def __init__(self, config: VideoRAGConfig):
        """Initialize YouTube service with configuration.

        Args:
            config: Configuration object with Supadata API key.
        """
        self.config = config
        self.client = Supadata(api_key=config.supadata_api_key)
        logger.info(
            "youtube_service_initialized",
            api_key_present=bool(config.supadata_api_key),
        )

    async def fetch_transcript(self, video_id: str) -> list[TranscriptFragment]:
        """Fetch timed transcript fragments for a video.

        Args:
            video_id: YouTube video id.

        Returns:
            Fragments ordered by start offset.

        Raises:
            TranscriptUnavailableError: If the video has no captions or the
                transcript request fails.
        """
        logger.info("fetching_transcript", video_id=video_id)

        try:
            response = await asyncio.to_thread(
                self.client.youtube.transcript,
                video_id=video_id,
                text=False,  # Segments with timestamps instead of plain text
            )
        except Exception as e:
            error_str = str(e).lower()
            if "transcript-unavailable" in error_str or "206" in error_str:
                logger.warning("transcript_unavailable", video_id=video_id)
            else:
                logger.exception(
                    "transcript_fetch_error",
                    video_id=video_id,
                    error_type=type(e).__name__,
                )
            raise TranscriptUnavailableError(
                f"Transcript unavailable for video {video_id}"
            ) from e

        content = getattr(response, "content", None)
        if not isinstance(content, list):
            logger.warning("transcript_unavailable", video_id=video_id, reason="no_segments")
            raise TranscriptUnavailableError(f"Transcript unavailable for video {video_id}")

        # Supadata reports offsets and durations in milliseconds
        fragments = [
            TranscriptFragment(
                text=segment.text,
                start_seconds=float(segment.offset) / 1000,
                duration_seconds=float(segment.duration) / 1000,
            )
            for segment in content
        ]
        fragments.sort(key=lambda fragment: fragment.start_seconds)

        logger.info(
            "transcript_fetched",
            video_id=video_id,
            fragments=len(fragments),
            lang=getattr(response, "lang", None),
        )
        return fragments

    async def fetch_metadata(self, video_id: str) -> VideoMetadata:
        """Fetch video metadata, degrading each field independently.

        Metadata is supplementary, so this never raises. Fields missing from
        the response, or every field when the request fails, fall back to
        placeholders and are listed in ``degraded_fields``.

        Args:
            video_id: YouTube video id.

        Returns:
            VideoMetadata with real or placeholder values.
        """
        try:
            video = await asyncio.to_thread(self.client.youtube.video, id=video_id)
        except Exception as e:
            logger.warning(
                "metadata_fetch_failed",
                video_id=video_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            video = None

        degraded: list[str] = []

        def pick(value: Any, default: Any, field_name: str) -> Any:
            if value in (None, ""):
                degraded.append(field_name)
                return default
            return value

        channel = _field(video, "channel") if video is not None else None
        channel_name = _field(channel, "name") if channel is not None else None
        duration = _field(video, "duration") if video is not None else None

        metadata = VideoMetadata(
            video_id=video_id,
            title=pick(_field(video, "title") if video else None, UNKNOWN_TITLE, "title"),
            description=pick(
                _field(video, "description") if video else None, "", "description"
            ),
            channel_title=pick(channel_name, UNKNOWN_CHANNEL, "channel_title"),
            thumbnail_url=pick(
                _field(video, "thumbnail") if video else None,
                default_thumbnail_url(video_id),
                "thumbnail_url",
            ),
            duration_seconds=pick(
                int(duration) if isinstance(duration, (int, float)) else None,
                None,
                "duration_seconds",
            ),
            degraded_fields=degraded,
        )

        logger.info(
            "metadata_fetched",
            video_id=video_id,
            title=metadata.title,
            degraded_fields=degraded,
        )
        return metadata
