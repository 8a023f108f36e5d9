"""Command-line interface for processing videos and asking questions about them."""

import argparse
import asyncio
import sys

from src.chat.completion_client import CompletionClient
from src.chat.responder import ChatResponder
from src.utils.clients import create_http_client
from src.utils.logging import get_logger

from .config import VideoRAGConfig, get_config
from .embedding_service import EmbeddingService
from .errors import VideoRAGError
from .pipeline import VideoIngestionPipeline
from .storage_service import StorageService

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="YouTube Video Chat - index video transcripts and ask questions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Provision the vector index namespace (once)
  python -m src.video_rag.cli init-index

  # Process a video
  python -m src.video_rag.cli process "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

  # Ask a question about a processed video
  python -m src.video_rag.cli ask "What is this video about?" --video-id dQw4w9WgXcQ
        """,
    )
    parser.add_argument(
        "--index-name",
        type=str,
        help="Override vector index namespace from environment",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-index", help="Create the vector index namespace")

    process = subparsers.add_parser("process", help="Fetch, chunk and index a video")
    process.add_argument("video", help="YouTube URL or video id")

    ask = subparsers.add_parser("ask", help="Ask a question about a video")
    ask.add_argument("question", help="Question to answer")
    ask.add_argument("--video-id", type=str, help="Ground the answer in this video")
    ask.add_argument(
        "--no-stream",
        action="store_true",
        help="Wait for the full answer instead of streaming tokens",
    )

    return parser


async def init_index(config: VideoRAGConfig) -> None:
    storage = StorageService(config)
    if await storage.index_exists():
        print(f"Index '{config.index_name}' already exists")
        return
    await storage.create_index()
    print(f"✅ Index '{config.index_name}' created ({config.embedding_dimension} dims, cosine)")


async def process(config: VideoRAGConfig, video: str) -> None:
    pipeline = VideoIngestionPipeline(config)
    result = await pipeline.process_video(video)

    print("\n" + "=" * 60)
    print("Video processed")
    print("=" * 60)
    print(f"Video ID: {result.video_id}")
    print(f"Title: {result.metadata.title}")
    print(f"Channel: {result.metadata.channel_title}")
    print(f"Chunks indexed: {result.chunk_count}")
    if result.metadata.degraded_fields:
        print(f"Missing metadata: {', '.join(result.metadata.degraded_fields)}")
    print("=" * 60 + "\n")


async def ask(
    config: VideoRAGConfig, question: str, video_id: str | None, stream: bool
) -> None:
    http_client = create_http_client(config)
    try:
        responder = ChatResponder(
            config,
            embedding_service=EmbeddingService(config),
            storage_service=StorageService(config),
            completion_client=CompletionClient(config, http_client),
        )

        if not stream:
            print(await responder.answer_once(question, video_id))
            return

        async for event in responder.answer(question, video_id):
            if "content" in event:
                print(event["content"], end="", flush=True)
        print()
    finally:
        await http_client.aclose()


async def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)

    config = get_config()
    if args.index_name:
        config.index_name = args.index_name

    logger.info("cli_started", command=args.command, namespace=config.index_name)

    try:
        if args.command == "init-index":
            await init_index(config)
        elif args.command == "process":
            await process(config, args.video)
        elif args.command == "ask":
            await ask(config, args.question, args.video_id, stream=not args.no_stream)
    except VideoRAGError as e:
        logger.exception("cli_command_failed", command=args.command, error_type=type(e).__name__)
        print(f"\n❌ {e.user_message}: {e}")
        return 1

    logger.info("cli_completed", command=args.command)
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
