"""Script to remove every indexed chunk of one video.

Re-processing a video overwrites entries by chunk index but never deletes
trailing chunks from an older, longer transcript. This script:
1. Deletes all chunks of the given video from the index namespace
2. Lets you re-run the pipeline for a clean index of that video
"""

import argparse
import asyncio

from src.video_rag.config import get_config
from src.video_rag.storage_service import StorageService
from src.video_rag.youtube_service import resolve_video_id


async def clear_video(video: str, assume_yes: bool = False) -> None:
    """Delete indexed chunks for a video after confirmation."""
    config = get_config()
    video_id = resolve_video_id(video)
    storage = StorageService(config)

    print(f"This will DELETE all chunks of video '{video_id}'")
    print(f"  from index namespace '{config.index_name}'")

    if not assume_yes:
        confirm = input("\nAre you sure? Type 'yes' to continue: ")
        if confirm.lower() != "yes":
            print("Aborted")
            return

    deleted = await storage.delete_video(video_id)

    print(f"\nDone! Deleted {deleted} chunks. You can now re-process the video:")
    print(f"  uv run python -m src.video_rag.cli process {video_id}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("video", help="YouTube URL or video id")
    parser.add_argument("--yes", action="store_true", help="Skip confirmation prompt")
    args = parser.parse_args()

    asyncio.run(clear_video(args.video, assume_yes=args.yes))
