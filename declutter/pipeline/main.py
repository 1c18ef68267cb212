"""Command-line interface for decluttering a photo directory."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List

from tqdm import tqdm

from ..config import Settings
from ..embedding.provider import build_embedding_provider
from ..scanner.scanner import discover_images
from ..selection.store import AppState
from .report import build_report
from .session import PhotoSession


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def run(
    session: PhotoSession,
    image_files: List[Path],
) -> AppState:
    with tqdm(total=len(image_files), desc="Analyzing photos") as pbar:
        return await session.add_photos(image_files, on_analyzed=lambda _: pbar.update(1))


def main():
    """Main CLI entry point."""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(
        description="Group similar photos, score their quality and pick keepers"
    )
    parser.add_argument(
        "directory",
        type=Path,
        help="Directory containing photos",
    )
    parser.add_argument(
        "--no-recursive",
        action="store_true",
        help="Do not scan subdirectories",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of images to process (for testing)",
    )
    parser.add_argument(
        "--similarity-threshold",
        type=float,
        default=settings.similarity_threshold,
        help=f"Cosine similarity needed to join a group (default: {settings.similarity_threshold})",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=settings.model_name,
        help=f"CLIP model to use (default: {settings.model_name})",
    )
    parser.add_argument(
        "--pretrained",
        type=str,
        default=settings.pretrained,
        help=f"Pretrained weights (default: {settings.pretrained})",
    )
    parser.add_argument(
        "--inference-mode",
        choices=["local", "remote"],
        default=settings.inference_mode,
        help="Run the model in-process or call the inference service",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.max_workers,
        help="Number of parallel analysis workers",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("declutter_report.json"),
        help="Where to write the JSON report",
    )
    parser.add_argument(
        "--export",
        type=Path,
        default=None,
        help="Copy the auto-selected keepers into this directory",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    if not args.directory.is_dir():
        logger.error(f"Directory not found: {args.directory}")
        sys.exit(1)

    image_files = discover_images(args.directory, recursive=not args.no_recursive, limit=args.limit)
    if not image_files:
        sys.exit(1)

    settings.model_name = args.model
    settings.pretrained = args.pretrained
    settings.inference_mode = args.inference_mode

    provider = build_embedding_provider(settings)
    session = PhotoSession(
        provider,
        similarity_threshold=args.similarity_threshold,
        max_workers=args.workers,
    )
    try:
        state = asyncio.run(run(session, image_files))

        report = build_report(state)
        with open(args.output, "w") as f:
            json.dump(report, f, indent=2)

        logger.info(
            f"{len(state.photos)} photos: {len(state.groups)} groups, "
            f"{len(state.unique_photos)} unique, {len(state.selected_photos)} keepers"
        )
        for group in state.groups[:5]:
            logger.info(f"  {group.title}: {len(group.photos)} photos, keeper {group.best.name} (quality {group.best.quality})")
        logger.info(f"Saved report to {args.output}")

        if args.export:
            session.download_selected(args.export)
    finally:
        session.close()


if __name__ == "__main__":
    main()
