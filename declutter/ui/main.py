"""Command-line interface for the review API server."""

import argparse
import asyncio
import logging
from pathlib import Path

import uvicorn

from ..config import Settings
from ..embedding.provider import build_embedding_provider
from ..pipeline.session import PhotoSession
from ..scanner.scanner import discover_images
from .app import create_app


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main():
    """Main CLI entry point."""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(
        description="Start the photo declutter review API"
    )
    parser.add_argument(
        "--photos",
        type=Path,
        default=None,
        help="Directory of photos to analyze before the server starts",
    )
    parser.add_argument(
        "--upload-dir",
        type=Path,
        default=settings.upload_dir,
        help="Where uploaded photos are stored",
    )
    parser.add_argument(
        "--similarity-threshold",
        type=float,
        default=settings.similarity_threshold,
        help="Cosine similarity needed to join a group",
    )
    parser.add_argument(
        "--inference-mode",
        choices=["local", "remote"],
        default=settings.inference_mode,
        help="Run the model in-process or call the inference service",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to bind to",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    settings.inference_mode = args.inference_mode
    provider = build_embedding_provider(settings)
    session = PhotoSession(
        provider,
        similarity_threshold=args.similarity_threshold,
        max_workers=settings.max_workers,
    )

    if args.photos:
        image_files = discover_images(args.photos)
        if image_files:
            logger.info(f"Preloading {len(image_files)} photos from {args.photos}")
            asyncio.run(session.add_photos(image_files))

    app = create_app(session, upload_dir=args.upload_dir)

    logger.info(f"Starting server at http://{args.host}:{args.port}")
    logger.info("Press Ctrl+C to stop")

    try:
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            log_level="info" if args.verbose else "warning",
        )
    finally:
        session.close()


if __name__ == "__main__":
    main()
