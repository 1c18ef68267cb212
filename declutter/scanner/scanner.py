"""Discovery of image files on disk."""

import logging
from pathlib import Path
from typing import List, Optional

from .image_utils import SUPPORTED_EXTENSIONS, is_supported_image

logger = logging.getLogger(__name__)


def discover_images(
    directory: Path,
    recursive: bool = True,
    limit: Optional[int] = None,
) -> List[Path]:
    """
    Discover all supported images in directory.

    Args:
        directory: Directory to scan
        recursive: Whether to scan subdirectories
        limit: Maximum number of images to return

    Returns:
        List of image file paths, sorted by path
    """
    pattern = "**/*" if recursive else "*"
    image_files = sorted(
        f for f in directory.glob(pattern)
        if f.is_file() and is_supported_image(f)
    )

    logger.info(f"Discovered {len(image_files)} images in {directory}")

    if not image_files:
        logger.warning(f"No supported images found in {directory}")
        logger.warning(f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}")

    if limit:
        image_files = image_files[:limit]
        logger.info(f"Limiting to {limit} images")

    return image_files
