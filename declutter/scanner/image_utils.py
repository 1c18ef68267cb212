"""Image loading and best-effort metadata extraction."""

import logging
import mimetypes
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from PIL import ExifTags, Image, ImageOps

from ..models import PhotoMetadata

# Register HEIC support
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
except ImportError:
    pass  # pillow-heif not installed, HEIC files won't be supported

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".heic", ".heif", ".webp", ".bmp", ".tiff"}

# Capture date tags in order of preference
DATE_TAGS = ("DateTimeOriginal", "DateTimeDigitized", "DateTime")
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# EXIF orientations that rotate the image by 90 degrees
ROTATED_ORIENTATIONS = {5, 6, 7, 8}


def is_supported_image(file_path: Path) -> bool:
    """Check if file is a supported image format."""
    return file_path.suffix.lower() in SUPPORTED_EXTENSIONS


def guess_mime_type(file_path: Path) -> str:
    mime, _ = mimetypes.guess_type(file_path.name)
    if mime:
        return mime
    if file_path.suffix.lower() in (".heic", ".heif"):
        return "image/heic"
    return "application/octet-stream"


def guess_camera(filename: str) -> str:
    """Guess the camera family from common file naming conventions."""
    lower = filename.lower()
    if lower.startswith("img_"):
        return "iPhone"
    if lower.startswith("dsc_") or lower.startswith("dscf"):
        return "Nikon/Fuji"
    if lower.startswith("img-"):
        return "Android/Other"
    if lower.startswith("p"):
        return "Huawei/Pixel"
    if lower.endswith(".heic"):
        return "Apple Device"
    if "canon" in lower:
        return "Canon"
    if "sony" in lower:
        return "Sony"
    if re.search(r"\d{8}_\d{6}", filename):
        return "Android/Other"
    return "Unknown Camera"


def extract_exif_data(image: Image.Image) -> Dict[str, object]:
    """Extract EXIF tags by name, including the Exif sub-IFD (capture dates)."""
    exif_data: Dict[str, object] = {}

    exif = image.getexif()
    if not exif:
        return exif_data

    for tag_id, value in exif.items():
        exif_data[ExifTags.TAGS.get(tag_id, str(tag_id))] = value

    # DateTimeOriginal/DateTimeDigitized live in the Exif sub-IFD
    try:
        sub_ifd = exif.get_ifd(ExifTags.IFD.Exif)
    except (KeyError, ValueError):
        sub_ifd = {}
    for tag_id, value in sub_ifd.items():
        exif_data.setdefault(ExifTags.TAGS.get(tag_id, str(tag_id)), value)

    return exif_data


def parse_exif_datetime(value: object) -> Optional[datetime]:
    """Parse an EXIF "YYYY:MM:DD HH:MM:SS" value, or return None."""
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip("\x00 "), EXIF_DATE_FORMAT)
    except ValueError:
        return None


def capture_date_from_exif(exif_data: Dict[str, object]) -> Optional[datetime]:
    for tag in DATE_TAGS:
        parsed = parse_exif_datetime(exif_data.get(tag))
        if parsed is not None:
            return parsed
    return None


def modified_time(file_path: Path) -> datetime:
    """File modification time, or now if the file cannot be stat'ed."""
    try:
        return datetime.fromtimestamp(file_path.stat().st_mtime)
    except OSError as e:
        logger.warning(f"Cannot stat {file_path}: {e}")
        return datetime.now()


def read_metadata(file_path: Path) -> PhotoMetadata:
    """
    Read dimensions, capture date and camera for an image file.

    Never raises: if the image cannot be read, the capture date falls back to
    the file modification time and width/height stay unset.

    Args:
        file_path: Path to image file

    Returns:
        PhotoMetadata for the file
    """
    fallback_date = modified_time(file_path)

    try:
        with Image.open(file_path) as image:
            exif_data = extract_exif_data(image)
            width, height = image.size
    except Exception as e:
        logger.warning(f"Failed to read metadata for {file_path}: {e}")
        return PhotoMetadata(
            capture_date=fallback_date,
            camera=guess_camera(file_path.name),
        )

    orientation = exif_data.get("Orientation", 1)
    if orientation in ROTATED_ORIENTATIONS:
        width, height = height, width

    make = str(exif_data.get("Make", "")).strip("\x00 ")
    model = str(exif_data.get("Model", "")).strip("\x00 ")
    camera = " ".join(part for part in (make, model) if part) or guess_camera(file_path.name)

    return PhotoMetadata(
        capture_date=capture_date_from_exif(exif_data) or fallback_date,
        width=width,
        height=height,
        camera=camera,
    )


def load_image(file_path: Path, max_size: Optional[int] = 512) -> Image.Image:
    """
    Load image as RGB with EXIF orientation applied.

    Args:
        file_path: Path to image file
        max_size: Maximum dimension for the returned thumbnail, None for full size

    Returns:
        Processed PIL image
    """
    with Image.open(file_path) as raw:
        image = ImageOps.exif_transpose(raw)
        image = image.convert("RGB")

    if max_size and max(image.size) > max_size:
        image.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)

    return image
