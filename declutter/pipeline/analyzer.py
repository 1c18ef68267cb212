"""Turns one image file into an analyzed ``Photo``."""

import logging
import uuid
from pathlib import Path
from typing import Optional

import numpy as np

from ..embedding.provider import EmbeddingProvider
from ..embedding.similarity import normalize
from ..models import Photo
from ..quality import QualityEmbeddings, score_photo_embedding
from ..scanner.image_utils import guess_mime_type, load_image, read_metadata

logger = logging.getLogger(__name__)


def new_photo_id(file_path: Path) -> str:
    return f"{file_path.name}-{uuid.uuid4().hex[:12]}"


class PhotoAnalyzer:
    """Runs embedding extraction, quality scoring and metadata reading for a file.

    Every step recovers locally: a failed extraction yields a photo without
    embedding and with quality 0, a failed metadata read falls back to the
    file modification time.
    """

    def __init__(self, provider: EmbeddingProvider, max_image_size: int = 512):
        """
        Initialize analyzer.

        Args:
            provider: Embedding provider shared by all analyses
            max_image_size: Maximum dimension of the image handed to the model
        """
        self.provider = provider
        self.max_image_size = max_image_size

    def extract_embedding(self, file_path: Path) -> Optional[np.ndarray]:
        """L2-normalized embedding for the file, or None if loading or embedding failed."""
        try:
            image = load_image(file_path, max_size=self.max_image_size)
            embedding = np.asarray(self.provider.image_embedding(image), dtype=np.float32).ravel()
        except Exception as e:
            logger.error(f"Failed to extract features for {file_path.name}: {e}")
            return None

        if embedding.size == 0:
            logger.error(f"Empty embedding for {file_path.name}")
            return None
        return normalize(embedding)

    def analyze(
        self,
        file_path: Path,
        quality_embeddings: Optional[QualityEmbeddings],
    ) -> Photo:
        """
        Analyze a single image file.

        Args:
            file_path: Path to image
            quality_embeddings: Prompt embeddings prepared once per session

        Returns:
            The analyzed Photo (never raises for per-file failures)
        """
        file_path = Path(file_path)

        embedding = self.extract_embedding(file_path)
        if embedding is None:
            logger.warning(f"Skipping quality analysis for {file_path.name} due to missing embedding")
            quality = 0
        else:
            quality = score_photo_embedding(embedding, quality_embeddings)

        metadata = read_metadata(file_path)

        try:
            size = file_path.stat().st_size
        except OSError:
            size = 0

        photo = Photo(
            id=new_photo_id(file_path),
            path=file_path,
            name=file_path.name,
            capture_date=metadata.capture_date,
            quality=quality,
            embedding=embedding,
            size=size,
            mime_type=guess_mime_type(file_path),
            metadata=metadata,
        )
        logger.debug(f"Analyzed {photo.name}: quality={quality}, embedding={embedding is not None}")
        return photo
