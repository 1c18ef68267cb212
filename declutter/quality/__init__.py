"""Prompt-based perceptual quality scoring from CLIP embeddings."""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..embedding.provider import EmbeddingProvider
from ..embedding.similarity import cosine_similarity

logger = logging.getLogger(__name__)

# The wording of these prompts is part of the score calibration below.
# Changing any of them shifts the 0-100 scale.
POSITIVE_QUALITY_PROMPTS: List[str] = [
    "a high-quality photo",
    "a sharp photo",
    "a clear photo",
    "a well-lit photo",
    "a vibrant photo",
    "a professional photo",
    "a happy photo",
    "a cool photo",
    "a classy photo",
    "a smiling person",
]

NEGATIVE_QUALITY_PROMPTS: List[str] = [
    "a low-quality photo",
    "a blurry photo",
    "an out-of-focus photo",
    "a dark photo",
    "a noisy photo",
    "an amateur photo",
    "a sad photo",
    "a poorly composed photo",
    "a bad photo",
    "a messy background",
]

# Tuned calibration: score = ((raw * SCALE + 1) / 2) * 100, clamped to [0, 100].
# These are empirical values, kept as-is so scores stay comparable.
RAW_SCORE_SCALE = 15.0
MIN_SCORE = 0
MAX_SCORE = 100


@dataclass(frozen=True)
class QualityEmbeddings:
    """Prompt embeddings computed once per session and reused for every photo."""

    positive: np.ndarray  # shape (n_positive, dim)
    negative: np.ndarray  # shape (n_negative, dim)


def prepare_quality_embeddings(provider: EmbeddingProvider) -> QualityEmbeddings:
    """
    Embed the positive and negative quality prompts in a single call.

    Args:
        provider: Embedding provider used for the text prompts

    Returns:
        QualityEmbeddings with rows split in prompt order
    """
    all_prompts = POSITIVE_QUALITY_PROMPTS + NEGATIVE_QUALITY_PROMPTS
    text_embeddings = np.asarray(provider.text_embeddings(all_prompts), dtype=np.float32)

    n_pos = len(POSITIVE_QUALITY_PROMPTS)
    n_neg = len(NEGATIVE_QUALITY_PROMPTS)
    if text_embeddings.ndim != 2 or text_embeddings.shape[0] != n_pos + n_neg:
        raise ValueError(
            f"Expected {n_pos + n_neg} prompt embeddings, got shape {text_embeddings.shape}"
        )

    logger.info(f"Prepared quality embeddings ({n_pos} positive, {n_neg} negative)")
    return QualityEmbeddings(
        positive=text_embeddings[:n_pos],
        negative=text_embeddings[n_pos:n_pos + n_neg],
    )


def calibrate(raw_score: float) -> int:
    """
    Map ``avg_positive - avg_negative`` onto the 0-100 integer scale.

    Rounds half up, so 0.5 steps always go to the higher score.
    """
    scaled = ((raw_score * RAW_SCORE_SCALE + 1) / 2) * 100
    rounded = math.floor(scaled + 0.5)
    return int(max(MIN_SCORE, min(MAX_SCORE, rounded)))


def _average_similarity(embedding: np.ndarray, prompt_embeddings: Sequence[np.ndarray]) -> float:
    if len(prompt_embeddings) == 0:
        raise ValueError("No prompt embeddings provided")
    total = sum(cosine_similarity(embedding, prompt) for prompt in prompt_embeddings)
    return total / len(prompt_embeddings)


def score(
    image_embedding: Optional[np.ndarray],
    positive_embeddings: Sequence[np.ndarray],
    negative_embeddings: Sequence[np.ndarray],
) -> int:
    """
    Score an image embedding against positive and negative prompt embeddings.

    Args:
        image_embedding: Image embedding, or None if extraction failed
        positive_embeddings: Embeddings of the positive prompts
        negative_embeddings: Embeddings of the negative prompts

    Returns:
        Integer quality in [0, 100]. 0 means unknown quality: missing
        embedding or a failure while scoring.
    """
    if image_embedding is None or len(image_embedding) == 0:
        logger.warning("Embedding not provided, setting quality to 0")
        return 0

    try:
        avg_positive = _average_similarity(image_embedding, positive_embeddings)
        avg_negative = _average_similarity(image_embedding, negative_embeddings)
        return calibrate(avg_positive - avg_negative)
    except Exception as e:
        logger.error(f"Error calculating image quality: {e}")
        return 0


def score_photo_embedding(
    image_embedding: Optional[np.ndarray],
    quality_embeddings: Optional[QualityEmbeddings],
) -> int:
    """Convenience wrapper over ``score`` taking prepared prompt embeddings."""
    if quality_embeddings is None:
        logger.warning("Quality embeddings not prepared, setting quality to 0")
        return 0
    return score(image_embedding, quality_embeddings.positive, quality_embeddings.negative)
