"""Vector similarity helpers that do not need the model stack."""

from typing import Sequence, Union

import numpy as np

Vector = Union[np.ndarray, Sequence[float]]


def cosine_similarity(embedding1: Vector, embedding2: Vector) -> float:
    """
    Compute cosine similarity between two embeddings.

    Unlike a plain dot product this does not assume the inputs are
    L2-normalized.

    Args:
        embedding1: First embedding vector
        embedding2: Second embedding vector

    Returns:
        Cosine similarity score (-1 to 1, higher is more similar).
        0.0 if either vector has zero magnitude.
    """
    a = np.asarray(embedding1, dtype=np.float64).ravel()
    b = np.asarray(embedding2, dtype=np.float64).ravel()
    if a.shape != b.shape:
        raise ValueError(f"Embedding length mismatch: {a.shape[0]} vs {b.shape[0]}")

    squared_norms = float(np.dot(a, a)) * float(np.dot(b, b))
    if squared_norms == 0:
        return 0.0

    # sqrt of the product keeps cosine_similarity(x, x) exactly 1.0
    similarity = float(np.dot(a, b)) / np.sqrt(squared_norms)
    # Clamp float noise into [-1, 1]
    return float(max(-1.0, min(1.0, similarity)))


def normalize(embedding: Vector) -> np.ndarray:
    """Return an L2-normalized float32 copy of ``embedding``."""
    vec = np.asarray(embedding, dtype=np.float32)
    norm = np.linalg.norm(vec, axis=-1, keepdims=True)
    norm = np.where(norm == 0, 1.0, norm)
    return vec / norm
