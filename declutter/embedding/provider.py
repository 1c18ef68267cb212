"""Embedding provider interface and lazily-loaded local implementation.

The rest of the package only talks to an ``EmbeddingProvider``. The concrete
model (local OpenCLIP or the remote inference service) is chosen once by the
composition root and passed in explicitly.
"""

import logging
import threading
from typing import Callable, List, Optional, Protocol

import numpy as np
from PIL import Image

from ..config import Settings

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Turns images and text prompts into L2-normalized vectors."""

    def image_embedding(self, image: Image.Image) -> np.ndarray:
        """Return a 1-D embedding for ``image``."""
        ...

    def text_embeddings(self, prompts: List[str]) -> np.ndarray:
        """Return one embedding row per prompt."""
        ...

    def get_model_info(self) -> dict:
        ...


class LazyEmbeddingProvider:
    """Defers model loading to the first embedding request.

    Concurrent first calls coalesce into a single load: the loader runs under
    a lock with a double check, so later callers wait for and then reuse the
    instance built by the first one. A failed load is remembered and
    re-raised instead of being retried for every photo.
    """

    def __init__(self, factory: Callable[[], EmbeddingProvider], name: str = "embedder"):
        self._factory = factory
        self._name = name
        self._provider: Optional[EmbeddingProvider] = None
        self._load_error: Optional[BaseException] = None
        self._load_lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._provider is not None

    def get(self) -> EmbeddingProvider:
        """Return the underlying provider, loading it on first use."""
        # Fast path, no lock once loaded
        provider = self._provider
        if provider is not None:
            return provider
        if self._load_error is not None:
            raise self._load_error

        with self._load_lock:
            if self._provider is not None:
                return self._provider
            if self._load_error is not None:
                raise self._load_error

            logger.info(f"Loading {self._name}...")
            try:
                self._provider = self._factory()
            except Exception as e:
                logger.error(f"Failed to load {self._name}: {e}")
                self._load_error = e
                raise
            logger.info(f"{self._name} ready")
            return self._provider

    def image_embedding(self, image: Image.Image) -> np.ndarray:
        return self.get().image_embedding(image)

    def text_embeddings(self, prompts: List[str]) -> np.ndarray:
        return self.get().text_embeddings(prompts)

    def get_model_info(self) -> dict:
        if self._provider is None:
            return {"loaded": False, "name": self._name}
        return self._provider.get_model_info()


def build_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """
    Build the embedding provider selected by ``settings.inference_mode``.

    Args:
        settings: Runtime settings

    Returns:
        A remote ``InferenceClient`` for mode "remote", otherwise a lazily
        loaded local ``ImageEmbedder``.
    """
    if settings.inference_mode == "remote":
        from ..inference_service.client import InferenceClient

        return InferenceClient(service_url=settings.inference_service_url)

    if settings.inference_mode != "local":
        raise ValueError(f"Unknown inference mode: {settings.inference_mode}")

    def load_local() -> EmbeddingProvider:
        # Heavy imports (torch, open_clip) happen on first use only
        from .embedder import ImageEmbedder

        return ImageEmbedder(
            model_name=settings.model_name,
            pretrained=settings.pretrained,
            device=settings.device,
        )

    return LazyEmbeddingProvider(
        load_local, name=f"{settings.model_name} ({settings.pretrained})"
    )
