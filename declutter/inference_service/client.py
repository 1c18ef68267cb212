"""Client for calling the remote inference service.

``InferenceClient`` implements the ``EmbeddingProvider`` interface over HTTP,
so a session can run without loading the model in-process.
"""

import base64
import io
import logging
import os
from pathlib import Path
from typing import List, Optional

import httpx
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class InferenceClient:
    """Client for the embedding inference service.

    The service URL comes from the ``service_url`` argument or the
    ``INFERENCE_SERVICE_URL`` environment variable (default
    http://127.0.0.1:8002).
    """

    def __init__(
        self,
        service_url: Optional[str] = None,
        timeout: float = 300.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            service_url: Base URL of inference service (or use INFERENCE_SERVICE_URL env)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. for tests)
        """
        self.service_url = (service_url or os.getenv("INFERENCE_SERVICE_URL", "http://127.0.0.1:8002")).rstrip("/")
        self.timeout = timeout
        self.client = httpx.Client(timeout=timeout, transport=transport)

        logger.info(f"InferenceClient initialized: url={self.service_url}")

    def close(self) -> None:
        self.client.close()

    def health_check(self) -> bool:
        """
        Check if inference service is healthy.

        Returns:
            True if service is accessible and healthy
        """
        try:
            response = self.client.get(f"{self.service_url}/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Health check failed: {e}")
            return False

    def get_model_info(self) -> dict:
        """
        Get information about the currently loaded model.

        Returns:
            Model information dict
        """
        try:
            response = self.client.get(f"{self.service_url}/model-info")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Failed to get model info: {e}")
            raise

    def _post_embeddings(self, path: str, **kwargs) -> np.ndarray:
        try:
            response = self.client.post(f"{self.service_url}{path}", **kwargs)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Failed to embed via {path}: {e}")
            raise

        return np.array(result["embeddings"], dtype=np.float32)

    def embed_images_base64(self, images: List[Image.Image]) -> np.ndarray:
        """
        Embed images by encoding them as base64 and sending to service.

        Args:
            images: List of PIL Images

        Returns:
            Array of embeddings, shape (n_images, embedding_dim)
        """
        b64_images = []
        for img in images:
            buffer = io.BytesIO()
            img.convert("RGB").save(buffer, format="JPEG", quality=95)
            b64_images.append(base64.b64encode(buffer.getvalue()).decode("utf-8"))

        return self._post_embeddings("/embed/base64", json={"images": b64_images})

    def embed_images_files(self, image_paths: List[Path]) -> np.ndarray:
        """
        Embed images by uploading files.

        More efficient than base64 for large images since it avoids the
        encoding overhead.

        Args:
            image_paths: List of Path objects to image files

        Returns:
            Array of embeddings, shape (n_images, embedding_dim)
        """
        files = []
        for path in image_paths:
            with open(path, "rb") as f:
                files.append(("files", (path.name, f.read(), "application/octet-stream")))

        return self._post_embeddings("/embed/batch", files=files)

    # EmbeddingProvider interface

    def image_embedding(self, image: Image.Image) -> np.ndarray:
        return self.embed_images_base64([image])[0]

    def text_embeddings(self, prompts: List[str]) -> np.ndarray:
        return self._post_embeddings("/embed/text", json={"prompts": list(prompts)})


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    client = InferenceClient()

    if client.health_check():
        print("✓ Service is healthy")
        print(f"Model info: {client.get_model_info()}")
    else:
        print("✗ Service is not available")
        print("Start the inference service with:")
        print("  python -m declutter.inference_service.server")
