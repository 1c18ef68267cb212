"""Stateless inference server for image and prompt embeddings.

This service is responsible for:
- Loading the vision/text model once, on first use or at startup
- Accepting image data or prompts via HTTP
- Returning L2-normalized embeddings

The service keeps no photo state; sessions run in the client process and
use ``InferenceClient`` as their embedding provider.
"""

import argparse
import base64
import io
import logging
import os
from typing import List, Optional

import numpy as np
from fastapi import FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel
from PIL import Image

from ..config import Settings
from ..embedding.provider import EmbeddingProvider, build_embedding_provider

logger = logging.getLogger(__name__)


class EmbeddingRequest(BaseModel):
    """Request to embed one or more images."""

    images: List[str]  # Base64-encoded images


class TextEmbeddingRequest(BaseModel):
    """Request to embed text prompts."""

    prompts: List[str]


class EmbeddingResponse(BaseModel):
    """Response with computed embeddings."""

    embeddings: List[List[float]]
    model_info: dict
    count: int


def decode_base64_image(b64_image: str) -> Image.Image:
    # Handle data URI format if present
    if b64_image.startswith("data:image"):
        b64_image = b64_image.split(",", 1)[1]
    image_data = base64.b64decode(b64_image)
    return Image.open(io.BytesIO(image_data)).convert("RGB")


def create_app(
    provider: Optional[EmbeddingProvider] = None,
    preload: bool = False,
) -> FastAPI:
    """
    Create FastAPI application for the inference service.

    Args:
        provider: Embedding provider to serve; built from environment settings if None
        preload: Load the model at startup instead of on the first request
    """
    if provider is None:
        settings = Settings.from_env()
        # The service itself always runs the model locally
        settings.inference_mode = "local"
        provider = build_embedding_provider(settings)

    app = FastAPI(
        title="Embedding Inference Service",
        description="Stateless service for computing image and prompt embeddings",
        version="0.1.0",
    )
    app.state.provider = provider

    if preload:
        @app.on_event("startup")
        async def startup():
            """Load the model before accepting requests."""
            logger.info("Starting inference service...")
            get = getattr(provider, "get", None)
            if get is not None:
                get()
            logger.info("Inference service ready")

    def embed_images(images: List[Image.Image]) -> EmbeddingResponse:
        try:
            logger.info(f"Generating embeddings for {len(images)} images")
            embeddings = [
                np.asarray(provider.image_embedding(image), dtype=np.float32).tolist()
                for image in images
            ]
            model_info = provider.get_model_info()
        except Exception as e:
            logger.exception("Error during embedding")
            raise HTTPException(status_code=500, detail=str(e))

        return EmbeddingResponse(
            embeddings=embeddings,
            model_info=model_info,
            count=len(embeddings),
        )

    @app.get("/health")
    @app.get("/healthz")  # Alias for K8s-style health checks
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/model-info")
    async def get_model_info():
        """Get information about the currently loaded model."""
        if getattr(provider, "is_loaded", True) is False:
            raise HTTPException(status_code=503, detail="No model loaded")
        return provider.get_model_info()

    @app.post("/embed/base64", response_model=EmbeddingResponse)
    def embed_base64(request: EmbeddingRequest):
        """
        Embed images provided as base64 strings.

        Args:
            request: EmbeddingRequest with base64-encoded images

        Returns:
            EmbeddingResponse with embeddings
        """
        if not request.images:
            raise HTTPException(status_code=400, detail="No images provided")

        images = []
        for i, b64_image in enumerate(request.images):
            try:
                images.append(decode_base64_image(b64_image))
            except Exception as e:
                logger.error(f"Failed to decode image {i}: {e}")
                raise HTTPException(
                    status_code=400,
                    detail=f"Failed to decode image {i}: {str(e)}"
                )

        return embed_images(images)

    @app.post("/embed/batch", response_model=EmbeddingResponse)
    def embed_batch(files: List[UploadFile] = File(...)):
        """
        Embed images provided as multipart file uploads.

        More efficient than base64 encoding for large images.
        """
        if not files:
            raise HTTPException(status_code=400, detail="No files provided")

        images = []
        for i, file in enumerate(files):
            try:
                image_data = file.file.read()
                images.append(Image.open(io.BytesIO(image_data)).convert("RGB"))
            except Exception as e:
                logger.error(f"Failed to read file {i} ({file.filename}): {e}")
                raise HTTPException(
                    status_code=400,
                    detail=f"Failed to read file {i}: {str(e)}"
                )

        return embed_images(images)

    @app.post("/embed/text", response_model=EmbeddingResponse)
    def embed_text(request: TextEmbeddingRequest):
        """Embed text prompts, one row per prompt in request order."""
        if not request.prompts:
            raise HTTPException(status_code=400, detail="No prompts provided")

        try:
            embeddings = np.asarray(provider.text_embeddings(request.prompts), dtype=np.float32)
            model_info = provider.get_model_info()
        except Exception as e:
            logger.exception("Error during text embedding")
            raise HTTPException(status_code=500, detail=str(e))

        return EmbeddingResponse(
            embeddings=embeddings.tolist(),
            model_info=model_info,
            count=len(embeddings),
        )

    return app


def main():
    """Main entry point."""
    import uvicorn

    parser = argparse.ArgumentParser(description="Inference service for image and prompt embeddings")
    parser.add_argument(
        "--host",
        type=str,
        default=os.getenv("HOST", "127.0.0.1"),
        help="Host to bind to (default: 127.0.0.1 or HOST env var)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8002")),
        help="Port to bind to (default: 8002 or PORT env var)",
    )
    parser.add_argument(
        "--model-name",
        type=str,
        default=os.getenv("MODEL_NAME", "ViT-B-32"),
        help="Model name to use (default: ViT-B-32 or MODEL_NAME env var)",
    )
    parser.add_argument(
        "--pretrained",
        type=str,
        default=os.getenv("MODEL_PRETRAINED", "openai"),
        help="Pretrained weights (default: openai or MODEL_PRETRAINED env var)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.getenv("LOG_LEVEL", "info"),
        choices=["debug", "info", "warning", "error"],
        help="Logging level (default: info or LOG_LEVEL env var)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = Settings.from_env()
    settings.model_name = args.model_name
    settings.pretrained = args.pretrained
    settings.inference_mode = "local"

    logger.info(f"Starting inference service on {args.host}:{args.port}")
    logger.info(f"Model: {args.model_name} ({args.pretrained})")

    app = create_app(build_embedding_provider(settings), preload=True)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
