"""Image and text embedding generation using CLIP models."""

import logging
from typing import List, Optional

import numpy as np

import torch
from PIL import Image
import open_clip

logger = logging.getLogger(__name__)


def detect_device() -> str:
    """Pick the best available torch device (cuda, then mps, then cpu)."""
    if torch.cuda.is_available():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"


class ImageEmbedder:
    """Generate image and prompt embeddings using CLIP-based models."""

    def __init__(
        self,
        model_name: str = "ViT-B-32",
        pretrained: str = "openai",
        device: Optional[str] = None,
    ):
        """
        Initialize embedder.

        Args:
            model_name: CLIP model architecture
            pretrained: Pretrained weights to use
            device: Device to use (cuda/mps/cpu), auto-detected if None
        """
        self.model_name = model_name
        self.pretrained = pretrained

        self.device = torch.device(device or detect_device())
        logger.info(f"Using device: {self.device}")

        logger.info(f"Loading model: {model_name} ({pretrained})")
        self.model, _, self.preprocess = open_clip.create_model_and_transforms(
            model_name,
            pretrained=pretrained,
            device=self.device,
        )
        self.tokenizer = open_clip.get_tokenizer(model_name)
        self.model.eval()

        logger.info("Model loaded successfully")

    def embed_image(self, image: Image.Image) -> np.ndarray:
        """
        Generate embedding for a single image.

        Args:
            image: PIL Image

        Returns:
            Normalized embedding vector
        """
        image_tensor = self.preprocess(image.convert("RGB")).unsqueeze(0).to(self.device)

        with torch.no_grad():
            embedding = self.model.encode_image(image_tensor)
            embedding = embedding / embedding.norm(dim=-1, keepdim=True)
            embedding = embedding.cpu().numpy().squeeze()

        return embedding

    def embed_texts(self, prompts: List[str]) -> np.ndarray:
        """
        Generate embeddings for text prompts.

        Args:
            prompts: Prompts to encode, one row per prompt in the result

        Returns:
            Array of normalized embeddings, shape (n_prompts, embedding_dim)
        """
        tokens = self.tokenizer(list(prompts)).to(self.device)

        with torch.no_grad():
            text_embeddings = self.model.encode_text(tokens)
            text_embeddings = text_embeddings / text_embeddings.norm(dim=-1, keepdim=True)

        return text_embeddings.cpu().numpy()

    # EmbeddingProvider interface
    def image_embedding(self, image: Image.Image) -> np.ndarray:
        return self.embed_image(image)

    def text_embeddings(self, prompts: List[str]) -> np.ndarray:
        return self.embed_texts(prompts)

    def get_model_info(self) -> dict:
        """Get model information."""
        return {
            "model_name": self.model_name,
            "pretrained": self.pretrained,
            "device": str(self.device),
            "embedding_dim": self.model.visual.output_dim,
        }
