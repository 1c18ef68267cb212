"""Shared fixtures: a deterministic embedding provider and photo/image factories."""

import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import numpy as np
import pytest
from PIL import Image

from declutter.models import Photo
from declutter.quality import POSITIVE_QUALITY_PROMPTS

BASE_DATE = datetime(2024, 3, 4, 9, 15)


class FakeEmbeddingProvider:
    """Embeds an image as its normalized mean RGB colour.

    Positive quality prompts point towards red and negative ones towards
    blue, so red images score high and blue images score low.
    """

    def __init__(self):
        self.image_calls = 0
        self.text_calls = 0
        self._lock = threading.Lock()

    def image_embedding(self, image: Image.Image) -> np.ndarray:
        with self._lock:
            self.image_calls += 1
        mean = np.asarray(image.convert("RGB"), dtype=np.float32).reshape(-1, 3).mean(axis=0)
        vec = mean + 1.0  # keep black images away from the zero vector
        return vec / np.linalg.norm(vec)

    def text_embeddings(self, prompts: List[str]) -> np.ndarray:
        with self._lock:
            self.text_calls += 1
        rows = []
        for prompt in prompts:
            if prompt in POSITIVE_QUALITY_PROMPTS:
                rows.append([1.0, 0.0, 0.0])
            else:
                rows.append([0.0, 0.0, 1.0])
        return np.asarray(rows, dtype=np.float32)

    def get_model_info(self) -> dict:
        return {"model_name": "fake", "pretrained": "none", "device": "cpu", "embedding_dim": 3}


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def make_photo():
    """Factory for Photo records with controllable embedding, quality and date."""

    def _make(photo_id, embedding=None, quality=50, minutes=0):
        return Photo(
            id=photo_id,
            path=Path(f"/photos/{photo_id}.jpg"),
            name=f"{photo_id}.jpg",
            capture_date=BASE_DATE + timedelta(minutes=minutes),
            quality=quality,
            embedding=None if embedding is None else np.asarray(embedding, dtype=np.float64),
        )

    return _make


@pytest.fixture
def make_image(tmp_path):
    """Factory writing a solid-colour JPEG into tmp_path."""

    def _make(name, color=(200, 30, 30), size=(64, 48)):
        path = tmp_path / name
        Image.new("RGB", size, color).save(path, format="JPEG")
        return path

    return _make
