"""Photo and group records shared by the pipeline, grouper and selection store."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class PhotoMetadata:
    """Best-effort metadata read from the image file."""

    capture_date: datetime
    width: Optional[int] = None
    height: Optional[int] = None
    camera: Optional[str] = None


@dataclass(frozen=True)
class Photo:
    """A single analyzed photo.

    Immutable apart from ``selected``, which the selection store rewrites by
    producing a new instance.
    """

    id: str
    path: Path
    name: str
    capture_date: datetime
    quality: int = 0
    embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    size: int = 0
    mime_type: str = ""
    metadata: Optional[PhotoMetadata] = None
    selected: bool = False

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None and len(self.embedding) > 0


@dataclass(frozen=True)
class PhotoGroup:
    """A cluster of two or more similar photos, best quality first."""

    id: str
    photos: Tuple[Photo, ...]
    similarity: float
    date: datetime
    title: str = ""
    similarity_threshold: float = 0.7

    @property
    def best(self) -> Photo:
        return self.photos[0]

    @property
    def photo_ids(self) -> Tuple[str, ...]:
        return tuple(photo.id for photo in self.photos)
