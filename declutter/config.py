"""Runtime settings read from environment variables."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass
class Settings:
    """Settings shared by the CLIs, the review API and the inference service."""

    model_name: str = "ViT-B-32"
    pretrained: str = "openai"
    device: Optional[str] = None  # auto-detected when None
    inference_mode: str = "local"  # "local" or "remote"
    inference_service_url: str = "http://127.0.0.1:8002"
    similarity_threshold: float = 0.7
    max_workers: int = 4
    upload_dir: Path = field(default_factory=lambda: Path("uploads"))
    log_level: str = "info"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            model_name=os.getenv("MODEL_NAME", defaults.model_name),
            pretrained=os.getenv("MODEL_PRETRAINED", defaults.pretrained),
            device=os.getenv("MODEL_DEVICE") or None,
            inference_mode=os.getenv("INFERENCE_MODE", defaults.inference_mode).lower(),
            inference_service_url=os.getenv("INFERENCE_SERVICE_URL", defaults.inference_service_url),
            similarity_threshold=_env_float("SIMILARITY_THRESHOLD", defaults.similarity_threshold),
            max_workers=_env_int("MAX_WORKERS", defaults.max_workers),
            upload_dir=Path(os.getenv("UPLOAD_DIR", str(defaults.upload_dir))),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).lower(),
        )
