"""Photo session: concurrent analysis, ordered ingestion and export.

``PhotoSession`` wires the embedding provider, analyzer, grouper and
selection store together. Files are analyzed concurrently on a thread pool.
Ingestion is serialized: every ``add_photos`` call takes its turn at call
time, then regroups the full photo set and dispatches a single ``Ingest``
once all earlier calls have ingested.
"""

import asyncio
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from ..embedding.provider import EmbeddingProvider
from ..grouping import DEFAULT_SIMILARITY_THRESHOLD, group_similar_photos
from ..models import Photo
from ..quality import QualityEmbeddings, prepare_quality_embeddings
from ..selection.store import AppState, SelectionStore
from .analyzer import PhotoAnalyzer

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def unique_target(target: Path) -> Path:
    """Return ``target`` or the first free ``stem_N.suffix`` next to it."""
    if not target.exists():
        return target

    counter = 1
    while True:
        candidate = target.with_name(f"{target.stem}_{counter}{target.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


class PhotoSession:
    """One decluttering session over a growing set of photos."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: Optional[SelectionStore] = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_workers: int = 4,
        max_image_size: int = 512,
    ):
        """
        Initialize session.

        Args:
            provider: Embedding provider (owned by the caller)
            store: Selection store, a fresh one if None
            similarity_threshold: Grouping threshold
            max_workers: Number of parallel analysis workers
            max_image_size: Maximum dimension of images handed to the model
        """
        self.provider = provider
        self.store = store or SelectionStore()
        self.similarity_threshold = similarity_threshold
        self.analyzer = PhotoAnalyzer(provider, max_image_size=max_image_size)

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="analyze")
        self._quality_embeddings: Optional[QualityEmbeddings] = None
        self._quality_lock = asyncio.Lock()
        self._last_turn: Optional[asyncio.Future] = None
        self._pending = 0
        self.is_preparing_embeddings = False

    @property
    def state(self) -> AppState:
        return self.store.state

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    async def ensure_quality_embeddings(self) -> Optional[QualityEmbeddings]:
        """
        Compute the quality prompt embeddings once per session.

        Concurrent callers wait for the same computation. On failure photos
        are still analyzed, with quality 0, and the next batch retries.
        """
        if self._quality_embeddings is not None:
            return self._quality_embeddings

        async with self._quality_lock:
            if self._quality_embeddings is not None:
                return self._quality_embeddings

            loop = asyncio.get_running_loop()
            self.is_preparing_embeddings = True
            try:
                self._quality_embeddings = await loop.run_in_executor(
                    self._executor, prepare_quality_embeddings, self.provider
                )
                logger.info("Quality embeddings prepared")
            except Exception as e:
                logger.error(f"Failed to prepare quality embeddings: {e}")
            finally:
                self.is_preparing_embeddings = False

        return self._quality_embeddings

    async def add_photos(
        self,
        file_paths: Iterable[PathLike],
        on_analyzed: Optional[Callable[[Photo], None]] = None,
    ) -> AppState:
        """
        Analyze files and ingest them into the session.

        Args:
            file_paths: Image files to add
            on_analyzed: Optional callback run (on a worker thread) after each photo

        Returns:
            The state after this call's ingestion

        Raises:
            Exception: If the batch fails as a whole (e.g. ``on_analyzed``
                raises). None of its photos are ingested, and later calls
                still ingest after earlier ones.
        """
        paths = [Path(p) for p in file_paths]
        if not paths:
            return self.state

        loop = asyncio.get_running_loop()
        # Take our turn before the first await so ingestion follows call order
        previous = self._last_turn
        turn = loop.create_future()
        self._last_turn = turn
        self._pending += 1

        try:
            try:
                new_photos = await self._analyze_batch(paths, on_analyzed)
            except Exception as e:
                logger.error(f"Discarding batch of {len(paths)} photos, analysis failed: {e}")
                raise
            finally:
                # Our turn ends only after the previous one, even on failure
                if previous is not None:
                    await previous

            all_photos = self.state.photos + tuple(new_photos)
            result = await loop.run_in_executor(
                self._executor, group_similar_photos, all_photos, self.similarity_threshold
            )
            self.store.ingest(new_photos, result.groups, result.unique_photos)
            logger.info(
                f"Ingested {len(new_photos)} photos "
                f"({len(all_photos)} total, {len(result.groups)} groups)"
            )
        finally:
            self._pending -= 1
            turn.set_result(None)

        return self.state

    async def _analyze_batch(
        self,
        paths: List[Path],
        on_analyzed: Optional[Callable[[Photo], None]],
    ) -> List[Photo]:
        loop = asyncio.get_running_loop()
        quality_embeddings = await self.ensure_quality_embeddings()

        def analyze(path: Path) -> Photo:
            photo = self.analyzer.analyze(path, quality_embeddings)
            if on_analyzed is not None:
                on_analyzed(photo)
            return photo

        logger.info(f"Analyzing {len(paths)} photos")
        return await asyncio.gather(*(
            loop.run_in_executor(self._executor, analyze, path) for path in paths
        ))

    def download_selected(self, destination: PathLike) -> List[Path]:
        """
        Copy every selected photo into ``destination``, in selection order.

        Name clashes get a numeric suffix. Files that cannot be copied are
        logged and skipped.

        Returns:
            Paths of the written files
        """
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)

        written = []
        for photo in self.store.selected_photos():
            target = unique_target(destination / photo.name)
            try:
                shutil.copy2(photo.path, target)
            except OSError as e:
                logger.warning(f"Failed to copy {photo.path} to {target}: {e}")
                continue
            written.append(target)

        logger.info(f"Copied {len(written)} selected photos to {destination}")
        return written

    def close(self) -> None:
        self._executor.shutdown(wait=True)
