"""
Text clustering requests.

Turns a list of texts into size-ordered groups of texts plus leftover noise texts:
blank texts are dropped, embeddings come from an embedder (reused as-is when the
request repeats the previous texts), the distance parameter ``epsilon`` becomes the
similarity threshold ``1 - epsilon``, and the vectors go through DensityClusterer.

Observers receive StatusEvent objects: "computing" (embedding progress), "clustering",
then "complete" with the result or "error" with a message.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from vecdbscan.clusterer import DensityClusterer, distance_to_similarity

logger = logging.getLogger(__name__)

STATUS_COMPUTING = "computing"
STATUS_CLUSTERING = "clustering"
STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"


@dataclass
class StatusEvent:
    status: str
    progress: Optional[Dict[str, Any]] = None
    result: Optional["TextClusteringResult"] = None
    error: Optional[str] = None


@dataclass
class TextGroup:
    size: int
    texts: List[str]


@dataclass
class TextClusteringResult:
    groups: List[TextGroup]
    noise: List[str]
    vectorization_time: float          # seconds, 0.0 when embeddings were reused
    clustering_time: float             # seconds
    strategy: Optional[str] = None     # similarity strategy actually used
    indices: List[List[int]] = field(default_factory=list)
    n_texts: int = 0

    @property
    def total_time(self) -> float:
        return self.vectorization_time + self.clustering_time

    @property
    def average_speed(self) -> float:
        """Texts embedded per second; infinite when embeddings were reused."""
        if self.vectorization_time <= 0:
            return float("inf")
        return self.n_texts / self.vectorization_time


class TextClusteringPipeline:
    def __init__(self, embedder, backend=None, n_jobs: int = 1,
                 on_status: Optional[Callable[[StatusEvent], None]] = None):
        """
        Args:
            embedder: Object with ``embed(texts, progress_callback=None) -> np.ndarray``
                      returning L2-normalized vectors (e.g. SentenceEmbedder)
            backend: Opened accelerator backend shared by every request, or None
            n_jobs: Parallel jobs for the sequential similarity strategy
            on_status: Receives a StatusEvent for each state change
        """
        self.embedder = embedder
        self.backend = backend
        self.n_jobs = n_jobs
        self.on_status = on_status
        self._last_texts: Optional[List[str]] = None
        self._last_embeddings: Optional[np.ndarray] = None

    def _emit(self, event: StatusEvent) -> None:
        if self.on_status is not None:
            self.on_status(event)

    def _embed(self, texts: List[str]):
        if self._last_texts is not None and texts == self._last_texts:
            logger.info("Texts unchanged since last request, reusing embeddings")
            self._emit(StatusEvent(STATUS_COMPUTING, progress={
                "current": len(texts),
                "total": len(texts),
                "elapsed_seconds": 0.0,
                "speed": float("inf"),
            }))
            return self._last_embeddings, 0.0

        start = time.perf_counter()

        def report(encoded: int, to_encode: int) -> None:
            # Progress covers every text; cached ones count as already done
            current = len(texts) - (to_encode - encoded)
            elapsed = time.perf_counter() - start
            self._emit(StatusEvent(STATUS_COMPUTING, progress={
                "current": current,
                "total": len(texts),
                "elapsed_seconds": elapsed,
                "speed": current / elapsed if elapsed > 0 else float("inf"),
            }))

        embeddings = self.embedder.embed(texts, progress_callback=report)
        self._last_texts = list(texts)
        self._last_embeddings = embeddings
        return embeddings, time.perf_counter() - start

    def run(self, texts: List[str], epsilon: float = 0.15, min_pts: int = 2,
            prefer_accelerated: bool = True) -> TextClusteringResult:
        """
        Cluster texts.

        Args:
            texts: Input texts; blank ones are ignored
            epsilon: Cosine distance under which two texts are neighbors
            min_pts: Neighbors a core text needs, counting itself

        Returns:
            TextClusteringResult with groups sorted by descending size
        """
        try:
            texts = [text for text in texts if text.strip()]
            embeddings, vectorization_time = self._embed(texts)

            self._emit(StatusEvent(STATUS_CLUSTERING))
            start = time.perf_counter()
            clusterer = DensityClusterer(
                similarity_threshold=distance_to_similarity(epsilon),
                min_neighbors=min_pts,
                prefer_accelerated=prefer_accelerated,
                backend=self.backend,
                n_jobs=self.n_jobs,
            )
            partition = clusterer.fit_predict(embeddings)
            clustering_time = time.perf_counter() - start

            ordered = partition.sorted_by_size()
            result = TextClusteringResult(
                groups=[TextGroup(size=len(members), texts=[texts[i] for i in members]) for members in ordered],
                noise=[texts[i] for i in partition.noise],
                vectorization_time=vectorization_time,
                clustering_time=clustering_time,
                strategy=clusterer.strategy_used,
                indices=ordered,
                n_texts=len(texts),
            )
        except Exception as e:
            logger.error(f"Text clustering failed: {e}")
            self._emit(StatusEvent(STATUS_ERROR, error=str(e)))
            raise

        logger.info(f"Clustered {len(texts)} texts into {len(result.groups)} groups "
                    f"({len(result.noise)} noise) in {result.total_time:.1f}s")
        self._emit(StatusEvent(STATUS_COMPLETE, result=result))
        return result
