import logging
from typing import Any, Callable, List, Optional

import numpy as np

from vecdbscan.config import ClusteringConfig
from vecdbscan.dbscan import DensityClusteringResult, density_cluster, validate_parameters
from vecdbscan.similarity import SequentialSimilarity, SimilarityEngine

logger = logging.getLogger(__name__)

STATUS_SIMILARITY = "similarity"
STATUS_CLUSTERING = "clustering"
STATUS_COMPLETE = "complete"
STATUS_FAILED = "failed"


def distance_to_similarity(distance: float) -> float:
    """Convert a cosine distance threshold into the equivalent similarity threshold."""
    return 1.0 - distance


class DensityClusterer:
    def __init__(self,
                 similarity_threshold: float = 0.85,
                 min_neighbors: int = 2,
                 prefer_accelerated: bool = True,
                 backend=None,
                 batch_size: int = 1000,
                 n_jobs: int = 1,
                 on_status: Optional[Callable[[str, Any], None]] = None):
        """
        Initialize density clustering over a full similarity matrix.

        The similarity matrix is built once per call to fit_predict (on the accelerator
        backend when one is given and prefer_accelerated is set, sequentially otherwise),
        consumed by the density scan, and discarded.

        Args:
            similarity_threshold: Minimum cosine similarity for two points to be neighbors (default: 0.85)
            min_neighbors: Neighbors a core point needs, counting itself (default: 2)
            prefer_accelerated: Try the accelerator backend first (default: True)
            backend: Opened AcceleratorBackend shared across calls, or None
            batch_size: Columns per vectorized dot product in the sequential strategy (default: 1000)
            n_jobs: Parallel jobs for the sequential strategy (default: 1)
            on_status: Called with (status, payload) on "similarity", "clustering",
                       "complete" (payload: result) and "failed" (payload: error message)
        """
        validate_parameters(similarity_threshold, min_neighbors)
        self.similarity_threshold = similarity_threshold
        self.min_neighbors = min_neighbors
        self.prefer_accelerated = prefer_accelerated
        self.on_status = on_status
        self.engine = SimilarityEngine(
            backend=backend,
            fallback=SequentialSimilarity(batch_size=batch_size, n_jobs=n_jobs),
        )
        self.final_result: Optional[DensityClusteringResult] = None
        self.strategy_used: Optional[str] = None

    @classmethod
    def from_config(cls, config: ClusteringConfig, backend=None,
                    on_status: Optional[Callable[[str, Any], None]] = None) -> "DensityClusterer":
        return cls(
            similarity_threshold=config.similarity_threshold,
            min_neighbors=config.min_pts,
            prefer_accelerated=config.prefer_accelerated,
            backend=backend,
            batch_size=config.batch_size,
            n_jobs=config.n_jobs,
            on_status=on_status,
        )

    def _notify(self, status: str, payload: Any = None) -> None:
        if self.on_status is not None:
            self.on_status(status, payload)

    def compute_similarity_matrix(self, embeddings) -> np.ndarray:
        """
        Build the N x N similarity matrix of normalized embeddings.

        Args:
            embeddings: n x d matrix of L2-normalized embeddings

        Returns:
            Read-only n x n matrix of pairwise dot products
        """
        similarity = self.engine.compute(embeddings, prefer_accelerated=self.prefer_accelerated)
        self.strategy_used = self.engine.last_strategy
        return similarity

    def cluster_matrix(self, similarity: np.ndarray) -> DensityClusteringResult:
        return density_cluster(similarity, self.similarity_threshold, self.min_neighbors)

    def fit_predict(self, embeddings) -> DensityClusteringResult:
        """
        Cluster normalized embeddings.

        Either the whole run completes or the error propagates; no partial result is kept.

        Args:
            embeddings: n x d matrix of L2-normalized embeddings

        Returns:
            DensityClusteringResult with clusters in discovery order
        """
        try:
            self._notify(STATUS_SIMILARITY)
            logger.info("Step 1: Computing similarity matrix")
            similarity = self.compute_similarity_matrix(embeddings)
            logger.info(f"Step 1 Complete: {similarity.shape[0]}x{similarity.shape[0]} matrix "
                        f"({self.strategy_used} strategy)")

            self._notify(STATUS_CLUSTERING)
            logger.info(f"Step 2: Density clustering (threshold={self.similarity_threshold}, "
                        f"min_neighbors={self.min_neighbors})")
            result = self.cluster_matrix(similarity)
        except Exception as e:
            self._notify(STATUS_FAILED, str(e))
            raise

        logger.info(f"Step 3: Clustering complete! {result.n_clusters} clusters, {len(result.noise)} noise points")
        self.final_result = result
        self._notify(STATUS_COMPLETE, result)
        return result

    def print_clusters(self):
        """Print the final clusters (largest first) in a readable format."""
        if self.final_result is None:
            print("No clustering result yet")
            return

        print("\n" + "="*50)
        print("FINAL CLUSTERS")
        print("="*50)

        for cluster_id, nodes in enumerate(self.final_result.sorted_by_size()):
            print(f"Cluster {cluster_id}: {len(nodes)} nodes")
            print(f"  Nodes: {nodes}")
            print()

        print(f"Total clusters: {self.final_result.n_clusters}")
        print(f"Noise points: {len(self.final_result.noise)}")
        if self.strategy_used:
            print(f"Similarity strategy: {self.strategy_used}")


def generate_sample_embeddings(n_items: int = 100, embedding_dim: int = 128, n_clusters: int = 5,
                               spread: float = 0.3, seed: int = 42) -> np.ndarray:
    """
    Generate L2-normalized sample embeddings for testing.

    Args:
        n_items: Number of items
        embedding_dim: Dimension of each embedding
        n_clusters: Number of natural clusters to create
        spread: Scale of the noise added around each cluster center
        seed: Random seed

    Returns:
        n x d float32 matrix of unit-length embeddings
    """
    rng = np.random.default_rng(seed)
    embeddings: List[np.ndarray] = []

    items_per_cluster = n_items // n_clusters if n_clusters > 0 else 0

    for _ in range(n_clusters):
        center = rng.standard_normal(embedding_dim)
        center /= np.linalg.norm(center)

        for _ in range(items_per_cluster):
            embedding = center + spread / np.sqrt(embedding_dim) * rng.standard_normal(embedding_dim)
            embeddings.append(embedding / np.linalg.norm(embedding))

    # Remaining items are unrelated random directions
    for _ in range(n_items - len(embeddings)):
        embedding = rng.standard_normal(embedding_dim)
        embeddings.append(embedding / np.linalg.norm(embedding))

    return np.array(embeddings, dtype=np.float32)
