"""vecdbscan package

Density-based clustering of normalized embedding vectors over an all-pairs
similarity matrix.
"""

__version__ = "0.1.0"

from .exceptions import BackendUnavailableError, InputValidationError
from .backend import AcceleratorBackend, detect_accelerator, probe_backend
from .similarity import (
    AcceleratedSimilarity,
    SequentialSimilarity,
    SimilarityEngine,
    SimilarityStrategy,
    validate_vectors,
)
from .dbscan import DensityClusteringResult, PointState, density_cluster, region_query
from .config import ClusteringConfig
from .clusterer import DensityClusterer, distance_to_similarity, generate_sample_embeddings
from .pipeline import StatusEvent, TextClusteringPipeline, TextClusteringResult

# sentence-transformers is only needed once an embedder actually loads a model,
# so the embedder itself imports without the `full` extra installed.
from .embeddings import SentenceEmbedder

__all__ = [
    "AcceleratedSimilarity",
    "AcceleratorBackend",
    "BackendUnavailableError",
    "ClusteringConfig",
    "DensityClusterer",
    "DensityClusteringResult",
    "InputValidationError",
    "PointState",
    "SentenceEmbedder",
    "SequentialSimilarity",
    "SimilarityEngine",
    "SimilarityStrategy",
    "StatusEvent",
    "TextClusteringPipeline",
    "TextClusteringResult",
    "density_cluster",
    "detect_accelerator",
    "distance_to_similarity",
    "generate_sample_embeddings",
    "probe_backend",
    "region_query",
    "validate_vectors",
    "__version__",
]
