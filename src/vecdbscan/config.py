"""Default parameters for a clustering request."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ClusteringConfig:
    """
    Parameters of one clustering request.

    ``epsilon`` is a cosine *distance*; the engine works with the similarity threshold
    ``1 - epsilon``.
    """

    epsilon: float = 0.15
    min_pts: int = 2               # self-inclusive
    prefer_accelerated: bool = True
    batch_size: int = 1000
    n_jobs: int = 1

    @property
    def similarity_threshold(self) -> float:
        return 1.0 - self.epsilon
