"""
Density-based clustering over a precomputed similarity matrix.

Point j is a neighbor of point i when similarity[i][j] >= threshold. The neighbor count
includes the point itself (the diagonal is its own neighbor), and ``min_neighbors`` is
compared against that self-inclusive count. With min_neighbors=1 every point is a core
point and the noise set is empty.

Points are scanned in ascending index order and each cluster is expanded with a FIFO
queue, so cluster ids and memberships are reproducible for a given matrix.

A point that is labelled noise when first scanned can still be absorbed later by the
expansion of another cluster (a border point). Noise is therefore only final once the
whole scan completes: the returned ``noise`` holds the points that never received a
cluster, while ``provisional_noise`` records every point labelled noise during the scan.
"""
from __future__ import annotations

import logging
import math
import numbers
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from vecdbscan.exceptions import InputValidationError

logger = logging.getLogger(__name__)

NOISE_LABEL = -1


class PointState(Enum):
    UNVISITED = "unvisited"
    VISITED = "visited"      # visited, not (yet) assigned
    NOISE = "noise"          # provisional, may still be claimed by a later expansion
    ASSIGNED = "assigned"


@dataclass
class DensityClusteringResult:
    """
    Partition of point indices into clusters and noise.

    Attributes:
        clusters: Clusters in discovery order (cluster id == position), members ascending
        noise: Points that never received a cluster, ascending
        provisional_noise: Points labelled noise when first scanned, including border
                           points absorbed by a later expansion
    """

    clusters: List[List[int]]
    noise: List[int]
    provisional_noise: List[int] = field(default_factory=list)

    @property
    def n_clusters(self) -> int:
        return len(self.clusters)

    @property
    def n_points(self) -> int:
        return sum(len(members) for members in self.clusters) + len(self.noise)

    @property
    def labels(self) -> np.ndarray:
        """Per-point cluster id, -1 for noise."""
        labels = np.full(self.n_points, NOISE_LABEL, dtype=np.int64)
        for cluster_id, members in enumerate(self.clusters):
            labels[members] = cluster_id
        return labels

    def cluster_of(self, index: int) -> Optional[int]:
        for cluster_id, members in enumerate(self.clusters):
            if index in members:
                return cluster_id
        return None

    def sorted_by_size(self) -> List[List[int]]:
        """Clusters by descending size; ties keep discovery order."""
        return sorted(self.clusters, key=len, reverse=True)


def _validate_matrix(similarity) -> np.ndarray:
    try:
        matrix = np.asarray(similarity, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"Similarity matrix must be numeric: {e}") from e

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise InputValidationError(f"Similarity matrix must be square, got shape {matrix.shape}")
    if matrix.shape[0] == 0:
        raise InputValidationError("Similarity matrix is empty")
    return matrix


def validate_parameters(threshold: float, min_neighbors: int) -> None:
    if isinstance(threshold, bool) or not isinstance(threshold, numbers.Real) or not math.isfinite(threshold):
        raise InputValidationError(f"threshold must be a finite number, got {threshold!r}")
    if isinstance(min_neighbors, bool) or not isinstance(min_neighbors, numbers.Integral):
        raise InputValidationError(f"min_neighbors must be an integer, got {min_neighbors!r}")
    if min_neighbors < 1:
        raise InputValidationError(f"min_neighbors must be >= 1, got {min_neighbors}")


def region_query(similarity: np.ndarray, index: int, threshold: float) -> np.ndarray:
    """Return the indices whose similarity to ``index`` is at least ``threshold``, always including ``index``."""
    # A float32 self-dot can land just under 1.0
    mask = similarity[index] >= threshold
    mask[index] = True
    return np.flatnonzero(mask)


def _expand_cluster(similarity: np.ndarray,
                    root: int,
                    neighbors: np.ndarray,
                    cluster_id: int,
                    threshold: float,
                    min_neighbors: int,
                    states: List[PointState],
                    assignments: List[int]) -> None:
    assignments[root] = cluster_id
    states[root] = PointState.ASSIGNED

    seeds = deque(neighbors.tolist())
    while seeds:
        point = seeds.popleft()

        if states[point] is PointState.UNVISITED:
            states[point] = PointState.VISITED
            point_neighbors = region_query(similarity, point, threshold)
            if len(point_neighbors) >= min_neighbors:
                # Core point: density-connectivity continues through its neighborhood
                seeds.extend(n for n in point_neighbors.tolist() if states[n] is PointState.UNVISITED)

        # Unassigned includes points provisionally labelled noise by an earlier root
        if assignments[point] == NOISE_LABEL:
            assignments[point] = cluster_id
            states[point] = PointState.ASSIGNED


def density_cluster(similarity, threshold: float, min_neighbors: int) -> DensityClusteringResult:
    """
    Cluster points by density-reachability over a precomputed similarity matrix.

    Args:
        similarity: N x N similarity matrix (not modified)
        threshold: Minimum similarity for two points to be neighbors
        min_neighbors: Self-inclusive neighbor count a core point needs

    Returns:
        DensityClusteringResult

    Raises:
        InputValidationError: on a non-square or empty matrix, a non-finite threshold or
                              min_neighbors < 1
    """
    validate_parameters(threshold, min_neighbors)
    matrix = _validate_matrix(similarity)
    n_items = matrix.shape[0]

    states = [PointState.UNVISITED] * n_items
    assignments = [NOISE_LABEL] * n_items
    provisional_noise = []
    next_cluster_id = 0

    for i in range(n_items):
        if states[i] is not PointState.UNVISITED:
            continue

        states[i] = PointState.VISITED
        neighbors = region_query(matrix, i, threshold)

        if len(neighbors) < min_neighbors:
            states[i] = PointState.NOISE
            provisional_noise.append(i)
            continue

        _expand_cluster(matrix, i, neighbors, next_cluster_id, threshold, min_neighbors, states, assignments)
        next_cluster_id += 1

    groups: Dict[int, List[int]] = {}
    noise = []
    for index, label in enumerate(assignments):
        if label == NOISE_LABEL:
            noise.append(index)
        else:
            groups.setdefault(label, []).append(index)

    clusters = [groups[label] for label in sorted(groups)]
    absorbed = len(provisional_noise) - len(noise)
    logger.debug(f"Found {len(clusters)} clusters and {len(noise)} noise points "
                 f"({absorbed} provisional noise points absorbed as border points)")

    return DensityClusteringResult(clusters=clusters, noise=noise, provisional_noise=provisional_noise)
