"""
All-pairs similarity matrix construction.

Vectors are assumed to be L2-normalized upstream, so the dot product of two vectors is
their cosine similarity. Two interchangeable strategies produce the same N x N matrix:

- AcceleratedSimilarity: one data-parallel dispatch on an accelerator backend
- SequentialSimilarity: vectorized row-by-row computation on the CPU

SimilarityEngine tries the accelerated strategy when asked to and recomputes with the
sequential one on any failure; callers only see which strategy ran, never the failure.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

import numpy as np
from joblib import Parallel, delayed

from vecdbscan.exceptions import BackendUnavailableError, InputValidationError

logger = logging.getLogger(__name__)

STRATEGY_ACCELERATED = "accelerated"
STRATEGY_SEQUENTIAL = "sequential"


def validate_vectors(vectors) -> np.ndarray:
    """
    Check the input contract and return the vectors as an N x D float32 matrix.

    Non-finite values are not rejected; they propagate into the similarity matrix.

    Raises:
        InputValidationError: empty input, ragged rows, zero dimensionality or non-numeric data
    """
    if isinstance(vectors, np.ndarray):
        if vectors.dtype == object:
            raise InputValidationError("Vectors must be numeric with a uniform dimensionality")
        points = vectors
    else:
        rows = list(vectors)
        if not rows:
            raise InputValidationError("Cannot compute similarities for an empty vector set")
        try:
            lengths = sorted({len(row) for row in rows})
        except TypeError as e:
            raise InputValidationError(f"Each vector must be a sequence of numbers: {e}") from e
        if len(lengths) > 1:
            raise InputValidationError(f"Vectors have inconsistent dimensionality: {lengths}")
        points = rows

    try:
        points = np.asarray(points, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"Vectors must be numeric: {e}") from e

    if points.ndim != 2:
        raise InputValidationError(f"Expected an N x D matrix of vectors, got an array with {points.ndim} dimension(s)")
    if points.shape[0] == 0:
        raise InputValidationError("Cannot compute similarities for an empty vector set")
    if points.shape[1] == 0:
        raise InputValidationError("Vectors must have at least one dimension")
    return points


class SimilarityStrategy(ABC):
    """Produces the N x N dot-product matrix of an N x D float32 matrix."""

    name: str = "base"

    @abstractmethod
    def compute(self, vectors: np.ndarray) -> np.ndarray:
        raise NotImplementedError


def _upper_triangle_rows(vectors: np.ndarray, start: int, end: int, batch_size: int) -> Tuple[int, np.ndarray]:
    """
    Compute rows [start, end) of the similarity matrix for columns j >= i.

    Entries below the diagonal are left at zero and filled in by mirroring.
    """
    n_items = vectors.shape[0]
    block = np.zeros((end - start, n_items), dtype=np.float32)

    for i in range(start, end):
        emb_i = vectors[i]
        for batch_start in range(i, n_items, batch_size):
            batch_end = min(batch_start + batch_size, n_items)
            block[i - start, batch_start:batch_end] = np.dot(vectors[batch_start:batch_end], emb_i)

    return start, block


class SequentialSimilarity(SimilarityStrategy):
    name = STRATEGY_SEQUENTIAL

    def __init__(self, batch_size: int = 1000, n_jobs: int = 1, chunk_size: int = 1024):
        """
        Args:
            batch_size: Number of columns computed per vectorized dot product (default: 1000)
            n_jobs: Parallel jobs for row chunks; 1 keeps everything in the calling thread,
                    -1 uses all CPUs (default: 1)
            chunk_size: Rows per parallel chunk when n_jobs != 1 (default: 1024)
        """
        if batch_size < 1:
            raise InputValidationError(f"batch_size must be >= 1, got {batch_size}")
        if chunk_size < 1:
            raise InputValidationError(f"chunk_size must be >= 1, got {chunk_size}")
        self.batch_size = batch_size
        self.n_jobs = n_jobs
        self.chunk_size = chunk_size

    def compute(self, vectors: np.ndarray) -> np.ndarray:
        n_items = vectors.shape[0]
        matrix = np.empty((n_items, n_items), dtype=np.float32)

        if self.n_jobs == 1 or n_items <= self.chunk_size:
            _, block = _upper_triangle_rows(vectors, 0, n_items, self.batch_size)
            matrix[:] = block
        else:
            chunk_starts = list(range(0, n_items, self.chunk_size))
            logger.debug(f"Processing {len(chunk_starts)} row chunks with {self.n_jobs} parallel jobs")
            blocks = Parallel(n_jobs=self.n_jobs)(
                delayed(_upper_triangle_rows)(vectors, start, min(start + self.chunk_size, n_items), self.batch_size)
                for start in chunk_starts
            )
            for start, block in blocks:
                matrix[start:start + block.shape[0]] = block

        # Mirror the upper triangle into the lower one
        lower = np.tril_indices(n_items, k=-1)
        matrix[lower] = matrix.T[lower]
        return matrix


class AcceleratedSimilarity(SimilarityStrategy):
    name = STRATEGY_ACCELERATED

    def __init__(self, backend):
        """
        Args:
            backend: An opened AcceleratorBackend (or any object with ``is_open`` and
                     ``pairwise_dot(buffer, n_points, dim)``)
        """
        self.backend = backend

    def compute(self, vectors: np.ndarray) -> np.ndarray:
        if self.backend is None or not self.backend.is_open:
            raise BackendUnavailableError("Accelerator backend is not open")

        n_items, dim = vectors.shape
        buffer = np.array(vectors, dtype=np.float32, order="C").reshape(-1)
        output = np.asarray(self.backend.pairwise_dot(buffer, n_items, dim), dtype=np.float32)

        if output.size != n_items * n_items:
            raise BackendUnavailableError(
                f"Backend returned {output.size} similarities, expected {n_items * n_items}"
            )
        return output.reshape(n_items, n_items)


class SimilarityEngine:
    def __init__(self,
                 backend=None,
                 fallback: Optional[SimilarityStrategy] = None,
                 on_strategy: Optional[Callable[[str, Optional[Exception]], None]] = None):
        """
        Args:
            backend: Opened accelerator backend, or None to always compute sequentially
            fallback: Sequential strategy used when the accelerated one is not used or fails
            on_strategy: Called after each computation with the strategy name and the
                         accelerated failure that caused a fallback (None otherwise)
        """
        self.backend = backend
        self.accelerated = AcceleratedSimilarity(backend) if backend is not None else None
        self.fallback = fallback if fallback is not None else SequentialSimilarity()
        self.on_strategy = on_strategy
        self.last_strategy: Optional[str] = None
        self.last_error: Optional[Exception] = None

    def compute(self, vectors, prefer_accelerated: bool = True) -> np.ndarray:
        """
        Build the read-only N x N similarity matrix of ``vectors``.

        Raises:
            InputValidationError: if the vectors violate the input contract
        """
        points = validate_vectors(vectors)
        n_items, dim = points.shape
        logger.info(f"Computing {n_items}x{n_items} similarity matrix for {dim}-dimensional vectors")

        error = None
        if prefer_accelerated and self.accelerated is not None:
            try:
                matrix = self.accelerated.compute(points)
                return self._finish(matrix, self.accelerated.name, None)
            except Exception as e:
                logger.warning(f"Accelerated similarity computation failed, falling back to sequential: {e}")
                error = e

        matrix = self.fallback.compute(points)
        return self._finish(matrix, self.fallback.name, error)

    def _finish(self, matrix: np.ndarray, strategy: str, error: Optional[Exception]) -> np.ndarray:
        matrix.flags.writeable = False
        self.last_strategy = strategy
        self.last_error = error
        logger.info(f"Similarity matrix computed using {strategy} strategy")
        if self.on_strategy is not None:
            self.on_strategy(strategy, error)
        return matrix
