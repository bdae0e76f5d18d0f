"""Package-level example runner (kept for convenience).

This script assumes it's executed as a module (e.g., `python -m vecdbscan.main`) or
that the package is installed in editable mode.
"""
from __future__ import annotations

import logging

from vecdbscan.backend import probe_backend
from vecdbscan.clusterer import DensityClusterer, generate_sample_embeddings


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    print("Generating sample embeddings...")
    embeddings = generate_sample_embeddings(n_items=100, embedding_dim=64, n_clusters=4)

    # Probe once and share the handle; None means sequential similarity only
    backend = probe_backend()
    try:
        clusterer = DensityClusterer(
            similarity_threshold=0.85,
            min_neighbors=3,
            backend=backend,
        )
        clusterer.fit_predict(embeddings)
        clusterer.print_clusters()
    finally:
        if backend is not None:
            backend.close()
