#!/usr/bin/env python3
"""Simple runnable example for vecdbscan

Usage:
  python examples/run_clustering.py --mode synthetic
  python examples/run_clustering.py --mode dataset  # uses a small HF dataset if available

This script is deliberately lightweight and aims to be runnable in CI or locally.
"""
from __future__ import annotations

import argparse
import logging

from vecdbscan.backend import probe_backend
from vecdbscan.clusterer import DensityClusterer, generate_sample_embeddings
from vecdbscan.config import ClusteringConfig


def run_synthetic(config: ClusteringConfig, backend=None, n_items: int = 200, dim: int = 128, n_clusters: int = 4):
    print("Generating synthetic embeddings...")
    emb = generate_sample_embeddings(n_items=n_items, embedding_dim=dim, n_clusters=n_clusters)

    clusterer = DensityClusterer.from_config(config, backend=backend)
    result = clusterer.fit_predict(emb)

    print_summary(result.sorted_by_size(), len(result.noise), clusterer.strategy_used)
    return result


def run_dataset(config: ClusteringConfig, backend=None, sample_size: int = 500):
    # Optional: use HuggingFace dataset & sentence-transformers (may be slow if not cached)
    try:
        from datasets import load_dataset
        from vecdbscan.embeddings import SentenceEmbedder
        from vecdbscan.pipeline import TextClusteringPipeline
    except Exception as e:  # pragma: no cover - optional demo
        raise RuntimeError("Missing optional packages for dataset mode: install sentence-transformers and datasets") from e

    print("Loading small dataset subset (AG News)...")
    ds = load_dataset("ag_news", split=f"train[:{sample_size}]")

    embedder = SentenceEmbedder(model_name="all-MiniLM-L6-v2", batch_size=64)
    pipeline = TextClusteringPipeline(embedder, backend=backend, n_jobs=config.n_jobs)
    result = pipeline.run(ds["text"], epsilon=config.epsilon, min_pts=config.min_pts,
                          prefer_accelerated=config.prefer_accelerated)

    print_summary(result.indices, len(result.noise), result.strategy)
    for group in result.groups[:3]:
        print(f"\n[{group.size}] {group.texts[0][:100]}")
    return result


def print_summary(clusters, n_noise: int, strategy=None):
    sizes = [len(members) for members in clusters]

    print("\nRESULT SUMMARY")
    print("--------------")
    print(f"Clusters: {len(clusters)}")
    print(f"Top cluster sizes: {sizes[:5]}")
    print(f"Total nodes assigned: {sum(sizes)}")
    print(f"Noise points: {n_noise}")
    print(f"Similarity strategy: {strategy}")


def main(mode: str, config: ClusteringConfig, use_accelerator: bool = True, **kwargs):
    backend = probe_backend() if use_accelerator else None
    try:
        if mode == "synthetic":
            return run_synthetic(config, backend=backend, **kwargs)
        elif mode == "dataset":
            return run_dataset(config, backend=backend, **kwargs)
        else:
            raise ValueError("Unknown mode: " + str(mode))
    finally:
        if backend is not None:
            backend.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--mode", choices=["synthetic", "dataset"], default="synthetic")
    parser.add_argument("--n_items", type=int, default=200)
    parser.add_argument("--dim", type=int, default=128)
    parser.add_argument("--n_clusters", type=int, default=4)
    parser.add_argument("--sample_size", type=int, default=500)
    parser.add_argument("--epsilon", type=float, default=0.15)
    parser.add_argument("--min_pts", type=int, default=2)
    parser.add_argument("--batch_size", type=int, default=1000)
    parser.add_argument("--n_jobs", type=int, default=1)
    parser.add_argument("--no_accelerator", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    config = ClusteringConfig(
        epsilon=args.epsilon,
        min_pts=args.min_pts,
        prefer_accelerated=not args.no_accelerator,
        batch_size=args.batch_size,
        n_jobs=args.n_jobs,
    )
    if args.mode == "synthetic":
        main(args.mode, config, use_accelerator=not args.no_accelerator,
             n_items=args.n_items, dim=args.dim, n_clusters=args.n_clusters)
    else:
        main(args.mode, config, use_accelerator=not args.no_accelerator, sample_size=args.sample_size)
