import numpy as np

from vecdbscan.clusterer import DensityClusterer, generate_sample_embeddings


def test_smoke_clustering_runs():
    # Small synthetic run to ensure clustering code can be imported and executed quickly
    emb = generate_sample_embeddings(n_items=40, embedding_dim=32, n_clusters=2)

    clusterer = DensityClusterer(similarity_threshold=0.8, min_neighbors=3)
    result = clusterer.fit_predict(emb)

    # Both synthetic groups are recovered
    assert result.n_clusters == 2
    assert sorted(len(c) for c in result.clusters) == [20, 20]
    assert result.noise == []
    # final_result attribute should reflect the result
    assert clusterer.final_result == result
    assert clusterer.strategy_used == "sequential"


def test_sample_embeddings_are_normalized():
    emb = generate_sample_embeddings(n_items=23, embedding_dim=16, n_clusters=3)

    assert emb.shape == (23, 16)
    assert emb.dtype == np.float32
    assert np.allclose(np.linalg.norm(emb, axis=1), 1.0, atol=1e-5)
