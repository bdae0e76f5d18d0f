import numpy as np
import pytest

from vecdbscan.clusterer import generate_sample_embeddings
from vecdbscan.dbscan import NOISE_LABEL, density_cluster, region_query
from vecdbscan.exceptions import InputValidationError
from vecdbscan.similarity import SimilarityEngine


def _unit(*components):
    v = np.array(components, dtype=np.float64)
    return v / np.linalg.norm(v)


def _two_groups():
    # {0, 1, 2} pairwise ~0.99, {3, 4} ~0.98, ~0.1 across groups
    return np.array([
        _unit(1.0, 0.05, 0.0),
        _unit(1.0, -0.05, 0.0),
        _unit(1.0, 0.0, 0.05),
        _unit(0.1, 0.0, 1.0),
        _unit(0.1, 0.2, 1.0),
    ], dtype=np.float32)


CHAIN = np.array([
    [1.0, 0.9, 0.3],
    [0.9, 1.0, 0.9],
    [0.3, 0.9, 1.0],
])


def _assert_partition(result, n_items):
    members = [i for cluster in result.clusters for i in cluster]
    assert len(members) == len(set(members))
    assert set(members).isdisjoint(result.noise)
    assert sorted(members + result.noise) == list(range(n_items))
    assert all(result.clusters)


def test_two_separated_groups():
    similarity = SimilarityEngine().compute(_two_groups())
    result = density_cluster(similarity, threshold=0.8, min_neighbors=2)

    assert result.clusters == [[0, 1, 2], [3, 4]]
    assert result.noise == []
    _assert_partition(result, 5)


def test_mutually_dissimilar_points_are_all_noise():
    similarity = SimilarityEngine().compute(np.eye(4, dtype=np.float32))
    result = density_cluster(similarity, threshold=0.8, min_neighbors=2)

    assert result.clusters == []
    assert result.noise == [0, 1, 2, 3]
    assert result.labels.tolist() == [NOISE_LABEL] * 4


def test_chain_is_connected_through_core_point():
    result = density_cluster(CHAIN, threshold=0.85, min_neighbors=2)

    assert result.clusters == [[0, 1, 2]]
    assert result.noise == []


def test_min_neighbors_one_puts_every_point_in_a_cluster():
    similarity = SimilarityEngine().compute(np.eye(4, dtype=np.float32))
    result = density_cluster(similarity, threshold=0.8, min_neighbors=1)

    assert result.clusters == [[0], [1], [2], [3]]
    assert result.noise == []


def test_neighbor_count_includes_the_point_itself():
    # Two close points: each has exactly two neighbors counting itself
    similarity = np.array([[1.0, 0.95], [0.95, 1.0]])

    assert region_query(similarity, 0, 0.9).tolist() == [0, 1]
    assert density_cluster(similarity, 0.9, 2).clusters == [[0, 1]]
    assert density_cluster(similarity, 0.9, 3).noise == [0, 1]


def test_provisional_noise_is_absorbed_as_border_point():
    # 0 only reaches 1, so it is labelled noise first; core point 1 later claims it
    similarity = np.array([
        [1.0, 0.9, 0.1],
        [0.9, 1.0, 0.9],
        [0.1, 0.9, 1.0],
    ])
    result = density_cluster(similarity, threshold=0.85, min_neighbors=3)

    assert result.provisional_noise == [0]
    assert result.clusters == [[0, 1, 2]]
    assert result.noise == []
    assert result.cluster_of(0) == 0


def test_border_point_is_not_expanded():
    # 3 is a border point of the cluster rooted at 0; 4 is only reachable through 3
    similarity = np.array([
        [1.0, 0.9, 0.9, 0.9, 0.0],
        [0.9, 1.0, 0.9, 0.0, 0.0],
        [0.9, 0.9, 1.0, 0.0, 0.0],
        [0.9, 0.0, 0.0, 1.0, 0.9],
        [0.0, 0.0, 0.0, 0.9, 1.0],
    ])
    result = density_cluster(similarity, threshold=0.85, min_neighbors=4)

    assert result.clusters == [[0, 1, 2, 3]]
    assert result.noise == [4]
    _assert_partition(result, 5)


def test_clustering_is_deterministic():
    similarity = SimilarityEngine().compute(_two_groups())

    first = density_cluster(similarity, 0.8, 2)
    second = density_cluster(similarity, 0.8, 2)

    assert first == second
    assert first.labels.tolist() == [0, 0, 0, 1, 1]


def test_lower_threshold_only_merges_clusters():
    similarity = SimilarityEngine().compute(_two_groups())

    tight = density_cluster(similarity, 0.985, 2)
    loose = density_cluster(similarity, 0.8, 2)
    looser = density_cluster(similarity, 0.05, 2)

    for narrow, wide in ((tight, loose), (loose, looser)):
        for cluster in narrow.clusters:
            assert any(set(cluster) <= set(other) for other in wide.clusters)
        assert set(wide.noise) <= set(narrow.noise)
    assert looser.clusters == [[0, 1, 2, 3, 4]]


def test_single_point():
    result = density_cluster(np.array([[1.0]]), threshold=0.9, min_neighbors=1)
    assert result.clusters == [[0]]

    result = density_cluster(np.array([[1.0]]), threshold=0.9, min_neighbors=2)
    assert result.noise == [0]


def test_sorted_by_size_keeps_discovery_order_for_ties():
    similarity = np.array([
        [1.0, 0.0, 0.0, 0.0, 0.0],
        [0.0, 1.0, 0.9, 0.0, 0.0],
        [0.0, 0.9, 1.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 1.0, 0.9],
        [0.0, 0.0, 0.0, 0.9, 1.0],
    ])
    result = density_cluster(similarity, threshold=0.5, min_neighbors=1)

    assert result.clusters == [[0], [1, 2], [3, 4]]
    assert result.sorted_by_size() == [[1, 2], [3, 4], [0]]


def test_matrix_is_not_modified():
    similarity = CHAIN.copy()
    density_cluster(similarity, 0.85, 2)
    assert np.array_equal(similarity, CHAIN)


@pytest.mark.parametrize("threshold, min_neighbors", [
    (0.8, 0),
    (0.8, -1),
    (0.8, 1.5),
    (0.8, True),
    (float("nan"), 2),
    ("0.8", 2),
])
def test_invalid_parameters_are_rejected(threshold, min_neighbors):
    with pytest.raises(InputValidationError):
        density_cluster(CHAIN, threshold, min_neighbors)


@pytest.mark.parametrize("similarity", [
    np.zeros((0, 0)),
    np.ones((2, 3)),
    np.ones(3),
])
def test_invalid_matrix_is_rejected(similarity):
    with pytest.raises(InputValidationError):
        density_cluster(similarity, 0.8, 2)


def test_point_counts_itself_at_threshold_one():
    # float32 self-dots of unit vectors can fall just below 1.0
    emb = generate_sample_embeddings(n_items=50, embedding_dim=384, n_clusters=5)
    similarity = SimilarityEngine().compute(emb)
    result = density_cluster(similarity, threshold=1.0, min_neighbors=1)

    assert result.noise == []
    _assert_partition(result, 50)
    assert region_query(np.array([[0.9999999]]), 0, 1.0).tolist() == [0]
