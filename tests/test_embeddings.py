import numpy as np

from vecdbscan.embeddings import SentenceEmbedder, select_device


class FakeModel:
    def __init__(self):
        self.encoded = []

    def encode(self, texts, batch_size=32, show_progress_bar=False, convert_to_numpy=True,
               normalize_embeddings=False):
        self.encoded.extend(texts)
        vectors = np.array([[len(t), 1.0] for t in texts], dtype=np.float32)
        if normalize_embeddings:
            vectors /= np.linalg.norm(vectors, axis=1, keepdims=True)
        return vectors


def test_embed_preserves_order_and_duplicates():
    model = FakeModel()
    embedder = SentenceEmbedder(model=model)

    vectors = embedder.embed(["ab", "a", "ab"])

    assert vectors.shape == (3, 2)
    assert np.array_equal(vectors[0], vectors[2])
    assert np.allclose(np.linalg.norm(vectors, axis=1), 1.0)
    assert model.encoded == ["ab", "a"]


def test_cached_texts_are_not_encoded_again():
    model = FakeModel()
    embedder = SentenceEmbedder(model=model, batch_size=2)
    progress = []

    embedder.embed(["x", "yy"])
    embedder.embed(["yy", "zzz", "x", "wwww", "vvvvv"], progress_callback=lambda c, t: progress.append((c, t)))

    assert model.encoded == ["x", "yy", "zzz", "wwww", "vvvvv"]
    assert embedder.cache_size == 5
    assert progress == [(2, 3), (3, 3)]

    embedder.clear_cache()
    assert embedder.cache_size == 0


def test_loaded_model_is_kept():
    embedder = SentenceEmbedder(model=FakeModel())
    assert embedder.is_loaded
    assert embedder.load() is embedder


def test_select_device_honours_explicit_choice():
    assert select_device("cpu") == "cpu"
    assert select_device(None) in ("mps", "cuda", "cpu")
