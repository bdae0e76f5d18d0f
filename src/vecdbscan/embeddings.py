"""
Sentence embeddings for the text pipeline.

Wraps a sentence-transformers model that produces L2-normalized vectors and memoizes one
vector per distinct text, so repeated texts and repeated requests are encoded once.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import numpy as np

from vecdbscan.backend import detect_accelerator

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "BAAI/bge-small-zh-v1.5"


def select_device(device: Optional[str] = None) -> str:
    """Return ``device`` or the best available torch device ('mps', 'cuda', 'cpu')."""
    if device is not None:
        return device

    return detect_accelerator() or 'cpu'


class SentenceEmbedder:
    def __init__(self,
                 model_name: str = DEFAULT_MODEL_NAME,
                 device: Optional[str] = None,
                 batch_size: int = 32,
                 show_progress: bool = False,
                 model=None):
        """
        Args:
            model_name: Name of the sentence-transformer model
            device: Device to use ('cuda', 'mps', 'cpu', or None for auto-detect)
            batch_size: Batch size for encoding (default: 32)
            show_progress: Whether to show the encoder's progress bar (default: False)
            model: Already constructed encoder with a sentence-transformers style
                   ``encode`` method; skips loading ``model_name``
        """
        self.model_name = model_name
        self.device = device
        self.batch_size = batch_size
        self.show_progress = show_progress
        self.model = model
        self._cache: Dict[str, np.ndarray] = {}

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def load(self) -> "SentenceEmbedder":
        """Load the model once; later calls are no-ops."""
        if self.model is not None:
            return self

        from sentence_transformers import SentenceTransformer

        self.device = select_device(self.device)
        logger.info(f"Loading sentence-transformer model: {self.model_name} (device: {self.device})")
        self.model = SentenceTransformer(self.model_name, device=self.device)
        return self

    def clear_cache(self) -> None:
        self._cache.clear()

    def embed(self, texts: Iterable[str], progress_callback=None) -> np.ndarray:
        """
        Embed texts, encoding only distinct texts that are not cached yet.

        Args:
            texts: Texts to embed (duplicates allowed)
            progress_callback: Called with (processed, total) after each encoded batch

        Returns:
            n x d float32 matrix of unit-length embeddings in input order
        """
        texts = list(texts)
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        missing: List[str] = []
        seen = set()
        for text in texts:
            if text not in self._cache and text not in seen:
                seen.add(text)
                missing.append(text)

        logger.info(f"Embedding {len(texts)} texts ({len(missing)} new, {len(texts) - len(missing)} cached)")

        if missing:
            self.load()
            for batch_start in range(0, len(missing), self.batch_size):
                batch = missing[batch_start:batch_start + self.batch_size]
                vectors = self.model.encode(
                    batch,
                    batch_size=self.batch_size,
                    show_progress_bar=self.show_progress,
                    convert_to_numpy=True,
                    normalize_embeddings=True,
                )
                for text, vector in zip(batch, np.asarray(vectors, dtype=np.float32)):
                    self._cache[text] = vector
                if progress_callback is not None:
                    progress_callback(min(batch_start + len(batch), len(missing)), len(missing))

        return np.vstack([self._cache[text] for text in texts]).astype(np.float32, copy=False)
