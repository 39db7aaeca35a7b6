"""
Embedding Client - Text to Vector Conversion

Stores embed document text themselves; this module provides the embedders
they are constructed with.

- HashingEmbedder: deterministic feature hashing over word tokens (numpy only,
  no model download). Default for the embedded in-memory store and tests.
- SentenceTransformerEmbedder: local sentence-transformers model, imported
  lazily so the package works without it installed.
"""

import hashlib
import logging
import re
from typing import Optional, Protocol

import numpy as np

logger = logging.getLogger(__name__)


DEFAULT_MODEL_NAME = "all-MiniLM-L6-v2"
HASHING_VECTOR_DIM = 256

_TOKEN = re.compile(r"[a-z0-9_]+")


class EmbeddingModelError(Exception):
    """Raised when embedding model fails to load or generate."""
    pass


class Embedder(Protocol):
    """Anything that turns text into fixed-size vectors."""

    @property
    def vector_dimension(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens used by the hashing embedder."""
    return _TOKEN.findall(text.lower())


class HashingEmbedder:
    """
    Feature-hashing embedder.

    Each token is hashed into one of ``dimension`` buckets with a signed
    weight; the resulting vector is L2-normalized. Identical token bags yield
    identical vectors, and texts sharing tokens get positive cosine similarity.
    """

    def __init__(self, dimension: int = HASHING_VECTOR_DIM):
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def vector_dimension(self) -> int:
        return self._dimension

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "little")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self._dimension, sign

    def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        vector = np.zeros(self._dimension, dtype=np.float32)
        for token in tokenize(text):
            index, sign = self._bucket(token)
            vector[index] += sign
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        return [self.embed(text) for text in texts]


class SentenceTransformerEmbedder:
    """
    Local sentence-transformers embedder.

    The model is loaded on first use; a missing package or model surfaces as
    EmbeddingModelError.
    """

    def __init__(self, model_name: str = DEFAULT_MODEL_NAME):
        self._model_name = model_name
        self._model = None
        self._vector_dim: Optional[int] = None

    def _ensure_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise EmbeddingModelError(
                    "Local embedding support requires the 'sentence-transformers' package."
                ) from e
            try:
                self._model = SentenceTransformer(self._model_name)
                self._vector_dim = int(self._model.get_sentence_embedding_dimension())
                logger.info(f"Loaded embedding model {self._model_name} ({self._vector_dim} dims)")
            except Exception as e:
                raise EmbeddingModelError(f"Failed to load embedding model {self._model_name}: {e}") from e
        return self._model

    @property
    def vector_dimension(self) -> int:
        """Return the dimension of embedding vectors (loads the model)."""
        self._ensure_model()
        return self._vector_dim

    @property
    def model_name(self) -> str:
        return self._model_name

    def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []
        model = self._ensure_model()
        try:
            result = model.encode(texts)
        except Exception as e:
            raise EmbeddingModelError(f"Failed to generate batch embeddings: {e}") from e
        return [row.tolist() if hasattr(row, "tolist") else list(row) for row in result]
